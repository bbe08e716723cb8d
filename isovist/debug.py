"""
Debug logging utilities.

All modules log through loggers under the "isovist" namespace. Nothing is
printed unless a handler is attached, either by the application or with
setup_debug_logging().
"""

import logging
from typing import Mapping, Optional
import numpy as np
from numpy.typing import ArrayLike

LOGGER_NAME = "isovist"
DEFAULT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_handler: Optional[logging.Handler] = None


def setup_debug_logging(level: int = logging.DEBUG, fmt: str = DEFAULT_FORMAT) -> logging.Logger:
    """
    Attach a stream handler to the package logger.

    Calling it again only updates the level and format.

    Parameters:
        level: Logging level for the package logger
        fmt: Format string for the handler

    Returns:
        The package logger
    """
    global _handler
    logger = logging.getLogger(LOGGER_NAME)
    if _handler is None:
        _handler = logging.StreamHandler()
        logger.addHandler(_handler)
    _handler.setFormatter(logging.Formatter(fmt))
    _handler.setLevel(level)
    logger.setLevel(level)
    return logger


def disable_debug_logging() -> None:
    """Remove the handler added by setup_debug_logging() and reset the level."""
    global _handler
    logger = logging.getLogger(LOGGER_NAME)
    if _handler is not None:
        logger.removeHandler(_handler)
        _handler = None
    logger.setLevel(logging.NOTSET)


def format_point(point: ArrayLike, precision: int = 2) -> str:
    """Format an (x, y) point as '(x, y)'."""
    x, y = np.asarray(point, dtype=np.float64).reshape(2)
    return f"({x:.{precision}f}, {y:.{precision}f})"


def format_polygon(vertices: ArrayLike, precision: int = 2, max_vertices: int = 6) -> str:
    """Format a polygon, eliding the middle when it has many vertices."""
    verts = np.asarray(vertices, dtype=np.float64).reshape(-1, 2)
    n = verts.shape[0]
    if n <= max_vertices:
        parts = [format_point(v, precision) for v in verts]
    else:
        head = max_vertices // 2
        parts = [format_point(v, precision) for v in verts[:head]]
        parts.append(f"... {n - 2 * head} more ...")
        parts.extend(format_point(v, precision) for v in verts[n - head:])
    return f"[{', '.join(parts)}] ({n} vertices)"


def format_features(features: Mapping, precision: int = 4) -> str:
    """Format a feature vector; sequences are summarized by their length."""
    parts = []
    for key, value in features.items():
        name = getattr(key, "value", key)
        if np.ndim(value) > 0:
            parts.append(f"{name}=<{len(value)} values>")
        else:
            parts.append(f"{name}={float(value):.{precision}f}")
    return "{" + ", ".join(parts) + "}"
