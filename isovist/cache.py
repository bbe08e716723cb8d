"""
Per-viewpoint memoization of radial lengths and radial moments.

The cache is an explicit object owned by the caller. Entries are keyed by
the viewpoint quantized to VIEWPOINT_PRECISION fractional digits, so that
floating-point jitter does not fragment it. The cache knows nothing about
obstacles: callers that change the obstacle set must call invalidate() with
a new version (or clear()).

Not thread-safe. Concurrent callers must serialize access externally or use
one cache per thread.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Hashable, Optional

import numpy as np
from numpy.typing import ArrayLike, NDArray

from isovist.geometry import ValidationError

logger = logging.getLogger(__name__)

VIEWPOINT_PRECISION = 6
DEFAULT_CACHE_SIZE = 4096

ViewpointKey = tuple[float, float]
MomentTriple = tuple[float, float, float]


def quantize_viewpoint(viewpoint: ArrayLike) -> ViewpointKey:
    """Round a viewpoint to VIEWPOINT_PRECISION digits for use as a cache key."""
    x, y = viewpoint[0], viewpoint[1]  # type: ignore[index]
    # + 0.0 folds -0.0 into 0.0
    return (
        round(float(x), VIEWPOINT_PRECISION) + 0.0,
        round(float(y), VIEWPOINT_PRECISION) + 0.0,
    )


@dataclass
class _Entry:
    radial_lengths: Optional[NDArray[np.float64]] = None
    moments: Optional[MomentTriple] = None


class FeatureCache:
    """Bounded least-recently-used cache of per-viewpoint feature inputs.

    Attributes:
        maxsize: Maximum number of viewpoints kept
        obstacle_version: Version tag of the obstacle set the entries were
            computed against
        hits: Number of lookups served from the cache
        misses: Number of lookups that required computation
    """

    def __init__(
        self,
        maxsize: int = DEFAULT_CACHE_SIZE,
        obstacle_version: Hashable = 0,
    ) -> None:
        if maxsize < 1:
            raise ValidationError(f"maxsize must be >= 1, got {maxsize}")
        self.maxsize = maxsize
        self.obstacle_version = obstacle_version
        self.hits = 0
        self.misses = 0
        self._entries: OrderedDict[ViewpointKey, _Entry] = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, viewpoint: object) -> bool:
        try:
            key = quantize_viewpoint(viewpoint)  # type: ignore[arg-type]
        except (TypeError, IndexError, ValueError):
            return False
        return key in self._entries

    def clear(self) -> None:
        """Drop every entry and reset the hit/miss counters."""
        self._entries.clear()
        self.hits = 0
        self.misses = 0

    def invalidate(self, obstacle_version: Hashable) -> bool:
        """Switch to a new obstacle version, clearing entries if it differs.

        Args:
            obstacle_version: Version tag of the current obstacle set

        Returns:
            True if the cache was cleared
        """
        if obstacle_version == self.obstacle_version:
            return False
        logger.debug(
            "Obstacle version %r -> %r, dropping %d cached viewpoints",
            self.obstacle_version, obstacle_version, len(self._entries),
        )
        self.obstacle_version = obstacle_version
        self.clear()
        return True

    def _entry(self, key: ViewpointKey) -> _Entry:
        entry = self._entries.get(key)
        if entry is None:
            entry = _Entry()
            self._entries[key] = entry
            if len(self._entries) > self.maxsize:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug("Evicted cached viewpoint %s", evicted)
        else:
            self._entries.move_to_end(key)
        return entry

    def radial_lengths(
        self,
        viewpoint: ArrayLike,
        compute: Callable[[], NDArray[np.float64]],
    ) -> NDArray[np.float64]:
        """Return the cached radial lengths for a viewpoint, computing on a miss.

        The stored array is read-only so a hit can never observe a mutated value.
        """
        entry = self._entry(quantize_viewpoint(viewpoint))
        if entry.radial_lengths is not None:
            self.hits += 1
            return entry.radial_lengths
        self.misses += 1
        values = np.array(compute(), dtype=np.float64, copy=True)
        values.flags.writeable = False
        entry.radial_lengths = values
        return values

    def moments(
        self,
        viewpoint: ArrayLike,
        compute: Callable[[], MomentTriple],
    ) -> MomentTriple:
        """Return the cached (mean, variance, skewness) triple, computing on a miss."""
        entry = self._entry(quantize_viewpoint(viewpoint))
        if entry.moments is not None:
            self.hits += 1
            return entry.moments
        self.misses += 1
        triple = tuple(float(v) for v in compute())
        entry.moments = triple  # type: ignore[assignment]
        return triple  # type: ignore[return-value]
