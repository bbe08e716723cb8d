"""
Ray casting of the visibility polygon (isovist) from a viewpoint.
"""

import logging
from typing import Iterable
import numpy as np
from numpy.typing import NDArray, ArrayLike

from isovist.geometry import EPSILON, ValidationError, as_point, as_segments
from isovist.obstacles import Obstacle, obstacle_segments

logger = logging.getLogger(__name__)

DEFAULT_RAY_COUNT = 360
DEFAULT_MAX_RANGE = 1000.0


def ray_angles(ray_count: int = DEFAULT_RAY_COUNT) -> NDArray[np.float64]:
    """
    Angles of the cast rays, theta_i = 2*pi*i / ray_count.

    Parameters:
        ray_count: Number of rays

    Returns:
        Array of shape (ray_count,) in [0, 2*pi)
    """
    return 2.0 * np.pi * np.arange(ray_count, dtype=np.float64) / ray_count


def _nearest_hit(
    origin: NDArray[np.float64],
    dx: float,
    dy: float,
    starts: NDArray[np.float64],
    vx: NDArray[np.float64],
    vy: NDArray[np.float64],
    max_range: float,
) -> float:
    """
    Distance along a unit ray to the nearest segment hit within max_range.

    Applies the same determinant and epsilon rules as
    intersect_ray_segment() to every segment at once.

    Returns:
        Nearest hit distance, or max_range when nothing is hit
    """
    if starts.shape[0] == 0:
        return max_range

    det = dx * vy - dy * vx
    valid = np.abs(det) >= EPSILON
    safe_det = np.where(valid, det, 1.0)

    ox = starts[:, 0] - origin[0]
    oy = starts[:, 1] - origin[1]
    t = (ox * vy - oy * vx) / safe_det
    u = (ox * dy - oy * dx) / safe_det

    valid &= (t > EPSILON) & (u >= -EPSILON) & (u <= 1.0 + EPSILON) & (t <= max_range)
    if not np.any(valid):
        return max_range
    return float(np.min(t[valid]))


def cast_visibility(
    viewpoint: ArrayLike,
    segments: ArrayLike,
    ray_count: int = DEFAULT_RAY_COUNT,
    max_range: float = DEFAULT_MAX_RANGE,
) -> NDArray[np.float64]:
    """
    Compute the visibility polygon seen from a viewpoint.

    Casts ray_count evenly spaced rays and keeps, for each ray, the nearest
    obstacle hit. Rays that hit nothing within max_range end at max_range.
    The returned vertices form a closed polygon with an implicit edge from
    the last vertex back to the first.

    A viewpoint inside a filled obstacle yields a near-zero polygon; this is
    not corrected.

    Parameters:
        viewpoint: Viewer position (2,)
        segments: Obstacle segments (M, 2, 2)
        ray_count: Number of rays (>= 3)
        max_range: Maximum ray length (> 0)

    Returns:
        Polygon vertices of shape (ray_count, 2), in ray order

    Raises:
        ValidationError: If inputs have invalid shapes or values
    """
    origin = as_point(viewpoint, "viewpoint")
    segs = as_segments(segments)

    if int(ray_count) != ray_count or ray_count < 3:
        raise ValidationError(f"ray_count must be an integer >= 3, got {ray_count}")
    if not max_range > 0:
        raise ValidationError(f"max_range must be positive, got {max_range}")
    ray_count = int(ray_count)

    starts = segs[:, 0, :]
    vx = segs[:, 1, 0] - segs[:, 0, 0]
    vy = segs[:, 1, 1] - segs[:, 0, 1]

    angles = ray_angles(ray_count)
    polygon = np.empty((ray_count, 2), dtype=np.float64)
    open_rays = 0

    for i, theta in enumerate(angles):
        dx = float(np.cos(theta))
        dy = float(np.sin(theta))
        reach = _nearest_hit(origin, dx, dy, starts, vx, vy, max_range)
        if reach == max_range:
            open_rays += 1
        polygon[i, 0] = origin[0] + dx * reach
        polygon[i, 1] = origin[1] + dy * reach

    logger.debug(
        "Cast %d rays from (%.3f, %.3f) against %d segments, %d reached max range",
        ray_count, origin[0], origin[1], segs.shape[0], open_rays,
    )
    return polygon


def cast_obstacles(
    viewpoint: ArrayLike,
    obstacles: Iterable[Obstacle],
    ray_count: int = DEFAULT_RAY_COUNT,
    max_range: float = DEFAULT_MAX_RANGE,
) -> NDArray[np.float64]:
    """Convenience wrapper of cast_visibility() taking obstacle records."""
    return cast_visibility(viewpoint, obstacle_segments(obstacles), ray_count, max_range)
