"""
Viewpoint sampling over the navigable disc.

Two strategies:
- orthogonal_grid: every node of a square grid that is navigable
- random_grid: blue-noise placement by best-candidate selection, seeded
  with uniform rejection samples

Both reject points outside the disc, inside a filled obstacle, or within
the configured wall clearance of an unfilled obstacle segment.
"""

from __future__ import annotations

import logging
import math
from typing import Optional, Sequence

import numpy as np
from numpy.typing import ArrayLike, NDArray

from isovist.geometry import (
    ValidationError,
    as_point,
    distance,
    distance_to_segment,
    point_in_circle,
    point_in_polygon,
)
from isovist.obstacles import CircleObstacle, MapConfig, Obstacle, PolygonObstacle

logger = logging.getLogger(__name__)

MAX_REJECTION_ATTEMPTS = 1000
CANDIDATE_POOL_SIZE = 10


class _Navigability:
    """Precomputed rejection rule for one (map, obstacles) pair."""

    def __init__(self, map_config: MapConfig, obstacles: Sequence[Obstacle]) -> None:
        self.center = map_config.center
        self.radius = map_config.radius
        self.line_width = map_config.line_width
        self.filled = [o for o in obstacles if o.filled]
        walls = [o.segments for o in obstacles if not o.filled]
        self.walls = (
            np.concatenate(walls, axis=0) if walls else np.empty((0, 2, 2), dtype=np.float64)
        )

    def __call__(self, point: NDArray[np.float64]) -> bool:
        if distance(point, self.center) > self.radius:
            return False

        for obstacle in self.filled:
            if isinstance(obstacle, CircleObstacle):
                if point_in_circle(point, obstacle.center, obstacle.radius):
                    return False
            elif isinstance(obstacle, PolygonObstacle):
                if point_in_polygon(point, obstacle.segments):
                    return False

        for segment in self.walls:
            if distance_to_segment(point, segment) <= self.line_width:
                return False
        return True


def is_navigable(
    point: ArrayLike,
    map_config: MapConfig,
    obstacles: Sequence[Obstacle],
) -> bool:
    """True if a viewpoint may be sampled at this point."""
    return _Navigability(map_config, obstacles)(as_point(point))


def _as_points(points: list[NDArray[np.float64]]) -> NDArray[np.float64]:
    if not points:
        return np.empty((0, 2), dtype=np.float64)
    return np.array(points, dtype=np.float64)


def orthogonal_grid(
    map_config: MapConfig,
    obstacles: Sequence[Obstacle] = (),
) -> NDArray[np.float64]:
    """
    Navigable nodes of a square grid.

    The grid has spacing cell_size and covers the bounding box of the
    navigable disc, clipped to the scene box [0, width] x [0, height].
    Nodes are enumerated row by row (y outer, x inner).

    Parameters:
        map_config: Scene and grid parameters
        obstacles: Scene obstacles

    Returns:
        Accepted nodes of shape (N, 2)
    """
    accept = _Navigability(map_config, obstacles)
    cell = map_config.cell_size
    x_min = max(map_config.center_x - map_config.radius, 0.0)
    x_max = min(map_config.center_x + map_config.radius, map_config.width)
    y_min = max(map_config.center_y - map_config.radius, 0.0)
    y_max = min(map_config.center_y + map_config.radius, map_config.height)
    if x_max < x_min or y_max < y_min:
        return _as_points([])

    columns = int(math.floor((x_max - x_min) / cell + 1e-9)) + 1
    rows = int(math.floor((y_max - y_min) / cell + 1e-9)) + 1

    points: list[NDArray[np.float64]] = []
    for row in range(rows):
        y = y_min + row * cell
        for column in range(columns):
            point = np.array([x_min + column * cell, y], dtype=np.float64)
            if accept(point):
                points.append(point)

    logger.debug(
        "Orthogonal grid kept %d of %d nodes (cell %.3f)",
        len(points), rows * columns, cell,
    )
    return _as_points(points)


def _rejection_sample(
    map_config: MapConfig,
    accept: _Navigability,
    rng: np.random.Generator,
) -> Optional[NDArray[np.float64]]:
    """Uniform point in the disc passing the rejection rule, or None."""
    for _ in range(MAX_REJECTION_ATTEMPTS):
        angle = rng.random() * 2.0 * math.pi
        r = math.sqrt(rng.random()) * map_config.radius
        point = np.array(
            [map_config.center_x + r * math.cos(angle), map_config.center_y + r * math.sin(angle)],
            dtype=np.float64,
        )
        if accept(point):
            return point
    return None


def _nearest_distance(point: NDArray[np.float64], accepted: list[NDArray[np.float64]]) -> float:
    if not accepted:
        return math.inf
    diffs = np.asarray(accepted) - point
    return float(np.min(np.hypot(diffs[:, 0], diffs[:, 1])))


def random_grid(
    map_config: MapConfig,
    obstacles: Sequence[Obstacle] = (),
    target_count: int = 100,
    rng: Optional[np.random.Generator] = None,
) -> NDArray[np.float64]:
    """
    Blue-noise viewpoints with approximately maximal minimum spacing.

    Half of the target (rounded down) is seeded with uniform rejection
    samples (polar, r = sqrt(U) * R, at most MAX_REJECTION_ATTEMPTS tries
    per point). The rest is added one point at a time: CANDIDATE_POOL_SIZE
    valid candidates are drawn and the one farthest from its nearest
    accepted point is kept.

    The result may be shorter than target_count when the rejection budget
    runs out; callers must handle a short or empty result.

    Parameters:
        map_config: Scene parameters
        obstacles: Scene obstacles
        target_count: Desired number of points (>= 0)
        rng: Random generator; a fresh unseeded one by default

    Returns:
        Accepted points of shape (N, 2), N <= target_count

    Raises:
        ValidationError: If target_count is negative or not an integer
    """
    if int(target_count) != target_count or target_count < 0:
        raise ValidationError(f"target_count must be a non-negative integer, got {target_count}")
    target_count = int(target_count)
    if rng is None:
        rng = np.random.default_rng()

    accept = _Navigability(map_config, obstacles)
    points: list[NDArray[np.float64]] = []
    exhausted = False

    while len(points) < target_count // 2:
        point = _rejection_sample(map_config, accept, rng)
        if point is None:
            exhausted = True
            break
        points.append(point)

    while not exhausted and len(points) < target_count:
        candidates: list[NDArray[np.float64]] = []
        while len(candidates) < CANDIDATE_POOL_SIZE:
            point = _rejection_sample(map_config, accept, rng)
            if point is None:
                exhausted = True
                break
            candidates.append(point)
        if not candidates:
            break

        best: Optional[NDArray[np.float64]] = None
        best_spacing = -math.inf
        for candidate in candidates:
            spacing = _nearest_distance(candidate, points)
            if spacing > best_spacing:
                best_spacing = spacing
                best = candidate
        if best is not None:
            points.append(best)

    if len(points) < target_count:
        logger.warning(
            "Random grid produced %d of %d requested points; rejection budget exhausted",
            len(points), target_count,
        )
    else:
        logger.debug("Random grid produced %d points", len(points))
    return _as_points(points)
