"""
Obstacle and Map Data Structures
================================

Scene inputs consumed by the ray caster and the samplers:
- LineObstacle: a single wall segment
- PolygonObstacle: a closed segment loop, optionally filled
- CircleObstacle: a circle or arc discretized into chords, optionally filled
- MapConfig: navigable disc, scene box, grid cell size and wall thickness

Obstacles are immutable once built: the dataclasses are frozen and their
segment arrays are read-only.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Iterable, Union

import numpy as np
from numpy.typing import ArrayLike, NDArray

from isovist.geometry import ValidationError, as_point, as_segments

DEFAULT_CIRCLE_SEGMENTS = 48
MIN_CIRCLE_SEGMENTS = 48
MAX_CIRCLE_SEGMENTS = 96


def _freeze(arr: NDArray[np.float64]) -> NDArray[np.float64]:
    arr = np.array(arr, dtype=np.float64, copy=True)
    arr.flags.writeable = False
    return arr


def circle_segments(
    center: ArrayLike,
    radius: float,
    start_angle: float = 0.0,
    end_angle: float = 2.0 * math.pi,
    segment_count: int = DEFAULT_CIRCLE_SEGMENTS,
) -> NDArray[np.float64]:
    """Discretize a circle (or arc) into chords.

    The arc is split into segment_count equal angular steps from start_angle
    to end_angle; end_angle may be smaller than start_angle to sweep
    clockwise.

    Args:
        center: Circle center (x, y)
        radius: Circle radius
        start_angle: Arc start in radians
        end_angle: Arc end in radians
        segment_count: Number of chords

    Returns:
        Chord segments of shape (segment_count, 2, 2)
    """
    cx, cy = as_point(center, "center")
    step = (end_angle - start_angle) / segment_count
    a1 = start_angle + np.arange(segment_count, dtype=np.float64) * step
    a2 = a1 + step

    segments = np.empty((segment_count, 2, 2), dtype=np.float64)
    segments[:, 0, 0] = cx + np.cos(a1) * radius
    segments[:, 0, 1] = cy + np.sin(a1) * radius
    segments[:, 1, 0] = cx + np.cos(a2) * radius
    segments[:, 1, 1] = cy + np.sin(a2) * radius
    return segments


@dataclass(frozen=True)
class LineObstacle:
    """A single unfilled wall segment.

    Attributes:
        start: First endpoint (x, y)
        end: Second endpoint (x, y)
    """

    start: tuple[float, float]
    end: tuple[float, float]
    segments: NDArray[np.float64] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        start = as_point(self.start, "start")
        end = as_point(self.end, "end")
        object.__setattr__(self, "start", (float(start[0]), float(start[1])))
        object.__setattr__(self, "end", (float(end[0]), float(end[1])))
        object.__setattr__(self, "segments", _freeze(np.array([[start, end]])))

    @property
    def filled(self) -> bool:
        return False


@dataclass(frozen=True)
class PolygonObstacle:
    """A closed loop of segments.

    The loop is given as explicit segments, so edges may be listed in any
    order or direction as long as together they close the outline.

    Attributes:
        segments: Loop segments (M, 2, 2), M >= 3
        fill: Whether the interior is solid (rejects sample points)

    Raises:
        ValidationError: If the loop has fewer than 3 segments
    """

    segments: NDArray[np.float64]
    fill: bool = False

    def __post_init__(self) -> None:
        segments = as_segments(self.segments)
        if segments.shape[0] < 3:
            raise ValidationError(
                f"Polygon obstacle needs at least 3 segments, got {segments.shape[0]}"
            )
        object.__setattr__(self, "segments", _freeze(segments))

    @classmethod
    def from_vertices(cls, vertices: ArrayLike, fill: bool = False) -> PolygonObstacle:
        """Build a closed loop from an ordered vertex list."""
        verts = np.asarray(vertices, dtype=np.float64)
        if verts.ndim != 2 or verts.shape[1] != 2:
            raise ValidationError(f"vertices must have shape (N, 2), got {verts.shape}")
        segments = np.stack([verts, np.roll(verts, -1, axis=0)], axis=1)
        return cls(segments=segments, fill=fill)

    @property
    def filled(self) -> bool:
        return self.fill

    def __hash__(self) -> int:
        return hash((self.segments.tobytes(), self.fill))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PolygonObstacle):
            return NotImplemented
        return self.fill == other.fill and np.array_equal(self.segments, other.segments)


@dataclass(frozen=True)
class CircleObstacle:
    """A circle or circular arc, represented by its chord discretization.

    Containment checks for filled circles use the analytic center and
    radius; ray casting and wall-distance checks use the chords.

    Attributes:
        center: Circle center (x, y)
        radius: Circle radius
        start_angle: Arc start in radians
        end_angle: Arc end in radians
        segment_count: Number of chords, between 48 and 96
        fill: Whether the interior is solid

    Raises:
        ValidationError: If radius is not positive or segment_count is out of range
    """

    center: tuple[float, float]
    radius: float
    start_angle: float = 0.0
    end_angle: float = 2.0 * math.pi
    segment_count: int = DEFAULT_CIRCLE_SEGMENTS
    fill: bool = False
    segments: NDArray[np.float64] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        center = as_point(self.center, "center")
        if not self.radius > 0:
            raise ValidationError(f"radius must be positive, got {self.radius}")
        if not MIN_CIRCLE_SEGMENTS <= self.segment_count <= MAX_CIRCLE_SEGMENTS:
            raise ValidationError(
                f"segment_count must be in [{MIN_CIRCLE_SEGMENTS}, {MAX_CIRCLE_SEGMENTS}], "
                f"got {self.segment_count}"
            )
        object.__setattr__(self, "center", (float(center[0]), float(center[1])))
        segments = circle_segments(
            center, self.radius, self.start_angle, self.end_angle, self.segment_count
        )
        object.__setattr__(self, "segments", _freeze(segments))

    @property
    def filled(self) -> bool:
        return self.fill


Obstacle = Union[LineObstacle, PolygonObstacle, CircleObstacle]


def obstacle_segments(obstacles: Iterable[Obstacle]) -> NDArray[np.float64]:
    """Flatten obstacles into one (M, 2, 2) segment array."""
    parts = [o.segments for o in obstacles]
    if not parts:
        return np.empty((0, 2, 2), dtype=np.float64)
    return np.concatenate(parts, axis=0)


@dataclass(frozen=True)
class MapConfig:
    """Navigable region and sampling parameters for a scene.

    Defaults describe the reference 600x600 scene with a navigable disc
    filling it.

    Attributes:
        center_x: Navigable disc center, x
        center_y: Navigable disc center, y
        radius: Navigable disc radius
        width: Scene box width; the box spans [0, width]
        height: Scene box height; the box spans [0, height]
        cell_size: Spacing of the orthogonal sampling grid
        line_width: Minimum clearance kept from unfilled obstacle segments

    Raises:
        ValidationError: If a size is not positive or line_width is negative
    """

    center_x: float = 300.0
    center_y: float = 300.0
    radius: float = 300.0
    width: float = 600.0
    height: float = 600.0
    cell_size: float = 30.0
    line_width: float = 3.0

    def __post_init__(self) -> None:
        for name in ("radius", "width", "height", "cell_size"):
            value = getattr(self, name)
            if not (math.isfinite(value) and value > 0):
                raise ValidationError(f"{name} must be positive, got {value}")
        if not (math.isfinite(self.line_width) and self.line_width >= 0):
            raise ValidationError(f"line_width must be non-negative, got {self.line_width}")
        as_point((self.center_x, self.center_y), "center")

    @property
    def center(self) -> NDArray[np.float64]:
        """Return the disc center as a numpy array."""
        return np.array([self.center_x, self.center_y], dtype=np.float64)
