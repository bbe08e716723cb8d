"""
Geometry primitives: distances, ray-segment intersection, point containment
and polygon measures.
"""

from typing import Optional
import math
import numpy as np
from numpy.typing import NDArray, ArrayLike

EPSILON = 1e-6

# Fixed direction for the parity test. Deliberately not normalized.
PARITY_DIRECTION = np.array([1.0, 1.0], dtype=np.float64)


class ValidationError(ValueError):
    """Raised when an input violates a structural contract."""

    pass


# =============================================================================
# Input normalization
# =============================================================================

def as_point(point: ArrayLike, name: str = "point") -> NDArray[np.float64]:
    """
    Convert an (x, y) pair to a float64 array of shape (2,).

    Raises:
        ValidationError: If the input is not a finite 2-vector
    """
    arr = np.asarray(point, dtype=np.float64)
    if arr.shape != (2,):
        raise ValidationError(f"{name} must have shape (2,), got {arr.shape}")
    if not np.all(np.isfinite(arr)):
        raise ValidationError(f"{name} must be finite, got {arr.tolist()}")
    return arr


def as_polygon(vertices: ArrayLike, name: str = "vertices") -> NDArray[np.float64]:
    """
    Convert a vertex sequence to a float64 array of shape (N, 2).

    An empty sequence is accepted and returned with shape (0, 2).
    """
    arr = np.asarray(vertices, dtype=np.float64)
    if arr.size == 0:
        return arr.reshape(0, 2)
    if arr.ndim != 2 or arr.shape[1] != 2:
        raise ValidationError(f"{name} must have shape (N, 2), got {arr.shape}")
    if not np.all(np.isfinite(arr)):
        raise ValidationError(f"{name} must contain only finite coordinates")
    return arr


def as_segments(segments: ArrayLike, name: str = "segments") -> NDArray[np.float64]:
    """
    Convert a segment collection to a float64 array of shape (M, 2, 2).

    Each entry is [[x1, y1], [x2, y2]]. A flat (M, 4) layout is accepted too.
    """
    arr = np.asarray(segments, dtype=np.float64)
    if arr.size == 0:
        return arr.reshape(0, 2, 2)
    if arr.ndim == 2 and arr.shape[1] == 4:
        arr = arr.reshape(-1, 2, 2)
    if arr.ndim != 3 or arr.shape[1:] != (2, 2):
        raise ValidationError(f"{name} must have shape (M, 2, 2), got {arr.shape}")
    if not np.all(np.isfinite(arr)):
        raise ValidationError(f"{name} must contain only finite coordinates")
    return arr


# =============================================================================
# Distances
# =============================================================================

def distance(p: ArrayLike, q: ArrayLike) -> float:
    """Euclidean distance between two points."""
    p = np.asarray(p, dtype=np.float64)
    q = np.asarray(q, dtype=np.float64)
    return math.hypot(float(q[0] - p[0]), float(q[1] - p[1]))


def distance_to_segment(p: ArrayLike, segment: ArrayLike) -> float:
    """
    Distance from a point to the closest point of a finite segment.

    Parameters:
        p: Query point (2,)
        segment: Segment endpoints (2, 2)

    Returns:
        Distance to the segment; a zero-length segment is treated as a point
    """
    p = np.asarray(p, dtype=np.float64)
    seg = np.asarray(segment, dtype=np.float64)
    x1, y1 = float(seg[0, 0]), float(seg[0, 1])
    dx = float(seg[1, 0]) - x1
    dy = float(seg[1, 1]) - y1
    length_sq = dx * dx + dy * dy

    if length_sq == 0.0:
        return math.hypot(float(p[0]) - x1, float(p[1]) - y1)

    t = ((float(p[0]) - x1) * dx + (float(p[1]) - y1) * dy) / length_sq
    t = max(0.0, min(1.0, t))
    return math.hypot(float(p[0]) - (x1 + t * dx), float(p[1]) - (y1 + t * dy))


# =============================================================================
# Ray intersection
# =============================================================================

def intersect_ray_segment(
    origin: ArrayLike,
    direction: ArrayLike,
    segment: ArrayLike,
) -> Optional[NDArray[np.float64]]:
    """
    Intersect a ray with a finite segment.

    The ray is origin + t * direction. The direction does not need to be a
    unit vector; t is then measured in multiples of its length.

    Parameters:
        origin: Ray origin (2,)
        direction: Ray direction (2,)
        segment: Segment endpoints (2, 2)

    Returns:
        Intersection point (2,), or None when the ray is parallel to the
        segment (|det| < EPSILON), the hit is not strictly ahead of the origin
        (t <= EPSILON), or it misses the segment (u outside
        [-EPSILON, 1 + EPSILON])
    """
    ox, oy = float(origin[0]), float(origin[1])
    dx, dy = float(direction[0]), float(direction[1])
    seg = np.asarray(segment, dtype=np.float64)
    x1, y1 = float(seg[0, 0]), float(seg[0, 1])
    vx = float(seg[1, 0]) - x1
    vy = float(seg[1, 1]) - y1

    det = dx * vy - dy * vx
    if abs(det) < EPSILON:
        return None

    t = ((x1 - ox) * vy - (y1 - oy) * vx) / det
    u = ((x1 - ox) * dy - (y1 - oy) * dx) / det
    if t > EPSILON and -EPSILON <= u <= 1.0 + EPSILON:
        return np.array([ox + t * dx, oy + t * dy], dtype=np.float64)
    return None


# =============================================================================
# Containment
# =============================================================================

def point_in_circle(p: ArrayLike, center: ArrayLike, radius: float) -> bool:
    """True if p lies strictly inside the circle."""
    return distance(p, center) < radius


def point_in_polygon(p: ArrayLike, segments: ArrayLike) -> bool:
    """
    Parity test for a closed segment loop.

    Casts a ray from p along PARITY_DIRECTION and counts segment hits with
    intersect_ray_segment; an odd count means inside. A ray passing exactly
    through a shared vertex may be counted on both adjacent segments.

    Parameters:
        p: Query point (2,)
        segments: Loop segments (M, 2, 2), in any order

    Returns:
        True if the point is inside the loop
    """
    crossings = 0
    for segment in np.asarray(segments, dtype=np.float64):
        if intersect_ray_segment(p, PARITY_DIRECTION, segment) is not None:
            crossings += 1
    return crossings % 2 == 1


# =============================================================================
# Polygon measures
# =============================================================================

def polygon_signed_area(vertices: NDArray[np.float64]) -> float:
    """Shoelace area, positive for counter-clockwise vertex order."""
    n = len(vertices)
    if n < 3:
        return 0.0
    total = 0.0
    for i in range(n):
        x0, y0 = vertices[i]
        x1, y1 = vertices[(i + 1) % n]
        total += float(x0 * y1 - x1 * y0)
    return 0.5 * total


def polygon_area(vertices: NDArray[np.float64]) -> float:
    """Unsigned shoelace area; 0 for fewer than 3 vertices."""
    return abs(polygon_signed_area(vertices))


def polygon_perimeter(vertices: NDArray[np.float64]) -> float:
    """Sum of consecutive vertex distances, including the closing edge."""
    n = len(vertices)
    if n < 2:
        return 0.0
    total = 0.0
    for i in range(n):
        x0, y0 = vertices[i]
        x1, y1 = vertices[(i + 1) % n]
        total += math.hypot(float(x1 - x0), float(y1 - y0))
    return total


def polygon_centroid(
    vertices: NDArray[np.float64],
    area: Optional[float] = None,
) -> Optional[NDArray[np.float64]]:
    """
    Area centroid of a simple polygon.

    Parameters:
        vertices: Polygon vertices (N, 2)
        area: Precomputed area (signed or unsigned). Only its zero-ness is
            used; the division uses the signed area so that either winding
            yields the same centroid.

    Returns:
        Centroid (2,), or None if the area is 0 or there are fewer than 3
        vertices
    """
    n = len(vertices)
    if area is None:
        area = polygon_signed_area(vertices)
    if area == 0 or n < 3:
        return None

    sum_cx = 0.0
    sum_cy = 0.0
    cross_total = 0.0
    for i in range(n):
        x0, y0 = vertices[i]
        x1, y1 = vertices[(i + 1) % n]
        cross = float(x0 * y1 - x1 * y0)
        sum_cx += float(x0 + x1) * cross
        sum_cy += float(y0 + y1) * cross
        cross_total += cross

    if cross_total == 0.0:
        return None

    # 6 * signed area == 3 * cross_total
    return np.array([sum_cx / (3.0 * cross_total), sum_cy / (3.0 * cross_total)])
