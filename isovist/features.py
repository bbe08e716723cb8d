"""
Isovist Feature Extraction
==========================

Scalar and sequence features of a visibility polygon seen from its
viewpoint:
- Shape measures: area, perimeter, compactness, area/perimeter ratio,
  circularity, drift (viewpoint to centroid)
- Radial lengths: per-vertex viewpoint distances, their min/mean/max and
  dispersion (mean minus standard deviation)
- Radial moments: mean, variance and skewness of the boundary distance as
  a function of angle, integrated in closed form over the polygon's
  boundary triangles rather than estimated from the ray samples

Every returned value is finite. Degenerate geometry falls back to 0.
"""

from __future__ import annotations

import logging
import math
from enum import Enum
from typing import Iterable, Optional, Union

import numpy as np
from numpy.typing import ArrayLike, NDArray

from isovist.cache import FeatureCache, MomentTriple
from isovist.geometry import (
    ValidationError,
    as_point,
    as_polygon,
    distance,
    polygon_centroid,
    polygon_perimeter,
    polygon_signed_area,
)

logger = logging.getLogger(__name__)

MOMENT_EPSILON = 1e-10


class FeatureKey(str, Enum):
    """Names of the extractable features."""

    AREA = "area"
    PERIMETER = "perimeter"
    COMPACTNESS = "compactness"
    DRIFT = "drift"
    RADIAL_LENGTH_MIN = "radial_length_min"
    RADIAL_LENGTH_MEAN = "radial_length_mean"
    RADIAL_LENGTH_MAX = "radial_length_max"
    RADIAL_LENGTH_SEQUENCE = "radial_length_sequence"
    RADIAL_MOMENT_MEAN = "radial_moment_mean"
    RADIAL_MOMENT_VARIANCE = "radial_moment_variance"
    RADIAL_MOMENT_SKEWNESS = "radial_moment_skewness"
    OCCLUSIVITY = "occlusivity"
    VISIBLE_PERIMETER = "visible_perimeter"
    AREA_PERIMETER_RATIO = "area_perimeter_ratio"
    CIRCULARITY = "circularity"
    DISPERSION = "dispersion"


SEQUENCE_KEY = FeatureKey.RADIAL_LENGTH_SEQUENCE

FeatureValue = Union[float, NDArray[np.float64]]
FeatureVector = dict[FeatureKey, FeatureValue]


def coerce_keys(keys: Iterable[Union[FeatureKey, str]]) -> list[FeatureKey]:
    """Convert requested keys to FeatureKey members, dropping duplicates.

    Raises:
        ValidationError: If a key is not a known feature
    """
    result: list[FeatureKey] = []
    for key in keys:
        try:
            member = FeatureKey(key)
        except ValueError:
            raise ValidationError(f"Unknown feature key: {key!r}") from None
        if member not in result:
            result.append(member)
    return result


def _finite(value: float, key: FeatureKey) -> float:
    if math.isfinite(value):
        return float(value)
    logger.debug("Non-finite %s value %r replaced by 0", key.value, value)
    return 0.0


# =============================================================================
# Radial lengths
# =============================================================================

def radial_lengths(viewpoint: ArrayLike, vertices: ArrayLike) -> NDArray[np.float64]:
    """Distances from the viewpoint to every polygon vertex, in vertex order."""
    origin = as_point(viewpoint, "viewpoint")
    polygon = as_polygon(vertices)
    if polygon.shape[0] == 0:
        return np.empty(0, dtype=np.float64)
    return np.hypot(polygon[:, 0] - origin[0], polygon[:, 1] - origin[1])


# =============================================================================
# Radial moments
# =============================================================================

def _clamped_angle(cos_value: float) -> float:
    return math.acos(max(-1.0, min(1.0, cos_value)))


def _triangle_terms(
    a: float, b: float, c: float
) -> Optional[tuple[float, float, float, float]]:
    """Angular means of r, r^2 and r^3 over one boundary triangle.

    The triangle is the viewpoint O and two consecutive vertices P and Q,
    with a = |OP|, b = |OQ| and c = |PQ|. gamma is the angle at O, alpha
    the angle at P and beta the angle at Q. Along the edge PQ the boundary
    distance is r(theta) = h / cos(theta - phi) with h = a*b*sin(gamma)/c,
    which integrates in closed form.

    Returns:
        (gamma, A1, A2, A3), where each A is an integral over the triangle
        divided by gamma, or None when the triangle is too degenerate to
        evaluate
    """
    if a == 0.0 or b == 0.0 or c == 0.0:
        return None

    gamma = _clamped_angle((a * a + b * b - c * c) / (2.0 * a * b))
    alpha = _clamped_angle((a * a + c * c - b * b) / (2.0 * a * c))
    beta = _clamped_angle((b * b + c * c - a * a) / (2.0 * b * c))
    if math.isnan(gamma) or math.isnan(alpha) or math.isnan(beta):
        return None

    sin_g = math.sin(gamma)
    sin_a = math.sin(alpha)
    sin_b = math.sin(beta)
    cos_g = math.cos(gamma)
    log_den = a * b * sin_g * sin_g
    if min(gamma, sin_g, sin_a, sin_b, log_den) < MOMENT_EPSILON:
        return None

    log_arg = (c + a - b * cos_g) * (c + b - a * cos_g) / log_den
    if not log_arg > MOMENT_EPSILON:
        return None

    h = a * b * sin_g / c
    cot_a = math.cos(alpha) / sin_a
    cot_b = math.cos(beta) / sin_b
    csc_a = 1.0 / sin_a
    csc_b = 1.0 / sin_b
    sec_tan_arg = (csc_a + cot_a) * (csc_b + cot_b)
    if not sec_tan_arg > MOMENT_EPSILON:
        return None

    a1 = (a * b / c) * (sin_g / gamma) * math.log(log_arg)
    a2 = h * h * (cot_a + cot_b) / gamma
    a3 = 0.5 * h ** 3 * (csc_a * cot_a + csc_b * cot_b + math.log(sec_tan_arg)) / gamma

    if not (math.isfinite(a1) and math.isfinite(a2) and math.isfinite(a3)):
        return None
    return gamma, a1, a2, a3


def radial_moments(viewpoint: ArrayLike, vertices: ArrayLike) -> MomentTriple:
    """
    Mean, variance and skewness of the boundary distance over angle.

    Treats the polygon boundary as a function r(theta) around the viewpoint
    and integrates r, r^2 and r^3 exactly over each boundary triangle. Each
    triangle contributes its angular mean weighted by its angle; the sums
    are normalized by 2*pi into raw moments a1, a2, a3 and converted into
    central moments:

        m1 = a1
        m2 = a2 - a1^2
        m3 = a3 - 3*a1*a2 + 2*a1^3

    Degenerate triangles are skipped. If every triangle is skipped, or the
    polygon has fewer than 3 vertices, all three moments are 0.

    Parameters:
        viewpoint: Viewer position (2,)
        vertices: Polygon vertices (N, 2), in angular order around the viewpoint

    Returns:
        Tuple (m1, m2, m3)
    """
    origin = as_point(viewpoint, "viewpoint")
    polygon = as_polygon(vertices)
    n = polygon.shape[0]
    if n < 3:
        return 0.0, 0.0, 0.0

    ox, oy = float(origin[0]), float(origin[1])
    s1 = s2 = s3 = 0.0
    used = 0
    for i in range(n):
        px, py = float(polygon[i, 0]), float(polygon[i, 1])
        qx, qy = float(polygon[(i + 1) % n, 0]), float(polygon[(i + 1) % n, 1])
        a = math.hypot(px - ox, py - oy)
        b = math.hypot(qx - ox, qy - oy)
        c = math.hypot(qx - px, qy - py)

        terms = _triangle_terms(a, b, c)
        if terms is None:
            continue
        gamma, t1, t2, t3 = terms
        s1 += gamma * t1
        s2 += gamma * t2
        s3 += gamma * t3
        used += 1

    if used == 0:
        logger.debug("All %d moment triangles skipped, moments fall back to 0", n)
        return 0.0, 0.0, 0.0
    if used < n:
        logger.debug("Skipped %d of %d degenerate moment triangles", n - used, n)

    a1 = s1 / (2.0 * math.pi)
    a2 = s2 / (2.0 * math.pi)
    a3 = s3 / (2.0 * math.pi)

    m1 = a1
    m2 = a2 - a1 * a1
    m3 = a3 - 3.0 * a1 * a2 + 2.0 * a1 ** 3
    if not (math.isfinite(m1) and math.isfinite(m2) and math.isfinite(m3)):
        return 0.0, 0.0, 0.0
    return m1, m2, m3


# =============================================================================
# Feature vector
# =============================================================================

class _FeatureContext:
    """Lazily computed intermediate values shared between features."""

    def __init__(
        self,
        viewpoint: NDArray[np.float64],
        polygon: NDArray[np.float64],
        cache: Optional[FeatureCache],
    ) -> None:
        self.viewpoint = viewpoint
        self.polygon = polygon
        self.cache = cache
        self._signed_area: Optional[float] = None
        self._perimeter: Optional[float] = None
        self._radial: Optional[NDArray[np.float64]] = None
        self._moments: Optional[MomentTriple] = None

    @property
    def signed_area(self) -> float:
        if self._signed_area is None:
            self._signed_area = polygon_signed_area(self.polygon)
        return self._signed_area

    @property
    def area(self) -> float:
        return abs(self.signed_area)

    @property
    def perimeter(self) -> float:
        if self._perimeter is None:
            self._perimeter = polygon_perimeter(self.polygon)
        return self._perimeter

    @property
    def radial(self) -> NDArray[np.float64]:
        if self._radial is None:
            compute = lambda: radial_lengths(self.viewpoint, self.polygon)  # noqa: E731
            if self.cache is None:
                self._radial = compute()
            else:
                self._radial = self.cache.radial_lengths(self.viewpoint, compute)
        return self._radial

    @property
    def moments(self) -> MomentTriple:
        if self._moments is None:
            compute = lambda: radial_moments(self.viewpoint, self.polygon)  # noqa: E731
            if self.cache is None:
                self._moments = compute()
            else:
                self._moments = self.cache.moments(self.viewpoint, compute)
        return self._moments

    def radial_mean(self) -> float:
        radial = self.radial
        return float(np.mean(radial)) if radial.size else 0.0


def _compactness(ctx: _FeatureContext) -> float:
    perimeter = ctx.perimeter
    if perimeter == 0:
        return 0.0
    return 4.0 * math.pi * ctx.area / (perimeter * perimeter)


def _drift(ctx: _FeatureContext) -> float:
    centroid = polygon_centroid(ctx.polygon, ctx.signed_area)
    if centroid is None:
        return 0.0
    return distance(ctx.viewpoint, centroid)


def _area_perimeter_ratio(ctx: _FeatureContext) -> float:
    perimeter = ctx.perimeter
    return ctx.area / perimeter if perimeter != 0 else 0.0


def _circularity(ctx: _FeatureContext) -> float:
    area = ctx.area
    if area == 0:
        return 0.0
    mean = ctx.radial_mean()
    return math.pi * mean * mean / area


def _dispersion(ctx: _FeatureContext) -> float:
    radial = ctx.radial
    if radial.size < 2:
        return 0.0
    return float(np.mean(radial) - np.std(radial))


def _unimplemented(ctx: _FeatureContext) -> float:
    # Occlusivity and visible perimeter: no formula yet, always 0
    return 0.0


_SCALAR_FEATURES = {
    FeatureKey.AREA: lambda ctx: ctx.area,
    FeatureKey.PERIMETER: lambda ctx: ctx.perimeter,
    FeatureKey.COMPACTNESS: _compactness,
    FeatureKey.DRIFT: _drift,
    FeatureKey.RADIAL_LENGTH_MIN: lambda ctx: float(np.min(ctx.radial)) if ctx.radial.size else 0.0,
    FeatureKey.RADIAL_LENGTH_MEAN: lambda ctx: ctx.radial_mean(),
    FeatureKey.RADIAL_LENGTH_MAX: lambda ctx: float(np.max(ctx.radial)) if ctx.radial.size else 0.0,
    FeatureKey.RADIAL_MOMENT_MEAN: lambda ctx: ctx.moments[0],
    FeatureKey.RADIAL_MOMENT_VARIANCE: lambda ctx: ctx.moments[1],
    FeatureKey.RADIAL_MOMENT_SKEWNESS: lambda ctx: ctx.moments[2],
    FeatureKey.OCCLUSIVITY: _unimplemented,
    FeatureKey.VISIBLE_PERIMETER: _unimplemented,
    FeatureKey.AREA_PERIMETER_RATIO: _area_perimeter_ratio,
    FeatureKey.CIRCULARITY: _circularity,
    FeatureKey.DISPERSION: _dispersion,
}


def compute_features(
    viewpoint: ArrayLike,
    vertices: ArrayLike,
    keys: Iterable[Union[FeatureKey, str]],
    cache: Optional[FeatureCache] = None,
) -> FeatureVector:
    """
    Extract the requested features of a visibility polygon.

    Parameters:
        viewpoint: Viewer position (2,)
        vertices: Visibility polygon vertices (N, 2); N is 0 or >= 3
        keys: Features to compute; strings are accepted
        cache: Optional per-viewpoint cache for radial lengths and moments

    Returns:
        Dict restricted to the requested keys. Scalar features map to
        floats; radial_length_sequence maps to a float array.

    Raises:
        ValidationError: If an input has an invalid shape or a key is unknown
    """
    requested = coerce_keys(keys)
    ctx = _FeatureContext(as_point(viewpoint, "viewpoint"), as_polygon(vertices), cache)

    result: FeatureVector = {}
    for key in requested:
        if key is SEQUENCE_KEY:
            result[key] = np.array(ctx.radial, dtype=np.float64, copy=True)
        else:
            result[key] = _finite(_SCALAR_FEATURES[key](ctx), key)
    return result
