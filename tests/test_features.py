"""
Tests for isovist feature extraction.

- Shape features: area, perimeter, compactness, drift, ratios
- Radial lengths and their order statistics
- Closed-form radial moments, checked against exact values and against
  dense ray sampling
"""

import math

import pytest
import numpy as np
from numpy.testing import assert_allclose, assert_array_equal

from isovist.features import (
    FeatureKey,
    SEQUENCE_KEY,
    ValidationError,
    coerce_keys,
    compute_features,
    radial_lengths,
    radial_moments,
)
from isovist.obstacles import CircleObstacle, LineObstacle, PolygonObstacle, obstacle_segments
from isovist.raycast import cast_visibility


UNIT_SQUARE = np.array([[0.0, 0.0], [1.0, 0.0], [1.0, 1.0], [0.0, 1.0]])
ALL_KEYS = list(FeatureKey)

# Convex pentagon around the origin
PENTAGON = np.array([[4.0, 0.0], [2.0, 3.0], [-3.0, 2.0], [-2.0, -3.0], [3.0, -2.0]])


def _regular_polygon(n: int, radius: float, center=(0.0, 0.0)) -> np.ndarray:
    angles = 2 * np.pi * np.arange(n) / n
    return np.column_stack([
        center[0] + radius * np.cos(angles),
        center[1] + radius * np.sin(angles),
    ])


def _square_moments():
    """Exact radial moments of the square [-1, 1]^2 seen from its center."""
    a1 = (4.0 / math.pi) * math.log(1.0 + math.sqrt(2.0))
    a2 = 4.0 / math.pi
    a3 = (2.0 / math.pi) * (math.sqrt(2.0) + math.log(1.0 + math.sqrt(2.0)))
    return a1, a2 - a1 * a1, a3 - 3.0 * a1 * a2 + 2.0 * a1 ** 3


# =============================================================================
# Shape features
# =============================================================================

class TestShapeFeatures:
    """Tests for area, perimeter, compactness, drift and ratios."""

    def test_unit_square_area_and_perimeter(self):
        features = compute_features((0.5, 0.5), UNIT_SQUARE, ["area", "perimeter"])
        assert features[FeatureKey.AREA] == pytest.approx(1.0)
        assert features[FeatureKey.PERIMETER] == pytest.approx(4.0)

    def test_unit_square_compactness(self):
        features = compute_features((0.5, 0.5), UNIT_SQUARE, [FeatureKey.COMPACTNESS])
        assert features[FeatureKey.COMPACTNESS] == pytest.approx(math.pi / 4)

    def test_unit_square_ratios(self):
        features = compute_features(
            (0.5, 0.5), UNIT_SQUARE,
            [FeatureKey.AREA_PERIMETER_RATIO, FeatureKey.CIRCULARITY],
        )
        assert features[FeatureKey.AREA_PERIMETER_RATIO] == pytest.approx(0.25)
        assert features[FeatureKey.CIRCULARITY] == pytest.approx(math.pi / 2)

    def test_regular_polygon_compactness_approaches_one(self):
        """Compactness grows toward 1 with the vertex count and never exceeds it."""
        values = []
        for n in (6, 24, 96, 360):
            polygon = _regular_polygon(n, 50.0)
            features = compute_features((0.0, 0.0), polygon, [FeatureKey.COMPACTNESS])
            values.append(features[FeatureKey.COMPACTNESS])
        assert values == sorted(values)
        assert all(v <= 1.0 + 1e-12 for v in values)
        assert values[-1] == pytest.approx(1.0, abs=1e-4)

    def test_regular_polygon_drift_zero(self):
        polygon = _regular_polygon(64, 30.0, center=(200.0, 100.0))
        features = compute_features((200.0, 100.0), polygon, [FeatureKey.DRIFT])
        assert features[FeatureKey.DRIFT] == pytest.approx(0.0, abs=1e-9)

    def test_drift_off_center(self):
        """Drift is the distance from the viewpoint to the centroid."""
        features = compute_features((0.0, 0.0), UNIT_SQUARE, [FeatureKey.DRIFT])
        assert features[FeatureKey.DRIFT] == pytest.approx(math.sqrt(0.5))

    def test_clockwise_polygon_same_features(self):
        keys = [FeatureKey.AREA, FeatureKey.DRIFT, FeatureKey.COMPACTNESS]
        ccw = compute_features((0.2, 0.3), UNIT_SQUARE, keys)
        cw = compute_features((0.2, 0.3), UNIT_SQUARE[::-1], keys)
        for key in keys:
            assert cw[key] == pytest.approx(ccw[key])


# =============================================================================
# Radial lengths
# =============================================================================

class TestRadialLengths:
    """Tests for radial length features."""

    def test_radial_lengths_in_vertex_order(self):
        lengths = radial_lengths((0.0, 0.0), [[3.0, 4.0], [0.0, 2.0], [-1.0, 0.0]])
        assert_allclose(lengths, [5.0, 2.0, 1.0])

    def test_radial_statistics(self):
        polygon = np.array([[3.0, 4.0], [0.0, 2.0], [-1.0, 0.0], [0.0, -4.0]])
        features = compute_features((0.0, 0.0), polygon, [
            FeatureKey.RADIAL_LENGTH_MIN,
            FeatureKey.RADIAL_LENGTH_MEAN,
            FeatureKey.RADIAL_LENGTH_MAX,
        ])
        assert features[FeatureKey.RADIAL_LENGTH_MIN] == pytest.approx(1.0)
        assert features[FeatureKey.RADIAL_LENGTH_MEAN] == pytest.approx(3.0)
        assert features[FeatureKey.RADIAL_LENGTH_MAX] == pytest.approx(5.0)

    def test_dispersion(self):
        """Mean minus population standard deviation of the radial lengths."""
        polygon = np.array([[3.0, 4.0], [0.0, 2.0], [-1.0, 0.0], [0.0, -4.0]])
        features = compute_features((0.0, 0.0), polygon, ["dispersion"])
        assert features[FeatureKey.DISPERSION] == pytest.approx(3.0 - math.sqrt(2.5))

    def test_dispersion_can_be_negative(self):
        """Spread above the mean gives a negative value, kept as is."""
        polygon = np.array([[0.1, 0.0], [0.0, 0.1], [-0.1, 0.0], [0.0, -100.0]])
        features = compute_features((0.0, 0.0), polygon, [FeatureKey.DISPERSION])
        assert features[FeatureKey.DISPERSION] < 0.0

    def test_dispersion_empty_polygon(self):
        features = compute_features((0.0, 0.0), np.empty((0, 2)), [FeatureKey.DISPERSION])
        assert features[FeatureKey.DISPERSION] == 0.0

    def test_radial_sequence_is_array_copy(self):
        features = compute_features((0.5, 0.5), UNIT_SQUARE, [SEQUENCE_KEY])
        sequence = features[SEQUENCE_KEY]
        assert isinstance(sequence, np.ndarray)
        assert_allclose(sequence, [math.sqrt(0.5)] * 4)
        sequence[0] = -1.0
        again = compute_features((0.5, 0.5), UNIT_SQUARE, [SEQUENCE_KEY])
        assert again[SEQUENCE_KEY][0] == pytest.approx(math.sqrt(0.5))


# =============================================================================
# Radial moments
# =============================================================================

class TestRadialMoments:
    """Tests for radial_moments() and the moment features."""

    def test_square_moments_exact(self):
        """The square [-1, 1]^2 has closed-form moments from its center."""
        square = np.array([[1.0, -1.0], [1.0, 1.0], [-1.0, 1.0], [-1.0, -1.0]])
        m1, m2, m3 = radial_moments((0.0, 0.0), square)
        expected = _square_moments()
        assert m1 == pytest.approx(expected[0], rel=1e-12)
        assert m2 == pytest.approx(expected[1], rel=1e-9)
        assert m3 == pytest.approx(expected[2], rel=1e-6, abs=1e-12)

    def test_regular_polygon_moments(self):
        """A fine regular polygon looks like a circle: mean ~ R, variance ~ 0."""
        polygon = _regular_polygon(360, 100.0)
        m1, m2, m3 = radial_moments((0.0, 0.0), polygon)
        assert m1 == pytest.approx(100.0, rel=1e-4)
        assert abs(m2) < 1e-2
        assert abs(m3) < 1e-2

    def test_moments_match_dense_sampling(self):
        """Closed-form moments agree with moments of densely cast rays."""
        segments = PolygonObstacle.from_vertices(PENTAGON).segments
        samples = np.hypot(*cast_visibility((0.0, 0.0), segments, ray_count=7200).T)
        m1, m2, m3 = radial_moments((0.0, 0.0), PENTAGON)

        assert m1 == pytest.approx(np.mean(samples), rel=1e-4)
        assert m2 == pytest.approx(np.var(samples), rel=1e-3)
        assert m3 == pytest.approx(np.mean((samples - samples.mean()) ** 3), rel=1e-2, abs=1e-3)

    def test_moments_resolution_independent(self):
        """Moments of a cast polygon do not drift with the ray count."""
        segments = PolygonObstacle.from_vertices(PENTAGON).segments
        exact = radial_moments((0.0, 0.0), PENTAGON)
        for rays in (360, 1440):
            polygon = cast_visibility((0.0, 0.0), segments, ray_count=rays)
            approx = radial_moments((0.0, 0.0), polygon)
            assert approx[0] == pytest.approx(exact[0], rel=1e-3)
            assert approx[1] == pytest.approx(exact[1], rel=2e-2)

    def test_moment_features_match_function(self):
        features = compute_features((0.0, 0.0), PENTAGON, [
            FeatureKey.RADIAL_MOMENT_MEAN,
            FeatureKey.RADIAL_MOMENT_VARIANCE,
            FeatureKey.RADIAL_MOMENT_SKEWNESS,
        ])
        m1, m2, m3 = radial_moments((0.0, 0.0), PENTAGON)
        assert features[FeatureKey.RADIAL_MOMENT_MEAN] == m1
        assert features[FeatureKey.RADIAL_MOMENT_VARIANCE] == m2
        assert features[FeatureKey.RADIAL_MOMENT_SKEWNESS] == m3

    def test_moments_too_few_vertices(self):
        assert radial_moments((0.0, 0.0), UNIT_SQUARE[:2]) == (0.0, 0.0, 0.0)
        assert radial_moments((0.0, 0.0), np.empty((0, 2))) == (0.0, 0.0, 0.0)

    def test_moments_all_triangles_degenerate(self):
        """A viewpoint collinear with every vertex leaves no usable triangle."""
        polygon = np.array([[0.0, 0.0], [1.0, 0.0], [2.0, 0.0]])
        assert radial_moments((-1.0, 0.0), polygon) == (0.0, 0.0, 0.0)

    def test_moments_skip_zero_side(self):
        """A vertex on the viewpoint is skipped, the rest still contributes."""
        polygon = np.array([[0.0, 0.0], [4.0, 0.0], [4.0, 4.0], [0.0, 4.0]])
        m1, m2, m3 = radial_moments((0.0, 0.0), polygon)
        assert all(math.isfinite(v) for v in (m1, m2, m3))
        assert m1 > 0.0


# =============================================================================
# Feature vector contract
# =============================================================================

class TestComputeFeatures:
    """Tests for the compute_features() contract."""

    def test_restricted_to_requested_keys(self):
        features = compute_features((0.5, 0.5), UNIT_SQUARE, ["area", FeatureKey.DRIFT])
        assert set(features) == {FeatureKey.AREA, FeatureKey.DRIFT}

    def test_string_keys_become_enum(self):
        features = compute_features((0.5, 0.5), UNIT_SQUARE, ["radial_moment_mean"])
        assert list(features) == [FeatureKey.RADIAL_MOMENT_MEAN]

    def test_unknown_key_rejected(self):
        with pytest.raises(ValidationError, match="Unknown feature key"):
            compute_features((0.5, 0.5), UNIT_SQUARE, ["isovist_magic"])

    def test_coerce_keys_drops_duplicates(self):
        assert coerce_keys(["area", FeatureKey.AREA, "drift"]) == [
            FeatureKey.AREA, FeatureKey.DRIFT,
        ]

    def test_stub_features_are_zero(self):
        features = compute_features(
            (0.5, 0.5), UNIT_SQUARE, [FeatureKey.OCCLUSIVITY, FeatureKey.VISIBLE_PERIMETER],
        )
        assert features[FeatureKey.OCCLUSIVITY] == 0.0
        assert features[FeatureKey.VISIBLE_PERIMETER] == 0.0

    def test_empty_polygon_falls_back_to_zero(self):
        features = compute_features((1.0, 1.0), np.empty((0, 2)), ALL_KEYS)
        for key in ALL_KEYS:
            if key is SEQUENCE_KEY:
                assert features[key].shape == (0,)
            else:
                assert features[key] == 0.0

    def test_all_features_finite_on_degenerate_scene(self):
        """A viewpoint pinned against walls still yields finite values."""
        obstacles = [
            LineObstacle((-10, 0), (10, 0)),
            LineObstacle((0, -10), (0, 10)),
            CircleObstacle((0.0, 0.0), 20.0),
        ]
        polygon = cast_visibility((0.0, 0.0), obstacle_segments(obstacles), max_range=50.0)
        features = compute_features((0.0, 0.0), polygon, ALL_KEYS)
        for key, value in features.items():
            assert np.all(np.isfinite(value)), key

    def test_bad_polygon_shape_rejected(self):
        with pytest.raises(ValidationError):
            compute_features((0.0, 0.0), np.zeros((4, 3)), ["area"])

    def test_sequence_equals_radial_lengths(self):
        polygon = _regular_polygon(12, 5.0, center=(1.0, 2.0))
        features = compute_features((0.0, 0.0), polygon, [SEQUENCE_KEY])
        assert_array_equal(features[SEQUENCE_KEY], radial_lengths((0.0, 0.0), polygon))
