"""
Tests for the per-viewpoint feature cache.
"""

import pytest
import numpy as np
from numpy.testing import assert_array_equal

from isovist.cache import FeatureCache, quantize_viewpoint
from isovist.features import FeatureKey, SEQUENCE_KEY, compute_features
from isovist.geometry import ValidationError
from isovist.obstacles import CircleObstacle, LineObstacle, obstacle_segments
from isovist.raycast import cast_visibility


MOMENT_KEYS = [
    FeatureKey.RADIAL_MOMENT_MEAN,
    FeatureKey.RADIAL_MOMENT_VARIANCE,
    FeatureKey.RADIAL_MOMENT_SKEWNESS,
]
RADIAL_KEYS = [
    FeatureKey.RADIAL_LENGTH_MIN,
    FeatureKey.RADIAL_LENGTH_MEAN,
    FeatureKey.RADIAL_LENGTH_MAX,
    SEQUENCE_KEY,
]


@pytest.fixture
def scene_polygon():
    segments = obstacle_segments([
        CircleObstacle((300.0, 300.0), 298.0),
        LineObstacle((90, 150), (90, 285)),
        LineObstacle((170, 120), (170, 200)),
        CircleObstacle((220.0, 250.0), 8.0, fill=True),
    ])
    viewpoint = (150.0, 240.0)
    return viewpoint, cast_visibility(viewpoint, segments)


class TestQuantizeViewpoint:
    """Tests for quantize_viewpoint() function."""

    def test_quantize_absorbs_jitter(self):
        assert quantize_viewpoint((1.0000001, 2.0)) == quantize_viewpoint((0.9999999, 2.0))

    def test_quantize_keeps_six_digits(self):
        assert quantize_viewpoint((1.234567, -7.654321)) == (1.234567, -7.654321)
        assert quantize_viewpoint((1.2345674, 0.0)) != quantize_viewpoint((1.2345676, 0.0))

    def test_quantize_folds_negative_zero(self):
        key = quantize_viewpoint((-0.0000001, 0.0))
        assert key == (0.0, 0.0)
        assert str(key[0]) == "0.0"

    def test_quantize_accepts_arrays(self):
        assert quantize_viewpoint(np.array([3.0, 4.0])) == (3.0, 4.0)


class TestFeatureCache:
    """Tests for FeatureCache."""

    def test_cached_features_bit_identical(self, scene_polygon):
        """Cache hits return exactly the values of an uncached computation."""
        viewpoint, polygon = scene_polygon
        keys = MOMENT_KEYS + RADIAL_KEYS
        cache = FeatureCache()

        first = compute_features(viewpoint, polygon, keys, cache=cache)
        second = compute_features(viewpoint, polygon, keys, cache=cache)
        uncached = compute_features(viewpoint, polygon, keys)

        assert cache.hits >= 2
        for key in MOMENT_KEYS + RADIAL_KEYS[:3]:
            assert first[key] == uncached[key]
            assert second[key] == uncached[key]
        assert_array_equal(second[SEQUENCE_KEY], uncached[SEQUENCE_KEY])

    def test_hit_and_miss_counters(self, scene_polygon):
        viewpoint, polygon = scene_polygon
        cache = FeatureCache()
        compute_features(viewpoint, polygon, [FeatureKey.RADIAL_MOMENT_MEAN], cache=cache)
        assert (cache.hits, cache.misses) == (0, 1)
        compute_features(viewpoint, polygon, [FeatureKey.RADIAL_MOMENT_VARIANCE], cache=cache)
        assert (cache.hits, cache.misses) == (1, 1)
        compute_features(viewpoint, polygon, [FeatureKey.RADIAL_LENGTH_MAX], cache=cache)
        assert (cache.hits, cache.misses) == (1, 2)

    def test_moment_keys_share_one_computation(self, scene_polygon):
        """Mean, variance and skewness in one call compute the triple once."""
        viewpoint, polygon = scene_polygon
        cache = FeatureCache()
        compute_features(viewpoint, polygon, MOMENT_KEYS, cache=cache)
        assert (cache.hits, cache.misses) == (0, 1)

    def test_jittered_viewpoint_hits(self, scene_polygon):
        viewpoint, polygon = scene_polygon
        cache = FeatureCache()
        compute_features(viewpoint, polygon, [FeatureKey.RADIAL_LENGTH_MEAN], cache=cache)
        jittered = (viewpoint[0] + 1e-9, viewpoint[1] - 1e-9)
        compute_features(jittered, polygon, [FeatureKey.RADIAL_LENGTH_MEAN], cache=cache)
        assert cache.hits == 1
        assert jittered in cache

    def test_cached_radial_lengths_read_only(self):
        cache = FeatureCache()
        values = cache.radial_lengths((0.0, 0.0), lambda: np.array([1.0, 2.0]))
        with pytest.raises(ValueError):
            values[0] = 5.0

    def test_invalidate_same_version_keeps_entries(self):
        cache = FeatureCache(obstacle_version="v1")
        cache.moments((0.0, 0.0), lambda: (1.0, 2.0, 3.0))
        assert cache.invalidate("v1") is False
        assert len(cache) == 1

    def test_invalidate_new_version_clears(self):
        cache = FeatureCache(obstacle_version="v1")
        cache.moments((0.0, 0.0), lambda: (1.0, 2.0, 3.0))
        assert cache.invalidate("v2") is True
        assert len(cache) == 0
        assert cache.obstacle_version == "v2"
        assert cache.moments((0.0, 0.0), lambda: (4.0, 5.0, 6.0)) == (4.0, 5.0, 6.0)

    def test_clear(self):
        cache = FeatureCache()
        cache.moments((1.0, 1.0), lambda: (1.0, 2.0, 3.0))
        cache.clear()
        assert len(cache) == 0
        assert (cache.hits, cache.misses) == (0, 0)
        assert (1.0, 1.0) not in cache

    def test_lru_eviction(self):
        cache = FeatureCache(maxsize=2)
        cache.moments((0.0, 0.0), lambda: (0.0, 0.0, 0.0))
        cache.moments((1.0, 0.0), lambda: (1.0, 0.0, 0.0))
        cache.moments((0.0, 0.0), lambda: (9.0, 9.0, 9.0))  # refresh
        cache.moments((2.0, 0.0), lambda: (2.0, 0.0, 0.0))
        assert len(cache) == 2
        assert (0.0, 0.0) in cache
        assert (1.0, 0.0) not in cache

    def test_contains_rejects_garbage(self):
        assert "nope" not in FeatureCache()

    @pytest.mark.parametrize("maxsize", [0, -5])
    def test_maxsize_must_be_positive(self, maxsize):
        with pytest.raises(ValidationError, match="maxsize"):
            FeatureCache(maxsize=maxsize)
