"""
Engine facade tying the pipeline together: obstacles and a viewpoint go
through the ray caster and the feature extractor; feature vectors go
through the distance engine; the samplers feed viewpoints back in.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Literal, Optional, Sequence, Union

import numpy as np
from numpy.typing import ArrayLike, NDArray

from isovist.cache import DEFAULT_CACHE_SIZE, FeatureCache
from isovist.debug import format_features, format_point
from isovist.distances import Metric, feature_distance, rank_by_distance
from isovist.features import FeatureKey, FeatureVector, coerce_keys, compute_features
from isovist.geometry import ValidationError, as_point
from isovist.obstacles import MapConfig, Obstacle, obstacle_segments
from isovist.raycast import DEFAULT_MAX_RANGE, DEFAULT_RAY_COUNT, cast_visibility
from isovist.sampling import orthogonal_grid, random_grid

logger = logging.getLogger(__name__)

SamplingStrategy = Literal["orthogonal", "random"]


@dataclass(frozen=True, eq=False)
class Fingerprint:
    """A viewpoint paired with the feature vector observed there.

    Attributes:
        position: Viewpoint (x, y)
        features: Partial feature vector
    """

    position: tuple[float, float]
    features: FeatureVector


class IsovistEngine:
    """Visibility, features, comparison and sampling over one obstacle set.

    The obstacle set is fixed for the engine's lifetime unless replaced
    through replace_obstacles(), which also invalidates the owned cache.

    Attributes:
        obstacles: Scene obstacles (tuple)
        map_config: Navigable region and grid parameters
        ray_count: Rays cast per visibility polygon
        max_range: Maximum ray length
        cache: Per-viewpoint cache of radial lengths and moments
        obstacle_version: Incremented whenever the obstacles are replaced
    """

    def __init__(
        self,
        obstacles: Iterable[Obstacle],
        map_config: Optional[MapConfig] = None,
        ray_count: int = DEFAULT_RAY_COUNT,
        max_range: float = DEFAULT_MAX_RANGE,
        cache_size: int = DEFAULT_CACHE_SIZE,
    ) -> None:
        self.obstacles: tuple[Obstacle, ...] = tuple(obstacles)
        self.map_config = map_config if map_config is not None else MapConfig()
        self.ray_count = ray_count
        self.max_range = max_range
        self.obstacle_version = 0
        self.cache = FeatureCache(maxsize=cache_size, obstacle_version=self.obstacle_version)
        self._segments = obstacle_segments(self.obstacles)

    def replace_obstacles(self, obstacles: Iterable[Obstacle]) -> None:
        """Swap the obstacle set and drop every cached value."""
        self.obstacles = tuple(obstacles)
        self._segments = obstacle_segments(self.obstacles)
        self.obstacle_version += 1
        self.cache.invalidate(self.obstacle_version)

    def visibility(self, viewpoint: ArrayLike) -> NDArray[np.float64]:
        """Visibility polygon from a viewpoint, shape (ray_count, 2)."""
        return cast_visibility(viewpoint, self._segments, self.ray_count, self.max_range)

    def features(
        self,
        viewpoint: ArrayLike,
        keys: Iterable[Union[FeatureKey, str]],
    ) -> FeatureVector:
        """Cast from the viewpoint and extract the requested features."""
        polygon = self.visibility(viewpoint)
        result = compute_features(viewpoint, polygon, keys, cache=self.cache)
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("Features at %s: %s", format_point(viewpoint), format_features(result))
        return result

    def fingerprint(
        self,
        viewpoint: ArrayLike,
        keys: Iterable[Union[FeatureKey, str]],
    ) -> Fingerprint:
        """Viewpoint and its features as one record."""
        point = as_point(viewpoint, "viewpoint")
        return Fingerprint(
            position=(float(point[0]), float(point[1])),
            features=self.features(point, keys),
        )

    def sample(
        self,
        strategy: SamplingStrategy = "orthogonal",
        target_count: int = 100,
        rng: Optional[np.random.Generator] = None,
    ) -> NDArray[np.float64]:
        """
        Candidate viewpoints over the navigable region.

        target_count and rng only apply to the random strategy. The random
        strategy may return fewer points than requested.
        """
        if strategy == "orthogonal":
            return orthogonal_grid(self.map_config, self.obstacles)
        if strategy == "random":
            return random_grid(self.map_config, self.obstacles, target_count, rng)
        raise ValidationError(
            f"Unknown sampling strategy {strategy!r}, expected 'orthogonal' or 'random'"
        )

    def fingerprint_samples(
        self,
        keys: Iterable[Union[FeatureKey, str]],
        strategy: SamplingStrategy = "orthogonal",
        target_count: int = 100,
        rng: Optional[np.random.Generator] = None,
    ) -> list[Fingerprint]:
        """Sample viewpoints and fingerprint each of them."""
        requested = coerce_keys(keys)
        points = self.sample(strategy, target_count, rng)
        fingerprints = [self.fingerprint(point, requested) for point in points]
        logger.debug("Fingerprinted %d %s samples", len(fingerprints), strategy)
        return fingerprints

    @staticmethod
    def compare(
        f1: FeatureVector,
        f2: FeatureVector,
        metric: Metric = "euclidean",
        percent: float = 100.0,
    ) -> float:
        """Dissimilarity between two feature vectors."""
        return feature_distance(f1, f2, metric, percent)

    @staticmethod
    def rank(
        query: Union[Fingerprint, FeatureVector],
        fingerprints: Sequence[Fingerprint],
        metric: Metric = "euclidean",
        percent: float = 100.0,
        limit: Optional[int] = None,
    ) -> list[tuple[Fingerprint, float]]:
        """Stored fingerprints ordered by dissimilarity to the query, nearest first."""
        query_features = query.features if isinstance(query, Fingerprint) else query
        ranked = rank_by_distance(
            query_features, [fp.features for fp in fingerprints], metric, percent, limit
        )
        return [(fingerprints[index], dist) for index, dist in ranked]


def compute_fingerprint(
    viewpoint: ArrayLike,
    obstacles: Iterable[Obstacle],
    keys: Iterable[Union[FeatureKey, str]],
    ray_count: int = DEFAULT_RAY_COUNT,
    max_range: float = DEFAULT_MAX_RANGE,
    cache: Optional[FeatureCache] = None,
) -> Fingerprint:
    """
    One-shot fingerprint of a viewpoint without building an engine.

    Parameters:
        viewpoint: Viewer position (2,)
        obstacles: Scene obstacles
        keys: Features to compute
        ray_count: Rays cast for the visibility polygon
        max_range: Maximum ray length
        cache: Optional caller-owned cache; it must belong to this obstacle set

    Returns:
        Fingerprint of the viewpoint
    """
    point = as_point(viewpoint, "viewpoint")
    polygon = cast_visibility(point, obstacle_segments(obstacles), ray_count, max_range)
    return Fingerprint(
        position=(float(point[0]), float(point[1])),
        features=compute_features(point, polygon, keys, cache=cache),
    )
