"""
Isovist Fingerprints
====================

Public API for computing visibility polygons (isovists) from a viewpoint,
extracting geometric feature vectors from them, comparing feature vectors,
and sampling candidate viewpoints over a navigable region.
"""

from isovist.api import IsovistEngine, Fingerprint, compute_fingerprint
from isovist.cache import FeatureCache, quantize_viewpoint
from isovist.debug import (
    format_features,
    format_point,
    format_polygon,
    setup_debug_logging,
    disable_debug_logging,
)
from isovist.distances import (
    Metric,
    cosine,
    dtw,
    euclidean,
    feature_distance,
    manhattan,
    rank_by_distance,
    truncate_sequence,
)
from isovist.features import (
    FeatureKey,
    FeatureVector,
    SEQUENCE_KEY,
    compute_features,
    radial_lengths,
    radial_moments,
)
from isovist.geometry import (
    ValidationError,
    distance,
    distance_to_segment,
    intersect_ray_segment,
    point_in_circle,
    point_in_polygon,
    polygon_area,
    polygon_centroid,
    polygon_perimeter,
)
from isovist.obstacles import (
    CircleObstacle,
    LineObstacle,
    MapConfig,
    Obstacle,
    PolygonObstacle,
    circle_segments,
    obstacle_segments,
)
from isovist.raycast import cast_obstacles, cast_visibility
from isovist.sampling import is_navigable, orthogonal_grid, random_grid

__all__ = [
    # Engine
    'IsovistEngine',
    'Fingerprint',
    'compute_fingerprint',
    'FeatureCache',
    'quantize_viewpoint',
    # Scene
    'CircleObstacle',
    'LineObstacle',
    'MapConfig',
    'Obstacle',
    'PolygonObstacle',
    'circle_segments',
    'obstacle_segments',
    'ValidationError',
    # Geometry
    'distance',
    'distance_to_segment',
    'intersect_ray_segment',
    'point_in_circle',
    'point_in_polygon',
    'polygon_area',
    'polygon_centroid',
    'polygon_perimeter',
    # Visibility and features
    'cast_visibility',
    'cast_obstacles',
    'FeatureKey',
    'FeatureVector',
    'SEQUENCE_KEY',
    'compute_features',
    'radial_lengths',
    'radial_moments',
    # Distances
    'Metric',
    'cosine',
    'dtw',
    'euclidean',
    'feature_distance',
    'manhattan',
    'rank_by_distance',
    'truncate_sequence',
    # Sampling
    'is_navigable',
    'orthogonal_grid',
    'random_grid',
    # Debug utilities
    'format_features',
    'format_point',
    'format_polygon',
    'setup_debug_logging',
    'disable_debug_logging',
]
__version__ = '0.1.0'
