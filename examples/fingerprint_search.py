#!/usr/bin/env python3
"""
Fingerprint Search - Complete Example

Builds a small scene, fingerprints sampled viewpoints, and looks up the
stored viewpoints whose isovists best match a query viewpoint.

Key features demonstrated:
1. Scene construction from line, polygon and circle obstacles
2. Orthogonal and random (blue-noise) viewpoint sampling
3. Feature extraction, including the radial length sequence
4. Ranking stored fingerprints under a chosen metric

Run with: python examples/fingerprint_search.py --strategy random --count 80
"""

from __future__ import annotations

import argparse
import logging

import numpy as np

from isovist import (
    CircleObstacle,
    FeatureKey,
    IsovistEngine,
    LineObstacle,
    MapConfig,
    Obstacle,
    PolygonObstacle,
    format_features,
    format_point,
)

logging.basicConfig(
    level=logging.INFO,
    format="[%(levelname)s] %(name)s - %(message)s",
)
logger = logging.getLogger(__name__)

FEATURES = [
    FeatureKey.AREA,
    FeatureKey.PERIMETER,
    FeatureKey.COMPACTNESS,
    FeatureKey.DRIFT,
    FeatureKey.RADIAL_MOMENT_MEAN,
    FeatureKey.RADIAL_MOMENT_VARIANCE,
    FeatureKey.RADIAL_MOMENT_SKEWNESS,
    FeatureKey.RADIAL_LENGTH_SEQUENCE,
]


def create_scene() -> list[Obstacle]:
    """A walled disc with two inner walls, a pillar and a filled block."""
    return [
        CircleObstacle((300.0, 300.0), 298.0),
        LineObstacle((90, 150), (90, 285)),
        LineObstacle((170, 120), (170, 200)),
        CircleObstacle((220.0, 250.0), 8.0, fill=True),
        PolygonObstacle.from_vertices(
            [[380, 380], [460, 380], [460, 440], [380, 440]], fill=True
        ),
    ]


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Isovist fingerprint search")
    parser.add_argument(
        "--strategy",
        choices=["orthogonal", "random"],
        default="orthogonal",
        help="Viewpoint sampling strategy (default: orthogonal)"
    )
    parser.add_argument(
        "--count",
        type=int,
        default=100,
        help="Target point count for random sampling (default: 100)"
    )
    parser.add_argument(
        "--metric",
        choices=["euclidean", "manhattan", "cosine"],
        default="euclidean",
        help="Distance metric (default: euclidean)"
    )
    parser.add_argument(
        "--percent",
        type=float,
        default=100.0,
        help="Share of the radial length sequence to compare (default: 100)"
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Random seed for the random strategy"
    )
    args = parser.parse_args()

    engine = IsovistEngine(create_scene(), map_config=MapConfig(cell_size=40.0))
    rng = np.random.default_rng(args.seed)

    fingerprints = engine.fingerprint_samples(FEATURES, args.strategy, args.count, rng)
    logger.info("Stored %d fingerprints (%s sampling)", len(fingerprints), args.strategy)
    if not fingerprints:
        logger.warning("No navigable viewpoints; nothing to search")
        return

    query = engine.fingerprint((140.0, 230.0), FEATURES)
    print("\n" + "=" * 70)
    print(f"Query at {format_point(query.position)}")
    print("=" * 70)
    print(f"  {format_features(query.features)}")

    ranked = engine.rank(query, fingerprints, args.metric, args.percent, limit=5)
    print(f"\nNearest stored viewpoints ({args.metric}, {args.percent:g}% of sequence):")
    for fp, dist in ranked:
        print(f"  {format_point(fp.position)}  distance={dist:.4f}")

    stats = engine.cache
    logger.info("Cache: %d entries, %d hits, %d misses", len(stats), stats.hits, stats.misses)


if __name__ == "__main__":
    main()
