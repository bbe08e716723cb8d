#!/usr/bin/env python3
"""
Profile script for the isovist pipeline to identify performance bottlenecks.
"""

import cProfile
import pstats
import io
import time

import numpy as np

from isovist import (
    CircleObstacle,
    FeatureKey,
    IsovistEngine,
    LineObstacle,
    MapConfig,
    Obstacle,
    PolygonObstacle,
)


def generate_random_walls(n_walls: int, rng: np.random.Generator) -> list[Obstacle]:
    """Random wall segments scattered over the reference scene."""
    walls: list[Obstacle] = []
    for _ in range(n_walls):
        start = rng.uniform(60, 540, size=2)
        angle = rng.uniform(0, 2 * np.pi)
        length = rng.uniform(20, 120)
        end = start + length * np.array([np.cos(angle), np.sin(angle)])
        walls.append(LineObstacle(tuple(start), tuple(end)))
    return walls


def generate_scene(n_walls: int = 10, seed: int = 42) -> list[Obstacle]:
    """Outer boundary, a few filled pillars, and random walls."""
    rng = np.random.default_rng(seed)
    obstacles: list[Obstacle] = [CircleObstacle((300.0, 300.0), 298.0)]
    obstacles.append(CircleObstacle((220.0, 250.0), 8.0, fill=True))
    obstacles.append(CircleObstacle((400.0, 380.0), 12.0, fill=True))
    obstacles.append(
        PolygonObstacle.from_vertices([[380, 180], [430, 180], [430, 230], [380, 230]], fill=True)
    )
    obstacles.extend(generate_random_walls(n_walls, rng))
    return obstacles


def run_fingerprint_workload(n_walls: int, cell_size: float) -> None:
    """Fingerprint every orthogonal grid node and rank them against the first."""
    engine = IsovistEngine(generate_scene(n_walls), map_config=MapConfig(cell_size=cell_size))
    fingerprints = engine.fingerprint_samples(list(FeatureKey))
    if fingerprints:
        engine.rank(fingerprints[0], fingerprints, limit=10)


def profile_function(func, description: str) -> None:
    """Profile a function and print statistics."""
    print(f"\n{'=' * 60}")
    print(f"Profiling: {description}")
    print('=' * 60)

    start = time.perf_counter()

    profiler = cProfile.Profile()
    profiler.enable()
    func()
    profiler.disable()

    elapsed = time.perf_counter() - start

    s = io.StringIO()
    ps = pstats.Stats(profiler, stream=s).sort_stats('cumulative')
    ps.print_stats(30)
    print(s.getvalue())

    print(f"\nTotal time: {elapsed:.3f}s")


if __name__ == "__main__":
    print("Isovist Performance Profiling")
    print("=" * 60)

    profile_function(
        lambda: run_fingerprint_workload(n_walls=10, cell_size=60.0),
        "Sparse grid (10 walls, cell 60, all features)"
    )

    profile_function(
        lambda: run_fingerprint_workload(n_walls=60, cell_size=30.0),
        "Reference grid (60 walls, cell 30, all features)"
    )
