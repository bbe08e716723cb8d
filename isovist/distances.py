"""
Dissimilarity between partial feature vectors.

Vectors may carry different key sets. A key present on one side only is
compared against an implicit zero. The radial length sequence is reduced
to a scalar with dynamic time warping (DTW) before it is folded into the
same accumulator as the scalar features.
"""

from __future__ import annotations

import math
from numbers import Real
from typing import Literal, Mapping, Optional, Sequence, Union

import numpy as np
from numpy.typing import ArrayLike, NDArray

from isovist.features import SEQUENCE_KEY, FeatureKey, FeatureValue
from isovist.geometry import ValidationError

Metric = Literal["euclidean", "manhattan", "cosine"]
METRICS: tuple[str, ...] = ("euclidean", "manhattan", "cosine")

PartialFeatures = Mapping[Union[FeatureKey, str], FeatureValue]


# =============================================================================
# Sequences
# =============================================================================

def _validate_percent(percent: float) -> float:
    if isinstance(percent, bool) or not isinstance(percent, Real):
        raise ValidationError(f"percent must be a number, got {type(percent).__name__}")
    if not 0.0 <= percent <= 100.0:
        raise ValidationError(f"percent must be in [0, 100], got {percent!r}")
    return float(percent)


def truncate_sequence(sequence: ArrayLike, percent: float = 100.0) -> NDArray[np.float64]:
    """Keep the leading round(len * percent / 100) elements, halves rounding up."""
    percent = _validate_percent(percent)
    values = np.asarray(sequence, dtype=np.float64).reshape(-1)
    keep = int(math.floor(values.shape[0] * percent / 100.0 + 0.5))
    return values[:keep]


def dtw(a: ArrayLike, b: ArrayLike) -> float:
    """
    Dynamic time warping cost between two numeric sequences.

    Uses the standard recurrence with absolute-difference cost:

        cost[i][j] = |a[i-1] - b[j-1]| + min(cost[i-1][j],
                                             cost[i][j-1],
                                             cost[i-1][j-1])

    with cost[0][0] = 0 and the remaining borders at +inf. Cells on one
    anti-diagonal (i + j = k) depend only on diagonals k-1 and k-2, so each
    diagonal is filled in a single vectorized step.

    Two empty sequences cost 0. When only one side is empty, every element
    of the other side is aligned against zero, giving the sum of its
    absolute values.

    Parameters:
        a: First sequence
        b: Second sequence

    Returns:
        Alignment cost (>= 0)
    """
    x = np.asarray(a, dtype=np.float64).reshape(-1)
    y = np.asarray(b, dtype=np.float64).reshape(-1)
    n, m = x.shape[0], y.shape[0]
    if n == 0 or m == 0:
        return float(np.sum(np.abs(x)) + np.sum(np.abs(y)))

    diff = np.abs(x[:, None] - y[None, :])
    cost = np.full((n + 1, m + 1), np.inf, dtype=np.float64)
    cost[0, 0] = 0.0
    for k in range(2, n + m + 1):
        i = np.arange(max(1, k - m), min(n, k - 1) + 1)
        j = k - i
        best = np.minimum(np.minimum(cost[i - 1, j], cost[i, j - 1]), cost[i - 1, j - 1])
        cost[i, j] = diff[i - 1, j - 1] + best
    return float(cost[n, m])


# =============================================================================
# Vector metrics
# =============================================================================

def _normalize(features: PartialFeatures) -> dict[FeatureKey, FeatureValue]:
    result: dict[FeatureKey, FeatureValue] = {}
    for key, value in features.items():
        try:
            result[FeatureKey(key)] = value
        except ValueError:
            raise ValidationError(f"Unknown feature key: {key!r}") from None
    return result


def _key_union(
    f1: dict[FeatureKey, FeatureValue], f2: dict[FeatureKey, FeatureValue]
) -> list[FeatureKey]:
    keys = list(f1)
    keys.extend(k for k in f2 if k not in f1)
    return keys


def _sequence_cost(
    v1: Optional[FeatureValue], v2: Optional[FeatureValue], percent: float
) -> float:
    s1 = truncate_sequence(v1 if v1 is not None else [], percent)
    s2 = truncate_sequence(v2 if v2 is not None else [], percent)
    return dtw(s1, s2)


def _differences(
    f1: PartialFeatures, f2: PartialFeatures, percent: float
) -> list[float]:
    """Per-key differences, with one-sided keys compared against zero."""
    a = _normalize(f1)
    b = _normalize(f2)
    diffs: list[float] = []
    for key in _key_union(a, b):
        v1 = a.get(key)
        v2 = b.get(key)
        if key is SEQUENCE_KEY:
            diffs.append(_sequence_cost(v1, v2, percent))
        elif v1 is not None and v2 is not None:
            diffs.append(float(v1) - float(v2))
        elif v1 is not None:
            diffs.append(float(v1))
        elif v2 is not None:
            diffs.append(float(v2))
    return diffs


def euclidean(f1: PartialFeatures, f2: PartialFeatures, percent: float = 100.0) -> float:
    """Square root of the summed squared per-key differences."""
    percent = _validate_percent(percent)
    return math.sqrt(sum(d * d for d in _differences(f1, f2, percent)))


def manhattan(f1: PartialFeatures, f2: PartialFeatures, percent: float = 100.0) -> float:
    """Sum of absolute per-key differences."""
    percent = _validate_percent(percent)
    return sum(abs(d) for d in _differences(f1, f2, percent))


def cosine(f1: PartialFeatures, f2: PartialFeatures, percent: float = 100.0) -> float:
    """
    One minus the cosine similarity over the keys both vectors carry.

    The sequence feature contributes its DTW cost d as d*d to the dot
    product and to both squared magnitudes. Returns 0 when either magnitude
    is 0.
    """
    percent = _validate_percent(percent)
    a = _normalize(f1)
    b = _normalize(f2)

    product = 0.0
    magnitude1 = 0.0
    magnitude2 = 0.0
    for key in a:
        v1 = a[key]
        v2 = b.get(key)
        if v2 is None:
            continue
        if key is SEQUENCE_KEY:
            cost = _sequence_cost(v1, v2, percent)
            product += cost * cost
            magnitude1 += cost * cost
            magnitude2 += cost * cost
        else:
            x, y = float(v1), float(v2)
            product += x * y
            magnitude1 += x * x
            magnitude2 += y * y

    if magnitude1 == 0 or magnitude2 == 0:
        return 0.0
    return 1.0 - product / (math.sqrt(magnitude1) * math.sqrt(magnitude2))


_METRIC_FUNCTIONS = {
    "euclidean": euclidean,
    "manhattan": manhattan,
    "cosine": cosine,
}


def feature_distance(
    f1: PartialFeatures,
    f2: PartialFeatures,
    metric: Metric = "euclidean",
    percent: float = 100.0,
) -> float:
    """
    Dissimilarity between two partial feature vectors under a named metric.

    Parameters:
        f1: First feature vector
        f2: Second feature vector
        metric: One of "euclidean", "manhattan", "cosine"
        percent: Leading share of the radial length sequence to compare

    Raises:
        ValidationError: If the metric is unknown or percent is out of range
    """
    try:
        fn = _METRIC_FUNCTIONS[metric]
    except KeyError:
        raise ValidationError(
            f"Unknown metric {metric!r}, expected one of {METRICS}"
        ) from None
    return fn(f1, f2, percent)


def rank_by_distance(
    query: PartialFeatures,
    candidates: Sequence[PartialFeatures],
    metric: Metric = "euclidean",
    percent: float = 100.0,
    limit: Optional[int] = None,
) -> list[tuple[int, float]]:
    """
    Order candidate vectors by dissimilarity to a query.

    Ties keep candidate order.

    Returns:
        List of (candidate_index, distance), nearest first, at most limit long
    """
    scored = [
        (index, feature_distance(query, candidate, metric, percent))
        for index, candidate in enumerate(candidates)
    ]
    scored.sort(key=lambda item: item[1])
    if limit is not None:
        scored = scored[:limit]
    return scored
