"""
Correlation calculation utilities.
Pearson correlation, all-pairs matrices, and strongest-pair extraction.
"""

import math
import numpy as np
from typing import Dict, List, Sequence, Any, Hashable


CorrelationMatrix = Dict[Hashable, Dict[Hashable, float]]


def calculate_correlation(x: Sequence[float], y: Sequence[float]) -> float:
    """
    Pearson correlation coefficient using the sum-of-products formula.

    r = (n*Sxy - Sx*Sy) / sqrt((n*Sxx - Sx^2) * (n*Syy - Sy^2))

    Args:
        x: First series
        y: Second series, aligned with x

    Returns:
        Correlation in [-1, 1]. 0 when lengths differ, either series is
        empty, or either series has zero variance.
    """
    if len(x) != len(y) or len(x) == 0:
        return 0.0

    x_arr = np.asarray(x, dtype=np.float64)
    y_arr = np.asarray(y, dtype=np.float64)
    n = len(x_arr)

    sum_x = float(np.sum(x_arr))
    sum_y = float(np.sum(y_arr))
    sum_xy = float(np.sum(x_arr * y_arr))
    sum_x2 = float(np.sum(x_arr * x_arr))
    sum_y2 = float(np.sum(y_arr * y_arr))

    numerator = n * sum_xy - sum_x * sum_y
    variance_product = (n * sum_x2 - sum_x * sum_x) * (n * sum_y2 - sum_y * sum_y)

    # Rounding can push a near-zero variance product slightly negative
    if variance_product <= 0:
        return 0.0

    denominator = math.sqrt(variance_product)
    if denominator == 0:
        return 0.0

    return max(-1.0, min(1.0, numerator / denominator))


def correlation_matrix(series_by_key: Dict[Hashable, Sequence[float]]) -> CorrelationMatrix:
    """
    Build the full correlation matrix, diagonal included.

    Keys keep the insertion order of series_by_key.
    """
    keys = list(series_by_key.keys())
    matrix: CorrelationMatrix = {}

    for key1 in keys:
        matrix[key1] = {}
        for key2 in keys:
            matrix[key1][key2] = calculate_correlation(series_by_key[key1], series_by_key[key2])

    return matrix


def strongest_correlations(
    matrix: CorrelationMatrix,
    limit: int = 10
) -> List[Dict[str, Any]]:
    """
    Find the unique pairs with the largest absolute correlation.

    Pairs are enumerated as (keys[i], keys[j]) for i < j in matrix key
    order. The sort is stable, so ties keep enumeration order.

    Returns:
        List of {'pair': (key1, key2), 'correlation': value}, at most limit long
    """
    keys = list(matrix.keys())
    pairs: List[Dict[str, Any]] = []

    for i in range(len(keys)):
        for j in range(i + 1, len(keys)):
            key1, key2 = keys[i], keys[j]
            pairs.append({
                'pair': (key1, key2),
                'correlation': matrix[key1][key2]
            })

    pairs.sort(key=lambda item: abs(item['correlation']), reverse=True)

    return pairs[:limit]
