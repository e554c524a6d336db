"""
Returns calculation utilities.
Pure functions for period returns, percentage change, and moving averages.
"""

import numpy as np
from typing import Sequence


class ReturnsError(ValueError):
    """Raised when returns calculation is called with invalid arguments."""
    pass


def calculate_returns(prices: Sequence[float]) -> np.ndarray:
    """
    Calculate period-over-period simple returns.

    Formula: R_t = (P_t - P_{t-1}) / P_{t-1}

    Args:
        prices: Prices in chronological order

    Returns:
        Numpy array of returns (length = len(prices) - 1). A return is 0
        when the previous price is 0.

    Example:
        prices = [100, 105, 103, 108]
        Returns: [0.05, -0.0190, 0.0485]
    """
    if len(prices) < 2:
        return np.array([], dtype=np.float64)

    prices_array = np.asarray(prices, dtype=np.float64)
    previous = prices_array[:-1]
    current = prices_array[1:]

    returns = np.zeros(len(current), dtype=np.float64)
    nonzero = previous != 0
    returns[nonzero] = (current[nonzero] - previous[nonzero]) / previous[nonzero]

    return returns


def percentage_change(old_value: float, new_value: float) -> float:
    """
    Percentage change from old_value to new_value.

    Returns 0 when old_value is 0.
    """
    if old_value == 0:
        return 0.0
    return ((new_value - old_value) / old_value) * 100


def moving_average(data: Sequence[float], window: int) -> np.ndarray:
    """
    Trailing simple moving average.

    Args:
        data: Values in chronological order
        window: Number of points in each average

    Returns:
        Array the same length as data. The first (window - 1) entries are
        NaN; entry i is the mean of data[i - window + 1 : i + 1].

    Raises:
        ReturnsError: If window is not positive
    """
    if window <= 0:
        raise ReturnsError("Window size must be positive")

    values = np.asarray(data, dtype=np.float64)
    result = np.full(len(values), np.nan, dtype=np.float64)

    for i in range(window - 1, len(values)):
        result[i] = values[i - window + 1:i + 1].sum() / window

    return result


def cumulative_returns(returns: Sequence[float]) -> np.ndarray:
    """Running compounded return: prod(1 + r) - 1 at each step."""
    if len(returns) == 0:
        return np.array([], dtype=np.float64)
    return np.cumprod(1 + np.asarray(returns, dtype=np.float64)) - 1
