"""
Volatility calculation utilities.
Pure functions for standard deviation, annualized and rolling volatility.
"""

import numpy as np
import math
from typing import Sequence, Dict, Optional

from analysis.calculations.returns import calculate_returns


TRADING_PERIODS_PER_YEAR = 252


class VolatilityError(ValueError):
    """Raised when volatility calculation is called with invalid arguments."""
    pass


def standard_deviation(values: Sequence[float]) -> float:
    """
    Population standard deviation (divides by N, not N - 1).

    Returns 0 for empty input.
    """
    if len(values) == 0:
        return 0.0
    return float(np.std(np.asarray(values, dtype=np.float64), ddof=0))


def annualized_volatility(
    returns: Sequence[float],
    periods_per_year: int = TRADING_PERIODS_PER_YEAR
) -> float:
    """
    Annualize per-period volatility.

    Formula: sigma_annual = std(returns) * sqrt(periods_per_year)
    """
    return standard_deviation(returns) * math.sqrt(periods_per_year)


def coefficient_of_variation(values: Sequence[float]) -> float:
    """
    Dispersion relative to the mean: std / |mean|.

    Returns 0 when input is empty or the mean is 0.
    """
    if len(values) == 0:
        return 0.0

    mean = float(np.mean(np.asarray(values, dtype=np.float64)))
    if mean == 0:
        return 0.0

    return standard_deviation(values) / abs(mean)


def rolling_volatility(
    returns: Sequence[float],
    window: int,
    annualization_factor: float = math.sqrt(TRADING_PERIODS_PER_YEAR)
) -> np.ndarray:
    """
    Calculate rolling volatility over a trailing window.

    Args:
        returns: Return series in chronological order
        window: Rolling window size
        annualization_factor: Multiplier applied to each window's std

    Returns:
        Array the same length as returns; the first (window - 1) entries
        are NaN.

    Raises:
        VolatilityError: If window is not positive
    """
    if window <= 0:
        raise VolatilityError("Window must be positive")

    values = np.asarray(returns, dtype=np.float64)
    vols = np.full(len(values), np.nan, dtype=np.float64)

    for i in range(window - 1, len(values)):
        window_returns = values[i - window + 1:i + 1]
        vols[i] = standard_deviation(window_returns) * annualization_factor

    return vols


def volatility_summary(prices: Sequence[float]) -> Optional[Dict[str, Dict[str, float]]]:
    """
    Volatility and return distribution metrics for one price series.

    Args:
        prices: Closing prices in chronological order

    Returns:
        Dictionary with 'volatility' (daily, annualized,
        coefficient_of_variation) and 'returns' (mean, standard_deviation,
        min, max), or None with fewer than 2 prices
    """
    if len(prices) < 2:
        return None

    returns = calculate_returns(prices)
    daily = standard_deviation(returns)

    return {
        'volatility': {
            'daily': daily,
            'annualized': annualized_volatility(returns),
            'coefficient_of_variation': coefficient_of_variation(returns)
        },
        'returns': {
            'mean': float(np.mean(returns)),
            'standard_deviation': daily,
            'min': float(np.min(returns)),
            'max': float(np.max(returns))
        }
    }
