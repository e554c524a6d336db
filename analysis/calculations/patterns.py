"""
Seasonal pattern analysis.
Buckets daily returns by calendar month, quarter, and day of week.
"""

import calendar
from typing import Callable, Dict, List, Sequence, Optional

from analysis.models import (
    PricePoint,
    SeasonalStats,
    MonthlyPattern,
    QuarterlyPattern,
    DayOfWeekPattern,
    SeasonalPattern
)


MONTH_NAMES = list(calendar.month_name)[1:]
# Sunday first, matching day_index 0..6
DAY_NAMES = ['Sunday', 'Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday', 'Saturday']


def calculate_seasonal_stats(returns: Sequence[float], period: str) -> SeasonalStats:
    """
    Descriptive statistics for the returns that fell into one bucket.

    Median is the element at index len // 2 of the ascending sort: the
    upper-middle element on even counts, with no interpolation.
    """
    if len(returns) == 0:
        return SeasonalStats(period=period)

    sorted_returns = sorted(returns)
    median = sorted_returns[len(sorted_returns) // 2]
    average = sum(returns) / len(returns)
    positive_count = sum(1 for r in returns if r > 0)
    negative_count = sum(1 for r in returns if r < 0)

    return SeasonalStats(
        period=period,
        average_return=average,
        median_return=median,
        positive_count=positive_count,
        negative_count=negative_count,
        total_count=len(returns),
        win_rate=(positive_count / len(returns)) * 100
    )


def _bucket_daily_returns(
    prices: Sequence[PricePoint],
    bucket_of: Callable[[PricePoint], int],
    bucket_count: int
) -> Dict[int, List[float]]:
    """Assign each adjacent-pair return to the bucket of the later date."""
    buckets: Dict[int, List[float]] = {b: [] for b in range(bucket_count)}

    for i in range(1, len(prices)):
        prev_close = prices[i - 1].close
        if prev_close > 0:
            daily_return = (prices[i].close - prev_close) / prev_close
            buckets[bucket_of(prices[i])].append(daily_return)

    return buckets


def day_of_week_index(point: PricePoint) -> int:
    """0 = Sunday .. 6 = Saturday."""
    return (point.date.weekday() + 1) % 7


def analyze_monthly_patterns(prices: Sequence[PricePoint]) -> List[MonthlyPattern]:
    """Return statistics for each calendar month, January first."""
    buckets = _bucket_daily_returns(prices, lambda p: p.date.month - 1, 12)

    return [
        MonthlyPattern(
            month=month + 1,
            month_name=MONTH_NAMES[month],
            data=calculate_seasonal_stats(returns, MONTH_NAMES[month])
        )
        for month, returns in buckets.items()
    ]


def analyze_quarterly_patterns(prices: Sequence[PricePoint]) -> List[QuarterlyPattern]:
    buckets = _bucket_daily_returns(prices, lambda p: (p.date.month - 1) // 3, 4)

    return [
        QuarterlyPattern(
            quarter=quarter + 1,
            quarter_name=f"Q{quarter + 1}",
            data=calculate_seasonal_stats(returns, f"Q{quarter + 1}")
        )
        for quarter, returns in buckets.items()
    ]


def analyze_day_of_week_patterns(prices: Sequence[PricePoint]) -> List[DayOfWeekPattern]:
    buckets = _bucket_daily_returns(prices, day_of_week_index, 7)

    return [
        DayOfWeekPattern(
            day_index=day,
            day_name=DAY_NAMES[day],
            data=calculate_seasonal_stats(returns, DAY_NAMES[day])
        )
        for day, returns in buckets.items()
    ]


def find_best_worst_periods(
    patterns: Sequence[SeasonalPattern]
) -> Dict[str, Optional[SeasonalPattern]]:
    """
    Pick the buckets with the highest and lowest average return.

    Args:
        patterns: Bucket patterns from one of the analyze_* functions

    Returns:
        {'best': pattern, 'worst': pattern}, both None for empty input
    """
    if len(patterns) == 0:
        return {'best': None, 'worst': None}

    ranked = sorted(patterns, key=lambda p: p.data.average_return, reverse=True)

    return {
        'best': ranked[0],
        'worst': ranked[-1]
    }
