"""
Market dominance calculation utilities.
Share of total tracked market cap held by one reference instrument.
"""

import math
from typing import Dict, List, Sequence

from analysis.models import PricePoint, DominancePoint, DominanceStats


TREND_THRESHOLD_PCT = 2.0
TREND_SAMPLE_FRACTION = 0.1


def calculate_dominance(
    reference_prices: Sequence[PricePoint],
    all_prices: Sequence[PricePoint]
) -> List[DominancePoint]:
    """
    Calculate the reference instrument's market-cap share over time.

    Formula: dominance = reference_market_cap / total_market_cap * 100

    Args:
        reference_prices: Price history of the reference instrument (e.g. Bitcoin)
        all_prices: Price history of every tracked instrument over the same
            window, reference included. Rows carrying a crypto_id keep only
            the first row per (crypto_id, date).

    Returns:
        DominancePoint per reference date that has rows in all_prices and a
        positive total market cap, sorted by date. Dates without data are
        skipped, not zero-filled.
    """
    prices_by_date: Dict[str, List[PricePoint]] = {}
    seen = set()
    for point in all_prices:
        date_key = point.date.isoformat()
        # First row wins for a repeated (instrument, date)
        if point.crypto_id is not None:
            if (point.crypto_id, date_key) in seen:
                continue
            seen.add((point.crypto_id, date_key))
        prices_by_date.setdefault(date_key, []).append(point)

    dominance_data = []
    for reference in reference_prices:
        date_key = reference.date.isoformat()
        prices_on_date = prices_by_date.get(date_key)

        if not prices_on_date:
            continue

        total_market_cap = sum(p.market_cap or 0.0 for p in prices_on_date)
        if total_market_cap <= 0:
            continue

        reference_market_cap = reference.market_cap or 0.0

        dominance_data.append(DominancePoint(
            date=date_key,
            dominant_market_cap=reference_market_cap,
            total_market_cap=total_market_cap,
            dominance_percentage=(reference_market_cap / total_market_cap) * 100,
            remainder_market_cap=total_market_cap - reference_market_cap
        ))

    return sorted(dominance_data, key=lambda d: d.date)


def dominance_stats(dominance_data: Sequence[DominancePoint]) -> DominanceStats:
    """
    Summary statistics and trend for a dominance series.

    Trend compares the mean of the first and last ceil(10%) of points
    (at least one each): a rise of more than 2 percentage points is
    'increasing', a fall of more than 2 is 'decreasing', else 'stable'.
    """
    if len(dominance_data) == 0:
        return DominanceStats()

    values = [d.dominance_percentage for d in dominance_data]

    sample_size = max(1, math.ceil(len(values) * TREND_SAMPLE_FRACTION))
    first_avg = sum(values[:sample_size]) / sample_size
    last_avg = sum(values[-sample_size:]) / sample_size

    change = last_avg - first_avg
    if change > TREND_THRESHOLD_PCT:
        trend = 'increasing'
    elif change < -TREND_THRESHOLD_PCT:
        trend = 'decreasing'
    else:
        trend = 'stable'

    return DominanceStats(
        current=values[-1],
        average=sum(values) / len(values),
        max=max(values),
        min=min(values),
        trend=trend
    )
