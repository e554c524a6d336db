"""
Series alignment - turns raw multi-instrument price rows into per-instrument
series and date-aligned close arrays for the calculation modules.
"""

import pandas as pd
from collections import OrderedDict
from typing import Dict, List, Sequence, Tuple, Any, Union, Optional

from analysis.calculations.returns import calculate_returns
from analysis.models import PricePoint


class AlignmentError(Exception):
    """Raised when price rows cannot be aligned."""
    pass


PriceRows = Union[pd.DataFrame, Sequence[Dict[str, Any]]]

REQUIRED_COLUMNS = {'crypto_id', 'date', 'close'}


def _to_frame(rows: PriceRows) -> pd.DataFrame:
    """Normalize rows to a DataFrame with a date-only 'date_key' column."""
    df = rows.copy() if isinstance(rows, pd.DataFrame) else pd.DataFrame(list(rows))

    if df.empty:
        return pd.DataFrame(columns=sorted(REQUIRED_COLUMNS | {'date_key'}))

    missing = REQUIRED_COLUMNS - set(df.columns)
    if missing:
        raise AlignmentError(f"Price rows missing required columns: {sorted(missing)}")

    # Time of day is discarded; one key per calendar date
    df['date_key'] = pd.to_datetime(df['date']).dt.strftime('%Y-%m-%d')
    return df


def group_by_instrument(rows: PriceRows) -> Dict[int, List[PricePoint]]:
    """
    Split mixed rows into one date-ordered PricePoint series per instrument.

    Args:
        rows: DataFrame or list of dicts with crypto_id, date, close and
            optional open/high/low/volume/market_cap

    Returns:
        Ordered dict of crypto_id -> price points sorted by date, in order
        of first appearance
    """
    df = _to_frame(rows)
    grouped: Dict[int, List[PricePoint]] = OrderedDict()

    if df.empty:
        return grouped

    instrument_order = pd.unique(df['crypto_id'])
    df = df.sort_values('date_key', kind='stable')

    for crypto_id in instrument_order:
        instrument_rows = df[df['crypto_id'] == crypto_id]
        grouped[int(crypto_id)] = [
            PricePoint.from_row(row) for row in instrument_rows.to_dict('records')
        ]

    return grouped


def aligned_close_series(
    rows: PriceRows,
    crypto_ids: Optional[Sequence[int]] = None
) -> Tuple[List[str], Dict[int, List[float]]]:
    """
    Align closing prices across instruments on a shared date index.

    The date index is every date present in rows, sorted. For each
    instrument, closes are taken on the dates where it has a row; missing
    dates are skipped rather than filled, so series can differ in length.
    The first row wins when an instrument repeats a date.

    Args:
        rows: Multi-instrument price rows
        crypto_ids: Instruments to include, in output order (default: all,
            in order of first appearance)

    Returns:
        Tuple of (sorted date keys, crypto_id -> closes)
    """
    df = _to_frame(rows)

    if crypto_ids is None:
        crypto_ids = [int(c) for c in pd.unique(df['crypto_id'])]

    if df.empty:
        return [], OrderedDict((int(c), []) for c in crypto_ids)

    pivot = df.pivot_table(
        index='date_key',
        columns='crypto_id',
        values='close',
        aggfunc='first'
    ).sort_index()

    dates = list(pivot.index)
    closes: Dict[int, List[float]] = OrderedDict()

    for crypto_id in crypto_ids:
        if crypto_id in pivot.columns:
            closes[int(crypto_id)] = [float(v) for v in pivot[crypto_id].dropna()]
        else:
            closes[int(crypto_id)] = []

    return dates, closes


def returns_by_instrument(
    rows: PriceRows,
    crypto_ids: Optional[Sequence[int]] = None
) -> Dict[int, List[float]]:
    """
    Date-aligned daily return series per instrument.

    Instruments with fewer than 2 closes are omitted.
    """
    _, closes = aligned_close_series(rows, crypto_ids)

    return OrderedDict(
        (crypto_id, calculate_returns(series).tolist())
        for crypto_id, series in closes.items()
        if len(series) > 1
    )
