"""
Orchestrated analysis jobs - price repository to JSON result records.
Queries the injected repository, calls pure functions, persists analysis JSON.
"""

import json
import logging
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Dict, Any, Optional, List, Sequence, Callable, Protocol

import pandas as pd

from analysis.alignment import group_by_instrument, returns_by_instrument
from analysis.calculations.correlations import correlation_matrix, strongest_correlations
from analysis.calculations.dominance import calculate_dominance, dominance_stats
from analysis.calculations.patterns import (
    analyze_monthly_patterns,
    analyze_quarterly_patterns,
    analyze_day_of_week_patterns,
    find_best_worst_periods
)
from analysis.calculations.predictions import (
    predict_with_ensemble,
    InsufficientDataError,
    MOVING_AVERAGE_MIN_POINTS
)
from analysis.calculations.returns import percentage_change
from analysis.calculations.volatility import volatility_summary
from analysis.models import PricePoint


logger = logging.getLogger(__name__)


MAX_CORRELATION_INSTRUMENTS = 15
DOMINANCE_REFERENCE_SYMBOLS = ('BTC', 'BITCOIN')

PREDICTION_DISCLAIMER = (
    'These predictions are based on historical data and technical analysis. '
    'They should not be considered as financial advice. Cryptocurrency markets '
    'are highly volatile and unpredictable. Always do your own research and '
    'consult with financial advisors before making investment decisions.'
)


class AnalysisJobError(Exception):
    """Raised when analysis job fails."""
    pass


class PriceRepository(Protocol):
    """Price history source the analysis jobs read from."""

    def get_cryptocurrencies(self) -> List[Dict[str, Any]]: ...

    def get_cryptocurrency(self, crypto_id: int) -> Optional[Dict[str, Any]]: ...

    def get_cryptocurrency_by_symbol(self, symbol: str) -> Optional[Dict[str, Any]]: ...

    def fetch_price_history(
        self,
        crypto_id: int,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None
    ) -> List[PricePoint]: ...

    def fetch_price_rows(
        self,
        crypto_ids: Sequence[int],
        start_date: Optional[date] = None,
        end_date: Optional[date] = None
    ) -> pd.DataFrame: ...

    def latest_date(self, crypto_ids: Optional[Sequence[int]] = None) -> Optional[date]: ...


def _date_window(
    repo: PriceRepository,
    days: int,
    crypto_ids: Optional[Sequence[int]] = None
) -> Dict[str, date]:
    """
    Window ending at the latest stored date (not today) and spanning days.
    """
    end_date = repo.latest_date(crypto_ids)
    if end_date is None:
        raise AnalysisJobError("No price data available")

    return {
        'start_date': end_date - timedelta(days=days),
        'end_date': end_date
    }


def _period(window: Dict[str, date], days: int) -> Dict[str, Any]:
    return {
        'days': days,
        'start_date': window['start_date'].isoformat(),
        'end_date': window['end_date'].isoformat()
    }


def _resolve_crypto_ids(
    repo: PriceRepository,
    crypto_ids: Optional[Sequence[int]],
    limit: Optional[int] = None
) -> List[int]:
    if crypto_ids:
        return list(crypto_ids)

    ids = [c['id'] for c in repo.get_cryptocurrencies()]
    return ids[:limit] if limit is not None else ids


def _require_cryptocurrency(repo: PriceRepository, crypto_id: int) -> Dict[str, Any]:
    crypto = repo.get_cryptocurrency(crypto_id)
    if crypto is None:
        raise AnalysisJobError(f"Cryptocurrency {crypto_id} not found")
    return crypto


def _instrument_labels(price_rows: pd.DataFrame) -> Dict[int, Dict[str, str]]:
    """crypto_id -> {'symbol', 'name'} from joined price rows."""
    labels = {}
    if price_rows.empty:
        return labels

    for row in price_rows[['crypto_id', 'symbol', 'name']].drop_duplicates('crypto_id').to_dict('records'):
        labels[int(row['crypto_id'])] = {'symbol': row['symbol'], 'name': row['name']}
    return labels


def analyze_trends(
    repo: PriceRepository,
    crypto_ids: Optional[Sequence[int]] = None,
    days: int = 90
) -> Dict[str, Any]:
    """
    Price trend summary per cryptocurrency over the trailing window.

    Args:
        repo: Price repository
        crypto_ids: Cryptocurrencies to include (default: all)
        days: Window length in calendar days

    Returns:
        Dictionary with per-instrument summaries and window metadata
    """
    ids = _resolve_crypto_ids(repo, crypto_ids)
    window = _date_window(repo, days, ids)

    price_rows = repo.fetch_price_rows(ids, window['start_date'], window['end_date'])
    labels = _instrument_labels(price_rows)

    trends = []
    for crypto_id, prices in group_by_instrument(price_rows).items():
        if not prices:
            continue

        closes = [p.close for p in prices]
        trends.append({
            'crypto_id': crypto_id,
            **labels.get(crypto_id, {}),
            'data': [p.to_dict() for p in prices],
            'summary': {
                'start_date': prices[0].date.isoformat(),
                'end_date': prices[-1].date.isoformat(),
                'start_price': closes[0],
                'end_price': closes[-1],
                'percent_change': percentage_change(closes[0], closes[-1]),
                'high_price': max(closes),
                'low_price': min(closes),
                'data_points': len(prices)
            }
        })

    return {
        'trends': trends,
        'period': _period(window, days),
        'crypto_count': len(trends)
    }


def analyze_volatility(
    repo: PriceRepository,
    crypto_ids: Optional[Sequence[int]] = None,
    days: int = 90
) -> Dict[str, Any]:
    """
    Volatility metrics per cryptocurrency, most volatile first.

    Instruments with fewer than 2 prices in the window are left out.
    """
    ids = _resolve_crypto_ids(repo, crypto_ids)
    window = _date_window(repo, days, ids)

    price_rows = repo.fetch_price_rows(ids, window['start_date'], window['end_date'])
    labels = _instrument_labels(price_rows)

    analysis = []
    for crypto_id, prices in group_by_instrument(price_rows).items():
        summary = volatility_summary([p.close for p in prices])
        if summary is None:
            logger.warning(f"Skipping volatility for {crypto_id}: fewer than 2 prices")
            continue

        analysis.append({
            'crypto_id': crypto_id,
            **labels.get(crypto_id, {}),
            **summary,
            'data_points': len(prices)
        })

    analysis.sort(key=lambda item: item['volatility']['annualized'], reverse=True)

    return {
        'volatility': analysis,
        'period': _period(window, days),
        'crypto_count': len(analysis)
    }


def analyze_correlations(
    repo: PriceRepository,
    crypto_ids: Optional[Sequence[int]] = None,
    days: int = 90,
    limit: int = 20
) -> Dict[str, Any]:
    """
    Return correlation matrix and strongest pairs across cryptocurrencies.

    Defaults to the first 15 cryptocurrencies by name when none are given.
    """
    ids = _resolve_crypto_ids(repo, crypto_ids, limit=MAX_CORRELATION_INSTRUMENTS)
    window = _date_window(repo, days, ids)

    price_rows = repo.fetch_price_rows(ids, window['start_date'], window['end_date'])
    labels = _instrument_labels(price_rows)

    returns = returns_by_instrument(price_rows, ids)
    matrix = correlation_matrix(returns)
    strongest = strongest_correlations(matrix, limit)

    def label(crypto_id: int) -> Dict[str, Any]:
        return {'id': crypto_id, **labels.get(crypto_id, {'symbol': '', 'name': ''})}

    formatted_matrix = []
    for crypto_id, row in matrix.items():
        formatted_row = label(crypto_id)
        formatted_row['correlations'] = {str(other): value for other, value in row.items()}
        formatted_matrix.append(formatted_row)

    return {
        'matrix': formatted_matrix,
        'strongest_correlations': [
            {
                'crypto1': label(item['pair'][0]),
                'crypto2': label(item['pair'][1]),
                'correlation': item['correlation']
            }
            for item in strongest
        ],
        'period': _period(window, days),
        'crypto_count': len(returns)
    }


def analyze_seasonal(
    repo: PriceRepository,
    crypto_id: int,
    days: int = 730
) -> Dict[str, Any]:
    """
    Monthly, quarterly, and day-of-week return patterns for one cryptocurrency.
    """
    crypto = _require_cryptocurrency(repo, crypto_id)
    window = _date_window(repo, days, [crypto_id])

    prices = repo.fetch_price_history(crypto_id, window['start_date'], window['end_date'])
    if not prices:
        raise AnalysisJobError(f"No price data for {crypto['symbol']} in the specified period")

    monthly = analyze_monthly_patterns(prices)
    quarterly = analyze_quarterly_patterns(prices)
    day_of_week = analyze_day_of_week_patterns(prices)

    def best_worst(patterns):
        result = find_best_worst_periods(patterns)
        return {k: (v.to_dict() if v is not None else None) for k, v in result.items()}

    monthly_bw = best_worst(monthly)
    quarterly_bw = best_worst(quarterly)
    day_bw = best_worst(day_of_week)

    return {
        'cryptocurrency': crypto,
        'period': _period(window, days),
        'patterns': {
            'monthly': [p.to_dict() for p in monthly],
            'quarterly': [p.to_dict() for p in quarterly],
            'day_of_week': [p.to_dict() for p in day_of_week]
        },
        'insights': {
            'best_month': monthly_bw['best'],
            'worst_month': monthly_bw['worst'],
            'best_quarter': quarterly_bw['best'],
            'worst_quarter': quarterly_bw['worst'],
            'best_day_of_week': day_bw['best'],
            'worst_day_of_week': day_bw['worst']
        }
    }


def analyze_dominance(
    repo: PriceRepository,
    days: int = 365,
    reference_symbols: Sequence[str] = DOMINANCE_REFERENCE_SYMBOLS
) -> Dict[str, Any]:
    """
    Market-cap dominance of the reference cryptocurrency (Bitcoin by default).

    The first symbol in reference_symbols that exists is used.
    """
    reference = None
    for symbol in reference_symbols:
        reference = repo.get_cryptocurrency_by_symbol(symbol)
        if reference is not None:
            break

    if reference is None:
        raise AnalysisJobError(f"Reference cryptocurrency not found (tried {', '.join(reference_symbols)})")

    window = _date_window(repo, days, [reference['id']])

    reference_prices = repo.fetch_price_history(reference['id'], window['start_date'], window['end_date'])
    all_rows = repo.fetch_price_rows([], window['start_date'], window['end_date'])

    if not reference_prices or all_rows.empty:
        raise AnalysisJobError("No price data available for the specified period")

    all_prices = [PricePoint.from_row(row) for row in all_rows.to_dict('records')]

    dominance = calculate_dominance(reference_prices, all_prices)
    stats = dominance_stats(dominance)

    return {
        'reference': reference,
        'dominance': [d.to_dict() for d in dominance],
        'stats': stats.to_dict(),
        'period': _period(window, days)
    }


def analyze_predictions(
    repo: PriceRepository,
    crypto_id: int,
    days: int = 365
) -> Dict[str, Any]:
    """
    Ensemble 30-day price prediction for one cryptocurrency.

    Raises:
        AnalysisJobError: If the cryptocurrency or its prices are missing
        InsufficientDataError: If the window holds fewer than 200 prices
    """
    crypto = _require_cryptocurrency(repo, crypto_id)
    window = _date_window(repo, days, [crypto_id])

    prices = repo.fetch_price_history(crypto_id, window['start_date'], window['end_date'])

    if len(prices) < MOVING_AVERAGE_MIN_POINTS:
        raise InsufficientDataError('ensemble', MOVING_AVERAGE_MIN_POINTS, len(prices))

    prediction = predict_with_ensemble(prices)

    return {
        'cryptocurrency': crypto,
        'period': _period(window, days),
        'prediction': prediction.to_dict(),
        'disclaimer': PREDICTION_DISCLAIMER
    }


ANALYSES: Dict[str, Callable[..., Dict[str, Any]]] = {
    'trends': analyze_trends,
    'volatility': analyze_volatility,
    'correlations': analyze_correlations,
    'seasonal': analyze_seasonal,
    'dominance': analyze_dominance,
    'predictions': analyze_predictions
}


def run_analysis(
    repo: PriceRepository,
    analysis: str,
    output_path: Path,
    **params: Any
) -> Dict[str, Any]:
    """
    Run one analysis and save the result to JSON.

    Args:
        repo: Price repository
        analysis: One of the ANALYSES keys
        output_path: Path to save the result JSON
        **params: Keyword arguments for the analysis function

    Returns:
        Dictionary with job status and summary; failures are reported with
        status 'failed' rather than raised
    """
    start_time = datetime.now()

    if analysis not in ANALYSES:
        raise AnalysisJobError(f"Unknown analysis '{analysis}'. Available: {', '.join(ANALYSES)}")

    try:
        result = ANALYSES[analysis](repo, **params)

        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, 'w') as f:
            json.dump(result, f, indent=2, default=str)

        logger.info(f"{analysis} analysis written to {output_path}")

        return {
            'analysis': analysis,
            'status': 'completed',
            'output_path': str(output_path),
            'result': result,
            'error_message': None,
            'duration_seconds': (datetime.now() - start_time).total_seconds()
        }

    except (AnalysisJobError, InsufficientDataError, OSError) as e:
        logger.error(f"{analysis} analysis failed: {e}")
        return {
            'analysis': analysis,
            'status': 'failed',
            'output_path': None,
            'result': None,
            'error_message': str(e),
            'duration_seconds': (datetime.now() - start_time).total_seconds()
        }
