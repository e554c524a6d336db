"""
Value records shared by the calculation modules.
Immutable dataclasses with to_dict() for JSON output.
"""

from dataclasses import dataclass, field, asdict
from datetime import date, datetime
from typing import Dict, Any, List, Optional, Union


@dataclass(frozen=True)
class PricePoint:
    """One daily OHLCV row for a single instrument."""
    date: date
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0
    market_cap: Optional[float] = None
    crypto_id: Optional[int] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> 'PricePoint':
        """
        Build a PricePoint from a database or DataFrame row.

        Accepts date, datetime, or ISO string dates; time of day is dropped.
        Missing open/high/low fall back to close.
        """
        close = float(row['close'])
        market_cap = row.get('market_cap')
        if market_cap is not None and market_cap == market_cap:  # NaN check
            market_cap = float(market_cap)
        else:
            market_cap = None

        return cls(
            date=to_date(row['date']),
            open=_float_or(row.get('open'), close),
            high=_float_or(row.get('high'), close),
            low=_float_or(row.get('low'), close),
            close=close,
            volume=_float_or(row.get('volume'), 0.0),
            market_cap=market_cap,
            crypto_id=_int_or_none(row.get('crypto_id'))
        )

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['date'] = self.date.isoformat()
        return data


@dataclass(frozen=True)
class SeasonalStats:
    """Descriptive statistics for one seasonal bucket."""
    period: str
    average_return: float = 0.0
    median_return: float = 0.0
    positive_count: int = 0
    negative_count: int = 0
    total_count: int = 0
    win_rate: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class MonthlyPattern:
    month: int
    month_name: str
    data: SeasonalStats

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class QuarterlyPattern:
    quarter: int
    quarter_name: str
    data: SeasonalStats

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class DayOfWeekPattern:
    day_index: int
    day_name: str
    data: SeasonalStats

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


SeasonalPattern = Union[MonthlyPattern, QuarterlyPattern, DayOfWeekPattern]


@dataclass(frozen=True)
class DominancePoint:
    """Share of total tracked market cap held by the reference instrument on one date."""
    date: str
    dominant_market_cap: float
    total_market_cap: float
    dominance_percentage: float
    remainder_market_cap: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class DominanceStats:
    current: float = 0.0
    average: float = 0.0
    max: float = 0.0
    min: float = 0.0
    trend: str = 'stable'

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class PredictionPoint:
    date: str
    predicted_price: float
    confidence: str
    method: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class PredictionResult:
    """Forecast path plus headline change, trend, and signal notes."""
    predictions: List[PredictionPoint]
    current_price: float
    predicted_change: float
    predicted_change_percent: float
    trend: str
    signals: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'predictions': [p.to_dict() for p in self.predictions],
            'current_price': self.current_price,
            'predicted_change': self.predicted_change,
            'predicted_change_percent': self.predicted_change_percent,
            'trend': self.trend,
            'signals': list(self.signals)
        }


def to_date(value: Union[date, datetime, str]) -> date:
    """Normalize a date-like value to a calendar date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    # Strings such as '2021-07-06' or '2021-07-06 23:59:59'
    return date.fromisoformat(str(value)[:10])


def _float_or(value: Any, default: float) -> float:
    if value is None or value == '':
        return default
    value = float(value)
    if value != value:  # NaN
        return default
    return value


def _int_or_none(value: Any) -> Optional[int]:
    if value is None or value != value:
        return None
    return int(value)
