"""
Short-horizon price prediction.
Moving-average momentum, linear regression, and a weighted ensemble of both.

These are illustrative technical-analysis projections over historical data,
not trading advice.
"""

import logging
import numpy as np
from dataclasses import dataclass
from datetime import date, timedelta
from typing import List, Sequence, Tuple, Union

from analysis.calculations.returns import moving_average, percentage_change
from analysis.models import PricePoint, PredictionPoint, PredictionResult


logger = logging.getLogger(__name__)


SHORT_MA_WINDOW = 50
LONG_MA_WINDOW = 200
MOVING_AVERAGE_MIN_POINTS = 200
REGRESSION_MIN_POINTS = 30
REGRESSION_LOOKBACK = 60
FORECAST_HORIZON_DAYS = 30
HEADLINE_DAY = 7

ENSEMBLE_MA_WEIGHT = 0.6
ENSEMBLE_LR_WEIGHT = 0.4

METHOD_MOVING_AVERAGE = 'Moving Average Momentum'
METHOD_LINEAR_REGRESSION = 'Linear Regression'
METHOD_ENSEMBLE = 'Ensemble (MA + Linear Regression)'

MIXED_SIGNALS_NOTE = 'Mixed signals - Neutral stance recommended'


class InsufficientDataError(ValueError):
    """Raised when a series is shorter than a method's required minimum."""

    def __init__(self, method: str, required: int, available: int):
        self.method = method
        self.required = required
        self.available = available
        super().__init__(
            f"Insufficient data for {method} prediction: "
            f"need at least {required} days, have {available}"
        )


@dataclass(frozen=True)
class InsufficientData:
    """Typed outcome for a method that could not run on the given series."""
    method: str
    required: int
    available: int

    def to_error(self) -> InsufficientDataError:
        return InsufficientDataError(self.method, self.required, self.available)


MovingAverageOutcome = Union[PredictionResult, InsufficientData]


def _future_date(last_date: date, days_ahead: int) -> str:
    return (last_date + timedelta(days=days_ahead)).isoformat()


def _headline_change(current_price: float, predictions: List[PredictionPoint]) -> Tuple[float, float]:
    """Absolute and percent change from current price to the day-7 prediction."""
    future_price = predictions[min(HEADLINE_DAY, len(predictions)) - 1].predicted_price
    return future_price - current_price, percentage_change(current_price, future_price)


def _momentum_weight(days_ahead: int) -> Tuple[float, str]:
    """Momentum damping weight and confidence tier for a forecast day."""
    if days_ahead <= 7:
        return 0.8, 'high'
    if days_ahead <= 14:
        return 0.5, 'medium'
    return 0.3, 'low'


def _regression_confidence(days_ahead: int) -> str:
    if days_ahead <= 3:
        return 'high'
    if days_ahead <= 7:
        return 'medium'
    return 'low'


def moving_average_outcome(prices: Sequence[PricePoint]) -> MovingAverageOutcome:
    """
    Moving-average crossover forecast, or an InsufficientData tag.

    Golden cross: 50-day SMA crosses above the 200-day SMA (bullish).
    Death cross: 50-day SMA crosses below the 200-day SMA (bearish).
    Without a crossover on the last step, the trend follows which SMA is on
    top; equal SMAs leave the trend neutral.

    The forecast extends the 50-day SMA's last one-day change (momentum)
    for 30 days, damped by 0.8 / 0.5 / 0.3 for days 1-7 / 8-14 / 15-30.
    """
    if len(prices) < MOVING_AVERAGE_MIN_POINTS:
        return InsufficientData(METHOD_MOVING_AVERAGE, MOVING_AVERAGE_MIN_POINTS, len(prices))

    closes = [p.close for p in prices]
    current_price = closes[-1]
    last_date = prices[-1].date

    sma_short = moving_average(closes, SHORT_MA_WINDOW)
    sma_long = moving_average(closes, LONG_MA_WINDOW)

    current_short, prev_short = sma_short[-1], sma_short[-2]
    current_long, prev_long = sma_long[-1], sma_long[-2]

    signals = []
    trend = 'neutral'

    # With exactly 200 points the previous long SMA is NaN and every
    # comparison against it is False, so no crossover can be reported.
    if current_short > current_long and prev_short <= prev_long:
        signals.append('Golden Cross detected - Strong bullish signal')
        trend = 'bullish'
    elif current_short < current_long and prev_short >= prev_long:
        signals.append('Death Cross detected - Strong bearish signal')
        trend = 'bearish'
    elif current_short > current_long:
        signals.append('Price above both moving averages - Bullish trend')
        trend = 'bullish'
    elif current_short < current_long:
        signals.append('Price below both moving averages - Bearish trend')
        trend = 'bearish'

    momentum = float(current_short - prev_short)

    predictions = []
    for days_ahead in range(1, FORECAST_HORIZON_DAYS + 1):
        weight, confidence = _momentum_weight(days_ahead)
        predicted_price = current_price + momentum * days_ahead * weight

        predictions.append(PredictionPoint(
            date=_future_date(last_date, days_ahead),
            predicted_price=max(predicted_price, 0.0),
            confidence=confidence,
            method=METHOD_MOVING_AVERAGE
        ))

    predicted_change, predicted_change_percent = _headline_change(current_price, predictions)

    return PredictionResult(
        predictions=predictions,
        current_price=current_price,
        predicted_change=predicted_change,
        predicted_change_percent=predicted_change_percent,
        trend=trend,
        signals=signals
    )


def predict_with_moving_averages(prices: Sequence[PricePoint]) -> PredictionResult:
    """
    Moving-average crossover forecast over the next 30 days.

    Args:
        prices: Price history in chronological order (at least 200 points)

    Returns:
        PredictionResult with 30 daily predictions

    Raises:
        InsufficientDataError: If fewer than 200 points are given
    """
    outcome = moving_average_outcome(prices)
    if isinstance(outcome, InsufficientData):
        raise outcome.to_error()
    return outcome


def predict_with_linear_regression(
    prices: Sequence[PricePoint],
    days_ahead: int = 7
) -> PredictionResult:
    """
    Least-squares trend line extrapolation.

    Fits close ~ slope * x + intercept over the trailing 60 points with
    x = 0..n-1, then projects x = n .. n + days_ahead - 1.

    Args:
        prices: Price history in chronological order (at least 30 points)
        days_ahead: Number of daily predictions to produce

    Returns:
        PredictionResult; confidence is high for days 1-3, medium for 4-7,
        low beyond

    Raises:
        InsufficientDataError: If fewer than 30 points are given
        ValueError: If days_ahead is not positive
    """
    if len(prices) < REGRESSION_MIN_POINTS:
        raise InsufficientDataError(METHOD_LINEAR_REGRESSION, REGRESSION_MIN_POINTS, len(prices))

    if days_ahead <= 0:
        raise ValueError("days_ahead must be positive")

    recent = list(prices)[-REGRESSION_LOOKBACK:]
    y_values = np.array([p.close for p in recent], dtype=np.float64)
    current_price = float(y_values[-1])
    last_date = recent[-1].date

    n = len(y_values)
    x_values = np.arange(n, dtype=np.float64)

    sum_x = float(np.sum(x_values))
    sum_y = float(np.sum(y_values))
    sum_xy = float(np.sum(x_values * y_values))
    sum_x2 = float(np.sum(x_values * x_values))

    slope = (n * sum_xy - sum_x * sum_y) / (n * sum_x2 - sum_x * sum_x)
    intercept = (sum_y - slope * sum_x) / n

    predictions = []
    for day in range(1, days_ahead + 1):
        x = n + day - 1
        predicted_price = slope * x + intercept

        predictions.append(PredictionPoint(
            date=_future_date(last_date, day),
            predicted_price=max(predicted_price, 0.0),
            confidence=_regression_confidence(day),
            method=METHOD_LINEAR_REGRESSION
        ))

    predicted_change, predicted_change_percent = _headline_change(current_price, predictions)

    signals = []
    if slope > 0:
        trend = 'bullish'
        signals.append(f"Positive trend detected (slope: {slope:.4f})")
    elif slope < 0:
        trend = 'bearish'
        signals.append(f"Negative trend detected (slope: {slope:.4f})")
    else:
        trend = 'neutral'
        signals.append(f"Sideways trend detected (slope: {slope:.4f})")

    return PredictionResult(
        predictions=predictions,
        current_price=current_price,
        predicted_change=predicted_change,
        predicted_change_percent=predicted_change_percent,
        trend=trend,
        signals=signals
    )


def predict_with_ensemble(prices: Sequence[PricePoint]) -> PredictionResult:
    """
    Weighted blend of the moving-average and regression forecasts.

    Each day's price is 0.6 * MA + 0.4 * LR, with the MA confidence tier.
    The trend is the shared trend when both methods agree, otherwise
    neutral with a mixed-signals note. With fewer than 200 points the
    moving-average method cannot run and the result is the 30-day linear
    regression forecast alone.

    Args:
        prices: Price history in chronological order (at least 30 points)

    Returns:
        PredictionResult with 30 daily predictions

    Raises:
        InsufficientDataError: If fewer than 30 points are given
    """
    ma_outcome = moving_average_outcome(prices)

    if isinstance(ma_outcome, InsufficientData):
        logger.info(
            f"Moving average forecast unavailable ({ma_outcome.available} of "
            f"{ma_outcome.required} days), using linear regression only"
        )
        return predict_with_linear_regression(prices, FORECAST_HORIZON_DAYS)

    ma_prediction = ma_outcome
    lr_prediction = predict_with_linear_regression(prices, FORECAST_HORIZON_DAYS)

    predictions = []
    for ma_point, lr_point in zip(ma_prediction.predictions, lr_prediction.predictions):
        ensemble_price = (
            ma_point.predicted_price * ENSEMBLE_MA_WEIGHT
            + lr_point.predicted_price * ENSEMBLE_LR_WEIGHT
        )
        predictions.append(PredictionPoint(
            date=ma_point.date,
            predicted_price=ensemble_price,
            confidence=ma_point.confidence,
            method=METHOD_ENSEMBLE
        ))

    current_price = ma_prediction.current_price
    predicted_change, predicted_change_percent = _headline_change(current_price, predictions)

    signals = list(ma_prediction.signals) + list(lr_prediction.signals)

    if ma_prediction.trend == lr_prediction.trend:
        trend = ma_prediction.trend
    else:
        trend = 'neutral'
        signals.append(MIXED_SIGNALS_NOTE)

    return PredictionResult(
        predictions=predictions,
        current_price=current_price,
        predicted_change=predicted_change,
        predicted_change_percent=predicted_change_percent,
        trend=trend,
        signals=signals
    )
