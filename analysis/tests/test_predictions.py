"""
Tests for price prediction methods.
Synthetic price paths where the moving averages and regression line are known.
"""

import pytest
from datetime import date, timedelta

from analysis.models import PricePoint
from analysis.calculations.predictions import (
    predict_with_moving_averages,
    predict_with_linear_regression,
    predict_with_ensemble,
    moving_average_outcome,
    InsufficientData,
    InsufficientDataError,
    METHOD_MOVING_AVERAGE,
    METHOD_LINEAR_REGRESSION,
    METHOD_ENSEMBLE,
    MIXED_SIGNALS_NOTE
)


START = date(2020, 1, 1)


def _series(closes, start=START):
    return [
        PricePoint(date=start + timedelta(days=i), open=c, high=c, low=c, close=c)
        for i, c in enumerate(closes)
    ]


@pytest.fixture
def rising_prices():
    """250 points rising by 1 per day: 100 .. 349."""
    return _series([100.0 + i for i in range(250)])


@pytest.fixture
def flat_prices():
    return _series([100.0] * 250)


@pytest.fixture
def reversal_prices():
    """Long rise followed by a 60-day decline of 0.5 per day."""
    rising = [100.0 + i for i in range(200)]
    falling = [299.0 - 0.5 * k for k in range(1, 61)]
    return _series(rising + falling)


class TestMovingAveragePrediction:
    """Tests for the moving-average momentum method."""

    def test_insufficient_data(self):
        prices = _series([100.0] * 199)

        with pytest.raises(InsufficientDataError, match="need at least 200 days, have 199") as exc_info:
            predict_with_moving_averages(prices)

        assert exc_info.value.required == 200
        assert exc_info.value.available == 199

    def test_outcome_tag_instead_of_raise(self):
        outcome = moving_average_outcome(_series([100.0] * 10))

        assert isinstance(outcome, InsufficientData)
        assert outcome.method == METHOD_MOVING_AVERAGE
        assert outcome.available == 10
        assert isinstance(outcome.to_error(), InsufficientDataError)

    def test_exactly_minimum_points(self):
        """200 points is enough and yields 30 consecutive future dates."""
        prices = _series([100.0 + i for i in range(200)])

        result = predict_with_moving_averages(prices)

        assert len(result.predictions) == 30
        last_date = prices[-1].date
        expected_dates = [(last_date + timedelta(days=d)).isoformat() for d in range(1, 31)]
        assert [p.date for p in result.predictions] == expected_dates

    def test_bullish_trend_without_crossover(self, rising_prices):
        result = predict_with_moving_averages(rising_prices)

        assert result.trend == 'bullish'
        assert result.signals == ['Price above both moving averages - Bullish trend']
        assert result.current_price == 349.0

    def test_momentum_projection(self, rising_prices):
        """SMA50 rises by 1 per day, damped by 0.8 over the first week."""
        result = predict_with_moving_averages(rising_prices)

        assert result.predictions[0].predicted_price == pytest.approx(349.0 + 0.8)
        assert result.predictions[6].predicted_price == pytest.approx(349.0 + 7 * 0.8)
        assert result.predictions[7].predicted_price == pytest.approx(349.0 + 8 * 0.5)
        assert result.predictions[29].predicted_price == pytest.approx(349.0 + 30 * 0.3)
        assert result.predicted_change == pytest.approx(5.6)
        assert result.predicted_change_percent == pytest.approx(5.6 / 349.0 * 100)

    def test_confidence_tiers(self, rising_prices):
        result = predict_with_moving_averages(rising_prices)
        tiers = [p.confidence for p in result.predictions]

        assert tiers[:7] == ['high'] * 7
        assert tiers[7:14] == ['medium'] * 7
        assert tiers[14:] == ['low'] * 16
        assert all(p.method == METHOD_MOVING_AVERAGE for p in result.predictions)

    def test_golden_cross(self):
        prices = _series([100.0] * 250 + [200.0])

        result = predict_with_moving_averages(prices)

        assert result.trend == 'bullish'
        assert result.signals == ['Golden Cross detected - Strong bullish signal']

    def test_death_cross(self):
        prices = _series([100.0] * 250 + [50.0])

        result = predict_with_moving_averages(prices)

        assert result.trend == 'bearish'
        assert result.signals == ['Death Cross detected - Strong bearish signal']

    def test_equal_averages_neutral(self, flat_prices):
        result = predict_with_moving_averages(flat_prices)

        assert result.trend == 'neutral'
        assert result.signals == []
        assert all(p.predicted_price == 100.0 for p in result.predictions)

    def test_predictions_never_negative(self):
        prices = _series([1000.0] * 200 + [1000.0 - 20 * k for k in range(1, 50)])

        result = predict_with_moving_averages(prices)

        assert all(p.predicted_price >= 0 for p in result.predictions)


class TestLinearRegressionPrediction:
    """Tests for the trend-line method."""

    def test_insufficient_data(self):
        with pytest.raises(InsufficientDataError, match="need at least 30 days, have 29"):
            predict_with_linear_regression(_series([100.0] * 29))

    def test_invalid_horizon(self):
        with pytest.raises(ValueError, match="days_ahead must be positive"):
            predict_with_linear_regression(_series([100.0] * 30), days_ahead=0)

    def test_uses_trailing_sixty_points(self, rising_prices):
        """Line through the last 60 closes (290 .. 349) continues at 350."""
        result = predict_with_linear_regression(rising_prices)

        assert len(result.predictions) == 7
        assert result.predictions[0].predicted_price == pytest.approx(350.0)
        assert result.predictions[6].predicted_price == pytest.approx(356.0)
        assert result.predicted_change == pytest.approx(7.0)
        assert result.trend == 'bullish'
        assert result.signals == ['Positive trend detected (slope: 1.0000)']

    def test_negative_slope(self):
        result = predict_with_linear_regression(_series([200.0 - 2 * i for i in range(40)]))

        assert result.trend == 'bearish'
        assert result.signals == ['Negative trend detected (slope: -2.0000)']

    def test_flat_series(self):
        result = predict_with_linear_regression(_series([100.0] * 45))

        assert result.trend == 'neutral'
        assert result.signals == ['Sideways trend detected (slope: 0.0000)']
        assert result.predicted_change == 0

    def test_confidence_tiers(self):
        result = predict_with_linear_regression(_series([100.0 + i for i in range(30)]), days_ahead=10)
        tiers = [p.confidence for p in result.predictions]

        assert tiers == ['high'] * 3 + ['medium'] * 4 + ['low'] * 3
        assert all(p.method == METHOD_LINEAR_REGRESSION for p in result.predictions)

    def test_short_horizon_headline(self):
        """Headline change uses the last prediction when fewer than 7 exist."""
        prices = _series([100.0 + i for i in range(30)])

        result = predict_with_linear_regression(prices, days_ahead=3)

        assert result.predicted_change == pytest.approx(result.predictions[2].predicted_price - 129.0)

    def test_clamped_at_zero(self):
        prices = _series([600.0 - 10 * i for i in range(60)])

        result = predict_with_linear_regression(prices)

        assert all(p.predicted_price == 0.0 for p in result.predictions)
        assert result.predicted_change_percent == pytest.approx(-100.0)


class TestEnsemblePrediction:
    """Tests for the weighted blend."""

    def test_weighted_blend(self, rising_prices):
        ma = predict_with_moving_averages(rising_prices)
        lr = predict_with_linear_regression(rising_prices, 30)

        result = predict_with_ensemble(rising_prices)

        assert len(result.predictions) == 30
        for i in range(30):
            expected = 0.6 * ma.predictions[i].predicted_price + 0.4 * lr.predictions[i].predicted_price
            assert result.predictions[i].predicted_price == pytest.approx(expected)
            assert result.predictions[i].confidence == ma.predictions[i].confidence
            assert result.predictions[i].method == METHOD_ENSEMBLE

        day7 = 0.6 * (349.0 + 7 * 0.8) + 0.4 * 356.0
        assert result.predictions[6].predicted_price == pytest.approx(day7)
        assert result.predicted_change == pytest.approx(day7 - 349.0)

    def test_agreeing_trends(self, rising_prices):
        result = predict_with_ensemble(rising_prices)

        assert result.trend == 'bullish'
        assert result.signals == [
            'Price above both moving averages - Bullish trend',
            'Positive trend detected (slope: 1.0000)'
        ]

    def test_mixed_signals(self, reversal_prices):
        result = predict_with_ensemble(reversal_prices)

        assert result.trend == 'neutral'
        assert len(result.signals) == 3
        assert result.signals[0] == 'Price above both moving averages - Bullish trend'
        assert result.signals[1].startswith('Negative trend detected')
        assert result.signals[-1] == MIXED_SIGNALS_NOTE

    def test_both_neutral(self, flat_prices):
        result = predict_with_ensemble(flat_prices)

        assert result.trend == 'neutral'
        assert MIXED_SIGNALS_NOTE not in result.signals

    def test_falls_back_to_regression(self):
        prices = _series([100.0 + i for i in range(199)])

        result = predict_with_ensemble(prices)

        assert len(result.predictions) == 30
        assert all(p.method == METHOD_LINEAR_REGRESSION for p in result.predictions)
        assert result.signals == ['Positive trend detected (slope: 1.0000)']

    def test_too_short_for_any_method(self):
        with pytest.raises(InsufficientDataError):
            predict_with_ensemble(_series([100.0] * 29))

    def test_to_dict(self, rising_prices):
        data = predict_with_ensemble(rising_prices).to_dict()

        assert set(data.keys()) == {
            'predictions', 'current_price', 'predicted_change',
            'predicted_change_percent', 'trend', 'signals'
        }
        assert data['predictions'][0]['method'] == METHOD_ENSEMBLE
