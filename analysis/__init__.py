"""
Analysis Engine Module

Calculates crypto price analytics from stored price history:
- Returns and moving averages
- Volatility (daily, annualized, rolling)
- Return correlations across cryptocurrencies
- Seasonal patterns (month, quarter, day of week)
- Market-cap dominance
- Short-horizon price predictions
"""

__version__ = "0.1.0"
