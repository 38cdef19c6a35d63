"""
forecast/composer.py

Expands annual trend forecasts into monthly projections.
No estimation, no I/O, no state.
"""

from __future__ import annotations

from forecast.types import (
    MONTHS,
    MonthlyForecast,
    MonthlyForecastPoint,
    SeasonalIndex,
    TrendForecast,
    key_rank,
)


class ForecastComposer:
    """
    Applies a shared seasonal index to every annual forecast point.

    For each forecast year, visitor type and calendar month:

        monthly_value = annual_mean × (1 + seasonal_index[month])

    The seasonal index modulates the annual level; it does not split the
    annual total, so the 12 monthly values do not sum to ``annual_mean``.
    The same index is used for every visitor type.

    Output rows are ordered by year, calendar month, then visitor type.
    """

    def compose(self, trend: TrendForecast, index: SeasonalIndex) -> MonthlyForecast:
        points = [
            MonthlyForecastPoint(
                year=point.year,
                month=month,
                key=point.key,
                value=point.mean * (1.0 + index[month]),
            )
            for point in trend
            for month in MONTHS
        ]
        points.sort(key=lambda p: (p.year, p.month, key_rank(p.key)))
        return MonthlyForecast(points=tuple(points))
