"""
forecast/tables.py

Converts pipeline results into the pandas tables handed to downstream
rendering and export collaborators.  Column sets are the binding contract.
"""

from __future__ import annotations

from typing import Iterable

import pandas as pd

from forecast.types import (
    DailyVisitorEstimate,
    MonthlyForecast,
    SeasonalIndex,
    SiteForecastPoint,
    TrendForecast,
)

TREND_COLUMNS = ["Year", "VisitorType", "Mean", "Lower80", "Upper80"]
SEASONAL_COLUMNS = ["Month", "Index"]
MONTHLY_COLUMNS = ["Year", "Month", "VisitorType", "Value"]
DAILY_COLUMNS = ["Year", "Month", "VisitorType", "DailyVisitors"]
SITE_COLUMNS = ["Year", "Month", "SiteId", "DailyVisitors"]


def _label(key: object) -> object:
    return None if key is None else key.value  # type: ignore[attr-defined]


def trend_forecast_table(trend: TrendForecast) -> pd.DataFrame:
    return pd.DataFrame(
        [(p.year, p.key.value, p.mean, p.lower80, p.upper80) for p in trend],
        columns=TREND_COLUMNS,
    )


def seasonal_index_table(index: SeasonalIndex) -> pd.DataFrame:
    return pd.DataFrame(list(index.as_dict().items()), columns=SEASONAL_COLUMNS)


def monthly_forecast_table(forecast: MonthlyForecast) -> pd.DataFrame:
    return pd.DataFrame(
        [(p.year, p.month, p.key.value, p.value) for p in forecast],
        columns=MONTHLY_COLUMNS,
    )


def daily_visitor_table(estimates: Iterable[DailyVisitorEstimate]) -> pd.DataFrame:
    """Aggregated estimates (``key=None``) get a null VisitorType."""
    return pd.DataFrame(
        [(e.year, e.month, _label(e.key), e.daily_visitors) for e in estimates],
        columns=DAILY_COLUMNS,
    )


def site_forecast_table(forecasts: Iterable[SiteForecastPoint]) -> pd.DataFrame:
    """
    One row per (year, month, site).  A ``VisitorType`` column is appended
    only when the disaggregated input was per visitor type.
    """
    rows = list(forecasts)
    if any(p.key is not None for p in rows):
        return pd.DataFrame(
            [(p.year, p.month, p.site_id, p.daily_visitors, _label(p.key)) for p in rows],
            columns=[*SITE_COLUMNS, "VisitorType"],
        )
    return pd.DataFrame(
        [(p.year, p.month, p.site_id, p.daily_visitors) for p in rows],
        columns=SITE_COLUMNS,
    )
