"""
Shared fixtures for the forecast pipeline tests.
"""

from __future__ import annotations

import pytest

from app.config import get_database_settings, get_forecast_settings, get_logging_settings
from forecast.types import AnnualSeries, MonthlySeries, SiteRatios, StayDuration, VisitorType, YearMonth
from tests.factories import make_annual, make_monthly, occupancy_values

_CACHED_GETTERS = (get_forecast_settings, get_database_settings, get_logging_settings)


@pytest.fixture(autouse=True)
def _clear_settings_cache():
    """Settings getters are cached; reset them around every test."""
    for getter in _CACHED_GETTERS:
        getter.cache_clear()
    yield
    for getter in _CACHED_GETTERS:
        getter.cache_clear()


@pytest.fixture()
def annual_series() -> dict[VisitorType, AnnualSeries]:
    return {
        VisitorType.DOMESTIC: make_annual(
            VisitorType.DOMESTIC,
            2010,
            [820, 850, 871, 905, 930, 948, 990, 1012, 1040, 1075],
        ),
        VisitorType.INTERNATIONAL: make_annual(
            VisitorType.INTERNATIONAL,
            2010,
            [210, 214, 225, 231, 240, 238, 251, 262, 270, 281],
        ),
    }


@pytest.fixture()
def monthly_series() -> MonthlySeries:
    start = YearMonth(2015, 1)
    return make_monthly(start, occupancy_values(start, 60))


@pytest.fixture()
def stays() -> StayDuration:
    return StayDuration({VisitorType.DOMESTIC: 4.0, VisitorType.INTERNATIONAL: 8.0})


@pytest.fixture()
def ratios() -> SiteRatios:
    return SiteRatios({"CP-001": 0.25, "CP-002": 0.10, "CP-003": 0.0})
