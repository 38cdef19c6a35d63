"""
app/config.py

Environment-driven settings for the visitor forecast pipeline.

Every getter is cached; call ``cache_clear()`` on it after changing the
environment (tests do this through a fixture).
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from db.config import load_env_files
from forecast.seasonal import SEASONAL_MODELS
from forecast.types import YearMonth


@lru_cache(maxsize=1)
def _load_env_once() -> None:
    """
    Ensure project `.env` files are loaded once before reading settings.
    """

    load_env_files()


def _get_bool_env(name: str, default: bool) -> bool:
    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    return raw_value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int_env(name: str, default: int) -> int:
    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return int(raw_value)
    except ValueError:
        return default


def _get_float_env(name: str, default: float) -> float:
    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return float(raw_value)
    except ValueError:
        return default


def _get_str_env(name: str, default: str) -> str:
    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return default
    stripped = value.strip()
    return stripped if stripped else default


def _get_year_month_env(name: str) -> YearMonth | None:
    """
    Read an optional ``YYYY-MM`` value; unparseable values are ignored.
    """

    _load_env_once()
    value = (os.getenv(name) or "").strip()
    if not value:
        return None
    try:
        return YearMonth.parse(value)
    except ValueError:
        return None


@dataclass(frozen=True)
class ForecastSettings:
    """
    Runtime parameters of a forecast run.
    """

    damping: float = 0.98
    horizon: int = 10
    seasonal_model: str = "multiplicative"
    stl_seasonal: int = 7
    stl_robust: bool = True
    seasonal_start: YearMonth | None = None
    max_workers: int = 2


@dataclass(frozen=True)
class DatabaseSettings:
    """
    Connection pool settings for the forecast store.
    """

    echo: bool = False
    pool_recycle: int = 1800
    pool_size: int = 5
    max_overflow: int = 10


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"


@lru_cache(maxsize=1)
def get_forecast_settings() -> ForecastSettings:
    """
    Return cached forecast settings from environment variables.

    Out-of-range numbers are clamped and unknown seasonal models fall back
    to the default rather than failing at import time.
    """

    seasonal_model = _get_str_env("FORECAST_SEASONAL_MODEL", "multiplicative").lower()
    if seasonal_model not in SEASONAL_MODELS:
        seasonal_model = "multiplicative"

    stl_seasonal = max(3, _get_int_env("FORECAST_STL_SEASONAL", 7))
    if stl_seasonal % 2 == 0:
        stl_seasonal += 1

    return ForecastSettings(
        damping=min(1.0, max(0.01, _get_float_env("FORECAST_DAMPING", 0.98))),
        horizon=max(1, _get_int_env("FORECAST_HORIZON", 10)),
        seasonal_model=seasonal_model,
        stl_seasonal=stl_seasonal,
        stl_robust=_get_bool_env("FORECAST_STL_ROBUST", True),
        seasonal_start=_get_year_month_env("FORECAST_SEASONAL_START"),
        max_workers=max(1, _get_int_env("FORECAST_MAX_WORKERS", 2)),
    )


@lru_cache(maxsize=1)
def get_database_settings() -> DatabaseSettings:
    return DatabaseSettings(
        echo=_get_bool_env("SQL_ECHO", False),
        pool_recycle=max(1, _get_int_env("DB_POOL_RECYCLE", 1800)),
        pool_size=max(1, _get_int_env("DB_POOL_SIZE", 5)),
        max_overflow=max(0, _get_int_env("DB_MAX_OVERFLOW", 10)),
    )


@lru_cache(maxsize=1)
def get_logging_settings() -> LoggingSettings:
    return LoggingSettings(level=_get_str_env("LOG_LEVEL", "INFO").upper())
