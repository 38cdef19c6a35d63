"""
forecast/orchestrator.py

Coordinates the visitor forecast pipeline:

    trend fit ∥ seasonal extraction → composition → stay conversion
    → site disaggregation → (optional) persist

Contains no forecasting math.  Inputs are already-aligned series and
lookup tables (see :mod:`forecast.alignment`).

Failure contract
----------------
- Any precondition error before disaggregation aborts the run; nothing is
  returned and nothing is persisted.
- Sites without a ratio entry are reported on the result as coverage gaps;
  the run still succeeds.
- Persistence failure rolls the session back and raises
  :class:`ForecastPersistenceError`.
"""

from __future__ import annotations

import logging
import time
import uuid
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, Optional

import pandas as pd
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import ForecastSettings, get_forecast_settings
from app.logging_utils import log_event
from forecast.composer import ForecastComposer
from forecast.errors import ForecastPersistenceError
from forecast.repository import ForecastRunRepository
from forecast.seasonal import SeasonalExtractor, STLDecomposer
from forecast.sites import SiteDisaggregation, SiteDisaggregator
from forecast.stay import StayDurationConverter, aggregate_estimates
from forecast.tables import (
    daily_visitor_table,
    monthly_forecast_table,
    seasonal_index_table,
    site_forecast_table,
    trend_forecast_table,
)
from forecast.trend import AnnualInput, TrendForecaster
from forecast.types import (
    DailyVisitorEstimate,
    MonthlyForecast,
    MonthlySeries,
    SeasonalIndex,
    SiteRatios,
    StayDuration,
    TrendForecast,
    YearMonth,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Result dataclass
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class VisitorForecastRun:
    """
    Structured output of a single pipeline run.

    Attributes
    ----------
    region:
        Region/catchment label the run was produced for.
    trend:
        Annual trend forecast per visitor type.
    seasonal_index:
        Normalised 12-month index shared by every visitor type.
    monthly:
        Monthly visitor-night projections.
    daily:
        Daily-visitor estimates per visitor type.
    sites:
        Site-level forecasts and any ratio coverage gaps.
    record_id:
        Primary key of the persisted ``ForecastRun`` row, or ``None`` when
        the run was not persisted.
    computed_at:
        UTC timestamp when the run completed.
    """

    region: str
    trend: TrendForecast
    seasonal_index: SeasonalIndex
    monthly: MonthlyForecast
    daily: tuple[DailyVisitorEstimate, ...]
    sites: SiteDisaggregation
    record_id: Optional[uuid.UUID]
    computed_at: datetime

    def tables(self) -> dict[str, pd.DataFrame]:
        return {
            "trend": trend_forecast_table(self.trend),
            "seasonal_index": seasonal_index_table(self.seasonal_index),
            "monthly": monthly_forecast_table(self.monthly),
            "daily": daily_visitor_table(self.daily),
            "sites": site_forecast_table(self.sites.forecasts),
        }


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------


class VisitorForecastOrchestrator:
    """
    Thin coordinator that wires the pipeline stages together.

    Stage objects are stateless, so one orchestrator can serve many runs.

    Parameters
    ----------
    settings:
        Forecast settings; defaults to :func:`get_forecast_settings`.
    trend_forecaster, seasonal_extractor:
        Optional pre-built stages, mainly for substituting estimators.
    """

    def __init__(
        self,
        settings: Optional[ForecastSettings] = None,
        trend_forecaster: Optional[TrendForecaster] = None,
        seasonal_extractor: Optional[SeasonalExtractor] = None,
    ) -> None:
        self._settings = settings or get_forecast_settings()
        self._trend_forecaster = trend_forecaster or TrendForecaster(
            damping=self._settings.damping,
            max_workers=self._settings.max_workers,
        )
        self._seasonal_extractor = seasonal_extractor or SeasonalExtractor(
            decomposer=STLDecomposer(
                seasonal=self._settings.stl_seasonal,
                robust=self._settings.stl_robust,
            ),
            model=self._settings.seasonal_model,
        )
        self._composer = ForecastComposer()
        self._converter = StayDurationConverter()
        self._disaggregator = SiteDisaggregator()

    # ------------------------------------------------------------------
    # Public entry point
    # ------------------------------------------------------------------

    def run(
        self,
        *,
        region: str,
        annual: AnnualInput,
        monthly: MonthlySeries,
        stays: StayDuration,
        ratios: SiteRatios,
        horizon: Optional[int] = None,
        seasonal_start: Optional[YearMonth] = None,
        sites: Optional[Iterable[str]] = None,
        aggregate_sites: bool = True,
        session: Optional[Session] = None,
    ) -> VisitorForecastRun:
        """
        Execute the full pipeline for one region.

        Steps
        -----
        1. Truncate the monthly series at *seasonal_start* (or the configured
           start) to drop anomalous history.
        2. Fit the annual trend and extract the seasonal index concurrently.
        3. Compose monthly projections.
        4. Convert visitor-nights to daily visitors.
        5. Disaggregate daily visitors to sites (summed across visitor types
           unless *aggregate_sites* is false).
        6. Persist the run when *session* is given; the caller commits.

        Raises
        ------
        InsufficientDataError, DecompositionError, MissingStayDurationError
            On any precondition failure; no partial result is produced.
        ForecastPersistenceError
            If the run cannot be added to the session.
        """
        horizon = horizon if horizon is not None else self._settings.horizon
        start = seasonal_start or self._settings.seasonal_start

        run_start = time.monotonic()
        log_event(logger, logging.INFO, "forecast_run_started", region=region, horizon=horizon)

        # Step 1 – anomalous prefix
        if start is not None:
            monthly = monthly.truncate(start)
            logger.debug("Seasonal window starts at %s (%d months)", start, len(monthly))

        # Step 2 – independent fits
        with ThreadPoolExecutor(max_workers=2) as pool:
            trend_future = pool.submit(self._trend_forecaster.forecast, annual, horizon)
            seasonal_future = pool.submit(self._seasonal_extractor.extract, monthly)
            trend = trend_future.result()
            seasonal_index = seasonal_future.result()
        log_event(
            logger,
            logging.INFO,
            "forecast_models_fitted",
            region=region,
            visitor_types=[key.value for key in trend.keys()],
            seasonal_model=self._seasonal_extractor.model,
        )

        # Step 3 & 4 – monthly projection and daily conversion
        monthly_forecast = self._composer.compose(trend, seasonal_index)
        daily = self._converter.convert(monthly_forecast, stays)

        # Step 5 – sites
        site_input = aggregate_estimates(daily) if aggregate_sites else daily
        site_result = self._disaggregator.disaggregate(site_input, ratios, sites=sites)
        if site_result.coverage_gaps:
            log_event(
                logger,
                logging.WARNING,
                "site_ratio_coverage_gap",
                region=region,
                sites=[gap.site_id for gap in site_result.coverage_gaps],
            )

        # Step 6 – persist
        record_id = None
        if session is not None:
            record_id = self._persist(
                session=session,
                region=region,
                trend=trend,
                seasonal_index=seasonal_index,
                daily=daily,
            )

        elapsed = time.monotonic() - run_start
        log_event(
            logger,
            logging.INFO,
            "forecast_run_completed",
            region=region,
            monthly_rows=len(monthly_forecast),
            site_rows=len(site_result.forecasts),
            record_id=record_id,
            elapsed_seconds=round(elapsed, 3),
        )

        return VisitorForecastRun(
            region=region,
            trend=trend,
            seasonal_index=seasonal_index,
            monthly=monthly_forecast,
            daily=daily,
            sites=site_result,
            record_id=record_id,
            computed_at=datetime.now(tz=timezone.utc),
        )

    # ------------------------------------------------------------------
    # Internal: persistence
    # ------------------------------------------------------------------

    def _persist(
        self,
        *,
        session: Session,
        region: str,
        trend: TrendForecast,
        seasonal_index: SeasonalIndex,
        daily: tuple[DailyVisitorEstimate, ...],
    ) -> uuid.UUID:
        repo = ForecastRunRepository(session)
        try:
            record = repo.save_run(
                region=region,
                trend=trend,
                seasonal_index=seasonal_index,
                seasonal_model=self._seasonal_extractor.model,
                daily_estimates=daily,
            )
            session.flush()
        except SQLAlchemyError as exc:
            session.rollback()
            logger.exception("Forecast run persistence failed region=%r", region)
            raise ForecastPersistenceError(
                f"Could not persist forecast run for region {region!r}"
            ) from exc
        return record.id
