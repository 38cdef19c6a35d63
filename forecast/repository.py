"""
forecast/repository.py

SQLAlchemy ORM model and repository for persisted forecast runs.
No forecasting logic lives here.

Site-level forecasts are never stored: they are recomputed on read from the
persisted daily estimates and a ratio table (see
:meth:`ForecastRunRepository.site_forecast_view`).
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from sqlalchemy import JSON, DateTime, Float, Index, Integer, String, Uuid, select
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, Session, mapped_column

from db.base import Base
from forecast.sites import SiteDisaggregation, SiteDisaggregator
from forecast.stay import aggregate_estimates
from forecast.types import (
    DailyVisitorEstimate,
    SeasonalIndex,
    SiteRatios,
    TrendForecast,
    VisitorType,
)

_JSON = JSON().with_variant(JSONB(), "postgresql")


# ---------------------------------------------------------------------------
# ORM model
# ---------------------------------------------------------------------------

class ForecastRun(Base):
    """
    Snapshot of one completed forecast run for a region.

    Columns
    -------
    id              – surrogate primary key (UUID v4).
    region          – region/catchment the run was produced for.
    horizon         – forecast horizon in years.
    damping         – trend damping φ used for the fit.
    seasonal_model  – ``"multiplicative"`` or ``"additive"``.
    seasonal_index  – list of ``{"month", "index"}`` objects.
    trend_forecast  – list of annual points with 80 % intervals.
    daily_estimates – list of monthly daily-visitor estimates per visitor type.
    created_at      – UTC timestamp set at insert time.
    """

    __tablename__ = "forecast_runs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    region: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    horizon: Mapped[int] = mapped_column(Integer, nullable=False)
    damping: Mapped[float] = mapped_column(Float, nullable=False)
    seasonal_model: Mapped[str] = mapped_column(String(32), nullable=False)
    seasonal_index: Mapped[list] = mapped_column(_JSON, nullable=False)
    trend_forecast: Mapped[list] = mapped_column(_JSON, nullable=False)
    daily_estimates: Mapped[list] = mapped_column(_JSON, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        Index("ix_forecast_runs_region_created_at", "region", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<ForecastRun id={self.id} region={self.region!r} "
            f"horizon={self.horizon} damping={self.damping}>"
        )


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------

class ForecastRunRepository:
    """
    Data-access layer for :class:`ForecastRun`.

    The caller owns the transaction: the repository adds rows to the session
    but never commits or rolls back.

    Parameters
    ----------
    session:
        An active :class:`sqlalchemy.orm.Session`.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def save_run(
        self,
        *,
        region: str,
        trend: TrendForecast,
        seasonal_index: SeasonalIndex,
        seasonal_model: str,
        daily_estimates: Iterable[DailyVisitorEstimate],
        created_at: Optional[datetime] = None,
    ) -> ForecastRun:
        """
        Add a run snapshot to the session and return the mapped instance.

        Naive *created_at* values are assumed to be UTC.
        """
        record = ForecastRun(
            region=region,
            horizon=trend.horizon,
            damping=trend.damping,
            seasonal_model=seasonal_model,
            seasonal_index=[
                {"month": month, "index": value}
                for month, value in seasonal_index.as_dict().items()
            ],
            trend_forecast=[
                {
                    "year": point.year,
                    "visitor_type": point.key.value,
                    "mean": point.mean,
                    "lower80": point.lower80,
                    "upper80": point.upper80,
                }
                for point in trend
            ],
            daily_estimates=[_estimate_payload(estimate) for estimate in daily_estimates],
        )
        if created_at is not None:
            if created_at.tzinfo is None:
                created_at = created_at.replace(tzinfo=timezone.utc)
            record.created_at = created_at

        self._session.add(record)
        return record

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def get_latest_run(self, region: str) -> Optional[ForecastRun]:
        """
        Return the most recently created run for *region*, or ``None``.
        """
        stmt = (
            select(ForecastRun)
            .where(ForecastRun.region == region)
            .order_by(ForecastRun.created_at.desc())
            .limit(1)
        )
        return self._session.scalars(stmt).first()

    @staticmethod
    def load_daily_estimates(record: ForecastRun) -> tuple[DailyVisitorEstimate, ...]:
        return tuple(
            DailyVisitorEstimate(
                year=int(item["year"]),
                month=int(item["month"]),
                key=VisitorType.parse(item["visitor_type"]) if item["visitor_type"] else None,
                monthly_nights=float(item["monthly_nights"]),
                avg_stay=float(item["avg_stay"]),
                daily_visitors=float(item["daily_visitors"]),
            )
            for item in record.daily_estimates
        )

    def site_forecast_view(
        self,
        record: ForecastRun,
        ratios: SiteRatios,
        sites: Optional[Iterable[str]] = None,
        aggregate: bool = True,
    ) -> SiteDisaggregation:
        """
        Recompute site forecasts for a stored run against *ratios*.

        With *aggregate* set, daily estimates are summed across visitor
        types before disaggregation.
        """
        estimates = self.load_daily_estimates(record)
        if aggregate:
            estimates = aggregate_estimates(estimates)
        return SiteDisaggregator().disaggregate(estimates, ratios, sites=sites)


def _estimate_payload(estimate: DailyVisitorEstimate) -> dict[str, Any]:
    return {
        "year": estimate.year,
        "month": estimate.month,
        "visitor_type": estimate.key.value if estimate.key is not None else None,
        "monthly_nights": estimate.monthly_nights,
        "avg_stay": estimate.avg_stay,
        "daily_visitors": estimate.daily_visitors,
    }
