"""
tests/test_repository.py

ForecastRunRepository against an in-memory SQLite database.
"""

from __future__ import annotations

from datetime import datetime, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from db.base import Base
from forecast.repository import ForecastRun, ForecastRunRepository
from forecast.types import (
    DailyVisitorEstimate,
    SeasonalIndex,
    SiteRatios,
    TrendForecast,
    TrendForecastPoint,
    VisitorType,
)


@pytest.fixture()
def session():
    engine = create_engine("sqlite://")
    Base.metadata.create_all(engine)
    with Session(engine) as db_session:
        yield db_session
    engine.dispose()


def _trend() -> TrendForecast:
    return TrendForecast(
        points=(
            TrendForecastPoint(2026, VisitorType.DOMESTIC, 100.0, 90.0, 110.0),
            TrendForecastPoint(2026, VisitorType.INTERNATIONAL, 40.0, 30.0, 50.0),
        ),
        horizon=1,
        damping=0.98,
    )


def _daily() -> tuple[DailyVisitorEstimate, ...]:
    return (
        DailyVisitorEstimate(2026, 1, VisitorType.DOMESTIC, 400.0, 4.0, 100.0),
        DailyVisitorEstimate(2026, 1, VisitorType.INTERNATIONAL, 800.0, 8.0, 100.0),
    )


def _save(repo: ForecastRunRepository, region: str, created_at: datetime) -> ForecastRun:
    return repo.save_run(
        region=region,
        trend=_trend(),
        seasonal_index=SeasonalIndex({month: 1.0 for month in range(1, 13)}),
        seasonal_model="multiplicative",
        daily_estimates=_daily(),
        created_at=created_at,
    )


class TestSaveRun:
    def test_round_trips_snapshot_columns(self, session: Session) -> None:
        repo = ForecastRunRepository(session)
        record = _save(repo, "Coast", datetime(2026, 10, 1, tzinfo=timezone.utc))
        session.flush()

        stored = session.get(ForecastRun, record.id)
        assert stored is not None
        assert stored.horizon == 1
        assert stored.damping == 0.98
        assert stored.seasonal_index[0] == {"month": 1, "index": 1.0}
        assert stored.trend_forecast[1]["visitor_type"] == "International"
        assert len(stored.daily_estimates) == 2

    def test_repository_does_not_commit(self, session: Session) -> None:
        repo = ForecastRunRepository(session)
        _save(repo, "Coast", datetime(2026, 10, 1, tzinfo=timezone.utc))
        session.flush()
        session.rollback()
        assert repo.get_latest_run("Coast") is None


class TestReads:
    def test_latest_run_is_newest_for_region(self, session: Session) -> None:
        repo = ForecastRunRepository(session)
        _save(repo, "Coast", datetime(2026, 1, 1, tzinfo=timezone.utc))
        newest = _save(repo, "Coast", datetime(2026, 6, 1))
        _save(repo, "Inland", datetime(2026, 9, 1, tzinfo=timezone.utc))
        session.flush()

        assert repo.get_latest_run("Coast").id == newest.id
        assert repo.get_latest_run("Alpine") is None

    def test_load_daily_estimates(self, session: Session) -> None:
        repo = ForecastRunRepository(session)
        record = _save(repo, "Coast", datetime(2026, 1, 1, tzinfo=timezone.utc))
        session.flush()

        assert repo.load_daily_estimates(record) == _daily()

    def test_site_view_is_recomputed_from_ratios(self, session: Session) -> None:
        repo = ForecastRunRepository(session)
        record = _save(repo, "Coast", datetime(2026, 1, 1, tzinfo=timezone.utc))
        session.flush()

        view = repo.site_forecast_view(
            record, SiteRatios({"A": 0.5, "B": 0.25}), sites=["A", "B", "C"]
        )
        by_site = {p.site_id: p.daily_visitors for p in view.forecasts}
        assert by_site == {"A": pytest.approx(100.0), "B": pytest.approx(50.0)}
        assert [gap.site_id for gap in view.coverage_gaps] == ["C"]

        keyed = repo.site_forecast_view(record, SiteRatios({"A": 0.5}), aggregate=False)
        assert [p.key for p in keyed.forecasts] == [VisitorType.DOMESTIC, VisitorType.INTERNATIONAL]
