"""
forecast/trend.py

Damped-trend exponential smoothing for annual visitor-night series.

The model is ETS(A,Ad,N) (additive error, damped additive trend, no
seasonality) implemented with NumPy only.  Each visitor type is fitted
independently; fits run on a small thread pool and are merged in a
deterministic (year, visitor type) order.
"""

from __future__ import annotations

import logging
import math
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Mapping, Optional, Sequence, Union

import numpy as np

from forecast.base import BaseTrendModel, TrendProjection
from forecast.errors import InsufficientDataError
from forecast.types import AnnualSeries, TrendForecast, TrendForecastPoint, VisitorType, key_rank

logger = logging.getLogger(__name__)

# Standard normal quantile for a central 80 % interval.
Z_80: float = 1.2815515655446004

# Candidate smoothing parameters for the SSE grid search.
_SMOOTHING_GRID = tuple(round(0.05 * step, 2) for step in range(1, 20))


def _validate_damping(damping: float) -> float:
    damping = float(damping)
    if not 0.0 < damping <= 1.0:
        raise ValueError(f"damping must be in (0, 1], got {damping!r}")
    return damping


class DampedTrendModel(BaseTrendModel):
    """
    Additive damped-trend exponential smoothing with a fixed damping φ.

    State recursion for t = 2..n, seeded with ℓ₁ = y₁ and b₁ = y₂ − y₁:

        ŷₜ = ℓₜ₋₁ + φ bₜ₋₁
        eₜ = yₜ − ŷₜ
        ℓₜ = ŷₜ + α eₜ
        bₜ = φ bₜ₋₁ + β eₜ

    α and β (β ≤ α) are picked from a fixed grid by minimising the sum of
    squared one-step errors; the first minimum wins, so fits are
    deterministic.

    Forecasts h steps past the last observation:

        mean_h = ℓₙ + (φ + φ² + … + φʰ) bₙ
        var_h  = σ² (1 + Σ_{j=1}^{h-1} cⱼ²),  cⱼ = α + β φ (1 − φʲ) / (1 − φ)

    with cⱼ = α + β j when φ = 1, and σ² the mean squared one-step error.
    """

    MIN_POINTS: int = 2

    def __init__(self, damping: float = 0.98) -> None:
        self._damping = _validate_damping(damping)

    @property
    def damping(self) -> float:
        return self._damping

    def project(self, values: Sequence[float], horizon: int) -> TrendProjection:
        y = np.asarray(values, dtype=np.float64)
        if y.size < self.MIN_POINTS:
            raise InsufficientDataError(
                f"Insufficient data: need at least {self.MIN_POINTS} points, got {y.size}."
            )
        if not np.all(np.isfinite(y)):
            raise InsufficientDataError("Annual series contains non-finite values.")
        if horizon < 1:
            raise ValueError(f"horizon must be a positive integer, got {horizon!r}")

        best: Optional[tuple[float, float, float, float, float]] = None
        for alpha in _SMOOTHING_GRID:
            for beta in _SMOOTHING_GRID:
                if beta > alpha:
                    break
                sse, level, trend = self._filter(y, alpha, beta)
                if best is None or sse < best[0]:
                    best = (sse, alpha, beta, level, trend)

        assert best is not None
        sse, alpha, beta, level, trend = best
        sigma = math.sqrt(sse / (y.size - 1))

        phi = self._damping
        steps = np.arange(1, horizon + 1, dtype=np.float64)
        mean = level + np.cumsum(phi ** steps) * trend

        lags = steps[:-1]
        if phi == 1.0:
            c = alpha + beta * lags
        else:
            c = alpha + beta * phi * (1.0 - phi ** lags) / (1.0 - phi)
        variance_multiplier = 1.0 + np.concatenate(([0.0], np.cumsum(c ** 2)))
        width = Z_80 * sigma * np.sqrt(variance_multiplier)

        return TrendProjection(mean=mean, lower=mean - width, upper=mean + width)

    def _filter(self, y: np.ndarray, alpha: float, beta: float) -> tuple[float, float, float]:
        phi = self._damping
        level = float(y[0])
        trend = float(y[1] - y[0])
        sse = 0.0
        for observed in y[1:]:
            predicted = level + phi * trend
            error = float(observed) - predicted
            sse += error * error
            level = predicted + alpha * error
            trend = phi * trend + beta * error
        return sse, level, trend


AnnualInput = Union[AnnualSeries, Sequence[AnnualSeries], Mapping[VisitorType, AnnualSeries]]


class TrendForecaster:
    """
    Fits one trend model per visitor type and projects *horizon* years ahead.

    Parameters
    ----------
    damping:
        Trend damping φ in (0, 1]; 1.0 is an undamped (Holt) trend.
    model:
        Optional :class:`BaseTrendModel`; defaults to :class:`DampedTrendModel`
        with the same damping.
    max_workers:
        Thread pool size for per-key fits.  ``1`` forces sequential fitting.
    """

    MIN_PERIODS: int = 2
    # Below this length the fit is allowed but intervals are wide.
    RECOMMENDED_PERIODS: int = 8

    def __init__(
        self,
        damping: float = 0.98,
        model: Optional[BaseTrendModel] = None,
        max_workers: Optional[int] = None,
    ) -> None:
        self._damping = _validate_damping(damping)
        self._model = model if model is not None else DampedTrendModel(self._damping)
        self._max_workers = max_workers

    @property
    def damping(self) -> float:
        return self._damping

    def forecast(self, series: AnnualInput, horizon: int) -> TrendForecast:
        """
        Forecast every supplied visitor type *horizon* years past its last year.

        Raises
        ------
        InsufficientDataError
            If any series has fewer than two years or is missing years.
        ValueError
            If *horizon* is not a positive integer.
        """
        if isinstance(horizon, bool) or not isinstance(horizon, int) or horizon < 1:
            raise ValueError(f"horizon must be a positive integer, got {horizon!r}")

        by_key = _series_by_key(series)
        if not by_key:
            raise InsufficientDataError("No annual series supplied.")
        for annual in by_key.values():
            self._validate(annual)

        if len(by_key) == 1 or self._max_workers == 1:
            results = {key: self._forecast_one(annual, horizon) for key, annual in by_key.items()}
        else:
            with ThreadPoolExecutor(max_workers=self._max_workers or len(by_key)) as pool:
                futures = {
                    key: pool.submit(self._forecast_one, annual, horizon)
                    for key, annual in by_key.items()
                }
                results = {key: future.result() for key, future in futures.items()}

        points = sorted(
            (point for key_points in results.values() for point in key_points),
            key=lambda point: (point.year, key_rank(point.key)),
        )
        return TrendForecast(points=tuple(points), horizon=horizon, damping=self._damping)

    def _validate(self, annual: AnnualSeries) -> None:
        if len(annual) < self.MIN_PERIODS:
            raise InsufficientDataError(
                f"{annual.key.value} series has {len(annual)} year(s); "
                f"a trend needs at least {self.MIN_PERIODS}."
            )
        gaps = annual.missing_years()
        if gaps:
            raise InsufficientDataError(
                f"{annual.key.value} series is missing years {list(gaps)}."
            )
        if len(annual) < self.RECOMMENDED_PERIODS:
            logger.warning(
                "Trend fit for %s uses only %d years; prediction intervals will be wide",
                annual.key.value,
                len(annual),
            )

    def _forecast_one(self, annual: AnnualSeries, horizon: int) -> list[TrendForecastPoint]:
        projection = self._model.project(annual.values, horizon)
        last_year = annual.years[-1]
        logger.debug(
            "Trend fitted key=%s years=%d..%d horizon=%d",
            annual.key.value,
            annual.years[0],
            last_year,
            horizon,
        )
        return [
            TrendForecastPoint(
                year=last_year + step + 1,
                key=annual.key,
                mean=float(projection.mean[step]),
                lower80=float(projection.lower[step]),
                upper80=float(projection.upper[step]),
            )
            for step in range(horizon)
        ]


def _series_by_key(series: AnnualInput) -> Dict[VisitorType, AnnualSeries]:
    if isinstance(series, AnnualSeries):
        return {series.key: series}
    if isinstance(series, Mapping):
        items = list(series.values())
    else:
        items = list(series)

    by_key: Dict[VisitorType, AnnualSeries] = {}
    for annual in items:
        if annual.key in by_key:
            raise ValueError(f"Duplicate annual series for {annual.key.value}")
        by_key[annual.key] = annual
    return dict(sorted(by_key.items(), key=lambda item: key_rank(item[0])))
