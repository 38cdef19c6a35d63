"""
forecast/seasonal.py

Seasonal index extraction from a monthly series.

The series is decomposed with a robust STL (statsmodels); the seasonal
component is turned into per-period factors, averaged by calendar month
across all years and normalised so the 12 multipliers have mean 1.0.
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence

import numpy as np
import pandas as pd
from statsmodels.tsa.seasonal import STL

from forecast.base import BaseSeasonalDecomposer, Decomposition
from forecast.errors import DecompositionError
from forecast.types import MonthlySeries, SeasonalIndex

logger = logging.getLogger(__name__)

SEASONAL_MODELS = ("multiplicative", "additive")


class STLDecomposer(BaseSeasonalDecomposer):
    """
    Seasonal-trend decomposition using LOESS.

    Parameters
    ----------
    seasonal:
        Length of the seasonal smoother; odd and at least 3.
    robust:
        Down-weight large remainders so outliers do not leak into the
        seasonal component.
    """

    def __init__(self, seasonal: int = 7, robust: bool = True) -> None:
        if seasonal < 3 or seasonal % 2 == 0:
            raise ValueError(f"seasonal must be an odd integer >= 3, got {seasonal!r}")
        self._seasonal = seasonal
        self._robust = robust

    def decompose(self, values: Sequence[float], period: int) -> Decomposition:
        result = STL(
            np.asarray(values, dtype=np.float64),
            period=period,
            seasonal=self._seasonal,
            robust=self._robust,
        ).fit()
        return Decomposition(
            trend=np.asarray(result.trend, dtype=np.float64),
            seasonal=np.asarray(result.seasonal, dtype=np.float64),
            remainder=np.asarray(result.resid, dtype=np.float64),
        )


class SeasonalExtractor:
    """
    Derives a normalised 12-month :class:`SeasonalIndex` from a monthly series.

    Callers are expected to truncate structurally anomalous history (see
    :meth:`MonthlySeries.truncate`) before extraction.

    Models
    ------
    ``"multiplicative"`` (default)
        Decomposes ``log(values)``; per-period factor is ``exp(seasonal)``.
        Every value must be strictly positive.
    ``"additive"``
        Decomposes the raw values; per-period factor is
        ``1 + seasonal / mean(values)``.
    """

    PERIOD: int = 12
    MIN_MONTHS: int = 24

    def __init__(
        self,
        decomposer: Optional[BaseSeasonalDecomposer] = None,
        model: str = "multiplicative",
    ) -> None:
        if model not in SEASONAL_MODELS:
            raise ValueError(f"Unknown seasonal model {model!r}. Valid models: {list(SEASONAL_MODELS)}")
        self._decomposer = decomposer if decomposer is not None else STLDecomposer()
        self._model = model

    @property
    def model(self) -> str:
        return self._model

    def decompose(self, series: MonthlySeries) -> Decomposition:
        """Validate *series* and return its raw decomposition."""
        if len(series) < self.MIN_MONTHS:
            raise DecompositionError(
                f"Seasonal decomposition needs at least {self.MIN_MONTHS} months "
                f"(two full cycles), got {len(series)}."
            )
        if not series.is_contiguous():
            raise DecompositionError("Monthly series has missing months.")

        values = np.asarray(series.values, dtype=np.float64)
        if not np.all(np.isfinite(values)):
            raise DecompositionError("Monthly series contains non-finite values.")
        if self._model == "multiplicative":
            if np.any(values <= 0.0):
                raise DecompositionError(
                    "Multiplicative decomposition needs strictly positive values."
                )
            values = np.log(values)

        try:
            return self._decomposer.decompose(values, self.PERIOD)
        except ValueError as exc:
            raise DecompositionError(f"Seasonal decomposition failed: {exc}") from exc

    def extract(self, series: MonthlySeries) -> SeasonalIndex:
        """
        Return the normalised seasonal index of *series*.

        Raises
        ------
        DecompositionError
            If fewer than 24 contiguous months are present, values are
            unsuitable for the chosen model, or the profile cannot be
            normalised.
        """
        decomposition = self.decompose(series)
        if self._model == "multiplicative":
            factors = np.exp(decomposition.seasonal)
        else:
            level = float(np.mean(series.values))
            if level == 0.0:
                raise DecompositionError("Additive decomposition needs a non-zero mean level.")
            factors = 1.0 + decomposition.seasonal / level

        months = [period.month for period in series.periods]
        profile = pd.Series(factors, index=months).groupby(level=0).mean()

        try:
            index = SeasonalIndex.normalized(profile.to_dict())
        except ValueError as exc:
            raise DecompositionError(f"Seasonal profile cannot be normalised: {exc}") from exc

        logger.debug(
            "Seasonal index extracted model=%s months=%d start=%s end=%s",
            self._model,
            len(series),
            series.periods[0],
            series.periods[-1],
        )
        return index
