"""
tests/test_seasonal.py

SeasonalExtractor with the real STL decomposer and with a stub decomposer
whose seasonal component is known exactly.
"""

from __future__ import annotations

import math

import numpy as np
import pytest

from forecast.errors import DecompositionError
from forecast.seasonal import SeasonalExtractor, STLDecomposer
from forecast.types import MonthlySeries, YearMonth
from tests.factories import SEASONAL_PROFILE, StubDecomposer, make_monthly, occupancy_values


def _mean(values) -> float:
    values = list(values)
    return sum(values) / len(values)


class TestNormalisation:
    def test_index_mean_is_one(self, monthly_series: MonthlySeries) -> None:
        index = SeasonalExtractor().extract(monthly_series)
        assert sorted(index) == list(range(1, 13))
        assert _mean(index.values()) == pytest.approx(1.0, abs=1e-9)

    def test_index_recovers_seasonal_shape(self, monthly_series: MonthlySeries) -> None:
        index = SeasonalExtractor().extract(monthly_series)
        peak = max(index, key=lambda month: index[month])
        trough = min(index, key=lambda month: index[month])
        assert peak == 1
        assert trough == 7

    def test_additive_model_is_normalised(self, monthly_series: MonthlySeries) -> None:
        index = SeasonalExtractor(model="additive").extract(monthly_series)
        assert _mean(index.values()) == pytest.approx(1.0, abs=1e-9)
        assert index[1] > index[7]


class TestWindowBoundary:
    def test_exactly_24_months_succeeds(self) -> None:
        start = YearMonth(2018, 1)
        series = make_monthly(start, occupancy_values(start, 24))
        index = SeasonalExtractor().extract(series)
        assert _mean(index.values()) == pytest.approx(1.0, abs=1e-9)

    def test_23_months_raises(self) -> None:
        start = YearMonth(2018, 1)
        series = make_monthly(start, occupancy_values(start, 23))
        with pytest.raises(DecompositionError):
            SeasonalExtractor().extract(series)

    def test_window_need_not_start_in_january(self) -> None:
        start = YearMonth(2018, 7)
        series = make_monthly(start, occupancy_values(start, 30))
        index = SeasonalExtractor().extract(series)
        assert _mean(index.values()) == pytest.approx(1.0, abs=1e-9)


class TestInputValidation:
    def test_gap_raises(self) -> None:
        start = YearMonth(2018, 1)
        series = make_monthly(start, occupancy_values(start, 30))
        gapped = MonthlySeries(tuple(p for i, p in enumerate(series.points) if i != 10))
        with pytest.raises(DecompositionError, match="missing months"):
            SeasonalExtractor().extract(gapped)

    def test_multiplicative_rejects_zero(self) -> None:
        start = YearMonth(2018, 1)
        values = occupancy_values(start, 24)
        values[3] = 0.0
        with pytest.raises(DecompositionError):
            SeasonalExtractor().extract(make_monthly(start, values))

    def test_unknown_model(self) -> None:
        with pytest.raises(ValueError):
            SeasonalExtractor(model="logistic")

    def test_stl_rejects_even_smoother(self) -> None:
        with pytest.raises(ValueError):
            STLDecomposer(seasonal=8)


class TestPostProcessing:
    def test_multiplicative_factors_average_by_month(self) -> None:
        # Position 0 of the stub pattern is January because the series starts there.
        pattern = [math.log(SEASONAL_PROFILE[month]) for month in range(1, 13)]
        stub = StubDecomposer(pattern)
        series = make_monthly(YearMonth(2018, 1), [0.5] * 36)

        index = SeasonalExtractor(decomposer=stub).extract(series)

        profile_mean = _mean(SEASONAL_PROFILE.values())
        for month, factor in SEASONAL_PROFILE.items():
            assert index[month] == pytest.approx(factor / profile_mean)
        assert stub.calls == 1

    def test_additive_factors_scale_by_level(self) -> None:
        pattern = [0.1 if month == 1 else -0.1 / 11 for month in range(1, 13)]
        series = make_monthly(YearMonth(2018, 1), [2.0] * 24)

        index = SeasonalExtractor(decomposer=StubDecomposer(pattern), model="additive").extract(series)

        raw_january = 1.0 + 0.1 / 2.0
        raw_other = 1.0 - (0.1 / 11) / 2.0
        raw_mean = (raw_january + 11 * raw_other) / 12
        assert index[1] == pytest.approx(raw_january / raw_mean)
        assert index[2] == pytest.approx(raw_other / raw_mean)

    def test_decomposer_failure_becomes_decomposition_error(self) -> None:
        class _Failing(StubDecomposer):
            def decompose(self, values, period):
                raise ValueError("boom")

        series = make_monthly(YearMonth(2018, 1), [1.0] * 24)
        with pytest.raises(DecompositionError, match="boom"):
            SeasonalExtractor(decomposer=_Failing([0.0])).extract(series)

    def test_decompose_exposes_components(self, monthly_series: MonthlySeries) -> None:
        decomposition = SeasonalExtractor().decompose(monthly_series)
        logged = np.log(np.asarray(monthly_series.values))
        rebuilt = decomposition.trend + decomposition.seasonal + decomposition.remainder
        assert rebuilt == pytest.approx(logged)

