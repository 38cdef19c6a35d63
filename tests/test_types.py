"""
tests/test_types.py

Structural invariants of the pipeline value types.
"""

from __future__ import annotations

import pytest

from forecast.errors import MissingStayDurationError, SeriesAlignmentError
from forecast.types import (
    AnnualSeries,
    MonthlySeries,
    SeasonalIndex,
    SiteRatios,
    StayDuration,
    TimeSeriesPoint,
    VisitorType,
    YearMonth,
)
from tests.factories import make_annual, make_monthly


class TestVisitorType:
    @pytest.mark.parametrize("label", ["Domestic", "domestic", " DOMESTIC ", VisitorType.DOMESTIC])
    def test_parse_is_case_insensitive(self, label: object) -> None:
        assert VisitorType.parse(label) is VisitorType.DOMESTIC

    def test_parse_unknown_raises(self) -> None:
        with pytest.raises(SeriesAlignmentError):
            VisitorType.parse("Interstate")


class TestYearMonth:
    def test_next_rolls_over_year(self) -> None:
        assert YearMonth(2024, 12).next() == YearMonth(2025, 1)

    def test_ordering(self) -> None:
        assert YearMonth(2024, 12) < YearMonth(2025, 1)

    def test_parse(self) -> None:
        assert YearMonth.parse("2019-07") == YearMonth(2019, 7)
        assert str(YearMonth(2019, 7)) == "2019-07"

    def test_invalid_month(self) -> None:
        with pytest.raises(ValueError):
            YearMonth(2020, 13)


class TestAnnualSeries:
    def test_missing_years(self) -> None:
        series = AnnualSeries(
            key=VisitorType.DOMESTIC,
            points=(
                TimeSeriesPoint(2018, VisitorType.DOMESTIC, 1.0),
                TimeSeriesPoint(2021, VisitorType.DOMESTIC, 2.0),
            ),
        )
        assert series.missing_years() == (2019, 2020)

    def test_rejects_unordered_years(self) -> None:
        with pytest.raises(SeriesAlignmentError):
            AnnualSeries(
                key=VisitorType.DOMESTIC,
                points=(
                    TimeSeriesPoint(2021, VisitorType.DOMESTIC, 1.0),
                    TimeSeriesPoint(2020, VisitorType.DOMESTIC, 2.0),
                ),
            )

    def test_rejects_foreign_key(self) -> None:
        with pytest.raises(SeriesAlignmentError):
            AnnualSeries(
                key=VisitorType.DOMESTIC,
                points=(TimeSeriesPoint(2021, VisitorType.INTERNATIONAL, 1.0),),
            )

    def test_years_and_values(self) -> None:
        series = make_annual(VisitorType.INTERNATIONAL, 2020, [5, 6])
        assert series.years == (2020, 2021)
        assert series.values == (5.0, 6.0)


class TestMonthlySeries:
    def test_rejects_duplicate_months(self) -> None:
        with pytest.raises(SeriesAlignmentError):
            MonthlySeries(
                (
                    TimeSeriesPoint(YearMonth(2020, 1), None, 1.0),
                    TimeSeriesPoint(YearMonth(2020, 1), None, 2.0),
                )
            )

    def test_truncate_drops_prefix(self) -> None:
        series = make_monthly(YearMonth(2019, 11), [1, 2, 3, 4])
        truncated = series.truncate(YearMonth(2020, 1))
        assert truncated.periods == (YearMonth(2020, 1), YearMonth(2020, 2))

    def test_is_contiguous(self) -> None:
        assert make_monthly(YearMonth(2019, 11), [1, 2, 3]).is_contiguous()
        gapped = MonthlySeries(
            (
                TimeSeriesPoint(YearMonth(2020, 1), None, 1.0),
                TimeSeriesPoint(YearMonth(2020, 3), None, 2.0),
            )
        )
        assert not gapped.is_contiguous()


class TestSeasonalIndex:
    def test_accepts_normalised_index(self) -> None:
        factors = {month: 1.0 for month in range(1, 13)}
        factors.update({1: 1.1, 2: 0.9})
        index = SeasonalIndex(factors)
        assert index[1] == 1.1
        assert sum(index.values()) / 12 == pytest.approx(1.0, abs=1e-9)

    def test_rejects_unnormalised_index(self) -> None:
        with pytest.raises(ValueError):
            SeasonalIndex({month: 2.0 for month in range(1, 13)})

    def test_rejects_missing_month(self) -> None:
        with pytest.raises(ValueError):
            SeasonalIndex({month: 1.0 for month in range(1, 12)})

    def test_normalized_divides_by_mean(self) -> None:
        raw = {month: float(month) for month in range(1, 13)}
        index = SeasonalIndex.normalized(raw)
        assert sum(index.values()) / 12 == pytest.approx(1.0, abs=1e-9)
        assert index[12] / index[1] == pytest.approx(12.0)

    def test_normalized_rejects_zero_mean(self) -> None:
        with pytest.raises(ValueError):
            SeasonalIndex.normalized({month: 0.0 for month in range(1, 13)})

    def test_is_read_only(self) -> None:
        index = SeasonalIndex({month: 1.0 for month in range(1, 13)})
        with pytest.raises(TypeError):
            index.factors[1] = 2.0  # type: ignore[index]


class TestStayDuration:
    def test_parses_labels(self) -> None:
        stays = StayDuration({"domestic": 3.5})
        assert stays[VisitorType.DOMESTIC] == 3.5
        assert stays.get(VisitorType.INTERNATIONAL) is None

    @pytest.mark.parametrize("nights", [0.0, -1.0, float("nan")])
    def test_rejects_non_positive(self, nights: float) -> None:
        with pytest.raises(MissingStayDurationError):
            StayDuration({VisitorType.DOMESTIC: nights})


class TestSiteRatios:
    def test_unknown_differs_from_zero(self) -> None:
        ratios = SiteRatios({"A": 0.0, "B": 0.4})
        assert ratios.get("A") == 0.0
        assert ratios.get("C") is None

    def test_residual(self) -> None:
        ratios = SiteRatios({"A": 0.3, "B": 0.4})
        assert ratios.total == pytest.approx(0.7)
        assert ratios.residual == pytest.approx(0.3)

    def test_rejects_sum_above_one(self) -> None:
        with pytest.raises(ValueError):
            SiteRatios({"A": 0.6, "B": 0.5})

    @pytest.mark.parametrize("share", [-0.1, 1.5])
    def test_rejects_out_of_range(self, share: float) -> None:
        with pytest.raises(ValueError):
            SiteRatios({"A": share})
