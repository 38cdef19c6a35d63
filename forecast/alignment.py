"""
forecast/alignment.py

Normalises already-parsed input tables into typed pipeline series.

Every method is a pure function of the DataFrame it receives: columns are
validated, values are coerced to the declared numeric type, wide per-key
columns are melted into long (period, key, value) rows and the result is
sorted by period.  Filters that match nothing raise instead of returning an
empty series.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, Mapping, Optional

import pandas as pd

from forecast.errors import FilterMatchError, MissingStayDurationError, SeriesAlignmentError
from forecast.types import (
    AnnualSeries,
    MonthlySeries,
    SiteRatios,
    StayDuration,
    TimeSeriesPoint,
    VisitorType,
    YearMonth,
    key_rank,
)

logger = logging.getLogger(__name__)

VALUE_DTYPES = ("int", "float")

DEFAULT_KEY_COLUMNS: Mapping[str, VisitorType] = {
    "Domestic": VisitorType.DOMESTIC,
    "International": VisitorType.INTERNATIONAL,
}

_YEAR = "_year"
_KEY = "_key"
_VALUE = "_value"


class SeriesAligner:
    """
    Converts raw tables into :class:`AnnualSeries`, :class:`MonthlySeries`
    and the static lookup tables used downstream.

    Parameters
    ----------
    region_column, metric_column:
        Column names used by region/metric filtered tables.
    """

    def __init__(self, region_column: str = "Region", metric_column: str = "Metric") -> None:
        self._region_column = region_column
        self._metric_column = metric_column

    # ------------------------------------------------------------------
    # Annual series
    # ------------------------------------------------------------------

    def annual_series(
        self,
        table: pd.DataFrame,
        *,
        period_column: str = "Year",
        key_column: str = "VisitorType",
        value_column: str = "Nights",
        value_dtype: str = "float",
    ) -> Dict[VisitorType, AnnualSeries]:
        """Build one annual series per visitor type from a long table."""
        _require_columns(table, (period_column, key_column, value_column))
        if table.empty:
            raise SeriesAlignmentError("Annual table has no rows.")

        long = pd.DataFrame(
            {
                _YEAR: _coerce(table[period_column], "int", period_column),
                _KEY: table[key_column].map(_key_label),
                _VALUE: _coerce(table[value_column], value_dtype, value_column),
            }
        )
        return _annual_from_long(long)

    def regional_annual_series(
        self,
        table: pd.DataFrame,
        *,
        region: str,
        metric: str,
        period_column: str = "Year",
        key_columns: Optional[Mapping[str, VisitorType]] = None,
        value_dtype: str = "float",
    ) -> Dict[VisitorType, AnnualSeries]:
        """
        Filter a regional table to one region/metric and melt its wide
        per-visitor-type columns into annual series.

        Raises
        ------
        FilterMatchError
            If no row matches *region* and *metric*.
        """
        key_columns = dict(key_columns or DEFAULT_KEY_COLUMNS)
        _require_columns(table, (period_column, *key_columns))
        filtered = self._filter(table, region=region, metric=metric)

        melted = filtered.melt(
            id_vars=[period_column],
            value_vars=list(key_columns),
            var_name=_KEY,
            value_name=_VALUE,
        )
        long = pd.DataFrame(
            {
                _YEAR: _coerce(melted[period_column], "int", period_column),
                _KEY: melted[_KEY].map(lambda column: _key_label(key_columns[column])),
                _VALUE: _coerce(melted[_VALUE], value_dtype, "visitor-type columns"),
            }
        )
        return _annual_from_long(long)

    # ------------------------------------------------------------------
    # Monthly series
    # ------------------------------------------------------------------

    def monthly_series(
        self,
        table: pd.DataFrame,
        *,
        period_column: str = "Month",
        value_column: str = "OccupancyRate",
        start: Optional[YearMonth] = None,
    ) -> MonthlySeries:
        """
        Build the unkeyed monthly series, optionally dropping every month
        before *start*.
        """
        _require_columns(table, (period_column, value_column))
        if table.empty:
            raise SeriesAlignmentError("Monthly table has no rows.")

        stamps = pd.to_datetime(table[period_column], errors="coerce")
        if stamps.isna().any():
            bad = table.loc[stamps.isna(), period_column].tolist()
            raise SeriesAlignmentError(f"Unparseable {period_column!r} values: {bad[:5]}")

        frame = pd.DataFrame(
            {
                "year": stamps.dt.year.astype("int64"),
                "month": stamps.dt.month.astype("int64"),
                _VALUE: _coerce(table[value_column], "float", value_column),
            }
        )
        duplicated = frame.duplicated(subset=["year", "month"], keep=False)
        if duplicated.any():
            months = sorted(
                {
                    str(YearMonth(int(year), int(month)))
                    for year, month in zip(frame.loc[duplicated, "year"], frame.loc[duplicated, "month"])
                }
            )
            raise SeriesAlignmentError(f"Duplicate months in monthly table: {months}")

        frame = frame.sort_values(["year", "month"], kind="mergesort")
        series = MonthlySeries(
            tuple(
                TimeSeriesPoint(period=YearMonth(int(year), int(month)), key=None, value=float(value))
                for year, month, value in zip(frame["year"], frame["month"], frame[_VALUE])
            )
        )
        if start is not None:
            series = series.truncate(start)
            logger.debug("Monthly series truncated to start=%s (%d months kept)", start, len(series))
        return series

    # ------------------------------------------------------------------
    # Static lookup tables
    # ------------------------------------------------------------------

    def stay_durations(
        self,
        table: pd.DataFrame,
        *,
        region: str,
        metric: str,
        key_column: str = "VisitorType",
        value_column: str = "AvgStayNights",
    ) -> StayDuration:
        """
        Read average nights per visit for *region*/*metric*.

        A blank, zero or negative stay raises :class:`MissingStayDurationError`.
        """
        _require_columns(table, (key_column, value_column))
        filtered = self._filter(table, region=region, metric=metric)

        labels = filtered[key_column].map(_key_label)
        if labels.duplicated().any():
            dupes = sorted(set(labels[labels.duplicated()]))
            raise SeriesAlignmentError(f"Duplicate stay durations for {dupes}")

        raw = filtered[value_column]
        blank = raw.isna() | (raw.astype(str).str.strip() == "")
        if blank.any():
            raise MissingStayDurationError(
                f"Missing average stay for visitor type(s) {sorted(set(labels[blank]))}"
            )
        nights = _coerce(raw, "float", value_column)
        return StayDuration({VisitorType(label): value for label, value in zip(labels, nights)})

    def site_ratios(
        self,
        table: pd.DataFrame,
        *,
        site_column: str = "SiteId",
        ratio_column: str = "Ratio",
    ) -> SiteRatios:
        """Read the frozen site → trip-share table."""
        _require_columns(table, (site_column, ratio_column))
        sites = table[site_column].astype(str).str.strip()
        if sites.duplicated().any():
            raise SeriesAlignmentError(
                f"Duplicate site ids: {sorted(set(sites[sites.duplicated()]))}"
            )
        shares = _coerce(table[ratio_column], "float", ratio_column)
        try:
            return SiteRatios(dict(zip(sites, shares)))
        except ValueError as exc:
            raise SeriesAlignmentError(str(exc)) from exc

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _filter(self, table: pd.DataFrame, *, region: str, metric: str) -> pd.DataFrame:
        _require_columns(table, (self._region_column, self._metric_column))
        mask = (table[self._region_column].astype(str).str.strip() == region.strip()) & (
            table[self._metric_column].astype(str).str.strip() == metric.strip()
        )
        if not mask.any():
            raise FilterMatchError(f"No rows match region={region!r} metric={metric!r}.")
        return table.loc[mask]


def _require_columns(table: pd.DataFrame, columns: Iterable[str]) -> None:
    missing = [column for column in columns if column not in table.columns]
    if missing:
        raise SeriesAlignmentError(f"Input table is missing column(s): {missing}")


def _coerce(values: pd.Series, dtype: str, label: str) -> pd.Series:
    """Coerce *values* to numbers, rejecting blanks and, for ints, fractions."""
    if dtype not in VALUE_DTYPES:
        raise ValueError(f"Unknown value dtype {dtype!r}. Valid dtypes: {list(VALUE_DTYPES)}")

    numeric = pd.to_numeric(values, errors="coerce")
    if numeric.isna().any():
        bad = values[numeric.isna()].tolist()
        raise SeriesAlignmentError(f"Non-numeric values in {label!r}: {bad[:5]}")
    if dtype == "int":
        if not (numeric % 1 == 0).all():
            bad = values[numeric % 1 != 0].tolist()
            raise SeriesAlignmentError(f"Non-integral values in {label!r}: {bad[:5]}")
        return numeric.astype("int64")
    return numeric.astype("float64")


def _key_label(label: object) -> str:
    """Canonical visitor-type label; frames hold plain strings, not enum members."""
    return VisitorType.parse(label).value


def _annual_from_long(long: pd.DataFrame) -> Dict[VisitorType, AnnualSeries]:
    duplicated = long.duplicated(subset=[_YEAR, _KEY], keep=False)
    if duplicated.any():
        pairs = sorted(
            {(int(year), str(label)) for year, label in zip(long.loc[duplicated, _YEAR], long.loc[duplicated, _KEY])}
        )
        raise SeriesAlignmentError(f"Duplicate (year, visitor type) rows: {pairs}")

    result: Dict[VisitorType, AnnualSeries] = {}
    for label, rows in long.groupby(_KEY, sort=False):
        key = VisitorType(str(label))
        rows = rows.sort_values(_YEAR, kind="mergesort")
        result[key] = AnnualSeries(
            key=key,
            points=tuple(
                TimeSeriesPoint(period=int(year), key=key, value=float(value))
                for year, value in zip(rows[_YEAR], rows[_VALUE])
            ),
        )

    empty = [key.value for key, series in result.items() if len(series) == 0]
    if empty or not result:
        raise SeriesAlignmentError(f"Annual table produced empty series for {empty or 'every visitor type'}")
    return dict(sorted(result.items(), key=lambda item: key_rank(item[0])))
