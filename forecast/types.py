"""
forecast/types.py

Immutable value types shared by every stage of the visitor forecast pipeline.

No I/O and no estimation logic lives here; constructors only enforce the
structural invariants of each type (ordering, uniqueness, normalisation).
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Iterator, Mapping, Optional, Tuple, Union

import pandas as pd

from forecast.errors import MissingStayDurationError, SeriesAlignmentError

# Tolerance for the mean-1.0 invariant of a SeasonalIndex.
NORMALIZATION_TOLERANCE: float = 1e-9

# Slack allowed on the sum of site ratios before it counts as > 1.
RATIO_SUM_TOLERANCE: float = 1e-9

MONTHS: Tuple[int, ...] = tuple(range(1, 13))


# ---------------------------------------------------------------------------
# Keys and periods
# ---------------------------------------------------------------------------


class VisitorType(str, Enum):
    """Visitor segmentation used throughout the pipeline."""

    DOMESTIC = "Domestic"
    INTERNATIONAL = "International"

    @classmethod
    def parse(cls, label: object) -> "VisitorType":
        if isinstance(label, cls):
            return label
        text = str(label).strip().lower()
        for member in cls:
            if member.value.lower() == text or member.name.lower() == text:
                return member
        raise SeriesAlignmentError(
            f"Unknown visitor type {label!r}. "
            f"Valid types: {[member.value for member in cls]}"
        )


_KEY_RANK = {member: rank for rank, member in enumerate(VisitorType)}


def key_rank(key: Optional[VisitorType]) -> int:
    """Sort rank of a key; unkeyed (aggregate) rows sort first."""
    return -1 if key is None else _KEY_RANK[key]


@dataclass(frozen=True, order=True)
class YearMonth:
    """A calendar month of a specific year."""

    year: int
    month: int

    def __post_init__(self) -> None:
        if not 1 <= self.month <= 12:
            raise ValueError(f"month must be in 1..12, got {self.month}")

    def next(self) -> "YearMonth":
        if self.month == 12:
            return YearMonth(self.year + 1, 1)
        return YearMonth(self.year, self.month + 1)

    @classmethod
    def from_timestamp(cls, value: object) -> "YearMonth":
        stamp = pd.Timestamp(value)
        return cls(int(stamp.year), int(stamp.month))

    @classmethod
    def parse(cls, text: str) -> "YearMonth":
        """Parse ``"YYYY-MM"`` (or any date pandas understands)."""
        return cls.from_timestamp(text.strip())

    def __str__(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"


Period = Union[int, YearMonth]


@dataclass(frozen=True)
class TimeSeriesPoint:
    period: Period
    key: Optional[VisitorType]
    value: float


# ---------------------------------------------------------------------------
# Input series
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AnnualSeries:
    """
    Year-granularity series for a single visitor type.

    Years must be strictly increasing.  Gaps are allowed here so that the
    aligner can hand over whatever the source table holds; the
    TrendForecaster rejects a series with gaps.
    """

    key: VisitorType
    points: Tuple[TimeSeriesPoint, ...]

    def __post_init__(self) -> None:
        points = tuple(self.points)
        previous: Optional[int] = None
        for point in points:
            if isinstance(point.period, YearMonth) or not isinstance(point.period, int):
                raise SeriesAlignmentError(f"Annual point has non-year period {point.period!r}")
            if point.key is not self.key:
                raise SeriesAlignmentError(
                    f"Annual series for {self.key.value} holds a {point.key} point"
                )
            if previous is not None and point.period <= previous:
                raise SeriesAlignmentError(
                    f"Annual series for {self.key.value} is not strictly increasing "
                    f"at year {point.period}"
                )
            previous = point.period
        object.__setattr__(self, "points", points)

    def __len__(self) -> int:
        return len(self.points)

    @property
    def years(self) -> Tuple[int, ...]:
        return tuple(int(point.period) for point in self.points)

    @property
    def values(self) -> Tuple[float, ...]:
        return tuple(point.value for point in self.points)

    def missing_years(self) -> Tuple[int, ...]:
        years = self.years
        if not years:
            return ()
        present = set(years)
        return tuple(year for year in range(years[0], years[-1] + 1) if year not in present)


@dataclass(frozen=True)
class MonthlySeries:
    """Unkeyed month-granularity series (e.g. aggregate occupancy rate)."""

    points: Tuple[TimeSeriesPoint, ...]

    def __post_init__(self) -> None:
        points = tuple(self.points)
        previous: Optional[YearMonth] = None
        for point in points:
            if not isinstance(point.period, YearMonth):
                raise SeriesAlignmentError(f"Monthly point has non-month period {point.period!r}")
            if previous is not None and point.period <= previous:
                raise SeriesAlignmentError(
                    f"Monthly series is not strictly increasing at {point.period}"
                )
            previous = point.period
        object.__setattr__(self, "points", points)

    def __len__(self) -> int:
        return len(self.points)

    @property
    def periods(self) -> Tuple[YearMonth, ...]:
        return tuple(point.period for point in self.points)  # type: ignore[misc]

    @property
    def values(self) -> Tuple[float, ...]:
        return tuple(point.value for point in self.points)

    def truncate(self, start: YearMonth) -> "MonthlySeries":
        """Drop every point before *start*."""
        return MonthlySeries(tuple(p for p in self.points if p.period >= start))  # type: ignore[operator]

    def is_contiguous(self) -> bool:
        periods = self.periods
        return all(current.next() == following for current, following in zip(periods, periods[1:]))


# ---------------------------------------------------------------------------
# Seasonal index
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SeasonalIndex:
    """
    Calendar-month multipliers whose arithmetic mean is 1.0.

    Construction rejects an index that is missing a month or whose mean is
    not 1.0 within :data:`NORMALIZATION_TOLERANCE`; use :meth:`normalized`
    to build one from raw monthly values.
    """

    factors: Mapping[int, float]

    def __post_init__(self) -> None:
        factors = {int(month): float(value) for month, value in dict(self.factors).items()}
        if tuple(sorted(factors)) != MONTHS:
            raise ValueError(
                f"Seasonal index needs exactly months 1..12, got {sorted(factors)}"
            )
        if not all(math.isfinite(value) for value in factors.values()):
            raise ValueError("Seasonal index values must be finite")
        mean = sum(factors.values()) / len(factors)
        if abs(mean - 1.0) > NORMALIZATION_TOLERANCE:
            raise ValueError(f"Seasonal index is not normalised: mean={mean!r}")
        object.__setattr__(
            self, "factors", MappingProxyType({month: factors[month] for month in MONTHS})
        )

    @classmethod
    def normalized(cls, raw: Mapping[int, float]) -> "SeasonalIndex":
        """Divide *raw* monthly values by their mean."""
        values = [float(v) for v in raw.values()]
        mean = sum(values) / len(values) if values else 0.0
        if mean == 0.0 or not math.isfinite(mean):
            raise ValueError(f"Cannot normalise a seasonal profile with mean {mean!r}")
        return cls({int(month): float(value) / mean for month, value in raw.items()})

    def __getitem__(self, month: int) -> float:
        return self.factors[month]

    def __iter__(self) -> Iterator[int]:
        return iter(self.factors)

    def values(self) -> Tuple[float, ...]:
        return tuple(self.factors.values())

    def as_dict(self) -> dict[int, float]:
        return dict(self.factors)


# ---------------------------------------------------------------------------
# Forecast outputs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TrendForecastPoint:
    year: int
    key: VisitorType
    mean: float
    lower80: float
    upper80: float


@dataclass(frozen=True)
class TrendForecast:
    """Annual point and 80 % interval forecasts, ``horizon`` years per key."""

    points: Tuple[TrendForecastPoint, ...]
    horizon: int
    damping: float

    def __iter__(self) -> Iterator[TrendForecastPoint]:
        return iter(self.points)

    def __len__(self) -> int:
        return len(self.points)

    def keys(self) -> Tuple[VisitorType, ...]:
        return tuple(sorted({p.key for p in self.points}, key=key_rank))

    def for_key(self, key: VisitorType) -> Tuple[TrendForecastPoint, ...]:
        return tuple(p for p in self.points if p.key is key)


@dataclass(frozen=True)
class MonthlyForecastPoint:
    year: int
    month: int
    key: VisitorType
    value: float


@dataclass(frozen=True)
class MonthlyForecast:
    points: Tuple[MonthlyForecastPoint, ...]

    def __iter__(self) -> Iterator[MonthlyForecastPoint]:
        return iter(self.points)

    def __len__(self) -> int:
        return len(self.points)

    def keys(self) -> Tuple[VisitorType, ...]:
        return tuple(sorted({p.key for p in self.points}, key=key_rank))


# ---------------------------------------------------------------------------
# Static configuration tables
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StayDuration:
    """Average nights per visit for each visitor type."""

    durations: Mapping[VisitorType, float]

    def __post_init__(self) -> None:
        durations: dict[VisitorType, float] = {}
        for key, value in dict(self.durations).items():
            visitor_type = VisitorType.parse(key)
            nights = float(value)
            if not math.isfinite(nights) or nights <= 0.0:
                raise MissingStayDurationError(
                    f"Average stay for {visitor_type.value} must be positive, got {value!r}"
                )
            durations[visitor_type] = nights
        object.__setattr__(self, "durations", MappingProxyType(durations))

    def __getitem__(self, key: VisitorType) -> float:
        return self.durations[key]

    def __contains__(self, key: object) -> bool:
        return key in self.durations

    def get(self, key: VisitorType) -> Optional[float]:
        return self.durations.get(key)

    def keys(self) -> Tuple[VisitorType, ...]:
        return tuple(self.durations)


@dataclass(frozen=True)
class DailyVisitorEstimate:
    """
    Monthly visitor-nights converted to average concurrent daily visitors.

    ``key`` is ``None`` for an estimate summed across visitor types.
    """

    year: int
    month: int
    key: Optional[VisitorType]
    monthly_nights: float
    avg_stay: float
    daily_visitors: float


@dataclass(frozen=True)
class SiteRatios:
    """
    Share of catchment trips attributed to each site.

    Shares lie in [0, 1] and sum to at most 1; the residual is unattributed
    or through traffic.  :meth:`get` returns ``None`` for an unknown site and
    ``0.0`` for a site explicitly recorded with a zero share.
    """

    ratios: Mapping[str, float]

    def __post_init__(self) -> None:
        ratios: dict[str, float] = {}
        for site_id, value in dict(self.ratios).items():
            share = float(value)
            if not math.isfinite(share) or not 0.0 <= share <= 1.0:
                raise ValueError(f"Ratio for site {site_id!r} must be in [0, 1], got {value!r}")
            ratios[str(site_id)] = share
        total = sum(ratios.values())
        if total > 1.0 + RATIO_SUM_TOLERANCE:
            raise ValueError(f"Site ratios sum to {total!r}, which exceeds 1")
        object.__setattr__(self, "ratios", MappingProxyType(ratios))

    def __contains__(self, site_id: object) -> bool:
        return site_id in self.ratios

    def __len__(self) -> int:
        return len(self.ratios)

    def get(self, site_id: str) -> Optional[float]:
        return self.ratios.get(site_id)

    def site_ids(self) -> Tuple[str, ...]:
        return tuple(sorted(self.ratios))

    @property
    def total(self) -> float:
        return sum(self.ratios.values())

    @property
    def residual(self) -> float:
        return max(0.0, 1.0 - self.total)


@dataclass(frozen=True)
class SiteForecastPoint:
    year: int
    month: int
    site_id: str
    daily_visitors: float
    key: Optional[VisitorType] = None


@dataclass(frozen=True)
class RatioCoverageGap:
    """A requested site that has no ratio entry and was left out of the output."""

    site_id: str
    reason: str = "no ratio entry"
