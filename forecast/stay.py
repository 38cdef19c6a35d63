"""
forecast/stay.py

Converts monthly visitor-nights into average daily visitors.

    daily_visitors = monthly_nights / avg_stay

Arrivals and departures are assumed uniform within the month; no
adjustment is made for month length or leap years.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Iterable

from forecast.errors import MissingStayDurationError
from forecast.types import (
    DailyVisitorEstimate,
    MonthlyForecast,
    StayDuration,
)

logger = logging.getLogger(__name__)


class StayDurationConverter:
    """Stateless nights → daily-visitor converter."""

    def convert(
        self,
        forecast: MonthlyForecast,
        stays: StayDuration,
    ) -> tuple[DailyVisitorEstimate, ...]:
        """
        Divide every monthly value by the average stay of its visitor type.

        Raises
        ------
        MissingStayDurationError
            If any visitor type in *forecast* has no stay duration.  Checked
            before any row is converted.
        """
        missing = [key.value for key in forecast.keys() if stays.get(key) is None]
        if missing:
            raise MissingStayDurationError(
                f"No average stay duration for visitor type(s) {missing}."
            )

        estimates = tuple(
            DailyVisitorEstimate(
                year=point.year,
                month=point.month,
                key=point.key,
                monthly_nights=point.value,
                avg_stay=stays[point.key],
                daily_visitors=point.value / stays[point.key],
            )
            for point in forecast
        )
        logger.debug("Converted %d monthly rows to daily visitors", len(estimates))
        return estimates


def aggregate_estimates(
    estimates: Iterable[DailyVisitorEstimate],
) -> tuple[DailyVisitorEstimate, ...]:
    """
    Sum nights and daily visitors across visitor types for each month.

    The aggregate carries ``key=None`` and an effective average stay of
    ``nights / daily_visitors`` so ``daily_visitors × avg_stay`` still
    reproduces the nights.  A month with no visitors keeps the harmonic
    mean of its input stays, so the stay is always positive.
    """
    nights: dict[tuple[int, int], float] = defaultdict(float)
    daily: dict[tuple[int, int], float] = defaultdict(float)
    stays: dict[tuple[int, int], list[float]] = defaultdict(list)
    for estimate in estimates:
        period = (estimate.year, estimate.month)
        nights[period] += estimate.monthly_nights
        daily[period] += estimate.daily_visitors
        stays[period].append(estimate.avg_stay)

    return tuple(
        DailyVisitorEstimate(
            year=year,
            month=month,
            key=None,
            monthly_nights=nights[(year, month)],
            avg_stay=_effective_stay(nights[(year, month)], daily[(year, month)], stays[(year, month)]),
            daily_visitors=daily[(year, month)],
        )
        for year, month in sorted(nights)
    )


def _effective_stay(nights: float, daily: float, stays: list[float]) -> float:
    if daily > 0.0:
        return nights / daily
    return len(stays) / sum(1.0 / stay for stay in stays)
