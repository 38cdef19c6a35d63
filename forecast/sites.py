"""
forecast/sites.py

Splits aggregate daily-visitor estimates across caravan-park sites using a
frozen table of observed trip shares.

    site_daily_visitors = aggregate_daily_visitors × ratio[site]

Ratios are computed once from a historical telemetry window and are not
refreshed per forecast period.  A site without a ratio entry is left out of
the output and reported as a :class:`RatioCoverageGap`; a site recorded
with a zero ratio is emitted with zero visitors.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from forecast.types import (
    DailyVisitorEstimate,
    RatioCoverageGap,
    SiteForecastPoint,
    SiteRatios,
    key_rank,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SiteDisaggregation:
    """Site-level rows plus the requested sites that could not be attributed."""

    forecasts: tuple[SiteForecastPoint, ...]
    coverage_gaps: tuple[RatioCoverageGap, ...] = ()

    def for_site(self, site_id: str) -> tuple[SiteForecastPoint, ...]:
        return tuple(point for point in self.forecasts if point.site_id == site_id)


class SiteDisaggregator:
    """Stateless, linear disaggregation of daily visitors to sites."""

    def disaggregate(
        self,
        estimates: Sequence[DailyVisitorEstimate],
        ratios: SiteRatios,
        sites: Optional[Iterable[str]] = None,
    ) -> SiteDisaggregation:
        """
        Apply *ratios* to every estimate.

        Parameters
        ----------
        estimates:
            Daily visitor estimates, either aggregated across visitor types
            (``key=None``) or per visitor type.  Keys pass through unchanged.
        ratios:
            Frozen site → share table.
        sites:
            Optional full list of sites in the catchment, used only to detect
            coverage gaps: listed sites with no ratio entry are returned as
            gaps.  Every site in *ratios* is always emitted, so the site total
            stays equal to ``aggregate × ratios.total``.
        """
        site_ids = list(ratios.site_ids())
        gaps: list[RatioCoverageGap] = []
        if sites is not None:
            requested = sorted(dict.fromkeys(str(site) for site in sites))
            gaps = [RatioCoverageGap(site_id=site) for site in requested if site not in ratios]

        for gap in gaps:
            logger.warning("Site %s excluded from site forecast: %s", gap.site_id, gap.reason)

        ordered = sorted(estimates, key=lambda e: (e.year, e.month, key_rank(e.key)))
        forecasts = tuple(
            SiteForecastPoint(
                year=estimate.year,
                month=estimate.month,
                site_id=site_id,
                daily_visitors=estimate.daily_visitors * ratios.ratios[site_id],
                key=estimate.key,
            )
            for estimate in ordered
            for site_id in site_ids
        )
        logger.debug(
            "Disaggregated %d estimates to %d sites (%d gaps)",
            len(ordered),
            len(site_ids),
            len(gaps),
        )
        return SiteDisaggregation(forecasts=forecasts, coverage_gaps=tuple(gaps))
