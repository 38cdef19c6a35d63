"""
Run the visitor forecast pipeline from CLI.
"""

from __future__ import annotations

import argparse
import json

import pandas as pd

from app.logging_utils import configure_logging
from forecast.alignment import SeriesAligner
from forecast.orchestrator import VisitorForecastOrchestrator
from forecast.types import YearMonth


def main() -> int:
    parser = argparse.ArgumentParser(description="Forecast average daily visitors for a region.")
    parser.add_argument(
        "--annual",
        required=True,
        help="CSV with Year, VisitorType, Nights (or a wide regional table, see --annual-metric).",
    )
    parser.add_argument(
        "--annual-metric",
        dest="annual_metric",
        default=None,
        help="Read --annual as Region, Metric, Year, Domestic, International filtered by this metric.",
    )
    parser.add_argument("--occupancy", required=True, help="CSV with Month, OccupancyRate.")
    parser.add_argument("--stays", required=True, help="CSV with Region, Metric, VisitorType, AvgStayNights.")
    parser.add_argument("--ratios", required=True, help="CSV with SiteId, Ratio.")
    parser.add_argument("--region", required=True, help="Region used to filter the stay table.")
    parser.add_argument("--metric", required=True, help="Metric used to filter the stay table.")
    parser.add_argument("--horizon", type=int, default=None, help="Years to forecast.")
    parser.add_argument(
        "--seasonal-start",
        dest="seasonal_start",
        default=None,
        help="First month (YYYY-MM) of the seasonal decomposition window.",
    )
    parser.add_argument(
        "--persist",
        action="store_true",
        help="Store the run in the configured database.",
    )
    args = parser.parse_args()

    configure_logging()

    aligner = SeriesAligner()
    annual_table = pd.read_csv(args.annual)
    if args.annual_metric:
        annual = aligner.regional_annual_series(
            annual_table, region=args.region, metric=args.annual_metric
        )
    else:
        annual = aligner.annual_series(annual_table)
    monthly = aligner.monthly_series(pd.read_csv(args.occupancy))
    stays = aligner.stay_durations(pd.read_csv(args.stays), region=args.region, metric=args.metric)
    ratios = aligner.site_ratios(pd.read_csv(args.ratios, dtype={"SiteId": str}))
    seasonal_start = YearMonth.parse(args.seasonal_start) if args.seasonal_start else None

    orchestrator = VisitorForecastOrchestrator()
    run_kwargs = dict(
        region=args.region,
        annual=annual,
        monthly=monthly,
        stays=stays,
        ratios=ratios,
        horizon=args.horizon,
        seasonal_start=seasonal_start,
    )

    if args.persist:
        from db.session import get_session

        with get_session() as db:
            result = orchestrator.run(session=db, **run_kwargs)
            db.commit()
    else:
        result = orchestrator.run(**run_kwargs)

    payload = {
        "region": result.region,
        "record_id": str(result.record_id) if result.record_id else None,
        "horizon": result.trend.horizon,
        "seasonal_index": result.seasonal_index.as_dict(),
        "trend": [
            {"year": p.year, "visitor_type": p.key.value, "mean": round(p.mean, 2)}
            for p in result.trend
        ],
        "site_rows": len(result.sites.forecasts),
        "coverage_gaps": [gap.site_id for gap in result.sites.coverage_gaps],
    }
    print(json.dumps(payload, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
