"""
Command line entry points for the two processing steps.

    era5-heat fishnet --era-dir ERA5_Out
    era5-heat aggregate --era-dir ERA5_Out --boundaries GEO/gadm41_KEN.gpkg \
        --layer ADM_ADM_3 --years 2000 2001 --outdir OUT
"""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Sequence

from .config import DEFAULT_GEO_NAME, DEFAULT_TZ, FISHNET_NAME, MIN_AREA_M2, PipelineConfig, check_package_versions
from .pipeline import build_fishnet, run


def _tz(value: str):
    try:
        return float(value)
    except ValueError:
        return value


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Aggregate hourly ERA5 rasters to daily administrative unit statistics.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log debug messages.")
    sub = parser.add_subparsers(dest="command", required=True)

    fishnet = sub.add_parser("fishnet", help="Create the fishnet grid of the ERA5 raster extent.")
    fishnet.add_argument("--era-dir", required=True, help="Directory with the downloaded ERA5 .nc files.")
    fishnet.add_argument("--output", default=None, help=f"Fishnet path (default: ERA_DIR/{FISHNET_NAME}).")

    agg = sub.add_parser("aggregate", help="Aggregate ERA5 to administrative unit-days by year.")
    agg.add_argument("--era-dir", required=True, help="Directory with the downloaded ERA5 .nc files.")
    agg.add_argument("--boundaries", required=True, help="Administrative boundary file (e.g. GADM gpkg).")
    agg.add_argument("--layer", default=None, help="Layer of the boundary file, e.g. ADM_ADM_3.")
    agg.add_argument("--geo-name", default=DEFAULT_GEO_NAME, help="Unique ID field of the units.")
    agg.add_argument("--tz", type=_tz, default=DEFAULT_TZ,
                     help="Local time zone name or fixed UTC offset in hours.")
    agg.add_argument("--years", nargs="+", type=int, required=True, help="Years to aggregate.")
    agg.add_argument("--outdir", required=True, help="Output directory for the yearly CSV files.")
    agg.add_argument("--fishnet", default=None, help=f"Fishnet path (default: ERA_DIR/{FISHNET_NAME}).")
    agg.add_argument("--passthrough", nargs="*", default=[],
                     help="Higher-level ID fields to carry into the output.")
    agg.add_argument("--min-area", type=float, default=MIN_AREA_M2,
                     help="Drop overlay pieces at or below this area (m2).")
    agg.add_argument("--allow-incomplete-days", action="store_true",
                     help="Warn instead of failing when a local day misses hours.")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    check_package_versions()

    if args.command == "fishnet":
        output = args.output or str(Path(args.era_dir) / FISHNET_NAME)
        build_fishnet(args.era_dir, output=output)
        return 0

    config = PipelineConfig(
        era_dir=Path(args.era_dir),
        boundaries=Path(args.boundaries),
        outdir=Path(args.outdir),
        years=args.years,
        layer=args.layer,
        geo_name=args.geo_name,
        tz=args.tz,
        passthrough=list(args.passthrough),
        fishnet=Path(args.fishnet) if args.fishnet else None,
        min_area=args.min_area,
        require_complete_days=not args.allow_incomplete_days,
    )
    _, failed = run(config)
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
