"""
Per-year processing of ERA5 hourly rasters to administrative unit-days.

The extraction points are built once from the fishnet and the boundaries.
Each year is then processed independently: the hourly stack is rebased to
local time, reduced to daily layers, sampled at the points and averaged by
unit with area weights. This is run one year at a time to bound the size of
the long-form tables (units * 365 days * 24 hours).
"""
import glob
import logging
import os
from pathlib import Path

import pandas as pd

from . import qc
from .aggregate import aggregate, to_long
from .config import DERIVED, MIN_AREA_M2, OUTPUT_PATTERN, STATISTICS, VARIABLES
from .errors import DimensionError, MissingFieldError
from .fishnet import fishnet_from_raster, read_fishnet, write_fishnet
from .metrics import derive_metrics
from .overlay import build_subpolygons, load_boundaries
from .points import check_point_weights, extraction_points
from .sampling import fill_from_nearest, sample_points
from .temporal import (YearContext, daily_stacks, open_stack, restrict_to_year,
                       select_year_files, split_variables, to_local_time)

logger = logging.getLogger(__name__)


def list_era_files(era_dir):
    return sorted(glob.glob(os.path.join(str(era_dir), "*.nc")))


def build_fishnet(era_dir, output=None):
    """Create the fishnet from the downloaded ERA5 files and write it out."""
    era_files = list_era_files(era_dir)
    if not era_files:
        raise MissingFieldError("No .nc files in {}".format(era_dir))
    era_stack = open_stack(era_files)
    fishnet = fishnet_from_raster(era_stack)
    if output is not None:
        write_fishnet(fishnet, output)
    return fishnet


def prepare_extraction_points(fishnet, boundaries, geo_name, passthrough=(), min_area=MIN_AREA_M2):
    """Overlay fishnet and boundaries and place the weighted extraction points."""
    missing = [c for c in passthrough if c not in boundaries.columns]
    if missing:
        raise MissingFieldError("Passthrough columns not in boundary data: {}".format(missing))

    subpolygons, geo_id, diagnostics = build_subpolygons(fishnet, boundaries, geo_name, min_area=min_area)
    logger.info("Overlay produced %s pieces, kept %s", diagnostics.pieces, diagnostics.retained)

    points = extraction_points(subpolygons, geo_id)
    check_point_weights(points, geo_id)
    return points, geo_id, diagnostics


def hourly_stacks(stack, ctx):
    """Local-time stacks of the ERA5 measures and the derived heat metrics, in Celsius."""
    stack = to_local_time(stack, ctx.tz)
    stack = restrict_to_year(stack, ctx).load()

    hourly = split_variables(stack, VARIABLES)
    hti, hum = derive_metrics(hourly["t2m"], hourly["d2m"])
    hourly["hti"] = hti
    hourly["hum"] = hum
    return hourly


def sample_year(daily, points, crs, reference_date):
    frames = {}
    for name, stats in daily.items():
        for stat in STATISTICS:
            frame = sample_points(stats[stat], points, crs=crs)
            if reference_date not in frame.columns:
                # Only reachable when incomplete days are allowed
                logger.warning("WARNING: no data on %s, nearest neighbours chosen from %s",
                               reference_date, frame.columns[0])
                reference_date = frame.columns[0]
            frame, _ = fill_from_nearest(frame, points, reference_date)
            frames["{}_{}".format(name, stat)] = frame
    return frames


def process_stack(stack, ctx, points, geo_id, passthrough=(), require_complete_days=True):
    """Aggregate one year of an opened (UTC) ERA5 stack to unit-days."""
    crs = stack.rio.crs.to_wkt() if stack.rio.crs is not None else None

    hourly = hourly_stacks(stack, ctx)
    daily = daily_stacks(hourly, ctx, require_complete_days=require_complete_days)

    frames = sample_year(daily, points, crs, ctx.reference_date)
    era5_long = to_long(frames, points, geo_id)
    finaloutput = aggregate(era5_long, list(frames), geo_id)

    if passthrough:
        units = pd.DataFrame(points[[geo_id] + list(passthrough)]).drop_duplicates(subset=geo_id)
        finaloutput = units.merge(finaloutput, on=geo_id, how="right")

    variables = list(VARIABLES) + list(DERIVED)
    qc.missing_summary(finaloutput, list(frames))
    qc.ordering_violations(finaloutput, variables)
    return finaloutput


def process_year(ctx, era_files, points, geo_id, passthrough=(), require_complete_days=True):
    logger.info("Now processing %s", ctx.year)
    era_files_yr = select_year_files(era_files, ctx)
    era_stack = open_stack(era_files_yr)
    return process_stack(era_stack, ctx, points, geo_id, passthrough=passthrough,
                         require_complete_days=require_complete_days)


def check_year_inputs(era_files, years, tz):
    """Confirm every year has files with all ERA5 variables before any output is written."""
    for year in years:
        ctx = YearContext.create(year, tz)
        era_files_yr = select_year_files(era_files, ctx)
        if not era_files_yr:
            raise MissingFieldError("No ERA5 files for {}".format(year))
        # Lazy: only the variable names are read here
        split_variables(open_stack(era_files_yr), VARIABLES)


def write_year(finaloutput, outdir, year):
    path = Path(outdir) / OUTPUT_PATTERN.format(year=year)
    path.parent.mkdir(parents=True, exist_ok=True)
    finaloutput.to_csv(path, index=False)
    logger.info("Output for %s written to %s", year, path)
    return path


def run(config):
    """Run every configured year; returns written paths and failed years.

    A dimensional inconsistency only aborts its own year. All other errors
    abort the run, and missing files or variables are found before the first
    year is written.
    """
    if config.fishnet_path.exists():
        fishnet = read_fishnet(config.fishnet_path)
    else:
        fishnet = build_fishnet(config.era_dir, output=config.fishnet_path)

    boundaries = load_boundaries(config.boundaries, layer=config.layer)
    points, geo_id, _ = prepare_extraction_points(fishnet, boundaries, config.geo_name,
                                                  passthrough=config.passthrough,
                                                  min_area=config.min_area)

    era_files = list_era_files(config.era_dir)
    check_year_inputs(era_files, config.years, config.tz)

    written = []
    failed = {}
    for year in config.years:
        ctx = YearContext.create(year, config.tz)
        try:
            finaloutput = process_year(ctx, era_files, points, geo_id,
                                       passthrough=config.passthrough,
                                       require_complete_days=config.require_complete_days)
        except DimensionError as e:
            logger.error("ERROR: %s skipped: %s", year, e)
            failed[year] = str(e)
            continue
        written.append(write_year(finaloutput, config.outdir, year))
    return written, failed
