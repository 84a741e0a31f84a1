"""
Time zone rebasing of the hourly ERA5 stack and reduction to daily layers.

ERA5 is distributed in UTC, while daily statistics have to run from midnight
to midnight in the study region's local time. The hourly input therefore has
to include the trailing hours of the previous year (local time ahead of UTC)
or the leading hours of the next one (local time behind UTC).
"""
import logging
import os
import re
from dataclasses import dataclass
from datetime import tzinfo

import numpy as np
import pandas as pd
import pytz
import rioxarray  # noqa: F401  registers the .rio accessor
import xarray

from .config import DATE_DIM, DEFAULT_RASTER_CRS, KELVIN_OFFSET, STATISTICS, TIME_DIMS, VARIABLES
from .errors import DimensionError, IncompleteDayError, MissingFieldError

logger = logging.getLogger(__name__)

# Leading year (and optional month) token of the downloaded files, e.g.
# "2000_01.nc" or "1999_12-31.nc"
_FILE_TOKEN = re.compile(r"(?<!\d)((?:18|19|20|21)\d{2})(?:[_-](\d{2}))?(?!\d)")


def resolve_timezone(tz):
    """Olson name, fixed offset in hours or a tzinfo to a pytz time zone."""
    if isinstance(tz, tzinfo):
        return tz
    if isinstance(tz, (int, float)):
        return pytz.FixedOffset(int(round(tz * 60)))
    return pytz.timezone(tz)


@dataclass(frozen=True)
class YearContext:
    """The processing year and the local time zone its days are cut in."""

    year: int
    tz: tzinfo

    @classmethod
    def create(cls, year, tz):
        return cls(int(year), resolve_timezone(tz))

    @property
    def utc_offset(self):
        return pd.Timestamp(self.year, 1, 1).tz_localize(self.tz).utcoffset()

    @property
    def ahead(self):
        return self.utc_offset > pd.Timedelta(0)

    @property
    def adjacent_year(self):
        if self.utc_offset == pd.Timedelta(0):
            return None
        return self.year - 1 if self.ahead else self.year + 1

    @property
    def start(self):
        return pd.Timestamp(self.year, 1, 1)

    @property
    def end(self):
        return pd.Timestamp(self.year + 1, 1, 1)

    @property
    def reference_date(self):
        # One date per year to assess which points fall outside the land extent
        return self.start.strftime("%Y-%m-%d")

    def days(self):
        return pd.date_range(self.start, self.end, freq="D", inclusive="left")


def select_year_files(files, ctx):
    """Files holding the processing year plus the adjacent hours it needs."""
    selected = []
    for path in files:
        m = _FILE_TOKEN.search(os.path.basename(str(path)))
        if m is None:
            continue
        year = int(m.group(1))
        month = int(m.group(2)) if m.group(2) else None
        if year == ctx.year:
            selected.append(path)
        elif year == ctx.adjacent_year:
            edge_month = 12 if ctx.ahead else 1
            if month is None or month == edge_month:
                selected.append(path)
    logger.info("Selected %s files for %s", len(selected), ctx.year)
    return sorted(selected)


def open_stack(files, crs=DEFAULT_RASTER_CRS):
    if not files:
        raise MissingFieldError("No raster files to open")
    stack = xarray.open_mfdataset(files, decode_coords="all")
    # ERA5 NetCDF files have latitude/longitude but no grid_mapping
    if stack.rio.crs is None:
        stack = stack.rio.write_crs(crs)
    return stack


def get_time_dim(obj):
    for dim in TIME_DIMS:
        if dim in obj.dims:
            return dim
    raise MissingFieldError("No time dimension among {} in {}".format(TIME_DIMS, list(obj.dims)))


def to_local_time(stack, tz):
    """Relabel UTC timestamps with the local wall-clock time of ``tz``."""
    dim = get_time_dim(stack)
    utc = pd.DatetimeIndex(stack[dim].values)
    if utc.tz is None:
        utc = utc.tz_localize("UTC")
    local = utc.tz_convert(tz).tz_localize(None)
    return stack.assign_coords({dim: local.values})


def restrict_to_year(stack, ctx):
    # Exclude the hours that run past the year after the time zone
    # adjustment, and the adjacent year read in for it
    dim = get_time_dim(stack)
    times = pd.DatetimeIndex(stack[dim].values)
    keep = np.flatnonzero((times >= ctx.start) & (times < ctx.end))
    return stack.isel({dim: keep})


def split_variables(stack, names=VARIABLES):
    """Subset each ERA5 measure by name and convert Kelvin to Celsius."""
    out = {}
    for name in names:
        matched = [v for v in stack.data_vars if name in str(v)]
        if len(matched) != 1:
            raise MissingFieldError("Expected one data variable matching '{}', found {}".format(name, matched))
        out[name] = (stack[matched[0]] - KELVIN_OFFSET).rename(name)
    return out


def check_layer_counts(stacks, dim=None):
    counts = {}
    for name, da in stacks.items():
        counts[name] = da.sizes[dim or get_time_dim(da)]
    if len(set(counts.values())) > 1:
        raise DimensionError("Different number of layers, assess whether timing is consistent: {}".format(counts))
    logger.info("Same number of layers in all stacks")
    return next(iter(counts.values()), 0)


def expected_hours(ctx):
    """Hours in each local calendar day of the year (23/25 on DST changes)."""
    days = ctx.days()
    flags = np.zeros(len(days), dtype=bool)
    starts = days.tz_localize(ctx.tz, ambiguous=flags, nonexistent="shift_forward")
    ends = (days + pd.Timedelta(days=1)).tz_localize(ctx.tz, ambiguous=flags, nonexistent="shift_forward")
    return pd.Series(((ends - starts) / pd.Timedelta(hours=1)).to_numpy(), index=days)


def check_complete_days(times, ctx, require=True):
    """Confirm every local day of the year has all of its hours.

    Returns the incomplete days. With ``require`` they raise
    ``IncompleteDayError``, otherwise they are only logged.
    """
    times = pd.DatetimeIndex(times)
    if len(times) == 0:
        raise IncompleteDayError("No hours of {} in the local time window".format(ctx.year))
    expected = expected_hours(ctx)
    counts = pd.Series(times.floor("D")).value_counts().reindex(expected.index, fill_value=0)
    incomplete = counts[counts < expected]
    if len(incomplete) > 0:
        msg = "{} local days of {} are incomplete, e.g. {}".format(
            len(incomplete), ctx.year,
            {d.strftime("%Y-%m-%d"): int(n) for d, n in incomplete.head().items()})
        if require:
            raise IncompleteDayError(msg)
        logger.warning("WARNING: %s", msg)
    return incomplete


def reduce_daily(stack):
    """Daily mean, maximum and minimum per cell, on dimension ``date``."""
    dim = get_time_dim(stack)
    day = stack[dim].dt.floor("D").rename(DATE_DIM)
    grouped = stack.groupby(day)
    reducers = {
        "mean": grouped.mean,
        "max": grouped.max,
        "min": grouped.min,
    }
    return {stat: reducers[stat](dim=dim) for stat in STATISTICS}


def daily_stacks(hourly, ctx, require_complete_days=True):
    """Reduce every hourly stack of the year to daily layers.

    ``hourly`` maps variable names to local-time stacks restricted to the year.
    """
    check_layer_counts(hourly)
    first = next(iter(hourly.values()))
    times = first[get_time_dim(first)].values
    for name, da in hourly.items():
        if not np.array_equal(da[get_time_dim(da)].values, times):
            raise DimensionError("Timestamps of '{}' differ from the other stacks".format(name))
    check_complete_days(times, ctx, require=require_complete_days)

    daily = {}
    for name, da in hourly.items():
        logger.info("Now processing raster %s", name)
        daily[name] = reduce_daily(da)

    check_layer_counts({"{}_{}".format(name, stat): da
                        for name, stats in daily.items() for stat, da in stats.items()}, dim=DATE_DIM)
    return daily
