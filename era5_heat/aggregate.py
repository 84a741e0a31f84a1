"""
Area-weighted averages by administrative unit and day.

Before calculating the weighted average of an ERA5 measure the weights are
re-based on the availability of data. If a value is NA on one of the
polygons, the weights no longer add to 1 and the average is an underestimate.
Example: two polygons, each with 50% area. If Tmax is 30 C in one and NA in
the other, the area weighted average that drops NA values gives
(30 * 0.5) + (NA * 0.5) = 15 C.
"""
import logging
from functools import reduce

import pandas as pd

from .config import WEIGHT_DECIMALS
from .errors import RowCountError, WeightSumError

logger = logging.getLogger(__name__)


def to_long(frames, points, geo_id):
    """Transpose the wide point frames to one long time series table.

    ``frames`` maps output column names (e.g. ``t2m_mean``) to frames indexed
    by ``UniqueID`` with one column per date.
    """
    longs = []
    for name, frame in frames.items():
        long = frame.rename_axis("UniqueID").reset_index().melt(
            id_vars="UniqueID", var_name="date", value_name=name)
        longs.append(long)

    era5_long = reduce(lambda left, right: pd.merge(left, right, on=["UniqueID", "date"], how="left"), longs)
    attrs = pd.DataFrame(points[["UniqueID", geo_id, "SpatWt"]])
    era5_long = attrs.merge(era5_long, on="UniqueID", how="left")
    return era5_long.sort_values(by=[geo_id, "date", "UniqueID"]).reset_index(drop=True)


def reweight(era5_long, varname, geo_id):
    """Re-weight the area weight by the total weight with available data."""
    avail = era5_long["SpatWt"].where(era5_long[varname].notna())
    total = avail.groupby([era5_long[geo_id], era5_long["date"]]).transform("sum")
    return avail / total.where(total > 0)


def check_weights(era5_long, weights, geo_id):
    # QC: check that the weights of *available data* all add to 1
    check = weights.groupby([era5_long[geo_id], era5_long["date"]]).sum(min_count=1).dropna()
    bad = check[check.round(WEIGHT_DECIMALS) != 1]
    if len(bad) > 0:
        raise WeightSumError("weights do not sum to 1 for {} unit-days, e.g. {}".format(
            len(bad), bad.head().to_dict()))
    return check


def weighted_average(era5_long, varname, geo_id):
    """Area-weighted average of ``varname`` per unit and day.

    A unit-day without any available point is NA, not 0.
    """
    weights = reweight(era5_long, varname, geo_id)
    check_weights(era5_long, weights, geo_id)

    # Multiply the variable of interest by the weighting value and then sum
    # up the resultant values within admin boundaries
    weighted = era5_long[varname] * weights
    final = weighted.groupby([era5_long[geo_id], era5_long["date"]]).sum(min_count=1)
    return final.rename(varname).reset_index()


def check_dimensions(final, n_units, n_days):
    if n_units * n_days != final.shape[0]:
        raise RowCountError("incorrect dimensions of final df: {} rows for {} units x {} days".format(
            final.shape[0], n_units, n_days))
    logger.info(":) dimensions of final df are as expected")


def aggregate(era5_long, varnames, geo_id):
    n_units = era5_long[geo_id].nunique()
    n_days = era5_long["date"].nunique()

    finaloutput = None
    for varname in varnames:
        logger.info("Now processing %s", varname)
        final = weighted_average(era5_long, varname, geo_id)
        logger.info(":) weights sum to 1")
        check_dimensions(final, n_units, n_days)

        if finaloutput is None:
            finaloutput = final
        else:
            finaloutput = pd.merge(finaloutput, final, on=[geo_id, "date"], how="left")

    logger.info("The final output has %s rows.", finaloutput.shape[0])
    return finaloutput
