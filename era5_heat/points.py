"""
Extraction points and land-area spatial weights.

One point is placed inside each retained sub-polygon. The points let ERA5 data
be extracted from an entire stack of rasters at once, and carry the share of
their administrative unit's area as ``SpatWt``.
"""
import logging

import geopandas as gpd

from .config import WEIGHT_DECIMALS
from .errors import WeightSumError

logger = logging.getLogger(__name__)


def sumfun(x):
    """Sum that returns NA rather than 0 when all values are NA."""
    return x.sum(min_count=1)


def extraction_points(subpolygons, geo_id):
    # representative_point is guaranteed to fall inside the polygon, even
    # for non-convex shapes. In geographic coordinates this only locates the
    # ERA5 cell to read from.
    points = subpolygons.copy()
    points["geometry"] = subpolygons.geometry.representative_point()
    points = gpd.GeoDataFrame(points, geometry="geometry", crs=subpolygons.crs)

    # Total area by unit, used to calculate the spatial weight (typically 1.0
    # for a unit inside a single cell)
    totals = points.groupby(geo_id)["Area_m2"].agg(sumfun).rename("Area_m2.sumfun")
    points = points.merge(totals, left_on=geo_id, right_index=True, how="left")
    points["SpatWt"] = points["Area_m2"] / points["Area_m2.sumfun"]

    logger.info("Created %s extraction points for %s units", len(points), points[geo_id].nunique())
    return points.reset_index(drop=True)


def check_point_weights(points, geo_id):
    check = points.groupby(geo_id)["SpatWt"].agg(sumfun)
    bad = check[check.round(WEIGHT_DECIMALS) != 1]
    if len(bad) > 0:
        raise WeightSumError("Spatial weights do not sum to 1 for {} units, e.g. {}".format(
            len(bad), bad.head().to_dict()))
    logger.info(":) spatial weights sum to 1")
    return check
