"""
Extraction of daily ERA5 layers at the extraction points, and the join of
points on the coast (not covered by ERA5-Land) to the nearest covered point.
"""
from __future__ import annotations

import logging
from typing import Tuple

import geopandas as gpd
import numpy as np
import pandas as pd
import xvec  # noqa: F401  registers the .xvec accessor
from pyproj import CRS

from .config import DATE_DIM, X_COORDS, Y_COORDS

logger = logging.getLogger(__name__)


def _coord_bounds(coord: np.ndarray) -> Tuple[float, float]:
    coord = np.asarray(coord, dtype=float)
    half = np.abs(np.diff(coord)).min() / 2 if len(coord) > 1 else 0.0
    return coord.min() - half, coord.max() + half


def sample_points(
    daily,
    points: gpd.GeoDataFrame,
    crs=None,
    x_coords: str = X_COORDS,
    y_coords: str = Y_COORDS,
) -> pd.DataFrame:
    """Sample a daily stack at every extraction point.

    Returns one row per point (indexed by ``UniqueID``) and one column per
    ``YYYY-MM-DD``. Points outside the raster extent or over no-data cells
    are NaN.
    """
    geometry = points.geometry
    if crs is not None and points.crs is not None and CRS.from_user_input(crs) != points.crs:
        geometry = geometry.to_crs(crs)

    extracted = daily.xvec.extract_points(geometry, x_coords=x_coords, y_coords=y_coords)
    values = np.array(extracted.transpose("geometry", DATE_DIM).values, dtype=float)

    xmin, xmax = _coord_bounds(daily[x_coords].values)
    ymin, ymax = _coord_bounds(daily[y_coords].values)
    inside = ((geometry.x >= xmin) & (geometry.x <= xmax)
              & (geometry.y >= ymin) & (geometry.y <= ymax)).to_numpy()
    values[~inside, :] = np.nan

    dates = pd.DatetimeIndex(daily[DATE_DIM].values).strftime("%Y-%m-%d")
    return pd.DataFrame(values, index=pd.Index(points["UniqueID"].to_numpy(), name="UniqueID"),
                        columns=dates)


def nearest_donors(points: gpd.GeoDataFrame, missing_ids, avail_ids) -> pd.Series:
    """Map each missing UniqueID to the UniqueID of its nearest available point.

    Distances are planar in the points' CRS. Equidistant candidates resolve to
    the lowest UniqueID.
    """
    by_id = points.set_index("UniqueID").geometry
    missing = by_id.loc[list(missing_ids)]
    avail = by_id.loc[list(avail_ids)]

    idx = avail.sindex.nearest(missing.values, return_all=True)
    pairs = pd.DataFrame({
        "UniqueID": missing.index.to_numpy()[idx[0]],
        "donor": avail.index.to_numpy()[idx[1]],
    })
    return pairs.groupby("UniqueID")["donor"].min()


def fill_from_nearest(frame: pd.DataFrame, points: gpd.GeoDataFrame, reference_date: str):
    """Give points without data on ``reference_date`` their nearest neighbour's series.

    Coverage is assumed static over the year, so the reference date decides
    which points are missing. Returns the filled frame and the number of
    points filled.
    """
    if reference_date not in frame.columns:
        raise KeyError("Reference date {} not in sampled dates".format(reference_date))

    missing_ids = frame.index[frame[reference_date].isna()]
    avail_ids = frame.index[frame[reference_date].notna()]

    if len(missing_ids) == 0:
        return frame, 0
    if len(avail_ids) == 0:
        logger.warning("WARNING: no point has data on %s, %s points left missing",
                       reference_date, len(missing_ids))
        return frame, 0

    donors = nearest_donors(points, missing_ids, avail_ids)
    filled = frame.copy()
    filled.loc[donors.index] = frame.loc[donors.to_numpy()].to_numpy()
    logger.info("Filled %s points from their nearest neighbour with data", len(donors))
    return filled, len(donors)
