# ************************************************************** #
# ~~~~~~~  ERA5 Re-Analysis Raster Processing Step 1     ~~~~~~~ #
# ************************************************************** #
"""
Fishnet grid of the ERA5 raster extent.

The fishnet is a polygon layer with one square around each ERA5 cell. It is
built once from the raster geometry and reused for every processing year, so
that data can be extracted from the whole raster stack at points instead of
running zonal statistics on each layer.

Reference/credit: https://gis.stackexchange.com/a/243585
"""
import logging

import geopandas as gpd
import numpy as np
import shapely

from .errors import ConfigurationError

logger = logging.getLogger(__name__)


def make_fishnet(xmin, xmax, ymin, ymax, rows, cols, crs=None):
    """Create a rows x cols polygon grid covering the given extent.

    Cells are laid out column by column from the top-left corner and numbered
    from 1 in that order (``CellID``). Edges come from ``numpy.linspace`` so the
    outer edges are the extent itself.
    """
    rows = int(rows)
    cols = int(cols)
    if rows < 1 or cols < 1:
        raise ConfigurationError("Fishnet needs at least one row and one column, got {} x {}".format(rows, cols))

    x_edges = np.linspace(float(xmin), float(xmax), cols + 1)
    y_edges = np.linspace(float(ymax), float(ymin), rows + 1)

    # Column-major: the outer loop walks the columns, the inner one the rows
    col_idx, row_idx = np.meshgrid(np.arange(cols), np.arange(rows), indexing="ij")
    col_idx = col_idx.ravel()
    row_idx = row_idx.ravel()

    cells = shapely.box(x_edges[col_idx], y_edges[row_idx + 1],
                        x_edges[col_idx + 1], y_edges[row_idx])

    return gpd.GeoDataFrame(
        {
            "CellID": np.arange(1, rows * cols + 1),
            "row": row_idx,
            "col": col_idx,
        },
        geometry=cells,
        crs=crs,
    )


def fishnet_from_raster(raster):
    """Build the fishnet for an xarray object carrying rioxarray metadata."""
    crs = raster.rio.crs
    if crs is None:
        raise ConfigurationError("Raster has no CRS; write one before building the fishnet")

    xmin, ymin, xmax, ymax = raster.rio.bounds()
    height = raster.rio.height
    width = raster.rio.width

    logger.info("Creating %s x %s fishnet over (%s, %s, %s, %s)", height, width, xmin, ymin, xmax, ymax)
    return make_fishnet(xmin, xmax, ymin, ymax, height, width, crs=crs.to_wkt())


def write_fishnet(fishnet, path):
    fishnet.to_file(path)
    logger.info("Fishnet written to %s", path)
    return path


def read_fishnet(path):
    fishnet = gpd.read_file(path)
    if fishnet.crs is None:
        raise ConfigurationError("Fishnet at {} has no CRS".format(path))
    return fishnet
