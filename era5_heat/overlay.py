# ************************************************************** #
# ~~~~~  ERA5 Re-Analysis Raster Processing Step 2        ~~~~~~ #
# ************************************************************** #
"""
Union of the fishnet with the administrative boundaries.

Merging the polygon grid with the boundary polygons ensures every
administrative unit is aligned with the ERA5 cells that cover it. The union
keeps the parts of each layer that fall outside the other, so coastal cells
without administrative coverage are dropped explicitly instead of disappearing
inside an intersection.

Reference/credit: https://stackoverflow.com/a/68713743
"""
import logging
import re
from dataclasses import dataclass

import geopandas as gpd
import numpy as np
import pandas as pd
from shapely.errors import GEOSException

from .config import AREA_CRS, MIN_AREA_M2
from .errors import CRSMismatchError, GeometryRepairError, MissingFieldError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OverlayDiagnostics:
    pieces: int
    unmatched: int
    slivers: int
    retained: int


def load_boundaries(path, layer=None):
    # Downloading GADM as a gpkg embeds one layer per administrative level;
    # pick the level the final metrics should be reported at.
    boundaries = gpd.read_file(path, layer=layer)
    if boundaries.geometry.name != "geometry":
        boundaries = boundaries.rename_geometry("geometry")
    logger.info("Loaded %s administrative units from %s", len(boundaries), path)
    return boundaries


def resolve_geo_id(columns, geo_name):
    """Return the column identifying the aggregation units.

    Variable names change between GADM versions and countries, so an exact
    match is tried first and then a case-insensitive prefix match.
    """
    columns = list(columns)
    if geo_name in columns:
        return geo_name
    pattern = re.compile("^" + re.escape(geo_name), re.IGNORECASE)
    matched = [c for c in columns if pattern.match(str(c))]
    if not matched:
        raise MissingFieldError("No column matching '{}' in boundary data: {}".format(geo_name, columns))
    return matched[0]


def match_crs(boundaries, grid):
    """Reproject the boundaries to the fishnet CRS and confirm they match."""
    if grid.crs is None or boundaries.crs is None:
        raise CRSMismatchError("Both the fishnet and the boundaries need a CRS "
                               "(fishnet: {}, boundaries: {})".format(grid.crs, boundaries.crs))
    boundaries = boundaries.to_crs(grid.crs)
    if boundaries.crs != grid.crs:
        raise CRSMismatchError("CRS's don't match: {} vs {}".format(boundaries.crs, grid.crs))
    logger.info(":) CRS's match")
    return boundaries


def repair_geometries(gdf):
    invalid = ~gdf.geometry.is_valid
    if not invalid.any():
        return gdf
    logger.info("Repairing %s invalid geometries", int(invalid.sum()))
    gdf = gdf.copy()
    gdf.loc[invalid, "geometry"] = gdf.geometry[invalid].make_valid()
    return gdf


def union_layers(a, b):
    """Three-way union of two polygon layers.

    Concatenates (a - union(b)), (b - union(a)) and (b intersect a). Attributes
    of the layer a piece does not come from are left missing.
    """
    b_combined = b.geometry.union_all()
    op1 = a.copy()
    op1["geometry"] = a.geometry.difference(b_combined)

    a_combined = a.geometry.union_all()
    op2 = b.copy()
    op2["geometry"] = b.geometry.difference(a_combined)

    op3 = gpd.overlay(b, a, how="intersection", keep_geom_type=True)

    union = pd.concat([op1, op2, op3], ignore_index=True)
    union = gpd.GeoDataFrame(union, geometry="geometry", crs=a.crs)
    union = union[~(union.geometry.is_empty | union.geometry.isna())]
    return union.reset_index(drop=True)


def _repair_strict(gdf):
    repaired = repair_geometries(gdf)
    if not repaired.geometry.is_valid.all():
        raise GeometryRepairError("{} geometries still invalid after repair".format(
            int((~repaired.geometry.is_valid).sum())))
    return repaired


def validate_union(union):
    """Check that the union has not introduced geometry errors and fix them.

    The fallback repairs each geometry type separately and only accepts the
    result if the UniqueIDs come back unchanged.
    """
    try:
        return _repair_strict(union)
    except (GEOSException, GeometryRepairError) as e:
        logger.warning("There is an issue with the overlay (%s)", e)
        logger.warning("..... Attempting fix")

    geo_types = list(union.geometry.geom_type.unique())
    logger.info("..... Geometry types in overlay: %s", geo_types)

    parts = []
    try:
        for geo_type in geo_types:
            parts.append(_repair_strict(union[union.geometry.geom_type == geo_type]))
    except (GEOSException, GeometryRepairError) as e:
        raise GeometryRepairError("ERROR NOT RESOLVED for geometry types {}".format(geo_types)) from e

    updated = pd.concat(parts).sort_values(by="UniqueID")
    if not np.array_equal(updated["UniqueID"].to_numpy(), union["UniqueID"].to_numpy()):
        raise GeometryRepairError("Unique IDs do not match after repairing geometry types {}".format(geo_types))

    logger.info("..... :) issue has been fixed!")
    return gpd.GeoDataFrame(updated, geometry="geometry", crs=union.crs)


def drop_unmatched(union, geo_id):
    before_dim = len(union)
    union = union[union[geo_id].notna()]
    dropped = before_dim - len(union)
    logger.info("Dropped %s polygons that do not intersect with the boundary data", dropped)
    return union, dropped


def drop_slivers(union, min_area=MIN_AREA_M2, area_crs=AREA_CRS):
    # Areas only identify negligible pieces and set the spatial weights, so
    # the distortion of a global projected CRS is acceptable at cell scale.
    measured = union.to_crs(area_crs) if area_crs is not None else union
    union = union.copy()
    union["Area_m2"] = measured.geometry.area.astype(float).to_numpy()

    before_dim = len(union)
    union = union[union["Area_m2"] > min_area]
    dropped = before_dim - len(union)
    logger.info("Dropped %s polygons with area <= %s m2", dropped, min_area)
    return union, dropped


def build_subpolygons(grid, boundaries, geo_name, min_area=MIN_AREA_M2, area_crs=AREA_CRS):
    """Overlay fishnet and boundaries into weighted-ready sub-polygons.

    Returns the retained sub-polygons, the resolved geo-ID column and an
    ``OverlayDiagnostics`` with the drop counts.
    """
    geo_id = resolve_geo_id(boundaries.columns, geo_name)

    boundaries = match_crs(boundaries, grid)
    boundaries = repair_geometries(boundaries)
    grid = repair_geometries(grid)

    union = union_layers(grid, boundaries)
    union["UniqueID"] = np.arange(1, len(union) + 1)
    pieces = len(union)
    union = validate_union(union)

    union, unmatched = drop_unmatched(union, geo_id)
    union, slivers = drop_slivers(union, min_area=min_area, area_crs=area_crs)

    diagnostics = OverlayDiagnostics(pieces=pieces, unmatched=unmatched,
                                     slivers=slivers, retained=len(union))
    return union.reset_index(drop=True), geo_id, diagnostics
