from __future__ import annotations

import geopandas as gpd
import pandas as pd
import pytest
from shapely.errors import GEOSException
from shapely.geometry import MultiPolygon, Polygon, box

from era5_heat import overlay
from era5_heat.errors import CRSMismatchError, GeometryRepairError, MissingFieldError
from era5_heat.fishnet import fishnet_from_raster


@pytest.fixture
def fishnet(make_stack):
    return fishnet_from_raster(make_stack(pd.date_range("2020-01-01", periods=2, freq="h")))


def test_union_pieces_reconstruct_each_unit(fishnet, boundaries) -> None:
    subpolygons, geo_id, diagnostics = overlay.build_subpolygons(fishnet, boundaries, "GID_3")

    assert geo_id == "GID_3"
    assert diagnostics.retained == len(subpolygons)
    assert subpolygons["UniqueID"].is_unique

    for _, unit in boundaries.iterrows():
        pieces = subpolygons[subpolygons["GID_3"] == unit["GID_3"]]
        assert pieces.geometry.area.sum() == pytest.approx(unit.geometry.area, rel=1e-9)

    # U1 straddles both columns and rows, U2 both rows, U3 lies off the grid
    counts = subpolygons.groupby("GID_3").size().to_dict()
    assert counts == {"U1": 4, "U2": 2, "U3": 1}


def test_cells_outside_boundaries_are_dropped(fishnet, boundaries) -> None:
    west_only = boundaries[boundaries["GID_3"] == "U1"]
    subpolygons, _, diagnostics = overlay.build_subpolygons(fishnet, west_only, "GID_3")

    assert diagnostics.unmatched > 0
    assert subpolygons["GID_3"].notna().all()
    assert set(subpolygons["GID_3"]) == {"U1"}


def test_crs_mismatch_is_fatal(fishnet, boundaries) -> None:
    no_crs = gpd.GeoDataFrame(boundaries.drop(columns="geometry"), geometry=list(boundaries.geometry))
    with pytest.raises(CRSMismatchError):
        overlay.build_subpolygons(fishnet, no_crs, "GID_3")


def test_boundaries_are_reprojected_to_grid(fishnet, boundaries) -> None:
    projected = boundaries.to_crs(3857)
    subpolygons, _, _ = overlay.build_subpolygons(fishnet, projected, "GID_3")
    assert subpolygons.crs == fishnet.crs
    assert set(subpolygons["GID_3"]) == {"U1", "U2", "U3"}


def test_missing_geo_id_is_fatal(fishnet, boundaries) -> None:
    with pytest.raises(MissingFieldError):
        overlay.build_subpolygons(fishnet, boundaries, "GID_4")


def test_resolve_geo_id_prefix_match() -> None:
    assert overlay.resolve_geo_id(["NAME", "gid_3_code", "geometry"], "GID_3") == "gid_3_code"
    assert overlay.resolve_geo_id(["GID_3", "GID_3x"], "GID_3") == "GID_3"


def test_invalid_boundary_is_repaired(fishnet) -> None:
    bowtie = Polygon([(36.0, -1.0), (37.0, 0.0), (37.0, -1.0), (36.0, 0.0)])
    assert not bowtie.is_valid
    bad = gpd.GeoDataFrame({"GID_3": ["B1"]}, geometry=[bowtie], crs="EPSG:4326")

    subpolygons, _, _ = overlay.build_subpolygons(fishnet, bad, "GID_3")

    assert subpolygons.geometry.is_valid.all()
    assert subpolygons.geometry.area.sum() == pytest.approx(0.5, rel=1e-9)


def test_slivers_are_dropped() -> None:
    gdf = gpd.GeoDataFrame(
        {"GID_3": ["A", "A"]},
        geometry=[box(36.0, -1.0, 36.5, -0.5), box(36.5, -0.5, 36.5 + 1e-7, -0.5 + 1e-7)],
        crs="EPSG:4326",
    )
    kept, dropped = overlay.drop_slivers(gdf)
    assert dropped == 1
    assert len(kept) == 1
    assert kept["Area_m2"].iloc[0] > 1e9


def _union():
    return gpd.GeoDataFrame(
        {"UniqueID": [1, 2, 3]},
        geometry=[box(0, 0, 1, 1), MultiPolygon([box(2, 2, 3, 3), box(4, 4, 5, 5)]), box(1, 1, 2, 2)],
        crs="EPSG:4326",
    )


def test_validate_union_repairs_by_geometry_type(monkeypatch) -> None:
    real = overlay.repair_geometries
    calls = []

    def flaky(gdf):
        calls.append(len(gdf))
        if len(calls) == 1:
            raise GEOSException("TopologyException: side location conflict")
        return real(gdf)

    monkeypatch.setattr(overlay, "repair_geometries", flaky)
    repaired = overlay.validate_union(_union())

    assert list(repaired["UniqueID"]) == [1, 2, 3]
    # the full layer once, then one call per geometry type
    assert calls == [3, 2, 1]


def test_validate_union_unresolved_is_fatal(monkeypatch) -> None:
    def broken(gdf):
        raise GEOSException("TopologyException")

    monkeypatch.setattr(overlay, "repair_geometries", broken)
    with pytest.raises(GeometryRepairError, match="Polygon"):
        overlay.validate_union(_union())
