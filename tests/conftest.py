from __future__ import annotations

import geopandas as gpd
import numpy as np
import pandas as pd
import pytest
import rioxarray  # noqa: F401
import xarray
from shapely.geometry import box

# 2 x 2 grid of 0.5 degree cells covering lon 36-37, lat -1-0
LON = np.array([36.25, 36.75])
LAT = np.array([-0.25, -0.75])


def _make_stack(times, t2m=300.0, d2m=290.0, skt=305.0, ocean=None, crs="EPSG:4326"):
    """Hourly ERA5-like dataset in Kelvin.

    Values may be scalars or (lat, lon) arrays; ``ocean`` is a (lat, lon)
    boolean mask of no-data cells.
    """
    shape = (len(times), len(LAT), len(LON))
    data = {}
    for name, value in (("d2m", d2m), ("t2m", t2m), ("skt", skt)):
        arr = np.broadcast_to(np.asarray(value, dtype=float), shape).copy()
        if ocean is not None:
            arr[:, np.asarray(ocean)] = np.nan
        data[name] = (("valid_time", "latitude", "longitude"), arr)
    ds = xarray.Dataset(data, coords={
        "valid_time": pd.DatetimeIndex(times).values,
        "latitude": LAT,
        "longitude": LON,
    })
    if crs is not None:
        ds = ds.rio.write_crs(crs)
    return ds


@pytest.fixture
def make_stack():
    return _make_stack


@pytest.fixture
def year_times():
    # 2020 in UTC+3, with the last three UTC hours of 2019 as look-behind
    return pd.date_range("2019-12-31 21:00", "2020-12-31 20:00", freq="h")


@pytest.fixture
def boundaries():
    return gpd.GeoDataFrame(
        {
            "GID_1": ["K.1", "K.1", "K.2"],
            "GID_3": ["U1", "U2", "U3"],
        },
        geometry=[
            box(36.0, -1.0, 36.7, 0.0),
            box(36.7, -1.0, 37.0, 0.0),
            # entirely outside the raster extent
            box(37.0, -1.0, 37.2, -0.5),
        ],
        crs="EPSG:4326",
    )
