"""
Settings shared by the fishnet and aggregation steps.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from typing import List, Optional, Sequence, Union

from packaging.version import Version

logger = logging.getLogger(__name__)

# ERA5-Land variables queried from the CDS. The key is the substring that
# identifies the variable in the NetCDF data variable names.
VARIABLES = {
    "d2m": "2m dew point temperature",
    "t2m": "2m temperature",
    "skt": "skin temperature",
}

# Heat metrics derived from t2m and d2m
DERIVED = {
    "hti": "heat index",
    "hum": "humidex",
}

STATISTICS = ("mean", "max", "min")

KELVIN_OFFSET = 273.15

# Coordinate names used by the ERA5 NetCDF files. Files from the new CDS
# carry "valid_time", older downloads carry "time".
TIME_DIMS = ("valid_time", "time")
X_COORDS = "longitude"
Y_COORDS = "latitude"
DATE_DIM = "date"

# ERA5 files come without a grid_mapping, the grid is WGS84 lat/lon
DEFAULT_RASTER_CRS = "WGS 84"

# Overlay pieces at or below this area are numerical noise from the union
AREA_CRS = 3857
MIN_AREA_M2 = 10.0

# Renormalized weights must round to 1 at this many decimals
WEIGHT_DECIMALS = 4

# min <= mean <= max is checked with this slack for floating point noise
ORDER_TOLERANCE = 1e-9

DEFAULT_GEO_NAME = "GID_3"
DEFAULT_TZ = "Africa/Nairobi"

FISHNET_NAME = "era_fishnet.shp"
OUTPUT_PATTERN = "country_agg_era5_{year}_d2m_t2m_skt_hti_hum.csv"

# Versions the pipeline was tested against
MIN_VERSIONS = {
    "geopandas": "1.0.1",
    "xarray": "2024.9.0",
    "rioxarray": "0.17.0",
    "shapely": "2.0.6",
    "xvec": "0.3.0",
}

# Releases from these versions on are untested
MAX_VERSIONS = {
    "numpy": "2.0.0",
}


@dataclass
class PipelineConfig:
    era_dir: Path
    boundaries: Path
    outdir: Path
    years: Sequence[int]
    layer: Optional[str] = None
    geo_name: str = DEFAULT_GEO_NAME
    tz: Union[str, float] = DEFAULT_TZ
    passthrough: List[str] = field(default_factory=list)
    fishnet: Optional[Path] = None
    min_area: float = MIN_AREA_M2
    require_complete_days: bool = True

    @property
    def fishnet_path(self) -> Path:
        return Path(self.fishnet) if self.fishnet else Path(self.era_dir) / FISHNET_NAME


def check_package_versions() -> List[str]:
    """Warn about libraries outside the versions in MIN_VERSIONS and MAX_VERSIONS."""
    outdated = []
    for name in list(MIN_VERSIONS) + [n for n in MAX_VERSIONS if n not in MIN_VERSIONS]:
        try:
            installed = Version(version(name))
        except PackageNotFoundError:
            outdated.append(name)
            continue
        if name in MIN_VERSIONS and installed < Version(MIN_VERSIONS[name]):
            outdated.append(name)
        elif name in MAX_VERSIONS and installed >= Version(MAX_VERSIONS[name]):
            outdated.append(name)
    if outdated:
        logger.warning("WARNING: packages are outdated and may result in errors: %s",
                       ", ".join(outdated))
    return outdated
