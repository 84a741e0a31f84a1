# Date Created: 12/5/2024
# Version Number: v1
# ************************************************************** #
# ~~~~~  ERA5 Re-Analysis Raster Processing Step 2        ~~~~~~ #
# ************************************************************** #
## Purpose: Process ERA5 rasters to administrative boundaries (e.g. Kenya
##    wards from gadm.org).
##
## Overall Processing Steps:
##    Script: 02_Aggregate_ERA5_SetFishnet_v1.py
## 1) Create Fishnet of the ERA5 raster grid.
##
##    Script: 03_Aggregate_ERA5_UseFishnet_v1.py
## 2) Join the fishnet with the administrative boundaries so that every unit
##    is aligned with the relevant ERA5 cells (this file).
## 3) Create extraction points from the union of the units and fishnet
##    (this file).
## 4) Estimate the unit-level exposure to ERA5, accounting for the
##    availability of data within the units (this file).
##
## Usage:
##    python code/03_Aggregate_ERA5_UseFishnet_v1.py --era-dir ERA5_Out \
##        --boundaries GEO/gadm41_KEN.gpkg --layer ADM_ADM_3 --geo-name GID_3 \
##        --tz Africa/Nairobi --years 2000 2001 --outdir OUT

import sys

from era5_heat.cli import main

if __name__ == "__main__":
    sys.exit(main(["aggregate"] + sys.argv[1:]))
