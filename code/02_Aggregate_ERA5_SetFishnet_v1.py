# Date Created: 10/15/2024
# Version Number: v1
# ************************************************************** #
# ~~~~~~~  ERA5 Re-Analysis Raster Processing Step 1     ~~~~~~~ #
# ************************************************************** #
## Purpose: Process ERA5 rasters to administrative boundaries. This
##    script is the first in a two-step raster processing process. In this
##    a grid-based polygon will be derived from the raster grid of ERA5 data.
##
## Overall Processing Steps:
##    Script: 02_Aggregate_ERA5_SetFishnet_v1.py
## 1) Create Fishnet that can be used to extract ERA5 data from raster stack
##    including ERA5 hourly data (this file).
##
##    Script: 03_Aggregate_ERA5_UseFishnet_v1.py
## 2) Load administrative boundaries, union them with the fishnet, create
##    extraction points and estimate the unit-level exposure to ERA5.
##
## Usage:
##    python code/02_Aggregate_ERA5_SetFishnet_v1.py --era-dir ERA5_Out

import sys

from era5_heat.cli import main

if __name__ == "__main__":
    sys.exit(main(["fishnet"] + sys.argv[1:]))
