"""
Aggregation of hourly ERA5 temperature rasters to daily statistics by
administrative boundary.
"""

__version__ = "1.0.0"
