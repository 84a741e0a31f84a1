"""
Heat metrics derived from 2 m temperature and dew point.

Humidex function from heatmetrics package:
Reference: K.R. Spangler, S. Liang, and G.A. Wellenius. "Wet-Bulb Globe
Temperature, Universal Thermal Climate Index, and Other Heat Metrics for US
Counties, 2000-2020." Scientific Data (2022). doi: 10.1038/s41597-022-01405-3

Lawrence, M. G. The relationship between relative humidity and the dewpoint
temperature in moist air - A simple conversion and applications. B. Am.
Meteorol. Soc. 86, 225-233, https://doi.org/10.1175/Bams-86-2-225 (2005).

The heat index follows the National Weather Service algorithm, as in the
weathermetrics R package: a dew point above the air temperature gives no
humidity and no heat index, below 40 F the heat index is the air temperature,
otherwise Steadman's simple formula is used, and where that exceeds 79 F the
Rothfusz regression with its low- and high-humidity adjustments.
"""
import numpy as np
import xarray


def humidex(t, td):
    t = np.asarray(t, dtype=float)
    td = np.asarray(td, dtype=float)
    return t + (5 / 9) * ((6.1094 * np.exp((17.625 * td) / (243.04 + td))) - 10)


def relative_humidity(t, td):
    """Relative humidity (%) from temperature and dew point in Celsius.

    A dew point above the air temperature is not physical and gives NaN.
    """
    t = np.asarray(t, dtype=float)
    td = np.asarray(td, dtype=float)
    rh = 100 * (np.exp((17.625 * td) / (243.04 + td)) / np.exp((17.625 * t) / (243.04 + t)))
    with np.errstate(invalid="ignore"):
        return np.where(td > t, np.nan, rh)


def heat_index_fahrenheit(t_f, rh):
    t_f = np.asarray(t_f, dtype=float)
    rh = np.asarray(rh, dtype=float)

    steadman = 0.5 * (t_f + 61 + ((t_f - 68) * 1.2) + (rh * 0.094))

    rothfusz = (-42.379 + 2.04901523 * t_f + 10.14333127 * rh
                - 0.22475541 * t_f * rh - 0.00683783 * t_f * t_f
                - 0.05481717 * rh * rh + 0.00122874 * t_f * t_f * rh
                + 0.00085282 * t_f * rh * rh - 0.00000199 * t_f * t_f * rh * rh)

    with np.errstate(invalid="ignore"):
        dry = (rh <= 13) & (t_f >= 80) & (t_f <= 112)
        humid = (rh > 85) & (t_f >= 80) & (t_f <= 87)
        dry_adj = ((13 - rh) / 4) * np.sqrt(np.clip(17 - np.abs(t_f - 95), 0, None) / 17)
        humid_adj = ((rh - 85) / 10) * ((87 - t_f) / 5)

    rothfusz = np.where(dry, rothfusz - dry_adj, rothfusz)
    rothfusz = np.where(humid, rothfusz + humid_adj, rothfusz)

    hi = np.where(steadman > 79, rothfusz, steadman)
    hi = np.where(t_f <= 40, t_f, hi)
    return np.where(np.isnan(t_f) | np.isnan(rh), np.nan, hi)


def heat_index(t, td):
    """Heat index in Celsius from temperature and dew point in Celsius."""
    t = np.asarray(t, dtype=float)
    f_t = (t * 9 / 5) + 32
    humidity = relative_humidity(t, td)
    f_heat_index = heat_index_fahrenheit(f_t, humidity)
    heat_index_c = (f_heat_index - 32) * 5 / 9
    # Below the regression's domain the ambient temperature is returned as is,
    # unless the humidity is missing
    heat_index_c = np.where(f_t <= 40, t, heat_index_c)
    return np.where(np.isnan(humidity), np.nan, heat_index_c)


def derive_metrics(t2m, d2m):
    """Apply the heat index and humidex to co-registered Celsius stacks."""
    hti = xarray.apply_ufunc(heat_index, t2m, d2m, dask="parallelized", output_dtypes=[float])
    hum = xarray.apply_ufunc(humidex, t2m, d2m, dask="parallelized", output_dtypes=[float])

    # Assign names to new layers
    return hti.rename("hti"), hum.rename("hum")
