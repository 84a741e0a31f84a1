from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from era5_heat.errors import DimensionError, IncompleteDayError, MissingFieldError
from era5_heat.temporal import (
    YearContext,
    check_complete_days,
    check_layer_counts,
    daily_stacks,
    expected_hours,
    reduce_daily,
    resolve_timezone,
    restrict_to_year,
    select_year_files,
    split_variables,
    to_local_time,
)


def test_year_context_offset_direction() -> None:
    east = YearContext.create(2020, 3)
    assert east.ahead
    assert east.adjacent_year == 2019

    west = YearContext.create(2020, "America/Lima")
    assert not west.ahead
    assert west.adjacent_year == 2021

    assert YearContext.create(2020, "UTC").adjacent_year is None
    assert YearContext.create(2020, "Africa/Nairobi").utc_offset == pd.Timedelta(hours=3)


def test_resolve_timezone_fixed_offset() -> None:
    tz = resolve_timezone(-5.5)
    assert pd.Timestamp("2020-06-01").tz_localize(tz).utcoffset() == pd.Timedelta(hours=-5, minutes=-30)


def test_select_year_files_takes_adjacent_edge_month() -> None:
    files = ["era/2019_11.nc", "era/2019_12.nc", "era/2020_01.nc", "era/2020_12.nc",
             "era/2021_01.nc", "era/1999_12-31.nc", "era/notes.txt"]

    ahead = select_year_files(files, YearContext.create(2020, 3))
    assert ahead == ["era/2019_12.nc", "era/2020_01.nc", "era/2020_12.nc"]

    behind = select_year_files(files, YearContext.create(2020, -5))
    assert behind == ["era/2020_01.nc", "era/2020_12.nc", "era/2021_01.nc"]

    assert select_year_files(files, YearContext.create(2000, 3)) == ["era/1999_12-31.nc"]


def test_first_utc_hour_lands_on_local_new_year(year_times, make_stack) -> None:
    ctx = YearContext.create(2020, 3)
    hour_index = np.arange(len(year_times), dtype=float)[:, None, None] + np.zeros((1, 2, 2))
    stack = make_stack(year_times, t2m=hour_index + 273.15)

    local = restrict_to_year(to_local_time(stack, ctx.tz), ctx)

    assert pd.Timestamp(local["valid_time"].values[0]) == pd.Timestamp("2020-01-01 00:00")
    assert pd.Timestamp(local["valid_time"].values[-1]) == pd.Timestamp("2020-12-31 23:00")
    # the 21:00 UTC hour of Dec 31 is the first local hour of day 1
    assert float(local["t2m"][0, 0, 0]) == pytest.approx(0.0 + 273.15)
    assert local.sizes["valid_time"] == 366 * 24

    incomplete = check_complete_days(local["valid_time"].values, ctx)
    assert incomplete.empty


def test_missing_look_behind_is_rejected(make_stack) -> None:
    ctx = YearContext.create(2020, 3)
    times = pd.date_range("2020-01-01 00:00", "2020-12-31 20:00", freq="h")
    local = restrict_to_year(to_local_time(make_stack(times), ctx.tz), ctx)

    with pytest.raises(IncompleteDayError, match="2020-01-01"):
        check_complete_days(local["valid_time"].values, ctx)

    incomplete = check_complete_days(local["valid_time"].values, ctx, require=False)
    assert list(incomplete.index) == [pd.Timestamp("2020-01-01")]
    assert int(incomplete.iloc[0]) == 21


def test_year_without_hours_is_rejected_even_when_allowed() -> None:
    ctx = YearContext.create(2020, 3)
    with pytest.raises(IncompleteDayError, match="No hours"):
        check_complete_days(pd.DatetimeIndex([]), ctx, require=False)


def test_expected_hours_follow_daylight_saving() -> None:
    hours = expected_hours(YearContext.create(2021, "America/New_York"))
    assert len(hours) == 365
    assert hours[pd.Timestamp("2021-03-14")] == 23
    assert hours[pd.Timestamp("2021-11-07")] == 25
    assert hours[pd.Timestamp("2021-07-01")] == 24


def test_split_variables_converts_kelvin(make_stack) -> None:
    stack = make_stack(pd.date_range("2020-01-01", periods=2, freq="h"), t2m=300.0, d2m=273.15)
    out = split_variables(stack)

    assert set(out) == {"d2m", "t2m", "skt"}
    assert float(out["d2m"][0, 0, 0]) == pytest.approx(0.0)
    assert float(out["t2m"][0, 0, 0]) == pytest.approx(26.85)
    assert out["t2m"].name == "t2m"

    with pytest.raises(MissingFieldError):
        split_variables(stack.drop_vars("skt"))


def test_reduce_daily_per_cell_statistics(make_stack) -> None:
    times = pd.date_range("2020-01-01", periods=48, freq="h")
    values = np.zeros((48, 2, 2))
    values[:24, 0, 0] = np.arange(24)
    values[:24, 1, 1] = 5.0
    da = make_stack(times, t2m=values)["t2m"]

    daily = reduce_daily(da)

    assert set(daily) == {"mean", "max", "min"}
    assert daily["mean"].sizes["date"] == 2
    assert float(daily["mean"][0, 0, 0]) == pytest.approx(11.5)
    assert float(daily["min"][0, 0, 0]) == 0.0
    assert float(daily["max"][0, 0, 0]) == 23.0
    # min and max are full daily layers, not scalar summaries
    assert float(daily["max"][0, 1, 1]) == 5.0
    assert float(daily["max"][1, 0, 0]) == 0.0


def test_constant_input_gives_equal_statistics(year_times, make_stack) -> None:
    ctx = YearContext.create(2020, 3)
    local = restrict_to_year(to_local_time(make_stack(year_times), ctx.tz), ctx)
    hourly = split_variables(local)

    daily = daily_stacks(hourly, ctx)

    for stats in daily.values():
        assert stats["mean"].sizes["date"] == 366
    t2m = daily["t2m"]
    assert np.allclose(t2m["mean"].values, 26.85)
    assert np.allclose(t2m["min"].values, 26.85)
    assert np.allclose(t2m["max"].values, 26.85)


def test_layer_count_mismatch_is_fatal(make_stack) -> None:
    stack = make_stack(pd.date_range("2020-01-01", periods=4, freq="h"))
    stacks = {"t2m": stack["t2m"], "d2m": stack["d2m"].isel(valid_time=slice(0, 3))}
    with pytest.raises(DimensionError):
        check_layer_counts(stacks)
    assert check_layer_counts({"t2m": stack["t2m"], "skt": stack["skt"]}) == 4
