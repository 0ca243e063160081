from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from msoa_map.classify import (
    bin_counts,
    bin_labels,
    build_palette,
    check_palette,
    classify,
    classify_frame,
    classify_values,
    color_of,
    quantile_breaks,
)
from msoa_map.models import NO_DATA

BREAKS = [0, 2.5, 5.0, 7.5, 10.0, 12.5, 15.0, 20.8]


@pytest.mark.parametrize("value", [0.01, 1.0, 2.5, 3.3, 7.49, 10.0, 14.99, 15.0, 20.0, 20.79])
def test_fixed_value_inside_range_falls_in_its_bin(value):
    idx = classify(value, BREAKS, "fixed")

    assert isinstance(idx, int)
    assert BREAKS[idx] <= value <= BREAKS[idx + 1]


def test_fixed_internal_boundary_belongs_to_upper_bin():
    assert classify(10, [0, 10, 20], "fixed") == 1
    assert classify(2.5, BREAKS, "fixed") == 1


def test_fixed_last_bin_is_closed():
    assert classify(20.8, BREAKS, "fixed") == len(BREAKS) - 2
    assert classify(0, BREAKS, "fixed") == 0


def test_out_of_range_values_clamp():
    assert classify(BREAKS[0] - 100, BREAKS, "fixed") == 0
    assert classify(BREAKS[-1] + 100, BREAKS, "fixed") == len(BREAKS) - 2
    assert classify(-1, [0, 10, 20], "quantile") == 0
    assert classify(99, [0, 10, 20], "quantile") == 1


@pytest.mark.parametrize("missing", [None, float("nan"), np.nan, pd.NA])
@pytest.mark.parametrize("mode", ["fixed", "quantile"])
def test_missing_value_is_no_data(missing, mode):
    assert classify(missing, BREAKS, mode) == NO_DATA


def test_quantile_tie_at_boundary_goes_to_lower_bin():
    assert classify(10, [0, 10, 20], "quantile") == 0
    assert classify(10.0001, [0, 10, 20], "quantile") == 1


def test_invalid_breaks_and_mode_raise():
    with pytest.raises(ValueError):
        classify(1.0, [5], "fixed")
    with pytest.raises(ValueError):
        classify(1.0, [0, 10, 5], "fixed")
    with pytest.raises(ValueError):
        classify(1.0, BREAKS, "jenks")


def test_quantile_breaks_deciles_and_ties():
    values = list(range(1, 101))
    breaks = quantile_breaks(values, 10)
    assert len(breaks) == 11
    assert breaks[0] == 1 and breaks[-1] == 100

    tied = [1, 1, 1, 1, 2]
    assert quantile_breaks(tied, 4) == [1.0, 2.0]

    assert quantile_breaks([3.0, None, 3.0], 5) == [3.0, 3.0]

    with pytest.raises(ValueError):
        quantile_breaks([None, float("nan")], 5)


def test_classify_values_matches_scalar_classify():
    values = [-5, 0, 2.5, 4.9, 10.0, None, 20.8, 50, float("nan")]
    for mode in ("fixed", "quantile"):
        bins, used = classify_values(values, breaks=BREAKS, mode=mode)
        assert used == [float(b) for b in BREAKS]
        assert bins == [classify(v, BREAKS, mode) for v in values]


def test_classify_values_quantile_computes_equal_count_bins():
    values = [1, 2, 3, 4, 5, 6, 7, 8]
    bins, breaks = classify_values(values, mode="quantile", n_bins=4)

    assert len(breaks) == 5
    assert bin_counts(bins, 4) == {0: 2, 1: 2, 2: 2, 3: 2, NO_DATA: 0}


def test_classify_frame_is_idempotent_and_does_not_mutate(polygons):
    gdf = polygons.assign(numeric_value=[1.0, None, 12.6, 30.0])
    first, breaks, log = classify_frame(gdf, breaks=BREAKS)
    second, _, _ = classify_frame(gdf, breaks=BREAKS)

    assert "bin_index" not in gdf.columns
    assert list(first["bin_index"]) == [0, NO_DATA, 5, 6]
    assert list(first["bin_index"]) == list(second["bin_index"])
    assert any("Clamped" in line for line in log)


def test_build_palette_reserves_no_data_colour():
    palette = build_palette("YlOrRd", 7, no_data_color="#cccccc")

    assert len(palette) == 8
    assert palette[-1] == "#cccccc"
    assert all(c.startswith("#") and len(c) == 7 for c in palette)
    check_palette(palette, BREAKS)


def test_build_palette_explicit_and_errors():
    assert build_palette(["red", "#00ff00"], 2, "grey") == ["#ff0000", "#00ff00", "#808080"]
    with pytest.raises(ValueError):
        build_palette(["red"], 2)
    with pytest.raises(ValueError):
        build_palette("not-a-colormap", 3)
    with pytest.raises(ValueError):
        check_palette(["#000000"] * 3, BREAKS)


def test_color_of_is_pure_lookup():
    palette = ["#111111", "#222222", "#999999"]

    assert color_of(0, palette) == "#111111"
    assert color_of(1, palette) == "#222222"
    assert color_of(NO_DATA, palette) == "#999999"
    with pytest.raises(ValueError):
        color_of(2, palette)
    with pytest.raises(ValueError):
        color_of("other", palette)


def test_bin_labels():
    assert bin_labels([0, 2.5, 5]) == ["0.0 - 2.5", "2.5 - 5.0"]
    assert len(bin_labels(BREAKS)) == len(BREAKS) - 1


def test_quantile_mode_with_no_values_is_all_no_data():
    bins, breaks = classify_values([None, float("nan"), pd.NA], mode="quantile", n_bins=4)

    assert bins == [NO_DATA, NO_DATA, NO_DATA]
    assert breaks == [0.0, 0.0]
    assert len(build_palette("YlOrRd", len(breaks) - 1)) == 2


def test_classify_frame_quantile_all_missing_logs_warning(polygons):
    gdf = polygons.assign(numeric_value=float("nan"))

    out, breaks, log = classify_frame(gdf, mode="quantile", n_bins=5)

    assert list(out["bin_index"]) == [NO_DATA] * len(polygons)
    assert breaks == [0.0, 0.0]
    assert any("every feature is no-data" in line for line in log)
