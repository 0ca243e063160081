"""
Classification module: choropleth binning (fixed or quantile breaks) and bin colour palettes.

Bins are half-open, `breaks[i] <= v < breaks[i+1]`, with the last bin closed on
both ends. In quantile mode a value sitting exactly on an internal break goes to
the lower bin instead. Values outside the break range are clamped to the first
or last bin; missing values get the NO_DATA sentinel.
"""

import bisect
import logging
import math

import numpy as np
import pandas as pd
from matplotlib import colormaps
from matplotlib.colors import to_hex

from . import config
from .models import NO_DATA

LOGGER = logging.getLogger(__name__)

MODES = ("fixed", "quantile")
EMPTY_BREAKS = [0.0, 0.0]


def _is_missing(value):
    if value is None or value is pd.NA:
        return True
    try:
        return math.isnan(value)
    except TypeError:
        return False


def _check_mode(mode):
    if mode not in MODES:
        raise ValueError(f"Unknown classification mode '{mode}' (expected one of {MODES})")


def validate_breaks(breaks):
    """Return breaks as a list of floats; at least two, ascending."""
    breaks = [float(b) for b in breaks]
    if len(breaks) < 2:
        raise ValueError(f"At least two breaks are required, got {len(breaks)}")
    if any(math.isnan(b) for b in breaks):
        raise ValueError("Breaks must not contain NaN")
    if any(b > a for b, a in zip(breaks, breaks[1:])):
        raise ValueError(f"Breaks must be in ascending order: {breaks}")
    return breaks


def classify(value, breaks, mode="fixed"):
    """
    Bin index of a single value.

    Args:
        value: float or None/NaN
        breaks: ascending break values (len(breaks) - 1 bins)
        mode: 'fixed' (internal break belongs to the upper bin) or
              'quantile' (internal break belongs to the lower bin)

    Returns:
        int in [0, len(breaks) - 2], or NO_DATA for a missing value
    """
    _check_mode(mode)
    if _is_missing(value):
        return NO_DATA

    breaks = validate_breaks(breaks)
    last_bin = len(breaks) - 2
    v = float(value)

    if v <= breaks[0]:
        return 0
    if v >= breaks[-1]:
        return last_bin

    if mode == "fixed":
        idx = bisect.bisect_right(breaks, v) - 1
    else:
        idx = bisect.bisect_left(breaks, v) - 1
    return min(max(idx, 0), last_bin)


def quantile_breaks(values, n_bins):
    """
    Equal-count breaks from the non-null values (e.g. n_bins=10 → deciles).

    Repeated quantiles collapse, so heavily tied data gets fewer bins.
    A constant series yields [v, v] (a single bin).
    """
    if n_bins < 1:
        raise ValueError(f"n_bins must be >= 1, got {n_bins}")

    arr = pd.to_numeric(pd.Series(list(values), dtype=object), errors='coerce').dropna().to_numpy(dtype=float)
    if arr.size == 0:
        raise ValueError("Cannot compute quantile breaks: no non-null values")

    edges = np.unique(np.quantile(arr, np.linspace(0, 1, n_bins + 1)))
    if edges.size == 1:
        edges = np.array([edges[0], edges[0]])
    return [float(e) for e in edges]


def classify_values(values, breaks=None, mode="fixed", n_bins=None):
    """
    Classify many values at once.

    Args:
        values: iterable / pd.Series of floats (None/NaN allowed)
        breaks: break values; computed from `values` in quantile mode when None
                (EMPTY_BREAKS if every value is missing),
                config.FIXED_BREAKS in fixed mode when None
        mode: 'fixed' or 'quantile'
        n_bins: number of quantile bins (defaults to config.QUANTILE_BINS)

    Returns:
        (list of bin indexes / NO_DATA, breaks used)
    """
    _check_mode(mode)
    values = list(values)

    if breaks is None:
        if mode == "quantile":
            if all(_is_missing(v) for v in values):
                # nothing to rank: placeholder single bin, every value is NO_DATA
                breaks = EMPTY_BREAKS
            else:
                breaks = quantile_breaks(values, n_bins or config.QUANTILE_BINS)
        else:
            breaks = config.FIXED_BREAKS
    breaks = validate_breaks(breaks)

    arr = np.array([np.nan if _is_missing(v) else float(v) for v in values], dtype=float)
    side = 'right' if mode == "fixed" else 'left'
    idx = np.searchsorted(np.asarray(breaks), arr, side=side) - 1
    idx = np.clip(idx, 0, len(breaks) - 2)

    bins = [NO_DATA if np.isnan(v) else int(i) for v, i in zip(arr, idx)]
    return bins, breaks


def classify_frame(gdf, column='numeric_value', breaks=None, mode="fixed", n_bins=None):
    """
    Add a 'bin_index' column to a joined frame.

    Returns:
        (classified copy, breaks used, log info)
    """
    log = []
    if column not in gdf.columns:
        raise ValueError(f"'{column}' column not found")

    gdf_out = gdf.copy()
    bins, breaks = classify_values(gdf_out[column], breaks=breaks, mode=mode, n_bins=n_bins)
    gdf_out['bin_index'] = pd.Series(bins, index=gdf_out.index, dtype=object)

    n_bins_used = len(breaks) - 1
    log.append(f"✓ Classified '{column}' into {n_bins_used} {mode} bins: {[round(b, 2) for b in breaks]}")

    counts = bin_counts(bins, n_bins_used)
    log.append(f"  - Per bin: {[counts[i] for i in range(n_bins_used)]}, no data: {counts[NO_DATA]}")
    if len(bins) and counts[NO_DATA] == len(bins):
        log.append(f"⚠️  No values in '{column}'; every feature is no-data")

    values = gdf_out[column].dropna()
    below = (values < breaks[0]).sum()
    above = (values > breaks[-1]).sum()
    if below or above:
        log.append(f"⚠️  Clamped {below} values below {breaks[0]} and {above} above {breaks[-1]}")

    return gdf_out, breaks, log


def bin_counts(bins, n_bins):
    """Count features per bin (always includes every bin and NO_DATA)."""
    counts = {i: 0 for i in range(n_bins)}
    counts[NO_DATA] = 0
    for b in bins:
        counts[b] = counts.get(b, 0) + 1
    return counts


def build_palette(palette, n_bins, no_data_color=None):
    """
    Colours for n_bins bins plus one trailing colour reserved for NO_DATA.

    Args:
        palette: matplotlib colormap name (e.g. 'YlOrRd') or explicit list of n_bins colours
        n_bins: number of bins (len(breaks) - 1)
        no_data_color: colour for missing values (defaults to config.NO_DATA_COLOR)

    Returns:
        list of hex colours, length n_bins + 1
    """
    if n_bins < 1:
        raise ValueError(f"n_bins must be >= 1, got {n_bins}")
    no_data_color = no_data_color or config.NO_DATA_COLOR

    if isinstance(palette, str):
        try:
            cmap = colormaps[palette]
        except KeyError:
            raise ValueError(f"Unknown palette '{palette}'") from None
        colors = [to_hex(cmap(x)) for x in np.linspace(0, 1, n_bins)]
    else:
        colors = [to_hex(c) for c in palette]
        if len(colors) != n_bins:
            raise ValueError(f"Palette has {len(colors)} colours, expected {n_bins}")

    return colors + [to_hex(no_data_color)]


def check_palette(palette, breaks):
    """Assert a palette fits the breaks: one colour per bin plus the NO_DATA colour."""
    expected = (len(breaks) - 1) + 1
    if len(palette) != expected:
        raise ValueError(
            f"Palette size {len(palette)} does not match {len(breaks) - 1} bins + 1 no-data colour"
        )


def color_of(bin_index, palette):
    """Colour for a bin index; NO_DATA maps to the last palette entry."""
    if isinstance(bin_index, str):
        if bin_index != NO_DATA:
            raise ValueError(f"Unknown bin '{bin_index}'")
        return palette[-1]
    idx = int(bin_index)
    if not 0 <= idx < len(palette) - 1:
        raise ValueError(f"Bin index {idx} out of range for {len(palette) - 1} bins")
    return palette[idx]


def bin_labels(breaks, fmt="{:.1f}"):
    """Legend labels like '0.0 - 2.5' for each bin."""
    breaks = validate_breaks(breaks)
    return [f"{fmt.format(lo)} - {fmt.format(hi)}" for lo, hi in zip(breaks, breaks[1:])]
