from __future__ import annotations

from pathlib import Path

import pytest

from msoa_map.classify import build_palette, classify_frame
from msoa_map.spatial import join_attributes
from msoa_map.staticmap import plot_static_map


def test_plot_static_map_writes_png(polygons, areas, tmp_path: Path):
    joined, _ = join_attributes(polygons, areas)
    classified, breaks, _ = classify_frame(joined, breaks=[0, 5, 10, 15])
    palette = build_palette("YlOrRd", len(breaks) - 1)

    out = tmp_path / "figs" / "map.png"
    fig = plot_static_map(classified, palette, breaks, out_path=out, title="Test", dpi=50)

    assert out.exists()
    labels = [t.get_text() for t in fig.axes[0].get_legend().get_texts()]
    assert labels == ["0.0 - 5.0", "5.0 - 10.0", "10.0 - 15.0", "No data"]


def test_plot_static_map_requires_bins(polygons):
    with pytest.raises(ValueError):
        plot_static_map(polygons.assign(numeric_value=1.0), ["#000000", "#ffffff"], [0, 1])
