from __future__ import annotations

import folium
import pytest
from shapely.geometry import Polygon

from msoa_map.classify import build_palette, classify_frame
from msoa_map.models import NO_DATA, JoinedFeature, features_from_frame
from msoa_map.spatial import join_attributes
from msoa_map.webmap import ChoroplethMapBuilder, default_popup, legend_entries, map_html, render

BREAKS = [0.0, 5.0, 10.0, 15.0]


@pytest.fixture
def classified(polygons, areas):
    joined, _ = join_attributes(polygons, areas)
    gdf, _, _ = classify_frame(joined, breaks=BREAKS)
    return gdf


@pytest.fixture
def palette():
    return build_palette(["#fee5d9", "#fb6a4a", "#a50f15"], 3, no_data_color="#bdbdbd")


def test_default_popup_shows_value_or_no_data(polygons):
    geom = polygons.geometry.iloc[0]
    with_value = JoinedFeature("E02000001", "City <001>", 4.2, geom, 0)
    without = JoinedFeature("E02000002", None, None, geom, NO_DATA)

    assert "Value: 4.2%" in default_popup(with_value)
    assert "City &lt;001&gt;" in default_popup(with_value)
    assert "No data" in default_popup(without)
    assert "<b>E02000002</b>" in default_popup(without)


def test_builder_produces_map_with_every_feature(classified, palette):
    m = (
        ChoroplethMapBuilder()
        .with_legend(caption="Test caption")
        .add_layer(classified, palette=palette, breaks=BREAKS, name="Areas")
        .build()
    )

    assert isinstance(m, folium.Map)
    html = map_html(m)
    assert html.count("E02000001") >= 1
    assert "No data" in html
    assert "Test caption" in html
    assert "#a50f15" in html
    assert "#bdbdbd" in html


def test_builder_is_lazy_until_build(classified, palette):
    builder = ChoroplethMapBuilder().add_layer(classified, palette=palette, breaks=BREAKS)

    assert len(builder.layers) == 1
    assert len(builder.layers[0]["features"]) == 4


def test_custom_popup_template(classified, palette):
    m = (
        ChoroplethMapBuilder()
        .with_popup(lambda f: f"AREA-{f.code}-{f.bin_index}")
        .add_layer(classified, palette=palette, breaks=BREAKS)
        .build()
    )

    html = map_html(m)
    assert "AREA-E02000001-0" in html
    assert f"AREA-E02000003-{NO_DATA}" in html


def test_two_layers_add_layer_control(classified, palette):
    m = (
        ChoroplethMapBuilder()
        .add_layer(classified, palette=palette, breaks=BREAKS, name="A")
        .add_layer(classified, palette=palette, breaks=BREAKS, name="B", show=False)
        .build()
    )

    children = list(m._children.values())
    assert any(isinstance(c, folium.LayerControl) for c in children)


def test_builder_validation(classified, palette):
    builder = ChoroplethMapBuilder()

    with pytest.raises(ValueError, match="Unknown style keys"):
        builder.with_style(stroke_dash="4")
    with pytest.raises(TypeError):
        builder.with_popup("not callable")
    with pytest.raises(ValueError):
        builder.add_layer(classified)
    with pytest.raises(ValueError):
        builder.add_layer(classified.drop(columns="bin_index"), palette=palette)
    with pytest.raises(ValueError):
        builder.add_layer(classified, palette=palette[:2], breaks=BREAKS)


def test_render_with_color_function(classified):
    seen = []

    def color_fn(bin_index):
        seen.append(bin_index)
        return "#000000" if bin_index == NO_DATA else "#ff0000"

    m = render(classified, color_fn, style={"fill_opacity": 0.5})

    assert isinstance(m, folium.Map)
    assert seen == [0, 2, NO_DATA, NO_DATA]


def test_render_skips_empty_geometries(classified):
    classified.loc[1, "geometry"] = Polygon()
    seen = []

    render(classified, lambda b: seen.append(b) or "#ff0000")

    assert len(seen) == 3


def test_legend_entries(palette):
    entries = legend_entries(palette, BREAKS)

    assert entries == [
        ("0.0 - 5.0", "#fee5d9"),
        ("5.0 - 10.0", "#fb6a4a"),
        ("10.0 - 15.0", "#a50f15"),
        ("No data", "#bdbdbd"),
    ]


def test_with_tiles_and_features_list(classified, palette):
    features = features_from_frame(classified)
    builder = ChoroplethMapBuilder().with_tiles("openstreetmap", center=(51.4, -0.1), zoom=12)

    m = builder.add_layer(features, palette=palette, breaks=BREAKS).build()

    assert builder.center == (51.4, -0.1) and builder.zoom == 12
    assert "openstreetmap" in map_html(m).lower()
    assert [f.has_data for f in features] == [True, True, False, False]


def test_default_tiles_are_openstreetmap(classified, palette):
    m = ChoroplethMapBuilder().add_layer(classified, palette=palette, breaks=BREAKS).build()

    assert "tile.openstreetmap.org" in map_html(m)
