"""
Webmap module: build the interactive folium choropleth from classified features.

`ChoroplethMapBuilder` collects tiles, style, popup, legend and layers, and only
creates the folium.Map in `build()`. Nothing is drawn until then.
"""

import html
import logging

import folium
import geopandas as gpd
from branca.colormap import StepColormap
from shapely.geometry import mapping

from . import config
from .classify import bin_labels, check_palette, color_of as palette_color
from .models import features_from_frame
from .spatial import to_web_crs

LOGGER = logging.getLogger(__name__)

STYLE_KEYS = set(config.MAP_STYLE)

NO_DATA_LEGEND_HTML = """
<div style="position: fixed; bottom: 30px; left: 30px; z-index: 9999;
            background: white; padding: 4px 8px; border-radius: 4px;
            font-size: 12px; box-shadow: 0 0 4px rgba(0,0,0,0.3);">
  <span style="display:inline-block; width:12px; height:12px; margin-right:4px;
               background:{color}; border:1px solid #999;"></span>{label}
</div>
"""


def default_popup(feature):
    """Popup HTML for a JoinedFeature: name, code and value (or 'No data')."""
    title = feature.name or feature.code
    if feature.numeric_value is None:
        value = "No data"
    else:
        value = f"{feature.numeric_value:.1f}%"
    return (
        f"<b>{html.escape(str(title))}</b><br>"
        f"MSOA: {html.escape(str(feature.code))}<br>"
        f"Value: {value}"
    )


def _as_features(features):
    """Accept a classified GeoDataFrame (reprojected to WGS84) or a list of JoinedFeatures."""
    if isinstance(features, gpd.GeoDataFrame):
        if 'bin_index' not in features.columns:
            raise ValueError("Features must be classified first ('bin_index' column missing)")
        return features_from_frame(to_web_crs(features))
    return list(features)


def _bounds(features):
    geoms = [f.geometry for f in features if f.geometry is not None and not f.geometry.is_empty]
    if not geoms:
        return None
    series = gpd.GeoSeries(geoms)
    minx, miny, maxx, maxy = series.total_bounds
    return [[miny, minx], [maxy, maxx]]


class ChoroplethMapBuilder:
    """Accumulates map configuration; `build()` produces the folium.Map."""

    def __init__(self, center=None, zoom=None, tiles=None):
        self.center = center or config.MAP_CENTER
        self.zoom = zoom or config.MAP_ZOOM
        self.tiles = tiles or config.MAP_TILES
        self.style = dict(config.MAP_STYLE)
        self.popup_template = default_popup
        self.legend_caption = config.LEGEND_CAPTION
        self.show_legend = True
        self.fit_bounds = True
        self.layers = []

    def with_tiles(self, tiles, center=None, zoom=None):
        self.tiles = tiles
        if center is not None:
            self.center = center
        if zoom is not None:
            self.zoom = zoom
        return self

    def with_style(self, **style):
        unknown = set(style) - STYLE_KEYS
        if unknown:
            raise ValueError(f"Unknown style keys: {sorted(unknown)} (expected {sorted(STYLE_KEYS)})")
        self.style.update(style)
        return self

    def with_popup(self, template):
        if not callable(template):
            raise TypeError("Popup template must be callable: JoinedFeature -> str")
        self.popup_template = template
        return self

    def with_legend(self, caption=None, show=True):
        if caption is not None:
            self.legend_caption = caption
        self.show_legend = show
        return self

    def add_layer(self, features, palette=None, breaks=None, color_fn=None, name="Choropleth", show=True):
        """
        Add a choropleth layer.

        Args:
            features: classified GeoDataFrame or list of JoinedFeature (WGS84)
            palette: colours per bin + trailing no-data colour (used when color_fn is None)
            breaks: break values (needed for the legend and palette check)
            color_fn: bin_index -> colour; overrides palette lookup
            name: layer name shown in the layer control
            show: layer visible on load
        """
        if color_fn is None:
            if palette is None:
                raise ValueError("Either palette or color_fn is required")
            color_fn = lambda b, p=palette: palette_color(b, p)
        if palette is not None and breaks is not None:
            check_palette(palette, breaks)

        self.layers.append({
            'name': name,
            'features': _as_features(features),
            'color_fn': color_fn,
            'palette': palette,
            'breaks': breaks,
            'show': show,
        })
        return self

    def _add_feature(self, group, feature, color):
        style = self.style
        folium.GeoJson(
            mapping(feature.geometry),
            style_function=lambda x, c=color: {
                'fillColor': c,
                'color': style['border_color'],
                'weight': style['border_weight'],
                'fillOpacity': style['fill_opacity'],
            },
            highlight_function=lambda x: {
                'weight': style['highlight_weight'],
                'color': style['highlight_color'],
            },
            tooltip=html.escape(str(feature.name or feature.code)),
            popup=folium.Popup(self.popup_template(feature), max_width=250),
        ).add_to(group)

    def _add_legend(self, m, layer):
        palette, breaks = layer['palette'], layer['breaks']
        if palette is None or breaks is None:
            return
        if breaks[-1] > breaks[0]:
            StepColormap(
                colors=palette[:-1],
                index=breaks,
                vmin=breaks[0],
                vmax=breaks[-1],
                caption=self.legend_caption,
            ).add_to(m)
        else:
            LOGGER.info("Zero-width break range %s; step legend omitted", breaks)
        m.get_root().html.add_child(folium.Element(
            NO_DATA_LEGEND_HTML.format(color=palette[-1], label="No data")
        ))

    def build(self):
        m = folium.Map(location=list(self.center), zoom_start=self.zoom, tiles=self.tiles)

        all_features = []
        for layer in self.layers:
            group = folium.FeatureGroup(name=layer['name'], show=layer['show'])
            drawn = 0
            for feature in layer['features']:
                if feature.geometry is None or feature.geometry.is_empty:
                    continue
                self._add_feature(group, feature, layer['color_fn'](feature.bin_index))
                drawn += 1
            group.add_to(m)
            all_features.extend(layer['features'])
            LOGGER.info("Layer '%s': %d features drawn", layer['name'], drawn)

        if self.show_legend and self.layers:
            self._add_legend(m, self.layers[0])

        if len(self.layers) > 1:
            folium.LayerControl(collapsed=False).add_to(m)

        if self.fit_bounds:
            bounds = _bounds(all_features)
            if bounds is not None:
                m.fit_bounds(bounds)

        return m


def render(features, color_fn, style=None, popup_template=None, palette=None, breaks=None):
    """Single-layer shortcut around ChoroplethMapBuilder. Returns folium.Map."""
    builder = ChoroplethMapBuilder()
    if style:
        builder.with_style(**style)
    if popup_template is not None:
        builder.with_popup(popup_template)
    if palette is None or breaks is None:
        builder.with_legend(show=False)
    return builder.add_layer(features, palette=palette, breaks=breaks, color_fn=color_fn).build()


def legend_entries(palette, breaks):
    """(label, colour) pairs for every bin plus the no-data entry."""
    check_palette(palette, breaks)
    entries = list(zip(bin_labels(breaks), palette[:-1]))
    entries.append(("No data", palette[-1]))
    return entries


def map_html(m):
    """Full standalone HTML of a folium map."""
    return m.get_root().render()
