"""
Pipeline module: fetch → load → clean → join → classify → map, as plain staged functions.

Each stage returns new frames plus a list of log lines; `run_pipeline` wires them
together and forwards the log lines to `logging`.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path

from . import config
from .classify import build_palette, classify_frame
from .cleaning import clean_area_table
from .io import fetch_source, load_boundaries, load_table, save_csv, save_geojson, save_html
from .spatial import clean_boundaries, join_attributes
from .webmap import ChoroplethMapBuilder

LOGGER = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    area_table: object
    boundaries: object
    joined: object
    breaks: list
    palette: list
    mode: str = "fixed"
    log: list = field(default_factory=list)

    @property
    def n_bins(self):
        return len(self.breaks) - 1


def emit_log(log, logger=LOGGER):
    """Forward stage log lines to a logger (⚠️ lines as warnings)."""
    for line in log:
        if line.lstrip().startswith("⚠️"):
            logger.warning(line)
        else:
            logger.info(line)


def fetch_inputs(table_url=None, boundary_url=None, table_path=None, boundary_path=None,
                 overwrite=False, session=None):
    """
    Download both sources to the raw data folder (cached).

    A source without a URL must already exist locally.

    Returns:
        (table_path, boundary_path)
    """
    table_path = Path(table_path or config.INPUT_FILES["health_table"])
    boundary_path = Path(boundary_path or config.INPUT_FILES["boundaries"])

    for url, path in ((table_url, table_path), (boundary_url, boundary_path)):
        if url:
            fetch_source(url, path, overwrite=overwrite, session=session)
        elif not path.exists():
            raise FileNotFoundError(f"No URL configured and no local copy at {path}")

    return table_path, boundary_path


def load_inputs(table_path, boundary_path, table_schema=None, boundary_schema=None):
    """Load and clean both sources. Returns (area table, boundaries, log)."""
    table_schema = table_schema or config.TABLE_SCHEMA
    boundary_schema = boundary_schema or config.BOUNDARY_SCHEMA

    log = []
    df_area, area_log = clean_area_table(load_table(table_path, table_schema), table_schema)
    log.extend(area_log)

    gdf_boundaries, boundary_log = clean_boundaries(
        load_boundaries(boundary_path, boundary_schema), boundary_schema
    )
    log.extend(boundary_log)

    return df_area, gdf_boundaries, log


def build_choropleth(df_area, gdf_boundaries, mode=None, breaks=None, n_bins=None, palette=None):
    """Join attributes to polygons, classify and pick colours."""
    mode = mode or config.CLASSIFY_MODE
    if breaks is None and mode == "fixed":
        breaks = config.FIXED_BREAKS

    gdf_joined, log = join_attributes(gdf_boundaries, df_area)
    gdf_classified, breaks, class_log = classify_frame(
        gdf_joined, breaks=breaks, mode=mode, n_bins=n_bins or config.QUANTILE_BINS
    )
    log.extend(class_log)

    colors = build_palette(palette or config.PALETTE, len(breaks) - 1)

    return PipelineResult(
        area_table=df_area,
        boundaries=gdf_boundaries,
        joined=gdf_classified,
        breaks=breaks,
        palette=colors,
        mode=mode,
        log=log,
    )


def build_map(result, popup_template=None, style=None, caption=None):
    """Interactive folium map for a PipelineResult."""
    builder = ChoroplethMapBuilder().with_legend(caption=caption)
    if popup_template is not None:
        builder.with_popup(popup_template)
    if style:
        builder.with_style(**style)
    return builder.add_layer(
        result.joined, palette=result.palette, breaks=result.breaks, name="MSOA choropleth"
    ).build()


def run_pipeline(table_path=None, boundary_path=None, fetch=False, mode=None, breaks=None,
                 n_bins=None, palette=None, save_outputs=True):
    """
    Full batch run.

    Args:
        table_path, boundary_path: local inputs (default: config.INPUT_FILES)
        fetch: download missing inputs from config.TABLE_URL / config.BOUNDARY_URL first
        mode, breaks, n_bins, palette: classification settings (default: config)
        save_outputs: write cleaned table, joined GeoJSON and HTML map

    Returns:
        (PipelineResult, folium.Map)
    """
    if fetch:
        table_path, boundary_path = fetch_inputs(
            config.TABLE_URL, config.BOUNDARY_URL, table_path, boundary_path
        )
    table_path = table_path or config.INPUT_FILES["health_table"]
    boundary_path = boundary_path or config.INPUT_FILES["boundaries"]

    df_area, gdf_boundaries, load_log = load_inputs(table_path, boundary_path)
    emit_log(load_log)

    result = build_choropleth(df_area, gdf_boundaries, mode=mode, breaks=breaks,
                              n_bins=n_bins, palette=palette)
    emit_log(result.log)
    result.log = load_log + result.log

    m = build_map(result)

    if save_outputs:
        config.ensure_dirs()
        save_csv(df_area, config.OUTPUT_FILES["area_table_clean"])
        save_geojson(result.joined, config.OUTPUT_FILES["joined_geojson"])
        html_path = save_html(m, config.OUTPUT_FILES["webmap_html"])
        LOGGER.info("Map written to %s", html_path)

    return result, m
