#!/usr/bin/env python
"""
Interactive web map for MSOA public-health indicators.

Purpose
-------
Explore the joined MSOA layer as a choropleth, switching between fixed and
quantile classification and palettes without re-running the pipeline.

Expected inputs
---------------
- data/processed/msoa_joined.geojson (EPSG:4326, from scripts/03_classify.py)

Output
------
Rendered Streamlit interface (no file writes).
"""

import os
import subprocess
import sys
from pathlib import Path

import pandas as pd
import streamlit as st
from streamlit_folium import st_folium


def resolve_project_root() -> Path:
    env_root = os.getenv("MSOA_MAP_PROJECT_ROOT")
    candidates = []
    if env_root:
        candidates.append(Path(env_root).expanduser().resolve())
    candidates.append(Path.cwd().resolve())
    candidates.append(Path(__file__).resolve().parent.parent)

    for root in candidates:
        if (root / "webmap" / "app.py").exists():
            return root
    return Path(__file__).resolve().parent.parent


PROJECT_ROOT = resolve_project_root()
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from msoa_map import config, qc
from msoa_map.classify import build_palette, classify_frame
from msoa_map.io import load_geojson
from msoa_map.spatial import summarise_join
from msoa_map.webmap import ChoroplethMapBuilder, legend_entries, map_html

# ============================================================================
# SETUP
# ============================================================================
st.set_page_config(page_title="MSOA Health Choropleth", layout="wide")
st.markdown("# Interactive Map: MSOA Public-Health Indicator")
st.markdown("Percentage of residents by Middle Layer Super Output Area.")

JOINED_PATH = config.OUTPUT_FILES["joined_geojson"]


def bootstrap_missing_inputs() -> tuple[bool, str]:
    commands = [
        [sys.executable, "scripts/02_clean.py"],
        [sys.executable, "scripts/03_classify.py"],
    ]
    for command in commands:
        result = subprocess.run(
            command,
            cwd=PROJECT_ROOT,
            capture_output=True,
            text=True,
        )
        if result.returncode != 0:
            return (
                False,
                "Automatic regeneration failed.\n"
                f"Command: {' '.join(command)}\n"
                f"Exit code: {result.returncode}\n"
                f"Stdout:\n{result.stdout[-2000:]}\n"
                f"Stderr:\n{result.stderr[-2000:]}",
            )

    if not JOINED_PATH.exists():
        return False, f"Regeneration completed but {JOINED_PATH} is still missing."

    return True, "Joined layer regenerated successfully."

# ============================================================================
# LOAD DATA
# ============================================================================
@st.cache_data
def load_data():
    gdf = load_geojson(JOINED_PATH)

    missing = [c for c in ["code", "numeric_value", "geometry"] if c not in gdf.columns]
    if missing:
        raise ValueError(f"Missing columns in {JOINED_PATH.name}: {missing}")
    if "name" not in gdf.columns:
        gdf["name"] = None

    if str(gdf.crs) != config.CRS_WEB:
        st.warning(f"Joined layer CRS is {gdf.crs}; {config.CRS_WEB} is expected for web mapping.")
    if gdf.geometry.isna().any() or (not gdf.geometry.is_valid.all()):
        st.warning("Joined layer contains null/invalid geometries. Invalid rows may be skipped.")

    # bins are recomputed below from the sidebar settings
    return gdf.drop(columns=["bin_index"], errors="ignore")

if not JOINED_PATH.exists():
    st.warning("Joined layer not found. Attempting automatic regeneration.")
    ok, bootstrap_message = bootstrap_missing_inputs()
    if ok:
        st.info(bootstrap_message)
    else:
        st.error(
            "Error loading data: automatic regeneration did not complete successfully.\n"
            f"Project root in use: {PROJECT_ROOT}\n"
            f"Details:\n{bootstrap_message}"
        )
        st.stop()

try:
    gdf_joined = load_data()
except (OSError, ValueError) as e:
    st.error(f"Error loading data: {e}")
    st.stop()

# ============================================================================
# SIDEBAR CONTROLS
# ============================================================================
st.sidebar.markdown("## Classification")

mode = st.sidebar.radio(
    "Breaks",
    ("fixed", "quantile"),
    index=0 if config.CLASSIFY_MODE == "fixed" else 1,
    format_func=lambda m: "Fixed breaks" if m == "fixed" else "Quantiles (equal count)",
)

n_bins = config.QUANTILE_BINS
if mode == "quantile":
    n_bins = st.sidebar.slider("Number of quantile bins", 3, 10, config.QUANTILE_BINS)

palette_name = st.sidebar.selectbox(
    "Palette",
    ["YlOrRd", "OrRd", "PuRd", "YlGnBu", "Blues", "viridis"],
    index=0,
)

st.sidebar.markdown("## Style")
fill_opacity = st.sidebar.slider("Fill opacity", 0.1, 1.0, float(config.MAP_STYLE["fill_opacity"]), step=0.1)
border_weight = st.sidebar.slider("Border weight", 0.0, 3.0, float(config.MAP_STYLE["border_weight"]), step=0.5)

# ============================================================================
# CLASSIFY + CREATE MAP
# ============================================================================
gdf_classified, breaks, class_log = classify_frame(
    gdf_joined,
    breaks=config.FIXED_BREAKS if mode == "fixed" else None,
    mode=mode,
    n_bins=n_bins,
)
palette = build_palette(palette_name, len(breaks) - 1)

m = (
    ChoroplethMapBuilder()
    .with_style(fill_opacity=fill_opacity, border_weight=border_weight)
    .with_legend(caption=config.LEGEND_CAPTION)
    .add_layer(gdf_classified, palette=palette, breaks=breaks, name="MSOA choropleth")
    .build()
)

st.markdown("### Map")
st_folium(m, width=1400, height=650, returned_objects=[])
st.download_button(
    "Download map (HTML)",
    data=map_html(m),
    file_name=config.OUTPUT_FILES["webmap_html"].name,
    mime="text/html",
)

# ============================================================================
# LEGEND & SUMMARY
# ============================================================================
st.markdown("---")
col1, col2, col3 = st.columns(3)

with col1:
    st.markdown("### Legend")
    for label, color in legend_entries(palette, breaks):
        st.markdown(
            f"<span style='display:inline-block;width:14px;height:14px;background:{color};"
            f"border:1px solid #999;margin-right:6px'></span>{label}",
            unsafe_allow_html=True,
        )

with col2:
    st.markdown("### Summary")
    summary = summarise_join(gdf_classified)
    st.metric("MSOAs", f"{summary['total']:,}")
    st.metric("With data", f"{summary['with_data']:,} ({summary['coverage']:.1%})")
    if summary["mean"] is not None:
        st.metric("Mean value", f"{summary['mean']:.2f}%")

with col3:
    st.markdown("### Classification log")
    for line in class_log:
        st.write(line)

st.markdown("---")
st.markdown("## Quality checks")
results = qc.run_checks([
    ("Web CRS", qc.check_crs, {"gdf": gdf_classified, "expected_crs": config.CRS_WEB}),
    ("Join coverage", qc.check_join_coverage,
     {"gdf_joined": gdf_classified, "min_coverage": config.MIN_JOIN_COVERAGE}),
    ("Bins assigned", qc.check_bins_assigned,
     {"gdf_classified": gdf_classified, "n_bins": len(breaks) - 1}),
    ("Percentage range", qc.check_value_range, {"df": gdf_classified}),
])
st.dataframe(qc.results_frame(results), use_container_width=True)

st.markdown("### Values by MSOA")
st.dataframe(
    pd.DataFrame(gdf_classified.drop(columns="geometry")).sort_values("numeric_value", ascending=False),
    use_container_width=True,
)
