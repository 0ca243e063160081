#!/usr/bin/env python3
"""Generate a static PNG choropleth of the classified MSOA layer.

Outputs:
 - reports/figures/msoa_choropleth.png (300 dpi)

Notes:
 - Reads `data/processed/msoa_joined.geojson` written by 03_classify.py.
 - Breaks and palette are rebuilt from config so the PNG matches the webmap legend.
"""
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from msoa_map import config
from msoa_map.classify import build_palette, classify_frame
from msoa_map.io import load_geojson
from msoa_map.staticmap import plot_static_map


def main():
    joined_path = config.OUTPUT_FILES["joined_geojson"]
    if not joined_path.exists():
        print(f'ERROR: joined layer not found: {joined_path}', file=sys.stderr)
        sys.exit(1)

    gdf = load_geojson(joined_path)
    # bin_index was stringified for GeoJSON; classify again from the values
    gdf, breaks, log = classify_frame(
        gdf.drop(columns=['bin_index'], errors='ignore'),
        breaks=config.FIXED_BREAKS if config.CLASSIFY_MODE == "fixed" else None,
        mode=config.CLASSIFY_MODE,
        n_bins=config.QUANTILE_BINS,
    )
    for line in log:
        print(line)

    palette = build_palette(config.PALETTE, len(breaks) - 1)
    out_path = config.OUTPUT_FILES["static_map_png"]
    plot_static_map(gdf, palette, breaks, out_path=out_path, title=config.LEGEND_CAPTION)
    print(f'Saved: {out_path}')

if __name__ == "__main__":
    main()
