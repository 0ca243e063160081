"""
02_clean.py
- Load raw data (spreadsheet + boundary archive)
- Coerce percentages, normalise codes
- CRS checks + geometry validity checks, reproject to EPSG:4326
- Save cleaned data into data/processed/
"""

import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from msoa_map import config
from msoa_map.io import save_csv, save_geojson
from msoa_map.pipeline import emit_log, load_inputs


def main():
    config.setup_logging()
    config.ensure_dirs()

    df_area, gdf_boundaries, log = load_inputs(
        config.INPUT_FILES["health_table"], config.INPUT_FILES["boundaries"]
    )
    emit_log(log)

    save_csv(df_area, config.OUTPUT_FILES["area_table_clean"])
    save_geojson(gdf_boundaries, config.OUTPUT_FILES["boundaries_clean"])

    print(f"Area table: {len(df_area):,} rows → {config.OUTPUT_FILES['area_table_clean']}")
    print(f"Boundaries: {len(gdf_boundaries):,} polygons → {config.OUTPUT_FILES['boundaries_clean']}")

if __name__ == "__main__":
    main()
