"""
03_classify.py
- Join cleaned area table to cleaned boundaries (polygon-anchored left join)
- Classify the percentage column (fixed breaks or quantiles, see config)
- Run QC checks, save data/processed/msoa_joined.geojson
"""

import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import pandas as pd

from msoa_map import config, qc
from msoa_map.io import load_geojson, save_geojson
from msoa_map.pipeline import build_choropleth, emit_log


def main():
    config.setup_logging()

    table_path = config.OUTPUT_FILES["area_table_clean"]
    boundary_path = config.OUTPUT_FILES["boundaries_clean"]
    for path in (table_path, boundary_path):
        if not path.exists():
            print(f"ERROR: {path} not found. Run scripts/02_clean.py first.", file=sys.stderr)
            sys.exit(1)

    df_area = pd.read_csv(table_path, dtype={"code": str})
    gdf_boundaries = load_geojson(boundary_path)

    result = build_choropleth(df_area, gdf_boundaries)
    emit_log(result.log)

    ok = qc.print_qc_report([
        ("Unique area codes", qc.check_unique_codes, {"df": df_area}),
        ("Percentage range", qc.check_value_range, {"df": df_area}),
        ("Boundary geometries", qc.check_geometry_validity, {"gdf": gdf_boundaries, "allow_empty": True}),
        ("Web CRS", qc.check_crs, {"gdf": result.joined, "expected_crs": config.CRS_WEB}),
        ("Join keeps polygons", qc.check_join_preserves_polygons,
         {"gdf_polygons": gdf_boundaries, "gdf_joined": result.joined}),
        ("Join coverage", qc.check_join_coverage,
         {"gdf_joined": result.joined, "min_coverage": config.MIN_JOIN_COVERAGE}),
        ("Bins assigned", qc.check_bins_assigned,
         {"gdf_classified": result.joined, "n_bins": result.n_bins}),
    ])

    out_path = save_geojson(result.joined, config.OUTPUT_FILES["joined_geojson"])
    print(f"Joined features saved: {out_path}")

    if not ok:
        sys.exit(1)

if __name__ == "__main__":
    main()
