#!/usr/bin/env python3
"""
Quality assurance checks for webmap inputs and artifacts.

Scope:
- Required files
- Joined GeoJSON readability, CRS, and geometry validity
- Joined layer schema and value/bin diagnostics
- Code consistency between the cleaned table and the joined layer
- Colour scale consistency (breaks vs palette)
- HTML map and Streamlit app readability

This script exits with code 1 if blocking errors are detected.
"""

import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import pandas as pd
import geopandas as gpd

from msoa_map import config
from msoa_map.classify import build_palette, check_palette, classify_values
from msoa_map.models import NO_DATA

EXPECTED_WEB_CRS = config.CRS_WEB
REQUIRED_JOINED_COLUMNS = ["code", "name", "numeric_value", "bin_index", "geometry"]


def print_header() -> None:
    print("=" * 80)
    print("WEBMAP QUALITY ASSURANCE")
    print("=" * 80)


def print_check_result(check_id: int, name: str, passed: bool) -> None:
    status = "PASS" if passed else "FAIL"
    print(f"\n[{check_id}] {name}: {status}")


def format_size(num_bytes: int) -> str:
    if num_bytes >= 1_000_000:
        return f"{num_bytes / 1_000_000:.1f} MB"
    if num_bytes >= 1_000:
        return f"{num_bytes / 1_000:.1f} KB"
    return f"{num_bytes} B"


def check_required_files(errors: list[str]) -> bool:
    required_files = {
        "Cleaned table": config.OUTPUT_FILES["area_table_clean"],
        "Joined GeoJSON": config.OUTPUT_FILES["joined_geojson"],
        "HTML map": config.OUTPUT_FILES["webmap_html"],
        "Streamlit app": PROJECT_ROOT / "webmap" / "app.py",
    }

    failed = False
    for label, path in required_files.items():
        if path.exists():
            print(f"  - {label}: FOUND ({format_size(path.stat().st_size)})")
        else:
            failed = True
            errors.append(f"Missing file: {label} at {path}")
            print(f"  - {label}: NOT FOUND")

    return not failed


def check_joined_layer(
    errors: list[str], warnings: list[str]
) -> tuple[bool, gpd.GeoDataFrame | None]:
    joined_path = config.OUTPUT_FILES["joined_geojson"]
    joined_gdf = None
    failed = False

    try:
        joined_gdf = gpd.read_file(joined_path)
        print(f"  - Joined features: {len(joined_gdf)}")
        if str(joined_gdf.crs) != EXPECTED_WEB_CRS:
            warnings.append(f"Joined CRS is {joined_gdf.crs}; expected {EXPECTED_WEB_CRS}")
        geoms = joined_gdf.geometry
        missing_geoms = int((geoms.isna() | geoms.is_empty).sum())
        if missing_geoms:
            # kept by boundary cleaning so the join stays one row per polygon
            warnings.append(f"Joined GeoJSON has {missing_geoms} null/empty geometries (not drawn)")
        if (~geoms.is_valid & geoms.notna() & ~geoms.is_empty).any():
            failed = True
            errors.append("Joined GeoJSON contains invalid geometries")

        missing_columns = [c for c in REQUIRED_JOINED_COLUMNS if c not in joined_gdf.columns]
        if missing_columns:
            failed = True
            errors.append(f"Joined GeoJSON missing columns: {missing_columns}")
        else:
            values = joined_gdf["numeric_value"]
            print(
                f"  - numeric_value: min={values.min():.2f}, max={values.max():.2f}, "
                f"missing={int(values.isna().sum())}"
            )
            no_data = joined_gdf["bin_index"] == NO_DATA
            mismatched = (no_data != values.isna()).sum()
            if mismatched:
                failed = True
                errors.append(f"{mismatched} features have no-data bins that disagree with their values")
            if values.isna().mean() > 1 - config.MIN_JOIN_COVERAGE:
                warnings.append(f"{values.isna().mean():.1%} of polygons have no data")
    except Exception as exc:
        failed = True
        errors.append(f"Failed to read joined GeoJSON: {exc}")

    return (not failed), joined_gdf


def check_code_consistency(
    joined_gdf: gpd.GeoDataFrame | None,
    errors: list[str],
    warnings: list[str],
) -> bool:
    table_path = config.OUTPUT_FILES["area_table_clean"]
    if joined_gdf is None or not table_path.exists():
        warnings.append("Code consistency check skipped because required data could not be loaded")
        return False

    table_df = pd.read_csv(table_path, dtype={"code": str})
    polygon_codes = set(joined_gdf["code"].dropna())
    table_codes = set(table_df["code"].dropna())

    unmatched_polygons = polygon_codes - table_codes
    unmatched_rows = table_codes - polygon_codes
    if unmatched_polygons:
        warnings.append(f"{len(unmatched_polygons)} polygon codes have no table row")
    if unmatched_rows:
        warnings.append(f"{len(unmatched_rows)} table codes have no polygon (dropped by the join)")

    if len(joined_gdf["code"]) != len(polygon_codes):
        warnings.append("Joined layer contains repeated polygon codes")

    print(f"  - Shared codes: {len(polygon_codes & table_codes)}")
    return True


def check_color_scale(joined_gdf: gpd.GeoDataFrame | None, errors: list[str]) -> bool:
    if config.CLASSIFY_MODE == "fixed":
        breaks = config.FIXED_BREAKS
    elif joined_gdf is not None:
        _, breaks = classify_values(joined_gdf["numeric_value"], mode="quantile", n_bins=config.QUANTILE_BINS)
    else:
        errors.append("Quantile breaks need the joined layer")
        return False

    try:
        palette = build_palette(config.PALETTE, len(breaks) - 1)
        check_palette(palette, breaks)
    except ValueError as exc:
        errors.append(f"Colour scale invalid: {exc}")
        return False

    print(f"  - Class breaks ({config.CLASSIFY_MODE}): {[round(b, 2) for b in breaks]}")
    print(f"  - Palette: {config.PALETTE} ({len(palette) - 1} bins + no-data {palette[-1]})")
    return True


def check_webmap_outputs(errors: list[str], warnings: list[str]) -> bool:
    html_path = config.OUTPUT_FILES["webmap_html"]
    app_path = PROJECT_ROOT / "webmap" / "app.py"
    if not app_path.exists():
        errors.append(f"Missing Streamlit app: {app_path}")
        return False

    try:
        app_content = app_path.read_text(encoding="utf-8")
    except Exception as exc:
        errors.append(f"Cannot read Streamlit app: {exc}")
        return False

    if "streamlit" not in app_content or "folium" not in app_content:
        warnings.append("webmap/app.py does not clearly contain both streamlit and folium references")

    if html_path.exists():
        html_content = html_path.read_text(encoding="utf-8")
        if "leaflet" not in html_content.lower():
            warnings.append("HTML map does not reference Leaflet")

    print("  - Streamlit app file is readable")
    return True


def print_summary(total_checks: int, passed_checks: int, errors: list[str], warnings: list[str]) -> None:
    print("\n" + "=" * 80)
    print("SUMMARY")
    print("=" * 80)
    print(f"\nChecks passed: {passed_checks}/{total_checks}")
    print(f"Warnings: {len(warnings)}")
    print(f"Errors: {len(errors)}")

    if errors:
        print(f"\nERRORS ({len(errors)}):")
        for message in errors:
            print(f"  - {message}")
        print("\nStatus: FAIL")
        print("Action required: run scripts/02_clean.py → 04_webmap.py before launching the webmap.")
        sys.exit(1)

    if warnings:
        print(f"\nWARNINGS ({len(warnings)}):")
        for message in warnings:
            print(f"  - {message}")
        print("\nStatus: PASS WITH WARNINGS")
    else:
        print("\nNo warnings detected.")
        print("Status: PASS")

    print("\nSuggested commands:")
    print("  streamlit run webmap/app.py")


def main() -> None:
    print_header()

    errors: list[str] = []
    warnings: list[str] = []
    total_checks = 5
    passed_checks = 0

    file_check = check_required_files(errors)
    print_check_result(1, "Required files", file_check)
    passed_checks += file_check

    joined_check, joined_gdf = check_joined_layer(errors, warnings)
    print_check_result(2, "Joined layer", joined_check)
    passed_checks += joined_check

    code_check = check_code_consistency(joined_gdf, errors, warnings)
    print_check_result(3, "Code consistency", code_check)
    passed_checks += code_check

    color_check = check_color_scale(joined_gdf, errors)
    print_check_result(4, "Color scale", color_check)
    passed_checks += color_check

    app_check = check_webmap_outputs(errors, warnings)
    print_check_result(5, "Webmap outputs", app_check)
    passed_checks += app_check

    print_summary(total_checks, passed_checks, errors, warnings)


if __name__ == "__main__":
    main()
