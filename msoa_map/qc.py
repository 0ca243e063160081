"""
Quality Control (QC) module: Assertions and data quality checks.
"""

import pandas as pd

from .models import NO_DATA


def check_unique_codes(df, code_col='code'):
    """Assert area codes are unique and present."""
    assert df[code_col].isnull().sum() == 0, f"Null {code_col} values found!"
    dups = df[code_col].duplicated().sum()
    assert dups == 0, f"{dups} duplicate {code_col} values found!"
    return f"✓ {code_col} is unique (n={len(df)})"

def check_geometry_validity(gdf, allow_empty=False):
    """
    Assert all present geometries are valid.

    Null/empty geometries fail the check unless `allow_empty` (cleaned boundaries
    keep them so every polygon survives the join); then they are only reported.
    """
    missing = (gdf.geometry.isna() | gdf.geometry.is_empty).sum()
    invalid = (~gdf.geometry.is_valid & gdf.geometry.notna() & ~gdf.geometry.is_empty).sum()
    assert invalid == 0, f"Found {invalid} invalid geometries!"
    if missing > 0:
        assert allow_empty, f"Found {missing} null/empty geometries!"
        return f"⚠️  {missing} null/empty geometries kept (not drawn); {len(gdf) - missing} valid"
    return f"✓ All {len(gdf)} geometries are valid"

def check_crs(gdf, expected_crs='EPSG:4326'):
    """Assert CRS matches expected."""
    assert gdf.crs == expected_crs, f"CRS mismatch: {gdf.crs} != {expected_crs}"
    return f"✓ CRS is {expected_crs}"

def check_value_range(df, value_col='numeric_value', min_value=0, max_value=100):
    """Check percentages are within range (logs outliers, does not fail)."""
    if value_col not in df.columns:
        return f"⚠️  {value_col} column not found"

    low = (df[value_col] < min_value).sum()
    high = (df[value_col] > max_value).sum()
    missing = df[value_col].isnull().sum()

    if low > 0 or high > 0:
        return f"⚠️  Out of range: <{min_value}: {low}, >{max_value}: {high} ({missing} missing)"

    return f"✓ Values in range {min_value}-{max_value} ({missing} missing)"

def check_join_preserves_polygons(gdf_polygons, gdf_joined):
    """Assert the join kept every polygon exactly once, in order."""
    assert len(gdf_joined) == len(gdf_polygons), (
        f"Join changed row count: {len(gdf_polygons)} polygons → {len(gdf_joined)} features"
    )
    assert list(gdf_joined['code']) == list(gdf_polygons['code']), "Join changed polygon order!"
    return f"✓ Join preserved all {len(gdf_joined):,} polygons"

def check_join_coverage(gdf_joined, min_coverage=0.95):
    """Assert the share of polygons with a value meets the threshold."""
    total = len(gdf_joined)
    matched = gdf_joined['numeric_value'].notna().sum()
    coverage = matched / total if total > 0 else 0

    assert coverage >= min_coverage, f"Join coverage {coverage:.1%} < {min_coverage:.1%}"
    return f"✓ Join coverage: {coverage:.1%}"

def check_bins_assigned(gdf_classified, n_bins):
    """Assert every feature has a bin in range, and NO_DATA exactly where the value is missing."""
    bins = gdf_classified['bin_index']
    missing = gdf_classified['numeric_value'].isnull()

    assert (bins[missing] == NO_DATA).all(), "Missing values not mapped to no-data!"
    present = bins[~missing]
    in_range = present.map(lambda b: isinstance(b, int) and 0 <= b < n_bins)
    assert in_range.all(), f"{(~in_range).sum()} bin indexes out of range [0, {n_bins})"
    return f"✓ Bins assigned: {len(present)} classified, {missing.sum()} no-data"

def run_checks(checks):
    """
    Run QC checks.

    Args:
        checks: List of (name, check_func, kwargs) tuples

    Returns:
        List of (name, status, message), status in {'PASS', 'FAIL', 'WARN'}
    """
    results = []
    for name, check_func, kwargs in checks:
        try:
            message = check_func(**kwargs)
            status = 'WARN' if message.startswith('⚠️') else 'PASS'
        except AssertionError as e:
            status, message = 'FAIL', str(e)
        except (KeyError, ValueError, TypeError) as e:
            status, message = 'WARN', f"{type(e).__name__}: {e}"
        results.append((name, status, message))
    return results

def print_qc_report(checks):
    """
    Print formatted QC report.

    Args:
        checks: List of (name, check_func, kwargs) tuples

    Returns:
        True if no check failed
    """
    results = run_checks(checks)

    print("\n" + "=" * 80)
    print("QUALITY CONTROL REPORT")
    print("=" * 80)

    for name, status, message in results:
        marker = {'PASS': '', 'FAIL': '❌ ', 'WARN': '⚠️  '}[status]
        print(f"\n{marker}{name}")
        print(f"  {'ERROR: ' if status == 'FAIL' else ''}{message}")

    print("\n" + "=" * 80)

    return all(status != 'FAIL' for _, status, _ in results)

def results_frame(results):
    """QC results as a DataFrame (for the viewer)."""
    return pd.DataFrame(results, columns=['check', 'status', 'message'])
