"""
Spatial module: Boundary cleaning, reprojection and the polygon-anchored attribute join.
"""

import logging

import pandas as pd
import geopandas as gpd
import numpy as np

from . import config
from .cleaning import normalise_code
from .models import frame_from_polygons, frame_from_records

LOGGER = logging.getLogger(__name__)


def to_web_crs(gdf):
    """Return gdf in EPSG:4326 (reprojected only when needed)."""
    if gdf.crs is None:
        LOGGER.warning("CRS missing; assuming %s before reprojection", config.CRS_SOURCE)
        gdf = gdf.set_crs(config.CRS_SOURCE)
    if gdf.crs != config.CRS_WEB:
        gdf = gdf.to_crs(config.CRS_WEB)
    return gdf


def clean_boundaries(gdf_boundaries, schema=None):
    """
    Validate and clean boundary polygons, reduce them to (code, geometry), output in EPSG:4326.

    Args:
        gdf_boundaries: Raw boundary GeoDataFrame
        schema: Optional BoundarySchema naming the code column (defaults to 'code')

    Returns:
        Cleaned GeoDataFrame and log info
    """
    log = []
    gdf_clean = gdf_boundaries.copy()

    # 1. Code column
    code_col = schema.code_column if schema is not None else 'code'
    if code_col not in gdf_clean.columns:
        raise ValueError(f"'{code_col}' column not found in boundaries (have: {list(gdf_clean.columns)})")
    gdf_clean = gdf_clean[[code_col, gdf_clean.geometry.name]].rename(columns={code_col: 'code'})
    gdf_clean = gdf_clean.rename_geometry('geometry') if gdf_clean.geometry.name != 'geometry' else gdf_clean
    gdf_clean['code'] = gdf_clean['code'].map(normalise_code)
    log.append(f"✓ Using boundary code column: '{code_col}' ({len(gdf_clean):,} polygons)")

    dup_codes = gdf_clean['code'].duplicated().sum()
    if dup_codes > 0:
        log.append(f"⚠️  {dup_codes} duplicate polygon codes (each polygon is kept)")

    # 2. Check CRS
    if gdf_clean.crs is None:
        log.append(f"⚠️  CRS missing; assuming {config.CRS_SOURCE}")
        gdf_clean = gdf_clean.set_crs(config.CRS_SOURCE)
    else:
        log.append(f"✓ CRS: {gdf_clean.crs}")

    # 3. Validate geometries
    empty = (gdf_clean.geometry.isna() | gdf_clean.geometry.is_empty).sum()
    if empty > 0:
        log.append(f"⚠️  {empty} empty/null geometries (kept)")

    invalid_before = (~gdf_clean.geometry.is_valid & gdf_clean.geometry.notna()).sum()
    if invalid_before > 0:
        log.append(f"⚠️  Found {invalid_before} invalid geometries; repairing...")
        gdf_clean.geometry = gdf_clean.geometry.buffer(0)
        invalid_after = (~gdf_clean.geometry.is_valid & gdf_clean.geometry.notna()).sum()
        log.append(f"   → After repair: {invalid_after} invalid (target: 0)")
    else:
        log.append(f"✓ All geometries are valid")

    # 4. Reproject for web output
    if gdf_clean.crs != config.CRS_WEB:
        log.append(f"✓ Reprojected {gdf_clean.crs} → {config.CRS_WEB}")
        gdf_clean = gdf_clean.to_crs(config.CRS_WEB)

    gdf_clean = gdf_clean.reset_index(drop=True)
    log.append(f"✓ Boundary cleaning complete")

    return gdf_clean, log


def join_attributes(gdf_polygons, df_attributes, polygon_key='code', attribute_key='code',
                    key_func=normalise_code):
    """
    Left-join area attributes onto polygons by area code (polygon-anchored).

    Every polygon appears exactly once, in input order; attribute rows with no
    polygon are dropped. Both key columns pass through `key_func`, so a code read
    as int on one side and str on the other still matches. Duplicate attribute
    codes: the last row wins and a data-quality warning is logged.

    Args:
        gdf_polygons: GeoDataFrame with `polygon_key` and geometry, or a list of PolygonRecord
        df_attributes: DataFrame with `attribute_key`, 'name', 'numeric_value', or a list of AreaRecord
        polygon_key: Key column on the polygon side
        attribute_key: Key column on the attribute side
        key_func: Key extractor applied to both sides (None = raw values)

    Returns:
        GeoDataFrame (code, name, numeric_value, geometry) and log info
    """
    log = []

    # Record lists (PolygonRecord / AreaRecord) join the same way as frames
    if not isinstance(gdf_polygons, pd.DataFrame):
        gdf_polygons = frame_from_polygons(gdf_polygons)
    if not isinstance(df_attributes, pd.DataFrame):
        df_attributes = frame_from_records(df_attributes)

    if polygon_key not in gdf_polygons.columns:
        raise ValueError(f"'{polygon_key}' column not found in polygons")
    if attribute_key not in df_attributes.columns:
        raise ValueError(f"'{attribute_key}' column not found in attributes")

    key_func = key_func or (lambda v: v)

    # 1. Polygon side: key + geometry only, original order
    left = pd.DataFrame({
        '_key': gdf_polygons[polygon_key].map(key_func).astype(object).to_numpy(),
        'code': gdf_polygons[polygon_key].to_numpy(),
    })

    # 2. Attribute side: code → (name, numeric_value), last write wins
    right = pd.DataFrame({
        '_key': df_attributes[attribute_key].map(key_func).astype(object).to_numpy(),
        'name': df_attributes['name'].to_numpy() if 'name' in df_attributes.columns else None,
        'numeric_value': (
            df_attributes['numeric_value'].to_numpy()
            if 'numeric_value' in df_attributes.columns else np.nan
        ),
    })
    right = right[right['_key'].notna()]

    duplicated = right['_key'].duplicated(keep='last')
    if duplicated.any():
        dup_keys = sorted(right.loc[duplicated, '_key'].astype(str).unique())
        preview = ", ".join(dup_keys[:5]) + (" ..." if len(dup_keys) > 5 else "")
        LOGGER.warning("Duplicate area codes in attributes (last row wins): %s", preview)
        log.append(f"⚠️  {duplicated.sum()} duplicate attribute rows; last row wins ({preview})")
        right = right[~duplicated]

    # 3. Left merge (pandas preserves left order for how='left')
    merged = left.merge(right, on='_key', how='left', validate='many_to_one')

    gdf_joined = gpd.GeoDataFrame(
        {
            'code': merged['code'].to_numpy(),
            'name': merged['name'].astype(object).where(merged['name'].notna(), None).to_numpy(),
            'numeric_value': merged['numeric_value'].astype('float64').to_numpy(),
        },
        geometry=gdf_polygons.geometry.to_numpy(),
        crs=gdf_polygons.crs,
    )

    # 4. Track matches
    total = len(gdf_joined)
    matched = merged['_key'].isin(right['_key']).sum()
    coverage = (matched / total * 100) if total > 0 else 0
    unmatched_attrs = (~right['_key'].isin(left['_key'])).sum()

    log.append(f"✓ Attribute join complete:")
    log.append(f"  - Total polygons: {total:,}")
    log.append(f"  - Matched to attributes: {matched:,} ({coverage:.1f}%)")
    if unmatched_attrs > 0:
        log.append(f"  - Attribute rows without a polygon (dropped): {unmatched_attrs:,}")

    if total > 0 and coverage < config.MIN_JOIN_COVERAGE * 100:
        log.append(f"⚠️  Coverage {coverage:.1f}% below threshold {config.MIN_JOIN_COVERAGE*100:.1f}%")

    return gdf_joined, log


def summarise_join(gdf_joined):
    """Summary numbers for a joined frame (used by QC and the viewer)."""
    total = len(gdf_joined)
    values = gdf_joined['numeric_value']
    with_data = int(values.notna().sum())
    return {
        'total': total,
        'with_data': with_data,
        'no_data': total - with_data,
        'coverage': (with_data / total) if total > 0 else 0.0,
        'min': float(values.min()) if with_data else None,
        'max': float(values.max()) if with_data else None,
        'mean': float(values.mean()) if with_data else None,
    }
