"""
I/O module: Download sources and load/save data in various formats (Excel, CSV, shapefile, GeoJSON, HTML).
"""

import logging
import tempfile
import zipfile
from pathlib import Path
import warnings

import pandas as pd
import geopandas as gpd
import requests

from . import config

LOGGER = logging.getLogger(__name__)

EXCEL_SUFFIXES = {".xlsx", ".xlsm", ".xls"}
CHUNK_SIZE = 1 << 16


def fetch_source(url, dest, timeout=None, overwrite=False, session=None):
    """
    Download a remote file to a local path (cached: skipped if it already exists).

    Args:
        url: Remote URL
        dest: Local destination path
        timeout: Request timeout in seconds (defaults to config.HTTP_TIMEOUT)
        overwrite: Re-download even if dest exists
        session: Optional requests.Session

    Returns:
        Path to the local file
    """
    dest = Path(dest)
    if dest.exists() and not overwrite:
        LOGGER.info("Using cached %s (%.2f MB)", dest.name, file_size_mb(dest))
        return dest

    dest.parent.mkdir(parents=True, exist_ok=True)
    session = session or requests.Session()
    timeout = timeout or config.HTTP_TIMEOUT

    LOGGER.info("Downloading %s", url)
    tmp_path = dest.with_suffix(dest.suffix + ".part")
    with session.get(url, stream=True, timeout=timeout) as response:
        response.raise_for_status()
        with open(tmp_path, "wb") as fh:
            for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                if chunk:
                    fh.write(chunk)
    tmp_path.replace(dest)

    LOGGER.info("Saved %s (%.2f MB)", dest, file_size_mb(dest))
    return dest


def load_table(filepath, schema, **kwargs):
    """
    Load the attribute spreadsheet (or CSV) described by a TableSchema.

    Every column is read as text: the code column is only matched loosely
    (case, whitespace) later on, so numeric-looking codes must keep their
    leading zeros whatever the header is called. Values are coerced in cleaning.

    Args:
        filepath: Path to .xlsx/.xls/.csv file
        schema: TableSchema (sheet, header_row, column names)
        **kwargs: Additional arguments for pd.read_excel()/pd.read_csv()

    Returns:
        pd.DataFrame (raw, uncleaned)
    """
    filepath = Path(filepath)
    if not filepath.exists():
        raise FileNotFoundError(f"Table file not found: {filepath}")

    suffix = filepath.suffix.lower()
    if suffix in EXCEL_SUFFIXES:
        return pd.read_excel(
            filepath,
            sheet_name=schema.sheet,
            skiprows=schema.header_row,
            dtype=str,
            **kwargs,
        )
    if suffix in {".csv", ".txt"}:
        return pd.read_csv(filepath, skiprows=schema.header_row, dtype=str, **kwargs)

    raise ValueError(f"Unsupported table format '{suffix}' for {filepath.name}")


def _find_shp_member(zf, member=None):
    """Pick the .shp inside a zip: the configured member if present, else the shortest path."""
    shp_members = [m for m in zf.namelist() if m.lower().endswith(".shp")]
    if not shp_members:
        raise ValueError("No shapefile (.shp) found in boundary archive")

    if member:
        matches = [m for m in shp_members if Path(m).name.lower() == Path(member).name.lower()]
        if not matches:
            raise ValueError(f"Shapefile '{member}' not found in archive (have: {shp_members})")
        return matches[0]

    return min(shp_members, key=len)


def load_boundaries(filepath, schema=None, **kwargs):
    """
    Load a boundary file (zip archive with a shapefile, .shp, GeoJSON, GeoPackage).

    Args:
        filepath: Path to boundary file
        schema: Optional BoundarySchema (zip member, layer)
        **kwargs: Additional arguments for gpd.read_file()

    Returns:
        geopandas.GeoDataFrame (raw, uncleaned)
    """
    filepath = Path(filepath)
    if not filepath.exists():
        raise FileNotFoundError(f"Boundary file not found: {filepath}")

    if schema is not None and schema.layer:
        kwargs.setdefault("layer", schema.layer)

    if filepath.suffix.lower() == ".zip":
        with zipfile.ZipFile(filepath) as zf:
            shp = _find_shp_member(zf, schema.member if schema is not None else None)
            LOGGER.info("Using shapefile: %s", shp)
            with tempfile.TemporaryDirectory() as tmp:
                zf.extractall(tmp)
                gdf = gpd.read_file(Path(tmp) / shp, **kwargs)
    else:
        gdf = gpd.read_file(filepath, **kwargs)

    if gdf.crs is None:
        warnings.warn(f"⚠️  CRS missing in {filepath.name}. Assuming {config.CRS_SOURCE}")
        gdf = gdf.set_crs(config.CRS_SOURCE)

    return gdf


def load_geojson(filepath, **kwargs):
    """
    Load GeoJSON file with CRS validation.

    Args:
        filepath: Path to GeoJSON file
        **kwargs: Additional arguments for gpd.read_file()

    Returns:
        geopandas.GeoDataFrame
    """
    filepath = Path(filepath)
    if not filepath.exists():
        raise FileNotFoundError(f"GeoJSON file not found: {filepath}")

    gdf = gpd.read_file(filepath, **kwargs)

    if gdf.crs is None:
        warnings.warn(f"⚠️  CRS missing in {filepath.name}. Assuming {config.CRS_WEB}")
        gdf = gdf.set_crs(config.CRS_WEB)

    return gdf


def save_geojson(gdf, filepath, **kwargs):
    """
    Save GeoDataFrame to GeoJSON (always EPSG:4326).

    Returns:
        Path to saved file
    """
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)

    if gdf.crs != config.CRS_WEB:
        gdf = gdf.to_crs(config.CRS_WEB)

    # Mixed int/'no-data' bins are object dtype; GeoJSON properties need plain str
    if "bin_index" in gdf.columns:
        gdf = gdf.copy()
        gdf["bin_index"] = gdf["bin_index"].astype(str)

    gdf.to_file(filepath, driver="GeoJSON", **kwargs)

    return filepath


def save_csv(df, filepath, **kwargs):
    """Save DataFrame to CSV (no index). Returns the path."""
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)

    df.to_csv(filepath, index=False, **kwargs)

    return filepath


def save_html(m, filepath):
    """Save a folium map (or any object with .save()) to HTML. Returns the path."""
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)
    m.save(str(filepath))
    return filepath


def file_size_mb(filepath):
    """Get file size in MB."""
    return Path(filepath).stat().st_size / (1024 ** 2)
