"""
Configuration module: paths, data sources, CRS constants, classification and map settings.
"""

from pathlib import Path
import logging
import os

from .models import TableSchema, BoundarySchema

# ============================================================================
# PROJECT PATHS (all relative to PROJECT_ROOT)
# ============================================================================

def get_project_root():
    """Auto-detect project root by checking for the msoa_map/ package folder."""
    env_root = os.getenv("MSOA_MAP_PROJECT_ROOT")
    if env_root:
        return Path(env_root).expanduser().resolve()

    cwd = Path.cwd()

    # If already in project root
    if (cwd / "msoa_map").exists():
        return cwd

    # If in notebooks/, scripts/ or webmap/
    if cwd.name in ["notebooks", "scripts", "webmap"] and (cwd.parent / "msoa_map").exists():
        return cwd.parent

    # Last resort: the checkout this module lives in
    return Path(__file__).resolve().parent.parent

PROJECT_ROOT = get_project_root()

# Core data paths
DATA_DIR = PROJECT_ROOT / "data"
ORIGINAL_DIR = DATA_DIR / "original"
PROCESSED_DIR = DATA_DIR / "processed"
OUTPUTS_DIR = PROJECT_ROOT / "outputs"
FIGURES_DIR = PROJECT_ROOT / "reports" / "figures"


def ensure_dirs():
    """Create the data/output directories used by the scripts."""
    for directory in (ORIGINAL_DIR, PROCESSED_DIR, OUTPUTS_DIR, FIGURES_DIR):
        directory.mkdir(parents=True, exist_ok=True)

# ============================================================================
# DATA SOURCES
# ============================================================================

# MSOA boundaries (London Datastore, Statistical GIS Boundary Files for London)
BOUNDARY_URL = os.getenv(
    "MSOA_MAP_BOUNDARY_URL",
    "https://data.london.gov.uk/download/statistical-gis-boundary-files-london/"
    "9ba8c833-6370-4b11-abdc-314aa020d5e0/statistical-gis-boundaries-london.zip",
)

# Public-health indicator spreadsheet by MSOA. No stable public default:
# place the workbook at INPUT_FILES["health_table"] or set the URL.
TABLE_URL = os.getenv("MSOA_MAP_TABLE_URL")

# Input files (raw data, downloaded once and cached)
INPUT_FILES = {
    "health_table": ORIGINAL_DIR / "msoa_health_indicator.xlsx",
    "boundaries": ORIGINAL_DIR / "statistical-gis-boundaries-london.zip",
}

# Output files (processed)
OUTPUT_FILES = {
    "area_table_clean": PROCESSED_DIR / "msoa_health_clean.csv",
    "boundaries_clean": PROCESSED_DIR / "msoa_boundaries_clean.geojson",
    "joined_geojson": PROCESSED_DIR / "msoa_joined.geojson",
    "webmap_html": OUTPUTS_DIR / "msoa_choropleth.html",
    "static_map_png": FIGURES_DIR / "msoa_choropleth.png",
}

# Which columns to pull out of each source
TABLE_SCHEMA = TableSchema(
    sheet=0,
    header_row=0,
    code_column="MSOA Code",
    name_column="MSOA Name",
    value_column="Percentage",
)

BOUNDARY_SCHEMA = BoundarySchema(
    member="MSOA_2011_London_gen_MHW.shp",
    code_column="MSOA11CD",
)

# ============================================================================
# GEOSPATIAL & CRS CONSTANTS
# ============================================================================

# Web mapping CRS (WGS84 - required by Leaflet/folium)
CRS_WEB = "EPSG:4326"

# British National Grid: the CRS the ONS/London boundary files ship in
CRS_SOURCE = "EPSG:27700"

# Minimum share of polygons that should find an attribute row
MIN_JOIN_COVERAGE = 0.95

# ============================================================================
# CLASSIFICATION
# ============================================================================

CLASSIFY_MODE = "fixed"            # 'fixed' or 'quantile'
FIXED_BREAKS = [0, 2.5, 5.0, 7.5, 10.0, 12.5, 15.0, 20.8]
QUANTILE_BINS = 10                 # deciles
PALETTE = "YlOrRd"                 # any matplotlib colormap name
NO_DATA_COLOR = "#bdbdbd"

# ============================================================================
# MAP SETTINGS
# ============================================================================

MAP_CENTER = (51.5074, -0.1278)    # London
MAP_ZOOM = 10
MAP_TILES = "OpenStreetMap"
MAP_STYLE = {
    "border_color": "#ffffff",
    "border_weight": 1,
    "fill_opacity": 0.7,
    "highlight_weight": 3,
    "highlight_color": "#666666",
}
LEGEND_CAPTION = "Percentage of residents (%)"

HTTP_TIMEOUT = 60

# ============================================================================
# LOGGING
# ============================================================================

LOG_LEVEL = os.getenv("MSOA_MAP_LOG_LEVEL", "INFO")  # DEBUG, INFO, WARNING, ERROR


def setup_logging(level=None):
    """Configure root logging for scripts and the viewer."""
    logging.basicConfig(
        level=(level or LOG_LEVEL).upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def print_config():
    """Print all configuration settings."""
    print("\n" + "=" * 80)
    print("PIPELINE CONFIGURATION")
    print("=" * 80)
    print(f"\n📁 PROJECT ROOT: {PROJECT_ROOT}")
    print(f"📂 DATA DIR: {DATA_DIR}")
    print(f"📂 PROCESSED DIR: {PROCESSED_DIR}")
    print(f"📂 OUTPUTS DIR: {OUTPUTS_DIR}")
    print(f"\n🌐 Sources:")
    print(f"   Table: {TABLE_URL or INPUT_FILES['health_table']}")
    print(f"   Boundaries: {BOUNDARY_URL}")
    print(f"\n🗺️  CRS Settings:")
    print(f"   Web (output): {CRS_WEB}")
    print(f"   Source (assumed when missing): {CRS_SOURCE}")
    print(f"\n🎨 Classification: {CLASSIFY_MODE} ({PALETTE})")
    if CLASSIFY_MODE == "fixed":
        print(f"   Breaks: {FIXED_BREAKS}")
    else:
        print(f"   Bins: {QUANTILE_BINS}")
    print(f"\n✓ Configuration loaded successfully")
    print("=" * 80 + "\n")
