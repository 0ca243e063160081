"""
01_download.py
- Download the MSOA health spreadsheet and the MSOA boundary archive
- Save raw data into data/original/ (cached; delete a file to re-download)
"""

import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from msoa_map import config
from msoa_map.io import file_size_mb
from msoa_map.pipeline import fetch_inputs


def main():
    config.setup_logging()
    config.ensure_dirs()
    config.print_config()

    try:
        table_path, boundary_path = fetch_inputs(config.TABLE_URL, config.BOUNDARY_URL)
    except FileNotFoundError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        print("Set MSOA_MAP_TABLE_URL or copy the workbook into data/original/.", file=sys.stderr)
        sys.exit(1)

    for path in (table_path, boundary_path):
        print(f"  {path.name:50s} {file_size_mb(path):8.2f} MB")
    print(f"Raw data folder ready: {config.ORIGINAL_DIR.resolve()}")

if __name__ == "__main__":
    main()
