"""
04_webmap.py
- Build the interactive choropleth (folium/Leaflet)
- Save into outputs/msoa_choropleth.html
"""

import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from msoa_map import config
from msoa_map.pipeline import run_pipeline


def main():
    config.setup_logging()

    fetch = "--fetch" in sys.argv[1:]
    result, _ = run_pipeline(fetch=fetch)

    print(f"Features: {len(result.joined):,} ({result.n_bins} {result.mode} bins)")
    print(f"Webmap ready: {config.OUTPUT_FILES['webmap_html'].resolve()}")

if __name__ == "__main__":
    main()
