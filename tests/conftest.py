from __future__ import annotations

import geopandas as gpd
import pandas as pd
import pytest
from shapely.geometry import box


def _grid_boxes(codes, x0=-0.2, y0=51.45, size=0.02):
    return [box(x0 + i * size, y0, x0 + (i + 1) * size, y0 + size) for i in range(len(codes))]


@pytest.fixture
def polygons() -> gpd.GeoDataFrame:
    codes = ["E02000001", "E02000002", "E02000003", "E02000004"]
    return gpd.GeoDataFrame({"code": codes}, geometry=_grid_boxes(codes), crs="EPSG:4326")


@pytest.fixture
def polygons_bng() -> gpd.GeoDataFrame:
    codes = ["E02000001", "E02000002"]
    geoms = [box(530000, 180000, 531000, 181000), box(531000, 180000, 532000, 181000)]
    return gpd.GeoDataFrame({"MSOA11CD": codes, "MSOA11NM": ["City of London 001", "Camden 001"]},
                            geometry=geoms, crs="EPSG:27700")


@pytest.fixture
def areas() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "code": ["E02000001", "E02000002", "E02000003", "E09999999"],
            "name": ["City of London 001", "Camden 001", "Camden 002", "Nowhere 001"],
            "numeric_value": [4.2, 12.5, None, 7.0],
        }
    )


@pytest.fixture
def raw_table() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "MSOA Code": ["E02000001", " e02000002 ", "E02000003", None, "E02000004"],
            "MSOA Name": ["City of London 001", "Camden 001", "Camden 002", "Source: ONS", "Camden 003"],
            "Percentage": ["4.2%", "12,5", "*", None, 20.8],
        }
    )
