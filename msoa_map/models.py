"""
Models module: record types for area attributes, boundary polygons and joined features,
plus the schema descriptors that tell the loaders where to find each column.
"""

from dataclasses import dataclass, asdict
from typing import Any, Optional, Union

import geopandas as gpd
import pandas as pd

NO_DATA = "no-data"


@dataclass(frozen=True)
class TableSchema:
    """Where to find the attribute columns in a spreadsheet/CSV."""
    code_column: str
    value_column: str
    name_column: Optional[str] = None
    sheet: Union[int, str] = 0
    header_row: int = 0  # rows to skip above the header line


@dataclass(frozen=True)
class BoundarySchema:
    """Which shapefile (inside a zip) and which attribute column holds the area code."""
    code_column: str
    member: Optional[str] = None
    layer: Optional[str] = None


@dataclass(frozen=True)
class AreaRecord:
    code: str
    name: Optional[str]
    numeric_value: Optional[float]

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class PolygonRecord:
    code: str
    geometry: Any
    crs: Optional[str] = None


@dataclass(frozen=True)
class JoinedFeature:
    code: str
    name: Optional[str]
    numeric_value: Optional[float]
    geometry: Any
    bin_index: Union[int, str, None] = None

    @property
    def has_data(self) -> bool:
        return self.numeric_value is not None


def _none_if_missing(value):
    if value is None:
        return None
    try:
        if pd.isna(value):
            return None
    except (TypeError, ValueError):
        pass
    return value


def frame_from_records(records):
    """AreaRecords -> attribute DataFrame (code, name, numeric_value)."""
    return pd.DataFrame(
        [record.to_dict() for record in records],
        columns=["code", "name", "numeric_value"],
    )


def frame_from_polygons(polygons):
    """PolygonRecords -> boundary GeoDataFrame (code, geometry); CRS from the first record."""
    polygons = list(polygons)
    crs = polygons[0].crs if polygons else None
    mixed = {p.crs for p in polygons} - {crs}
    if mixed:
        raise ValueError(f"PolygonRecords mix CRS: {sorted(map(str, mixed | {crs}))}")
    return gpd.GeoDataFrame(
        {"code": [p.code for p in polygons]},
        geometry=[p.geometry for p in polygons],
        crs=crs,
    )


def features_from_frame(gdf):
    """Convert a joined (and optionally classified) GeoDataFrame to JoinedFeatures."""
    has_bins = "bin_index" in gdf.columns
    features = []
    for _, row in gdf.iterrows():
        value = _none_if_missing(row.get("numeric_value"))
        features.append(JoinedFeature(
            code=str(row["code"]),
            name=_none_if_missing(row.get("name")),
            numeric_value=float(value) if value is not None else None,
            geometry=row.geometry,
            bin_index=row["bin_index"] if has_bins else None,
        ))
    return features
