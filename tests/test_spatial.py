from __future__ import annotations

import logging

import geopandas as gpd
import pandas as pd
import pytest
from shapely.geometry import Polygon, box

from msoa_map.classify import classify_frame
from msoa_map.models import AreaRecord, BoundarySchema, PolygonRecord, features_from_frame, frame_from_records
from msoa_map.spatial import clean_boundaries, join_attributes, summarise_join, to_web_crs

BREAKS = [0, 2.5, 5.0, 7.5, 10.0, 12.5, 15.0, 20.8]


def test_join_keeps_every_polygon_in_order(polygons, areas):
    joined, log = join_attributes(polygons, areas)

    assert len(joined) == len(polygons)
    assert list(joined["code"]) == list(polygons["code"])
    assert joined.crs == polygons.crs
    assert list(joined.columns) == ["code", "name", "numeric_value", "geometry"]
    assert any("Attribute rows without a polygon" in line for line in log)


def test_join_unmatched_polygon_gets_nulls():
    polygons = gpd.GeoDataFrame({"code": ["A", "B"]}, geometry=[box(0, 0, 1, 1), box(1, 0, 2, 1)], crs="EPSG:4326")
    attributes = pd.DataFrame({"code": ["A"], "name": ["Area A"], "numeric_value": [5.0]})

    joined, _ = join_attributes(polygons, attributes)
    features = features_from_frame(joined)

    assert features[0].code == "A"
    assert features[0].numeric_value == 5.0
    assert features[0].name == "Area A"
    assert features[1].code == "B"
    assert features[1].numeric_value is None
    assert features[1].name is None


def test_join_length_equals_polygons_for_empty_attributes(polygons):
    empty = pd.DataFrame({"code": [], "name": [], "numeric_value": []})

    joined, log = join_attributes(polygons, empty)

    assert len(joined) == len(polygons)
    assert joined["numeric_value"].isna().all()
    assert any("below threshold" in line for line in log)


def test_join_duplicate_codes_last_write_wins_and_warns(polygons, caplog):
    attributes = pd.DataFrame(
        {
            "code": ["E02000001", "E02000001", "E02000002"],
            "name": ["first", "second", "other"],
            "numeric_value": [1.0, 9.0, 3.0],
        }
    )

    with caplog.at_level(logging.WARNING, logger="msoa_map.spatial"):
        joined, log = join_attributes(polygons, attributes)

    assert len(joined) == len(polygons)
    row = joined[joined["code"] == "E02000001"].iloc[0]
    assert row["numeric_value"] == 9.0
    assert row["name"] == "second"
    assert "Duplicate area codes" in caplog.text
    assert any("last row wins" in line for line in log)


def test_join_key_extractor_handles_type_and_case_mismatch():
    polygons = gpd.GeoDataFrame(
        {"zone": [101, 102]}, geometry=[box(0, 0, 1, 1), box(1, 0, 2, 1)], crs="EPSG:4326"
    )
    attributes = pd.DataFrame({"id": [" 101", 102.0], "numeric_value": [1.5, 2.5]})

    joined, _ = join_attributes(polygons, attributes, polygon_key="zone", attribute_key="id")

    assert list(joined["numeric_value"]) == [1.5, 2.5]
    assert list(joined["code"]) == [101, 102]


def test_join_does_not_mutate_inputs(polygons, areas):
    polygons_before = polygons.copy()
    areas_before = areas.copy()

    join_attributes(polygons, areas)

    pd.testing.assert_frame_equal(areas, areas_before)
    assert polygons.equals(polygons_before)


def test_join_and_classify_are_idempotent(polygons, areas):
    first, breaks_1, _ = classify_frame(join_attributes(polygons, areas)[0], breaks=BREAKS)
    second, breaks_2, _ = classify_frame(join_attributes(polygons, areas)[0], breaks=BREAKS)

    assert breaks_1 == breaks_2
    assert list(first["code"]) == list(second["code"])
    assert list(first["bin_index"]) == list(second["bin_index"])
    pd.testing.assert_series_equal(first["numeric_value"], second["numeric_value"])


def test_join_missing_key_column_raises(polygons, areas):
    with pytest.raises(ValueError):
        join_attributes(polygons, areas, polygon_key="msoa")
    with pytest.raises(ValueError):
        join_attributes(polygons, areas, attribute_key="msoa")


def test_clean_boundaries_reprojects_and_renames(polygons_bng):
    cleaned, log = clean_boundaries(polygons_bng, BoundarySchema(code_column="MSOA11CD"))

    assert list(cleaned.columns) == ["code", "geometry"]
    assert cleaned.crs == "EPSG:4326"
    minx, miny, maxx, maxy = cleaned.total_bounds
    assert -0.2 < minx < 0.0 and 51.4 < miny < 51.6
    assert any("Reprojected" in line for line in log)


def test_clean_boundaries_repairs_invalid_geometry():
    bowtie = Polygon([(0, 0), (1, 1), (1, 0), (0, 1), (0, 0)])
    gdf = gpd.GeoDataFrame({"code": ["x1"]}, geometry=[bowtie], crs="EPSG:4326")

    cleaned, log = clean_boundaries(gdf)

    assert cleaned.geometry.is_valid.all()
    assert cleaned.loc[0, "code"] == "X1"
    assert any("invalid geometries" in line for line in log)


def test_clean_boundaries_missing_code_column_raises(polygons):
    with pytest.raises(ValueError):
        clean_boundaries(polygons, BoundarySchema(code_column="MSOA21CD"))


def test_to_web_crs_assumes_source_crs_when_missing(polygons_bng):
    unset = gpd.GeoDataFrame(polygons_bng.drop(columns="geometry"), geometry=list(polygons_bng.geometry))

    out = to_web_crs(unset)

    assert out.crs == "EPSG:4326"


def test_summarise_join(polygons, areas):
    joined, _ = join_attributes(polygons, areas)

    summary = summarise_join(joined)

    assert summary["total"] == 4
    assert summary["with_data"] == 2
    assert summary["no_data"] == 2
    assert summary["min"] == 4.2
    assert summary["max"] == 12.5


def test_join_accepts_record_lists():
    polygons = [
        PolygonRecord("A", box(0, 0, 1, 1), crs="EPSG:4326"),
        PolygonRecord("B", box(1, 0, 2, 1), crs="EPSG:4326"),
    ]
    attributes = [AreaRecord(" a ", "Area A", 5.0), AreaRecord("Z", "Nowhere", 1.0)]

    joined, _ = join_attributes(polygons, attributes)
    features = features_from_frame(joined)

    assert [f.code for f in features] == ["A", "B"]
    assert [f.numeric_value for f in features] == [5.0, None]
    assert [f.name for f in features] == ["Area A", None]
    assert joined.crs == "EPSG:4326"


def test_join_record_lists_with_mixed_crs_raise():
    polygons = [
        PolygonRecord("A", box(0, 0, 1, 1), crs="EPSG:4326"),
        PolygonRecord("B", box(1, 0, 2, 1), crs="EPSG:27700"),
    ]

    with pytest.raises(ValueError, match="mix CRS"):
        join_attributes(polygons, [AreaRecord("A", "Area A", 5.0)])


def test_frame_from_records_keeps_missing_values():
    df = frame_from_records([AreaRecord("A", None, None), AreaRecord("B", "b", 2.5)])

    assert list(df.columns) == ["code", "name", "numeric_value"]
    assert df["numeric_value"].isna().tolist() == [True, False]
