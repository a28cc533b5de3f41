"""Tests for AOI normalization."""

import json
from pathlib import Path
from types import SimpleNamespace

import pytest
from shapely.geometry import Point, Polygon, box, mapping

from hrdem.errors import InvalidGeometryError, ReprojectionError
from hrdem.geometry import AreaOfInterest, normalize_aoi, read_aoi_file, to_area_of_interest


pytestmark = pytest.mark.unit
rasterio = pytest.importorskip("rasterio")


def _reprojected_bounds(geom, src_crs: str, dst_crs: str):
    """Vertex-reproject a geometry and return its bounds."""
    from rasterio.warp import transform_geom
    from shapely.geometry import shape

    return shape(transform_geom(src_crs, dst_crs, mapping(geom))).bounds


@pytest.mark.parametrize(
    "geom, src_crs",
    [
        pytest.param(Point(-98.35814, 49.35103).buffer(0.01), "EPSG:4326", id="polygon_wgs84"),
        pytest.param(box(473500.0, 5465500.0, 474500.0, 5466500.0), "EPSG:26914", id="box_utm14"),
        pytest.param(Point(473900.0, 5466500.0).buffer(403.0), "EPSG:26914", id="buffer_utm14"),
    ],
)
def test_normalize_aoi_boxes_contain_reprojected_aoi(geom, src_crs: str):
    """Both derived boxes must enclose the AOI after reprojection."""
    search_bbox, clip_bbox = normalize_aoi(geom, crs=src_crs)
    assert search_bbox.crs.to_epsg() == 4326
    assert clip_bbox.crs.to_epsg() == 3979
    assert search_bbox.contains(_reprojected_bounds(geom, src_crs, "EPSG:4326"), tolerance=1e-9)
    assert clip_bbox.contains(_reprojected_bounds(geom, src_crs, "EPSG:3979"), tolerance=1e-6)
    assert search_bbox.has_area and clip_bbox.has_area


def test_normalize_aoi_identity_crs_keeps_bounds():
    """Search bbox of a WGS84 AOI equals the AOI bounds."""
    geom = box(-98.4, 49.3, -98.3, 49.4)
    search_bbox, _ = normalize_aoi(geom, crs="EPSG:4326")
    assert search_bbox.as_tuple() == pytest.approx(geom.bounds)


def test_point_aoi_gives_degenerate_boxes():
    """A point AOI normalizes to zero-area boxes."""
    search_bbox, clip_bbox = normalize_aoi(Point(-98.35814, 49.35103), crs=4326)
    assert search_bbox.left == pytest.approx(-98.35814)
    assert not clip_bbox.has_area


@pytest.mark.parametrize(
    "aoi",
    [
        pytest.param(Polygon(), id="empty_polygon"),
        pytest.param(Polygon([(0, 0), (1, 1), (1, 0), (0, 1), (0, 0)]), id="bowtie_polygon"),
        pytest.param("POLYGON ((0 0, 1", id="truncated_wkt"),
        pytest.param({"type": "Polygon"}, id="geojson_without_coordinates"),
        pytest.param({"type": "Feature", "geometry": None, "properties": {}}, id="feature_without_geometry"),
        pytest.param({"type": "FeatureCollection", "features": []}, id="empty_feature_collection"),
        pytest.param(42, id="unsupported_type"),
        pytest.param(SimpleNamespace(__geo_interface__=[1, 2]), id="geo_interface_not_an_object"),
    ],
)
def test_invalid_geometries_raise(aoi):
    """Empty, malformed or invalid AOIs are rejected."""
    with pytest.raises(InvalidGeometryError):
        to_area_of_interest(aoi, crs="EPSG:4326")


def test_missing_crs_raises_invalid_geometry():
    """AOIs without any CRS are rejected."""
    with pytest.raises(InvalidGeometryError):
        to_area_of_interest(box(0, 0, 1, 1))


def test_unknown_crs_raises_reprojection_error():
    """Unsupported CRS definitions surface as reprojection errors."""
    with pytest.raises(ReprojectionError):
        to_area_of_interest(box(0, 0, 1, 1), crs="EPSG:999999")


def test_geojson_inputs_are_accepted():
    """Geometry, Feature and FeatureCollection mappings produce the same AOI."""
    geom = box(-98.4, 49.3, -98.3, 49.4)
    feature = {"type": "Feature", "geometry": mapping(geom), "properties": {}}
    collection = {"type": "FeatureCollection", "features": [feature]}
    for payload in (mapping(geom), feature, collection, json.dumps(collection)):
        area = to_area_of_interest(payload, crs="EPSG:4326")
        assert area.geometry.equals(geom)


def test_geo_interface_object_crs_is_used():
    """Objects exposing __geo_interface__ and .crs carry their CRS through."""

    class FakeGeoSeries:
        crs = "EPSG:26914"
        __geo_interface__ = {
            "type": "FeatureCollection",
            "features": [{"type": "Feature", "geometry": mapping(box(473500, 5465500, 474500, 5466500)), "properties": {}}],
        }

    area = to_area_of_interest(FakeGeoSeries())
    assert isinstance(area, AreaOfInterest)
    assert area.crs.to_epsg() == 26914


def test_read_aoi_file_geojson_defaults_to_wgs84(tmp_path: Path):
    """GeoJSON AOI files default to EPSG:4326."""
    aoi_fp = tmp_path / "aoi.geojson"
    aoi_fp.write_text(json.dumps(mapping(box(-98.4, 49.3, -98.3, 49.4))), encoding="utf-8")
    area = read_aoi_file(aoi_fp)
    assert area.crs.to_epsg() == 4326


def test_read_aoi_file_wkt_requires_crs(tmp_path: Path):
    """WKT AOI files need an explicit CRS."""
    aoi_fp = tmp_path / "aoi.wkt"
    aoi_fp.write_text(box(473500, 5465500, 474500, 5466500).wkt, encoding="utf-8")
    with pytest.raises(InvalidGeometryError):
        read_aoi_file(aoi_fp)
    area = read_aoi_file(aoi_fp, crs="EPSG:26914")
    assert area.crs.to_epsg() == 26914


@pytest.mark.parametrize("content", ["[1, 2]", "3.5", '"Polygon"'], ids=["array", "number", "string"])
def test_read_aoi_file_rejects_non_object_geojson(tmp_path: Path, content: str):
    """GeoJSON files whose top-level value is not an object are malformed AOIs."""
    aoi_fp = tmp_path / "aoi.geojson"
    aoi_fp.write_text(content, encoding="utf-8")
    with pytest.raises(InvalidGeometryError):
        read_aoi_file(aoi_fp)
