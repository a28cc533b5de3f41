"""Area-of-interest normalization into catalog-search and clip bounding boxes."""

import json, logging, math
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import shapely
from shapely import wkt as shapely_wkt
from shapely.errors import ShapelyError
from shapely.geometry import GeometryCollection, mapping, shape
from shapely.geometry.base import BaseGeometry
from shapely.ops import unary_union
from shapely.validation import explain_validity

from hrdem.config import CLIP_CRS, SEARCH_CRS
from hrdem.errors import InvalidGeometryError, ReprojectionError


GEOJSON_SUFFIXES = (".geojson", ".json")
WKT_SUFFIXES = (".wkt", ".txt")

# Number of segments along the longest AOI side used when densifying edges before reprojection.
DENSIFY_SEGMENTS = 20

log = logging.getLogger(__name__)


def _resolve_crs(crs: Any):
    """Coerce any CRS-like input into a rasterio CRS."""
    from rasterio.crs import CRS
    from rasterio.errors import CRSError

    if crs is None:
        raise InvalidGeometryError("AOI has no coordinate reference system; pass crs explicitly")
    if isinstance(crs, CRS):
        return crs
    try:
        return CRS.from_user_input(crs)
    except CRSError as err:
        raise ReprojectionError(f"unsupported CRS {crs!r}: {err}") from err


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned rectangle in a specific CRS."""

    left: float
    bottom: float
    right: float
    top: float
    crs: Any

    @property
    def width(self) -> float:
        return self.right - self.left

    @property
    def height(self) -> float:
        return self.top - self.bottom

    @property
    def has_area(self) -> bool:
        return self.width > 0 and self.height > 0

    @property
    def crs_wkt(self) -> str:
        return self.crs.to_wkt()

    def as_tuple(self) -> tuple[float, float, float, float]:
        return (self.left, self.bottom, self.right, self.top)

    def contains(self, bounds, tolerance: float = 0.0) -> bool:
        """Return True when (left, bottom, right, top) bounds fall inside this box."""
        left, bottom, right, top = bounds
        return (
            left >= self.left - tolerance
            and bottom >= self.bottom - tolerance
            and right <= self.right + tolerance
            and top <= self.top + tolerance
        )


@dataclass(frozen=True)
class AreaOfInterest:
    """Validated AOI geometry paired with its CRS."""

    geometry: BaseGeometry
    crs: Any

    def bounds_in(self, dst_crs: Any) -> BoundingBox:
        """Reproject the AOI into dst_crs and return its enclosing box.

        Edges are densified before vertex reprojection so curved projected
        edges stay inside the returned box.
        """
        from rasterio.warp import transform_geom

        dst = _resolve_crs(dst_crs)
        if dst == self.crs:
            bounds = self.geometry.bounds
        else:
            geom = self.geometry
            minx, miny, maxx, maxy = geom.bounds
            longest_side = max(maxx - minx, maxy - miny)
            if longest_side > 0 and geom.geom_type != "Point":
                geom = shapely.segmentize(geom, longest_side / DENSIFY_SEGMENTS)
            try:
                projected = shape(transform_geom(self.crs, dst, mapping(geom)))
            except Exception as err:
                raise ReprojectionError(f"failed to reproject AOI from {self.crs} to {dst}: {err}") from err
            bounds = projected.bounds

        if len(bounds) != 4 or not all(math.isfinite(v) for v in bounds):
            raise ReprojectionError(f"AOI reprojection to {dst} produced non-finite bounds: {bounds}")
        return BoundingBox(*(float(v) for v in bounds), crs=dst)


def _geometry_from_geojson(payload: dict) -> tuple[BaseGeometry, Any]:
    """Build one geometry (and optional legacy CRS name) from a GeoJSON object."""
    if not isinstance(payload, dict):
        raise InvalidGeometryError(f"GeoJSON must be an object; got {type(payload).__name__}")
    crs_hint = None
    crs_member = payload.get("crs")
    if isinstance(crs_member, dict):
        crs_hint = crs_member.get("properties", {}).get("name")

    geojson_type = payload.get("type")
    if geojson_type == "Feature" and not payload.get("geometry"):
        raise InvalidGeometryError("GeoJSON feature has no geometry")
    try:
        if geojson_type == "FeatureCollection":
            parts = [shape(f["geometry"]) for f in payload.get("features", []) if f.get("geometry")]
            geom = unary_union(parts) if parts else GeometryCollection()
        elif geojson_type == "Feature":
            geom = shape(payload["geometry"])
        else:
            geom = shape(payload)
    except (ShapelyError, KeyError, TypeError, ValueError, AttributeError) as err:
        raise InvalidGeometryError(f"malformed GeoJSON geometry: {err}") from err
    return geom, crs_hint


def _coerce_geometry(aoi: Any) -> tuple[BaseGeometry, Any]:
    """Return (geometry, crs_hint) from any supported AOI representation."""
    if isinstance(aoi, AreaOfInterest):
        return aoi.geometry, aoi.crs
    if isinstance(aoi, BaseGeometry):
        return aoi, None
    if isinstance(aoi, str):
        text = aoi.strip()
        if text.startswith("{"):
            try:
                payload = json.loads(text)
            except json.JSONDecodeError as err:
                raise InvalidGeometryError(f"malformed GeoJSON text: {err}") from err
            return _geometry_from_geojson(payload)
        try:
            return shapely_wkt.loads(text), None
        except (ShapelyError, ValueError) as err:
            raise InvalidGeometryError(f"malformed WKT geometry: {err}") from err
    if hasattr(aoi, "__geo_interface__"):
        # geopandas objects expose both __geo_interface__ and a pyproj .crs
        geom, crs_hint = _geometry_from_geojson(aoi.__geo_interface__)
        return geom, getattr(aoi, "crs", None) or crs_hint
    if isinstance(aoi, dict):
        return _geometry_from_geojson(aoi)
    raise InvalidGeometryError(f"unsupported AOI type: {type(aoi)!r}")


def to_area_of_interest(aoi: Any, crs: Any = None) -> AreaOfInterest:
    """Validate an AOI in any supported representation and attach its CRS.

    Parameters
    ----------
    aoi : shapely geometry, GeoJSON mapping, WKT string, AreaOfInterest, or
        any object exposing ``__geo_interface__``.
    crs : optional CRS; overrides any CRS carried by ``aoi``.
    """
    geom, crs_hint = _coerce_geometry(aoi)
    if geom is None or geom.is_empty:
        raise InvalidGeometryError("AOI geometry is empty")
    if not geom.is_valid:
        raise InvalidGeometryError(f"AOI geometry is invalid: {explain_validity(geom)}")
    resolved_crs = _resolve_crs(crs if crs is not None else crs_hint)
    log.debug(f"resolved AOI {geom.geom_type} in {resolved_crs}")
    return AreaOfInterest(geometry=geom, crs=resolved_crs)


def normalize_aoi(aoi: Any, crs: Any = None) -> tuple[BoundingBox, BoundingBox]:
    """Return the (search, clip) bounding boxes for an AOI."""
    area = to_area_of_interest(aoi, crs=crs)
    search_bbox = area.bounds_in(SEARCH_CRS)
    clip_bbox = area.bounds_in(CLIP_CRS)
    log.debug(f"search bbox={search_bbox.as_tuple()}\n    clip bbox={clip_bbox.as_tuple()}")
    return search_bbox, clip_bbox


def read_aoi_file(aoi_fp: str | Path, crs: Any = None) -> AreaOfInterest:
    """Load an AOI from a GeoJSON or WKT file."""
    aoi_path = Path(aoi_fp).expanduser().resolve()
    if not aoi_path.exists():
        raise FileNotFoundError(f"AOI file does not exist: {aoi_path}")
    text = aoi_path.read_text(encoding="utf-8")
    suffix = aoi_path.suffix.lower()

    if suffix in GEOJSON_SUFFIXES:
        try:
            payload = json.loads(text)
        except json.JSONDecodeError as err:
            raise InvalidGeometryError(f"AOI file is not valid JSON: {aoi_path} ({err})") from err
        geom, crs_hint = _geometry_from_geojson(payload)
        # RFC 7946 GeoJSON is always WGS84 unless a legacy crs member says otherwise.
        return to_area_of_interest(geom, crs=crs if crs is not None else (crs_hint or "EPSG:4326"))

    if suffix in WKT_SUFFIXES:
        if crs is None:
            raise InvalidGeometryError(f"WKT AOI files carry no CRS; pass one explicitly for {aoi_path}")
        return to_area_of_interest(text, crs=crs)

    raise ValueError(f"unsupported AOI file type '{suffix}'; expected one of {GEOJSON_SUFFIXES + WKT_SUFFIXES}")
