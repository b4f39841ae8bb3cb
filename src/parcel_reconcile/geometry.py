"""Polygon overlap measures used to pair local and remote field parcels.

Overlay operations (intersection, union) come from shapely. Areas are either
planar, in the units of the coordinates, or geodesic on the WGS84 ellipsoid via
pyproj. Geodesic is the default and expects lon/lat (EPSG:4326) coordinates.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping, Protocol, runtime_checkable

from pyproj import Geod
from pyproj.exceptions import GeodError
from shapely.errors import ShapelyError
from shapely.geometry import MultiPolygon, Polygon, shape
from shapely.geometry.base import BaseGeometry

from .types import FieldGeometry

LOGGER = logging.getLogger(__name__)

BBox = tuple[float, float, float, float]  # min_x, min_y, max_x, max_y

AREA_METHODS = ("geodesic", "planar")


class InvalidGeometryError(ValueError):
    """Raised when input geometry is not a Polygon or MultiPolygon."""


def to_field_geometry(obj: Any) -> FieldGeometry:
    """Validate a GeoJSON mapping or shapely geometry into a field geometry.

    Only the geometry type is checked here; self-intersecting or empty
    polygons pass and later degrade to an IoU of 0.
    """

    if isinstance(obj, (Polygon, MultiPolygon)):
        return obj
    if isinstance(obj, BaseGeometry):
        raise InvalidGeometryError(f"Unsupported geometry type: {obj.geom_type}")
    if not isinstance(obj, Mapping):
        raise InvalidGeometryError(f"Geometry must be a GeoJSON object, got {type(obj).__name__}")
    if obj.get("type") == "Feature":
        return to_field_geometry(obj.get("geometry"))
    if obj.get("type") not in ("Polygon", "MultiPolygon"):
        raise InvalidGeometryError(f"Unsupported geometry type: {obj.get('type')!r}")
    try:
        geom = shape(obj)
    except (ShapelyError, ValueError, TypeError, IndexError) as exc:
        raise InvalidGeometryError(f"Malformed {obj.get('type')} coordinates: {exc}") from exc
    return geom


def bbox_overlap(bbox1: BBox, bbox2: BBox) -> bool:
    """Closed rectangle overlap test; rectangles sharing an edge overlap."""

    min_x1, min_y1, max_x1, max_y1 = bbox1
    min_x2, min_y2, max_x2, max_y2 = bbox2
    return not (
        max_x1 < min_x2
        or min_x1 > max_x2
        or max_y1 < min_y2
        or min_y1 > max_y2
    )


def _polygons(geom: BaseGeometry) -> Iterable[Polygon]:
    if isinstance(geom, Polygon):
        yield geom
    elif hasattr(geom, "geoms"):
        for part in geom.geoms:
            yield from _polygons(part)


@runtime_checkable
class GeometryEngine(Protocol):
    """Narrow geometry capability the matcher depends on."""

    def bbox(self, geom: FieldGeometry) -> BBox: ...

    def bbox_overlap(self, bbox1: BBox, bbox2: BBox) -> bool: ...

    def intersection_area(self, a: FieldGeometry, b: FieldGeometry) -> float: ...

    def union_area(self, a: FieldGeometry, b: FieldGeometry) -> float: ...


class ShapelyGeometryEngine:
    def __init__(self, area_method: str = "geodesic") -> None:
        if area_method not in AREA_METHODS:
            raise ValueError(f"area_method must be one of {AREA_METHODS}, got {area_method!r}")
        self.area_method = area_method
        self._geod = Geod(ellps="WGS84")

    def bbox(self, geom: FieldGeometry) -> BBox:
        min_x, min_y, max_x, max_y = geom.bounds
        return float(min_x), float(min_y), float(max_x), float(max_y)

    def bbox_overlap(self, bbox1: BBox, bbox2: BBox) -> bool:
        return bbox_overlap(bbox1, bbox2)

    def area(self, geom: BaseGeometry) -> float:
        if geom.is_empty:
            return 0.0
        if self.area_method == "planar":
            return float(sum(poly.area for poly in _polygons(geom)))
        total = 0.0
        for poly in _polygons(geom):
            area_m2, _ = self._geod.geometry_area_perimeter(poly)
            total += abs(float(area_m2))
        return total

    def intersection_area(self, a: FieldGeometry, b: FieldGeometry) -> float:
        return self.area(a.intersection(b))

    def union_area(self, a: FieldGeometry, b: FieldGeometry) -> float:
        return self.area(a.union(b))


_DEFAULT_ENGINE: GeometryEngine | None = None


def default_engine() -> GeometryEngine:
    global _DEFAULT_ENGINE
    if _DEFAULT_ENGINE is None:
        _DEFAULT_ENGINE = ShapelyGeometryEngine()
    return _DEFAULT_ENGINE


def calculate_iou(
    geom_a: FieldGeometry,
    geom_b: FieldGeometry,
    engine: GeometryEngine | None = None,
) -> float:
    """Intersection over Union of two field geometries, in [0, 1].

    Never raises: empty or invalid input, a zero-area union, and errors from
    the geometry backend all yield 0.
    """

    engine = engine or default_engine()
    try:
        if geom_a.is_empty or geom_b.is_empty:
            LOGGER.warning("IoU skipped: empty geometry")
            return 0.0
        if not geom_a.is_valid or not geom_b.is_valid:
            LOGGER.warning("IoU skipped: invalid geometry")
            return 0.0
        union_area = engine.union_area(geom_a, geom_b)
        if union_area <= 0:
            return 0.0
        intersection_area = engine.intersection_area(geom_a, geom_b)
    except (ShapelyError, GeodError, ValueError, TypeError, AttributeError) as exc:
        LOGGER.warning("Error calculating IoU: %s", exc)
        return 0.0
    return max(0.0, min(1.0, intersection_area / union_area))
