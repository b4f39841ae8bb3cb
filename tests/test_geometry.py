from __future__ import annotations

import logging

import pytest
from shapely.geometry import MultiPolygon, Point, Polygon

from builders import PLANAR, square, square_geojson
from parcel_reconcile.geometry import (
    GeometryEngine,
    InvalidGeometryError,
    ShapelyGeometryEngine,
    bbox_overlap,
    calculate_iou,
    to_field_geometry,
)


def test_to_field_geometry_accepts_polygon_and_multipolygon() -> None:
    poly = to_field_geometry(square_geojson(0, 0))
    assert isinstance(poly, Polygon)

    multi = to_field_geometry(
        {
            "type": "MultiPolygon",
            "coordinates": [
                square_geojson(0, 0)["coordinates"],
                square_geojson(20, 20)["coordinates"],
            ],
        }
    )
    assert isinstance(multi, MultiPolygon)
    assert to_field_geometry(poly) is poly


def test_to_field_geometry_unwraps_feature() -> None:
    geom = to_field_geometry({"type": "Feature", "properties": {}, "geometry": square_geojson(0, 0)})
    assert geom.bounds == (0.0, 0.0, 10.0, 10.0)


@pytest.mark.parametrize(
    "obj",
    [
        {"type": "Point", "coordinates": [0, 0]},
        {"type": "LineString", "coordinates": [[0, 0], [1, 1]]},
        Point(0, 0),
        "POLYGON ((0 0, 1 0, 1 1, 0 0))",
        None,
    ],
)
def test_to_field_geometry_rejects_other_types(obj: object) -> None:
    with pytest.raises(InvalidGeometryError):
        to_field_geometry(obj)


def test_bbox_overlap() -> None:
    assert bbox_overlap((0, 0, 10, 10), (5, 5, 15, 15))
    assert bbox_overlap((0, 0, 10, 10), (10, 0, 20, 10))  # shared edge
    assert not bbox_overlap((0, 0, 10, 10), (10.5, 0, 20, 10))
    assert not bbox_overlap((0, 0, 10, 10), (0, 11, 10, 20))
    assert not bbox_overlap((100, 100, 110, 110), (0, 0, 10, 10))


def test_iou_identical_and_disjoint() -> None:
    assert calculate_iou(square(0, 0), square(0, 0), PLANAR) == pytest.approx(1.0)
    assert calculate_iou(square(0, 0), square(100, 100), PLANAR) == 0.0


def test_iou_partial_overlap_planar() -> None:
    # intersection 5x10 = 50, union 150
    assert calculate_iou(square(0, 0), square(5, 0), PLANAR) == pytest.approx(50 / 150)


def test_iou_geodesic_matches_planar_for_small_parcels() -> None:
    geodesic = ShapelyGeometryEngine("geodesic")
    a = square(5.0, 52.0, 0.001)
    b = square(5.0005, 52.0, 0.001)
    assert calculate_iou(a, b, geodesic) == pytest.approx(calculate_iou(a, b, PLANAR), rel=1e-4)


def test_iou_invalid_geometry_degrades_to_zero(caplog: pytest.LogCaptureFixture) -> None:
    bowtie = Polygon([(0, 0), (10, 10), (10, 0), (0, 10), (0, 0)])
    with caplog.at_level(logging.WARNING, logger="parcel_reconcile.geometry"):
        assert calculate_iou(bowtie, square(0, 0)) == 0.0
    assert "invalid geometry" in caplog.text


def test_iou_empty_geometry_is_zero() -> None:
    assert calculate_iou(Polygon(), square(0, 0)) == 0.0


def test_iou_degenerate_polygon_is_zero() -> None:
    sliver = Polygon([(0, 0), (10, 0), (20, 0), (0, 0)])
    assert calculate_iou(sliver, sliver, PLANAR) == 0.0


class _FailingEngine(ShapelyGeometryEngine):
    def union_area(self, a, b):  # type: ignore[no-untyped-def]
        raise ValueError("boom")


def test_iou_engine_errors_are_logged_not_raised(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.WARNING, logger="parcel_reconcile.geometry"):
        assert calculate_iou(square(0, 0), square(0, 0), _FailingEngine("planar")) == 0.0
    assert "Error calculating IoU" in caplog.text


def test_shapely_engine_satisfies_protocol() -> None:
    assert isinstance(ShapelyGeometryEngine(), GeometryEngine)
    with pytest.raises(ValueError):
        ShapelyGeometryEngine("mercator")
