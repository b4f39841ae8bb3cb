"""Reconcile a farm's field parcels against a registry crop-field snapshot.

``compare_fields`` classifies and diffs local against remote fields for one
calendar year; ``process_import`` applies the operator's choice per review item
through a ``FieldStore``.
"""

from .geometry import (
    GeometryEngine,
    InvalidGeometryError,
    ShapelyGeometryEngine,
    bbox_overlap,
    calculate_iou,
    to_field_geometry,
)
from .cultivation import find_active_cultivation, reference_date
from .diff import detect_diffs
from .matcher import compare_fields
from .ports import FieldStore
from .process import ProcessResult, process_import
from .store import InMemoryFieldStore
from .types import (
    ConflictItem,
    Cultivation,
    CultivationCatalogueEntry,
    ExpiredLocalItem,
    FieldDiff,
    LocalField,
    MatchItem,
    NewLocalItem,
    NewRemoteItem,
    RemoteField,
    ReviewAction,
    ReviewItem,
    ReviewStatus,
    item_id,
)

__all__ = [
    "ConflictItem",
    "Cultivation",
    "CultivationCatalogueEntry",
    "ExpiredLocalItem",
    "FieldDiff",
    "FieldStore",
    "GeometryEngine",
    "InMemoryFieldStore",
    "InvalidGeometryError",
    "LocalField",
    "MatchItem",
    "NewLocalItem",
    "NewRemoteItem",
    "ProcessResult",
    "RemoteField",
    "ReviewAction",
    "ReviewItem",
    "ReviewStatus",
    "ShapelyGeometryEngine",
    "bbox_overlap",
    "calculate_iou",
    "compare_fields",
    "detect_diffs",
    "find_active_cultivation",
    "item_id",
    "process_import",
    "reference_date",
    "to_field_geometry",
]
