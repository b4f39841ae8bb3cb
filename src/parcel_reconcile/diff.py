from __future__ import annotations

from .geometry import GeometryEngine, calculate_iou
from .types import CultivationSummary, FieldDiff, LocalField, RemoteField, parse_date

# IoU below which two geometries of a matched pair count as changed.
GEOMETRY_EQUALITY_THRESHOLD = 0.99


def detect_diffs(
    local: LocalField,
    remote: RemoteField,
    engine: GeometryEngine | None = None,
) -> list[FieldDiff]:
    """Attributes of ``local`` that differ from the registry record ``remote``.

    Each attribute is checked independently. Dates compare as calendar dates;
    an end date absent on both sides is equal.
    """

    diffs: list[FieldDiff] = []

    if remote.designator and local.b_name != remote.designator:
        diffs.append(FieldDiff.NAME)

    if calculate_iou(local.b_geometry, remote.geometry, engine) < GEOMETRY_EQUALITY_THRESHOLD:
        diffs.append(FieldDiff.GEOMETRY)

    if parse_date(local.b_start) != parse_date(remote.begin_date):
        diffs.append(FieldDiff.START)

    if parse_date(local.b_end) != parse_date(remote.end_date):
        diffs.append(FieldDiff.END)

    return diffs


def cultivation_differs(local: CultivationSummary | None, remote_code: str | None) -> bool:
    if local is None or remote_code is None:
        return False
    return local.b_lu_catalogue != remote_code
