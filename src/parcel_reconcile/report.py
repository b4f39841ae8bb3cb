"""Review report for one comparison run, and the JSON encoding shared by
everything the CLI writes (sorted keys, compact separators, UTF-8)."""

from __future__ import annotations

import json
from collections import Counter
from datetime import date
from enum import Enum
from pathlib import Path
from typing import Any, Iterable, Mapping

from .types import (
    CultivationSummary,
    LocalField,
    RemoteField,
    ReviewItem,
    ReviewStatus,
    item_id,
)

REPORT_SCHEMA = "parcel_reconcile/review_report_v1"


def json_safe(value: Any) -> Any:
    """Plain JSON view of review values: enums by value, dates as ISO strings,
    tuples (such as shapely coordinates) as lists."""

    if isinstance(value, Enum):
        return value.value
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Mapping):
        return {str(k): json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [json_safe(v) for v in value]
    return str(value)


def encode_json(obj: object) -> bytes:
    """Byte-stable encoding: rerunning on the same inputs gives the same file."""

    text = json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return (text + "\n").encode("utf-8")


def write_json(path: Path, obj: object) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(encode_json(obj))


def _local_json(f: LocalField | None) -> dict[str, Any] | None:
    if f is None:
        return None
    return {
        "b_id": f.b_id,
        "b_id_source": f.b_id_source,
        "b_name": f.b_name,
        "b_start": f.b_start,
        "b_end": f.b_end,
        "b_acquiring_method": f.b_acquiring_method,
    }


def _remote_json(f: RemoteField | None) -> dict[str, Any] | None:
    if f is None:
        return None
    return {
        "CropFieldID": f.crop_field_id,
        "CropFieldVersion": f.crop_field_version,
        "CropFieldDesignator": f.designator,
        "BeginDate": f.begin_date,
        "EndDate": f.end_date,
        "CropTypeCode": f.crop_type_code,
        "UseTitleCode": f.use_title_code,
    }


def _cultivation_json(c: CultivationSummary | None) -> dict[str, Any] | None:
    if c is None:
        return None
    return {"b_lu": c.b_lu, "b_lu_catalogue": c.b_lu_catalogue, "b_lu_name": c.b_lu_name}


def review_item_to_json(item: ReviewItem) -> dict[str, Any]:
    return json_safe(
        {
            "id": item_id(item),
            "status": item.status,
            "diffs": list(item.diffs),
            "local": _local_json(getattr(item, "local_field", None)),
            "remote": _remote_json(getattr(item, "rvo_field", None)),
            "local_cultivation": _cultivation_json(getattr(item, "local_cultivation", None)),
            "rvo_cultivation": _cultivation_json(getattr(item, "rvo_cultivation", None)),
        }
    )


def build_review_report(
    items: Iterable[ReviewItem],
    *,
    year: int,
    inputs: Mapping[str, Any] | None = None,
) -> dict[str, Any]:
    """JSON-safe review report with per-status counts; every status is counted."""

    rows = [review_item_to_json(item) for item in items]
    counts = Counter(row["status"] for row in rows)
    return {
        "schema": REPORT_SCHEMA,
        "year": year,
        "inputs": json_safe(dict(inputs or {})),
        "summary": {status.value: counts.get(status.value, 0) for status in ReviewStatus},
        "items": rows,
    }
