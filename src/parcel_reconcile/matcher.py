"""Two-tier reconciliation of local field parcels against a registry snapshot.

Tier 1 pairs fields by identifier: a local field remembers the registry id it
was imported from in ``b_id_source``. Tier 2 pairs the leftovers spatially:
each remaining remote field, in input order, claims the unclaimed local field
with the greatest Intersection over Union, provided it exceeds
``SPATIAL_MATCH_THRESHOLD``.

Spatial matching is greedy per remote field, not a globally optimal
assignment. With dense, overlapping layouts a remote field processed early can
claim a local field that would have matched a later remote field better.

Whatever stays unpaired is reported as NEW_REMOTE (remote side) or classified
as NEW_LOCAL / EXPIRED_LOCAL (local side). Every input field ends up in exactly
one review item.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from datetime import date
from typing import Sequence

from .cultivation import (
    DEFAULT_CROP_CODE_PREFIX,
    Catalogue,
    catalogue_lookup,
    crop_code,
    find_active_cultivation,
    reference_date,
    remote_summary,
    summarize,
)
from .diff import cultivation_differs, detect_diffs
from .geometry import BBox, GeometryEngine, calculate_iou, default_engine
from .types import (
    ConflictItem,
    CultivationSummary,
    ExpiredLocalItem,
    FieldDiff,
    LocalField,
    MatchItem,
    NewLocalItem,
    NewRemoteItem,
    RemoteField,
    ReviewItem,
    parse_date,
)

LOGGER = logging.getLogger(__name__)

SPATIAL_MATCH_THRESHOLD = 0.99


@dataclass(frozen=True)
class _Candidate:
    index: int
    field: LocalField
    bbox: BBox


def _paired_item(
    local: LocalField,
    remote: RemoteField,
    *,
    year: int,
    names: dict[str, str],
    prefix: str,
    engine: GeometryEngine,
) -> MatchItem | ConflictItem:
    local_cultivation = summarize(find_active_cultivation(local.cultivations, reference_date(year)))
    remote_code = crop_code(remote.crop_type_code, prefix)
    rvo_cultivation = remote_summary(remote_code, names)

    diffs = detect_diffs(local, remote, engine)
    if cultivation_differs(local_cultivation, remote_code):
        diffs.append(FieldDiff.CULTIVATION)

    if diffs:
        return ConflictItem(
            local_field=local,
            rvo_field=remote,
            diffs=tuple(diffs),
            local_cultivation=local_cultivation,
            rvo_cultivation=rvo_cultivation,
        )
    return MatchItem(
        local_field=local,
        rvo_field=remote,
        local_cultivation=local_cultivation,
        rvo_cultivation=rvo_cultivation,
    )


def classify_orphan(local: LocalField, year: int) -> NewLocalItem | ExpiredLocalItem:
    """Classify a local field without a registry counterpart for ``year``.

    A field that started before the year and is still open on January 1 is
    EXPIRED_LOCAL. Anything else, including a field whose whole window ended
    before the year, is NEW_LOCAL.
    """

    year_start = date(year, 1, 1)
    start = parse_date(local.b_start)
    end = parse_date(local.b_end)
    local_cultivation: CultivationSummary | None = summarize(
        find_active_cultivation(local.cultivations, reference_date(year))
    )

    if start is not None and start < year_start and (end is None or end >= year_start):
        return ExpiredLocalItem(local_field=local, local_cultivation=local_cultivation)
    return NewLocalItem(local_field=local, local_cultivation=local_cultivation)


def compare_fields(
    local_fields: Sequence[LocalField],
    remote_fields: Sequence[RemoteField],
    year: int,
    catalogue: Catalogue | None = None,
    *,
    engine: GeometryEngine | None = None,
    crop_code_prefix: str = DEFAULT_CROP_CODE_PREFIX,
) -> list[ReviewItem]:
    """Compare the farm's fields with the registry snapshot for ``year``.

    Items are ordered: identifier matches (local order), then one item per
    remaining remote field (remote order), then local orphans (local order).
    """

    engine = engine or default_engine()
    names = catalogue_lookup(catalogue)
    results: list[ReviewItem] = []
    matched_local: set[int] = set()
    matched_remote: set[int] = set()

    # Tier 1: identifier
    for local_index, local in enumerate(local_fields):
        if not local.b_id_source:
            continue
        for remote_index, remote in enumerate(remote_fields):
            if remote_index in matched_remote or remote.crop_field_id != local.b_id_source:
                continue
            matched_local.add(local_index)
            matched_remote.add(remote_index)
            item = _paired_item(
                local, remote, year=year, names=names, prefix=crop_code_prefix, engine=engine
            )
            LOGGER.debug("id match %s <-> %s: %s", local.b_id, remote.crop_field_id, item.status.value)
            results.append(item)
            break

    # Tier 2: spatial
    remaining = [
        _Candidate(index=i, field=f, bbox=engine.bbox(f.b_geometry))
        for i, f in enumerate(local_fields)
        if i not in matched_local
    ]

    for remote_index, remote in enumerate(remote_fields):
        if remote_index in matched_remote:
            continue

        remote_bbox = engine.bbox(remote.geometry)
        best: _Candidate | None = None
        best_iou = 0.0
        for candidate in remaining:
            if candidate.index in matched_local:
                continue
            if not engine.bbox_overlap(candidate.bbox, remote_bbox):
                continue
            iou = calculate_iou(candidate.field.b_geometry, remote.geometry, engine)
            if iou > best_iou:
                best_iou = iou
                best = candidate

        if best is not None and best_iou > SPATIAL_MATCH_THRESHOLD:
            matched_local.add(best.index)
            matched_remote.add(remote_index)
            item = _paired_item(
                best.field, remote, year=year, names=names, prefix=crop_code_prefix, engine=engine
            )
            LOGGER.debug(
                "spatial match %s <-> %s (IoU %.4f): %s",
                best.field.b_id,
                remote.crop_field_id,
                best_iou,
                item.status.value,
            )
            results.append(item)
            continue

        LOGGER.debug("no counterpart for remote %s (best IoU %.4f)", remote.crop_field_id, best_iou)
        results.append(
            NewRemoteItem(
                rvo_field=remote,
                rvo_cultivation=remote_summary(crop_code(remote.crop_type_code, crop_code_prefix), names),
            )
        )

    # Orphans
    for local_index, local in enumerate(local_fields):
        if local_index not in matched_local:
            results.append(classify_orphan(local, year))

    counts = Counter(item.status.value for item in results)
    LOGGER.info(
        "Compared %d local and %d remote fields for %d: %s",
        len(local_fields),
        len(remote_fields),
        year,
        dict(sorted(counts.items())),
    )
    return results
