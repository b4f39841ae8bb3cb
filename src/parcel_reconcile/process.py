"""Apply the operator's per-item decisions to the farm's persisted fields.

Items are processed strictly in order with one persistence call sequence per
item and no batching. A failing store call propagates and aborts the rest of
the batch; items processed before it stay applied. Callers needing
all-or-nothing semantics wrap the call in the store's own transaction scope
(see ``InMemoryFieldStore.transaction``).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Iterable

from .cultivation import DEFAULT_CROP_CODE_PREFIX, crop_code
from .ports import FieldStore
from .types import (
    ConflictItem,
    CultivationSummary,
    LocalField,
    RemoteField,
    ReviewAction,
    ReviewItem,
    UserChoiceMap,
    item_id,
    parse_date,
)

LOGGER = logging.getLogger(__name__)

ACQUIRING_METHOD_IMPORT = "rvo_import"

FieldAddedCallback = Callable[[str, RemoteField], None]

_SKIP_ACTIONS = frozenset({ReviewAction.IGNORE, ReviewAction.NO_ACTION})


@dataclass
class ProcessResult:
    applied: int = 0
    skipped: int = 0
    added_field_ids: list[str] = field(default_factory=list)


def _normalize_choices(choices: UserChoiceMap) -> dict[str, ReviewAction]:
    normalized: dict[str, ReviewAction] = {}
    for key, value in choices.items():
        try:
            normalized[str(key)] = ReviewAction(value)
        except ValueError:
            raise ValueError(f"Unknown action {value!r} for item {key!r}") from None
    return normalized


def fallback_field_name(remote: RemoteField) -> str:
    return f"RVO Perceel {remote.crop_field_id}"


def close_date(year: int) -> date:
    """End date given to a local field closed during the review of ``year``."""

    return date(year - 1, 12, 31)


def _add_remote(
    store: FieldStore,
    farm_id: str,
    remote: RemoteField,
    year: int,
    prefix: str,
) -> str:
    field_id = store.add_field(
        farm_id,
        remote.designator or fallback_field_name(remote),
        remote.crop_field_id,
        remote.geometry,
        remote.begin_date,
        ACQUIRING_METHOD_IMPORT,
        remote.end_date,
    )

    code = crop_code(remote.crop_type_code, prefix)
    if code is not None:
        dates = store.get_default_dates_of_cultivation(code, year)
        store.add_cultivation(code, field_id, dates.b_lu_start, dates.b_lu_end)
    return field_id


def _update_from_remote(
    store: FieldStore,
    local: LocalField,
    remote: RemoteField,
    local_cultivation: CultivationSummary | None,
    year: int,
    prefix: str,
) -> None:
    # Acquisition method is always ACQUIRING_METHOD_IMPORT; UseTitleCode is not mapped.
    store.update_field(
        local.b_id,
        remote.designator or local.b_name,
        remote.crop_field_id,
        remote.geometry,
        remote.begin_date,
        ACQUIRING_METHOD_IMPORT,
        remote.end_date,
    )

    code = crop_code(remote.crop_type_code, prefix)
    if local_cultivation is None or code is None or local_cultivation.b_lu_catalogue == code:
        return
    if local_cultivation.b_lu:
        store.remove_cultivation(local_cultivation.b_lu)
    dates = store.get_default_dates_of_cultivation(code, year)
    store.add_cultivation(code, local.b_id, dates.b_lu_start, dates.b_lu_end)


def _close_local(store: FieldStore, local: LocalField, year: int) -> None:
    start = parse_date(local.b_start)
    store.update_field(
        local.b_id,
        local.b_name,
        local.b_id_source,
        local.b_geometry,
        start,
        local.b_acquiring_method,
        close_date(year),
    )


def process_import(
    store: FieldStore,
    farm_id: str,
    items: Iterable[ReviewItem],
    choices: UserChoiceMap,
    year: int,
    on_field_added: FieldAddedCallback | None = None,
    *,
    crop_code_prefix: str = DEFAULT_CROP_CODE_PREFIX,
) -> ProcessResult:
    """Execute the chosen action for every review item.

    ``choices`` maps ``item_id(item)`` to a ``ReviewAction`` (or its value).
    Missing choices, IGNORE, NO_ACTION and actions whose required field is
    absent from the item are skipped, as is KEEP_LOCAL on anything but a
    CONFLICT. Store errors are not caught.
    """

    actions = _normalize_choices(choices)
    result = ProcessResult()

    for item in items:
        key = item_id(item)
        action = actions.get(key)
        local: LocalField | None = getattr(item, "local_field", None)
        remote: RemoteField | None = getattr(item, "rvo_field", None)

        if action is None or action in _SKIP_ACTIONS:
            result.skipped += 1
            continue

        if action is ReviewAction.ADD_REMOTE and remote is not None:
            new_id = _add_remote(store, farm_id, remote, year, crop_code_prefix)
            result.added_field_ids.append(new_id)
            if on_field_added is not None:
                on_field_added(new_id, remote)
        elif action is ReviewAction.UPDATE_FROM_REMOTE and local is not None and remote is not None:
            _update_from_remote(
                store,
                local,
                remote,
                getattr(item, "local_cultivation", None),
                year,
                crop_code_prefix,
            )
        elif action is ReviewAction.REMOVE_LOCAL and local is not None:
            store.remove_field(local.b_id)
        elif action is ReviewAction.KEEP_LOCAL and isinstance(item, ConflictItem):
            # KEEP_LOCAL on an orphan leaves the field untouched.
            store.remove_field(item.local_field.b_id)
        elif action is ReviewAction.CLOSE_LOCAL and local is not None:
            _close_local(store, local, year)
        else:
            LOGGER.debug("Skipping %s for %s: not applicable to %s", action.value, key, item.status.value)
            result.skipped += 1
            continue

        LOGGER.info("Applied %s to %s", action.value, key)
        result.applied += 1

    return result
