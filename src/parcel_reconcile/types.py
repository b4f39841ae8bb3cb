from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Mapping, Union

from shapely.geometry import MultiPolygon, Polygon

FieldGeometry = Union[Polygon, MultiPolygon]


class ReviewStatus(str, Enum):
    """Classification of one local/remote comparison."""

    MATCH = "MATCH"
    CONFLICT = "CONFLICT"
    NEW_REMOTE = "NEW_REMOTE"
    NEW_LOCAL = "NEW_LOCAL"
    EXPIRED_LOCAL = "EXPIRED_LOCAL"


class FieldDiff(str, Enum):
    """Field attributes that can differ between a local and a remote record."""

    NAME = "b_name"
    GEOMETRY = "b_geometry"
    START = "b_start"
    END = "b_end"
    CULTIVATION = "b_lu_catalogue"


class ReviewAction(str, Enum):
    """Operator decision for a single review item."""

    ADD_REMOTE = "ADD_REMOTE"
    UPDATE_FROM_REMOTE = "UPDATE_FROM_REMOTE"
    KEEP_LOCAL = "KEEP_LOCAL"
    REMOVE_LOCAL = "REMOVE_LOCAL"
    CLOSE_LOCAL = "CLOSE_LOCAL"
    IGNORE = "IGNORE"
    NO_ACTION = "NO_ACTION"


UserChoiceMap = Mapping[str, Union[ReviewAction, str]]


def parse_date(value: Any) -> date | None:
    """Coerce a date, datetime or ISO-8601 string to a calendar date.

    Timestamps carrying an offset are converted to UTC first, so
    ``2024-01-01T00:30:00+01:00`` becomes ``2023-12-31``.
    """

    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        if len(text) == 10:
            return date.fromisoformat(text)
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        return parse_date(datetime.fromisoformat(text))
    raise ValueError(f"Unsupported date value: {value!r}")


@dataclass(frozen=True)
class Cultivation:
    b_lu: str
    b_lu_catalogue: str
    b_lu_start: date
    b_lu_name: str | None = None
    b_lu_end: date | None = None


@dataclass(frozen=True)
class LocalField:
    """A field parcel as held by the farm, with its cultivation history."""

    b_id: str
    b_name: str
    b_geometry: FieldGeometry
    b_start: date
    b_id_source: str | None = None
    b_end: date | None = None
    b_acquiring_method: str = "unknown"
    cultivations: tuple[Cultivation, ...] = ()


@dataclass(frozen=True)
class RemoteField:
    """A crop field as registered in the external registry snapshot.

    Attribute names are the snake_case form of the registry's GeoJSON
    properties (``CropFieldID`` -> ``crop_field_id``); the untouched property
    bag is kept in ``properties``.
    """

    crop_field_id: str
    crop_field_version: str
    designator: str
    begin_date: date
    geometry: FieldGeometry
    end_date: date | None = None
    crop_type_code: str | None = None
    use_title_code: str | None = None
    country: str | None = None
    properties: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class CultivationCatalogueEntry:
    b_lu_catalogue: str
    b_lu_name: str
    b_lu_start_default: str | None = None  # MM-DD
    b_date_harvest_default: str | None = None  # MM-DD
    b_lu_harvestable: str = "once"


@dataclass(frozen=True)
class CultivationSummary:
    """Display summary of a resolved cultivation."""

    b_lu_catalogue: str
    b_lu_name: str | None = None
    b_lu: str | None = None


@dataclass(frozen=True)
class CultivationDates:
    b_lu_start: date
    b_lu_end: date | None


@dataclass(frozen=True)
class MatchItem:
    local_field: LocalField
    rvo_field: RemoteField
    local_cultivation: CultivationSummary | None = None
    rvo_cultivation: CultivationSummary | None = None

    status = ReviewStatus.MATCH

    @property
    def diffs(self) -> tuple[FieldDiff, ...]:
        return ()


@dataclass(frozen=True)
class ConflictItem:
    local_field: LocalField
    rvo_field: RemoteField
    diffs: tuple[FieldDiff, ...]
    local_cultivation: CultivationSummary | None = None
    rvo_cultivation: CultivationSummary | None = None

    status = ReviewStatus.CONFLICT

    def __post_init__(self) -> None:
        if not self.diffs:
            raise ValueError("A conflict needs at least one differing attribute")


@dataclass(frozen=True)
class NewRemoteItem:
    rvo_field: RemoteField
    rvo_cultivation: CultivationSummary | None = None

    status = ReviewStatus.NEW_REMOTE

    @property
    def diffs(self) -> tuple[FieldDiff, ...]:
        return ()


@dataclass(frozen=True)
class NewLocalItem:
    local_field: LocalField
    local_cultivation: CultivationSummary | None = None

    status = ReviewStatus.NEW_LOCAL

    @property
    def diffs(self) -> tuple[FieldDiff, ...]:
        return ()


@dataclass(frozen=True)
class ExpiredLocalItem:
    local_field: LocalField
    local_cultivation: CultivationSummary | None = None

    status = ReviewStatus.EXPIRED_LOCAL

    @property
    def diffs(self) -> tuple[FieldDiff, ...]:
        return ()


ReviewItem = Union[MatchItem, ConflictItem, NewRemoteItem, NewLocalItem, ExpiredLocalItem]


def item_id(item: object) -> str:
    """Stable identifier used to key operator choices for ``item``."""

    local = getattr(item, "local_field", None)
    if local is not None and local.b_id:
        return local.b_id
    remote = getattr(item, "rvo_field", None)
    if remote is not None and remote.crop_field_id:
        return remote.crop_field_id
    return "unknown"
