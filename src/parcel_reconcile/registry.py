"""Sources of registry crop-field snapshots.

The authenticated web-service client lives outside this package; here a
provider only has to hand over typed ``RemoteField`` records for a year.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Iterable, Mapping

from .geometry import to_field_geometry
from .inputs import RVO_FIELDS_SCHEMA, read_document, validate_document
from .types import RemoteField, parse_date

LOGGER = logging.getLogger(__name__)


def _code(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def remote_field_from_feature(feature: Mapping[str, Any]) -> RemoteField:
    props = dict(feature.get("properties") or {})
    return RemoteField(
        crop_field_id=str(props["CropFieldID"]),
        crop_field_version=str(props.get("CropFieldVersion", "")),
        designator=str(props.get("CropFieldDesignator") or ""),
        begin_date=parse_date(props["BeginDate"]),
        geometry=to_field_geometry(feature.get("geometry")),
        end_date=parse_date(props.get("EndDate")),
        crop_type_code=_code(props.get("CropTypeCode")),
        use_title_code=_code(props.get("UseTitleCode")),
        country=props.get("Country"),
        properties=props,
    )


def remote_fields_from_document(document: Any) -> list[RemoteField]:
    validate_document(document, RVO_FIELDS_SCHEMA)
    features: Iterable[Mapping[str, Any]]
    if isinstance(document, Mapping):
        features = document.get("features", [])
    else:
        features = document
    return [remote_field_from_feature(f) for f in features]


class RegistryProvider:
    def fetch_fields(self, *, year: int, farm_external_id: str) -> list[RemoteField]:
        raise NotImplementedError


class LocalFileRegistryProvider(RegistryProvider):
    """Reads a registry export saved as GeoJSON.

    The file holds a single snapshot, so ``year`` and ``farm_external_id`` only
    label the log line.
    """

    def __init__(self, path: Path) -> None:
        self._path = path

    def fetch_fields(self, *, year: int, farm_external_id: str) -> list[RemoteField]:
        fields = remote_fields_from_document(read_document(self._path))
        LOGGER.info(
            "Loaded %d registry fields for farm %s, %d from %s",
            len(fields),
            farm_external_id,
            year,
            self._path,
        )
        return fields
