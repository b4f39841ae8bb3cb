from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Any, Mapping

import jsonschema
from jsonschema import Draft202012Validator

from .geometry import to_field_geometry
from .types import (
    Cultivation,
    CultivationCatalogueEntry,
    LocalField,
    ReviewAction,
    parse_date,
)

SCHEMA_DIR = Path(__file__).resolve().parent / "schemas"

FARM_SCHEMA = "farm_v1.schema.json"
RVO_FIELDS_SCHEMA = "rvo_fields_v1.schema.json"
CHOICES_SCHEMA = "choices_v1.schema.json"


def read_document(path: Path) -> Any:
    with path.open("r", encoding="utf-8") as f:
        return json.load(f)


@lru_cache(maxsize=None)
def load_schema(name: str) -> dict[str, Any]:
    return json.loads((SCHEMA_DIR / name).read_text(encoding="utf-8"))


def validate_document(document: Any, schema_name: str) -> None:
    """Validate ``document`` against a bundled JSON schema.

    Raises:
      jsonschema.exceptions.ValidationError if invalid.
    """

    validator = Draft202012Validator(
        load_schema(schema_name), format_checker=jsonschema.FormatChecker()
    )
    validator.validate(document)


def _cultivation_from_json(obj: Mapping[str, Any]) -> Cultivation:
    return Cultivation(
        b_lu=str(obj["b_lu"]),
        b_lu_catalogue=str(obj["b_lu_catalogue"]),
        b_lu_start=parse_date(obj["b_lu_start"]),
        b_lu_name=obj.get("b_lu_name"),
        b_lu_end=parse_date(obj.get("b_lu_end")),
    )


def local_field_from_json(obj: Mapping[str, Any]) -> LocalField:
    return LocalField(
        b_id=str(obj["b_id"]),
        b_name=str(obj["b_name"]),
        b_geometry=to_field_geometry(obj["b_geometry"]),
        b_start=parse_date(obj["b_start"]),
        b_id_source=obj.get("b_id_source") or None,
        b_end=parse_date(obj.get("b_end")),
        b_acquiring_method=obj.get("b_acquiring_method") or "unknown",
        cultivations=tuple(_cultivation_from_json(c) for c in obj.get("cultivations") or []),
    )


def catalogue_entry_from_json(obj: Mapping[str, Any]) -> CultivationCatalogueEntry:
    return CultivationCatalogueEntry(
        b_lu_catalogue=str(obj["b_lu_catalogue"]),
        b_lu_name=str(obj["b_lu_name"]),
        b_lu_start_default=obj.get("b_lu_start_default"),
        b_date_harvest_default=obj.get("b_date_harvest_default"),
        b_lu_harvestable=obj.get("b_lu_harvestable") or "once",
    )


def farm_from_document(
    document: Mapping[str, Any],
) -> tuple[str, list[LocalField], list[CultivationCatalogueEntry]]:
    validate_document(document, FARM_SCHEMA)
    fields = [local_field_from_json(f) for f in document["fields"]]
    catalogue = [catalogue_entry_from_json(e) for e in document.get("catalogue") or []]
    return str(document["farm_id"]), fields, catalogue


def load_farm_document(path: Path) -> tuple[str, list[LocalField], list[CultivationCatalogueEntry]]:
    return farm_from_document(read_document(path))


def load_choices(path: Path) -> dict[str, ReviewAction]:
    document = read_document(path)
    validate_document(document, CHOICES_SCHEMA)
    return {str(k): ReviewAction(v) for k, v in document.items()}
