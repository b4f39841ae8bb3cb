"""In-memory field store, the reference adapter for ``ports.FieldStore``.

It backs the CLI (loaded from and written back to a farm JSON document) and
the test suite. ``transaction()`` gives callers an all-or-nothing scope around
a batch of writes.
"""

from __future__ import annotations

import copy
import logging
import uuid
from contextlib import contextmanager
from dataclasses import replace
from datetime import date
from typing import Any, Callable, Iterable, Iterator, Mapping

from shapely.geometry import mapping

from .cultivation import default_cultivation_dates
from .report import json_safe
from .inputs import farm_from_document
from .types import (
    Cultivation,
    CultivationCatalogueEntry,
    CultivationDates,
    FieldGeometry,
    LocalField,
    parse_date,
)

LOGGER = logging.getLogger(__name__)


class UnknownFieldError(KeyError):
    pass


class UnknownCultivationError(KeyError):
    pass


class UnknownCatalogueEntryError(KeyError):
    pass


def _new_id() -> str:
    return uuid.uuid4().hex


class InMemoryFieldStore:
    def __init__(
        self,
        farm_id: str,
        fields: Iterable[LocalField] = (),
        catalogue: Iterable[CultivationCatalogueEntry] = (),
        *,
        id_factory: Callable[[], str] = _new_id,
    ) -> None:
        self.farm_id = farm_id
        self._fields: dict[str, LocalField] = {f.b_id: f for f in fields}
        self._catalogue: dict[str, CultivationCatalogueEntry] = {
            entry.b_lu_catalogue: entry for entry in catalogue
        }
        self._id_factory = id_factory

    @property
    def fields(self) -> list[LocalField]:
        return list(self._fields.values())

    def get_field(self, field_id: str) -> LocalField:
        try:
            return self._fields[field_id]
        except KeyError:
            raise UnknownFieldError(field_id) from None

    # FieldStore

    def add_field(
        self,
        farm_id: str,
        name: str,
        source_id: str | None,
        geometry: FieldGeometry,
        start: date,
        acquiring_method: str,
        end: date | None = None,
    ) -> str:
        if farm_id != self.farm_id:
            raise KeyError(f"Unknown farm: {farm_id}")
        field_id = self._id_factory()
        self._fields[field_id] = LocalField(
            b_id=field_id,
            b_name=name,
            b_geometry=geometry,
            b_start=start,
            b_id_source=source_id,
            b_end=end,
            b_acquiring_method=acquiring_method,
        )
        LOGGER.debug("added field %s (%s)", field_id, name)
        return field_id

    def update_field(
        self,
        field_id: str,
        name: str,
        source_id: str | None,
        geometry: FieldGeometry,
        start: date,
        acquiring_method: str,
        end: date | None = None,
    ) -> None:
        current = self.get_field(field_id)
        self._fields[field_id] = replace(
            current,
            b_name=name,
            b_id_source=source_id,
            b_geometry=geometry,
            b_start=start,
            b_acquiring_method=acquiring_method,
            b_end=end,
        )

    def remove_field(self, field_id: str) -> None:
        self.get_field(field_id)
        del self._fields[field_id]

    def add_cultivation(
        self,
        crop_code: str,
        field_id: str,
        start: date,
        end: date | None,
    ) -> str:
        current = self.get_field(field_id)
        entry = self._catalogue.get(crop_code)
        cultivation = Cultivation(
            b_lu=self._id_factory(),
            b_lu_catalogue=crop_code,
            b_lu_start=start,
            b_lu_name=entry.b_lu_name if entry is not None else None,
            b_lu_end=end,
        )
        self._fields[field_id] = replace(
            current, cultivations=(*current.cultivations, cultivation)
        )
        return cultivation.b_lu

    def remove_cultivation(self, cultivation_id: str) -> None:
        for field_id, current in self._fields.items():
            kept = tuple(c for c in current.cultivations if c.b_lu != cultivation_id)
            if len(kept) != len(current.cultivations):
                self._fields[field_id] = replace(current, cultivations=kept)
                return
        raise UnknownCultivationError(cultivation_id)

    def get_default_dates_of_cultivation(self, crop_code: str, year: int) -> CultivationDates:
        entry = self._catalogue.get(crop_code)
        if entry is None:
            raise UnknownCatalogueEntryError(f"Cultivation not found in catalogue: {crop_code}")
        return default_cultivation_dates(entry, year)

    def get_cultivation_catalogue(self) -> list[CultivationCatalogueEntry]:
        return list(self._catalogue.values())

    @contextmanager
    def transaction(self) -> Iterator["InMemoryFieldStore"]:
        """Restore the state from before the block if the block raises."""

        snapshot = copy.copy(self._fields)
        try:
            yield self
        except BaseException:
            self._fields = snapshot
            LOGGER.warning("Rolled back field store for farm %s", self.farm_id)
            raise

    # Documents

    def to_document(self) -> dict[str, Any]:
        return {
            "farm_id": self.farm_id,
            "fields": [_field_to_json(f) for f in self._fields.values()],
            "catalogue": [_entry_to_json(e) for e in self._catalogue.values()],
        }

    @classmethod
    def from_document(cls, document: Mapping[str, Any]) -> "InMemoryFieldStore":
        farm_id, fields, catalogue = farm_from_document(document)
        return cls(farm_id, fields, catalogue)


def _iso(value: Any) -> str | None:
    day = parse_date(value)
    return day.isoformat() if day is not None else None


def _field_to_json(f: LocalField) -> dict[str, Any]:
    return {
        "b_id": f.b_id,
        "b_id_source": f.b_id_source,
        "b_name": f.b_name,
        "b_geometry": json_safe(mapping(f.b_geometry)),
        "b_start": _iso(f.b_start),
        "b_end": _iso(f.b_end),
        "b_acquiring_method": f.b_acquiring_method,
        "cultivations": [
            {
                "b_lu": c.b_lu,
                "b_lu_catalogue": c.b_lu_catalogue,
                "b_lu_name": c.b_lu_name,
                "b_lu_start": _iso(c.b_lu_start),
                "b_lu_end": _iso(c.b_lu_end),
            }
            for c in f.cultivations
        ],
    }


def _entry_to_json(e: CultivationCatalogueEntry) -> dict[str, Any]:
    return {
        "b_lu_catalogue": e.b_lu_catalogue,
        "b_lu_name": e.b_lu_name,
        "b_lu_start_default": e.b_lu_start_default,
        "b_date_harvest_default": e.b_date_harvest_default,
        "b_lu_harvestable": e.b_lu_harvestable,
    }
