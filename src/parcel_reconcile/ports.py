"""Ports for the persistence collaborator the action processor writes through."""

from __future__ import annotations

from datetime import date
from typing import Protocol, Sequence, runtime_checkable

from .types import CultivationCatalogueEntry, CultivationDates, FieldGeometry


@runtime_checkable
class FieldStore(Protocol):
    """Persistence contract for a farm's fields and cultivations."""

    def add_field(
        self,
        farm_id: str,
        name: str,
        source_id: str | None,
        geometry: FieldGeometry,
        start: date,
        acquiring_method: str,
        end: date | None = None,
    ) -> str: ...

    def update_field(
        self,
        field_id: str,
        name: str,
        source_id: str | None,
        geometry: FieldGeometry,
        start: date,
        acquiring_method: str,
        end: date | None = None,
    ) -> None: ...

    def remove_field(self, field_id: str) -> None: ...

    def add_cultivation(
        self,
        crop_code: str,
        field_id: str,
        start: date,
        end: date | None,
    ) -> str: ...

    def remove_cultivation(self, cultivation_id: str) -> None: ...

    def get_default_dates_of_cultivation(self, crop_code: str, year: int) -> CultivationDates: ...

    def get_cultivation_catalogue(self) -> Sequence[CultivationCatalogueEntry]: ...
