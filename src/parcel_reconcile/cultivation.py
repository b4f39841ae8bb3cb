from __future__ import annotations

from datetime import date
from typing import Iterable, Mapping, Union

from .types import Cultivation, CultivationCatalogueEntry, CultivationDates, CultivationSummary

DEFAULT_CROP_CODE_PREFIX = "nl"

# Regulatory mid-season date on which the registered crop is determined.
REFERENCE_MONTH = 5
REFERENCE_DAY = 15

DEFAULT_START_MM_DD = "03-15"
DEFAULT_HARVEST_MM_DD = "09-15"

Catalogue = Union[Iterable[CultivationCatalogueEntry], Mapping[str, str]]


def reference_date(year: int) -> date:
    return date(year, REFERENCE_MONTH, REFERENCE_DAY)


def find_active_cultivation(
    cultivations: Iterable[Cultivation],
    on: date,
) -> Cultivation | None:
    """Return the first cultivation whose interval contains ``on``.

    Intervals are closed on both sides; a missing end is open-ended.
    """

    for cultivation in cultivations:
        if cultivation.b_lu_start > on:
            continue
        if cultivation.b_lu_end is not None and cultivation.b_lu_end < on:
            continue
        return cultivation
    return None


def crop_code(code: object, prefix: str = DEFAULT_CROP_CODE_PREFIX) -> str | None:
    """Build a catalogue code such as ``nl_265`` from a registry crop type code."""

    if code is None:
        return None
    text = str(code).strip()
    if not text:
        return None
    return f"{prefix}_{text}"


def catalogue_lookup(catalogue: Catalogue | None) -> dict[str, str]:
    if catalogue is None:
        return {}
    if isinstance(catalogue, Mapping):
        return {str(k): str(v) for k, v in catalogue.items()}
    return {entry.b_lu_catalogue: entry.b_lu_name for entry in catalogue}


def summarize(cultivation: Cultivation | None) -> CultivationSummary | None:
    if cultivation is None:
        return None
    return CultivationSummary(
        b_lu_catalogue=cultivation.b_lu_catalogue,
        b_lu_name=cultivation.b_lu_name,
        b_lu=cultivation.b_lu,
    )


def remote_summary(code: str | None, names: Mapping[str, str]) -> CultivationSummary | None:
    """Summary for a registry crop code; the code doubles as name when uncatalogued.

    A registry field without a crop type code has no cultivation to show, so the
    result is ``None`` rather than a summary with an empty code.
    """

    if code is None:
        return None
    return CultivationSummary(b_lu_catalogue=code, b_lu_name=names.get(code, code))


def _on_year(year: int, mm_dd: str) -> date:
    month, day = (int(part) for part in mm_dd.split("-"))
    return date(year, month, day)


def default_cultivation_dates(entry: CultivationCatalogueEntry, year: int) -> CultivationDates:
    """Default sowing and harvest dates of a catalogue crop for ``year``.

    A harvest date on or before the sowing date means the crop was sown the
    previous year. Crops not harvested exactly once have no default end.
    """

    if year < 1970 or year >= 2100:
        raise ValueError(f"Invalid year: {year}")

    start_mm_dd = entry.b_lu_start_default or DEFAULT_START_MM_DD
    end_mm_dd = entry.b_date_harvest_default or DEFAULT_HARVEST_MM_DD

    start = _on_year(year, start_mm_dd)
    end = _on_year(year, end_mm_dd)
    if end <= start:
        start = _on_year(year - 1, start_mm_dd)

    if entry.b_lu_harvestable != "once":
        return CultivationDates(b_lu_start=start, b_lu_end=None)
    return CultivationDates(b_lu_start=start, b_lu_end=end)
