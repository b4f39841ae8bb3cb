from __future__ import annotations

from datetime import date, datetime, timezone

from builders import PLANAR, local_field, remote_field, square
from parcel_reconcile.diff import cultivation_differs, detect_diffs
from parcel_reconcile.types import CultivationSummary, FieldDiff


def test_identical_pair_has_no_diffs() -> None:
    assert detect_diffs(local_field(), remote_field(), PLANAR) == []


def test_name_diff() -> None:
    diffs = detect_diffs(local_field(b_name="Old"), remote_field(designator="New"), PLANAR)
    assert diffs == [FieldDiff.NAME]


def test_empty_remote_designator_is_not_a_name_diff() -> None:
    assert detect_diffs(local_field(b_name="Achter het huis"), remote_field(designator=""), PLANAR) == []


def test_geometry_diff_beyond_one_percent() -> None:
    diffs = detect_diffs(local_field(), remote_field(geometry=square(0.5, 0)), PLANAR)
    assert diffs == [FieldDiff.GEOMETRY]


def test_geometry_noise_is_tolerated() -> None:
    diffs = detect_diffs(local_field(), remote_field(geometry=square(0.01, 0)), PLANAR)
    assert diffs == []


def test_start_date_compares_calendar_dates_only() -> None:
    local = local_field(b_start=datetime(2024, 1, 1, 13, 45))
    assert detect_diffs(local, remote_field(), PLANAR) == []

    diffs = detect_diffs(local_field(b_start=date(2023, 1, 1)), remote_field(), PLANAR)
    assert diffs == [FieldDiff.START]


def test_start_date_timestamps_normalised_to_utc() -> None:
    local = local_field(b_start=datetime(2023, 12, 31, 23, 0, tzinfo=timezone.utc))
    assert detect_diffs(local, remote_field(begin_date="2024-01-01T00:00:00+01:00"), PLANAR) == []


def test_end_date_diff() -> None:
    diffs = detect_diffs(local_field(b_end=None), remote_field(end_date=date(2025, 12, 31)), PLANAR)
    assert diffs == [FieldDiff.END]

    diffs = detect_diffs(
        local_field(b_end=date(2025, 6, 1)), remote_field(end_date=date(2025, 12, 31)), PLANAR
    )
    assert diffs == [FieldDiff.END]


def test_both_end_dates_absent_is_equal() -> None:
    assert FieldDiff.END not in detect_diffs(local_field(b_end=None), remote_field(end_date=None), PLANAR)


def test_several_diffs_are_independent() -> None:
    diffs = detect_diffs(
        local_field(b_name="Old", b_start=date(2023, 1, 1)),
        remote_field(designator="New", end_date=date(2025, 12, 31)),
        PLANAR,
    )
    assert diffs == [FieldDiff.NAME, FieldDiff.START, FieldDiff.END]


def test_cultivation_differs() -> None:
    local = CultivationSummary(b_lu_catalogue="nl_202", b_lu="c-1")
    assert cultivation_differs(local, "nl_101")
    assert not cultivation_differs(local, "nl_202")
    assert not cultivation_differs(None, "nl_101")
    assert not cultivation_differs(local, None)
