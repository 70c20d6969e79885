from __future__ import annotations

from datetime import datetime

import pytest

from fleetdesk.services.allocation import (
    AllocationConfirmationRequired,
    AllocationEditor,
    AllocationError,
    AllocationRow,
    NoValidAllocationError,
    OverAllocationError,
    available_hours,
    compute_net_hours,
)


def test_net_hours_subtracts_breaks():
    clock_in = datetime(2026, 3, 2, 8, 0)
    clock_out = datetime(2026, 3, 2, 16, 30)

    assert compute_net_hours(clock_in, clock_out, 30) == 8.0


def test_net_hours_never_negative():
    clock_in = datetime(2026, 3, 2, 8, 0)
    clock_out = datetime(2026, 3, 2, 8, 20)

    assert compute_net_hours(clock_in, clock_out, 45) == 0.0


@pytest.mark.parametrize(
    "net_hours, expected",
    [
        (8.5, 7.5),
        (8.0, 7.0),
        (7.9, 7.9),
        (0.0, 0.0),
    ],
)
def test_lunch_deduction(net_hours, expected):
    assert available_hours(net_hours) == expected


def test_add_row_prefills_remaining_hours():
    editor = AllocationEditor(7.0)

    first = editor.add_row("P-100")
    editor.update_row(0, "hours", 5)
    second = editor.add_row("P-200")

    assert first.hours == 5
    assert second.hours == 2.0
    assert editor.remaining_hours == 0.0


def test_add_row_never_prefills_negative_hours():
    editor = AllocationEditor(4.0, [{"project_id": "P-100", "hours": 6}])

    row = editor.add_row("P-200")

    assert row.hours == 0.0
    assert editor.remaining_hours == -2.0


def test_editing_hours_cascades_to_next_row_only():
    editor = AllocationEditor(
        8.0,
        [
            {"project_id": "P-1", "hours": 2},
            {"project_id": "P-2", "hours": 2},
            {"project_id": "P-3", "hours": 2},
            {"project_id": "P-4", "hours": 2},
        ],
    )

    editor.update_row(1, "hours", 3)

    assert [row.hours for row in editor.rows] == [2, 3, 3.0, 2]


def test_cascade_clamps_next_row_at_zero():
    editor = AllocationEditor(
        5.0,
        [
            {"project_id": "P-1", "hours": 1},
            {"project_id": "P-2", "hours": 4},
        ],
    )

    editor.update_row(0, "hours", 6)

    assert editor.rows[1].hours == 0.0


def test_editing_last_row_does_not_touch_others():
    editor = AllocationEditor(
        6.0,
        [
            {"project_id": "P-1", "hours": 3},
            {"project_id": "P-2", "hours": 3},
        ],
    )

    editor.update_row(1, "hours", 1)

    assert [row.hours for row in editor.rows] == [3, 1]


def test_over_allocation_reports_excess():
    editor = AllocationEditor(
        7.0,
        [
            {"project_id": "P1", "hours": 5},
            {"project_id": "P2", "hours": 3},
        ],
    )

    with pytest.raises(OverAllocationError) as exc_info:
        editor.validate(confirm=True)

    assert exc_info.value.excess == 1.0
    assert "1.00h too many" in str(exc_info.value)


def test_under_allocation_needs_confirmation():
    editor = AllocationEditor(7.0, [{"project_id": "P1", "hours": 5}])

    with pytest.raises(AllocationConfirmationRequired) as exc_info:
        editor.validate()

    assert exc_info.value.remaining == 2.0
    assert editor.validate(confirm=True) == [
        {"project_id": "P1", "hours": 5.0, "category": "interntid", "notes": None}
    ]


def test_gap_within_tolerance_saves_without_confirmation():
    editor = AllocationEditor(7.0, [{"project_id": "P1", "hours": 6.99}])

    rows = editor.validate()

    assert len(rows) == 1


def test_empty_rows_are_dropped():
    editor = AllocationEditor(
        4.0,
        [
            {"project_id": "P1", "hours": 4},
            {"project_id": "", "hours": 0},
            {"project_id": "P2", "hours": 0},
        ],
    )

    rows = editor.validate()

    assert [row["project_id"] for row in rows] == ["P1"]


def test_no_valid_rows_rejected():
    editor = AllocationEditor(4.0, [{"project_id": "", "hours": 4}])

    with pytest.raises(NoValidAllocationError):
        editor.validate(confirm=True)


def test_unknown_category_rejected():
    with pytest.raises(AllocationError):
        AllocationRow.from_dict({"project_id": "P1", "hours": 1, "category": "lunch"})


def test_negative_hours_rejected():
    editor = AllocationEditor(4.0, [{"project_id": "P1", "hours": 1}])

    with pytest.raises(AllocationError):
        editor.update_row(0, "hours", -1)


def test_remove_row_updates_remaining():
    editor = AllocationEditor(
        6.0,
        [
            {"project_id": "P1", "hours": 4},
            {"project_id": "P2", "hours": 2},
        ],
    )

    editor.remove_row(1)

    assert editor.allocated_hours == 4.0
    assert editor.remaining_hours == 2.0
