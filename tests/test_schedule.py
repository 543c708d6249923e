from __future__ import annotations

from datetime import date

import pytest

from backend.domain.models import Booking, BookingId, Room, RoomId
from backend.domain.time_slots import parse_clock_time, slot_from_clock_times
from backend.services.schedule_service import (
    build_day_grid,
    build_month_summary,
    build_week_grid,
    month_bounds,
    week_days,
)


DAY = date(2025, 9, 3)
ROOMS = [
    Room(RoomId("r2"), "Room B", "Library", 12, "Conference Room"),
    Room(RoomId("r1"), "Room A", "Library", 10, "Conference Room"),
]


def _booking(booking_id: str, room_id: str, start: str, end: str, on: date = DAY) -> Booking:
    return Booking(
        booking_id=BookingId(booking_id),
        room_id=RoomId(room_id),
        date=on,
        time_slot=slot_from_clock_times(start, end),
        organization="Film Society",
        status="Booked",
        source="local",
    )


def _grid(bookings):
    return build_day_grid(
        DAY,
        ROOMS,
        bookings,
        day_start=parse_clock_time("08:00"),
        day_end=parse_clock_time("20:00"),
    )


def test_empty_day_uses_default_window() -> None:
    grid = _grid([])

    assert grid.room_names == ["Room A", "Room B"]
    assert grid.time_headers[0] == "08:00 AM"
    assert grid.time_headers[-1] == "08:00 PM"
    assert len(grid.time_headers) == 13
    assert grid.bookings_by_room == {"Room A": [], "Room B": []}


def test_window_widens_to_cover_bookings() -> None:
    grid = _grid([_booking("early", "r1", "06:45", "07:30"), _booking("late", "r2", "21:10", "22:00")])

    assert grid.time_headers[0] == "06:00 AM"
    assert grid.time_headers[-1] == "10:00 PM"


def test_late_booking_closes_window_at_midnight() -> None:
    grid = _grid([_booking("late", "r1", "22:00", "23:30")])

    assert grid.time_headers[-2:] == ["11:00 PM", "12:00 AM"]


def test_booking_ending_at_midnight_keeps_closing_header() -> None:
    grid = _grid([_booking("late", "r1", "23:00", "24:00")])

    assert grid.time_headers[-1] == "12:00 AM"
    assert grid.bookings_by_room["Room A"][0].time_slot.end.to_clock() == "24:00"


def test_only_target_date_bookings_are_placed() -> None:
    grid = _grid(
        [
            _booking("b", "r1", "11:00", "12:00"),
            _booking("a", "r1", "09:00", "10:00"),
            _booking("tomorrow", "r1", "09:00", "10:00", on=date(2025, 9, 4)),
        ]
    )

    assert [b.booking_id for b in grid.bookings_by_room["Room A"]] == ["a", "b"]


def test_invalid_step_raises() -> None:
    with pytest.raises(ValueError):
        build_day_grid(
            DAY,
            ROOMS,
            [],
            day_start=parse_clock_time("08:00"),
            day_end=parse_clock_time("20:00"),
            step_minutes=0,
        )


def test_week_days_are_monday_to_friday() -> None:
    assert week_days(DAY) == [date(2025, 9, d) for d in range(1, 6)]
    assert week_days(date(2025, 9, 7))[0] == date(2025, 9, 1)


def _week(bookings, room: Room = ROOMS[1]):
    return build_week_grid(
        DAY,
        room,
        bookings,
        day_start=parse_clock_time("08:00"),
        day_end=parse_clock_time("20:00"),
    )


def test_week_grid_has_hourly_rows_from_eight_to_eight() -> None:
    grid = _week([])

    assert grid.room.room_id == "r1"
    assert len(grid.days) == 5
    assert [row.time_header for row in grid.rows][0] == "08:00 AM"
    assert grid.rows[-1].time_header == "08:00 PM"
    assert len(grid.rows) == 13
    assert all(cell is None for row in grid.rows for cell in row.cells)


def test_week_grid_places_booking_in_each_covered_slot() -> None:
    monday_talk = _booking("talk", "r1", "09:00", "11:00", on=date(2025, 9, 1))
    friday_short = _booking("short", "r1", "13:30", "14:15", on=date(2025, 9, 5))
    other_room = _booking("other", "r2", "09:00", "10:00", on=date(2025, 9, 1))
    saturday = _booking("weekend", "r1", "09:00", "10:00", on=date(2025, 9, 6))

    grid = _week([monday_talk, friday_short, other_room, saturday])
    by_header = {row.time_header: row.cells for row in grid.rows}

    assert by_header["09:00 AM"][0] == monday_talk
    assert by_header["10:00 AM"][0] == monday_talk
    assert by_header["11:00 AM"][0] is None
    assert by_header["02:00 PM"][4] == friday_short
    assert by_header["01:00 PM"][4] is None
    assert all(cell is None for cells in by_header.values() for cell in cells[1:4])


def test_week_grid_prefers_earliest_booking_when_slots_clash() -> None:
    later = _booking("later", "r1", "09:30", "11:00", on=date(2025, 9, 2))
    earlier = _booking("earlier", "r1", "09:00", "10:30", on=date(2025, 9, 2))

    grid = _week([later, earlier])
    by_header = {row.time_header: row.cells for row in grid.rows}

    assert by_header["10:00 AM"][1] == earlier


def test_month_bounds_cover_whole_calendar_weeks() -> None:
    assert month_bounds(DAY) == (date(2025, 8, 31), date(2025, 10, 4))
    assert month_bounds(date(2025, 6, 15)) == (date(2025, 6, 1), date(2025, 7, 5))
    assert month_bounds(date(2025, 5, 20)) == (date(2025, 4, 27), date(2025, 5, 31))


def test_month_summary_counts_per_day() -> None:
    bookings = [
        _booking("a", "r1", "09:00", "10:30", on=date(2025, 9, 1)),
        _booking("b", "r2", "09:00", "10:00", on=date(2025, 9, 1)),
        _booking("c", "r1", "13:00", "13:45", on=date(2025, 9, 30)),
        _booking("spill", "r1", "13:00", "14:00", on=date(2025, 10, 2)),
        _booking("outside", "r1", "13:00", "14:00", on=date(2025, 10, 6)),
    ]

    summary = build_month_summary(DAY, bookings)
    by_date = {day.date: day for day in summary}

    assert len(summary) == 35
    assert summary[0].date == date(2025, 8, 31) and not summary[0].in_month
    assert (by_date[date(2025, 9, 1)].booking_count, by_date[date(2025, 9, 1)].booked_minutes) == (2, 150)
    assert by_date[date(2025, 9, 30)].booking_count == 1
    assert by_date[date(2025, 10, 2)].booking_count == 1
    assert not by_date[date(2025, 10, 2)].in_month
    assert sum(day.booking_count for day in summary) == 4
