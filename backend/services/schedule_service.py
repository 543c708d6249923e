"""Day, week and month projections of stored bookings."""

from __future__ import annotations

import calendar
from collections import defaultdict
from datetime import date, timedelta
from typing import Iterable, Optional, Sequence

from backend.domain.models import Booking, DayGrid, DaySummary, Room, WeekGrid, WeekGridRow
from backend.domain.time_slots import TimeOfDay, parse_clock_time
from backend.repository.data_repository import DataRepository
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)

WORKDAYS_PER_WEEK = 5


class UnknownRoomError(LookupError):
    """Raised when a room-specific view names a room that is not in the catalog."""


def _format_header(minutes: int) -> str:
    return TimeOfDay(minutes).to_12h()


def _slot_starts(first: int, last: int, step_minutes: int) -> list[int]:
    if step_minutes <= 0:
        raise ValueError("step_minutes must be > 0")
    return list(range(first, last + 1, step_minutes))


def build_day_grid(
    target_date: date,
    rooms: Sequence[Room],
    bookings: Iterable[Booking],
    day_start: TimeOfDay,
    day_end: TimeOfDay,
    step_minutes: int = 60,
) -> DayGrid:
    """Lay out one day of bookings per room with hourly column headers.

    The window defaults to ``day_start``-``day_end`` and widens to cover the
    earliest start (floored to the hour) and latest end (rounded up to the hour).
    A window that closes at midnight ends with a ``12:00 AM`` header.
    """
    day_bookings = sorted(
        (booking for booking in bookings if booking.date == target_date),
        key=lambda booking: (booking.time_slot.start, booking.time_slot.end),
    )

    earliest = day_start.minutes
    latest = day_end.minutes
    for booking in day_bookings:
        earliest = min(earliest, booking.time_slot.start.minutes)
        latest = max(latest, booking.time_slot.end.minutes)
    earliest -= earliest % 60
    if latest % 60:
        latest += 60 - latest % 60

    time_headers = [_format_header(m) for m in _slot_starts(earliest, latest, step_minutes)]

    name_by_id = {room.room_id: room.name for room in rooms}
    bookings_by_room: dict[str, list[Booking]] = defaultdict(list)
    for booking in day_bookings:
        bookings_by_room[name_by_id.get(booking.room_id, booking.room_id)].append(booking)

    room_names = sorted(set(name_by_id.values()) | set(bookings_by_room))
    return DayGrid(
        date=target_date,
        room_names=room_names,
        time_headers=time_headers,
        bookings_by_room={name: bookings_by_room.get(name, []) for name in room_names},
    )


def week_days(anchor_date: date) -> list[date]:
    """Monday to Friday of the week containing ``anchor_date``."""
    monday = anchor_date - timedelta(days=anchor_date.weekday())
    return [monday + timedelta(days=offset) for offset in range(WORKDAYS_PER_WEEK)]


def _booking_at(bookings: Sequence[Booking], minute: int) -> Optional[Booking]:
    for booking in bookings:
        if booking.time_slot.start.minutes <= minute < booking.time_slot.end.minutes:
            return booking
    return None


def build_week_grid(
    anchor_date: date,
    room: Room,
    bookings: Iterable[Booking],
    day_start: TimeOfDay,
    day_end: TimeOfDay,
    step_minutes: int = 60,
) -> WeekGrid:
    """Build a room's Monday-Friday grid of fixed slots from ``day_start`` to ``day_end``.

    A cell holds the first booking (by start time) whose slot covers the cell's
    start minute, or None when the room is free at that moment.
    """
    days = week_days(anchor_date)
    by_day: dict[date, list[Booking]] = defaultdict(list)
    for booking in bookings:
        if booking.room_id == room.room_id and booking.date in days:
            by_day[booking.date].append(booking)
    for day_bookings in by_day.values():
        day_bookings.sort(key=lambda booking: (booking.time_slot.start, booking.time_slot.end))

    rows = [
        WeekGridRow(
            time_header=_format_header(minute),
            cells=[_booking_at(by_day.get(day, []), minute) for day in days],
        )
        for minute in _slot_starts(day_start.minutes, day_end.minutes, step_minutes)
    ]
    return WeekGrid(room=room, days=days, rows=rows)


def month_bounds(anchor_date: date) -> tuple[date, date]:
    """First Sunday to last Saturday of the calendar weeks covering the month."""
    first = anchor_date.replace(day=1)
    last = first.replace(day=calendar.monthrange(first.year, first.month)[1])
    start = first - timedelta(days=(first.weekday() + 1) % 7)
    end = last + timedelta(days=(5 - last.weekday()) % 7)
    return start, end


def build_month_summary(anchor_date: date, bookings: Iterable[Booking]) -> list[DaySummary]:
    start, end = month_bounds(anchor_date)
    counts: dict[date, int] = defaultdict(int)
    minutes: dict[date, int] = defaultdict(int)
    for booking in bookings:
        if not start <= booking.date <= end:
            continue
        counts[booking.date] += 1
        minutes[booking.date] += booking.time_slot.duration_minutes

    summaries = []
    day = start
    while day <= end:
        summaries.append(
            DaySummary(
                date=day,
                in_month=(day.year, day.month) == (anchor_date.year, anchor_date.month),
                booking_count=counts[day],
                booked_minutes=minutes[day],
            )
        )
        day += timedelta(days=1)
    return summaries


class ScheduleService:
    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)

    def _window(self) -> tuple[TimeOfDay, TimeOfDay]:
        return (
            parse_clock_time(self._settings.schedule_day_start),
            parse_clock_time(self._settings.schedule_day_end),
        )

    def day_grid(self, target_date: date) -> DayGrid:
        day_start, day_end = self._window()
        return build_day_grid(
            target_date,
            self._repository.list_rooms(),
            self._repository.list_bookings(target_date=target_date),
            day_start=day_start,
            day_end=day_end,
            step_minutes=self._settings.schedule_step_minutes,
        )

    def week_grid(self, anchor_date: date, room_id: Optional[str] = None) -> WeekGrid:
        """Weekly grid for ``room_id``, or for the first catalog room when omitted."""
        if room_id is not None:
            room = self._repository.get_room(room_id)
        else:
            rooms = self._repository.list_rooms()
            room = rooms[0] if rooms else None
        if room is None:
            raise UnknownRoomError(f"Room {room_id} not found" if room_id else "No rooms in catalog")

        days = week_days(anchor_date)
        bookings = self._repository.list_bookings(
            room_id=room.room_id,
            start_date=days[0],
            end_date=days[-1],
        )
        logger.info(
            "Week grid built | room_id=%s | week_of=%s | bookings=%s",
            room.room_id,
            days[0].isoformat(),
            len(bookings),
        )
        day_start, day_end = self._window()
        return build_week_grid(
            anchor_date,
            room,
            bookings,
            day_start=day_start,
            day_end=day_end,
            step_minutes=self._settings.schedule_step_minutes,
        )

    def month_summary(self, anchor_date: date) -> list[DaySummary]:
        start, end = month_bounds(anchor_date)
        bookings = self._repository.list_bookings(start_date=start, end_date=end)
        return build_month_summary(anchor_date, bookings)
