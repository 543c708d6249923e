"""Availability evaluation and room search over already-fetched data."""

from __future__ import annotations

from collections import defaultdict
from datetime import date
from typing import Iterable, Optional, Sequence

from backend.domain.constraints import parse_capacity_bucket
from backend.domain.models import (
    AvailabilityResult,
    Booking,
    Room,
    RoomId,
    RoomResult,
    SearchCriteria,
)
from backend.domain.time_slots import InvalidTimeSlotError, TimeSlot, overlaps
from backend.repository.data_repository import DataRepository
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)

BookingIndex = dict[tuple[RoomId, date], list[Booking]]


class SearchValidationError(Exception):
    """Raised when search criteria are malformed."""


def _bookings_for(
    room_id: RoomId,
    target_date: date,
    bookings: Iterable[Booking],
) -> list[Booking]:
    return [
        booking
        for booking in bookings
        if booking.room_id == room_id and booking.date == target_date
    ]


def evaluate(
    room_id: RoomId,
    target_date: date,
    requested_slot: TimeSlot,
    existing_bookings: Iterable[Booking],
) -> AvailabilityResult:
    """Decide whether ``requested_slot`` is free for a room on a date.

    ``existing_bookings`` may contain other rooms or dates; they are ignored.
    The first overlapping booking in caller order is reported as the conflict.
    """
    for booking in _bookings_for(room_id, target_date, existing_bookings):
        if overlaps(requested_slot, booking.time_slot):
            return AvailabilityResult(available=False, conflict=booking)
    return AvailabilityResult(available=True, conflict=None)


def find_all_conflicts(
    room_id: RoomId,
    target_date: date,
    requested_slot: TimeSlot,
    existing_bookings: Iterable[Booking],
) -> list[Booking]:
    """Every booking that overlaps ``requested_slot``, in caller order."""
    return [
        booking
        for booking in _bookings_for(room_id, target_date, existing_bookings)
        if overlaps(requested_slot, booking.time_slot)
    ]


def index_bookings(bookings: Iterable[Booking]) -> BookingIndex:
    index: BookingIndex = defaultdict(list)
    for booking in bookings:
        index[(booking.room_id, booking.date)].append(booking)
    return index


def filter_rooms(criteria: SearchCriteria, rooms: Sequence[Room]) -> list[Room]:
    """Static filter stage: building, room type and capacity bucket."""
    capacity_range = None
    if criteria.capacity:
        try:
            capacity_range = parse_capacity_bucket(criteria.capacity)
        except ValueError as exc:
            raise SearchValidationError(str(exc)) from exc

    filtered: list[Room] = []
    for room in rooms:
        if criteria.building and room.building != criteria.building:
            continue
        if criteria.room_type and room.room_type != criteria.room_type:
            continue
        if capacity_range is not None and not capacity_range.contains(room.capacity):
            continue
        filtered.append(room)
    return filtered


def search_rooms(
    criteria: SearchCriteria,
    rooms: Sequence[Room],
    bookings: Iterable[Booking],
) -> list[RoomResult]:
    """Filter the catalog and annotate each room with availability.

    Without both a start and an end time the search runs in browse mode and
    every filtered room is returned unchecked.
    """
    candidates = filter_rooms(criteria, rooms)

    try:
        requested_slot = criteria.requested_slot()
    except InvalidTimeSlotError as exc:
        raise SearchValidationError(str(exc)) from exc

    if requested_slot is None:
        return [
            RoomResult(room=room, is_available=True, conflict=None, availability_checked=False)
            for room in candidates
        ]

    index = index_bookings(bookings)
    results: list[RoomResult] = []
    for room in candidates:
        outcome = evaluate(
            room.room_id,
            criteria.date,
            requested_slot,
            index.get((room.room_id, criteria.date), []),
        )
        results.append(
            RoomResult(
                room=room,
                is_available=outcome.available,
                conflict=outcome.conflict,
            )
        )
    return results


class RoomSearchService:
    """Loads rooms and the day's bookings, then runs the pure search."""

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)

    def search(self, criteria: SearchCriteria) -> list[RoomResult]:
        rooms = self._repository.list_rooms()
        bookings = self._repository.list_bookings(target_date=criteria.date)
        results = search_rooms(criteria, rooms, bookings)
        logger.info(
            "Room search completed | date=%s | slot=%s-%s | candidates=%s | available=%s",
            criteria.date.isoformat(),
            criteria.start_time,
            criteria.end_time,
            len(results),
            sum(1 for result in results if result.is_available),
        )
        return results
