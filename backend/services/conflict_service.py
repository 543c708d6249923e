"""Post-hoc double-booking detection and alternative room suggestions.

Bookings reach the store from more than one system without coordination, so
stored data can contain overlaps even though the local write path rejects them.
This module finds those overlaps and proposes a free room for each one.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import date
from typing import Iterable, Optional, Sequence

from backend.domain.models import (
    Booking,
    Conflict,
    ConflictClassification,
    ConflictReport,
    ConflictReportEntry,
    Room,
    RoomId,
)
from backend.domain.time_slots import TimeSlot, overlaps
from backend.repository.data_repository import DataRepository
from backend.services.availability_service import evaluate, index_bookings
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)


def classify(first: Booking, second: Booking) -> ConflictClassification:
    if first.source != second.source:
        return ConflictClassification.CROSS_SYSTEM
    return ConflictClassification.SAME_SYSTEM


def _group_by_room(bookings: Iterable[Booking]) -> dict[RoomId, list[Booking]]:
    grouped: dict[RoomId, list[Booking]] = defaultdict(list)
    for booking in bookings:
        grouped[booking.room_id].append(booking)
    return grouped


def detect_conflicts(bookings: Iterable[Booking]) -> list[Conflict]:
    """All-pairs scan per room; each overlapping same-date pair is reported once."""
    conflicts: list[Conflict] = []
    for room_id, room_bookings in _group_by_room(bookings).items():
        for i, first in enumerate(room_bookings):
            for second in room_bookings[i + 1:]:
                if first.date != second.date:
                    continue
                if overlaps(first.time_slot, second.time_slot):
                    conflicts.append(
                        Conflict(
                            room_id=room_id,
                            booking1=first,
                            booking2=second,
                            classification=classify(first, second),
                        )
                    )
    return conflicts


def detect_conflicts_sweep(bookings: Iterable[Booking]) -> list[Conflict]:
    """Sort-and-sweep variant of :func:`detect_conflicts` with identical output."""
    conflicts: list[tuple[int, int, int, Conflict]] = []
    for room_position, (room_id, room_bookings) in enumerate(_group_by_room(bookings).items()):
        by_date: dict[date, list[int]] = defaultdict(list)
        for position, booking in enumerate(room_bookings):
            by_date[booking.date].append(position)

        for positions in by_date.values():
            ordered = sorted(
                positions,
                key=lambda pos: (room_bookings[pos].time_slot.start, pos),
            )
            active: list[int] = []
            for current in ordered:
                current_slot = room_bookings[current].time_slot
                active = [
                    pos for pos in active
                    if room_bookings[pos].time_slot.end > current_slot.start
                ]
                for other in active:
                    first_pos, second_pos = sorted((other, current))
                    first = room_bookings[first_pos]
                    second = room_bookings[second_pos]
                    conflicts.append(
                        (
                            room_position,
                            first_pos,
                            second_pos,
                            Conflict(
                                room_id=room_id,
                                booking1=first,
                                booking2=second,
                                classification=classify(first, second),
                            ),
                        )
                    )
                active.append(current)

    conflicts.sort(key=lambda item: item[:3])
    return [item[3] for item in conflicts]


def suggest_alternative_room(
    conflict_slot: TimeSlot,
    target_date: date,
    exclude_room_id: RoomId,
    candidate_rooms: Sequence[Room],
    all_bookings: Iterable[Booking],
    building: Optional[str] = None,
) -> Optional[Room]:
    """First room in catalog order that is free for ``conflict_slot``.

    Returns None when no candidate is free.
    """
    index = index_bookings(all_bookings)
    for room in candidate_rooms:
        if room.room_id == exclude_room_id:
            continue
        if building is not None and room.building != building:
            continue
        outcome = evaluate(
            room.room_id,
            target_date,
            conflict_slot,
            index.get((room.room_id, target_date), []),
        )
        if outcome.available:
            return room
    return None


def build_conflict_report(
    target_date: date,
    rooms: Sequence[Room],
    bookings: Iterable[Booking],
    same_building: bool = True,
) -> ConflictReport:
    day_bookings = [booking for booking in bookings if booking.date == target_date]
    room_lookup = {room.room_id: room for room in rooms}

    entries: list[ConflictReportEntry] = []
    for conflict in detect_conflicts(day_bookings):
        room = room_lookup.get(conflict.room_id)
        building = room.building if same_building and room is not None else None
        suggestion = suggest_alternative_room(
            conflict.booking1.time_slot,
            target_date,
            conflict.room_id,
            rooms,
            day_bookings,
            building=building,
        )
        entries.append(
            ConflictReportEntry(conflict=conflict, room=room, suggested_room=suggestion)
        )
    return ConflictReport(date=target_date, entries=entries)


class ConflictReportService:
    """Builds conflict reports from the stored rooms and bookings."""

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)

    def report_for_date(self, target_date: date, same_building: bool = True) -> ConflictReport:
        rooms = self._repository.list_rooms()
        bookings = self._repository.list_bookings(target_date=target_date)
        report = build_conflict_report(target_date, rooms, bookings, same_building=same_building)
        if report.total:
            logger.warning(
                "Conflicts detected | date=%s | total=%s | cross_system=%s | same_system=%s",
                target_date.isoformat(),
                report.total,
                report.cross_system_count,
                report.same_system_count,
            )
        else:
            logger.info("No conflicts detected | date=%s", target_date.isoformat())
        return report
