"""Domain models for room search, booking availability and conflict reporting."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import NewType, Optional

from backend.domain.time_slots import TimeOfDay, TimeSlot


RoomId = NewType("RoomId", str)
BookingId = NewType("BookingId", str)


class ConflictClassification(str, Enum):
    SAME_SYSTEM = "same-system"
    CROSS_SYSTEM = "cross-system"


@dataclass(frozen=True)
class Room:
    room_id: RoomId
    name: str
    building: str
    capacity: int
    room_type: str
    features: tuple[str, ...] = ()


@dataclass(frozen=True)
class Booking:
    booking_id: BookingId
    room_id: RoomId
    date: date
    time_slot: TimeSlot
    organization: str
    status: str
    source: str
    external_id: Optional[str] = None


@dataclass(frozen=True)
class AvailabilityResult:
    available: bool
    conflict: Optional[Booking] = None


@dataclass(frozen=True)
class SearchCriteria:
    date: date
    start_time: Optional[TimeOfDay] = None
    end_time: Optional[TimeOfDay] = None
    building: Optional[str] = None
    room_type: Optional[str] = None
    capacity: Optional[str] = None

    @property
    def has_time_range(self) -> bool:
        return self.start_time is not None and self.end_time is not None

    def requested_slot(self) -> Optional[TimeSlot]:
        if not self.has_time_range:
            return None
        return TimeSlot(start=self.start_time, end=self.end_time)


@dataclass(frozen=True)
class RoomResult:
    room: Room
    is_available: bool
    conflict: Optional[Booking] = None
    availability_checked: bool = True


@dataclass(frozen=True)
class Conflict:
    room_id: RoomId
    booking1: Booking
    booking2: Booking
    classification: ConflictClassification


@dataclass(frozen=True)
class ConflictReportEntry:
    conflict: Conflict
    room: Optional[Room]
    suggested_room: Optional[Room]


@dataclass(frozen=True)
class ConflictReport:
    date: date
    entries: list[ConflictReportEntry] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.entries)

    @property
    def cross_system_count(self) -> int:
        return sum(
            1
            for entry in self.entries
            if entry.conflict.classification is ConflictClassification.CROSS_SYSTEM
        )

    @property
    def same_system_count(self) -> int:
        return self.total - self.cross_system_count


@dataclass(frozen=True)
class DayGrid:
    date: date
    room_names: list[str]
    time_headers: list[str]
    bookings_by_room: dict[str, list[Booking]]


@dataclass(frozen=True)
class WeekGridRow:
    time_header: str
    cells: list[Optional[Booking]]


@dataclass(frozen=True)
class WeekGrid:
    """One room's Monday-Friday schedule; each row holds the booking covering that slot per day."""

    room: Room
    days: list[date]
    rows: list[WeekGridRow]


@dataclass(frozen=True)
class DaySummary:
    date: date
    in_month: bool
    booking_count: int
    booked_minutes: int


@dataclass(frozen=True)
class ImportSummary:
    source: str
    inserted: int
    updated: int
