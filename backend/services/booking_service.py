"""Booking creation with write-time conflict rejection, and external feed ingest."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable, Iterable, Optional
from uuid import uuid4

from backend.domain.constraints import (
    BookingWindow,
    booking_date_error,
    validate_booking_window,
)
from backend.domain.models import (
    Booking,
    BookingId,
    ImportSummary,
    Room,
    RoomId,
)
from backend.domain.time_slots import InvalidTimeSlotError, TimeSlot, slot_from_clock_times
from backend.repository.data_repository import DataRepository
from backend.services.availability_service import evaluate
from backend.services.conflict_service import suggest_alternative_room
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)


class BookingError(Exception):
    """Base exception for booking workflow failures."""


class BookingValidationError(BookingError):
    """Raised when a booking request is malformed or outside the booking window."""


class RoomNotFoundError(BookingError):
    """Raised when a booking references a room that is not in the catalog."""


class BookingConflictError(BookingError):
    """Raised when the requested slot overlaps an existing booking."""

    def __init__(self, conflict: Booking, suggestion: Optional[Room] = None) -> None:
        super().__init__("Time slot conflicts with an existing booking")
        self.conflict = conflict
        self.suggestion = suggestion


@dataclass(frozen=True)
class BookingRequest:
    room_id: str
    date: date
    start_time: str
    end_time: str
    organization: str
    source: Optional[str] = None


@dataclass(frozen=True)
class ExternalBookingRecord:
    external_id: str
    room_id: str
    date: date
    start_time: str
    end_time: str
    organization: str
    status: Optional[str] = None


def _parse_slot(start_time: str, end_time: str) -> TimeSlot:
    try:
        return slot_from_clock_times(start_time, end_time)
    except InvalidTimeSlotError as exc:
        raise BookingValidationError(str(exc)) from exc


class BookingService:
    """Validates, conflict-checks and persists bookings."""

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
        today: Optional[Callable[[], date]] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)
        self._today = today or (lambda: datetime.now().date())
        self._window = self._build_window()

    def _build_window(self) -> Optional[BookingWindow]:
        if not self._settings.semester_start or not self._settings.semester_end:
            return None
        try:
            window = BookingWindow(
                semester_start=date.fromisoformat(self._settings.semester_start),
                semester_end=date.fromisoformat(self._settings.semester_end),
            )
        except ValueError as exc:
            raise ValueError("semester bounds must follow YYYY-MM-DD format") from exc
        validate_booking_window(window)
        return window

    def list_bookings(
        self,
        target_date: date,
        room_id: Optional[str] = None,
    ) -> list[Booking]:
        return self._repository.list_bookings(target_date=target_date, room_id=room_id)

    def _validate_request(self, request: BookingRequest) -> TimeSlot:
        missing = [
            name
            for name, value in (
                ("room_id", request.room_id),
                ("start_time", request.start_time),
                ("end_time", request.end_time),
                ("organization", request.organization),
            )
            if not str(value or "").strip()
        ]
        if missing:
            raise BookingValidationError(f"Missing required fields: {', '.join(missing)}")

        slot = _parse_slot(request.start_time, request.end_time)

        if self._window is not None:
            message = booking_date_error(request.date, self._window, self._today())
            if message is not None:
                raise BookingValidationError(message)
        elif request.date < self._today():
            raise BookingValidationError("Cannot make reservations in the past.")
        return slot

    def create_booking(self, request: BookingRequest) -> Booking:
        """Persist a booking unless it overlaps one already stored for the room and date."""
        slot = self._validate_request(request)
        room = self._repository.get_room(request.room_id)
        if room is None:
            raise RoomNotFoundError(f"Room {request.room_id} not found")

        booking = Booking(
            booking_id=BookingId(str(uuid4())),
            room_id=room.room_id,
            date=request.date,
            time_slot=slot,
            organization=request.organization.strip(),
            status=self._settings.booking_status,
            source=request.source or self._settings.default_booking_source,
        )

        outcome = self._repository.insert_booking_if_available(
            booking,
            guard=lambda existing: evaluate(room.room_id, request.date, slot, existing),
        )
        if not outcome.available:
            suggestion = suggest_alternative_room(
                slot,
                request.date,
                room.room_id,
                self._repository.list_rooms(),
                self._repository.list_bookings(target_date=request.date),
                building=room.building,
            )
            logger.info(
                "Booking rejected | room_id=%s | date=%s | slot=%s | conflict_id=%s | suggestion=%s",
                room.room_id,
                request.date.isoformat(),
                slot.start.to_clock() + "-" + slot.end.to_clock(),
                outcome.conflict.booking_id if outcome.conflict else None,
                suggestion.room_id if suggestion else None,
            )
            raise BookingConflictError(conflict=outcome.conflict, suggestion=suggestion)

        logger.info(
            "Booking created | booking_id=%s | room_id=%s | date=%s | slot=%s | source=%s",
            booking.booking_id,
            booking.room_id,
            booking.date.isoformat(),
            slot.start.to_clock() + "-" + slot.end.to_clock(),
            booking.source,
        )
        return booking

    def import_external_bookings(
        self,
        records: Iterable[ExternalBookingRecord],
        source: Optional[str] = None,
    ) -> ImportSummary:
        """Store scraped bookings as-is; overlaps surface later in conflict reports."""
        resolved_source = (source or self._settings.default_external_source).strip()
        if not resolved_source:
            raise BookingValidationError("source must be non-empty")

        known_rooms = {room.room_id for room in self._repository.list_rooms()}
        bookings: list[Booking] = []
        for record in records:
            if not record.external_id.strip():
                raise BookingValidationError("external_id must be non-empty")
            if record.room_id not in known_rooms:
                raise RoomNotFoundError(f"Room {record.room_id} not found")
            bookings.append(
                Booking(
                    booking_id=BookingId(f"{resolved_source}:{record.external_id}"),
                    room_id=RoomId(record.room_id),
                    date=record.date,
                    time_slot=_parse_slot(record.start_time, record.end_time),
                    organization=record.organization,
                    status=record.status or self._settings.booking_status,
                    source=resolved_source,
                    external_id=record.external_id,
                )
            )

        inserted, updated = self._repository.upsert_external_bookings(bookings)
        logger.info(
            "External bookings imported | source=%s | inserted=%s | updated=%s",
            resolved_source,
            inserted,
            updated,
        )
        return ImportSummary(source=resolved_source, inserted=inserted, updated=updated)
