from __future__ import annotations

import threading
from dataclasses import replace
from datetime import date

import pytest

from backend.domain.models import ConflictClassification, Room, RoomId
from backend.repository.data_repository import DEMO_ROOMS, DataRepository
from backend.services.booking_service import (
    BookingConflictError,
    BookingRequest,
    BookingService,
    BookingValidationError,
    ExternalBookingRecord,
    RoomNotFoundError,
)
from backend.services.conflict_service import ConflictReportService
from backend.utils.config import get_settings


DAY = date(2025, 9, 1)
TODAY = date(2025, 8, 30)

ROOMS = [
    Room(RoomId("A"), "Lib A", "Library", 10, "Conference Room", ("Whiteboard",)),
    Room(RoomId("B"), "Lib B", "Library", 12, "Conference Room"),
    Room(RoomId("E"), "ENB E", "Engineering", 40, "Classroom"),
]


def _build_test_settings(tmp_path, filename: str, **overrides):
    get_settings.cache_clear()
    base = get_settings()
    values = {
        "database_path": tmp_path / filename,
        "semester_start": "2025-08-25",
        "semester_end": "2025-12-05",
        "seed_demo_data": False,
    }
    values.update(overrides)
    return replace(base, **values)


def _build_service(tmp_path, filename: str) -> tuple[BookingService, DataRepository]:
    settings = _build_test_settings(tmp_path, filename)
    repository = DataRepository(settings)
    repository.initialize_database()
    repository.insert_rooms(ROOMS)
    service = BookingService(repository=repository, settings=settings, today=lambda: TODAY)
    return service, repository


def _request(room_id: str, start: str, end: str, on: date = DAY, **extra) -> BookingRequest:
    return BookingRequest(
        room_id=room_id,
        date=on,
        start_time=start,
        end_time=end,
        organization=extra.pop("organization", "Chess Club"),
        **extra,
    )


def test_create_booking_persists_with_defaults(tmp_path):
    service, repository = _build_service(tmp_path, "create.db")

    booking = service.create_booking(_request("A", "10:00", "11:00"))

    assert booking.status == "Booked"
    assert booking.source == "local"
    stored = repository.list_bookings(target_date=DAY, room_id="A")
    assert stored == [booking]


def test_overlapping_booking_is_rejected_with_conflict(tmp_path):
    service, repository = _build_service(tmp_path, "overlap.db")
    existing = service.create_booking(_request("A", "10:00", "11:00"))

    with pytest.raises(BookingConflictError) as excinfo:
        service.create_booking(_request("A", "10:30", "11:30", organization="Robotics"))

    assert excinfo.value.conflict == existing
    assert repository.count_bookings() == 1


def test_conflict_suggests_free_room_in_same_building(tmp_path):
    service, _ = _build_service(tmp_path, "suggest.db")
    service.create_booking(_request("A", "10:00", "11:00"))

    with pytest.raises(BookingConflictError) as excinfo:
        service.create_booking(_request("A", "10:00", "11:00"))

    assert excinfo.value.suggestion is not None
    assert excinfo.value.suggestion.room_id == "B"


def test_back_to_back_booking_is_accepted(tmp_path):
    service, repository = _build_service(tmp_path, "adjacent.db")
    service.create_booking(_request("A", "10:00", "11:00"))
    service.create_booking(_request("A", "11:00", "12:00"))

    assert repository.count_bookings() == 2


def test_booking_outside_semester_is_rejected(tmp_path):
    service, _ = _build_service(tmp_path, "semester.db")

    with pytest.raises(BookingValidationError, match="only allowed between"):
        service.create_booking(_request("A", "10:00", "11:00", on=date(2025, 12, 6)))


def test_booking_in_the_past_is_rejected(tmp_path):
    service, _ = _build_service(tmp_path, "past.db")

    with pytest.raises(BookingValidationError, match="past"):
        service.create_booking(_request("A", "10:00", "11:00", on=date(2025, 8, 26)))


def test_missing_organization_is_rejected(tmp_path):
    service, _ = _build_service(tmp_path, "missing.db")

    with pytest.raises(BookingValidationError, match="organization"):
        service.create_booking(_request("A", "10:00", "11:00", organization="  "))


def test_inverted_slot_is_rejected(tmp_path):
    service, _ = _build_service(tmp_path, "inverted.db")

    with pytest.raises(BookingValidationError):
        service.create_booking(_request("A", "11:00", "10:00"))


def test_unknown_room_is_rejected(tmp_path):
    service, _ = _build_service(tmp_path, "unknown.db")

    with pytest.raises(RoomNotFoundError):
        service.create_booking(_request("Z", "10:00", "11:00"))


def test_concurrent_creates_for_same_slot_admit_exactly_one(tmp_path):
    service, repository = _build_service(tmp_path, "race.db")
    barrier = threading.Barrier(4)
    outcomes: list[str] = []
    lock = threading.Lock()

    def attempt() -> None:
        barrier.wait()
        try:
            service.create_booking(_request("A", "14:00", "15:00"))
            result = "created"
        except BookingConflictError:
            result = "conflict"
        with lock:
            outcomes.append(result)

    threads = [threading.Thread(target=attempt) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert sorted(outcomes) == ["conflict", "conflict", "conflict", "created"]
    assert repository.count_bookings() == 1


def test_external_import_upserts_and_surfaces_cross_system_conflict(tmp_path):
    service, repository = _build_service(tmp_path, "import.db")
    service.create_booking(_request("A", "10:00", "11:00"))

    record = ExternalBookingRecord(
        external_id="lc-42",
        room_id="A",
        date=DAY,
        start_time="10:30",
        end_time="11:30",
        organization="Robotics Club",
    )
    first = service.import_external_bookings([record], source="libcal")
    second = service.import_external_bookings(
        [replace(record, end_time="12:00")],
        source="libcal",
    )

    assert (first.inserted, first.updated) == (1, 0)
    assert (second.inserted, second.updated) == (0, 1)
    assert repository.count_bookings() == 2

    report = ConflictReportService(repository=repository).report_for_date(DAY)
    assert report.total == 1
    entry = report.entries[0]
    assert entry.conflict.classification is ConflictClassification.CROSS_SYSTEM
    assert entry.conflict.booking2.time_slot.end.to_clock() == "12:00"
    assert entry.suggested_room is not None and entry.suggested_room.room_id == "B"


def test_external_import_rejects_unknown_room(tmp_path):
    service, repository = _build_service(tmp_path, "import_unknown.db")
    record = ExternalBookingRecord(
        external_id="lc-1",
        room_id="nowhere",
        date=DAY,
        start_time="10:00",
        end_time="11:00",
        organization="Ghost Club",
    )

    with pytest.raises(RoomNotFoundError):
        service.import_external_bookings([record])
    assert repository.count_bookings() == 0


def test_demo_seed_is_idempotent(tmp_path):
    settings = _build_test_settings(tmp_path, "seed.db")
    repository = DataRepository(settings)
    repository.initialize_database()

    repository.seed_demo_data(anchor_date=DAY)
    first_count = repository.count_bookings()
    repository.seed_demo_data(anchor_date=DAY)

    assert repository.count_bookings() == first_count
    assert [room.room_id for room in repository.list_rooms()] == [
        room.room_id for room in DEMO_ROOMS
    ]
