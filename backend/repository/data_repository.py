"""Repository layer responsible for all database access."""

from __future__ import annotations

import json
import sqlite3
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Sequence

from backend.domain.models import AvailabilityResult, Booking, BookingId, Room, RoomId
from backend.domain.time_slots import TimeOfDay, TimeSlot
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)

AvailabilityGuard = Callable[[List[Booking]], AvailabilityResult]

_BOOKING_COLUMNS = """
    id,
    room_id,
    date,
    start_minutes,
    end_minutes,
    organization,
    status,
    source,
    external_id
"""

DEMO_ROOMS: tuple[Room, ...] = (
    Room(RoomId("ENB-109"), "ENB 109", "Engineering Building II", 40, "Classroom", ("Projector", "Whiteboard")),
    Room(RoomId("ENB-313"), "ENB 313", "Engineering Building II", 20, "Computer Lab", ("Workstations", "Projector")),
    Room(RoomId("ENB-118"), "ENB 118", "Engineering Building II", 12, "Conference Room", ("Display", "Conference Phone")),
    Room(RoomId("MSC-2707"), "MSC 2707", "Marshall Student Center", 60, "Conference Room", ("Stage", "Microphones")),
    Room(RoomId("MSC-3301"), "MSC 3301", "Marshall Student Center", 18, "Conference Room", ("Display",)),
    Room(RoomId("ISA-1051"), "ISA 1051", "Interdisciplinary Sciences", 120, "Classroom", ("Projector", "Lecture Capture")),
    Room(RoomId("ISA-2040"), "ISA 2040", "Interdisciplinary Sciences", 30, "Computer Lab", ("Workstations",)),
    Room(RoomId("LIB-204"), "LIB 204", "Library", 10, "Conference Room", ("Whiteboard",)),
    Room(RoomId("LIB-208"), "LIB 208", "Library", 12, "Conference Room", ("Display", "Whiteboard")),
    Room(RoomId("REC-101"), "REC 101", "Recreation Center", 50, "Classroom", ("Mirrors", "Sound System")),
)


def _row_to_room(row: sqlite3.Row) -> Room:
    return Room(
        room_id=RoomId(str(row["id"])),
        name=str(row["name"]),
        building=str(row["building"]),
        capacity=int(row["capacity"]),
        room_type=str(row["room_type"]),
        features=tuple(json.loads(row["features"] or "[]")),
    )


def _row_to_booking(row: sqlite3.Row) -> Booking:
    return Booking(
        booking_id=BookingId(str(row["id"])),
        room_id=RoomId(str(row["room_id"])),
        date=date.fromisoformat(str(row["date"])),
        time_slot=TimeSlot(
            start=TimeOfDay(int(row["start_minutes"])),
            end=TimeOfDay(int(row["end_minutes"])),
        ),
        organization=str(row["organization"]),
        status=str(row["status"]),
        source=str(row["source"]),
        external_id=row["external_id"],
    )


def _booking_params(booking: Booking) -> tuple:
    return (
        booking.booking_id,
        booking.room_id,
        booking.date.isoformat(),
        booking.time_slot.start.minutes,
        booking.time_slot.end.minutes,
        booking.organization,
        booking.status,
        booking.source,
        booking.external_id,
    )


class DataRepository:
    """Encapsulates SQLite access so business logic stays storage-agnostic."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings or get_settings()
        self._db_path = Path(self._settings.database_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def database_path(self) -> Path:
        return self._db_path

    def _connect(self) -> sqlite3.Connection:
        connection = sqlite3.connect(self._db_path, timeout=10.0)
        connection.row_factory = sqlite3.Row
        connection.execute("PRAGMA foreign_keys = ON;")
        return connection

    def initialize_database(self) -> None:
        """Create all persistence artifacts before API startup."""
        try:
            with self._connect() as conn:
                cursor = conn.cursor()

                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Rooms (
                        id TEXT PRIMARY KEY,
                        name TEXT NOT NULL,
                        building TEXT NOT NULL,
                        capacity INTEGER NOT NULL CHECK (capacity > 0),
                        room_type TEXT NOT NULL,
                        features TEXT NOT NULL DEFAULT '[]',
                        position INTEGER NOT NULL
                    );
                    """
                )

                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Bookings (
                        id TEXT PRIMARY KEY,
                        room_id TEXT NOT NULL,
                        date TEXT NOT NULL,
                        start_minutes INTEGER NOT NULL,
                        end_minutes INTEGER NOT NULL,
                        organization TEXT NOT NULL,
                        status TEXT NOT NULL,
                        source TEXT NOT NULL,
                        external_id TEXT,
                        created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
                        CHECK (start_minutes < end_minutes),
                        FOREIGN KEY (room_id) REFERENCES Rooms(id)
                    );
                    """
                )

                cursor.execute(
                    """
                    CREATE INDEX IF NOT EXISTS idx_bookings_room_date
                    ON Bookings(room_id, date);
                    """
                )
                cursor.execute(
                    """
                    CREATE INDEX IF NOT EXISTS idx_bookings_date
                    ON Bookings(date);
                    """
                )
                cursor.execute(
                    """
                    CREATE UNIQUE INDEX IF NOT EXISTS idx_bookings_source_external
                    ON Bookings(source, external_id)
                    WHERE external_id IS NOT NULL;
                    """
                )
                conn.commit()
            logger.info("Database initialized at %s", self._db_path)
        except sqlite3.Error as exc:
            raise RuntimeError(f"Database initialization failed: {exc}") from exc

    def insert_rooms(self, rooms: Sequence[Room]) -> None:
        """Append rooms to the catalog, keeping the given order."""
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT COALESCE(MAX(position), -1) AS last FROM Rooms;")
            offset = int(cursor.fetchone()["last"]) + 1
            cursor.executemany(
                """
                INSERT INTO Rooms (id, name, building, capacity, room_type, features, position)
                VALUES (?, ?, ?, ?, ?, ?, ?);
                """,
                [
                    (
                        room.room_id,
                        room.name,
                        room.building,
                        room.capacity,
                        room.room_type,
                        json.dumps(list(room.features)),
                        offset + index,
                    )
                    for index, room in enumerate(rooms)
                ],
            )
            conn.commit()

    def seed_demo_data(self, anchor_date: Optional[date] = None) -> None:
        """Seed the demo catalog and a day of bookings only when tables are empty."""
        try:
            with self._connect() as conn:
                cursor = conn.cursor()
                cursor.execute("SELECT COUNT(*) AS count FROM Rooms;")
                if int(cursor.fetchone()["count"]) > 0:
                    logger.info("Demo data already present; skipping seed")
                    return

            self.insert_rooms(DEMO_ROOMS)

            day = anchor_date or datetime.now().date()
            next_day = day + timedelta(days=1)
            local = self._settings.default_booking_source
            external = self._settings.default_external_source
            demo_bookings = [
                ("ENB-109", day, "09:00", "10:30", "IEEE Student Branch", local, None),
                ("ENB-109", day, "10:00", "11:00", "Robotics Club", external, "lc-1001"),
                ("ENB-313", day, "13:00", "15:00", "ACM Workshop", local, None),
                ("LIB-204", day, "10:00", "11:00", "Study Group", local, None),
                ("LIB-204", day, "10:30", "12:00", "Writing Center", local, None),
                ("MSC-2707", day, "18:00", "20:00", "Student Government", external, "lc-1002"),
                ("ISA-1051", next_day, "08:00", "09:30", "Biology Review", external, "lc-1003"),
                ("ENB-109", next_day, "09:00", "10:30", "IEEE Student Branch", local, None),
            ]
            with self._connect() as conn:
                cursor = conn.cursor()
                cursor.executemany(
                    f"""
                    INSERT INTO Bookings ({_BOOKING_COLUMNS})
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?);
                    """,
                    [
                        (
                            f"seed-{index:03d}",
                            room_id,
                            booking_day.isoformat(),
                            int(start[:2]) * 60 + int(start[3:]),
                            int(end[:2]) * 60 + int(end[3:]),
                            organization,
                            self._settings.booking_status,
                            source,
                            external_id,
                        )
                        for index, (
                            room_id,
                            booking_day,
                            start,
                            end,
                            organization,
                            source,
                            external_id,
                        ) in enumerate(demo_bookings, start=1)
                    ],
                )
                conn.commit()
            logger.info(
                "Demo seed completed | rooms=%s | bookings=%s",
                len(DEMO_ROOMS),
                len(demo_bookings),
            )
        except sqlite3.Error as exc:
            raise RuntimeError(f"Demo data seeding failed: {exc}") from exc

    def list_rooms(self) -> list[Room]:
        """Return the room catalog in catalog order."""
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT id, name, building, capacity, room_type, features
                FROM Rooms
                ORDER BY position ASC;
                """
            )
            return [_row_to_room(row) for row in cursor.fetchall()]

    def get_room(self, room_id: str) -> Optional[Room]:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT id, name, building, capacity, room_type, features
                FROM Rooms
                WHERE id = ?;
                """,
                (room_id,),
            )
            row = cursor.fetchone()
            if row is None:
                return None
            return _row_to_room(row)

    def list_bookings(
        self,
        target_date: Optional[date] = None,
        room_id: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> list[Booking]:
        """Return bookings filtered by exact date, room and/or inclusive date range."""
        clauses: list[str] = []
        params: list[object] = []
        if target_date is not None:
            clauses.append("date = ?")
            params.append(target_date.isoformat())
        if room_id is not None:
            clauses.append("room_id = ?")
            params.append(room_id)
        if start_date is not None:
            clauses.append("date >= ?")
            params.append(start_date.isoformat())
        if end_date is not None:
            clauses.append("date <= ?")
            params.append(end_date.isoformat())
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""

        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"""
                SELECT {_BOOKING_COLUMNS}
                FROM Bookings
                {where}
                ORDER BY date ASC, start_minutes ASC, created_at ASC, id ASC;
                """,
                tuple(params),
            )
            return [_row_to_booking(row) for row in cursor.fetchall()]

    def insert_booking_if_available(
        self,
        booking: Booking,
        guard: AvailabilityGuard,
    ) -> AvailabilityResult:
        """Re-check availability and insert inside one write transaction.

        ``BEGIN IMMEDIATE`` takes the database write lock before the read, so a
        concurrent writer cannot slip a booking in between check and insert.
        """
        conn = self._connect()
        try:
            conn.execute("BEGIN IMMEDIATE;")
            cursor = conn.execute(
                f"""
                SELECT {_BOOKING_COLUMNS}
                FROM Bookings
                WHERE room_id = ? AND date = ?
                ORDER BY start_minutes ASC, created_at ASC, id ASC;
                """,
                (booking.room_id, booking.date.isoformat()),
            )
            existing = [_row_to_booking(row) for row in cursor.fetchall()]
            outcome = guard(existing)
            if not outcome.available:
                conn.rollback()
                return outcome
            conn.execute(
                f"""
                INSERT INTO Bookings ({_BOOKING_COLUMNS})
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?);
                """,
                _booking_params(booking),
            )
            conn.commit()
            return outcome
        except sqlite3.Error:
            conn.rollback()
            raise
        finally:
            conn.close()

    def upsert_external_bookings(self, bookings: Iterable[Booking]) -> tuple[int, int]:
        """Insert or refresh externally sourced bookings keyed by (source, external_id).

        Returns ``(inserted, updated)``. No availability check is applied.
        """
        inserted = 0
        updated = 0
        with self._connect() as conn:
            cursor = conn.cursor()
            for booking in bookings:
                cursor.execute(
                    """
                    UPDATE Bookings
                    SET room_id = ?,
                        date = ?,
                        start_minutes = ?,
                        end_minutes = ?,
                        organization = ?,
                        status = ?
                    WHERE source = ? AND external_id = ?;
                    """,
                    (
                        booking.room_id,
                        booking.date.isoformat(),
                        booking.time_slot.start.minutes,
                        booking.time_slot.end.minutes,
                        booking.organization,
                        booking.status,
                        booking.source,
                        booking.external_id,
                    ),
                )
                if cursor.rowcount:
                    updated += 1
                    continue
                cursor.execute(
                    f"""
                    INSERT INTO Bookings ({_BOOKING_COLUMNS})
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?);
                    """,
                    _booking_params(booking),
                )
                inserted += 1
            conn.commit()
        return inserted, updated

    def count_bookings(self) -> int:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT COUNT(*) AS count FROM Bookings;")
            return int(cursor.fetchone()["count"])
