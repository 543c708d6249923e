"""Domain-level validation rules for search filters and booking dates."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Optional


@dataclass(frozen=True)
class CapacityRange:
    minimum: int
    maximum: Optional[int] = None

    def contains(self, capacity: int) -> bool:
        if capacity < self.minimum:
            return False
        return self.maximum is None or capacity <= self.maximum


# Both ends are inclusive, so a capacity of 20 falls in "10-20" and "20-40".
CAPACITY_BUCKETS: dict[str, CapacityRange] = {
    "10-20": CapacityRange(10, 20),
    "20-40": CapacityRange(20, 40),
    "50+": CapacityRange(50),
}


def parse_capacity_bucket(label: str) -> CapacityRange:
    try:
        return CAPACITY_BUCKETS[label]
    except KeyError as exc:
        allowed = ", ".join(CAPACITY_BUCKETS)
        raise ValueError(f"capacity must be one of: {allowed}") from exc


@dataclass(frozen=True)
class BookingWindow:
    semester_start: date
    semester_end: date


def validate_booking_window(window: BookingWindow) -> None:
    if window.semester_start > window.semester_end:
        raise ValueError("semester_start must not be after semester_end")


def booking_date_error(target: date, window: BookingWindow, today: date) -> Optional[str]:
    """Return a user-facing message when ``target`` cannot be booked, else None."""
    if not window.semester_start <= target <= window.semester_end:
        return (
            "Bookings are only allowed between "
            f"{window.semester_start:%b} {window.semester_start.day} and "
            f"{window.semester_end:%b} {window.semester_end.day}."
        )
    if target < today:
        return "Cannot make reservations in the past."
    return None
