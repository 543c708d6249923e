"""Time-of-day values, booking time slots and the overlap rule.

All times are civil wall-clock values with minute granularity. A time is stored
as minutes since midnight, so parsing never depends on the current date.
Midnight at the close of the day is ``24:00`` (1440 minutes) and is only valid
as a slot end.
"""

from __future__ import annotations

import re
from dataclasses import dataclass


MINUTES_PER_DAY = 24 * 60

_CLOCK_24H = re.compile(
    r"^(?:(?P<hour>[01]?\d|2[0-3]):(?P<minute>[0-5]\d)|(?P<midnight>24:00))$"
)
_CLOCK_12H = re.compile(
    r"^(?P<hour>0?[1-9]|1[0-2]):(?P<minute>[0-5]\d)\s*(?P<period>[AaPp][Mm])$"
)
_LABEL_SEPARATOR = re.compile(r"\s+-\s+")


class InvalidTimeSlotError(ValueError):
    """Raised when a time or time slot cannot be parsed or is empty."""


@dataclass(frozen=True, order=True)
class TimeOfDay:
    minutes: int

    def __post_init__(self) -> None:
        if not 0 <= self.minutes <= MINUTES_PER_DAY:
            raise InvalidTimeSlotError(
                f"time of day must be within 00:00-24:00, got {self.minutes} minutes"
            )

    @classmethod
    def from_hm(cls, hour: int, minute: int = 0) -> "TimeOfDay":
        return cls(hour * 60 + minute)

    @property
    def hour(self) -> int:
        return self.minutes // 60

    @property
    def minute(self) -> int:
        return self.minutes % 60

    @property
    def is_end_of_day(self) -> bool:
        return self.minutes == MINUTES_PER_DAY

    def to_clock(self) -> str:
        """Render as 24-hour ``HH:MM``."""
        return f"{self.hour:02d}:{self.minute:02d}"

    def to_12h(self) -> str:
        """Render as ``hh:mm AM``/``hh:mm PM``; end of day renders as ``12:00 AM``."""
        hour = self.hour % 24
        period = "PM" if hour >= 12 else "AM"
        hour12 = hour % 12 or 12
        return f"{hour12:02d}:{self.minute:02d} {period}"

    def __str__(self) -> str:
        return self.to_clock()


END_OF_DAY = TimeOfDay(MINUTES_PER_DAY)


@dataclass(frozen=True)
class TimeSlot:
    start: TimeOfDay
    end: TimeOfDay

    def __post_init__(self) -> None:
        if self.start >= self.end:
            raise InvalidTimeSlotError(
                f"time slot start {self.start} must be before end {self.end}"
            )

    @property
    def duration_minutes(self) -> int:
        return self.end.minutes - self.start.minutes

    def overlaps(self, other: "TimeSlot") -> bool:
        return overlaps(self, other)

    def __str__(self) -> str:
        return format_time_slot_label(self)


def overlaps(a: TimeSlot, b: TimeSlot) -> bool:
    """Strict overlap: slots that only touch at an endpoint do not clash."""
    return a.start < b.end and a.end > b.start


def parse_clock_time(value: str) -> TimeOfDay:
    """Parse a 24-hour ``HH:MM`` value."""
    match = _CLOCK_24H.fullmatch(value.strip())
    if match is None:
        raise InvalidTimeSlotError(f"time must follow HH:MM 24-hour format, got {value!r}")
    if match["midnight"]:
        return END_OF_DAY
    return TimeOfDay.from_hm(int(match["hour"]), int(match["minute"]))


def parse_12h_time(value: str) -> TimeOfDay:
    """Parse a 12-hour ``hh:mm AM`` value."""
    match = _CLOCK_12H.fullmatch(value.strip())
    if match is None:
        raise InvalidTimeSlotError(f"time must follow hh:mm AM/PM format, got {value!r}")
    hour = int(match["hour"]) % 12
    if match["period"].upper() == "PM":
        hour += 12
    return TimeOfDay.from_hm(hour, int(match["minute"]))


def parse_time(value: str) -> TimeOfDay:
    """Accept either the 24-hour or the 12-hour notation."""
    if _CLOCK_12H.fullmatch(value.strip()):
        return parse_12h_time(value)
    return parse_clock_time(value)


def parse_slot_end(value: str) -> TimeOfDay:
    """Parse a slot end, reading midnight (``00:00``/``12:00 AM``) as the close of the day."""
    end = parse_time(value)
    return END_OF_DAY if end.minutes == 0 else end


def slot_from_clock_times(start: str, end: str) -> TimeSlot:
    return TimeSlot(start=parse_time(start), end=parse_slot_end(end))


def parse_time_slot_label(label: str) -> TimeSlot:
    """Parse a display label such as ``"10:00 AM - 12:00 PM"``."""
    parts = _LABEL_SEPARATOR.split(label.strip())
    if len(parts) != 2:
        raise InvalidTimeSlotError(
            f"time slot label must look like 'hh:mm AM - hh:mm PM', got {label!r}"
        )
    return TimeSlot(start=parse_time(parts[0]), end=parse_slot_end(parts[1]))


def format_time_slot_label(slot: TimeSlot) -> str:
    return f"{slot.start.to_12h()} - {slot.end.to_12h()}"
