"""Controller layer for schedule views, conflict reports and operator login."""

from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import Field

from backend.controllers.booking_controller import (
    ApiModel,
    BookingResponse,
    RoomResponse,
    booking_to_response,
    room_to_response,
)
from backend.controllers.dependencies import (
    get_auth_service,
    get_conflict_service,
    get_schedule_service,
)
from backend.domain.models import ConflictReportEntry
from backend.services.auth_service import (
    AuthService,
    InvalidOperatorTokenError,
    OperatorTokenNotConfiguredError,
)
from backend.services.conflict_service import ConflictReportService
from backend.services.schedule_service import ScheduleService, UnknownRoomError
from backend.utils.logger import get_logger


logger = get_logger(__name__)

router = APIRouter(tags=["schedule"])


class LoginRequest(ApiModel):
    operator_token: str = Field(min_length=1)


class LoginResponse(ApiModel):
    access_token: str
    token_type: str = "bearer"


class DayGridResponse(ApiModel):
    date: date
    room_names: list[str]
    time_headers: list[str]
    bookings_by_room: dict[str, list[BookingResponse]]


class WeekGridRowResponse(ApiModel):
    time_header: str
    cells: list[Optional[BookingResponse]]


class WeekGridResponse(ApiModel):
    room: RoomResponse
    days: list[date]
    rows: list[WeekGridRowResponse]


class DaySummaryResponse(ApiModel):
    date: date
    in_month: bool
    booking_count: int = Field(ge=0)
    booked_minutes: int = Field(ge=0)


class MonthSummaryResponse(ApiModel):
    year: int
    month: int
    days: list[DaySummaryResponse]


class ConflictResponse(ApiModel):
    room_id: str
    room: Optional[RoomResponse] = None
    booking1: BookingResponse
    booking2: BookingResponse
    classification: str
    suggested_room: Optional[RoomResponse] = None


class ConflictReportResponse(ApiModel):
    date: date
    total: int = Field(ge=0)
    cross_system_count: int = Field(ge=0)
    same_system_count: int = Field(ge=0)
    conflicts: list[ConflictResponse]


def _entry_to_response(entry: ConflictReportEntry) -> ConflictResponse:
    conflict = entry.conflict
    return ConflictResponse(
        room_id=conflict.room_id,
        room=room_to_response(entry.room) if entry.room else None,
        booking1=booking_to_response(conflict.booking1),
        booking2=booking_to_response(conflict.booking2),
        classification=conflict.classification.value,
        suggested_room=room_to_response(entry.suggested_room) if entry.suggested_room else None,
    )


@router.post("/login", response_model=LoginResponse, status_code=status.HTTP_200_OK)
async def login(
    payload: LoginRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> LoginResponse:
    try:
        bearer = auth_service.login(payload.operator_token)
        return LoginResponse(access_token=bearer)
    except (OperatorTokenNotConfiguredError, InvalidOperatorTokenError) as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
        ) from exc


@router.get("/schedule/day", response_model=DayGridResponse, status_code=status.HTTP_200_OK)
async def day_schedule(
    target_date: date = Query(alias="date"),
    service: ScheduleService = Depends(get_schedule_service),
) -> DayGridResponse:
    grid = service.day_grid(target_date)
    return DayGridResponse(
        date=grid.date,
        room_names=grid.room_names,
        time_headers=grid.time_headers,
        bookings_by_room={
            name: [booking_to_response(booking) for booking in bookings]
            for name, bookings in grid.bookings_by_room.items()
        },
    )


@router.get("/schedule/week", response_model=WeekGridResponse, status_code=status.HTTP_200_OK)
async def week_schedule(
    target_date: date = Query(alias="date"),
    room_id: Optional[str] = Query(default=None, alias="roomId"),
    service: ScheduleService = Depends(get_schedule_service),
) -> WeekGridResponse:
    """Monday-Friday slot occupancy for one room (the first catalog room by default)."""
    try:
        grid = service.week_grid(target_date, room_id=room_id)
    except UnknownRoomError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return WeekGridResponse(
        room=room_to_response(grid.room),
        days=grid.days,
        rows=[
            WeekGridRowResponse(
                time_header=row.time_header,
                cells=[booking_to_response(cell) if cell else None for cell in row.cells],
            )
            for row in grid.rows
        ],
    )


@router.get("/schedule/month", response_model=MonthSummaryResponse, status_code=status.HTTP_200_OK)
async def month_schedule(
    target_date: date = Query(alias="date"),
    service: ScheduleService = Depends(get_schedule_service),
) -> MonthSummaryResponse:
    return MonthSummaryResponse(
        year=target_date.year,
        month=target_date.month,
        days=[
            DaySummaryResponse(
                date=day.date,
                in_month=day.in_month,
                booking_count=day.booking_count,
                booked_minutes=day.booked_minutes,
            )
            for day in service.month_summary(target_date)
        ],
    )


@router.get("/conflicts", response_model=ConflictReportResponse, status_code=status.HTTP_200_OK)
async def conflict_report(
    target_date: date = Query(alias="date"),
    same_building: bool = Query(default=True, alias="sameBuilding"),
    service: ConflictReportService = Depends(get_conflict_service),
) -> ConflictReportResponse:
    """Double-bookings for a day, each with a suggested free room."""
    try:
        report = service.report_for_date(target_date, same_building=same_building)
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected conflict report failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to build conflict report",
        ) from exc
    return ConflictReportResponse(
        date=report.date,
        total=report.total,
        cross_system_count=report.cross_system_count,
        same_system_count=report.same_system_count,
        conflicts=[_entry_to_response(entry) for entry in report.entries],
    )
