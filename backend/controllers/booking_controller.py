"""HTTP controller layer for rooms, bookings and room search."""

from __future__ import annotations

from datetime import date
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from backend.controllers.dependencies import (
    get_booking_service,
    get_repository,
    get_search_service,
    require_operator,
)
from backend.domain.models import Booking, Room, RoomResult, SearchCriteria
from backend.domain.time_slots import format_time_slot_label, parse_clock_time, parse_slot_end
from backend.repository.data_repository import DataRepository
from backend.services.availability_service import RoomSearchService, SearchValidationError
from backend.services.booking_service import (
    BookingConflictError,
    BookingRequest,
    BookingService,
    BookingValidationError,
    ExternalBookingRecord,
    RoomNotFoundError,
)
from backend.utils.logger import get_logger


logger = get_logger(__name__)

router = APIRouter(tags=["bookings"])

CLOCK_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"
END_CLOCK_PATTERN = r"^(([01]\d|2[0-3]):[0-5]\d|24:00)$"


class ApiModel(BaseModel):
    """camelCase on the wire, snake_case accepted on input."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RoomResponse(ApiModel):
    id: str
    name: str
    building: str
    capacity: int = Field(gt=0)
    type: str
    features: list[str]


class BookingResponse(ApiModel):
    id: str
    room_id: str
    date: date
    start_time: str
    end_time: str
    time_slot: str
    organization: str
    status: str
    source: str


class CreateBookingRequest(ApiModel):
    room_id: str = Field(min_length=1)
    date: date
    start_time: str = Field(pattern=CLOCK_PATTERN)
    end_time: str = Field(pattern=END_CLOCK_PATTERN)
    organization: str = Field(min_length=1)
    source: Optional[str] = Field(default=None, min_length=1)

    @model_validator(mode="after")
    def validate_time_order(self) -> "CreateBookingRequest":
        if parse_clock_time(self.start_time) >= parse_slot_end(self.end_time):
            raise ValueError("start_time must be before end_time")
        return self


class SearchRequest(ApiModel):
    date: date
    start_time: Optional[str] = Field(default=None, pattern=CLOCK_PATTERN)
    end_time: Optional[str] = Field(default=None, pattern=END_CLOCK_PATTERN)
    building: Optional[str] = None
    room_type: Optional[str] = Field(default=None, alias="type")
    capacity: Optional[Literal["10-20", "20-40", "50+"]] = None

    @model_validator(mode="after")
    def validate_time_range(self) -> "SearchRequest":
        if (self.start_time is None) != (self.end_time is None):
            raise ValueError("start_time and end_time must be provided together")
        if self.start_time is not None and self.end_time is not None:
            if parse_clock_time(self.start_time) >= parse_slot_end(self.end_time):
                raise ValueError("start_time must be before end_time")
        return self


class RoomResultResponse(RoomResponse):
    is_available: bool
    availability_checked: bool
    conflict: Optional[BookingResponse] = None


class ExternalBookingIn(ApiModel):
    external_id: str = Field(min_length=1)
    room_id: str = Field(min_length=1)
    date: date
    start_time: str = Field(pattern=CLOCK_PATTERN)
    end_time: str = Field(pattern=END_CLOCK_PATTERN)
    organization: str = Field(min_length=1)
    status: Optional[str] = None


class ImportBookingsRequest(ApiModel):
    source: Optional[str] = Field(default=None, min_length=1)
    bookings: list[ExternalBookingIn]


class ImportBookingsResponse(ApiModel):
    source: str
    inserted: int = Field(ge=0)
    updated: int = Field(ge=0)


def room_to_response(room: Room) -> RoomResponse:
    return RoomResponse(
        id=room.room_id,
        name=room.name,
        building=room.building,
        capacity=room.capacity,
        type=room.room_type,
        features=list(room.features),
    )


def booking_to_response(booking: Booking) -> BookingResponse:
    return BookingResponse(
        id=booking.booking_id,
        room_id=booking.room_id,
        date=booking.date,
        start_time=booking.time_slot.start.to_clock(),
        end_time=booking.time_slot.end.to_clock(),
        time_slot=format_time_slot_label(booking.time_slot),
        organization=booking.organization,
        status=booking.status,
        source=booking.source,
    )


def _room_result_to_response(result: RoomResult) -> RoomResultResponse:
    return RoomResultResponse(
        **room_to_response(result.room).model_dump(),
        is_available=result.is_available,
        availability_checked=result.availability_checked,
        conflict=booking_to_response(result.conflict) if result.conflict else None,
    )


@router.get("/rooms", response_model=list[RoomResponse], status_code=status.HTTP_200_OK)
async def list_rooms(
    repository: DataRepository = Depends(get_repository),
) -> list[RoomResponse]:
    return [room_to_response(room) for room in repository.list_rooms()]


@router.get("/rooms/{room_id}", response_model=RoomResponse, status_code=status.HTTP_200_OK)
async def get_room(
    room_id: str,
    repository: DataRepository = Depends(get_repository),
) -> RoomResponse:
    room = repository.get_room(room_id)
    if room is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Room not found",
        )
    return room_to_response(room)


@router.get("/bookings", response_model=list[BookingResponse], status_code=status.HTTP_200_OK)
async def list_bookings(
    target_date: Optional[date] = Query(default=None, alias="date"),
    room_id: Optional[str] = Query(default=None, alias="roomId"),
    service: BookingService = Depends(get_booking_service),
) -> list[BookingResponse]:
    if target_date is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Query parameter "date" is required. Usage: GET /bookings?date=YYYY-MM-DD',
        )
    bookings = service.list_bookings(target_date=target_date, room_id=room_id)
    return [booking_to_response(booking) for booking in bookings]


@router.post("/bookings", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    payload: CreateBookingRequest,
    service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    """Create a booking; an overlapping slot is rejected with 409."""
    try:
        booking = service.create_booking(
            BookingRequest(
                room_id=payload.room_id,
                date=payload.date,
                start_time=payload.start_time,
                end_time=payload.end_time,
                organization=payload.organization,
                source=payload.source,
            )
        )
        return booking_to_response(booking)
    except BookingValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except RoomNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc
    except BookingConflictError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "message": str(exc),
                "conflictWith": booking_to_response(exc.conflict).model_dump(
                    mode="json", by_alias=True
                ),
                "suggestedRoom": (
                    room_to_response(exc.suggestion).model_dump(mode="json", by_alias=True)
                    if exc.suggestion is not None
                    else None
                ),
            },
        ) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected booking creation failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create booking",
        ) from exc


@router.post(
    "/bookings/import",
    response_model=ImportBookingsResponse,
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_operator)],
)
async def import_bookings(
    payload: ImportBookingsRequest,
    service: BookingService = Depends(get_booking_service),
) -> ImportBookingsResponse:
    """Ingest bookings scraped from an external calendar."""
    try:
        summary = service.import_external_bookings(
            [
                ExternalBookingRecord(
                    external_id=item.external_id,
                    room_id=item.room_id,
                    date=item.date,
                    start_time=item.start_time,
                    end_time=item.end_time,
                    organization=item.organization,
                    status=item.status,
                )
                for item in payload.bookings
            ],
            source=payload.source,
        )
        return ImportBookingsResponse(
            source=summary.source,
            inserted=summary.inserted,
            updated=summary.updated,
        )
    except BookingValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except RoomNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected booking import failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to import bookings",
        ) from exc


@router.post("/search", response_model=list[RoomResultResponse], status_code=status.HTTP_200_OK)
async def search_rooms(
    payload: SearchRequest,
    service: RoomSearchService = Depends(get_search_service),
) -> list[RoomResultResponse]:
    criteria = SearchCriteria(
        date=payload.date,
        start_time=parse_clock_time(payload.start_time) if payload.start_time else None,
        end_time=parse_slot_end(payload.end_time) if payload.end_time else None,
        building=payload.building or None,
        room_type=payload.room_type or None,
        capacity=payload.capacity,
    )
    try:
        results = service.search(criteria)
    except SearchValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    return [_room_result_to_response(result) for result in results]
