"""Shared FastAPI dependency providers for controller layer."""

from __future__ import annotations

from typing import Any

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from backend.services.auth_service import (
    AuthService,
    InvalidOperatorTokenError,
    OperatorTokenNotConfiguredError,
)
from backend.services.availability_service import RoomSearchService
from backend.services.booking_service import BookingService
from backend.services.conflict_service import ConflictReportService
from backend.services.schedule_service import ScheduleService
from backend.repository.data_repository import DataRepository
from backend.utils.config import get_settings


bearer_scheme = HTTPBearer(auto_error=False)


def _require_state(request: Request, name: str, label: str) -> Any:
    service = getattr(request.app.state, name, None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"{label} is not initialized",
        )
    return service


def get_repository(request: Request) -> DataRepository:
    return _require_state(request, "repository", "Repository")


def get_booking_service(request: Request) -> BookingService:
    return _require_state(request, "booking_service", "Booking service")


def get_search_service(request: Request) -> RoomSearchService:
    return _require_state(request, "search_service", "Search service")


def get_conflict_service(request: Request) -> ConflictReportService:
    return _require_state(request, "conflict_service", "Conflict service")


def get_schedule_service(request: Request) -> ScheduleService:
    return _require_state(request, "schedule_service", "Schedule service")


def get_auth_service(request: Request) -> AuthService:
    service = getattr(request.app.state, "auth_service", None)
    if service is None:
        service = AuthService(settings=get_settings())
        request.app.state.auth_service = service
    return service


async def require_operator(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    auth_service: AuthService = Depends(get_auth_service),
) -> None:
    if not auth_service.auth_enabled:
        return
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header with Bearer token is required",
        )
    try:
        auth_service.validate_bearer_token(credentials.credentials)
    except (OperatorTokenNotConfiguredError, InvalidOperatorTokenError) as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
        ) from exc
