"""
app.py: FastAPI application factory and startup lifecycle.

This is the ASGI application object imported by uvicorn.
It wires all services, registers routers, and runs startup initialization.

Usage (via launcher):
    python main.py

Usage (direct uvicorn):
    uvicorn app:app --reload
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from backend.controllers.booking_controller import router as booking_router
from backend.controllers.schedule_controller import router as schedule_router
from backend.repository.data_repository import DataRepository
from backend.services.auth_service import AuthService
from backend.services.availability_service import RoomSearchService
from backend.services.booking_service import BookingService
from backend.services.conflict_service import ConflictReportService
from backend.services.schedule_service import ScheduleService
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build and wire the FastAPI application.

    Every service shares one repository and is exposed on app.state for the
    dependency providers in backend.controllers.dependencies.
    """
    settings = settings or get_settings()

    repository = DataRepository(settings)
    booking_service = BookingService(repository=repository, settings=settings)
    search_service = RoomSearchService(repository=repository, settings=settings)
    conflict_service = ConflictReportService(repository=repository, settings=settings)
    schedule_service = ScheduleService(repository=repository, settings=settings)
    auth_service = AuthService(settings=settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Run startup initialization before accepting requests."""
        _startup(app, settings)
        yield

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        lifespan=lifespan,
    )

    app.include_router(booking_router)
    app.include_router(schedule_router)

    app.state.repository = repository
    app.state.booking_service = booking_service
    app.state.search_service = search_service
    app.state.conflict_service = conflict_service
    app.state.schedule_service = schedule_service
    app.state.auth_service = auth_service

    return app


def _startup(app: FastAPI, settings: Settings) -> None:
    """
    Idempotent startup sequence. Safe to re-run on server restarts.

    Schema must exist before the demo catalog is seeded.
    """
    repository: DataRepository = app.state.repository

    logger.info("Startup: initializing database schema")
    repository.initialize_database()

    if settings.seed_demo_data:
        logger.info("Startup: seeding demo rooms and bookings (skipped if Rooms table not empty)")
        repository.seed_demo_data()

    logger.info("Startup complete, system ready")


# Module-level app object for uvicorn
app = create_app()
