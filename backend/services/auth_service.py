"""Operator token authentication for feed ingest endpoints."""

from __future__ import annotations

import secrets
from typing import Optional

from backend.utils.config import Settings, get_settings


class AuthenticationError(Exception):
    """Base authentication failure."""


class OperatorTokenNotConfiguredError(AuthenticationError):
    """Raised when OPERATOR_TOKEN is missing."""


class InvalidOperatorTokenError(AuthenticationError):
    """Raised when a provided token or session is invalid."""


class AuthService:
    """Exchanges the operator token for a session bearer and validates it.

    Only one session is live at a time: each successful login replaces the
    previous bearer.
    """

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings or get_settings()
        self._session_token: str | None = None

    @property
    def auth_enabled(self) -> bool:
        return bool(self._settings.operator_token)

    def _expected_token(self) -> str:
        if not self._settings.operator_token:
            raise OperatorTokenNotConfiguredError(
                "OPERATOR_TOKEN is not configured. Set OPERATOR_TOKEN in environment variables."
            )
        return self._settings.operator_token

    def login(self, provided_token: str) -> str:
        expected = self._expected_token()
        if not secrets.compare_digest(provided_token, expected):
            raise InvalidOperatorTokenError("Invalid operator token")
        self._session_token = secrets.token_urlsafe(32)
        return self._session_token

    def validate_bearer_token(self, bearer_token: str) -> None:
        if not self.auth_enabled:
            return
        if self._session_token is None:
            raise InvalidOperatorTokenError("No active session. Login first.")
        if not secrets.compare_digest(bearer_token, self._session_token):
            raise InvalidOperatorTokenError("Invalid or expired bearer token. Login first.")
