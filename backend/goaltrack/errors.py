"""Application error taxonomy shared by services and routers."""

from __future__ import annotations

from fastapi import HTTPException


class AppError(Exception):
    """Base application error with message, HTTP status and optional data."""

    status_code = 500

    def __init__(self, message: str, data: dict | None = None):
        self.message = message
        self.data = data or {}
        super().__init__(self.message)


class ValidationError(AppError, ValueError):
    """Malformed, missing or out-of-range input."""

    status_code = 400


class NotFound(AppError, LookupError):
    """Referenced entity does not exist."""

    status_code = 404


class Forbidden(AppError):
    """Entity exists but belongs to another user."""

    status_code = 403


class Unauthenticated(AppError):
    status_code = 401


class Conflict(AppError):
    """Request clashes with current state (duplicates, referenced goals)."""

    status_code = 409


class ProviderUnavailable(AppError):
    """Advice provider cannot be reached. Never leaves the advice adapter."""

    status_code = 503


class InternalError(AppError):
    status_code = 500


def http_error(exc: AppError) -> HTTPException:
    """Translate an application error into the matching HTTP response."""
    return HTTPException(status_code=exc.status_code, detail=exc.message)
