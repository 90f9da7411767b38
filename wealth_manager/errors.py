from __future__ import annotations

from fastapi import Request
from fastapi.responses import JSONResponse

from wealth_manager.schemas import CsvRowError


class WealthManagerError(Exception):
    """Base class for errors raised by the service layer."""

    status_code = 500


class NotFoundError(WealthManagerError):
    status_code = 404


class ValidationFailedError(WealthManagerError):
    status_code = 422


class CsvImportError(ValidationFailedError):
    """Raised when an uploaded CSV has one or more invalid rows."""

    def __init__(self, message: str, errors: list[CsvRowError] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or []


class MarketDataError(WealthManagerError):
    status_code = 502


class SchedulerStateError(WealthManagerError):
    status_code = 409


async def wealth_manager_error_handler(request: Request, exc: Exception) -> JSONResponse:
    status_code = getattr(exc, "status_code", 500)
    content: dict[str, object] = {"detail": str(exc)}
    if isinstance(exc, CsvImportError):
        content["errors"] = [error.model_dump() for error in exc.errors]
    return JSONResponse(status_code=status_code, content=content)
