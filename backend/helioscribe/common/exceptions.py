"""
Application error taxonomy and the FastAPI handlers that render it.

Every error leaves the API as ``{"success": false, "message": ...}`` plus any
extra fields the raiser attached (e.g. ``authMethod`` on provider mismatch).
"""

import logging
import traceback
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class AppError(Exception):
    """Base class for errors that map onto an HTTP status."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, status_code: int = None, **extra: Any):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.extra = extra

    def to_dict(self) -> dict:
        return {"success": False, "message": self.message, **self.extra}


class ValidationError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST


class AuthenticationError(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED


class AuthorizationError(AppError):
    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(AppError):
    status_code = status.HTTP_409_CONFLICT


class ExternalServiceError(AppError):
    """Bot-defense, email or provisioning failure."""


class InternalError(AppError):
    pass


def _format_validation_errors(exc: RequestValidationError) -> list:
    errors = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part != "body"]
        errors.append({
            "field": ".".join(loc),
            "msg": str(err.get("msg", "")).removeprefix("Value error, "),
        })
    return errors


def register_exception_handlers(app: FastAPI) -> None:
    """Install the handlers on an application instance."""

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"success": False, "errors": _format_validation_errors(exc)},
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        from helioscribe.common.config import settings

        logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=True)
        content = {"success": False, "message": "Internal Server Error"}
        if settings.is_development and settings.debug:
            content["stack"] = "".join(traceback.format_exception(exc))
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=content)
