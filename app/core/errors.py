import logging
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.status import (
    HTTP_400_BAD_REQUEST,
    HTTP_404_NOT_FOUND,
    HTTP_409_CONFLICT,
    HTTP_500_INTERNAL_SERVER_ERROR,
    HTTP_502_BAD_GATEWAY,
)

logger = logging.getLogger(__name__)


class AppError(Exception):
    """
    Base error of the API. Every subclass is rendered as ``{"error": ..., "details": ...}``.
    """

    status_code: int = HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, details: Any = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.details = details
        if status_code is not None:
            self.status_code = status_code


class ValidationError(AppError):
    """Missing or unusable input."""

    status_code = HTTP_400_BAD_REQUEST


class NotFoundError(AppError):
    """Referenced book, progress row or object is absent."""

    status_code = HTTP_404_NOT_FOUND


class ConflictError(AppError):
    """State changed under us, or the requested transition is not allowed."""

    status_code = HTTP_409_CONFLICT


class UpstreamError(AppError):
    """Storage, database or LLM call failed."""

    status_code = HTTP_500_INTERNAL_SERVER_ERROR


class ParseError(AppError):
    """LLM reply is not usable structured data."""

    status_code = HTTP_502_BAD_GATEWAY


def error_payload(message: str, details: Any = None) -> dict:
    return {"error": message, "details": details}


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def _app_error(request: Request, exc: AppError):
        if exc.status_code >= 500:
            logger.error("%s %s -> %s: %s", request.method, request.url.path, exc.status_code, exc.message)
        else:
            logger.info("%s %s -> %s: %s", request.method, request.url.path, exc.status_code, exc.message)
        return JSONResponse(status_code=exc.status_code, content=error_payload(exc.message, exc.details))

    @app.exception_handler(RequestValidationError)
    async def _request_validation(request: Request, exc: RequestValidationError):
        # only serializable keys; "ctx" may hold exception instances
        details = [
            {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
            for err in exc.errors()
        ]
        return JSONResponse(
            status_code=HTTP_400_BAD_REQUEST,
            content=error_payload("Invalid request", details),
        )

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=HTTP_500_INTERNAL_SERVER_ERROR,
            content=error_payload("Internal server error", str(exc)),
        )
