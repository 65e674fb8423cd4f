"""Domain exceptions and the exception handlers that render them.

Every error leaving the API has the same JSON shape::

    {"timestamp": ..., "status": 404, "error": "Not Found",
     "message": "...", "path": "/api/v1/...", "validation_errors": [...]}

``validation_errors`` is only present for request validation failures.
"""

from __future__ import annotations

from datetime import datetime, timezone
from http import HTTPStatus
from typing import Any

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from storefront.core.db_errors import integrity_message


class StorefrontError(Exception):
    """Base class for errors that map onto an HTTP status."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ObjectNotFound(StorefrontError):
    status_code = 404


class InsufficientPermission(StorefrontError):
    status_code = 403


class IllegalUserArgument(StorefrontError):
    status_code = 400


class AuthenticationFailed(StorefrontError):
    status_code = 401


class ExternalServiceError(StorefrontError):
    status_code = 502


def error_body(
    status_code: int,
    message: str,
    path: str,
    validation_errors: list[dict[str, Any]] | None = None,
) -> dict[str, Any]:
    try:
        reason = HTTPStatus(status_code).phrase
    except ValueError:
        reason = "Error"
    body: dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "status": status_code,
        "error": reason,
        "message": message,
        "path": path,
    }
    if validation_errors is not None:
        body["validation_errors"] = validation_errors
    return body


def _respond(request: Request, status_code: int, message: str, **kwargs: Any) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(error_body(status_code, message, request.url.path, **kwargs)),
    )


async def storefront_error_handler(request: Request, exc: StorefrontError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.bind(path=request.url.path, error=exc.message).error(
            "storefront_error"
        )
    return _respond(request, exc.status_code, exc.message)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        details.append(
            {
                "field": ".".join(loc),
                "rejected_value": err.get("input"),
                "message": err.get("msg", ""),
            }
        )
    return _respond(request, 400, "Invalid data provided", validation_errors=details)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    response = _respond(request, exc.status_code, str(exc.detail))
    if exc.headers:
        response.headers.update(exc.headers)
    return response


async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    logger.bind(path=request.url.path, error=str(exc.orig)).warning("integrity_error")
    return _respond(request, 400, integrity_message(exc))


async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.bind(path=request.url.path).opt(exception=exc).error("database_error")
    return _respond(request, 400, "Database error while processing the request")


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.bind(path=request.url.path).opt(exception=exc).error("unhandled_error")
    return _respond(request, 500, "Internal server error")


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StorefrontError, storefront_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(IntegrityError, integrity_error_handler)
    app.add_exception_handler(SQLAlchemyError, database_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
