"""
Exception handling
==================

Error-to-message conversion and the handlers that render every failure as the
``{success, message}`` JSON envelope.
"""

import logging
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError
from starlette.exceptions import HTTPException
from starlette.responses import JSONResponse

logger = logging.getLogger(__name__)

DEFAULT_ERROR_MESSAGE = "Something went wrong. Please try again."


class StorageError(Exception):
    """Raised when the remote object store rejects an asset operation."""

    def __init__(self, message: str, assets: Optional[list] = None):
        super().__init__(message)
        self.message = message
        self.assets = assets or []


def get_error_message(error: Any, fallback: Optional[str] = None) -> str:
    """Best-effort conversion of anything raised into a client-facing string."""
    if error is None:
        return "Unknown error occurred"

    if isinstance(error, str):
        return error

    if isinstance(error, HTTPException) and isinstance(error.detail, str):
        return error.detail

    if isinstance(error, (ValidationError, RequestValidationError)):
        return ", ".join(e.get("msg", "") for e in error.errors())

    message = getattr(error, "message", None)
    if isinstance(message, str) and message:
        return message

    text = str(error)
    if text:
        return text

    return fallback or DEFAULT_ERROR_MESSAGE


def _envelope(status_code: int, message: str, **extra) -> JSONResponse:
    content = {"success": False, "message": message}
    content.update(extra)
    return JSONResponse(status_code=status_code, content=content)


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.detail}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": get_error_message(exc)},
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = [
        {
            "field": ".".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
        }
        for error in exc.errors()
    ]
    logger.warning(f"Validation error on {request.url.path}: {len(errors)} errors")
    return _envelope(400, "Request validation failed", errors=errors)


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(
        f"Unhandled exception on {request.method} {request.url.path}: {type(exc).__name__}"
    )
    return _envelope(500, get_error_message(exc, DEFAULT_ERROR_MESSAGE))


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)


def internal_error(db, error: Exception, fallback: str) -> HTTPException:
    """Roll back the request's session and build the 500 raised for ``error``."""
    db.rollback()
    logger.exception(fallback)
    return HTTPException(status_code=500, detail=get_error_message(error, fallback))
