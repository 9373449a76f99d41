"""Responders and FastAPI exception handlers for client and server errors."""
from __future__ import annotations

import logging
import traceback
from typing import Dict

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from servicekit import jsend
from servicekit.errors import (
    ClientError,
    FailedValidationError,
    MethodNotAllowedError,
    NotFoundError,
    RateLimitExceededError,
    client_error_payload,
)

LOGGER = logging.getLogger(__name__)

SERVER_ERROR_MESSAGE = "The server encountered a problem and could not process your request"


def log_error(request: Request, exc: BaseException) -> None:
    """Log ``exc`` along with details of the request that caused it."""

    LOGGER.error(
        str(exc) or exc.__class__.__name__,
        extra={
            "request_method": request.method,
            "request_url": str(request.url),
            "stack_trace": "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
        },
    )


def client_error_response(exc: ClientError) -> JSONResponse:
    return jsend.fail_response(exc.status_code, exc.data, headers=exc.headers)


def server_error_response(request: Request, exc: BaseException) -> JSONResponse:
    """Log the failure and send a generic 500 that discloses nothing about it."""

    log_error(request, exc)
    return jsend.error_response(500, SERVER_ERROR_MESSAGE)


async def rate_limit_exceeded_response(request: Request) -> JSONResponse:
    return client_error_response(RateLimitExceededError())


async def handle_client_error(request: Request, exc: ClientError) -> JSONResponse:
    return client_error_response(exc)


async def handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Translate the router's own HTTP errors into JSend fail responses."""

    if exc.status_code == 404:
        return client_error_response(NotFoundError())
    if exc.status_code == 405:
        response = client_error_response(MethodNotAllowedError(request.method))
        if exc.headers and "Allow" in exc.headers:
            response.headers["Allow"] = exc.headers["Allow"]
        return response
    if 400 <= exc.status_code < 500:
        detail = exc.detail if isinstance(exc.detail, str) else ""
        return jsend.fail_response(exc.status_code, client_error_payload(detail), headers=exc.headers)
    return server_error_response(request, exc)


async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors: Dict[str, str] = {}
    for item in exc.errors():
        location = [str(part) for part in item.get("loc", ()) if part not in ("body", "query", "path")]
        key = ".".join(location) or "body"
        errors.setdefault(key, item.get("msg", "is invalid"))
    return client_error_response(FailedValidationError(errors))


def install_exception_handlers(app) -> None:
    app.add_exception_handler(ClientError, handle_client_error)
    app.add_exception_handler(StarletteHTTPException, handle_http_exception)
    app.add_exception_handler(RequestValidationError, handle_request_validation)
