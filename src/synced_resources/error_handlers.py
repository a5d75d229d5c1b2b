"""Uniform error bodies: ``{error, message, request_id, details}``.

Record validation failures of mutating actions are not routed through here;
responders render those as ``{"errors": {...}}`` with 422.
"""

from __future__ import annotations

import logging
from typing import cast

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from synced_resources.responders import UnreachableOutcomeError
from synced_resources.schemas import ErrorResponse

logger = logging.getLogger(__name__)

# Statuses the items endpoints and the router itself can produce.
_ERROR_CODES: dict[int, str] = {
    400: "bad_request",
    404: "not_found",
    405: "method_not_allowed",
    422: "validation_error",
}


def error_code_for(status_code: int) -> str:
    return _ERROR_CODES.get(status_code, f"http_{status_code}")


def _request_id(request: Request) -> str | None:
    return getattr(request.state, "request_id", None)


def _error_response(
    request: Request,
    status_code: int,
    *,
    error: str,
    message: str,
    details: object | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    payload = ErrorResponse(error=error, message=message, request_id=_request_id(request), details=details)
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(payload, exclude_none=True),
        headers=headers,
    )


async def _http_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    http_exc = cast(StarletteHTTPException, exc)
    return _error_response(
        request,
        http_exc.status_code,
        error=error_code_for(http_exc.status_code),
        message=str(http_exc.detail),
        headers=getattr(http_exc, "headers", None),
    )


async def _validation_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    validation_exc = cast(RequestValidationError, exc)
    return _error_response(
        request,
        422,
        error="validation_error",
        message="Request validation error",
        details=validation_exc.errors(),
    )


async def _unreachable_outcome_handler(request: Request, exc: Exception) -> JSONResponse:
    # A responder was handed a mutation outcome it cannot render; a server bug.
    logger.error(
        "unreachable outcome request_id=%s method=%s path=%s: %s",
        _request_id(request),
        request.method,
        request.url.path,
        exc,
    )
    return _error_response(request, 500, error="internal_error", message="Internal server error")


async def _unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(
        "unhandled exception request_id=%s method=%s path=%s",
        _request_id(request),
        request.method,
        request.url.path,
        exc_info=exc,
    )
    return _error_response(request, 500, error="internal_error", message="Internal server error")


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)
    app.add_exception_handler(UnreachableOutcomeError, _unreachable_outcome_handler)
    app.add_exception_handler(Exception, _unhandled_exception_handler)
