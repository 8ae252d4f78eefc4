"""Gestion standardisée des erreurs API avec enveloppes d'erreur.

Ce module fournit une gestion centralisée des erreurs: enveloppe JSON unique
(`{"error", "success": false, "code", "trace_id"}`), codes d'erreur cohérents et correspondance
entre les erreurs du pipeline de lecture et les statuts HTTP.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from palmreader.core.http_constants import (
    HTTP_BAD_REQUEST,
    HTTP_INTERNAL_SERVER_ERROR,
    HTTP_NOT_FOUND,
)
from palmreader.domain.errors import ErrorKind, ReadingError

log = structlog.get_logger(__name__)


@dataclass
class ErrorEnvelope:
    """Standard error envelope for API responses."""

    code: str
    message: str
    trace_id: str | None = None
    details: dict[str, Any] | None = None


class ErrorCodes:
    """Standard error codes for the API."""

    # Client errors (4xx)
    BAD_REQUEST = "BAD_REQUEST"
    MISSING_INPUT = "MISSING_INPUT"
    NOT_FOUND = "NOT_FOUND"
    METHOD_NOT_ALLOWED = "METHOD_NOT_ALLOWED"

    # Server errors (5xx)
    INTERNAL_ERROR = "INTERNAL_ERROR"
    PROVIDER_ERROR = "PROVIDER_ERROR"
    PARSE_ERROR = "JSON_ERROR"
    INCOMPLETE_CONTENT = "INCOMPLETE_CONTENT"


# Erreur du pipeline -> (statut HTTP, code d'erreur)
READING_ERROR_STATUS: dict[ErrorKind, tuple[int, str]] = {
    ErrorKind.MISSING_INPUT: (HTTP_BAD_REQUEST, ErrorCodes.MISSING_INPUT),
    ErrorKind.PROVIDER_ERROR: (HTTP_INTERNAL_SERVER_ERROR, ErrorCodes.PROVIDER_ERROR),
    ErrorKind.PARSE_ERROR: (HTTP_INTERNAL_SERVER_ERROR, ErrorCodes.PARSE_ERROR),
    ErrorKind.INCOMPLETE_CONTENT: (HTTP_INTERNAL_SERVER_ERROR, ErrorCodes.INCOMPLETE_CONTENT),
}


class APIError(HTTPException):
    """Custom API error with standard envelope."""

    def __init__(
        self,
        status_code: int,
        code: str,
        message: str,
        trace_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize an API error with standardized envelope."""
        super().__init__(status_code=status_code, detail=message)
        self.code = code
        self.message = message
        self.trace_id = trace_id
        self.details = details


def create_error_response(
    status_code: int,
    code: str,
    message: str,
    trace_id: str | None = None,
    details: dict[str, Any] | None = None,
) -> JSONResponse:
    """Create a standardized error response (never carries a `reading`)."""
    envelope = ErrorEnvelope(code=code, message=message, trace_id=trace_id, details=details)
    return JSONResponse(
        status_code=status_code,
        content={
            "error": envelope.message,
            "success": False,
            "code": envelope.code,
            "trace_id": envelope.trace_id,
            **({"details": envelope.details} if envelope.details else {}),
        },
    )


def extract_trace_id(request: Request) -> str | None:
    """Extract trace ID from request state (set by middleware) or headers."""
    trace_id = getattr(request.state, "request_id", None)
    if trace_id:
        return trace_id
    return request.headers.get("X-Request-ID") or request.headers.get("X-Trace-ID")


def handle_api_error(request: Request, exc: APIError) -> JSONResponse:
    """Handle APIError exceptions with standard envelope."""
    trace_id = extract_trace_id(request) or exc.trace_id
    log.warning(
        "api_error",
        code=exc.code,
        error_message=exc.message,
        status_code=exc.status_code,
        trace_id=trace_id,
        details=exc.details,
    )
    return create_error_response(
        status_code=exc.status_code,
        code=exc.code,
        message=exc.message,
        trace_id=trace_id,
        details=exc.details,
    )


def handle_reading_error(request: Request, exc: ReadingError) -> JSONResponse:
    """Map pipeline errors (strict policy) to HTTP responses."""
    status_code, code = READING_ERROR_STATUS.get(
        exc.kind, (HTTP_INTERNAL_SERVER_ERROR, ErrorCodes.INTERNAL_ERROR)
    )
    trace_id = extract_trace_id(request)
    details: dict[str, Any] | None = None
    issues = getattr(exc, "issues", None)
    missing = getattr(exc, "missing", None)
    if issues:
        details = {"issues": issues}
    elif missing:
        details = {"missing": missing}
    log_method = log.warning if status_code < HTTP_INTERNAL_SERVER_ERROR else log.error
    log_method(
        "palm_reading_failed",
        code=code,
        error_message=exc.message,
        status_code=status_code,
        provider_status=getattr(exc, "status", None),
        trace_id=trace_id,
    )
    return create_error_response(status_code, code, exc.message, trace_id, details)


def handle_http_exception(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle FastAPI HTTPException with standard envelope."""
    error_codes = {
        HTTP_BAD_REQUEST: ErrorCodes.BAD_REQUEST,
        HTTP_NOT_FOUND: ErrorCodes.NOT_FOUND,
        405: ErrorCodes.METHOD_NOT_ALLOWED,
        HTTP_INTERNAL_SERVER_ERROR: ErrorCodes.INTERNAL_ERROR,
    }
    code = error_codes.get(exc.status_code, "HTTP_ERROR")
    trace_id = extract_trace_id(request)
    log.warning(
        "http_exception",
        code=code,
        error_message=str(exc.detail),
        status_code=exc.status_code,
        trace_id=trace_id,
    )
    return create_error_response(exc.status_code, code, str(exc.detail), trace_id)


def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed JSON or wrong field types are client errors (400), not 422."""
    paths = {".".join(str(p) for p in err.get("loc", ())[1:]) for err in exc.errors()}
    fields = sorted(p for p in paths if p)
    message = "Invalid request body" + (f": {', '.join(fields)}" if fields else "")
    log.warning("request_validation_error", fields=fields)
    return create_error_response(
        HTTP_BAD_REQUEST, ErrorCodes.BAD_REQUEST, message, extract_trace_id(request)
    )


def handle_generic_exception(request: Request, exc: Exception) -> JSONResponse:
    """Handle generic exceptions with standard envelope."""
    trace_id = extract_trace_id(request)
    log.error(
        "unexpected_error",
        trace_id=trace_id,
        exception_type=type(exc).__name__,
        exception_message=str(exc),
        exc_info=True,
    )
    return create_error_response(
        HTTP_INTERNAL_SERVER_ERROR,
        ErrorCodes.INTERNAL_ERROR,
        "An unexpected error occurred",
        trace_id,
    )


def register_error_handlers(app: FastAPI) -> None:
    """Enregistre les gestionnaires d'erreurs sur l'application."""
    app.add_exception_handler(APIError, handle_api_error)
    app.add_exception_handler(ReadingError, handle_reading_error)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(HTTPException, handle_http_exception)
    app.add_exception_handler(Exception, handle_generic_exception)


def bad_request(
    message: str, trace_id: str | None = None, details: dict[str, Any] | None = None
) -> APIError:
    """Create a 400 Bad Request error."""
    return APIError(HTTP_BAD_REQUEST, ErrorCodes.BAD_REQUEST, message, trace_id, details)

