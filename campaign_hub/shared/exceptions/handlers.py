"""
Exception handlers for the FastAPI application.

Every failure leaves the API in the same ``{success: false, error, details?}``
shape, with the specifics logged next to the request id.
"""

import logging
from datetime import datetime, timezone
from http import HTTPStatus
from typing import Any, Dict, List, Union
from uuid import uuid4

from fastapi import Request, HTTPException
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from ...core.request_context import get_request_id
from ..responses import (
    error_response,
    validation_error_response,
    ErrorDetail,
    HTTPStatusCodes
)
from .custom_exceptions import BaseAPIException, ConfigurationError

logger = logging.getLogger(__name__)

_SENSITIVE_FIELDS = ("password", "secret", "token")


def _current_request_id() -> str:
    """Reuse the middleware's request id, or mint one for out-of-band errors."""
    request_id = get_request_id()
    if request_id:
        return request_id
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    return f"req_{timestamp}_{uuid4().hex[:8]}"


def _log_extra(request: Request, request_id: str, **extra: Any) -> Dict[str, Any]:
    return {
        "request_id": request_id,
        "path": request.url.path,
        "method": request.method,
        **extra,
    }


def _error_code_for(status_code: int) -> str:
    if status_code == HTTPStatusCodes.UNPROCESSABLE_ENTITY:
        return "VALIDATION_ERROR"
    try:
        return HTTPStatus(status_code).name
    except ValueError:
        return f"HTTP_{status_code}"


def _safe_input(field_path: str, value: Any) -> Any:
    if value is None:
        return None
    if any(name in field_path.lower() for name in _SENSITIVE_FIELDS):
        return "[REDACTED]"
    text = str(value)
    if len(text) > 100:
        return text[:100] + "..."
    return value if isinstance(value, (str, int, float, bool)) else text


def _field_errors(exc: RequestValidationError) -> List[Dict[str, Any]]:
    """Flatten pydantic errors to ``{code, message, field, context}`` entries."""
    errors = []
    for error in exc.errors():
        # drop the leading "body" / "query" segment
        field_path = ".".join(str(loc) for loc in error["loc"][1:]) or "unknown"
        errors.append({
            "code": "VALIDATION_ERROR",
            "message": error["msg"],
            "field": field_path,
            "context": {
                "type": error["type"],
                "value": _safe_input(field_path, error.get("input")),
            },
        })
    return errors


async def base_api_exception_handler(request: Request, exc: BaseAPIException) -> JSONResponse:
    """
    Handle BaseAPIException and its subclasses.

    Server-side failures (configuration, upstream) log at error level;
    caller mistakes log as warnings.
    """
    request_id = _current_request_id()

    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        f"API Exception [{request_id}]: {exc.error_code} - {exc.detail}",
        extra=_log_extra(
            request,
            request_id,
            status_code=exc.status_code,
            error_code=exc.error_code,
            context=exc.context,
            details=exc.details,
        ),
    )
    if isinstance(exc, ConfigurationError):
        logger.error("Missing configuration for %s: %s", exc.feature, ", ".join(exc.missing))

    return error_response(
        message=exc.detail,
        status_code=exc.status_code,
        details=exc.details,
        errors=exc.errors or [exc.to_error_detail()],
        request_id=request_id,
        error_type=exc.error_code,
    )


async def http_exception_handler(
    request: Request,
    exc: Union[HTTPException, StarletteHTTPException]
) -> JSONResponse:
    """Routing errors (unknown path, wrong method) in the standard shape."""
    request_id = _current_request_id()
    logger.warning(
        f"HTTP Exception [{request_id}]: {exc.status_code} - {exc.detail}",
        extra=_log_extra(request, request_id, status_code=exc.status_code),
    )

    error_code = _error_code_for(exc.status_code)
    message = str(exc.detail) if exc.detail else f"HTTP {exc.status_code} Error"
    return error_response(
        message=message,
        status_code=exc.status_code,
        errors=[ErrorDetail(code=error_code, message=message)],
        request_id=request_id,
        error_type=error_code,
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    request_id = _current_request_id()
    errors = _field_errors(exc)

    logger.warning(
        f"Validation Error [{request_id}]: {len(errors)} validation errors",
        extra=_log_extra(request, request_id, fields=[e["field"] for e in errors]),
    )
    return validation_error_response(
        errors=errors,
        message=f"Validation failed for {len(errors)} field(s)",
        request_id=request_id,
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Catch-all for anything the handlers above do not cover.

    The full traceback goes to the log; the caller only sees the exception
    type in debug mode.
    """
    request_id = _current_request_id()
    logger.exception(
        f"Unhandled Exception [{request_id}]: {type(exc).__name__}: {exc}",
        extra=_log_extra(request, request_id, exception_type=type(exc).__name__),
    )

    settings = getattr(request.app.state, "settings", None)
    details = None
    if settings is not None and settings.debug:
        details = {"exception_type": type(exc).__name__, "message": str(exc)[:200]}

    return error_response(
        message="Internal server error",
        status_code=HTTPStatusCodes.INTERNAL_SERVER_ERROR,
        details=details,
        errors=[ErrorDetail(code="INTERNAL_SERVER_ERROR", message="An unexpected error occurred")],
        request_id=request_id,
        error_type="INTERNAL_SERVER_ERROR",
    )


__all__ = [
    "base_api_exception_handler",
    "http_exception_handler",
    "validation_exception_handler",
    "general_exception_handler"
]
