"""
Standard HTTP response formats and status code system.

Provides consistent response structures for the JSON endpoints. Error
responses always carry ``error`` (summary) and, when available, ``details``.
"""

from typing import Any, Dict, List, Optional, Union
from datetime import datetime, timezone
from enum import Enum
from pydantic import BaseModel, Field, ConfigDict
from fastapi import status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class ResponseStatus(str, Enum):
    """Standard response status values."""
    SUCCESS = "success"
    ERROR = "error"


class ErrorDetail(BaseModel):
    """Detailed error information."""
    code: str = Field(..., description="Error code for programmatic handling")
    message: str = Field(..., description="Human-readable error message")
    field: Optional[str] = Field(None, description="Field name for validation errors")
    context: Optional[Dict[str, Any]] = Field(None, description="Additional error context")


class ErrorResponse(BaseModel):
    """
    Standard error response format.

    Used for validation errors, configuration errors, upstream failures
    and unexpected exceptions alike.
    """
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "success": False,
                "error": "Invalid email format",
                "details": {"field": "email"},
                "errors": [
                    {
                        "code": "VALIDATION_ERROR",
                        "message": "Invalid email format",
                        "field": "email"
                    }
                ],
                "timestamp": "2024-01-25T12:00:00Z",
                "request_id": "req_20240125_120000_ab12cd34"
            }
        }
    )

    success: bool = Field(default=False, description="Always false for errors")
    error: str = Field(..., description="Summary error message")
    details: Optional[Any] = Field(None, description="Caller-safe diagnostic payload")
    errors: List[ErrorDetail] = Field(default_factory=list, description="List of error details")
    timestamp: str = Field(default_factory=_utc_timestamp, description="Error timestamp")
    status: ResponseStatus = Field(default=ResponseStatus.ERROR)
    request_id: Optional[str] = Field(None, description="Request tracking ID")
    error_type: Optional[str] = Field(None, description="Error classification")


class HTTPStatusCodes:
    """HTTP status codes used across the API."""

    OK = status.HTTP_200_OK
    CREATED = status.HTTP_201_CREATED
    ACCEPTED = status.HTTP_202_ACCEPTED

    BAD_REQUEST = status.HTTP_400_BAD_REQUEST
    NOT_FOUND = status.HTTP_404_NOT_FOUND
    METHOD_NOT_ALLOWED = status.HTTP_405_METHOD_NOT_ALLOWED
    UNPROCESSABLE_ENTITY = 422

    INTERNAL_SERVER_ERROR = status.HTTP_500_INTERNAL_SERVER_ERROR
    BAD_GATEWAY = status.HTTP_502_BAD_GATEWAY
    SERVICE_UNAVAILABLE = status.HTTP_503_SERVICE_UNAVAILABLE
    GATEWAY_TIMEOUT = status.HTTP_504_GATEWAY_TIMEOUT


def success_response(
    payload: Dict[str, Any],
    message: Optional[str] = None,
    status_code: int = HTTPStatusCodes.OK,
) -> JSONResponse:
    """
    Create a success response.

    The payload keys are returned at the top level next to ``success`` so
    callers read ``sent`` or ``hasSubscribed`` directly.
    """
    content: Dict[str, Any] = {"success": True}
    if message:
        content["message"] = message
    content.update(payload)
    return JSONResponse(content=jsonable_encoder(content), status_code=status_code)


def error_response(
    message: str,
    status_code: int = HTTPStatusCodes.BAD_REQUEST,
    details: Optional[Any] = None,
    errors: Optional[List[Union[ErrorDetail, Dict[str, Any]]]] = None,
    **kwargs
) -> JSONResponse:
    """
    Create a standard error response.

    Args:
        message: Error summary message
        status_code: HTTP status code (default 400)
        details: Caller-safe diagnostic payload
        errors: List of error details
        **kwargs: Additional response fields (request_id, error_type)

    Returns:
        JSONResponse with error format
    """
    error_details = []
    for error in errors or []:
        if isinstance(error, dict):
            error_details.append(ErrorDetail(**error))
        else:
            error_details.append(error)

    response = ErrorResponse(
        error=message,
        details=details,
        errors=error_details,
        **kwargs
    )
    return JSONResponse(
        content=jsonable_encoder(response.model_dump(exclude_none=True)),
        status_code=status_code
    )


def validation_error_response(
    errors: List[Dict[str, Any]],
    message: str = "Validation failed",
    **kwargs
) -> JSONResponse:
    """Create a 422 response for request-schema validation failures."""
    return error_response(
        message=message,
        status_code=HTTPStatusCodes.UNPROCESSABLE_ENTITY,
        details={"fields": [e.get("field") for e in errors]},
        errors=errors,
        error_type="VALIDATION_ERROR",
        **kwargs
    )
