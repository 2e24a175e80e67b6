"""
Custom exception classes for standardized error handling.

Extends FastAPI's HTTPException with structured error information that the
registered handlers turn into the standard ``{error, details}`` payload.
"""

from typing import Any, Dict, List, Optional
from fastapi import HTTPException

from ..responses import ErrorDetail, HTTPStatusCodes


class BaseAPIException(HTTPException):
    """
    Base exception class for all API exceptions.

    Carries a machine-readable error code, a client-facing message and
    optional details that are safe to return to the caller.
    """

    def __init__(
        self,
        status_code: int,
        error_code: str,
        message: str,
        details: Optional[Any] = None,
        errors: Optional[List[ErrorDetail]] = None,
        headers: Optional[Dict[str, Any]] = None,
        **kwargs
    ):
        """
        Initialize base API exception.

        Args:
            status_code: HTTP status code
            error_code: Machine-readable error code
            message: Human-readable error message
            details: Caller-safe diagnostic payload
            errors: List of detailed errors
            headers: Optional HTTP headers
            **kwargs: Additional error context (logged, not returned)
        """
        self.error_code = error_code
        self.details = details
        self.errors = errors or []
        self.context = kwargs

        super().__init__(
            status_code=status_code,
            detail=message,
            headers=headers
        )

    def to_error_detail(self) -> ErrorDetail:
        """Convert exception to ErrorDetail object."""
        return ErrorDetail(
            code=self.error_code,
            message=self.detail,
            context=self.context or None
        )


class ConfigurationError(BaseAPIException):
    """A required credential or setting is absent (500).

    The client sees a generic message; the missing variable names travel in
    ``details`` so operators can fix the deployment.
    """

    def __init__(self, feature: str, missing: List[str], message: Optional[str] = None):
        self.feature = feature
        self.missing = list(missing)
        super().__init__(
            status_code=HTTPStatusCodes.INTERNAL_SERVER_ERROR,
            error_code="CONFIGURATION_ERROR",
            message="Server configuration error",
            details={
                "feature": feature,
                "missing": self.missing,
                "hint": message or f"Set {', '.join(self.missing)} to enable {feature}",
            },
        )


class ValidationException(BaseAPIException):
    """Malformed or missing caller input (400)."""

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        **kwargs
    ):
        errors = [ErrorDetail(code="VALIDATION_ERROR", message=message, field=field)]
        super().__init__(
            status_code=HTTPStatusCodes.BAD_REQUEST,
            error_code="VALIDATION_ERROR",
            message=message,
            details={"field": field} if field else None,
            errors=errors,
            **kwargs
        )


class NotFoundException(BaseAPIException):
    """Exception for resource not found errors (404)."""

    def __init__(
        self,
        resource: str,
        resource_id: str,
        message: Optional[str] = None,
        **kwargs
    ):
        default_message = f"{resource} '{resource_id}' not found"

        super().__init__(
            status_code=HTTPStatusCodes.NOT_FOUND,
            error_code="RESOURCE_NOT_FOUND",
            message=message or default_message,
            resource=resource,
            resource_id=str(resource_id),
            **kwargs
        )


class UpstreamError(BaseAPIException):
    """A third-party API answered with a non-success status.

    The response mirrors the upstream status when it is an error status and
    falls back to 502 otherwise.
    """

    def __init__(
        self,
        service: str,
        message: str,
        upstream_status: Optional[int] = None,
        details: Optional[Any] = None,
        **kwargs
    ):
        self.service = service
        self.upstream_status = upstream_status
        status_code = upstream_status if upstream_status and upstream_status >= 400 else HTTPStatusCodes.BAD_GATEWAY
        super().__init__(
            status_code=status_code,
            error_code="UPSTREAM_ERROR",
            message=message,
            details=details,
            service=service,
            upstream_status=upstream_status,
            **kwargs
        )
