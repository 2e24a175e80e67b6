"""
Shared exceptions for the campaign hub.

Defines custom exception classes for different error scenarios.
"""

from .custom_exceptions import (
    BaseAPIException,
    ConfigurationError,
    NotFoundException,
    UpstreamError,
    ValidationException,
)

__all__ = [
    'BaseAPIException',
    'ConfigurationError',
    'NotFoundException',
    'UpstreamError',
    'ValidationException',
]
