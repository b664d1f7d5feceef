"""
Common library for reusable infrastructure components.

This package provides generic modules that can be used across
multiple projects:

- database: Async MongoDB connection manager (Motor)
- utils: Standard responses and exceptions
- config: Base settings class
"""

from common.database import MongoDB
from common.utils import (
    success_response,
    error_response,
    APIException,
    UnauthorizedException,
    ForbiddenException,
    NotFoundException,
    ValidationException,
    GuardrailViolationError,
)
from common.config import BaseAppSettings

__all__ = [
    # Database
    "MongoDB",
    # Utils
    "success_response",
    "error_response",
    "APIException",
    "UnauthorizedException",
    "ForbiddenException",
    "NotFoundException",
    "ValidationException",
    "GuardrailViolationError",
    # Config
    "BaseAppSettings",
]
