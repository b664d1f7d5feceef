"""
Custom HTTP exceptions with error codes.

Extends FastAPI's HTTPException with standardized error codes
for consistent API error responses.

Example:
    from common.utils import NotFoundException, ValidationException

    @app.get("/deviations/{id}")
    async def get_deviation(id: str):
        deviation = await store.get_by_id(id)
        if not deviation:
            raise NotFoundException("Deviation not found", code="DEVIATION_NOT_FOUND")
        return deviation
"""

from typing import Optional, Any, Dict, List
from fastapi import HTTPException


class APIException(HTTPException):
    """
    Base API exception with error code support.

    Provides consistent error response format across the API.
    """

    def __init__(
        self,
        status_code: int,
        message: str,
        code: Optional[str] = None,
        details: Optional[Any] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        """
        Create an API exception.

        Args:
            status_code: HTTP status code
            message: Human-readable error message
            code: Machine-readable error code
            details: Additional error details
            headers: Optional response headers
        """
        detail: Dict[str, Any] = {"message": message}

        if code:
            detail["code"] = code

        if details is not None:
            detail["details"] = details

        super().__init__(
            status_code=status_code,
            detail=detail,
            headers=headers,
        )
        self.message = message
        self.code = code

    def __str__(self) -> str:
        return self.message


class UnauthorizedException(APIException):
    """401 Unauthorized - Missing or invalid authentication."""

    def __init__(
        self,
        message: str = "Unauthorized",
        code: str = "UNAUTHORIZED",
        details: Optional[Any] = None,
    ):
        super().__init__(401, message, code, details)


class ForbiddenException(APIException):
    """403 Forbidden - Valid auth but insufficient permissions."""

    def __init__(
        self,
        message: str = "Forbidden",
        code: str = "FORBIDDEN",
        details: Optional[Any] = None,
    ):
        super().__init__(403, message, code, details)


class NotFoundException(APIException):
    """404 Not Found - Resource doesn't exist."""

    def __init__(
        self,
        message: str = "Not found",
        code: str = "NOT_FOUND",
        details: Optional[Any] = None,
    ):
        super().__init__(404, message, code, details)


class ValidationException(APIException):
    """422 Validation Error - Request validation failed."""

    def __init__(
        self,
        message: str = "Validation error",
        code: str = "VALIDATION_ERROR",
        details: Optional[Any] = None,
        errors: Optional[list] = None,
    ):
        detail_info = details
        if errors:
            detail_info = {"errors": errors, **(details or {})}
        super().__init__(422, message, code, detail_info)


class GuardrailViolationError(APIException):
    """
    400 Guardrail Violation - Content crossed the wellbeing policy boundary.

    Raised when a request or a would-be AI output contains disciplinary,
    ranking or grading language. This is a policy rejection, not a
    transient fault: callers must stop and never retry.

    Only policy categories are exposed to clients, never the matching rules.
    """

    def __init__(
        self,
        categories: List[str],
        message: Optional[str] = None,
        code: str = "GUARDRAIL_VIOLATION",
    ):
        self.categories = sorted(set(categories))
        if message is None:
            message = (
                "GUARDRAIL VIOLATION: this request touches prohibited "
                f"{', '.join(self.categories)} territory. All outputs are "
                "advisory only and focused on wellbeing support."
            )
        super().__init__(400, message, code, {"categories": self.categories})
