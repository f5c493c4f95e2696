"""
Custom Exception Classes for the Sayings search service

This module defines custom exceptions for better error handling and
consistent error responses across the application.
"""

from enum import Enum
from typing import Any

from fastapi import status


class ErrorCode(str, Enum):
    """Machine-readable error codes returned alongside error messages"""

    UNKNOWN_ERROR = "UNKNOWN_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    VALIDATION_FAILED = "VALIDATION_FAILED"
    AUTH_PERMISSION_DENIED = "AUTH_PERMISSION_DENIED"
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    RESOURCE_SEARCH_QUERY_NOT_FOUND = "RESOURCE_SEARCH_QUERY_NOT_FOUND"
    DATABASE_ERROR = "DATABASE_ERROR"
    SEARCH_INDEX_UNAVAILABLE = "SEARCH_INDEX_UNAVAILABLE"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"


class SayingsError(Exception):
    """Base exception class for all service exceptions"""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


# ============================================================================
# Authorization Exceptions
# ============================================================================


class AuthorizationError(SayingsError):
    """Raised when the caller lacks permission for an action"""

    def __init__(self, message: str = "You do not have permission to perform this action"):
        super().__init__(
            message=message,
            status_code=status.HTTP_403_FORBIDDEN,
            error_code=ErrorCode.AUTH_PERMISSION_DENIED,
        )


# ============================================================================
# Resource Not Found Exceptions
# ============================================================================


class ResourceNotFoundError(SayingsError):
    """Base class for resource not found errors"""

    def __init__(
        self,
        resource_type: str,
        resource_id: Any | None = None,
        error_code: ErrorCode = ErrorCode.RESOURCE_NOT_FOUND,
    ):
        message = f"{resource_type} not found"
        if resource_id is not None:
            message = f"{resource_type} with id '{resource_id}' not found"
        super().__init__(
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
            error_code=error_code,
            details={"resource_type": resource_type, "resource_id": resource_id},
        )


class SearchQueryNotFoundError(ResourceNotFoundError):
    """Raised when a click references a search query that was never stored"""

    def __init__(self, query_id: Any | None = None):
        super().__init__(
            resource_type="SearchQuery",
            resource_id=query_id,
            error_code=ErrorCode.RESOURCE_SEARCH_QUERY_NOT_FOUND,
        )


# ============================================================================
# Validation Exceptions
# ============================================================================


class ValidationError(SayingsError):
    """Raised when input validation fails"""

    def __init__(self, message: str, field: str | None = None, details: dict[str, Any] | None = None):
        error_details = details or {}
        if field:
            error_details["field"] = field
        super().__init__(
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            error_code=ErrorCode.VALIDATION_FAILED,
            details=error_details,
        )


# ============================================================================
# Database & Search Index Exceptions
# ============================================================================


class DatabaseError(SayingsError):
    """Raised when a database operation fails"""

    def __init__(self, message: str = "A database error occurred", operation: str | None = None):
        details = {"operation": operation} if operation else {}
        super().__init__(
            message=message,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            error_code=ErrorCode.DATABASE_ERROR,
            details=details,
        )


class IndexUnavailableError(SayingsError):
    """
    Raised by the full-text backend when a search index is missing.

    Search adapters catch this and fall back to substring scanning; it is
    never returned to API callers.
    """

    def __init__(self, index_name: str, dialect: str | None = None):
        self.index_name = index_name
        self.dialect = dialect
        super().__init__(
            message=f"Full-text index '{index_name}' is unavailable",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            error_code=ErrorCode.SEARCH_INDEX_UNAVAILABLE,
            details={"index": index_name, "dialect": dialect},
        )
