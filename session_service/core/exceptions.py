"""
Custom exceptions for the Session Service.

This module provides the error taxonomy surfaced by the session layer.
All exceptions inherit from SessionServiceException and include error codes
for consistent error handling and API responses. The API boundary maps each
error code to an HTTP status; the session layer itself is transport-agnostic.
"""

from enum import Enum
from typing import Any, Optional


# =============================================================================
# Error Codes Enum
# =============================================================================


class ErrorCode(str, Enum):
    """
    Error codes for Session Service exceptions.

    These codes provide a consistent way to identify error types
    across the API and in logging.
    """

    SERVICE_ERROR = "SERVICE_ERROR"
    SESSION_INVALID = "SESSION_INVALID"
    SESSION_ALREADY_EXISTS = "SESSION_ALREADY_EXISTS"
    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
    SESSION_QUERY_INVALID = "SESSION_QUERY_INVALID"
    STORE_UNAVAILABLE = "STORE_UNAVAILABLE"


# =============================================================================
# Base Exception
# =============================================================================


class SessionServiceException(Exception):
    """
    Base exception for all Session Service errors.

    Attributes:
        message: Human-readable error message.
        error_code: Machine-readable error code from ErrorCode enum.
    """

    def __init__(
        self,
        message: str,
        error_code: str = ErrorCode.SERVICE_ERROR,
        **kwargs: Any,
    ) -> None:
        """
        Initialize the exception.

        Args:
            message: Human-readable error message.
            error_code: Machine-readable error code.
            **kwargs: Additional attributes to set on the exception.
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code

        for key, value in kwargs.items():
            setattr(self, key, value)


# =============================================================================
# SessionInvalidError
# =============================================================================


class SessionInvalidError(SessionServiceException):
    """
    The payload failed validation or the store rejected the write.

    Raised when the source or type fail their constraints, when the payload is
    not parseable JSON, or when an update collides with another row's checksum.

    Attributes:
        errors: Individual constraint messages, when known.
    """

    def __init__(
        self,
        message: str,
        errors: Optional[list[str]] = None,
        error_code: str = ErrorCode.SESSION_INVALID,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, error_code, **kwargs)
        self.errors = errors or []


# =============================================================================
# SessionAlreadyExistsError
# =============================================================================


class SessionAlreadyExistsError(SessionServiceException):
    """
    A strict create hit a duplicate id or a duplicate (source, type, checksum).

    Attributes:
        session_id: The id requested by the caller, if any.
        index: Name of the violated unique index, if known.
    """

    def __init__(
        self,
        message: str,
        session_id: Optional[str] = None,
        index: Optional[str] = None,
        error_code: str = ErrorCode.SESSION_ALREADY_EXISTS,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, error_code, **kwargs)
        self.session_id = session_id
        self.index = index


# =============================================================================
# SessionNotFoundError
# =============================================================================


class SessionNotFoundError(SessionServiceException):
    """
    A point lookup, update or delete targeted a non-existent session.

    Attributes:
        session_id: ID of the missing session.
    """

    def __init__(
        self,
        session_id: str,
        error_code: str = ErrorCode.SESSION_NOT_FOUND,
        **kwargs: Any,
    ) -> None:
        super().__init__(f"could not find session '{session_id}'.", error_code, **kwargs)
        self.session_id = session_id


# =============================================================================
# SessionQueryInvalidError
# =============================================================================


class SessionQueryInvalidError(SessionServiceException):
    """
    An ad-hoc filter is malformed or unsupported by the store's query engine.

    Attributes:
        field: The field path the caller asked for.
    """

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        error_code: str = ErrorCode.SESSION_QUERY_INVALID,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, error_code, **kwargs)
        self.field = field


# =============================================================================
# StoreUnavailableError
# =============================================================================


class StoreUnavailableError(SessionServiceException):
    """
    Transport-level failure talking to the backing store.

    Never retried internally; the caller's own retry policy applies.
    """

    def __init__(
        self,
        message: str,
        error_code: str = ErrorCode.STORE_UNAVAILABLE,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, error_code, **kwargs)
