"""
Core module for the Session Service.

This module contains configuration and the error taxonomy.
"""

from session_service.core.config import Settings, get_settings
from session_service.core.exceptions import (
    ErrorCode,
    SessionAlreadyExistsError,
    SessionInvalidError,
    SessionNotFoundError,
    SessionQueryInvalidError,
    SessionServiceException,
    StoreUnavailableError,
)

__all__ = [
    # Config
    "Settings",
    "get_settings",
    # Exceptions
    "ErrorCode",
    "SessionServiceException",
    "SessionInvalidError",
    "SessionAlreadyExistsError",
    "SessionNotFoundError",
    "SessionQueryInvalidError",
    "StoreUnavailableError",
]
