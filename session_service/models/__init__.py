"""Models Package - Session domain model and API response models."""

from session_service.models.domain import (
    Session,
    SessionValidationError,
    canonical_json,
    compute_checksum,
)
from session_service.models.responses import (
    ErrorDetail,
    ErrorResponse,
    InfoResponse,
    SessionIdResponse,
    SessionResponse,
)

__all__ = [
    # Domain
    "Session",
    "SessionValidationError",
    "canonical_json",
    "compute_checksum",
    # Responses
    "SessionResponse",
    "SessionIdResponse",
    "ErrorDetail",
    "ErrorResponse",
    "InfoResponse",
]
