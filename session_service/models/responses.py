"""
Response Models

This module contains Pydantic models for API response serialization.
"""

from typing import Any, Optional

from pydantic import BaseModel, Field

from session_service.models.domain import Session


# =============================================================================
# Session Responses
# =============================================================================


class SessionResponse(BaseModel):
    """
    A stored session as returned to callers.

    Attributes:
        id: Unique session identifier
        source: Owning application
        type: Session type
        data: Stored payload
        checksum: Content checksum of the payload
    """

    id: str = Field(..., description="Unique session identifier")
    source: str = Field(..., description="Owning application")
    type: str = Field(..., description="Session type")
    data: Any = Field(..., description="Stored payload")
    checksum: str = Field(..., description="Content checksum of the payload")

    @classmethod
    def from_session(cls, session: Session) -> "SessionResponse":
        """Build the response model from a domain Session."""
        return cls(**session.model_dump())


class SessionIdResponse(BaseModel):
    """Identifier of a created (or deduplicated) session."""

    id: str = Field(..., description="Unique session identifier")


# =============================================================================
# Error Responses
# =============================================================================


class ErrorDetail(BaseModel):
    """Machine-readable error code with a human-readable message."""

    code: str = Field(..., description="Error code")
    message: str = Field(..., description="Error message")
    errors: Optional[list[str]] = Field(
        default=None, description="Individual constraint violations"
    )


class ErrorResponse(BaseModel):
    """Envelope for every error returned by the API."""

    error: ErrorDetail


class InfoResponse(BaseModel):
    """Service identification returned by /info."""

    service: str
    version: str
