"""Sessions package - repository and service layer for stored sessions."""

from session_service.sessions.repository import (
    CHECKSUM_INDEX_NAME,
    SessionRepository,
    WriteResult,
    WriteStatus,
)
from session_service.sessions.service import SessionService

__all__ = [
    "CHECKSUM_INDEX_NAME",
    "SessionRepository",
    "SessionService",
    "WriteResult",
    "WriteStatus",
]
