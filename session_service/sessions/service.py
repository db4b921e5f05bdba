"""Session Service - business rules for session lifecycle management.

Provides the operations exposed over HTTP:
- add_session: idempotent write; identical content returns the existing id
- create_new_session: strict insert with an optional caller-chosen id
- get_sessions / get_sessions_by_query: list a (source, type) partition
- get_session / update_session / delete_session: point operations by id

Validation failures, conflicts and missing rows surface as the typed errors
in session_service.core.exceptions.
"""

from typing import Any, Optional, Union

from session_service.core.config import Settings, get_settings
from session_service.core.exceptions import (
    SessionAlreadyExistsError,
    SessionInvalidError,
    SessionNotFoundError,
    SessionServiceException,
)
from session_service.models.domain import (
    Session,
    SessionValidationError,
    describe_types,
)
from session_service.observability.logging import get_logger
from session_service.observability.metrics import (
    record_deduplication,
    record_session_operation,
)
from session_service.observability.tracing import traced
from session_service.sessions.repository import (
    SessionRepository,
    WriteStatus,
)

RawPayload = Union[str, bytes, None]

_UNKNOWN_TYPE_LABEL = "unknown"


class SessionService:
    """Service layer over the SessionRepository.

    Args:
        repository: SessionRepository used for persistence.
        settings: Service settings. Defaults to get_settings().
    """

    def __init__(self, repository: SessionRepository, settings: Optional[Settings] = None) -> None:
        """Initialize SessionService with its repository and settings."""
        self._repository = repository
        self._settings = settings or get_settings()
        self._logger = get_logger(__name__)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _type_label(self, session_type: Optional[str]) -> str:
        # Caller-supplied types must not become metric label values
        if session_type in self._settings.session_types:
            return session_type
        return _UNKNOWN_TYPE_LABEL

    def _record(self, session_type: Optional[str], operation: str, outcome: str) -> None:
        record_session_operation(self._type_label(session_type), operation, outcome)

    def _build(
        self,
        source: Optional[str],
        session_type: Optional[str],
        raw_data: RawPayload,
        session_id: Optional[str] = None,
    ) -> Session:
        try:
            return Session.from_payload(
                source,
                session_type,
                raw_data,
                session_id=session_id,
                session_types=self._settings.session_types,
                source_min_length=self._settings.source_min_length,
            )
        except SessionValidationError as e:
            raise SessionInvalidError(str(e), errors=e.errors) from e

    def _check_type(self, session_type: Optional[str]) -> None:
        if session_type not in self._settings.session_types:
            message = f"valid types are: {describe_types(self._settings.session_types)}"
            raise SessionInvalidError(f"{message};", errors=[message])

    async def _run(self, session_type: Optional[str], operation: str, coro: Any) -> Any:
        """Await an operation, recording its outcome metric."""
        try:
            result = await coro
        except SessionServiceException as e:
            self._record(session_type, operation, e.error_code.value.lower())
            raise
        self._record(session_type, operation, "ok")
        return result

    # =========================================================================
    # Writes
    # =========================================================================

    @traced("sessions.add")
    async def add_session(self, source: str, session_type: str, raw_data: RawPayload) -> Session:
        """Persist a payload, deduplicating on its content.

        If a session with the same (source, type, checksum) already exists its
        id is returned and nothing is written.

        Returns:
            The persisted (or pre-existing) Session.

        Raises:
            SessionInvalidError: If validation fails.
            SessionAlreadyExistsError: If the conflicting row vanished before it
                could be read back.
        """
        return await self._run(session_type, "add", self._add(source, session_type, raw_data))

    async def _add(self, source: str, session_type: str, raw_data: RawPayload) -> Session:
        session = self._build(source, session_type, raw_data)
        result = await self._repository.upsert_session(session)
        if not result.conflicted:
            self._logger.info(
                "session added", source=source, type=session_type, id=result.session.id
            )
            return result.session

        existing = await self._repository.find_by_checksum(source, session_type, session.checksum)
        if existing is None:
            self._logger.warning(
                "duplicate session vanished before read back",
                source=source,
                type=session_type,
                checksum=session.checksum,
            )
            raise SessionAlreadyExistsError(
                "a session with the same content already exists",
                index=result.conflict_index,
            )

        record_deduplication(self._type_label(session_type))
        self._logger.info(
            "session deduplicated", source=source, type=session_type, id=existing.id
        )
        return existing

    @traced("sessions.create")
    async def create_new_session(
        self,
        session_id: Optional[str],
        source: str,
        session_type: str,
        raw_data: RawPayload,
    ) -> Session:
        """Strictly insert a new session, optionally with a caller-chosen id.

        Raises:
            SessionInvalidError: If validation fails.
            SessionAlreadyExistsError: If the id or the content already exists.
        """
        return await self._run(
            session_type,
            "create",
            self._create(session_id, source, session_type, raw_data),
        )

    async def _create(
        self,
        session_id: Optional[str],
        source: str,
        session_type: str,
        raw_data: RawPayload,
    ) -> Session:
        if session_id is not None and not session_id.strip():
            raise SessionInvalidError("id must not be blank;", errors=["id must not be blank"])

        session = self._build(source, session_type, raw_data, session_id=session_id)
        result = await self._repository.insert_session(session)
        if result.conflicted:
            raise SessionAlreadyExistsError(
                f"session already exists (index '{result.conflict_index}')",
                session_id=session_id,
                index=result.conflict_index,
            )

        self._logger.info(
            "session created", source=source, type=session_type, id=result.session.id
        )
        return result.session

    @traced("sessions.update")
    async def update_session(
        self,
        session_id: str,
        source: str,
        session_type: str,
        raw_data: RawPayload,
    ) -> Session:
        """Replace the payload of an existing session.

        Raises:
            SessionInvalidError: If validation fails or the new payload collides
                with another session's checksum.
            SessionNotFoundError: If the session does not exist.
        """
        return await self._run(
            session_type,
            "update",
            self._update(session_id, source, session_type, raw_data),
        )

    async def _update(
        self,
        session_id: str,
        source: str,
        session_type: str,
        raw_data: RawPayload,
    ) -> Session:
        self._check_type(session_type)
        saved = await self._repository.find_by_id(source, session_type, session_id)
        if saved is None:
            raise SessionNotFoundError(session_id)

        try:
            updated = saved.with_payload(raw_data)
        except SessionValidationError as e:
            raise SessionInvalidError(str(e), errors=e.errors) from e

        result = await self._repository.replace_session(updated)
        if result.status is WriteStatus.MISSING:
            raise SessionNotFoundError(session_id)
        if result.conflicted:
            raise SessionInvalidError(
                "another session with the same content already exists;",
                errors=["another session with the same content already exists"],
            )

        self._logger.info("session updated", source=source, type=session_type, id=session_id)
        return result.session

    @traced("sessions.delete")
    async def delete_session(self, session_id: str, source: str, session_type: str) -> None:
        """Delete a session.

        Raises:
            SessionNotFoundError: If exactly one row was not removed.
        """
        await self._run(session_type, "delete", self._delete(session_id, source, session_type))

    async def _delete(self, session_id: str, source: str, session_type: str) -> None:
        self._check_type(session_type)
        deleted = await self._repository.delete_by_id(source, session_type, session_id)
        if deleted != 1:
            raise SessionNotFoundError(session_id)
        self._logger.info("session deleted", source=source, type=session_type, id=session_id)

    # =========================================================================
    # Reads
    # =========================================================================

    @traced("sessions.get")
    async def get_session(self, session_id: str, source: str, session_type: str) -> Session:
        """Retrieve a session by id.

        Raises:
            SessionNotFoundError: If the session does not exist.
        """
        return await self._run(session_type, "get", self._get(session_id, source, session_type))

    async def _get(self, session_id: str, source: str, session_type: str) -> Session:
        self._check_type(session_type)
        session = await self._repository.find_by_id(source, session_type, session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    @traced("sessions.list")
    async def get_sessions(self, source: str, session_type: str) -> list[Session]:
        """List every session of a source and type."""
        return await self._run(session_type, "list", self._list(source, session_type))

    async def _list(self, source: str, session_type: str) -> list[Session]:
        self._check_type(session_type)
        return await self._repository.list_by_source_and_type(source, session_type)

    @traced("sessions.query")
    async def get_sessions_by_query(
        self, source: str, session_type: str, field: str, value: Any
    ) -> list[Session]:
        """List sessions whose payload field equals value.

        Args:
            source: Owning source.
            session_type: Session type.
            field: Dotted path inside the payload.
            value: JSON value to compare against.

        Returns:
            Matching sessions; empty when nothing matches.

        Raises:
            SessionQueryInvalidError: If the field or value is malformed.
        """
        return await self._run(
            session_type, "query", self._query(source, session_type, field, value)
        )

    async def _query(self, source: str, session_type: str, field: str, value: Any) -> list[Session]:
        self._check_type(session_type)
        return await self._repository.query_by_source_and_type(source, session_type, field, value)
