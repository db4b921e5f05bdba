"""Session Repository - persistence of sessions in the document store.

Each session type maps to one store collection. A collection is provisioned
lazily on first write with a compound unique index over
(source, type, checksum), which is what enforces content deduplication.

Store failures are translated here:
- DuplicateKeyError becomes a CONFLICT write result
- InvalidFilterError becomes SessionQueryInvalidError
- StoreConnectionError becomes StoreUnavailableError
- Any other rejected write becomes SessionInvalidError
"""

from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterator, Optional

from session_service.core.exceptions import (
    SessionInvalidError,
    SessionQueryInvalidError,
    StoreUnavailableError,
)
from session_service.models.domain import Session
from session_service.observability.logging import get_logger
from session_service.observability.tracing import create_span
from session_service.store.base import (
    ID_FIELD,
    DocumentStore,
    DocumentStoreError,
    DuplicateKeyError,
    InvalidFilterError,
    StoreConnectionError,
)

CHECKSUM_INDEX_NAME = "source_type_checksum"
CHECKSUM_INDEX_FIELDS = ["source", "type", "checksum"]


class WriteStatus(str, Enum):
    """Outcome of a repository write."""

    CREATED = "created"
    REPLACED = "replaced"
    CONFLICT = "conflict"
    MISSING = "missing"


@dataclass(frozen=True)
class WriteResult:
    """Typed result of a write; conflicts are values, not exceptions.

    Attributes:
        status: What the store did with the write.
        session: The persisted session (with its id) on success.
        conflict_index: Name of the violated unique index on CONFLICT.
    """

    status: WriteStatus
    session: Optional[Session] = None
    conflict_index: Optional[str] = None

    @property
    def conflicted(self) -> bool:
        return self.status is WriteStatus.CONFLICT


class SessionRepository:
    """Maps Session values onto per-type collections of a DocumentStore.

    Args:
        store: Document store adapter.
    """

    def __init__(self, store: DocumentStore) -> None:
        """Initialize the repository with its store."""
        self._store = store
        self._logger = get_logger(__name__)

    # =========================================================================
    # Error Translation
    # =========================================================================

    @contextmanager
    def _store_errors(self, operation: str, collection: str, writing: bool = False) -> Iterator[None]:
        try:
            yield
        except StoreConnectionError as e:
            self._logger.error(
                "store unavailable", operation=operation, collection=collection, error=str(e)
            )
            raise StoreUnavailableError(f"document store unavailable: {e}") from e
        except InvalidFilterError as e:
            raise SessionQueryInvalidError(str(e)) from e
        except DuplicateKeyError:
            raise
        except DocumentStoreError as e:
            self._logger.warning(
                "store rejected request", operation=operation, collection=collection, error=str(e)
            )
            if writing:
                raise SessionInvalidError(f"session rejected by the store: {e}") from e
            raise StoreUnavailableError(f"document store failed: {e}") from e

    # =========================================================================
    # Provisioning
    # =========================================================================

    async def ensure_collection(self, session_type: str) -> None:
        """Create the collection and its checksum unique index if missing.

        Idempotent and safe to race: concurrent callers converge on one
        collection with exactly one unique index.
        """
        with create_span("repository.ensure_collection", {"session.type": session_type}):
            with self._store_errors("ensure_collection", session_type):
                if not await self._store.collection_exists(session_type):
                    if await self._store.create_collection(session_type):
                        self._logger.info("collection provisioned", collection=session_type)
                await self._store.create_index(
                    session_type,
                    CHECKSUM_INDEX_FIELDS,
                    unique=True,
                    name=CHECKSUM_INDEX_NAME,
                )

    # =========================================================================
    # Writes
    # =========================================================================

    async def upsert_session(self, session: Session) -> WriteResult:
        """Insert the session, or replace the row with the same id.

        The result is CREATED when the session had no id yet and REPLACED when
        it already carried one.
        """
        status = WriteStatus.CREATED if session.id is None else WriteStatus.REPLACED
        return await self._write("upsert", session, status)

    async def insert_session(self, session: Session) -> WriteResult:
        """Insert the session; a duplicate id or checksum is a CONFLICT."""
        return await self._write("insert", session, WriteStatus.CREATED)

    async def replace_session(self, session: Session) -> WriteResult:
        """Replace the row with the session's id; MISSING if there is none."""
        if session.id is None:
            raise SessionInvalidError("a session id is required to replace a session")
        return await self._write("replace", session, WriteStatus.REPLACED)

    async def _write(self, operation: str, session: Session, success: WriteStatus) -> WriteResult:
        await self.ensure_collection(session.type)

        collection = session.type
        document = session.to_document()
        attributes = {"session.type": collection, "session.operation": operation}

        with create_span(f"repository.{operation}", attributes):
            try:
                with self._store_errors(operation, collection, writing=True):
                    if operation == "insert":
                        doc_id = await self._store.insert_one(collection, document)
                    elif operation == "upsert":
                        doc_id = await self._store.save(collection, document)
                    else:
                        if not await self._store.replace_one(collection, document):
                            return WriteResult(WriteStatus.MISSING)
                        doc_id = session.id
            except DuplicateKeyError as e:
                self._logger.info(
                    "write conflict", operation=operation, collection=collection, index=e.index
                )
                return WriteResult(WriteStatus.CONFLICT, conflict_index=e.index)

        return WriteResult(success, session.with_id(doc_id))

    # =========================================================================
    # Reads
    # =========================================================================

    async def find_by_checksum(
        self, source: str, session_type: str, checksum: str
    ) -> Optional[Session]:
        """Find the session owning a (source, type, checksum) key."""
        return await self._find_one(
            "find_by_checksum",
            session_type,
            {"source": source, "type": session_type, "checksum": checksum},
        )

    async def find_by_id(self, source: str, session_type: str, session_id: str) -> Optional[Session]:
        """Find a session by id, scoped to its source and type."""
        return await self._find_one(
            "find_by_id",
            session_type,
            {ID_FIELD: session_id, "source": source, "type": session_type},
        )

    async def list_by_source_and_type(self, source: str, session_type: str) -> list[Session]:
        """List every session of a source and type."""
        return await self._find(
            "list", session_type, {"source": source, "type": session_type}
        )

    async def query_by_source_and_type(
        self, source: str, session_type: str, field: str, value: Any
    ) -> list[Session]:
        """List sessions of a source and type whose payload field equals value.

        Args:
            source: Owning source.
            session_type: Session type.
            field: Dotted path inside the payload (``data`` is implied).
            value: JSON value to compare against.

        Raises:
            SessionQueryInvalidError: If the field path or value is malformed.
        """
        if not isinstance(field, str) or not field:
            raise SessionQueryInvalidError("query field must be a non-empty string", field=field)
        try:
            return await self._find(
                "query",
                session_type,
                {"source": source, "type": session_type, f"data.{field}": value},
            )
        except SessionQueryInvalidError as e:
            e.field = field
            raise

    async def delete_by_id(self, source: str, session_type: str, session_id: str) -> int:
        """Delete a session by id; returns the number of rows removed."""
        filter = {ID_FIELD: session_id, "source": source, "type": session_type}
        with create_span("repository.delete", {"session.type": session_type}):
            with self._store_errors("delete", session_type):
                return await self._store.delete_many(session_type, filter)

    async def _find_one(
        self, operation: str, session_type: str, filter: dict[str, Any]
    ) -> Optional[Session]:
        with create_span(f"repository.{operation}", {"session.type": session_type}):
            with self._store_errors(operation, session_type):
                document = await self._store.find_one(session_type, filter)
        if document is None:
            return None
        return Session.from_document(document)

    async def _find(
        self, operation: str, session_type: str, filter: dict[str, Any]
    ) -> list[Session]:
        with create_span(f"repository.{operation}", {"session.type": session_type}):
            with self._store_errors(operation, session_type):
                documents = await self._store.find(session_type, filter)
        return [Session.from_document(document) for document in documents]
