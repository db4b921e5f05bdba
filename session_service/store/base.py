"""
Document Store Interface

This module defines the abstract base class for document store adapters and
the store-level exceptions they raise.

A document store provides named collections of schemaless JSON documents,
compound indexes (optionally unique), atomic insert-or-fail-on-duplicate,
filtered find and delete. Documents carry their identifier in the ``id`` field;
the store assigns one when a written document has none.

Design Pattern:
- Ports and Adapters (Hexagonal Architecture)
- DocumentStore is the "port"; RedisDocumentStore is the "adapter"
"""

from abc import ABC, abstractmethod
from typing import Any, Optional, Sequence


ID_FIELD = "id"
ID_INDEX_NAME = "_id_"


# =============================================================================
# Store Exceptions
# =============================================================================


class DocumentStoreError(Exception):
    """Base exception for document store failures."""


class DuplicateKeyError(DocumentStoreError):
    """
    A write would violate a unique index.

    Attributes:
        collection: Collection that was written.
        index: Name of the violated index (``_id_`` for the primary key).
    """

    def __init__(self, collection: str, index: str) -> None:
        super().__init__(f"duplicate key in collection '{collection}' for index '{index}'")
        self.collection = collection
        self.index = index


class InvalidFilterError(DocumentStoreError):
    """A filter or field path is malformed or unsupported by the query engine."""


class StoreConnectionError(DocumentStoreError):
    """Transport-level failure talking to the backing store."""


# =============================================================================
# DocumentStore ABC
# =============================================================================


class DocumentStore(ABC):
    """
    Abstract base class for document store adapters.

    Filters are flat mappings of dotted field paths to values. A document
    matches when every path resolves to an equal value; when a path crosses an
    array, any element may match, and an array value matches when it contains
    the filter value.

    Example:
        >>> await store.create_collection("main_session")
        >>> await store.create_index("main_session", ["source", "type", "checksum"], unique=True)
        >>> doc_id = await store.insert_one("main_session", {"source": "portal", ...})
        >>> await store.find("main_session", {"source": "portal", "data.k": "v"})
    """

    @abstractmethod
    async def collection_exists(self, collection: str) -> bool:
        """Return True if the collection has been created."""
        ...

    @abstractmethod
    async def create_collection(self, collection: str) -> bool:
        """
        Create a collection if it does not exist.

        Returns:
            True if this call created it, False if it already existed.
        """
        ...

    @abstractmethod
    async def create_index(
        self,
        collection: str,
        fields: Sequence[str],
        unique: bool = False,
        name: Optional[str] = None,
    ) -> str:
        """
        Create a compound index if no index with that name exists.

        Args:
            collection: Collection to index.
            fields: Field paths making up the index key, in order.
            unique: Reject documents whose key is already taken.
            name: Index name; defaults to the fields joined with underscores.

        Returns:
            The index name.

        Raises:
            DocumentStoreError: If a new unique index is requested on a
                collection that already holds documents.
        """
        ...

    @abstractmethod
    async def list_indexes(self, collection: str) -> dict[str, dict[str, Any]]:
        """Return index definitions keyed by index name."""
        ...

    @abstractmethod
    async def insert_one(self, collection: str, document: dict[str, Any]) -> str:
        """
        Insert a new document.

        Returns:
            The document id (assigned when the document has none).

        Raises:
            DuplicateKeyError: If the id or any unique index key is taken.
        """
        ...

    @abstractmethod
    async def save(self, collection: str, document: dict[str, Any]) -> str:
        """
        Insert a document, or replace the document with the same id.

        Returns:
            The document id (assigned when the document has none).

        Raises:
            DuplicateKeyError: If a unique index key is held by another document.
        """
        ...

    @abstractmethod
    async def replace_one(self, collection: str, document: dict[str, Any]) -> bool:
        """
        Replace the existing document with the same id.

        Returns:
            True if a document was replaced, False if none had that id.

        Raises:
            DuplicateKeyError: If a unique index key is held by another document.
        """
        ...

    @abstractmethod
    async def find_one(
        self, collection: str, filter: dict[str, Any]
    ) -> Optional[dict[str, Any]]:
        """Return the first matching document in insertion order, or None."""
        ...

    @abstractmethod
    async def find(self, collection: str, filter: dict[str, Any]) -> list[dict[str, Any]]:
        """Return all matching documents in insertion order."""
        ...

    @abstractmethod
    async def delete_many(self, collection: str, filter: dict[str, Any]) -> int:
        """Delete all matching documents and return how many were removed."""
        ...

    @abstractmethod
    async def ping(self) -> bool:
        """Return True if the backing store is reachable."""
        ...
