"""
Store Package - document store port and its Redis adapter.

This package provides the schemaless document store the session layer is
built on: named collections, compound unique indexes, atomic
insert-or-fail-on-duplicate, and filtered find/delete over dotted field paths.
"""

from session_service.store.base import (
    ID_FIELD,
    ID_INDEX_NAME,
    DocumentStore,
    DocumentStoreError,
    DuplicateKeyError,
    InvalidFilterError,
    StoreConnectionError,
)
from session_service.store.redis_store import RedisDocumentStore

__all__ = [
    "ID_FIELD",
    "ID_INDEX_NAME",
    "DocumentStore",
    "DocumentStoreError",
    "DuplicateKeyError",
    "InvalidFilterError",
    "StoreConnectionError",
    "RedisDocumentStore",
]
