"""
Redis Document Store

This module implements the DocumentStore port on top of Redis.

Key layout (all keys share the configured prefix):

- ``collections``                     SET of created collection names
- ``{collection}:indexes``            HASH index name -> JSON definition
- ``{collection}:ids``                LIST of document ids in insertion order
- ``{collection}:doc:{id}``           JSON document
- ``{collection}:unique:{index}:{h}`` id of the document owning a unique key

Every write is an optimistic transaction (WATCH / MULTI / EXEC) over the
document key, the index registry and every unique key the document claims.
If another client touches any of them before EXEC, the transaction aborts with
WatchError and the write is evaluated again, so of several concurrent writers
claiming the same unique key exactly one commits and the others observe
DuplicateKeyError.

Pattern: Repository pattern with Redis storage
Pattern: Dependency injection for the Redis client
"""

import functools
import hashlib
import json
from typing import Any, Awaitable, Callable, Optional, Sequence, TypeVar, Union
from uuid import uuid4

from redis.asyncio import Redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError, WatchError
from redis.exceptions import TimeoutError as RedisTimeoutError

from session_service.observability.logging import get_logger
from session_service.store.base import (
    ID_FIELD,
    ID_INDEX_NAME,
    DocumentStore,
    DocumentStoreError,
    DuplicateKeyError,
    StoreConnectionError,
)
from session_service.store.filters import (
    compile_filter,
    document_matches,
    parse_field_path,
    resolve_path,
)

F = TypeVar("F", bound=Callable[..., Awaitable[Any]])

# Write modes
_INSERT = "insert"
_SAVE = "save"
_REPLACE = "replace"

DEFAULT_MAX_WRITE_ATTEMPTS = 16
FETCH_BATCH_SIZE = 500


def _translate_redis_errors(func: F) -> F:
    """Map redis-py exceptions onto the store exception hierarchy."""

    @functools.wraps(func)
    async def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return await func(*args, **kwargs)
        except (RedisConnectionError, RedisTimeoutError) as e:
            raise StoreConnectionError(f"Redis unavailable: {e}") from e
        except WatchError:
            raise
        except RedisError as e:
            raise DocumentStoreError(f"Redis command failed: {e}") from e

    return wrapper  # type: ignore[return-value]


def _text(value: Union[str, bytes]) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return value


class RedisDocumentStore(DocumentStore):
    """
    Document store backed by Redis.

    Attributes:
        _redis: The Redis client instance.
        _key_prefix: Prefix for every key this store writes.
        _max_write_attempts: Optimistic transaction attempts before giving up.

    Example:
        >>> import redis.asyncio as redis
        >>> client = redis.from_url("redis://localhost:6379", decode_responses=True)
        >>> store = RedisDocumentStore(redis_client=client)
        >>> await store.create_collection("main_session")
    """

    def __init__(
        self,
        redis_client: Redis,
        key_prefix: str = "session_service:",
        max_write_attempts: int = DEFAULT_MAX_WRITE_ATTEMPTS,
    ) -> None:
        self._redis: Redis = redis_client
        self._key_prefix: str = key_prefix
        self._max_write_attempts: int = max_write_attempts
        self._logger = get_logger(__name__)

    # =========================================================================
    # Key helpers
    # =========================================================================

    def _collections_key(self) -> str:
        return f"{self._key_prefix}collections"

    def _indexes_key(self, collection: str) -> str:
        return f"{self._key_prefix}{collection}:indexes"

    def _ids_key(self, collection: str) -> str:
        return f"{self._key_prefix}{collection}:ids"

    def _doc_key(self, collection: str, doc_id: str) -> str:
        return f"{self._key_prefix}{collection}:doc:{doc_id}"

    def _unique_key(self, collection: str, index: str, values: list[Any]) -> str:
        encoded = json.dumps(values, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
        digest = hashlib.sha256(encoded.encode("utf-8")).hexdigest()
        return f"{self._key_prefix}{collection}:unique:{index}:{digest}"

    def _unique_keys(
        self,
        collection: str,
        indexes: dict[str, dict[str, Any]],
        document: dict[str, Any],
    ) -> dict[str, str]:
        """Unique index name -> entry key claimed by ``document``."""
        keys = {}
        for name, definition in indexes.items():
            if not definition.get("unique"):
                continue
            values = []
            for field in definition["fields"]:
                found = resolve_path(document, field.split("."))
                values.append(found[0] if found else None)
            keys[name] = self._unique_key(collection, name, values)
        return keys

    @staticmethod
    def _encode(document: dict[str, Any]) -> str:
        try:
            return json.dumps(document, separators=(",", ":"), ensure_ascii=False, allow_nan=False)
        except (TypeError, ValueError) as e:
            raise DocumentStoreError(f"Document is not JSON serializable: {e}") from e

    @staticmethod
    def _decode_indexes(raw: dict[Any, Any]) -> dict[str, dict[str, Any]]:
        return {_text(name): json.loads(definition) for name, definition in raw.items()}

    # =========================================================================
    # Collections and indexes
    # =========================================================================

    @_translate_redis_errors
    async def collection_exists(self, collection: str) -> bool:
        return bool(await self._redis.sismember(self._collections_key(), collection))

    @_translate_redis_errors
    async def create_collection(self, collection: str) -> bool:
        created = await self._redis.sadd(self._collections_key(), collection)
        if created:
            self._logger.info("collection created", collection=collection)
        return bool(created)

    @_translate_redis_errors
    async def list_indexes(self, collection: str) -> dict[str, dict[str, Any]]:
        raw = await self._redis.hgetall(self._indexes_key(collection))
        return self._decode_indexes(raw)

    @_translate_redis_errors
    async def create_index(
        self,
        collection: str,
        fields: Sequence[str],
        unique: bool = False,
        name: Optional[str] = None,
    ) -> str:
        fields = list(fields)
        if not fields:
            raise DocumentStoreError("An index needs at least one field")
        for field in fields:
            parse_field_path(field)
        name = name or "_".join(fields)

        definition = json.dumps({"fields": fields, "unique": unique})
        if not unique:
            if await self._redis.hsetnx(self._indexes_key(collection), name, definition):
                self._log_index_created(collection, name, fields, unique)
            return name

        if await self._register_unique_index(collection, name, definition):
            self._log_index_created(collection, name, fields, unique)
        return name

    async def _register_unique_index(self, collection: str, name: str, definition: str) -> bool:
        """
        Register a unique index while the collection is still empty.

        Unique entries are only ever claimed by writes, so an index registered
        after documents exist would not cover them. Watching the id list makes
        a concurrent first write and the registration exclude each other.
        """
        indexes_key = self._indexes_key(collection)
        ids_key = self._ids_key(collection)
        for _attempt in range(self._max_write_attempts):
            async with self._redis.pipeline(transaction=True) as pipe:
                try:
                    await pipe.watch(indexes_key, ids_key)
                    if await pipe.hexists(indexes_key, name):
                        return False
                    if await pipe.llen(ids_key):
                        raise DocumentStoreError(
                            f"Unique index '{name}' must be created before '{collection}' holds documents"
                        )
                    pipe.multi()
                    pipe.hset(indexes_key, name, definition)
                    await pipe.execute()
                    return True
                except WatchError:
                    continue

        raise DocumentStoreError(
            f"Index '{name}' on '{collection}' abandoned after {self._max_write_attempts} attempts"
        )

    def _log_index_created(
        self, collection: str, name: str, fields: list[str], unique: bool
    ) -> None:
        self._logger.info(
            "index created", collection=collection, index=name, fields=fields, unique=unique
        )

    # =========================================================================
    # Writes
    # =========================================================================

    @_translate_redis_errors
    async def insert_one(self, collection: str, document: dict[str, Any]) -> str:
        return await self._write(collection, document, _INSERT)

    @_translate_redis_errors
    async def save(self, collection: str, document: dict[str, Any]) -> str:
        return await self._write(collection, document, _SAVE)

    @_translate_redis_errors
    async def replace_one(self, collection: str, document: dict[str, Any]) -> bool:
        if not document.get(ID_FIELD):
            raise DocumentStoreError("replace_one requires a document id")
        return await self._write(collection, document, _REPLACE) is not None

    async def _write(
        self, collection: str, document: dict[str, Any], mode: str
    ) -> Optional[str]:
        document = dict(document)
        doc_id = document.get(ID_FIELD)
        if doc_id is None:
            doc_id = uuid4().hex
            document[ID_FIELD] = doc_id
        elif not isinstance(doc_id, str) or not doc_id:
            raise DocumentStoreError("Document id must be a non-empty string")

        payload = self._encode(document)
        doc_key = self._doc_key(collection, doc_id)
        indexes_key = self._indexes_key(collection)

        for _attempt in range(self._max_write_attempts):
            async with self._redis.pipeline(transaction=True) as pipe:
                try:
                    await pipe.watch(doc_key, indexes_key)
                    existing_raw = await pipe.get(doc_key)
                    if existing_raw is not None and mode == _INSERT:
                        raise DuplicateKeyError(collection, ID_INDEX_NAME)
                    if existing_raw is None and mode == _REPLACE:
                        return None

                    indexes = self._decode_indexes(await pipe.hgetall(indexes_key))
                    claimed = self._unique_keys(collection, indexes, document)
                    if claimed:
                        await pipe.watch(*claimed.values())
                        owners = await pipe.mget(*claimed.values())
                        for (index, _key), owner in zip(claimed.items(), owners):
                            if owner is not None and _text(owner) != doc_id:
                                raise DuplicateKeyError(collection, index)

                    stale: list[str] = []
                    if existing_raw is not None:
                        previous = self._unique_keys(collection, indexes, json.loads(existing_raw))
                        stale = [key for key in previous.values() if key not in claimed.values()]

                    pipe.multi()
                    pipe.set(doc_key, payload)
                    for key in claimed.values():
                        pipe.set(key, doc_id)
                    if stale:
                        pipe.delete(*stale)
                    if existing_raw is None:
                        pipe.rpush(self._ids_key(collection), doc_id)
                    await pipe.execute()
                    return doc_id
                except WatchError:
                    self._logger.debug("write contention, retrying", collection=collection, id=doc_id)
                    continue

        raise DocumentStoreError(
            f"Write to '{collection}' abandoned after {self._max_write_attempts} attempts"
        )

    # =========================================================================
    # Reads
    # =========================================================================

    async def _get(self, collection: str, doc_id: str) -> Optional[dict[str, Any]]:
        raw = await self._redis.get(self._doc_key(collection, doc_id))
        if raw is None:
            return None
        return json.loads(raw)

    async def _scan(self, collection: str) -> list[dict[str, Any]]:
        """Load every document of a collection in insertion order."""
        ids = [_text(doc_id) for doc_id in await self._redis.lrange(self._ids_key(collection), 0, -1)]
        documents = []
        for start in range(0, len(ids), FETCH_BATCH_SIZE):
            batch = ids[start:start + FETCH_BATCH_SIZE]
            raws = await self._redis.mget([self._doc_key(collection, doc_id) for doc_id in batch])
            # Entries deleted between LRANGE and MGET come back as None
            documents.extend(json.loads(raw) for raw in raws if raw is not None)
        return documents

    @_translate_redis_errors
    async def find(self, collection: str, filter: dict[str, Any]) -> list[dict[str, Any]]:
        compiled = compile_filter(filter)

        doc_id = filter.get(ID_FIELD)
        if isinstance(doc_id, str):
            document = await self._get(collection, doc_id)
            if document is None or not document_matches(document, compiled):
                return []
            return [document]

        return [
            document
            for document in await self._scan(collection)
            if document_matches(document, compiled)
        ]

    @_translate_redis_errors
    async def find_one(
        self, collection: str, filter: dict[str, Any]
    ) -> Optional[dict[str, Any]]:
        documents = await self.find(collection, filter)
        return documents[0] if documents else None

    # =========================================================================
    # Deletes
    # =========================================================================

    @_translate_redis_errors
    async def delete_many(self, collection: str, filter: dict[str, Any]) -> int:
        compiled = compile_filter(filter)
        deleted = 0
        for document in await self.find(collection, filter):
            deleted += await self._delete_document(collection, document[ID_FIELD], compiled)
        return deleted

    async def _delete_document(self, collection: str, doc_id: str, compiled: list) -> int:
        doc_key = self._doc_key(collection, doc_id)
        indexes_key = self._indexes_key(collection)

        for _attempt in range(self._max_write_attempts):
            async with self._redis.pipeline(transaction=True) as pipe:
                try:
                    await pipe.watch(doc_key, indexes_key)
                    raw = await pipe.get(doc_key)
                    if raw is None:
                        return 0
                    document = json.loads(raw)
                    # Re-check: the document may have been replaced since it was found
                    if not document_matches(document, compiled):
                        return 0

                    indexes = self._decode_indexes(await pipe.hgetall(indexes_key))
                    owned = list(self._unique_keys(collection, indexes, document).values())

                    pipe.multi()
                    pipe.delete(doc_key, *owned)
                    pipe.lrem(self._ids_key(collection), 0, doc_id)
                    await pipe.execute()
                    return 1
                except WatchError:
                    continue

        raise DocumentStoreError(
            f"Delete from '{collection}' abandoned after {self._max_write_attempts} attempts"
        )

    # =========================================================================
    # Health
    # =========================================================================

    async def ping(self) -> bool:
        try:
            return bool(await self._redis.ping())
        except RedisError as e:
            self._logger.warning("redis ping failed", error=str(e))
            return False
