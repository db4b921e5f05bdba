"""
Tests for SessionRepository.

Pattern: FakeRepository for testing - the repository runs against the real
RedisDocumentStore over fakeredis.
"""

from unittest.mock import AsyncMock

import pytest

from session_service.core.exceptions import (
    SessionInvalidError,
    SessionQueryInvalidError,
    StoreUnavailableError,
)
from session_service.models.domain import Session
from session_service.sessions.repository import (
    CHECKSUM_INDEX_NAME,
    SessionRepository,
    WriteStatus,
)
from session_service.store.base import (
    DocumentStoreError,
    StoreConnectionError,
)

TYPES = ["main_session", "virtual_cohort"]


def build(payload, source="portal", session_type="main_session", session_id=None):
    return Session.from_payload(
        source, session_type, payload, session_id=session_id, session_types=TYPES
    )


# =============================================================================
# Provisioning
# =============================================================================


class TestEnsureCollection:
    """Collections and the checksum index are provisioned lazily."""

    @pytest.mark.asyncio
    async def test_first_write_provisions_collection_and_index(self, repository, store):
        assert await store.collection_exists("main_session") is False

        await repository.upsert_session(build('{"a": 1}'))

        assert await store.collection_exists("main_session") is True
        indexes = await store.list_indexes("main_session")
        assert indexes == {
            CHECKSUM_INDEX_NAME: {"fields": ["source", "type", "checksum"], "unique": True}
        }

    @pytest.mark.asyncio
    async def test_ensure_collection_is_idempotent(self, repository, store):
        await repository.ensure_collection("virtual_cohort")
        await repository.ensure_collection("virtual_cohort")

        assert list(await store.list_indexes("virtual_cohort")) == [CHECKSUM_INDEX_NAME]

    @pytest.mark.asyncio
    async def test_reads_do_not_provision(self, repository, store):
        assert await repository.list_by_source_and_type("portal", "virtual_cohort") == []
        assert await store.collection_exists("virtual_cohort") is False

    @pytest.mark.asyncio
    async def test_store_down_is_unavailable(self):
        store = AsyncMock()
        store.collection_exists.side_effect = StoreConnectionError("down")

        with pytest.raises(StoreUnavailableError):
            await SessionRepository(store).ensure_collection("main_session")

    @pytest.mark.asyncio
    async def test_refused_index_is_unavailable(self):
        store = AsyncMock()
        store.collection_exists.return_value = True
        store.create_index.side_effect = DocumentStoreError("collection already holds documents")

        with pytest.raises(StoreUnavailableError):
            await SessionRepository(store).ensure_collection("main_session")


# =============================================================================
# Writes
# =============================================================================


class TestWrites:
    """Conflicts are typed results, never exceptions."""

    @pytest.mark.asyncio
    async def test_upsert_assigns_id(self, repository):
        result = await repository.upsert_session(build('{"a": 1}'))

        assert result.status is WriteStatus.CREATED
        assert result.session.id
        assert result.conflict_index is None

    @pytest.mark.asyncio
    async def test_upsert_duplicate_content_conflicts(self, repository):
        await repository.upsert_session(build('{"a": 1}'))
        result = await repository.upsert_session(build('{ "a" : 1 }'))

        assert result.conflicted
        assert result.session is None
        assert result.conflict_index == CHECKSUM_INDEX_NAME

    @pytest.mark.asyncio
    async def test_upsert_with_existing_id_replaces(self, repository):
        created = await repository.upsert_session(build('{"a": 1}'))
        session = created.session.with_payload('{"a": 2}')

        result = await repository.upsert_session(session)

        assert result.status is WriteStatus.REPLACED
        assert (await repository.find_by_id("portal", "main_session", session.id)).data == {"a": 2}

    @pytest.mark.asyncio
    async def test_insert_with_caller_id(self, repository):
        result = await repository.insert_session(build("[1]", session_id="custom"))

        assert result.status is WriteStatus.CREATED
        assert result.session.id == "custom"

    @pytest.mark.asyncio
    async def test_insert_duplicate_id_conflicts(self, repository):
        await repository.insert_session(build("[1]", session_id="custom"))
        result = await repository.insert_session(build("[2]", session_id="custom"))

        assert result.conflicted
        assert result.conflict_index == "_id_"

    @pytest.mark.asyncio
    async def test_insert_duplicate_content_conflicts(self, repository):
        await repository.insert_session(build("[1]"))
        result = await repository.insert_session(build("[1]"))

        assert result.conflict_index == CHECKSUM_INDEX_NAME

    @pytest.mark.asyncio
    async def test_replace_existing(self, repository):
        created = (await repository.insert_session(build('{"v": 1}'))).session
        result = await repository.replace_session(created.with_payload('{"v": 2}'))

        assert result.status is WriteStatus.REPLACED
        assert result.session.id == created.id

    @pytest.mark.asyncio
    async def test_replace_missing(self, repository):
        result = await repository.replace_session(build('{"v": 1}', session_id="ghost"))
        assert result.status is WriteStatus.MISSING

    @pytest.mark.asyncio
    async def test_replace_requires_id(self, repository):
        with pytest.raises(SessionInvalidError):
            await repository.replace_session(build('{"v": 1}'))

    @pytest.mark.asyncio
    async def test_replace_into_other_checksum_conflicts(self, repository):
        await repository.insert_session(build('{"v": 1}'))
        other = (await repository.insert_session(build('{"v": 2}'))).session

        result = await repository.replace_session(other.with_payload('{"v": 1}'))

        assert result.conflicted

    @pytest.mark.asyncio
    async def test_rejected_write_is_invalid(self):
        store = AsyncMock()
        store.collection_exists.return_value = True
        store.save.side_effect = DocumentStoreError("not serializable")

        with pytest.raises(SessionInvalidError):
            await SessionRepository(store).upsert_session(build("{}"))

    @pytest.mark.asyncio
    async def test_write_while_store_down(self):
        store = AsyncMock()
        store.collection_exists.return_value = True
        store.insert_one.side_effect = StoreConnectionError("down")

        with pytest.raises(StoreUnavailableError):
            await SessionRepository(store).insert_session(build("{}"))


# =============================================================================
# Reads
# =============================================================================


class TestReads:
    """Lookups are scoped to (source, type)."""

    @pytest.mark.asyncio
    async def test_find_by_checksum(self, repository):
        session = build('{"a": 1}')
        created = (await repository.upsert_session(session)).session

        found = await repository.find_by_checksum("portal", "main_session", session.checksum)
        assert found == created
        assert await repository.find_by_checksum("mobile", "main_session", session.checksum) is None

    @pytest.mark.asyncio
    async def test_find_by_id_is_scoped_to_source(self, repository):
        created = (await repository.upsert_session(build('{"a": 1}'))).session

        assert await repository.find_by_id("portal", "main_session", created.id) == created
        assert await repository.find_by_id("mobile", "main_session", created.id) is None
        assert await repository.find_by_id("portal", "main_session", "missing") is None

    @pytest.mark.asyncio
    async def test_list_in_insertion_order(self, repository):
        for n in [3, 1, 2]:
            await repository.upsert_session(build(f'{{"n": {n}}}'))
        await repository.upsert_session(build('{"n": 9}', source="mobile"))

        sessions = await repository.list_by_source_and_type("portal", "main_session")
        assert [s.data["n"] for s in sessions] == [3, 1, 2]

    @pytest.mark.asyncio
    async def test_query_by_payload_field(self, repository):
        await repository.upsert_session(build('{"user": {"id": 7}, "tags": ["x"]}'))
        await repository.upsert_session(build('{"user": {"id": 8}, "tags": ["y"]}'))

        by_id = await repository.query_by_source_and_type("portal", "main_session", "user.id", 7)
        by_tag = await repository.query_by_source_and_type("portal", "main_session", "tags", "y")

        assert [s.data["user"]["id"] for s in by_id] == [7]
        assert [s.data["user"]["id"] for s in by_tag] == [8]

    @pytest.mark.asyncio
    async def test_query_matching_nothing(self, repository):
        await repository.upsert_session(build('{"a": 1}'))
        assert await repository.query_by_source_and_type("portal", "main_session", "a", 2) == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("field", ["", "a..b", "$where", "a.$gt"])
    async def test_query_with_malformed_field(self, repository, field):
        with pytest.raises(SessionQueryInvalidError) as exc_info:
            await repository.query_by_source_and_type("portal", "main_session", field, 1)
        assert exc_info.value.field == field

    @pytest.mark.asyncio
    async def test_query_with_non_json_value(self, repository):
        with pytest.raises(SessionQueryInvalidError):
            await repository.query_by_source_and_type(
                "portal", "main_session", "a", float("nan")
            )

    @pytest.mark.asyncio
    async def test_delete_by_id(self, repository):
        created = (await repository.upsert_session(build('{"a": 1}'))).session

        assert await repository.delete_by_id("mobile", "main_session", created.id) == 0
        assert await repository.delete_by_id("portal", "main_session", created.id) == 1
        assert await repository.delete_by_id("portal", "main_session", created.id) == 0

    @pytest.mark.asyncio
    async def test_read_while_store_down(self):
        store = AsyncMock()
        store.find.side_effect = StoreConnectionError("down")

        with pytest.raises(StoreUnavailableError):
            await SessionRepository(store).list_by_source_and_type("portal", "main_session")
