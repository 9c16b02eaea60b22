"""
Unit tests for the PostgreSQL audit store.
"""

import json

import asyncpg
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from shared.errors import EncodingError, PersistenceError
from shared.test_helpers import TestDataFactory
from service_profiles.app.codec.json_codec import DEFAULT_CODEC
from service_profiles.app.domain.models import AuditRecord, Profile
from service_profiles.app.persistence.postgres import PostgreSQLAuditStore


def _row(record_id: int, user_id: int):
    return {
        "id": record_id,
        "user_id": user_id,
        "data": json.dumps(TestDataFactory.create_upstream_user(user_id)),
    }


class TestPostgreSQLAuditStore:
    """Test cases for PostgreSQLAuditStore."""

    @pytest.fixture
    def conn(self):
        return AsyncMock()

    @pytest.fixture
    def store(self, conn):
        store = PostgreSQLAuditStore("postgres://localhost:5432/profiles")
        pool = MagicMock()
        pool.acquire.return_value.__aenter__.return_value = conn
        pool.acquire.return_value.__aexit__.return_value = False
        pool.close = AsyncMock()
        store.pool = pool
        return store

    @pytest.fixture
    def profile(self):
        return Profile.model_validate(TestDataFactory.create_upstream_user(1))

    @pytest.mark.asyncio
    async def test_start_creates_pool_and_schema(self, conn):
        pool = MagicMock()
        pool.acquire.return_value.__aenter__.return_value = conn
        pool.acquire.return_value.__aexit__.return_value = False

        with patch("service_profiles.app.persistence.postgres.asyncpg.create_pool", new=AsyncMock(return_value=pool)) as create_pool:
            store = PostgreSQLAuditStore("postgres://db/profiles", min_size=1, max_size=4)
            await store.start()

        create_pool.assert_awaited_once_with("postgres://db/profiles", min_size=1, max_size=4, command_timeout=30)
        statements = " ".join(call.args[0] for call in conn.execute.await_args_list)
        assert "CREATE TABLE IF NOT EXISTS users_audit" in statements
        assert "CREATE UNIQUE INDEX IF NOT EXISTS users_audit_user_id_key" in statements

    @pytest.mark.asyncio
    async def test_start_failure_raises_persistence_error(self):
        with patch(
            "service_profiles.app.persistence.postgres.asyncpg.create_pool",
            new=AsyncMock(side_effect=OSError("connection refused"))
        ):
            store = PostgreSQLAuditStore("postgres://db/profiles")
            with pytest.raises(PersistenceError) as exc_info:
                await store.start()

        assert "connection refused" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_operations_require_start(self):
        store = PostgreSQLAuditStore("postgres://db/profiles")

        with pytest.raises(PersistenceError):
            await store.find_by_external_id(1)

    @pytest.mark.asyncio
    async def test_find_by_external_id_decodes_payload(self, store, conn, profile):
        conn.fetchrow.return_value = _row(10, 1)

        record = await store.find_by_external_id(1)

        assert record == AuditRecord(id=10, external_id=1, profile=profile)
        sql, external_id = conn.fetchrow.await_args.args
        assert "WHERE user_id = $1" in sql
        assert external_id == 1

    @pytest.mark.asyncio
    async def test_find_by_external_id_miss(self, store, conn):
        conn.fetchrow.return_value = None

        assert await store.find_by_external_id(5) is None

    @pytest.mark.asyncio
    async def test_save_inserts_encoded_payload(self, store, conn, profile):
        conn.fetchval.return_value = 11

        saved = await store.save(AuditRecord(id=None, external_id=1, profile=profile))

        assert saved.id == 11
        assert saved.profile is profile
        sql, external_id, payload = conn.fetchval.await_args.args
        assert "ON CONFLICT (user_id) DO NOTHING" in sql
        assert external_id == 1
        assert DEFAULT_CODEC.decode(payload) == profile

    @pytest.mark.asyncio
    async def test_save_conflict_returns_existing_record(self, store, conn, profile):
        conn.fetchval.return_value = None
        conn.fetchrow.return_value = _row(4, 1)

        saved = await store.save(AuditRecord(id=None, external_id=1, profile=profile))

        assert saved.id == 4
        assert saved.profile == profile

    @pytest.mark.asyncio
    async def test_save_conflict_without_row_fails(self, store, conn, profile):
        conn.fetchval.return_value = None
        conn.fetchrow.return_value = None

        with pytest.raises(PersistenceError):
            await store.save(AuditRecord(id=None, external_id=1, profile=profile))

    @pytest.mark.asyncio
    async def test_save_rejects_existing_internal_id(self, store, conn, profile):
        with pytest.raises(PersistenceError):
            await store.save(AuditRecord(id=3, external_id=1, profile=profile))

        conn.fetchval.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_find_all(self, store, conn):
        conn.fetch.return_value = [_row(1, 1), _row(2, 2)]

        records = await store.find_all()

        assert [(r.id, r.external_id) for r in records] == [(1, 1), (2, 2)]

    @pytest.mark.asyncio
    async def test_find_by_id(self, store, conn):
        conn.fetchrow.return_value = _row(2, 3)

        record = await store.find_by_id(2)

        assert record.external_id == 3
        assert "WHERE id = $1" in conn.fetchrow.await_args.args[0]

    @pytest.mark.asyncio
    async def test_driver_errors_become_persistence_errors(self, store, conn):
        conn.fetchrow.side_effect = asyncpg.PostgresError("relation does not exist")

        with pytest.raises(PersistenceError) as exc_info:
            await store.find_by_external_id(1)

        assert exc_info.value.details["operation"] == "find_by_external_id"

    @pytest.mark.asyncio
    async def test_corrupt_payload_raises_encoding_error(self, store, conn):
        conn.fetchrow.return_value = {"id": 1, "user_id": 1, "data": "{\"id\": \"1\"}"}

        with pytest.raises(EncodingError):
            await store.find_by_external_id(1)

    @pytest.mark.asyncio
    async def test_health_check(self, store, conn):
        conn.fetchval.return_value = 1
        assert await store.health_check() is True

        conn.fetchval.side_effect = OSError("gone")
        assert await store.health_check() is False

    @pytest.mark.asyncio
    async def test_stop_closes_pool(self, store):
        pool = store.pool

        await store.stop()

        pool.close.assert_awaited_once()
        assert store.pool is None
