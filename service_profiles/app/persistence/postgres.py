"""
PostgreSQL persistence layer for the profile cache.
"""

import asyncio
from contextlib import asynccontextmanager
from dataclasses import replace
from typing import List, Optional

import asyncpg

from shared.logging import get_logger
from shared.errors import PersistenceError
from ..codec.json_codec import ProfileCodec, DEFAULT_CODEC
from ..domain.models import AuditRecord

_DRIVER_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError, asyncio.TimeoutError)


class PostgreSQLAuditStore:
    """AuditStore backed by the ``users_audit`` table."""

    def __init__(self, dsn: str, codec: ProfileCodec = DEFAULT_CODEC, min_size: int = 2, max_size: int = 10):
        self.dsn = dsn
        self.codec = codec
        self.min_size = min_size
        self.max_size = max_size
        self.logger = get_logger("profiles.persistence.postgres")
        self.pool: Optional[asyncpg.Pool] = None

    async def start(self):
        """Open the connection pool and create the schema."""
        try:
            self.pool = await asyncpg.create_pool(
                self.dsn,
                min_size=self.min_size,
                max_size=self.max_size,
                command_timeout=30
            )
        except _DRIVER_ERRORS as e:
            self.logger.error("Failed to start PostgreSQL audit store", error=str(e))
            raise PersistenceError(f"Could not connect to PostgreSQL: {e}") from e

        await self._create_tables()
        self.logger.info("PostgreSQL audit store started")

    async def stop(self):
        """Close the connection pool."""
        if self.pool:
            await self.pool.close()
            self.pool = None
            self.logger.info("PostgreSQL audit store stopped")

    @asynccontextmanager
    async def _connection(self, operation: str):
        if self.pool is None:
            raise PersistenceError("Audit store is not started", details={"operation": operation})

        try:
            async with self.pool.acquire() as conn:
                yield conn
        except _DRIVER_ERRORS as e:
            self.logger.error("Audit store operation failed", operation=operation, error=str(e))
            raise PersistenceError(f"{operation} failed: {e}", details={"operation": operation}) from e

    async def _create_tables(self):
        """Create the audit table and its external id constraint."""
        async with self._connection("create_tables") as conn:
            await conn.execute("""
                CREATE TABLE IF NOT EXISTS users_audit (
                    id SERIAL PRIMARY KEY,
                    user_id INTEGER NOT NULL,
                    data JSONB NOT NULL
                );
            """)

            # Tables created before the constraint existed get it here; this
            # fails loudly if duplicate external ids were already written.
            await conn.execute("""
                CREATE UNIQUE INDEX IF NOT EXISTS users_audit_user_id_key ON users_audit(user_id);
            """)

    async def find_by_external_id(self, external_id: int) -> Optional[AuditRecord]:
        """Load the record cached for an external id."""
        async with self._connection("find_by_external_id") as conn:
            row = await conn.fetchrow("""
                SELECT id, user_id, data FROM users_audit WHERE user_id = $1
            """, external_id)

        if not row:
            return None
        return self._row_to_record(row)

    async def save(self, record: AuditRecord) -> AuditRecord:
        """Insert a new record.

        A conflicting insert on ``user_id`` means another lookup cached the
        profile first; the stored record is returned instead.
        """
        if record.id is not None:
            raise PersistenceError(
                "Audit records are insert-only",
                details={"id": record.id, "external_id": record.external_id}
            )

        payload = self.codec.encode(record.profile)

        async with self._connection("save") as conn:
            record_id = await conn.fetchval("""
                INSERT INTO users_audit (user_id, data) VALUES ($1, $2::jsonb)
                ON CONFLICT (user_id) DO NOTHING
                RETURNING id
            """, record.external_id, payload)

        if record_id is not None:
            self.logger.info("Audit record saved", id=record_id, external_id=record.external_id)
            return replace(record, id=record_id)

        existing = await self.find_by_external_id(record.external_id)
        if existing is None:
            raise PersistenceError(
                "Insert conflicted but no record exists",
                details={"external_id": record.external_id}
            )

        self.logger.info("Audit record already cached", id=existing.id, external_id=record.external_id)
        return existing

    async def find_all(self) -> List[AuditRecord]:
        """Load all records."""
        async with self._connection("find_all") as conn:
            rows = await conn.fetch("""
                SELECT id, user_id, data FROM users_audit
            """)

        return [self._row_to_record(row) for row in rows]

    async def find_by_id(self, record_id: int) -> Optional[AuditRecord]:
        """Load a record by internal id."""
        async with self._connection("find_by_id") as conn:
            row = await conn.fetchrow("""
                SELECT id, user_id, data FROM users_audit WHERE id = $1
            """, record_id)

        if not row:
            return None
        return self._row_to_record(row)

    def _row_to_record(self, row) -> AuditRecord:
        """Convert database row to AuditRecord."""
        return AuditRecord(
            id=row['id'],
            external_id=row['user_id'],
            profile=self.codec.decode(row['data'])
        )

    async def health_check(self) -> bool:
        """Check database health."""
        try:
            async with self._connection("health_check") as conn:
                await conn.fetchval("SELECT 1")
                return True
        except PersistenceError:
            return False
