"""
Persistence package for the profile cache.

Provides the AuditStore contract plus a PostgreSQL implementation (asyncpg)
and an in-memory implementation for local runs and tests. Both enforce one
record per external id.
"""

from .base import AuditStore
from .memory import InMemoryAuditStore
from .postgres import PostgreSQLAuditStore

__all__ = ["AuditStore", "InMemoryAuditStore", "PostgreSQLAuditStore"]
