"""
Profile cache service.
"""

from typing import Dict, List, Optional

from shared.base_service import BaseService
from shared.config import ServiceConfig, get_config

from .codec.json_codec import DEFAULT_CODEC
from .domain.models import AuditRecordResponse, Profile
from .lookup.orchestrator import ProfileLookupService
from .persistence.base import AuditStore
from .persistence.memory import InMemoryAuditStore
from .persistence.postgres import PostgreSQLAuditStore
from .upstream.client import ProfileClient


class ProfilesService(BaseService):
    """Profile cache service implementation."""

    def __init__(
        self,
        config: Optional[ServiceConfig] = None,
        *,
        store: Optional[AuditStore] = None,
        client: Optional[ProfileClient] = None,
    ):
        super().__init__("profiles", 8080, config=config)

        self.store = store or self._create_store()
        self.client = client or ProfileClient(self.config.profile_upstream_url)
        self.lookup_service = ProfileLookupService(self.store, self.client, metrics=self.metrics)

        self._setup_profiles_routes()

    def _create_store(self) -> AuditStore:
        backend = self.config.storage_backend.lower()
        if backend == "memory":
            return InMemoryAuditStore(DEFAULT_CODEC)
        if backend == "postgres":
            return PostgreSQLAuditStore(
                self.config.postgres_dsn,
                DEFAULT_CODEC,
                min_size=self.config.postgres_min_pool_size,
                max_size=self.config.postgres_max_pool_size
            )
        raise ValueError(f"Unknown storage backend: {self.config.storage_backend}")

    def _setup_profiles_routes(self):
        """Set up profile-specific routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": "profiles",
                "message": "Profile cache - read-through user profile lookups",
                "version": "1.0.0",
                "storage_backend": self.config.storage_backend,
                "in_flight_lookups": self.lookup_service.in_flight
            }

        @self.app.get("/user/{profile_id}", response_model=Profile, response_model_by_alias=True)
        async def get_user(profile_id: str):
            """Look up a profile, fetching and caching it on first request."""
            return await self.lookup_service.lookup(profile_id)

        @self.app.get("/db", response_model=List[AuditRecordResponse], response_model_by_alias=True)
        async def list_db_users():
            """List every cached audit record."""
            records = await self.lookup_service.list_records()
            return [AuditRecordResponse.from_record(record) for record in records]

        @self.app.get("/db/{record_id}", response_model=AuditRecordResponse, response_model_by_alias=True)
        async def get_db_user(record_id: str):
            """Get one cached audit record by internal id."""
            record = await self.lookup_service.get_record(record_id)
            return AuditRecordResponse.from_record(record)

    async def _check_dependencies(self) -> Dict[str, str]:
        """Check profile service dependencies."""
        return {
            "storage": "ok" if await self.store.health_check() else "error",
            "upstream": "ok" if await self.client.health_check() else "error",
        }

    async def start(self):
        """Start profile service components."""
        await self.store.start()
        self.logger.info(
            "Profiles service started",
            storage_backend=self.config.storage_backend,
            upstream=self.config.profile_upstream_url
        )

    async def stop(self):
        """Stop profile service components."""
        await self.store.stop()
        await self.client.close()
        self.logger.info("Profiles service stopped")


def create_app(config: Optional[ServiceConfig] = None):
    """Create profile service application."""
    service = ProfilesService(config)
    return service.app


if __name__ == "__main__":
    service = ProfilesService(get_config("profiles", 8080))
    service.run()
