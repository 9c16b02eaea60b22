"""
Read-through lookup orchestration for profiles.
"""

import asyncio
import functools
import time
from typing import TYPE_CHECKING, Dict, List, Optional

from shared.logging import get_logger
from shared.errors import NotFoundError, UpstreamError
from shared.tracing import trace_operation, add_span_attributes
from ..domain.models import (
    Absent,
    AuditRecord,
    CacheEntry,
    Present,
    Profile,
    parse_external_id,
)
from ..persistence.base import AuditStore

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector
    from ..upstream.client import ProfileClient


class ProfileLookupService:
    """Serves profiles from the audit store, populating it from upstream on miss.

    Lookups for different ids run independently. Concurrent lookups for the
    same uncached id share one population task, so the upstream is fetched
    and the record written at most once per id per process; the store's
    uniqueness constraint covers lookups running in other processes.
    """

    def __init__(
        self,
        store: AuditStore,
        client: "ProfileClient",
        *,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.store = store
        self.client = client
        self.metrics = metrics
        self.logger = get_logger("profiles.lookup")
        self._in_flight: Dict[int, "asyncio.Task[Profile]"] = {}

    async def lookup(self, profile_id: str) -> Profile:
        """Return the profile for ``profile_id``.

        Raises NotFoundError when the upstream cannot supply an uncached
        profile. Storage and codec errors propagate unchanged.
        """
        external_id = parse_external_id(profile_id)
        start_time = time.time()
        outcome = "error"

        try:
            with trace_operation("profiles.lookup", external_id=external_id):
                entry = await self._read_entry(external_id)

                if isinstance(entry, Present):
                    outcome = "hit"
                    add_span_attributes(cache_hit=True)
                    self._count("profile_cache_hits_total")
                    self.logger.info(
                        "Store profile value",
                        external_id=external_id,
                        record_id=entry.record.id
                    )
                    return entry.profile

                add_span_attributes(cache_hit=False)
                self._count("profile_cache_misses_total")
                profile = await self._populate(external_id)
                outcome = "miss"
                return profile
        finally:
            if self.metrics:
                self.metrics.observe_histogram(
                    "profile_lookup_duration_seconds",
                    time.time() - start_time,
                    outcome=outcome
                )

    async def list_records(self) -> List[AuditRecord]:
        """Return every cached record."""
        return await self.store.find_all()

    async def get_record(self, record_id: str) -> AuditRecord:
        """Return a cached record by its internal id."""
        internal_id = parse_external_id(record_id, label="record id")
        record = await self.store.find_by_id(internal_id)
        if record is None:
            raise NotFoundError(
                f"Audit record {internal_id} not found",
                details={"id": internal_id}
            )
        return record

    @property
    def in_flight(self) -> int:
        """Number of population tasks currently running."""
        return len(self._in_flight)

    async def _read_entry(self, external_id: int) -> CacheEntry:
        record = await self.store.find_by_external_id(external_id)
        if record is None:
            return Absent(external_id)
        return Present(record)

    async def _populate(self, external_id: int) -> Profile:
        task = self._in_flight.get(external_id)
        if task is None:
            task = asyncio.ensure_future(self._fetch_and_store(external_id))
            self._in_flight[external_id] = task
            task.add_done_callback(functools.partial(self._forget, external_id))
        else:
            self.logger.debug("Joining in-flight lookup", external_id=external_id)

        # A caller giving up must not cancel the population other callers await
        return await asyncio.shield(task)

    def _forget(self, external_id: int, task: "asyncio.Task[Profile]"):
        if self._in_flight.get(external_id) is task:
            del self._in_flight[external_id]
        # Mark the failure retrieved when every waiting caller was cancelled
        if not task.cancelled():
            task.exception()

    async def _fetch_and_store(self, external_id: int) -> Profile:
        # A population that completed after our first read may have written it
        entry = await self._read_entry(external_id)
        if isinstance(entry, Present):
            return entry.profile

        try:
            profile = await self.client.fetch(str(external_id))
        except UpstreamError as exc:
            self._count("profile_upstream_failures_total")
            self.logger.warning(
                "Upstream profile lookup failed",
                external_id=external_id,
                error=exc.upstream_message
            )
            raise NotFoundError(
                exc.upstream_message,
                details={"id": str(external_id), "source": exc.service}
            ) from exc

        self.logger.info("Upstream profile value", external_id=external_id, username=profile.username)

        saved = await self.store.save(
            AuditRecord(id=None, external_id=external_id, profile=profile)
        )
        return saved.profile

    def _count(self, metric_name: str):
        if self.metrics:
            self.metrics.increment_counter(metric_name)
