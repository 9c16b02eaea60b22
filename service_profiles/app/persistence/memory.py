"""
In-memory audit store.
"""

import itertools
from typing import Dict, List, Optional, Tuple

from shared.logging import get_logger
from shared.errors import PersistenceError
from ..codec.json_codec import ProfileCodec, DEFAULT_CODEC
from ..domain.models import AuditRecord


class InMemoryAuditStore:
    """Process-local AuditStore.

    Payloads are kept as encoded text so reads go through the codec exactly
    as they do against PostgreSQL.
    """

    def __init__(self, codec: ProfileCodec = DEFAULT_CODEC):
        self.codec = codec
        self.logger = get_logger("profiles.persistence.memory")
        self._rows: Dict[int, Tuple[int, str]] = {}
        self._by_external_id: Dict[int, int] = {}
        self._ids = itertools.count(1)

    async def start(self):
        self.logger.info("In-memory audit store started")

    async def stop(self):
        self.logger.info("In-memory audit store stopped", records=len(self._rows))

    async def find_by_external_id(self, external_id: int) -> Optional[AuditRecord]:
        record_id = self._by_external_id.get(external_id)
        if record_id is None:
            return None
        return self._load(record_id)

    async def save(self, record: AuditRecord) -> AuditRecord:
        if record.id is not None:
            raise PersistenceError(
                "Audit records are insert-only",
                details={"id": record.id, "external_id": record.external_id}
            )

        existing_id = self._by_external_id.get(record.external_id)
        if existing_id is not None:
            self.logger.info("Audit record already cached", id=existing_id, external_id=record.external_id)
            return self._load(existing_id)

        payload = self.codec.encode(record.profile)
        record_id = next(self._ids)
        self._rows[record_id] = (record.external_id, payload)
        self._by_external_id[record.external_id] = record_id

        self.logger.info("Audit record saved", id=record_id, external_id=record.external_id)
        return AuditRecord(id=record_id, external_id=record.external_id, profile=record.profile)

    async def find_all(self) -> List[AuditRecord]:
        return [self._load(record_id) for record_id in list(self._rows)]

    async def find_by_id(self, record_id: int) -> Optional[AuditRecord]:
        if record_id not in self._rows:
            return None
        return self._load(record_id)

    def _load(self, record_id: int) -> AuditRecord:
        external_id, payload = self._rows[record_id]
        return AuditRecord(id=record_id, external_id=external_id, profile=self.codec.decode(payload))

    async def health_check(self) -> bool:
        return True
