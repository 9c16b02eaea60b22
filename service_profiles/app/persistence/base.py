"""
Audit store contract.
"""

from typing import List, Optional, Protocol

from ..domain.models import AuditRecord


class AuditStore(Protocol):
    """Storage for AuditRecords keyed by external id.

    Records are inserted once and never updated or deleted. At most one
    record exists per external id; saving a record whose external id is
    already stored returns the stored record unchanged.
    """

    async def start(self) -> None:
        ...

    async def stop(self) -> None:
        ...

    async def find_by_external_id(self, external_id: int) -> Optional[AuditRecord]:
        """Return the record cached under ``external_id`` or None."""
        ...

    async def save(self, record: AuditRecord) -> AuditRecord:
        """Insert a record that has no internal id yet and return it with one."""
        ...

    async def find_all(self) -> List[AuditRecord]:
        """Return every stored record, in no particular order."""
        ...

    async def find_by_id(self, record_id: int) -> Optional[AuditRecord]:
        """Return the record with the given internal id or None."""
        ...

    async def health_check(self) -> bool:
        ...
