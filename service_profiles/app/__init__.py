"""
Profile cache service.

Fronts a remote user-profile lookup service with a persistent audit store so
that repeated lookups of the same identifier are served from local storage.

- app.main: API surface (lookups, administrative listing, health).
- app.domain: Profile value objects and the persisted AuditRecord.
- app.codec: JSON codec used at the storage boundary.
- app.upstream: HTTP client for the remote profile service.
- app.persistence: Audit store contract with PostgreSQL and in-memory backends.
- app.lookup: Read-through orchestration.

Guidelines:
- Entries are written once and never updated or deleted.
- Storage and codec failures propagate; upstream failures become NotFound.
"""
