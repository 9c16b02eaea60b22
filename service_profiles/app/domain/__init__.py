"""
Domain package for the profile cache.

Profiles are immutable value objects sourced from the upstream service;
AuditRecords wrap a profile under its external identifier for persistence.
"""

from .models import (
    Geo,
    Address,
    Company,
    Profile,
    AuditRecord,
    AuditRecordResponse,
    Absent,
    Present,
    CacheEntry,
    parse_external_id,
)

__all__ = [
    "Geo",
    "Address",
    "Company",
    "Profile",
    "AuditRecord",
    "AuditRecordResponse",
    "Absent",
    "Present",
    "CacheEntry",
    "parse_external_id",
]
