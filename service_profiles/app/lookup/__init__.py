"""
Lookup package for the profile cache.

Implements the read-through protocol over the audit store and the upstream
client.
"""

from .orchestrator import ProfileLookupService

__all__ = ["ProfileLookupService"]
