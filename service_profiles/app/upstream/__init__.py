"""
Upstream package for the profile cache.

Contains the HTTP client for the remote profile service. Every failure is
reported as UpstreamError; no retries are attempted.
"""

from .client import ProfileClient

__all__ = ["ProfileClient"]
