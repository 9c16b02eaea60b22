"""
Codec package for the profile cache.

Converts profiles to and from the JSON text stored in the audit store. A
single stateless codec instance is shared by every store.
"""

from .json_codec import ProfileCodec, DEFAULT_CODEC

__all__ = ["ProfileCodec", "DEFAULT_CODEC"]
