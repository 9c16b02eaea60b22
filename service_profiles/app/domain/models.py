"""
Profile data models for the profile cache.
"""

import re
from dataclasses import dataclass
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from shared.errors import ValidationError

# Storage column for the external id is a 32-bit INTEGER
MAX_EXTERNAL_ID = 2**31 - 1

_EXTERNAL_ID_PATTERN = re.compile(r"\d+", re.ASCII)


class _ValueObject(BaseModel):
    """Immutable, structurally compared value object."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, allow_inf_nan=False)


class Geo(_ValueObject):
    """Latitude/longitude pair."""
    lat: float
    lng: float


class Address(_ValueObject):
    """Postal address with coordinates."""
    street: str
    suite: str
    city: str
    zipcode: str
    geo: Geo


class Company(_ValueObject):
    """Employer information."""
    name: str
    catch_phrase: str = Field(alias="catchPhrase")
    tagline: str = Field(alias="bs")


class Profile(_ValueObject):
    """User profile as returned by the upstream service."""
    id: str = Field(..., description="Identifier assigned by the upstream service")
    name: str
    username: str
    email: str
    address: Address
    phone: str
    website: str
    company: Company

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_numeric_id(cls, value: Any) -> Any:
        # Upstream serves numeric ids
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value


@dataclass(frozen=True)
class AuditRecord:
    """Persisted cache entry wrapping a profile under its external id.

    ``id`` is assigned by the store on first save and is ``None`` before.
    The payload is always a resolved profile.
    """
    id: Optional[int]
    external_id: int
    profile: Profile

    def __post_init__(self):
        if not isinstance(self.profile, Profile):
            raise TypeError("AuditRecord.profile must be a Profile")


@dataclass(frozen=True)
class Absent:
    """No cache entry exists for the external id."""
    external_id: int


@dataclass(frozen=True)
class Present:
    """A persisted cache entry exists."""
    record: AuditRecord

    @property
    def profile(self) -> Profile:
        return self.record.profile


CacheEntry = Union[Absent, Present]


class AuditRecordResponse(BaseModel):
    """Response model for administrative record views."""
    model_config = ConfigDict(populate_by_name=True)

    id: int
    user_id: int = Field(..., alias="userId")
    data: Profile

    @classmethod
    def from_record(cls, record: AuditRecord) -> "AuditRecordResponse":
        return cls(id=record.id, user_id=record.external_id, data=record.profile)


def parse_external_id(value: str, label: str = "profile id") -> int:
    """Parse a path identifier into a storage integer key."""
    text = str(value).strip()
    if not _EXTERNAL_ID_PATTERN.fullmatch(text):
        raise ValidationError(
            f"Invalid {label}: {value!r}",
            details={"id": str(value)}
        )

    external_id = int(text)
    if external_id > MAX_EXTERNAL_ID:
        raise ValidationError(
            f"{label.capitalize()} out of range: {value!r}",
            details={"id": str(value), "max": MAX_EXTERNAL_ID}
        )
    return external_id
