"""
JSON codec for profiles stored in the audit store.
"""

import json
from typing import Any, Mapping, Union

from pydantic import ValidationError as PydanticValidationError

from shared.errors import EncodingError
from ..domain.models import Profile


class ProfileCodec:
    """Stateless JSON encoder/decoder for Profile.

    Encoded text uses the upstream field names (``catchPhrase``, ``bs``) so
    stored payloads look like the responses they were cached from.
    """

    __slots__ = ()

    def encode(self, profile: Profile) -> str:
        """Encode a profile to JSON text."""
        if not isinstance(profile, Profile):
            raise EncodingError(
                f"Cannot encode {type(profile).__name__} as a profile"
            )
        try:
            # model_dump_json writes non-finite floats as null
            return json.dumps(
                profile.model_dump(by_alias=True),
                allow_nan=False,
                ensure_ascii=False,
                separators=(",", ":")
            )
        except ValueError as exc:
            raise EncodingError(
                f"Profile {profile.id} is not representable as JSON: {exc}",
                details={"id": profile.id}
            ) from exc

    def decode(self, payload: Union[str, bytes, Mapping[str, Any]]) -> Profile:
        """Decode JSON text (or an already-parsed mapping) into a profile.

        Raises EncodingError for malformed JSON or incomplete profiles.
        """
        try:
            if isinstance(payload, (str, bytes, bytearray)):
                return Profile.model_validate_json(payload)
            if isinstance(payload, Mapping):
                return Profile.model_validate(dict(payload))
        except PydanticValidationError as exc:
            raise EncodingError(
                "Stored profile payload is invalid",
                details={"errors": exc.errors(include_url=False, include_context=False, include_input=False)}
            ) from exc

        raise EncodingError(
            f"Unsupported profile payload type: {type(payload).__name__}"
        )


DEFAULT_CODEC = ProfileCodec()
