"""
Remote profile service client.
"""

import json
from typing import Optional

import httpx
from pydantic import ValidationError as PydanticValidationError

from shared.logging import get_logger
from shared.errors import UpstreamError
from ..domain.models import Profile


class ProfileClient:
    """Client for ``GET {base}/users/{id}`` on the upstream profile service."""

    def __init__(self, base_url: str, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = base_url.rstrip('/')
        self.logger = get_logger("profiles.upstream")
        # Transport defaults apply; no timeout or retry policy is owned here
        self._client = httpx.AsyncClient(base_url=self.base_url, transport=transport)

    async def fetch(self, profile_id: str) -> Profile:
        """Fetch a profile by its upstream identifier."""
        path = f"/users/{profile_id}"

        try:
            response = await self._client.get(path)
        except httpx.HTTPError as exc:
            self.logger.error("Profile upstream request failed", path=path, error=str(exc))
            raise UpstreamError(
                str(exc) or type(exc).__name__,
                details={"path": path}
            ) from exc

        if not response.is_success:
            message = f"{response.status_code} {response.reason_phrase}".strip()
            self.logger.info(
                "Profile upstream returned error status",
                path=path,
                status_code=response.status_code
            )
            raise UpstreamError(
                message,
                details={"path": path, "status_code": response.status_code}
            )

        try:
            return Profile.model_validate(response.json())
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            self.logger.error("Profile upstream returned malformed JSON", path=path, error=str(exc))
            raise UpstreamError(
                f"Malformed response body: {exc}",
                details={"path": path}
            ) from exc
        except PydanticValidationError as exc:
            self.logger.error("Profile upstream returned invalid profile", path=path, error_count=exc.error_count())
            raise UpstreamError(
                "Response body is not a valid profile",
                details={"path": path, "errors": exc.errors(include_url=False, include_context=False, include_input=False)}
            ) from exc

    async def health_check(self) -> bool:
        """Check that the upstream answers HTTP at all."""
        try:
            await self._client.head("/")
            return True
        except httpx.HTTPError:
            return False

    async def close(self):
        """Release the underlying HTTP client."""
        await self._client.aclose()
