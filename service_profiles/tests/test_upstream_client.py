"""
Unit tests for the upstream profile client.
"""

import json

import httpx
import pytest

from shared.errors import UpstreamError
from shared.test_helpers import TestDataFactory, create_upstream_transport
from service_profiles.app.domain.models import Profile
from service_profiles.app.upstream.client import ProfileClient


BASE_URL = "https://upstream.test"


def _client(handler) -> ProfileClient:
    return ProfileClient(BASE_URL, transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_fetch_returns_profile():
    calls = []
    client = ProfileClient(BASE_URL + "/", transport=create_upstream_transport(calls=calls))

    profile = await client.fetch("1")

    assert profile == Profile.model_validate(TestDataFactory.create_upstream_user(1))
    assert calls == ["/users/1"]
    await client.close()


@pytest.mark.asyncio
async def test_not_found_status_becomes_upstream_error():
    client = ProfileClient(BASE_URL, transport=create_upstream_transport())

    with pytest.raises(UpstreamError) as exc_info:
        await client.fetch("999")

    assert exc_info.value.upstream_message == "404 Not Found"
    assert exc_info.value.details["status_code"] == 404
    assert "404 Not Found" in exc_info.value.message
    await client.close()


@pytest.mark.asyncio
async def test_server_error_status_becomes_upstream_error():
    client = _client(lambda request: httpx.Response(503))

    with pytest.raises(UpstreamError) as exc_info:
        await client.fetch("1")

    assert exc_info.value.upstream_message == "503 Service Unavailable"


@pytest.mark.asyncio
async def test_transport_failure_becomes_upstream_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = _client(handler)

    with pytest.raises(UpstreamError) as exc_info:
        await client.fetch("1")

    assert "connection refused" in exc_info.value.upstream_message


@pytest.mark.asyncio
async def test_malformed_json_becomes_upstream_error():
    client = _client(lambda request: httpx.Response(200, content=b"{not json"))

    with pytest.raises(UpstreamError) as exc_info:
        await client.fetch("1")

    assert exc_info.value.upstream_message.startswith("Malformed response body")


@pytest.mark.asyncio
async def test_incomplete_profile_becomes_upstream_error():
    client = _client(lambda request: httpx.Response(200, json={"id": 1, "name": "Leanne Graham"}))

    with pytest.raises(UpstreamError) as exc_info:
        await client.fetch("1")

    assert exc_info.value.upstream_message == "Response body is not a valid profile"
    assert exc_info.value.details["errors"]


@pytest.mark.asyncio
async def test_fetch_does_not_retry():
    calls = []

    def handler(request):
        calls.append(request.url.path)
        return httpx.Response(500)

    client = _client(handler)

    with pytest.raises(UpstreamError):
        await client.fetch("1")

    assert calls == ["/users/1"]


@pytest.mark.asyncio
async def test_health_check():
    healthy = ProfileClient(BASE_URL, transport=create_upstream_transport())
    assert await healthy.health_check() is True

    def handler(request):
        raise httpx.ConnectError("down", request=request)

    assert await _client(handler).health_check() is False


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [
    b'{"lat": "NaN", "lng": 81.1496}',
    b'{"lat": "Infinity", "lng": 81.1496}',
    b'{"lat": NaN, "lng": 81.1496}',
    b'{"lat": -Infinity, "lng": 81.1496}',
])
async def test_non_finite_coordinates_become_upstream_error(body):
    user = TestDataFactory.create_upstream_user(1)
    content = json.dumps(user).replace(
        json.dumps(user["address"]["geo"]),
        body.decode("utf-8")
    ).encode("utf-8")
    client = _client(lambda request: httpx.Response(200, content=content))

    with pytest.raises(UpstreamError) as exc_info:
        await client.fetch("1")

    assert exc_info.value.upstream_message == "Response body is not a valid profile"
