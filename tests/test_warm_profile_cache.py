"""
Tests for the profile cache warm script.
"""

import json
import os
import sys

import pytest
from unittest.mock import AsyncMock, MagicMock

from shared.errors import PersistenceError, ValidationError
from shared.test_helpers import create_upstream_transport
from service_profiles.app.lookup.orchestrator import ProfileLookupService
from service_profiles.app.persistence.memory import InMemoryAuditStore
from service_profiles.app.upstream.client import ProfileClient

sys.path.append(os.path.join(os.path.dirname(__file__), '..', 'scripts'))

import warm_profile_cache  # noqa: E402


class TestExpandIds:
    """Test cases for id spec expansion."""

    def test_single_ids_and_ranges(self):
        assert warm_profile_cache.expand_ids(["3", "1-2", "5,7"]) == [1, 2, 3, 5, 7]

    def test_duplicates_are_collapsed(self):
        assert warm_profile_cache.expand_ids(["1-3", "2"]) == [1, 2, 3]

    def test_empty_range_is_rejected(self):
        with pytest.raises(ValueError):
            warm_profile_cache.expand_ids(["5-1"])

    def test_invalid_id_is_rejected(self):
        with pytest.raises(ValidationError):
            warm_profile_cache.expand_ids(["abc"])


class TestWarm:
    """Test cases for cache warming."""

    @pytest.fixture
    def calls(self):
        return []

    @pytest.fixture
    def lookup_service(self, calls):
        client = ProfileClient("https://upstream.test", transport=create_upstream_transport(calls=calls))
        return ProfileLookupService(InMemoryAuditStore(), client)

    @pytest.mark.asyncio
    async def test_warm_caches_missing_ids(self, lookup_service, calls):
        await lookup_service.lookup("1")

        summary = await warm_profile_cache.warm(lookup_service, [1, 2, 3, 999], concurrency=2, dry_run=False)

        assert summary["requested"] == 4
        assert summary["already_cached"] == [1]
        assert summary["cached"] == [2, 3]
        assert "404 Not Found" in summary["failed"]["999"]
        assert calls.count("/users/1") == 1

    @pytest.mark.asyncio
    async def test_dry_run_does_not_fetch(self, lookup_service, calls):
        summary = await warm_profile_cache.warm(lookup_service, [1, 2], concurrency=5, dry_run=True)

        assert summary["cached"] == []
        assert summary["already_cached"] == []
        assert calls == []

    def test_main_with_memory_backend(self, monkeypatch, tmp_path, capsys):
        output = tmp_path / "summary.json"
        monkeypatch.setattr(
            warm_profile_cache,
            "ProfileClient",
            lambda url: ProfileClient(url, transport=create_upstream_transport())
        )

        exit_code = warm_profile_cache.main([
            "1-2",
            "--storage-backend", "memory",
            "--upstream-url", "https://upstream.test",
            "--output", str(output),
        ])

        assert exit_code == 0
        summary = json.loads(output.read_text())
        assert summary["cached"] == [1, 2]
        assert '"requested": 2' in capsys.readouterr().out

    def test_client_closed_when_store_fails_to_start(self, monkeypatch, capsys):
        store = MagicMock()
        store.start = AsyncMock(side_effect=PersistenceError("Could not connect to PostgreSQL: refused"))
        store.stop = AsyncMock()
        client = MagicMock()
        client.close = AsyncMock()
        monkeypatch.setattr(warm_profile_cache, "PostgreSQLAuditStore", lambda dsn, codec: store)
        monkeypatch.setattr(warm_profile_cache, "ProfileClient", lambda url: client)

        exit_code = warm_profile_cache.main(["1", "--storage-backend", "postgres"])

        assert exit_code == 1
        client.close.assert_awaited_once()
        store.stop.assert_awaited_once()
        assert "Could not connect to PostgreSQL" in capsys.readouterr().err
