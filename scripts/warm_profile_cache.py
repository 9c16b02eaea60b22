#!/usr/bin/env python3
"""
Warm the profile cache for a set of upstream identifiers.

Runs the same read-through lookup the service performs, so ids that are
already cached are left untouched and missing ids are fetched and stored.
Can be executed manually from a developer workstation or a CI job.
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Dict, Iterable, List

from shared.config import get_config
from shared.errors import AccessLayerException
from shared.logging import configure_logging
from service_profiles.app.codec.json_codec import DEFAULT_CODEC
from service_profiles.app.domain.models import parse_external_id
from service_profiles.app.lookup.orchestrator import ProfileLookupService
from service_profiles.app.persistence.memory import InMemoryAuditStore
from service_profiles.app.persistence.postgres import PostgreSQLAuditStore
from service_profiles.app.upstream.client import ProfileClient


def expand_ids(specs: Iterable[str]) -> List[int]:
    """Expand ``"3"``, ``"1-10"`` and ``"1,2,5"`` style specs into sorted ids."""
    ids = set()
    for spec in specs:
        for part in spec.split(","):
            part = part.strip()
            if not part:
                continue
            if "-" in part:
                low, high = part.split("-", 1)
                first, last = parse_external_id(low), parse_external_id(high)
                if first > last:
                    raise ValueError(f"Empty id range: {part}")
                ids.update(range(first, last + 1))
            else:
                ids.add(parse_external_id(part))
    return sorted(ids)


async def warm(lookup_service: ProfileLookupService, ids: List[int], concurrency: int, dry_run: bool) -> Dict:
    """Look up every id with bounded concurrency and return a summary."""
    semaphore = asyncio.Semaphore(max(1, concurrency))
    summary: Dict = {"requested": len(ids), "cached": [], "already_cached": [], "failed": {}}

    async def _warm_one(external_id: int):
        async with semaphore:
            if await lookup_service.store.find_by_external_id(external_id) is not None:
                summary["already_cached"].append(external_id)
                return
            if dry_run:
                return
            try:
                await lookup_service.lookup(str(external_id))
                summary["cached"].append(external_id)
            except AccessLayerException as exc:
                summary["failed"][str(external_id)] = exc.message

    await asyncio.gather(*(_warm_one(external_id) for external_id in ids))

    summary["cached"].sort()
    summary["already_cached"].sort()
    return summary


async def run(args: argparse.Namespace) -> Dict:
    config = get_config("profiles", 8080)
    configure_logging("profiles", args.log_level or config.log_level)

    backend = (args.storage_backend or config.storage_backend).lower()
    if backend == "memory":
        store = InMemoryAuditStore(DEFAULT_CODEC)
    else:
        store = PostgreSQLAuditStore(args.postgres_dsn or config.postgres_dsn, DEFAULT_CODEC)
    client = ProfileClient(args.upstream_url or config.profile_upstream_url)

    try:
        await store.start()
        lookup_service = ProfileLookupService(store, client)
        concurrency = args.concurrency or config.cache_warm_concurrency
        return await warm(lookup_service, expand_ids(args.ids), concurrency, args.dry_run)
    finally:
        try:
            await store.stop()
        finally:
            await client.close()


def _parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Warm the profile cache for upstream ids.")
    parser.add_argument("ids", nargs="+", help="Ids or ranges, e.g. 1 2 5-10 or 1,2,3")
    parser.add_argument("--postgres-dsn", default=None, help="PostgreSQL DSN (defaults to PROFILES_POSTGRES_DSN)")
    parser.add_argument("--storage-backend", choices=["postgres", "memory"], default=None, help="Audit store backend")
    parser.add_argument("--upstream-url", default=None, help="Profile upstream base URL")
    parser.add_argument("--concurrency", type=int, default=None, help="Concurrent lookups")
    parser.add_argument("--log-level", default=None, help="Log level")
    parser.add_argument("--dry-run", action="store_true", help="Only report which ids are already cached")
    parser.add_argument("--output", type=Path, default=None, help="Optional path to write JSON summary")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = _parse_args(argv)
    try:
        summary = asyncio.run(run(args))
    except KeyboardInterrupt:
        return 130
    except (AccessLayerException, ValueError) as exc:
        print(f"[profile-cache-warm] failed: {exc}", file=sys.stderr)
        return 1

    if args.dry_run:
        print("[profile-cache-warm] DRY RUN - no upstream fetches executed")

    print(json.dumps(summary, indent=2))

    if args.output:
        args.output.write_text(json.dumps(summary, indent=2))

    return 1 if summary["failed"] else 0


if __name__ == "__main__":
    raise SystemExit(main())
