#!/usr/bin/env python3
"""
LifeSync command line.

Usage:
    lifesync sync --user USER_ID      # run a full sync pass now
    lifesync check --user USER_ID     # sync only if the last pass is stale
    lifesync status                   # show the last sync time and pending records
"""

import argparse
import asyncio
import logging
import os
import sys

from lifesync.core.config import settings
from lifesync.database.engine import create_local_engine
from lifesync.sync.engine import SyncEngine
from lifesync.sync.local_mirror import LocalMirror

logger = logging.getLogger(__name__)


async def run_sync(user_id: str, only_if_stale: bool) -> int:
    from lifesync.client import LifeSyncClient

    client = LifeSyncClient(user_id)
    await client.start(auto_sync=False)
    try:
        if only_if_stale:
            result = await client.sync.check_and_sync()
            if result is None:
                print(f"Up to date (last synced {client.sync.last_synced.isoformat()})")
                return 0
        else:
            result = await client.sync.sync()
    finally:
        await client.close()

    for report in result.tables:
        line = f"  {report.table:<18} pushed {report.pushed:>4}  pulled {report.pulled:>4}  removed {report.removed:>4}"
        if report.failed:
            line += f"  failed {report.failed}"
        if report.skipped:
            line += f"  skipped {report.skipped}"
        if report.error:
            line += f"  ERROR {report.error}"
        print(line)

    if not result.success:
        print(f"✗ Sync failed: {result.error}")
        return 1
    print("✓ Sync complete")
    return 0


async def show_status() -> int:
    mirror = LocalMirror(create_local_engine())
    mirror.create_tables()
    engine = SyncEngine(mirror, remote=None)

    last_sync = await engine.get_last_sync_time()
    print(f"Local database: {settings.LOCAL_DATABASE_URL}")
    print(f"Last synced:    {last_sync.isoformat() if last_sync else 'never'}")
    print(f"Sync needed:    {'yes' if await engine.is_sync_needed() else 'no'}")
    for name in mirror.table_names:
        pending = await mirror.table(name).query_pending()
        print(f"  {name:<18} {len(pending)} pending")
    return 0


def main(argv=None):
    """Main entry point."""
    parser = argparse.ArgumentParser(description="LifeSync offline-first sync")
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    for name, help_text in (
        ("sync", "Run a full sync pass now"),
        ("check", "Sync only if the last successful pass is older than the staleness window"),
    ):
        command = subparsers.add_parser(name, help=help_text)
        command.add_argument(
            "--user",
            default=os.getenv("LIFESYNC_USER_ID"),
            help="User id to sync (default: $LIFESYNC_USER_ID)"
        )

    subparsers.add_parser("status", help="Show the last sync time and pending records")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )

    if args.command == "status":
        return asyncio.run(show_status())

    if not args.user:
        parser.error("--user is required (or set LIFESYNC_USER_ID)")
    return asyncio.run(run_sync(args.user, only_if_stale=args.command == "check"))


if __name__ == "__main__":
    sys.exit(main())
