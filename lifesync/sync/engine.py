"""
Bidirectional sync between the local mirror and the remote store.

One pass for a user:
1. read the ``lastSyncedAt`` watermark (absent means pull everything)
2. push every pending local record of every table (tables run concurrently)
3. pull every remote row changed since the watermark (tables run concurrently)
4. advance the watermark to the time the pass started

Per-record rejections are logged and left pending for the next pass. A table
whose push or pull cannot run at all is isolated from the others, but the
pass is then reported as failed and the watermark stays where it was.
"""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Dict, Iterable, List, Optional

from lifesync.core.config import settings
from lifesync.schemas.sync import SyncResult, TableSyncReport
from lifesync.sync.exceptions import RemoteRecordError, TransportError
from lifesync.sync.field_mapper import (
    ENTITIES,
    EntitySpec,
    iter_entities,
    parse_timestamp,
    serialize_timestamp,
    strip_local_only,
    strip_remote_only,
    to_local,
    to_remote,
    unparsed_timestamps,
    utcnow,
    validate_required,
)
from lifesync.sync.local_mirror import LocalMirror
from lifesync.sync.remote import RemoteStore

logger = logging.getLogger(__name__)

LAST_SYNC_KEY = "lastSyncedAt"


class SyncEngine:
    """
    Push-then-pull sync of every entity table for one user at a time.

    Usage:
        engine = SyncEngine(mirror, remote)
        if await engine.is_sync_needed():
            result = await engine.sync_now(user_id)
    """

    def __init__(
        self,
        mirror: LocalMirror,
        remote: RemoteStore,
        entities: Optional[Dict[str, EntitySpec]] = None,
        pass_timeout: Optional[float] = None,
        clock: Optional[Callable[[], datetime]] = None,
        stale_after: Optional[timedelta] = None,
    ):
        self.mirror = mirror
        self.remote = remote
        self.entities = entities or ENTITIES
        self.pass_timeout = pass_timeout
        self.clock = clock or utcnow
        self.stale_after = stale_after or timedelta(hours=settings.SYNC_STALE_AFTER_HOURS)
        self._locks: Dict[str, asyncio.Lock] = {}

    # ===========================
    # Watermark
    # ===========================

    async def get_last_sync_time(self) -> Optional[datetime]:
        value = await self.mirror.get_meta(LAST_SYNC_KEY)
        if not value:
            return None
        try:
            return parse_timestamp(value)
        except ValueError:
            logger.warning(f"Ignoring unreadable {LAST_SYNC_KEY} value {value!r}")
            return None

    async def is_sync_needed(self, now: Optional[datetime] = None) -> bool:
        """True if no pass ever completed, or the last one is older than ``stale_after``."""
        last_sync = await self.get_last_sync_time()
        if last_sync is None:
            return True
        return (now or self.clock()) - last_sync >= self.stale_after

    async def _advance_watermark(self, started_at: datetime) -> None:
        # A pass that started earlier never moves the watermark backwards
        current = await self.get_last_sync_time()
        if current is not None and current >= started_at:
            logger.debug(f"Watermark already at {current.isoformat()}, not moving it back")
            return
        await self.mirror.set_meta(LAST_SYNC_KEY, serialize_timestamp(started_at))

    # ===========================
    # Full pass
    # ===========================

    def _lock_for(self, user_id: str) -> asyncio.Lock:
        if user_id not in self._locks:
            self._locks[user_id] = asyncio.Lock()
        return self._locks[user_id]

    async def sync_now(self, user_id: str) -> SyncResult:
        """
        Run one full sync pass for ``user_id``.

        Never raises: any failure is reported in the returned ``SyncResult``.
        Passes for the same user run one after the other.
        """
        async with self._lock_for(user_id):
            started_at = self.clock()
            reports = {name: TableSyncReport(table=name) for name in self.entities}
            result = SyncResult(success=False, started_at=started_at)

            try:
                since = await self.get_last_sync_time()
                if self.pass_timeout:
                    await asyncio.wait_for(self._run_pass(user_id, since, reports), self.pass_timeout)
                else:
                    await self._run_pass(user_id, since, reports)
            except asyncio.TimeoutError:
                result.tables = list(reports.values())
                result.error = f"Sync timed out after {self.pass_timeout} seconds"
                logger.error(result.error)
                return result
            except Exception as e:
                result.tables = list(reports.values())
                result.error = str(e) or e.__class__.__name__
                logger.exception(f"Sync failed for user {user_id}")
                return result

            result.tables = list(reports.values())
            failed = [report for report in reports.values() if report.error]
            if failed:
                result.error = "; ".join(f"{report.table}: {report.error}" for report in failed)
                logger.error(f"Sync incomplete, watermark unchanged: {result.error}")
                return result

            await self._advance_watermark(started_at)
            result.success = True
            logger.info(
                f"Sync complete for user {user_id}: "
                f"pushed {result.total_pushed}, pulled {result.total_pulled}"
            )
            return result

    async def _run_pass(
        self,
        user_id: str,
        since: Optional[datetime],
        reports: Dict[str, TableSyncReport],
    ) -> None:
        entities = list(self.entities.values())

        # Push first so a pull never overwrites a local edit with its older remote state
        await self._gather_tables(
            entities,
            lambda entity: self._push_table(user_id, entity, reports[entity.local_table]),
            reports,
            "push",
        )

        # Tables that could not push keep their pending edits out of reach of the pull
        pullable = [entity for entity in entities if reports[entity.local_table].error is None]
        await self._gather_tables(
            pullable,
            lambda entity: self._pull_table(user_id, entity, since, reports[entity.local_table]),
            reports,
            "pull",
        )

    async def _gather_tables(
        self,
        entities: List[EntitySpec],
        run: Callable[[EntitySpec], Awaitable[None]],
        reports: Dict[str, TableSyncReport],
        phase: str,
    ) -> None:
        outcomes = await asyncio.gather(*(run(entity) for entity in entities), return_exceptions=True)

        for entity, outcome in zip(entities, outcomes):
            if isinstance(outcome, asyncio.CancelledError):
                raise outcome
            if not isinstance(outcome, Exception):
                continue

            report = reports[entity.local_table]
            if isinstance(outcome, TransportError):
                logger.error(f"Could not {phase} {entity.local_table}: {outcome}")
            else:
                logger.error(
                    f"Unexpected error during {phase} of {entity.local_table}",
                    exc_info=outcome,
                )
            report.error = f"{phase} failed: {outcome}"

    # ===========================
    # Push
    # ===========================

    async def _push_table(self, user_id: str, entity: EntitySpec, report: TableSyncReport) -> None:
        table = self.mirror.table(entity.local_table)
        pending = await table.query_pending()
        if not pending:
            return

        logger.debug(f"Pushing {len(pending)} pending {entity.local_table}")
        for record in pending:
            try:
                validate_required(record, entity)
                row = strip_local_only(to_remote({**record, "userId": user_id}, entity), entity)
                if record.get("deletedAt") is not None:
                    await self.remote.delete(entity.remote_table, row)
                else:
                    await self.remote.upsert(entity.remote_table, row)
            except RemoteRecordError as e:
                report.failed += 1
                logger.error(f"Failed to push {entity.local_table} record: {e}")
                continue

            # The flag stays set if the record was edited again while the push was in flight
            await table.clear_pending_flag(record["id"], if_updated_at=record.get("updatedAt"))
            report.pushed += 1

    # ===========================
    # Pull
    # ===========================

    async def _pull_table(
        self,
        user_id: str,
        entity: EntitySpec,
        since: Optional[datetime],
        report: TableSyncReport,
    ) -> None:
        """
        Apply remote changes newer than ``since`` to the local table.

        Rows without an id or with a timestamp that does not parse are skipped
        and counted, never stored. A row whose local copy is still pending is
        also skipped: pendingSync is only cleared after a confirmed push, so the
        local edit goes out on the next pass and the remote copy is overwritten
        there (last write wins at push time). Until then the remote version of
        that record is not visible on this device.
        """
        rows = await self.remote.select_changed(entity.remote_table, user_id, since)
        report.pulled = len(rows)
        if not rows:
            return

        table = self.mirror.table(entity.local_table)
        deleted_ids: List[str] = []
        active = []

        for row in rows:
            record = to_local(strip_remote_only(strip_local_only(row, entity)), entity)
            record_id = record.get("id")
            if not record_id:
                logger.warning(f"Skipping pulled {entity.local_table} row without id")
                report.skipped += 1
                continue

            bad_fields = unparsed_timestamps(record)
            if bad_fields:
                logger.warning(
                    f"Skipping pulled {entity.local_table} record {record_id}: "
                    f"unparseable {', '.join(bad_fields)}"
                )
                report.skipped += 1
                continue

            local = await table.get(record_id)
            if local is not None and local.get("pendingSync"):
                logger.warning(
                    f"Not overwriting {entity.local_table} record {record_id}: local changes still pending"
                )
                report.skipped += 1
                continue

            record["pendingSync"] = False
            if record.get("deletedAt") is not None:
                deleted_ids.append(record_id)
            else:
                active.append(record)

        report.removed = await table.delete_by_ids(deleted_ids)
        await table.bulk_upsert(active)


def build_engine(mirror: LocalMirror, remote: RemoteStore, tables: Optional[Iterable[str]] = None) -> SyncEngine:
    """Engine configured from settings, optionally restricted to some tables."""
    entities = {spec.local_table: spec for spec in iter_entities(tables)}
    return SyncEngine(mirror, remote, entities=entities, pass_timeout=settings.SYNC_PASS_TIMEOUT_SECONDS)
