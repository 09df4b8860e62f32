"""Orphan sweeper: lazy cleanup of shard blobs no registry row points at."""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from hybridstore.application.interfaces import RegistryClient, ShardStore
from hybridstore.domain.entities import BlobInfo
from hybridstore.domain.exceptions import RegistryError, ShardError
from hybridstore.infrastructure.logging.colored_logger import PipelineLogger, PipelineStage

logger = logging.getLogger(__name__)
log = PipelineLogger("OrphanSweeper")


@dataclass
class SweepReport:
    scanned: int = 0
    deleted: int = 0
    in_grace: int = 0
    failed: int = 0
    unreachable_nodes: list[str] = field(default_factory=list)


class OrphanSweeper:
    """Asyncio daemon comparing node inventories with registry pointers.

    Blobs younger than the grace period are left alone: a save in flight has
    written its blob but not yet its registry row. Blobs with no modification
    time are never deleted.
    """

    def __init__(
        self,
        shard: ShardStore,
        registry: RegistryClient,
        *,
        interval: float = 3600,
        grace_seconds: float = 900,
    ) -> None:
        self._shard = shard
        self._registry = registry
        self._interval = interval
        self._grace = timedelta(seconds=grace_seconds)
        self._running = False
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the periodic sweep loop."""
        self._running = True
        self._task = asyncio.create_task(self._loop())
        logger.info("OrphanSweeper started (every %ss)", self._interval)

    async def stop(self) -> None:
        """Gracefully stop the sweep loop."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        logger.info("OrphanSweeper stopped")

    async def _loop(self) -> None:
        while self._running:
            try:
                await self.sweep_once()
            except asyncio.CancelledError:
                break
            except Exception:
                logger.exception("OrphanSweeper pass failed")

            await asyncio.sleep(self._interval)

    async def sweep_once(self, now: datetime | None = None) -> SweepReport:
        """One pass over every node. Inventories are taken before registry pointers."""
        now = now or datetime.now(timezone.utc)
        report = SweepReport()

        inventories: dict[str, list[BlobInfo]] = {}
        for address in self._shard.node_addresses:
            try:
                inventories[address] = await self._shard.list_blobs(address)
            except ShardError as exc:
                log.step_warning(PipelineStage.SWEEP, f"Node {address} skipped", error=exc)
                report.unreachable_nodes.append(address)

        try:
            referenced = await self._registry.referenced_pointers()
        except RegistryError as exc:
            log.step_error(PipelineStage.SWEEP, "Registry unavailable: nothing deleted", error=exc)
            raise

        with log.timed_step(PipelineStage.SWEEP, "Sweeping orphaned blobs", nodes=len(inventories)):
            for blobs in inventories.values():
                for blob in blobs:
                    report.scanned += 1
                    if blob.pointer in referenced:
                        continue
                    if blob.modified_at is None or now - blob.modified_at < self._grace:
                        report.in_grace += 1
                        continue
                    try:
                        await self._shard.delete(blob.pointer)
                        report.deleted += 1
                        log.detail("Deleted orphan", pointer=blob.pointer, size=blob.size)
                    except ShardError as exc:
                        report.failed += 1
                        log.step_warning(PipelineStage.SWEEP, f"Could not delete {blob.pointer}", error=exc)

        log.stats(
            scanned=report.scanned,
            deleted=report.deleted,
            in_grace=report.in_grace,
            failed=report.failed,
        )
        return report
