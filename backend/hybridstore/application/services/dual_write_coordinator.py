"""Dual-write coordinator: keeps one record's registry row and shard blob in step.

Writes go shard first, registry second. A failed shard write leaves the
registry untouched; a failed registry write leaves an orphaned blob that
is logged and left to lazy cleanup (see OrphanSweeper). Deletes run in the
opposite order of importance: the shard delete is best-effort, the
registry delete is authoritative.
"""

import dataclasses
import logging
from datetime import datetime, timezone

from hybridstore.application.interfaces import RegistryClient, ShardStore
from hybridstore.application.services.record_events import RecordEventBus
from hybridstore.domain.entities import Record, RecordEvent, RecordEventType, ShardPayload
from hybridstore.domain.exceptions import (
    EntityNotFoundError,
    PersistenceError,
    PersistenceErrorKind,
    RegistryError,
    ShardError,
)
from hybridstore.infrastructure.logging.colored_logger import PipelineLogger, PipelineStage

logger = logging.getLogger(__name__)
log = PipelineLogger("DualWriteCoordinator")


class DualWriteCoordinator:
    """Application service for committed (non-optimistic) persistence."""

    def __init__(
        self,
        shard: ShardStore,
        registry: RegistryClient,
        events: RecordEventBus | None = None,
    ):
        self._shard = shard
        self._registry = registry
        self._events = events

    @property
    def registry(self) -> RegistryClient:
        return self._registry

    async def save(
        self,
        record: Record,
        payload: ShardPayload | None = None,
        *,
        expected_updated_at: datetime | None = None,
        name_hint: str = "",
    ) -> Record:
        """Persist ``record`` (and its payload, when given) and return the committed copy.

        The returned record carries the shard pointer actually used, a
        refreshed ``updated_at`` and the rebuilt ``search_all`` column.
        """
        pointer = record.shard_pointer

        if payload is not None:
            hint = pointer.node_address if pointer else None
            try:
                with log.timed_step(
                    PipelineStage.SHARD,
                    "Writing payload",
                    record_id=record.id,
                    kind=record.kind,
                    bytes=payload.size,
                ):
                    pointer = await self._shard.write(
                        record.shard_pointer,
                        payload,
                        hint=hint,
                        name_hint=name_hint or f"{record.kind}_{record.id}",
                    )
            except ShardError as exc:
                raise PersistenceError(
                    PersistenceErrorKind.SHARD_WRITE_FAILED, record.id, exc
                ) from exc

        committed = dataclasses.replace(
            record,
            shard_pointer=pointer,
            updated_at=datetime.now(timezone.utc),
        )
        committed.search_all = committed.build_search_index()

        try:
            with log.timed_step(PipelineStage.REGISTRY, "Upserting row", record_id=record.id):
                await self._registry.upsert(committed, expected_updated_at=expected_updated_at)
        except RegistryError as exc:
            if payload is not None and pointer is not None:
                log.step_warning(
                    PipelineStage.SHARD,
                    f"Blob {pointer} orphaned by failed registry write",
                    error=exc,
                )
            raise PersistenceError(
                PersistenceErrorKind.REGISTRY_WRITE_FAILED, record.id, exc
            ) from exc

        if payload is not None and record.shard_pointer and record.shard_pointer != pointer:
            log.detail("Superseded blob left for cleanup", pointer=record.shard_pointer)

        self._publish(RecordEventType.SAVED, committed)
        return committed

    async def delete(self, record: Record) -> bool:
        """Delete the blob (best-effort), then the registry row (authoritative).

        Returns False when the row was already gone; no DELETED event is
        published in that case.
        """
        if record.shard_pointer is not None:
            try:
                with log.timed_step(PipelineStage.SHARD, "Deleting payload", pointer=record.shard_pointer):
                    await self._shard.delete(record.shard_pointer)
            except ShardError as exc:
                log.step_warning(
                    PipelineStage.SHARD,
                    f"Blob {record.shard_pointer} leaked; deleting the row anyway",
                    error=exc,
                )

        try:
            with log.timed_step(PipelineStage.REGISTRY, "Deleting row", record_id=record.id):
                deleted = await self._registry.delete(record.id)
        except RegistryError as exc:
            raise PersistenceError(
                PersistenceErrorKind.REGISTRY_WRITE_FAILED, record.id, exc
            ) from exc

        if deleted:
            self._publish(RecordEventType.DELETED, record)
        else:
            log.detail("Row already absent", record_id=record.id)
        return deleted

    async def delete_by_id(self, record_id: str) -> bool:
        """Look the row up to find its blob, then delete both. False if absent.

        Lookup failures surface as the registry error itself.
        """
        record = await self._registry.get(record_id)
        if record is None:
            return False
        return await self.delete(record)

    async def load_payload(self, record: Record) -> ShardPayload:
        """Read a record's payload. Raises EntityNotFoundError when it has none."""
        if record.shard_pointer is None:
            raise EntityNotFoundError("Payload", record.id)
        return await self._shard.read(record.shard_pointer)

    def _publish(self, event_type: RecordEventType, record: Record) -> None:
        if self._events is None:
            return
        try:
            self._events.publish(
                RecordEvent(event_type=event_type, record_id=record.id, record_kind=record.kind)
            )
        except Exception as exc:
            log.step_warning(PipelineStage.COMPLETE, f"Event {event_type.value} not published", error=exc)
