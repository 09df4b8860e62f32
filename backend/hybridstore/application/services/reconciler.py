"""Optimistic cache reconciler: owns one client-visible collection of records.

A user action enters *Pending* synchronously: one provisional entry per
intended record is inserted in a single state update. The async work then
runs through the dual-write coordinator and, once every entry of the batch
has resolved, the batch settles in another single state update:

    PENDING ──all ok──▶ COMMITTED   provisional entries → committed records
            └─any fail─▶ ROLLED_BACK provisional entries removed, error reported

Entries are matched by ``ProvisionalTag.batch_id``, never by position, and
every update is computed from the latest ``_entries`` with no ``await``
between read and write, so batches settling back to back cannot clobber
each other.
"""

import asyncio
import dataclasses
import logging
import uuid
from collections.abc import Awaitable, Callable, Iterable, Sequence
from typing import Literal

from hybridstore.application.services.dual_write_coordinator import DualWriteCoordinator
from hybridstore.domain.entities import (
    AttachmentRecord,
    BatchMode,
    BatchOutcome,
    BatchState,
    BusyToken,
    Entry,
    OperationBatch,
    ProvisionalEntry,
    ProvisionalTag,
    Record,
    RegistryPage,
    RegistryQuery,
    ShardPayload,
    UploadItem,
)
from hybridstore.domain.exceptions import (
    EntityNotFoundError,
    ProvisionalEntryError,
    ReconciliationError,
)
from hybridstore.infrastructure.logging.colored_logger import PipelineLogger, PipelineStage

logger = logging.getLogger(__name__)
log = PipelineLogger("OptimisticReconciler")

Resolver = Callable[[ProvisionalEntry], Awaitable[Record]]
ErrorHandler = Callable[[ReconciliationError], None]
Listener = Callable[[tuple[Entry, ...]], None]
Position = Literal["prepend", "append"]


class OptimisticReconciler:
    """Client-side state machine for optimistic saves, uploads, updates and deletes.

    ``on_error`` receives exactly one ReconciliationError per failed batch
    (the toast/banner); nothing here raises a batch failure at the caller.
    """

    def __init__(
        self,
        coordinator: DualWriteCoordinator,
        initial: Iterable[Record] = (),
        on_error: ErrorHandler | None = None,
    ):
        self._coordinator = coordinator
        self._entries: tuple[Entry, ...] = tuple(initial)
        self._batches: dict[str, OperationBatch] = {}
        self._on_error = on_error
        self._listeners: list[Listener] = []

    # ── State ───────────────────────────────────────────────────────

    @property
    def entries(self) -> tuple[Entry, ...]:
        return self._entries

    @property
    def records(self) -> list[Record]:
        return [e for e in self._entries if not e.is_provisional]

    @property
    def pending_batches(self) -> list[OperationBatch]:
        return list(self._batches.values())

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a snapshot listener; returns the unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set(self, entries: Iterable[Entry]) -> None:
        self._entries = tuple(entries)
        for listener in list(self._listeners):
            try:
                listener(self._entries)
            except Exception:
                logger.exception("Collection listener failed")

    def busy(self) -> BusyToken:
        return BusyToken(
            pending_batches=frozenset(self._batches),
            provisional_ids=frozenset(e.id for e in self._entries if e.is_provisional),
        )

    def find(self, entry_id: str) -> Entry | None:
        return next((e for e in self._entries if e.id == entry_id), None)

    def ensure_destructible(self, entry_id: str) -> Record:
        """Return the committed record, refusing entries that are still syncing."""
        entry = self.find(entry_id)
        if entry is None:
            raise EntityNotFoundError("Record", entry_id)
        if isinstance(entry, ProvisionalEntry):
            raise ProvisionalEntryError(entry_id)
        return entry

    # ── Batch lifecycle ─────────────────────────────────────────────

    def begin(
        self,
        drafts: Sequence[Record],
        previews: Sequence[str | None] | None = None,
        *,
        mode: BatchMode = BatchMode.ALL_OR_NOTHING,
        position: Position = "prepend",
    ) -> OperationBatch:
        """Enter Pending: insert one provisional entry per draft in one update."""
        if not drafts:
            raise ValueError("A batch needs at least one draft")
        if position not in ("prepend", "append"):
            raise ValueError(f"Unknown position '{position}'")

        batch_id = uuid.uuid4().hex
        previews = list(previews or [])
        provisional = tuple(
            ProvisionalEntry(
                tag=ProvisionalTag(
                    batch_id=batch_id,
                    index=i,
                    preview_ref=previews[i] if i < len(previews) else None,
                ),
                draft=draft,
            )
            for i, draft in enumerate(drafts)
        )
        batch = OperationBatch(batch_id=batch_id, entries=provisional, mode=mode)
        self._batches[batch_id] = batch

        if position == "prepend":
            self._set(provisional + self._entries)
        else:
            self._set(self._entries + provisional)

        log.step_start(PipelineStage.RECONCILE, "Batch pending", batch_id=batch_id, entries=len(batch), mode=mode.value)
        return batch

    def _settle(self, batch: OperationBatch, committed: dict[int, Record], state: BatchState) -> None:
        """Replace or drop every entry tagged with ``batch``; others are untouched."""
        committed_ids = {r.id for r in committed.values()}
        settled: list[Entry] = []
        for entry in self._entries:
            if isinstance(entry, ProvisionalEntry):
                if entry.belongs_to(batch.batch_id):
                    record = committed.get(entry.tag.index)
                    if record is not None:
                        settled.append(record)
                    continue
            elif entry.id in committed_ids:
                continue
            settled.append(entry)
        self._set(settled)

        batch.state = state
        batch.committed = [committed[i] for i in sorted(committed)]
        self._batches.pop(batch.batch_id, None)

    def commit(self, batch: OperationBatch, records: Sequence[Record]) -> None:
        """Swap the batch's provisional entries for ``records`` (aligned by index).

        Committing an already-settled batch is a no-op.
        """
        if batch.is_settled:
            return
        if len(records) != len(batch.entries):
            raise ValueError(
                f"Batch '{batch.batch_id}' has {len(batch.entries)} entries, got {len(records)} records"
            )
        self._settle(batch, dict(enumerate(records)), BatchState.COMMITTED)
        log.step_complete(PipelineStage.COMMIT, "Batch committed", batch_id=batch.batch_id, records=len(records))

    def rollback(self, batch: OperationBatch, error: Exception | None = None) -> None:
        """Remove the batch's provisional entries and report the failure once."""
        if batch.is_settled:
            return
        if error is not None and not batch.failures:
            batch.failures = {0: error}
        self._settle(batch, {}, BatchState.ROLLED_BACK)
        self._report(ReconciliationError(batch.batch_id, batch.failures))

    def discard(self, batch: OperationBatch) -> bool:
        """Cancel a pending batch: drop its entries now, compensate late successes.

        In-flight calls are not interrupted; ``run`` deletes whatever they
        manage to persist. Returns False when the batch had already settled.
        """
        if batch.is_settled:
            return False
        batch.discarded = True
        self._settle(batch, {}, BatchState.ROLLED_BACK)
        log.step_start(PipelineStage.ROLLBACK, "Batch discarded", batch_id=batch.batch_id)
        return True

    async def run(self, batch: OperationBatch, resolver: Resolver, *, concurrent: bool = True) -> BatchOutcome:
        """Resolve every entry, then settle the batch in one update."""
        if concurrent:
            results = await asyncio.gather(
                *(resolver(entry) for entry in batch.entries), return_exceptions=True
            )
        else:
            results = []
            for entry in batch.entries:
                try:
                    results.append(await resolver(entry))
                except Exception as exc:
                    results.append(exc)

        successes: dict[int, Record] = {}
        failures: dict[int, Exception] = {}
        for index, result in enumerate(results):
            if isinstance(result, BaseException):
                failures[index] = result
            else:
                successes[index] = result

        if batch.discarded:
            await self._compensate(successes.values())
            return BatchOutcome(batch.batch_id, BatchState.ROLLED_BACK, failures=tuple(failures.items()))

        if batch.is_settled:
            return BatchOutcome(batch.batch_id, batch.state, committed=tuple(batch.committed))

        if not failures:
            self.commit(batch, [successes[i] for i in range(len(batch.entries))])
            return BatchOutcome(batch.batch_id, BatchState.COMMITTED, committed=tuple(batch.committed))

        batch.failures = failures
        for index, exc in failures.items():
            log.detail("Entry failed", batch_id=batch.batch_id, index=index, error=exc)

        if batch.mode is BatchMode.PARTIAL and successes:
            self._settle(batch, successes, BatchState.COMMITTED)
            log.step_complete(
                PipelineStage.COMMIT,
                "Batch partially committed",
                batch_id=batch.batch_id,
                committed=len(successes),
                failed=len(failures),
            )
        else:
            self._settle(batch, {}, BatchState.ROLLED_BACK)
            await self._compensate(successes.values())

        self._report(ReconciliationError(batch.batch_id, failures))
        return BatchOutcome(
            batch.batch_id,
            batch.state,
            committed=tuple(batch.committed),
            failures=tuple(failures.items()),
        )

    # ── Save / upload entry points ──────────────────────────────────

    def save(
        self,
        items: Sequence[Record | tuple[Record, ShardPayload | None]],
        *,
        mode: BatchMode = BatchMode.ALL_OR_NOTHING,
        concurrent: bool = True,
        position: Position = "prepend",
    ) -> OperationBatch:
        """Show drafts immediately and persist them in the background.

        Must be called from a running event loop; the resolution task is
        attached to the returned batch as ``batch.task``.
        """
        drafts: list[Record] = []
        payloads: list[ShardPayload | None] = []
        for item in items:
            record, payload = item if isinstance(item, tuple) else (item, None)
            drafts.append(record)
            payloads.append(payload)

        batch = self.begin(drafts, mode=mode, position=position)

        async def resolve(entry: ProvisionalEntry) -> Record:
            return await self._coordinator.save(entry.draft, payloads[entry.tag.index])

        batch.task = asyncio.create_task(self.run(batch, resolve, concurrent=concurrent))
        return batch

    def upload(
        self,
        items: Sequence[UploadItem],
        owner_id: str,
        *,
        mode: BatchMode = BatchMode.PARTIAL,
        concurrent: bool = True,
    ) -> OperationBatch:
        """Attach files to ``owner_id``; previews render before any bytes are read."""
        drafts = [
            AttachmentRecord(owner_id=owner_id, display_name=item.display_name, mime_type=item.mime_type)
            for item in items
        ]
        batch = self.begin(drafts, previews=[item.preview_ref for item in items], mode=mode)

        async def resolve(entry: ProvisionalEntry) -> Record:
            item = items[entry.tag.index]
            data = await item.read()
            draft = dataclasses.replace(entry.draft, size_bytes=len(data))
            return await self._coordinator.save(
                draft,
                ShardPayload.from_bytes(data, item.mime_type),
                name_hint=item.display_name,
            )

        batch.task = asyncio.create_task(self.run(batch, resolve, concurrent=concurrent))
        return batch

    # ── Optimistic edits of committed records ───────────────────────

    async def update(self, ids: Iterable[str], update_fn: Callable[[Record], Record]) -> list[Record]:
        """Apply ``update_fn`` locally, save registry-only, restore on failure."""
        originals = {entry_id: self.ensure_destructible(entry_id) for entry_id in ids}
        if not originals:
            return []
        optimistic = {entry_id: update_fn(record) for entry_id, record in originals.items()}
        self._replace_by_id(optimistic)

        results = await asyncio.gather(
            *(self._coordinator.save(record) for record in optimistic.values()),
            return_exceptions=True,
        )

        saved: dict[str, Record] = {}
        restored: dict[str, Record] = {}
        failures: dict[int, Exception] = {}
        for index, (entry_id, result) in enumerate(zip(optimistic, results)):
            if isinstance(result, BaseException):
                failures[index] = result
                restored[entry_id] = originals[entry_id]
            else:
                saved[entry_id] = result
        self._replace_by_id({**saved, **restored})

        if failures:
            self._report(ReconciliationError(f"update-{uuid.uuid4().hex[:8]}", failures))
        return list(saved.values())

    async def remove(self, ids: Iterable[str]) -> int:
        """Remove records locally, delete them, re-insert the ones that failed."""
        targets = [self.ensure_destructible(entry_id) for entry_id in dict.fromkeys(ids)]
        if not targets:
            return 0
        positions = {record.id: self._entries.index(record) for record in targets}
        target_ids = set(positions)
        self._set(e for e in self._entries if e.id not in target_ids)

        results = await asyncio.gather(
            *(self._coordinator.delete(record) for record in targets),
            return_exceptions=True,
        )

        failures: dict[int, Exception] = {}
        failed: list[Record] = []
        for index, (record, result) in enumerate(zip(targets, results)):
            if isinstance(result, BaseException):
                failures[index] = result
                failed.append(record)

        if failed:
            entries = list(self._entries)
            for record in sorted(failed, key=lambda r: positions[r.id]):
                entries.insert(min(positions[record.id], len(entries)), record)
            self._set(entries)
            self._report(ReconciliationError(f"remove-{uuid.uuid4().hex[:8]}", failures))

        return len(targets) - len(failed)

    async def load(self, query: RegistryQuery) -> RegistryPage[Record]:
        """Replace settled entries with a registry page; provisional entries stay."""
        page = await self._coordinator.registry.query(query)
        provisional = [e for e in self._entries if e.is_provisional]
        self._set([*provisional, *page.items])
        return page

    # ── Internals ───────────────────────────────────────────────────

    def _replace_by_id(self, replacements: dict[str, Record]) -> None:
        if not replacements:
            return
        self._set(
            replacements.get(e.id, e) if not e.is_provisional else e
            for e in self._entries
        )

    async def _compensate(self, records: Iterable[Record]) -> None:
        """Best-effort delete of records persisted for a batch that did not commit."""
        for record in records:
            try:
                await self._coordinator.delete(record)
                log.detail("Compensated", record_id=record.id)
            except Exception as exc:
                log.step_warning(PipelineStage.ROLLBACK, f"Compensating delete failed for {record.id}", error=exc)

    def _report(self, error: ReconciliationError) -> None:
        log.step_error(PipelineStage.ROLLBACK, str(error))
        if self._on_error is None:
            return
        try:
            self._on_error(error)
        except Exception:
            logger.exception("Reconciliation error handler failed")
