"""Shared in-memory fakes for the shard store and registry ports."""

import asyncio
import itertools
from collections.abc import Callable
from datetime import datetime, timezone

import pytest

from hybridstore.application.interfaces import RegistryClient, ShardStore
from hybridstore.application.services import DualWriteCoordinator, RecordEventBus
from hybridstore.domain.entities import (
    BlobInfo,
    Record,
    RegistryPage,
    RegistryQuery,
    ShardPayload,
    ShardPointer,
)
from hybridstore.domain.exceptions import (
    RegistryConflictError,
    ShardNotFoundError,
    ShardUnreachableError,
)


class InMemoryShardStore(ShardStore):
    """Fake shard store. New blobs are named s1, s2, … on the hinted or first node."""

    def __init__(self, nodes: tuple[str, ...] = ("nodeA",)):
        self._nodes = list(nodes)
        self._counter = itertools.count(1)
        self.blobs: dict[ShardPointer, ShardPayload] = {}
        self.modified: dict[ShardPointer, datetime] = {}
        self.write_calls: list[tuple[ShardPointer | None, ShardPayload]] = []
        self.delete_calls: list[ShardPointer] = []
        self.fail_write: Callable[[ShardPayload, str], Exception | None] | None = None
        self.delete_error: Exception | None = None
        self.write_delays: dict[str, float] = {}

    @property
    def node_addresses(self) -> list[str]:
        return list(self._nodes)

    async def write(self, existing, payload, *, hint=None, name_hint=""):
        self.write_calls.append((existing, payload))
        delay = self.write_delays.get(name_hint, 0)
        if delay:
            await asyncio.sleep(delay)
        if self.fail_write is not None:
            error = self.fail_write(payload, name_hint)
            if error is not None:
                raise error
        if existing is not None and existing.node_address in self._nodes:
            pointer = existing
        else:
            node = hint if hint in self._nodes else self._nodes[0]
            pointer = ShardPointer(shard_id=f"s{next(self._counter)}", node_address=node)
        self.blobs[pointer] = payload
        self.modified[pointer] = datetime.now(timezone.utc)
        return pointer

    async def read(self, pointer):
        try:
            return self.blobs[pointer]
        except KeyError:
            raise ShardNotFoundError("missing", node_address=pointer.node_address, shard_id=pointer.shard_id) from None

    async def delete(self, pointer):
        self.delete_calls.append(pointer)
        if self.delete_error is not None:
            raise self.delete_error
        if pointer not in self.blobs:
            raise ShardNotFoundError("missing", node_address=pointer.node_address, shard_id=pointer.shard_id)
        del self.blobs[pointer]

    async def list_blobs(self, node_address):
        if node_address not in self._nodes:
            raise ShardUnreachableError("unknown node", node_address=node_address)
        return [
            BlobInfo(pointer=p, size=payload.size, modified_at=self.modified.get(p))
            for p, payload in self.blobs.items()
            if p.node_address == node_address
        ]


class InMemoryRegistry(RegistryClient):
    """Fake registry with the same query and compare-and-swap semantics as the SQL client."""

    def __init__(self):
        self.rows: dict[str, Record] = {}
        self.upsert_calls: list[Record] = []
        self.delete_calls: list[str] = []
        self.upsert_error: Exception | None = None
        self.delete_error: Exception | None = None

    async def upsert(self, record, *, expected_updated_at=None):
        self.upsert_calls.append(record)
        if self.upsert_error is not None:
            raise self.upsert_error
        if expected_updated_at is not None:
            stored = self.rows.get(record.id)
            if stored is None or stored.updated_at != expected_updated_at:
                raise RegistryConflictError("stale", record_id=record.id)
        self.rows[record.id] = record

    async def delete(self, record_id):
        self.delete_calls.append(record_id)
        if self.delete_error is not None:
            raise self.delete_error
        return self.rows.pop(record_id, None) is not None

    async def get(self, record_id):
        return self.rows.get(record_id)

    async def query(self, query: RegistryQuery):
        items = [r for r in self.rows.values() if r.kind == query.kind]
        if query.parent_id is not None:
            items = [r for r in items if r.parent_id == query.parent_id]
        if query.search:
            needle = query.search.strip().lower()
            items = [r for r in items if needle in r.search_all.lower()]
        items.sort(key=lambda r: r.id)
        for key in reversed(query.sort):
            items.sort(key=lambda r: getattr(r, key.field), reverse=key.descending)
        page = items[query.offset : query.offset + query.page_size]
        return RegistryPage(items=page, total_count=len(items))

    async def referenced_pointers(self):
        return {r.shard_pointer for r in self.rows.values() if r.shard_pointer is not None}


@pytest.fixture
def shard_store() -> InMemoryShardStore:
    return InMemoryShardStore()


@pytest.fixture
def registry() -> InMemoryRegistry:
    return InMemoryRegistry()


@pytest.fixture
def event_bus() -> RecordEventBus:
    return RecordEventBus(queue_size=10)


@pytest.fixture
def coordinator(shard_store, registry, event_bus) -> DualWriteCoordinator:
    return DualWriteCoordinator(shard_store, registry, event_bus)
