"""Unit tests for the OrphanSweeper (lazy cleanup of unreferenced blobs)."""

from datetime import datetime, timedelta, timezone

import pytest

from hybridstore.application.services import OrphanSweeper
from hybridstore.domain.entities import NoteRecord, ShardPayload
from hybridstore.domain.exceptions import RegistryUnreachableError


def _later(minutes: int) -> datetime:
    return datetime.now(timezone.utc) + timedelta(minutes=minutes)


@pytest.mark.asyncio
async def test_deletes_unreferenced_blobs_past_grace(coordinator, shard_store, registry):
    kept = await coordinator.save(NoteRecord(label="kept"), ShardPayload.from_json({"k": 1}))
    orphan = await shard_store.write(None, ShardPayload.from_json({"o": 1}))
    sweeper = OrphanSweeper(shard_store, registry, grace_seconds=60)

    report = await sweeper.sweep_once(now=_later(5))

    assert report.scanned == 2
    assert report.deleted == 1
    assert orphan not in shard_store.blobs
    assert kept.shard_pointer in shard_store.blobs


@pytest.mark.asyncio
async def test_recent_orphans_are_left_in_grace(shard_store, registry):
    await shard_store.write(None, ShardPayload.from_json({"in": "flight"}))
    sweeper = OrphanSweeper(shard_store, registry, grace_seconds=900)

    report = await sweeper.sweep_once()

    assert report.deleted == 0
    assert report.in_grace == 1
    assert len(shard_store.blobs) == 1


@pytest.mark.asyncio
async def test_blobs_without_mtime_are_never_deleted(shard_store, registry):
    pointer = await shard_store.write(None, ShardPayload.from_bytes(b"?"))
    del shard_store.modified[pointer]

    report = await OrphanSweeper(shard_store, registry, grace_seconds=0).sweep_once(now=_later(60))

    assert report.deleted == 0
    assert pointer in shard_store.blobs


@pytest.mark.asyncio
async def test_registry_failure_aborts_without_deleting(shard_store, registry):
    await shard_store.write(None, ShardPayload.from_bytes(b"x"))

    async def broken():
        raise RegistryUnreachableError("down")

    registry.referenced_pointers = broken

    with pytest.raises(RegistryUnreachableError):
        await OrphanSweeper(shard_store, registry, grace_seconds=0).sweep_once(now=_later(1))
    assert len(shard_store.blobs) == 1


@pytest.mark.asyncio
async def test_start_and_stop(shard_store, registry):
    sweeper = OrphanSweeper(shard_store, registry, interval=3600)

    await sweeper.start()
    assert sweeper.running
    await sweeper.stop()
    assert not sweeper.running
