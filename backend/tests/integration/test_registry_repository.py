"""Integration tests for the SQLAlchemy registry client on a temporary SQLite file."""

import asyncio
import dataclasses
from datetime import datetime, timedelta, timezone

import pytest

from hybridstore.domain.entities import (
    AttachmentRecord,
    NoteRecord,
    RegistryQuery,
    ShardPointer,
    SortKey,
)
from hybridstore.domain.exceptions import RegistryConflictError
from hybridstore.infrastructure.database import Base, build_session_factory
from hybridstore.infrastructure.database.repositories import SQLAlchemyRegistryClient


@pytest.fixture
async def registry(tmp_path):
    factory = build_session_factory(f"sqlite:///{tmp_path}/registry.db")
    engine = factory.kw["bind"]
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield SQLAlchemyRegistryClient(factory)
    await engine.dispose()


def _note(label: str, collection_id: str = "c-1", minutes: int = 0, **kwargs) -> NoteRecord:
    stamp = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc) + timedelta(minutes=minutes)
    note = NoteRecord(label=label, collection_id=collection_id, created_at=stamp, updated_at=stamp, **kwargs)
    note.search_all = note.build_search_index()
    return note


@pytest.mark.asyncio
async def test_upsert_then_get_round_trips_variant(registry):
    attachment = AttachmentRecord(
        owner_id="act-1",
        display_name="Receipt.PDF",
        mime_type="application/pdf",
        size_bytes=2048,
        shard_pointer=ShardPointer("s1", "local-a"),
    )

    await registry.upsert(attachment)
    loaded = await registry.get(attachment.id)

    assert isinstance(loaded, AttachmentRecord)
    assert loaded.display_name == "Receipt.PDF"
    assert loaded.size_bytes == 2048
    assert loaded.shard_pointer == ShardPointer("s1", "local-a")
    assert loaded.updated_at == attachment.updated_at
    assert await registry.get("missing") is None


@pytest.mark.asyncio
async def test_query_filters_searches_sorts_and_pages(registry):
    await registry.upsert(_note("Alpha lab", minutes=1))
    await registry.upsert(_note("Beta LAB", minutes=2))
    await registry.upsert(_note("Gamma", minutes=3))
    await registry.upsert(_note("Lab elsewhere", collection_id="c-2", minutes=4))

    page = await registry.query(RegistryQuery(kind="note", parent_id="c-1", search="lab"))
    assert page.total_count == 2
    assert [r.label for r in page.items] == ["Beta LAB", "Alpha lab"]

    first = await registry.query(
        RegistryQuery(kind="note", sort=(SortKey("title", descending=False),), page_size=3)
    )
    second = await registry.query(
        RegistryQuery(kind="note", sort=(SortKey("title", descending=False),), page=2, page_size=3)
    )
    assert first.total_count == 4
    assert [r.label for r in first.items] == ["Alpha lab", "Beta LAB", "Gamma"]
    assert [r.label for r in second.items] == ["Lab elsewhere"]

    assert (await registry.query(RegistryQuery(kind="activity"))).total_count == 0


@pytest.mark.asyncio
async def test_search_treats_wildcards_literally(registry):
    await registry.upsert(_note("100% done"))
    await registry.upsert(_note("1000 things"))

    page = await registry.query(RegistryQuery(kind="note", search="0%"))

    assert [r.label for r in page.items] == ["100% done"]


@pytest.mark.asyncio
async def test_compare_and_swap_on_updated_at(registry):
    note = _note("v1")
    await registry.upsert(note)

    note.label = "v2"
    stale = note.updated_at - timedelta(seconds=1)
    with pytest.raises(RegistryConflictError):
        await registry.upsert(note, expected_updated_at=stale)

    expected = note.updated_at
    note.updated_at = expected + timedelta(seconds=1)
    await registry.upsert(note, expected_updated_at=expected)
    assert (await registry.get(note.id)).label == "v2"


@pytest.mark.asyncio
async def test_concurrent_writers_with_same_token_let_exactly_one_win(registry):
    note = _note("v1")
    await registry.upsert(note)
    expected = note.updated_at
    first = dataclasses.replace(note, label="first", updated_at=expected + timedelta(seconds=1))
    second = dataclasses.replace(note, label="second", updated_at=expected + timedelta(seconds=2))

    results = await asyncio.gather(
        registry.upsert(first, expected_updated_at=expected),
        registry.upsert(second, expected_updated_at=expected),
        return_exceptions=True,
    )

    conflicts = [r for r in results if isinstance(r, RegistryConflictError)]
    assert len(conflicts) == 1
    winner = first if results[0] is None else second
    stored = await registry.get(note.id)
    assert stored.label == winner.label
    assert stored.updated_at == winner.updated_at


@pytest.mark.asyncio
async def test_compare_and_swap_requires_existing_row(registry):
    with pytest.raises(RegistryConflictError):
        await registry.upsert(_note("new"), expected_updated_at=datetime.now(timezone.utc))


@pytest.mark.asyncio
async def test_delete_and_referenced_pointers(registry):
    with_blob = _note("blob", shard_pointer=ShardPointer("s9", "local-a"))
    without_blob = _note("bare")
    await registry.upsert(with_blob)
    await registry.upsert(without_blob)

    assert await registry.referenced_pointers() == {ShardPointer("s9", "local-a")}

    assert await registry.delete(with_blob.id) is True
    assert await registry.delete(with_blob.id) is False
    assert await registry.referenced_pointers() == set()
