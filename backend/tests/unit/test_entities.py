"""Unit tests for domain entities and value objects."""

import pytest

from hybridstore.domain.entities import (
    ActivityRecord,
    AttachmentRecord,
    BusyToken,
    NoteRecord,
    ProvisionalEntry,
    ProvisionalTag,
    RegistryQuery,
    ShardPayload,
    SortKey,
    TracerReferenceRecord,
    UploadItem,
    record_type_for,
)
from hybridstore.domain.exceptions import (
    PersistenceError,
    PersistenceErrorKind,
    ReconciliationError,
    RegistryConflictError,
    ShardErrorKind,
    ShardUnreachableError,
    UnknownRecordKindError,
)


def test_search_index_joins_text_fields_lowercase():
    record = ActivityRecord(title="Data Science Bootcamp", activity_type="Workshop", organizer="")

    assert record.build_search_index() == "data science bootcamp workshop"


def test_parent_and_title_follow_variant_fields():
    ref = TracerReferenceRecord(project_id="p-1", collection_id="c-1", label="Smith 2021")

    assert ref.parent_id == "p-1"
    assert ref.title == "Smith 2021"
    assert ActivityRecord(title="x").parent_id is None


def test_scalar_fields_round_trip_through_registry_shape():
    original = AttachmentRecord(owner_id="a-1", display_name="scan.pdf", mime_type="application/pdf", size_bytes=42)

    rebuilt = AttachmentRecord.from_registry(
        scalar_fields={**original.scalar_fields(), "legacy_column": "ignored"},
        id=original.id,
        created_at=original.created_at,
        updated_at=original.updated_at,
    )

    assert rebuilt == original
    assert "id" not in original.scalar_fields()


def test_record_type_for_unknown_kind():
    assert record_type_for("note") is NoteRecord
    with pytest.raises(UnknownRecordKindError):
        record_type_for("cv_profile")


def test_provisional_entry_is_tagged_not_parsed():
    entry = ProvisionalEntry(tag=ProvisionalTag(batch_id="b1", index=2, preview_ref="blob:x"), draft=NoteRecord())

    assert entry.is_provisional and entry.syncing
    assert not entry.allows_destructive_actions
    assert entry.belongs_to("b1") and not entry.belongs_to("b10")
    assert entry.id == "provisional:b1:2"


def test_busy_token_never_blocks_reads():
    token = BusyToken(provisional_ids=frozenset({"provisional:b:0"}))

    assert token.is_busy and token.blocks_navigation and token.blocks_upload
    assert not token.blocks_reads


def test_sort_key_parsing():
    assert SortKey.parse("-updated_at") == SortKey("updated_at", descending=True)
    assert SortKey.parse("title") == SortKey("title", descending=False)
    with pytest.raises(ValueError):
        SortKey.parse("search_all")


def test_registry_query_pagination():
    assert RegistryQuery(kind="note", page=3, page_size=10).offset == 20
    with pytest.raises(ValueError):
        RegistryQuery(kind="note", page=0)


def test_payload_json_helpers():
    payload = ShardPayload.from_json({"título": "ñ"})

    assert payload.is_json
    assert payload.to_json() == {"título": "ñ"}
    with pytest.raises(ValueError):
        ShardPayload.from_bytes(b"\x00").to_json()


@pytest.mark.asyncio
async def test_upload_item_reads_sync_and_async_loaders():
    async def load():
        return b"async"

    assert await UploadItem.from_bytes(b"sync", "a.txt").read() == b"sync"
    assert await UploadItem(display_name="b", mime_type="text/plain", loader=load).read() == b"async"


def test_error_taxonomy():
    shard_error = ShardUnreachableError("timeout", node_address="n1")
    conflict = PersistenceError(
        PersistenceErrorKind.REGISTRY_WRITE_FAILED, "r-1", RegistryConflictError("stale")
    )

    assert shard_error.kind is ShardErrorKind.UNREACHABLE
    assert conflict.is_conflict
    assert "1 entry" in str(ReconciliationError("b", {0: RuntimeError()}))
