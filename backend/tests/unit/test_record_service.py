"""Unit tests for the RecordService."""

import pytest

from hybridstore.application.schemas import RecordSaveRequest
from hybridstore.application.services import RecordService
from hybridstore.domain.entities import AttachmentRecord, NoteRecord
from hybridstore.domain.exceptions import (
    EntityNotFoundError,
    PersistenceError,
    UnknownRecordKindError,
)


@pytest.fixture
def service(coordinator) -> RecordService:
    return RecordService(coordinator)


@pytest.mark.asyncio
async def test_save_record_creates_with_payload(service: RecordService, shard_store):
    record = await service.save_record(
        "note",
        "n-1",
        RecordSaveRequest(fields={"label": "Lab", "collection_id": "c-1"}, payload={"blocks": []}),
    )

    assert isinstance(record, NoteRecord)
    assert record.id == "n-1"
    assert record.parent_id == "c-1"
    assert (await shard_store.read(record.shard_pointer)).to_json() == {"blocks": []}


@pytest.mark.asyncio
async def test_save_record_merges_fields_on_update(service: RecordService):
    await service.save_record("note", "n-1", RecordSaveRequest(fields={"label": "Old", "collection_id": "c-1"}))

    updated = await service.save_record("note", "n-1", RecordSaveRequest(fields={"label": "New"}, is_favorite=True))

    assert updated.label == "New"
    assert updated.collection_id == "c-1"
    assert updated.is_favorite


@pytest.mark.asyncio
async def test_save_record_rejects_unknown_fields(service: RecordService):
    with pytest.raises(ValueError, match="colour"):
        await service.save_record("note", "n-1", RecordSaveRequest(fields={"colour": "red"}))


@pytest.mark.asyncio
async def test_id_reused_across_kinds_is_a_conflict(service: RecordService):
    await service.save_record("note", "shared", RecordSaveRequest())

    with pytest.raises(PersistenceError) as exc_info:
        await service.save_record("activity", "shared", RecordSaveRequest())

    assert exc_info.value.is_conflict


@pytest.mark.asyncio
async def test_get_record_checks_kind(service: RecordService):
    await service.save_record("note", "n-1", RecordSaveRequest())

    with pytest.raises(EntityNotFoundError):
        await service.get_record("activity", "n-1")
    with pytest.raises(UnknownRecordKindError):
        await service.get_record("unknown", "n-1")


@pytest.mark.asyncio
async def test_save_file_fills_attachment_metadata(service: RecordService):
    record = await service.save_file(
        "attachment", "att-1", b"%PDF", filename="scan.pdf", mime_type="application/pdf"
    )

    assert isinstance(record, AttachmentRecord)
    assert record.display_name == "scan.pdf"
    assert record.size_bytes == 4
    payload = await service.load_payload("attachment", "att-1")
    assert payload.data == b"%PDF"
    assert payload.mime_type == "application/pdf"


@pytest.mark.asyncio
async def test_list_records_filters_and_sorts(service: RecordService):
    for rid, label in (("a", "Alpha"), ("b", "Beta"), ("c", "Gamma")):
        await service.save_record("note", rid, RecordSaveRequest(fields={"label": label, "collection_id": "c-1"}))

    page = await service.list_records("note", parent_id="c-1", sort=["title"], page_size=2)

    assert page.total_count == 3
    assert [r.label for r in page.items] == ["Alpha", "Beta"]

    found = await service.list_records("note", search="GAM")
    assert [r.id for r in found.items] == ["c"]


@pytest.mark.asyncio
async def test_delete_record(service: RecordService, registry):
    await service.save_record("note", "n-1", RecordSaveRequest(payload=[1]))

    await service.delete_record("note", "n-1")

    assert registry.rows == {}
    with pytest.raises(EntityNotFoundError):
        await service.delete_record("note", "n-1")
