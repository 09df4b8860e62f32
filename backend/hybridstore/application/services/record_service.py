"""Application service (use case) for committed record operations over HTTP."""

import dataclasses
from collections.abc import Sequence
from dataclasses import fields
from typing import Any

from hybridstore.application.schemas.record import RecordSaveRequest
from hybridstore.application.services.dual_write_coordinator import DualWriteCoordinator
from hybridstore.domain.entities import (
    AttachmentRecord,
    Record,
    RegistryPage,
    RegistryQuery,
    ShardPayload,
    SortKey,
    DEFAULT_SORT,
    record_type_for,
)
from hybridstore.domain.exceptions import (
    EntityNotFoundError,
    PersistenceError,
    PersistenceErrorKind,
    RegistryConflictError,
)


class RecordService:
    """Orchestrates record CRUD for one request. Depends on the coordinator (DI)."""

    def __init__(self, coordinator: DualWriteCoordinator):
        self._coordinator = coordinator
        self._registry = coordinator.registry

    async def list_records(
        self,
        kind: str,
        *,
        parent_id: str | None = None,
        search: str = "",
        sort: Sequence[str] = (),
        page: int = 1,
        page_size: int = 25,
    ) -> RegistryPage[Record]:
        record_type_for(kind)
        query = RegistryQuery(
            kind=kind,
            parent_id=parent_id,
            search=search,
            sort=tuple(SortKey.parse(s) for s in sort) or DEFAULT_SORT,
            page=page,
            page_size=page_size,
        )
        return await self._registry.query(query)

    async def get_record(self, kind: str, record_id: str) -> Record:
        record_type_for(kind)
        record = await self._registry.get(record_id)
        if record is None or record.kind != kind:
            raise EntityNotFoundError(kind, record_id)
        return record

    async def _existing_or_new(self, kind: str, record_id: str) -> Record | None:
        """The stored record of this kind, or None; a row of another kind is a conflict."""
        record_type_for(kind)
        existing = await self._registry.get(record_id)
        if existing is not None and existing.kind != kind:
            raise PersistenceError(
                PersistenceErrorKind.REGISTRY_WRITE_FAILED,
                record_id,
                RegistryConflictError(f"Id already used by a '{existing.kind}' record", record_id=record_id),
            )
        return existing

    @staticmethod
    def _check_fields(kind: str, values: dict[str, Any]) -> None:
        unknown = sorted(set(values) - set(record_field_names(kind)))
        if unknown:
            raise ValueError(f"Unknown field(s) for '{kind}': {', '.join(unknown)}")

    async def save_record(self, kind: str, record_id: str, data: RecordSaveRequest) -> Record:
        """Create or update; scalar fields given override the stored ones."""
        existing = await self._existing_or_new(kind, record_id)
        record_cls = record_type_for(kind)
        self._check_fields(kind, data.fields)

        overrides: dict[str, Any] = dict(data.fields)
        if data.is_favorite is not None:
            overrides["is_favorite"] = data.is_favorite

        if existing is None:
            record = record_cls(id=record_id, **overrides)
        else:
            record = dataclasses.replace(existing, **overrides)

        payload = ShardPayload.from_json(data.payload) if data.payload is not None else None
        return await self._coordinator.save(
            record, payload, expected_updated_at=data.expected_updated_at
        )

    async def save_file(
        self,
        kind: str,
        record_id: str,
        content: bytes,
        *,
        filename: str,
        mime_type: str | None,
    ) -> Record:
        """Store a binary payload for the record, creating the record if needed."""
        existing = await self._existing_or_new(kind, record_id)
        record = existing or record_type_for(kind)(id=record_id)
        payload = ShardPayload.from_bytes(content, mime_type)

        if isinstance(record, AttachmentRecord):
            record = dataclasses.replace(
                record,
                display_name=record.display_name or filename,
                mime_type=payload.mime_type,
                size_bytes=payload.size,
            )

        return await self._coordinator.save(record, payload, name_hint=filename)

    async def load_payload(self, kind: str, record_id: str) -> ShardPayload:
        record = await self.get_record(kind, record_id)
        return await self._coordinator.load_payload(record)

    async def delete_record(self, kind: str, record_id: str) -> None:
        record = await self.get_record(kind, record_id)
        await self._coordinator.delete(record)


def record_field_names(kind: str) -> list[str]:
    """Scalar field names accepted for ``kind`` (used in API docs and errors)."""
    record_cls = record_type_for(kind)
    base = {f.name for f in fields(Record)}
    return [f.name for f in fields(record_cls) if f.name not in base]
