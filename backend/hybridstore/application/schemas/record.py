"""Pydantic DTOs (Data Transfer Objects) for registry records."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from hybridstore.domain.entities import Record


class RecordSaveRequest(BaseModel):
    """Schema for creating or updating a record.

    ``fields`` holds the kind-specific scalars; ``payload`` (any JSON value)
    replaces the record's shard document when given.
    """

    fields: dict[str, Any] = Field(default_factory=dict, examples=[{"label": "Lab notes", "collection_id": "c-1"}])
    is_favorite: bool | None = None
    payload: Any | None = Field(None, examples=[{"blocks": []}])
    expected_updated_at: datetime | None = Field(
        None, description="Reject the write unless the stored row still has this updated_at",
    )


class ShardPointerSchema(BaseModel):
    shard_id: str
    node_address: str


class RecordResponse(BaseModel):
    """Schema returned to the client."""

    id: str
    kind: str
    title: str
    parent_id: str | None
    is_favorite: bool
    fields: dict[str, Any]
    shard_pointer: ShardPointerSchema | None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_entity(cls, record: Record) -> "RecordResponse":
        pointer = record.shard_pointer
        return cls(
            id=record.id,
            kind=record.kind,
            title=record.title,
            parent_id=record.parent_id,
            is_favorite=record.is_favorite,
            fields=record.scalar_fields(),
            shard_pointer=(
                ShardPointerSchema(shard_id=pointer.shard_id, node_address=pointer.node_address)
                if pointer
                else None
            ),
            created_at=record.created_at,
            updated_at=record.updated_at,
        )


class RecordPageResponse(BaseModel):
    """A page of records plus the unpaginated total."""

    items: list[RecordResponse]
    total_count: int
    page: int
    page_size: int
