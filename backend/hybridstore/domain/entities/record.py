"""Domain entities: one tagged Record variant per content type.

Every variant shares the registry interface (id, shard pointer, timestamps,
favourite flag, denormalised search text). Variant-specific scalars travel
to the registry as a JSON ``fields`` blob; the large payload lives on a
shard node and is reachable only through ``shard_pointer``.
"""

from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from typing import Any, ClassVar
from uuid import uuid4

from hybridstore.domain.entities.shard import ShardPointer
from hybridstore.domain.exceptions import UnknownRecordKindError


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(kw_only=True)
class Record:
    """Common base for all registry-backed entities."""

    kind: ClassVar[str] = "record"
    parent_field: ClassVar[str | None] = None
    title_field: ClassVar[str | None] = None
    search_fields: ClassVar[tuple[str, ...]] = ()

    id: str = field(default_factory=lambda: str(uuid4()))
    shard_pointer: ShardPointer | None = None
    is_favorite: bool = False
    search_all: str = ""
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    @property
    def parent_id(self) -> str | None:
        if self.parent_field is None:
            return None
        return getattr(self, self.parent_field) or None

    @property
    def title(self) -> str:
        if self.title_field is None:
            return ""
        return str(getattr(self, self.title_field) or "")

    @property
    def is_provisional(self) -> bool:
        return False

    def build_search_index(self) -> str:
        """Concatenate the human-meaningful text fields into the search column."""
        parts = [str(getattr(self, name) or "").strip() for name in self.search_fields]
        return " ".join(p for p in parts if p).lower()

    def scalar_fields(self) -> dict[str, Any]:
        """Variant-specific scalar metadata (everything not on the base class)."""
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if f.name not in _BASE_FIELD_NAMES
        }

    @classmethod
    def from_registry(
        cls,
        *,
        scalar_fields: dict[str, Any],
        **base: Any,
    ) -> "Record":
        """Rebuild a variant from a registry row; unknown scalar keys are ignored."""
        known = {f.name for f in fields(cls)} - _BASE_FIELD_NAMES
        kwargs = {k: v for k, v in (scalar_fields or {}).items() if k in known}
        return cls(**base, **kwargs)


_BASE_FIELD_NAMES = frozenset(f.name for f in fields(Record))


@dataclass(kw_only=True)
class ActivityRecord(Record):
    """Portfolio activity; its payload is the documentation vault (JSON list)."""

    kind: ClassVar[str] = "activity"
    title_field: ClassVar[str | None] = "title"
    search_fields: ClassVar[tuple[str, ...]] = ("title", "activity_type", "organizer")

    title: str = ""
    activity_type: str = ""
    organizer: str = ""
    start_date: str = ""
    end_date: str = ""


@dataclass(kw_only=True)
class NoteRecord(Record):
    kind: ClassVar[str] = "note"
    parent_field: ClassVar[str | None] = "collection_id"
    title_field: ClassVar[str | None] = "label"
    search_fields: ClassVar[tuple[str, ...]] = ("label",)

    label: str = ""
    collection_id: str = ""


@dataclass(kw_only=True)
class ConsultationRecord(Record):
    """A question put to the AI partner; the answer document is the payload."""

    kind: ClassVar[str] = "consultation"
    parent_field: ClassVar[str | None] = "collection_id"
    title_field: ClassVar[str | None] = "question"
    search_fields: ClassVar[tuple[str, ...]] = ("question",)

    question: str = ""
    collection_id: str = ""


@dataclass(kw_only=True)
class TracerReferenceRecord(Record):
    kind: ClassVar[str] = "tracer_reference"
    parent_field: ClassVar[str | None] = "project_id"
    title_field: ClassVar[str | None] = "label"
    search_fields: ClassVar[tuple[str, ...]] = ("label", "collection_id")

    project_id: str = ""
    collection_id: str = ""
    label: str = ""


@dataclass(kw_only=True)
class PresentationRecord(Record):
    kind: ClassVar[str] = "presentation"
    parent_field: ClassVar[str | None] = "collection_id"
    title_field: ClassVar[str | None] = "title"
    search_fields: ClassVar[tuple[str, ...]] = ("title", "theme")

    title: str = ""
    theme: str = ""
    collection_id: str = ""


@dataclass(kw_only=True)
class AttachmentRecord(Record):
    """A binary file attached to another record (vault file, note image, receipt)."""

    kind: ClassVar[str] = "attachment"
    parent_field: ClassVar[str | None] = "owner_id"
    title_field: ClassVar[str | None] = "display_name"
    search_fields: ClassVar[tuple[str, ...]] = ("display_name", "mime_type")

    owner_id: str = ""
    display_name: str = ""
    mime_type: str = ""
    size_bytes: int = 0


RECORD_TYPES: dict[str, type[Record]] = {
    cls.kind: cls
    for cls in (
        ActivityRecord,
        NoteRecord,
        ConsultationRecord,
        TracerReferenceRecord,
        PresentationRecord,
        AttachmentRecord,
    )
}


def record_type_for(kind: str) -> type[Record]:
    """Resolve a registry discriminator to its Record variant."""
    try:
        return RECORD_TYPES[kind]
    except KeyError:
        raise UnknownRecordKindError(kind) from None
