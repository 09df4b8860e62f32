"""Domain value objects for registry queries."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Generic, TypeVar

SORTABLE_FIELDS = frozenset({"created_at", "updated_at", "title", "is_favorite"})

T = TypeVar("T")


@dataclass(frozen=True)
class SortKey:
    field: str
    descending: bool = True

    def __post_init__(self) -> None:
        if self.field not in SORTABLE_FIELDS:
            raise ValueError(
                f"Cannot sort on '{self.field}'; expected one of {sorted(SORTABLE_FIELDS)}"
            )

    @classmethod
    def parse(cls, raw: str) -> "SortKey":
        """Parse ``"-updated_at"`` (descending) or ``"title"`` (ascending)."""
        raw = raw.strip()
        if raw.startswith("-"):
            return cls(raw[1:], descending=True)
        return cls(raw.lstrip("+"), descending=False)


DEFAULT_SORT: tuple[SortKey, ...] = (SortKey("updated_at", descending=True),)


@dataclass(frozen=True)
class RegistryQuery:
    """Filtered, sorted, paginated listing of one record kind.

    ``page`` is 1-based. ``parent_id`` is the variant's foreign key
    (collection, project, owner). ``search`` is a case-insensitive
    substring match on the denormalised search column.
    """

    kind: str
    parent_id: str | None = None
    search: str = ""
    created_from: datetime | None = None
    created_to: datetime | None = None
    sort: tuple[SortKey, ...] = DEFAULT_SORT
    page: int = 1
    page_size: int = 25

    def __post_init__(self) -> None:
        if self.page < 1:
            raise ValueError("page must be >= 1")
        if self.page_size < 1:
            raise ValueError("page_size must be >= 1")

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


@dataclass(frozen=True)
class RegistryPage(Generic[T]):
    items: list[T] = field(default_factory=list)
    total_count: int = 0
