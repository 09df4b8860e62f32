"""Domain entities for optimistic (not-yet-persisted) client state."""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Union

from hybridstore.domain.entities.record import Record


@dataclass(frozen=True)
class ProvisionalTag:
    """Structured identity of a provisional entry.

    ``batch_id`` is shared by every entry created by one user action;
    ``preview_ref`` is a short-lived local handle (e.g. an object URL) the
    UI can render before the upload finishes.
    """

    batch_id: str
    index: int
    preview_ref: str | None = None


@dataclass(frozen=True)
class ProvisionalEntry:
    """Client-only stand-in for a record whose persistence is still in flight.

    Never written to the registry. Destructive actions are disabled because
    the shard pointer does not exist yet.
    """

    tag: ProvisionalTag
    draft: Record

    @property
    def id(self) -> str:
        return f"provisional:{self.tag.batch_id}:{self.tag.index}"

    @property
    def batch_id(self) -> str:
        return self.tag.batch_id

    @property
    def is_provisional(self) -> bool:
        return True

    @property
    def syncing(self) -> bool:
        return True

    @property
    def allows_destructive_actions(self) -> bool:
        return False

    def belongs_to(self, batch_id: str) -> bool:
        return self.tag.batch_id == batch_id


Entry = Union[Record, ProvisionalEntry]


class BatchState(str, Enum):
    """Lifecycle of an operation batch: PENDING → COMMITTED | ROLLED_BACK."""

    PENDING = "pending"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


class BatchMode(str, Enum):
    """How a batch with at least one failed entry is settled."""

    ALL_OR_NOTHING = "all_or_nothing"  # drop every entry, compensate persisted ones
    PARTIAL = "partial"                # keep successes, drop failures


@dataclass
class OperationBatch:
    """Provisional entries created by one user action, settled as a unit."""

    batch_id: str
    entries: tuple[ProvisionalEntry, ...]
    mode: BatchMode = BatchMode.ALL_OR_NOTHING
    state: BatchState = BatchState.PENDING
    committed: list[Record] = field(default_factory=list)
    failures: dict[int, Exception] = field(default_factory=dict)
    discarded: bool = False
    task: asyncio.Task | None = field(default=None, repr=False, compare=False)

    @property
    def is_pending(self) -> bool:
        return self.state is BatchState.PENDING

    @property
    def is_settled(self) -> bool:
        return self.state is not BatchState.PENDING

    def __len__(self) -> int:
        return len(self.entries)


@dataclass(frozen=True)
class BatchOutcome:
    """Result of resolving a batch; returned instead of raising."""

    batch_id: str
    state: BatchState
    committed: tuple[Record, ...] = ()
    failures: tuple[tuple[int, Exception], ...] = ()

    @property
    def succeeded(self) -> bool:
        return self.state is BatchState.COMMITTED and not self.failures


@dataclass(frozen=True)
class BusyToken:
    """Snapshot of a collection's in-flight work, handed to navigation guards.

    Busy means "a save batch is pending" OR "some entry is provisional".
    It gates navigation and new top-level uploads, never reads.
    """

    pending_batches: frozenset[str] = frozenset()
    provisional_ids: frozenset[str] = frozenset()

    @property
    def is_busy(self) -> bool:
        return bool(self.pending_batches) or bool(self.provisional_ids)

    @property
    def blocks_navigation(self) -> bool:
        return self.is_busy

    @property
    def blocks_upload(self) -> bool:
        return self.is_busy

    @property
    def blocks_reads(self) -> bool:
        return False

    def __bool__(self) -> bool:
        return self.is_busy

    @classmethod
    def combine(cls, *tokens: "BusyToken") -> "BusyToken":
        """Merge tokens from several collections into one guard decision."""
        return cls(
            pending_batches=frozenset().union(*(t.pending_batches for t in tokens)),
            provisional_ids=frozenset().union(*(t.provisional_ids for t in tokens)),
        )
