"""Domain-specific exceptions: framework-independent.

Error taxonomy for the hybrid persistence layer:

    ShardError         : raised by shard nodes / the shard store client
    RegistryError      : raised by the registry client
    PersistenceError   : composed by the dual-write coordinator
    ReconciliationError: surfaced by the reconciler to the UI layer
"""

from enum import Enum
from typing import Any


class EntityNotFoundError(Exception):
    """Raised when a requested entity does not exist."""

    def __init__(self, entity_type: str, entity_id: int | str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} with id '{entity_id}' not found")


class UnknownRecordKindError(Exception):
    """Raised when a registry row or request names a record kind nobody registered."""

    def __init__(self, kind: str):
        self.kind = kind
        super().__init__(f"Unknown record kind '{kind}'")


class ProvisionalEntryError(Exception):
    """Raised when a destructive action targets an entry that is still syncing."""

    def __init__(self, entry_id: str):
        self.entry_id = entry_id
        super().__init__(f"Entry '{entry_id}' is still syncing and cannot be modified")


# ── Shard store ──────────────────────────────────────────────────────


class ShardErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    WRITE_FAILED = "write_failed"
    UNREACHABLE = "unreachable"


class ShardError(Exception):
    """Base class for shard node failures."""

    kind: ShardErrorKind = ShardErrorKind.WRITE_FAILED

    def __init__(self, message: str, node_address: str | None = None, shard_id: str | None = None):
        self.message = message
        self.node_address = node_address
        self.shard_id = shard_id
        super().__init__(f"[{self.kind.value}] {message}")


class ShardNotFoundError(ShardError):
    """The pointer is stale or the blob was purged."""

    kind = ShardErrorKind.NOT_FOUND


class ShardWriteError(ShardError):
    """The node rejected or failed a write/delete."""

    kind = ShardErrorKind.WRITE_FAILED


class ShardUnreachableError(ShardError):
    """The node could not be contacted (transport error, timeout, unknown address)."""

    kind = ShardErrorKind.UNREACHABLE


# ── Registry ─────────────────────────────────────────────────────────


class RegistryErrorKind(str, Enum):
    CONFLICT = "conflict"
    WRITE_FAILED = "write_failed"
    UNREACHABLE = "unreachable"


class RegistryError(Exception):
    """Base class for registry failures."""

    kind: RegistryErrorKind = RegistryErrorKind.WRITE_FAILED

    def __init__(self, message: str, record_id: str | None = None):
        self.message = message
        self.record_id = record_id
        super().__init__(f"[{self.kind.value}] {message}")


class RegistryConflictError(RegistryError):
    """Constraint violation or a failed compare-and-swap on updated_at."""

    kind = RegistryErrorKind.CONFLICT


class RegistryWriteError(RegistryError):
    kind = RegistryErrorKind.WRITE_FAILED


class RegistryUnreachableError(RegistryError):
    kind = RegistryErrorKind.UNREACHABLE


# ── Coordinator / reconciler ─────────────────────────────────────────


class PersistenceErrorKind(str, Enum):
    SHARD_WRITE_FAILED = "shard_write_failed"
    REGISTRY_WRITE_FAILED = "registry_write_failed"


class PersistenceError(Exception):
    """Raised by the dual-write coordinator when a save or delete cannot complete.

    ``cause`` is the underlying ShardError / RegistryError.
    """

    def __init__(
        self,
        kind: PersistenceErrorKind,
        record_id: str,
        cause: Exception | None = None,
    ):
        self.kind = kind
        self.record_id = record_id
        self.cause = cause
        detail = f": {cause}" if cause else ""
        super().__init__(f"{kind.value} for record '{record_id}'{detail}")

    @property
    def is_conflict(self) -> bool:
        return isinstance(self.cause, RegistryConflictError)


class ReconciliationErrorKind(str, Enum):
    BATCH_FAILED = "batch_failed"


class ReconciliationError(Exception):
    """Reported once per failed operation batch: the UI shows it as a toast."""

    def __init__(
        self,
        batch_id: str,
        failures: dict[int, Exception] | None = None,
        kind: ReconciliationErrorKind = ReconciliationErrorKind.BATCH_FAILED,
    ):
        self.kind = kind
        self.batch_id = batch_id
        self.failures: dict[int, Any] = dict(failures or {})
        super().__init__(
            f"Batch '{batch_id}' failed ({len(self.failures)} entr"
            f"{'y' if len(self.failures) == 1 else 'ies'})"
        )
