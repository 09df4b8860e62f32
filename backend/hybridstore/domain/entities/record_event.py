"""Domain event emitted after a committed save or delete."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


class RecordEventType(str, Enum):
    SAVED = "record_saved"
    DELETED = "record_deleted"


@dataclass(frozen=True)
class RecordEvent:
    """Notification for derived views; delivery is at-most-once."""

    event_type: RecordEventType
    record_id: str
    record_kind: str
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict:
        return {
            "type": self.event_type.value,
            "record_id": self.record_id,
            "record_kind": self.record_kind,
            "occurred_at": self.occurred_at.isoformat(),
        }
