"""Domain value objects for sharded payload storage."""

import json
from dataclasses import dataclass
from datetime import datetime
from typing import Any

JSON_MIME_TYPE = "application/json"
BINARY_MIME_TYPE = "application/octet-stream"


@dataclass(frozen=True)
class ShardPointer:
    """Location of a payload: the blob id on a storage node plus the node's address.

    The node address is opaque to everything except the shard store client;
    callers only persist it next to the id.
    """

    shard_id: str
    node_address: str

    def __str__(self) -> str:
        return f"{self.node_address}/{self.shard_id}"


@dataclass(frozen=True)
class ShardPayload:
    """Payload bytes as stored on a node, tagged with their MIME type."""

    data: bytes
    mime_type: str = BINARY_MIME_TYPE

    @classmethod
    def from_json(cls, document: Any) -> "ShardPayload":
        return cls(
            data=json.dumps(document, ensure_ascii=False).encode("utf-8"),
            mime_type=JSON_MIME_TYPE,
        )

    @classmethod
    def from_bytes(cls, data: bytes, mime_type: str | None = None) -> "ShardPayload":
        return cls(data=data, mime_type=mime_type or BINARY_MIME_TYPE)

    @property
    def is_json(self) -> bool:
        return self.mime_type == JSON_MIME_TYPE

    @property
    def size(self) -> int:
        return len(self.data)

    def to_json(self) -> Any:
        """Decode a JSON payload. Raises ValueError for binary payloads."""
        if not self.is_json:
            raise ValueError(f"Payload is {self.mime_type}, not JSON")
        return json.loads(self.data.decode("utf-8"))


@dataclass(frozen=True)
class BlobInfo:
    """Inventory entry reported by a node: used by the orphan sweep."""

    pointer: ShardPointer
    size: int
    modified_at: datetime | None = None
