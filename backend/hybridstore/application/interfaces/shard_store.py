"""Abstract interfaces (ports) for payload storage nodes and the shard store client."""

from abc import ABC, abstractmethod

from hybridstore.domain.entities import BlobInfo, ShardPayload, ShardPointer


class ShardNode(ABC):
    """A single storage node holding payload blobs, addressed by ``address``.

    Implementations raise ShardNotFoundError / ShardWriteError /
    ShardUnreachableError; they never swallow failures.
    """

    address: str

    @abstractmethod
    async def put(self, payload: ShardPayload, shard_id: str | None = None, name_hint: str = "") -> ShardPointer:
        """Store a blob and return the pointer it now lives under.

        With ``shard_id`` the node overwrites in place when it can; a node
        that cannot returns a fresh id and leaves the old blob untouched.
        A node that forwards writes reports the address of the node that
        actually holds the blob, which may be one the caller has never seen.
        """
        ...

    @abstractmethod
    async def get(self, shard_id: str) -> ShardPayload:
        """Fetch a blob by its shard id."""
        ...

    @abstractmethod
    async def remove(self, shard_id: str) -> None:
        """Delete a blob. Missing blobs raise ShardNotFoundError."""
        ...

    @abstractmethod
    async def free_space(self) -> int | None:
        """Remaining capacity in bytes, or None when the node exposes no signal."""
        ...

    @abstractmethod
    async def list_blobs(self) -> list[BlobInfo]:
        """Inventory of every blob currently on the node."""
        ...


class ShardStore(ABC):
    """Port for addressable blob storage across interchangeable nodes."""

    @property
    @abstractmethod
    def node_addresses(self) -> list[str]:
        ...

    @abstractmethod
    async def write(
        self,
        existing: ShardPointer | None,
        payload: ShardPayload,
        *,
        hint: str | None = None,
        name_hint: str = "",
    ) -> ShardPointer:
        """Write a payload; overwrite ``existing`` in place when its node allows it.

        The returned pointer may name a different node than any previous call.
        Not assumed idempotent.
        """
        ...

    @abstractmethod
    async def read(self, pointer: ShardPointer) -> ShardPayload:
        ...

    @abstractmethod
    async def delete(self, pointer: ShardPointer) -> None:
        """Best-effort from the caller's point of view, but failures are raised."""
        ...

    @abstractmethod
    async def list_blobs(self, node_address: str) -> list[BlobInfo]:
        ...
