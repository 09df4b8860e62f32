"""Abstract repository interface (port) for the metadata registry."""

from abc import ABC, abstractmethod
from datetime import datetime

from hybridstore.domain.entities import Record, RegistryPage, RegistryQuery, ShardPointer


class RegistryClient(ABC):
    """Port for registry persistence: implemented in the infrastructure layer.

    Records crossing this boundary must already carry their ``search_all``
    column; the registry never derives it.
    """

    @abstractmethod
    async def upsert(self, record: Record, *, expected_updated_at: datetime | None = None) -> None:
        """Full replace-by-id.

        Last write wins unless ``expected_updated_at`` is given, in which case
        the stored row must exist and carry exactly that timestamp
        (RegistryConflictError otherwise).
        """
        ...

    @abstractmethod
    async def delete(self, record_id: str) -> bool:
        """Delete a row. Returns True if deleted, False if it did not exist."""
        ...

    @abstractmethod
    async def get(self, record_id: str) -> Record | None:
        """Retrieve a single record by id."""
        ...

    @abstractmethod
    async def query(self, query: RegistryQuery) -> RegistryPage[Record]:
        """Filtered, sorted page of records plus the unpaginated total."""
        ...

    @abstractmethod
    async def referenced_pointers(self) -> set[ShardPointer]:
        """Every shard pointer currently referenced by a registry row."""
        ...
