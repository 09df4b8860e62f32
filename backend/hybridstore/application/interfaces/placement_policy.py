"""Abstract interface (port) for choosing the node a new payload is written to."""

from abc import ABC, abstractmethod


class PlacementPolicy(ABC):
    """Decides which storage node receives a record that has no node yet."""

    @abstractmethod
    async def choose_node(self, hint: str | None = None) -> str:
        """Return a node address. ``hint`` is the record's current node, if any.

        Must not fail because a capacity check failed.
        """
        ...
