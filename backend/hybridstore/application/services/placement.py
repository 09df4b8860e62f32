"""Shard placement policies."""

import logging
from collections.abc import Awaitable, Callable, Sequence

from hybridstore.application.interfaces import PlacementPolicy

logger = logging.getLogger(__name__)

CapacityProbe = Callable[[str], Awaitable[int | None]]


class DefaultPlacementPolicy(PlacementPolicy):
    """Reuse the record's node when it has one, otherwise the default node."""

    def __init__(self, default_node: str, known_nodes: Sequence[str] | None = None):
        self._default_node = default_node
        self._known = set(known_nodes) if known_nodes is not None else None

    async def choose_node(self, hint: str | None = None) -> str:
        if hint and (self._known is None or hint in self._known):
            return hint
        return self._default_node


class CapacityAwarePlacementPolicy(PlacementPolicy):
    """First node with at least ``min_free_bytes`` free, else the default node.

    A node without a free-space signal (probe returns None) is skipped; a
    probe that raises is logged and treated the same way.
    """

    def __init__(
        self,
        nodes: Sequence[str],
        default_node: str,
        min_free_bytes: int,
        capacity_probe: CapacityProbe,
    ):
        self._nodes = list(nodes)
        self._default_node = default_node
        self._min_free_bytes = min_free_bytes
        self._probe = capacity_probe

    async def choose_node(self, hint: str | None = None) -> str:
        if hint and hint in self._nodes:
            return hint

        for address in self._nodes:
            try:
                free = await self._probe(address)
            except Exception as exc:
                logger.warning("Capacity probe failed for %s: %s", address, exc)
                continue
            if free is not None and free >= self._min_free_bytes:
                return address

        logger.info("No node reported enough free space: using default %s", self._default_node)
        return self._default_node
