"""Shard store client: routes pointers to the node that owns them."""

import logging

from hybridstore.application.interfaces import PlacementPolicy, ShardNode, ShardStore
from hybridstore.domain.entities import BlobInfo, ShardPayload, ShardPointer
from hybridstore.domain.exceptions import ShardUnreachableError
from hybridstore.infrastructure.storage.http_shard_node import HttpShardNode

logger = logging.getLogger(__name__)

_URL_PREFIXES = ("http://", "https://")


def _url_key(url: str) -> str:
    return url.rstrip("/")


class ShardStoreClient(ShardStore):
    """Implements the ShardStore port over a set of nodes.

    Existing pointers are written back to their own node; new payloads go
    wherever the placement policy says. A remote node may answer that the
    blob landed on another web app; that URL is mapped back to a configured
    node, or adopted as a node of its own so later reads and deletes reach
    it. Payload bytes are never cached.
    """

    def __init__(
        self,
        nodes: list[ShardNode],
        placement: PlacementPolicy,
        *,
        remote_timeout: float = 30.0,
    ):
        self._nodes: dict[str, ShardNode] = {}
        self._by_url: dict[str, str] = {}
        self._placement = placement
        self._remote_timeout = remote_timeout
        for node in nodes:
            self._register(node)

    def _register(self, node: ShardNode) -> None:
        self._nodes[node.address] = node
        base_url = getattr(node, "base_url", None)
        if base_url:
            self._by_url.setdefault(_url_key(base_url), node.address)

    @property
    def node_addresses(self) -> list[str]:
        return list(self._nodes)

    def node(self, address: str) -> ShardNode:
        """The node for ``address``; web app URLs from stored pointers are adopted on first use."""
        if address in self._nodes:
            return self._nodes[address]
        known = self._by_url.get(_url_key(address))
        if known is not None:
            return self._nodes[known]
        if address.startswith(_URL_PREFIXES):
            return self._adopt(address, None)
        raise ShardUnreachableError(
            f"Unknown storage node '{address}'", node_address=address
        )

    def _adopt(self, url: str, reporter: ShardNode | None) -> ShardNode:
        if isinstance(reporter, HttpShardNode):
            node = reporter.for_url(url)
        else:
            node = HttpShardNode(url, url, timeout=self._remote_timeout)
        self._register(node)
        logger.info(
            "Adopted storage node %s%s",
            url,
            f" (reported by {reporter.address})" if reporter else "",
        )
        return node

    def _resolve(self, pointer: ShardPointer, reporter: ShardNode) -> ShardPointer:
        """Map the address a node reported onto the address this client routes by."""
        address = pointer.node_address
        if address in self._nodes:
            return pointer
        known = self._by_url.get(_url_key(address))
        if known is not None:
            return ShardPointer(shard_id=pointer.shard_id, node_address=known)
        if not address.startswith(_URL_PREFIXES):
            raise ShardUnreachableError(
                f"Node {reporter.address} reported unknown node '{address}'",
                node_address=address,
                shard_id=pointer.shard_id,
            )
        self._adopt(address, reporter)
        return pointer

    def _owner(self, pointer: ShardPointer | None) -> ShardNode | None:
        if pointer is None:
            return None
        try:
            return self.node(pointer.node_address)
        except ShardUnreachableError:
            return None

    async def write(
        self,
        existing: ShardPointer | None,
        payload: ShardPayload,
        *,
        hint: str | None = None,
        name_hint: str = "",
    ) -> ShardPointer:
        node = self._owner(existing)
        if existing is not None and node is not None:
            pointer = self._resolve(await node.put(payload, existing.shard_id, name_hint), node)
            if pointer != existing:
                logger.info("Blob %s replaced by %s; old blob left for cleanup", existing, pointer)
            return pointer

        address = await self._placement.choose_node(hint)
        node = self.node(address)
        return self._resolve(await node.put(payload, None, name_hint), node)

    async def read(self, pointer: ShardPointer) -> ShardPayload:
        return await self.node(pointer.node_address).get(pointer.shard_id)

    async def delete(self, pointer: ShardPointer) -> None:
        await self.node(pointer.node_address).remove(pointer.shard_id)

    async def list_blobs(self, node_address: str) -> list[BlobInfo]:
        return await self.node(node_address).list_blobs()

    async def free_space(self, node_address: str) -> int | None:
        """Capacity probe for the placement policy."""
        return await self.node(node_address).free_space()

    async def aclose(self) -> None:
        for node in self._nodes.values():
            close = getattr(node, "aclose", None)
            if close is not None:
                await close()
