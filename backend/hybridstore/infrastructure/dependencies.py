"""FastAPI dependency injection: wires infrastructure to application layer.

Shard nodes, the registry client and the event bus are process-wide
singletons; services are built per request on top of them.
"""

from collections.abc import AsyncGenerator
from functools import lru_cache

from fastapi import Depends

from hybridstore.config import Settings, get_settings
from hybridstore.application.interfaces import PlacementPolicy, RegistryClient, ShardNode, ShardStore
from hybridstore.application.services import (
    CapacityAwarePlacementPolicy,
    DefaultPlacementPolicy,
    DualWriteCoordinator,
    OrphanSweeper,
    RecordEventBus,
    RecordService,
)
from hybridstore.infrastructure.database.session import async_session_factory
from hybridstore.infrastructure.database.repositories import SQLAlchemyRegistryClient
from hybridstore.infrastructure.storage import HttpShardNode, LocalShardNode, ShardStoreClient


def build_shard_nodes(settings: Settings) -> list[ShardNode]:
    """Local directory nodes first, then remote nodes, in configuration order."""
    nodes: list[ShardNode] = [
        LocalShardNode(address, settings.shard_root_dir, quota_bytes=settings.shard_node_quota_bytes)
        for address in settings.shard_local_nodes
    ]
    nodes.extend(
        HttpShardNode(address, base_url, timeout=settings.shard_request_timeout)
        for address, base_url in settings.shard_remote_nodes.items()
    )
    return nodes


def build_placement_policy(settings: Settings, nodes: list[ShardNode]) -> PlacementPolicy:
    addresses = [node.address for node in nodes]
    if settings.placement_policy == "capacity":
        by_address = {node.address: node for node in nodes}

        async def probe(address: str) -> int | None:
            return await by_address[address].free_space()

        return CapacityAwarePlacementPolicy(
            nodes=addresses,
            default_node=settings.shard_default_node,
            min_free_bytes=settings.placement_min_free_bytes,
            capacity_probe=probe,
        )
    if settings.placement_policy != "default":
        raise ValueError(f"Unknown placement policy '{settings.placement_policy}'")
    return DefaultPlacementPolicy(settings.shard_default_node, known_nodes=addresses)


@lru_cache
def get_event_bus() -> RecordEventBus:
    """Singleton event bus shared by the coordinator and the SSE endpoint."""
    return RecordEventBus(queue_size=get_settings().event_queue_size)


@lru_cache
def get_shard_store() -> ShardStoreClient:
    settings = get_settings()
    nodes = build_shard_nodes(settings)
    return ShardStoreClient(
        nodes,
        build_placement_policy(settings, nodes),
        remote_timeout=settings.shard_request_timeout,
    )


@lru_cache
def get_registry_client() -> SQLAlchemyRegistryClient:
    return SQLAlchemyRegistryClient(async_session_factory)


def get_coordinator(
    shard: ShardStore = Depends(get_shard_store),
    registry: RegistryClient = Depends(get_registry_client),
    events: RecordEventBus = Depends(get_event_bus),
) -> DualWriteCoordinator:
    return DualWriteCoordinator(shard, registry, events)


async def get_record_service(
    coordinator: DualWriteCoordinator = Depends(get_coordinator),
) -> AsyncGenerator[RecordService, None]:
    """Provides a RecordService wired to the shared shard store and registry."""
    yield RecordService(coordinator)


def build_orphan_sweeper() -> OrphanSweeper:
    settings = get_settings()
    return OrphanSweeper(
        get_shard_store(),
        get_registry_client(),
        interval=settings.orphan_sweep_interval,
        grace_seconds=settings.orphan_sweep_grace_seconds,
    )
