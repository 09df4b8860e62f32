from .placement_policy import PlacementPolicy
from .registry_client import RegistryClient
from .shard_store import ShardNode, ShardStore

__all__ = [
    "PlacementPolicy",
    "RegistryClient",
    "ShardNode",
    "ShardStore",
]
