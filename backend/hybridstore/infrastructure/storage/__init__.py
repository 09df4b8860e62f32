from .local_shard_node import LocalShardNode
from .http_shard_node import HttpShardNode
from .shard_store_client import ShardStoreClient

__all__ = [
    "LocalShardNode",
    "HttpShardNode",
    "ShardStoreClient",
]
