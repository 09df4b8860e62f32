from pathlib import Path

from pydantic_settings import BaseSettings
from functools import lru_cache

_BACKEND_DIR = Path(__file__).resolve().parents[1]
_ENV_FILES = (
    _BACKEND_DIR / ".env",
    ".env",
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    app_title: str = "Hybrid Store API"
    app_version: str = "0.1.0"
    app_env: str = "development"
    database_url: str = "sqlite:///data/registry.db"
    cors_origins: list[str] = ["http://localhost:3020"]

    # Shard nodes: local nodes live under <shard_root_dir>/<address>/
    shard_root_dir: str = "shards"
    shard_local_nodes: list[str] = ["local-a"]
    shard_remote_nodes: dict[str, str] = {}  # address → base URL
    shard_default_node: str = "local-a"
    shard_request_timeout: float = 30.0
    shard_node_quota_mb: int | None = None

    # Placement: "default" (reuse node, else default) or "capacity"
    placement_policy: str = "default"
    placement_min_free_mb: int = 50

    # Record events (SSE)
    event_queue_size: int = 100

    # Orphaned blob sweep (lazy cleanup): off unless explicitly enabled
    orphan_sweep_enabled: bool = False
    orphan_sweep_interval: int = 3600
    orphan_sweep_grace_seconds: int = 900

    # Logging: per-category log levels (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    log_level: str = "INFO"                  # Root / app-wide
    log_level_sql: str = "WARNING"           # sqlalchemy.engine: SQL queries
    log_level_http: str = "WARNING"          # httpx / httpcore: outbound HTTP
    log_level_uvicorn: str = "INFO"          # uvicorn.access / uvicorn.error
    log_level_shard: str = "INFO"            # shard nodes + coordinator
    log_level_reconcile: str = "INFO"        # optimistic reconciler + sweeper

    model_config = {
        "env_file": _ENV_FILES,
        "env_file_encoding": "utf-8",
    }

    @property
    def placement_min_free_bytes(self) -> int:
        return self.placement_min_free_mb * 1024 * 1024

    @property
    def shard_node_quota_bytes(self) -> int | None:
        if self.shard_node_quota_mb is None:
            return None
        return self.shard_node_quota_mb * 1024 * 1024


@lru_cache
def get_settings() -> Settings:
    """Cached settings instance: reads .env once."""
    return Settings()
