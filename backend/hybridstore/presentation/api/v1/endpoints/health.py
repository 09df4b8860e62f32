"""Health check endpoint: no dependencies, always available."""

from fastapi import APIRouter

from hybridstore.config import get_settings

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health_check() -> dict:
    """Returns the current application health status and configured shard nodes."""
    settings = get_settings()
    return {
        "status": "healthy",
        "version": settings.app_version,
        "environment": settings.app_env,
        "shard_nodes": [*settings.shard_local_nodes, *settings.shard_remote_nodes],
    }
