"""FastAPI application factory."""

import logging
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from hybridstore.config import get_settings
from hybridstore.infrastructure.database import Base, engine
from hybridstore.infrastructure.database.session import ensure_sqlite_directory
from hybridstore.infrastructure.dependencies import (
    build_orphan_sweeper,
    get_event_bus,
    get_shard_store,
)
from hybridstore.infrastructure.logging.log_config import setup_logging
from hybridstore.presentation.api.router import router as api_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan: create tables, prepare shard nodes, start the sweeper."""
    settings = get_settings()
    setup_logging()

    # 1. Create registry tables
    ensure_sqlite_directory(settings.database_url)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    # 2. Shard nodes (local node directories are created on construction)
    Path(settings.shard_root_dir).mkdir(parents=True, exist_ok=True)
    store = get_shard_store()
    logger.info("Shard nodes: %s (default %s)", ", ".join(store.node_addresses), settings.shard_default_node)

    # 3. Orphaned blob sweep
    sweeper = None
    if settings.orphan_sweep_enabled:
        sweeper = build_orphan_sweeper()
        await sweeper.start()

    yield

    # Shutdown
    if sweeper is not None:
        await sweeper.stop()
    await get_event_bus().shutdown()
    await store.aclose()
    await engine.dispose()


def create_app() -> FastAPI:
    """Factory function that builds and configures the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_title,
        version=settings.app_version,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "hybridstore.main:app",
        host="0.0.0.0",
        port=8020,
        reload=True,
    )
