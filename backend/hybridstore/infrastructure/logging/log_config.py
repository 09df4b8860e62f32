"""Per-category log levels for the hybrid store.

Each ``log_level_*`` setting controls a group of loggers, so SQL statements
or outbound HTTP chatter can be turned up or down without touching the
shard, registry and reconciler trail.

Usage:
    from hybridstore.infrastructure.logging.log_config import setup_logging
    setup_logging()   # once, from the FastAPI lifespan
"""

import logging
import sys

from hybridstore.config import Settings, get_settings

# Settings field → loggers it governs
_CATEGORY_MAP: dict[str, tuple[str, ...]] = {
    "log_level_sql": ("sqlalchemy.engine", "sqlalchemy.pool", "aiosqlite"),
    "log_level_http": ("httpx", "httpcore"),
    "log_level_uvicorn": ("uvicorn", "uvicorn.access", "uvicorn.error"),
    "log_level_shard": (
        "hybridstore.infrastructure.storage",
        "hybridstore.application.services.dual_write_coordinator",
        "hybridstore.application.services.placement",
        "DualWriteCoordinator",
    ),
    "log_level_reconcile": (
        "hybridstore.application.services.reconciler",
        "hybridstore.application.services.orphan_sweeper",
        "hybridstore.application.services.record_events",
        "OptimisticReconciler",
        "OrphanSweeper",
    ),
}

_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def setup_logging(settings: Settings | None = None) -> dict[str, int]:
    """Apply root and per-category levels; returns the level set per category."""
    settings = settings or get_settings()

    root = logging.getLogger()
    root.setLevel(_parse_level(settings.log_level))
    if not root.handlers:
        # uvicorn installs its own handlers; bare scripts and tests do not
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(_FORMAT, datefmt="%H:%M:%S"))
        root.addHandler(handler)

    applied: dict[str, int] = {}
    for field_name, logger_names in _CATEGORY_MAP.items():
        level = _parse_level(getattr(settings, field_name))
        applied[field_name] = level
        for name in logger_names:
            logging.getLogger(name).setLevel(level)

    logging.getLogger(__name__).debug(
        "Log levels: root=%s %s",
        settings.log_level,
        " ".join(f"{k.removeprefix('log_level_')}={logging.getLevelName(v)}" for k, v in applied.items()),
    )
    return applied


def _parse_level(raw: str) -> int:
    """Level name → logging constant; unknown names fall back to INFO."""
    numeric = logging.getLevelName(raw.strip().upper())
    return numeric if isinstance(numeric, int) else logging.INFO
