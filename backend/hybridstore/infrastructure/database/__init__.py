from .base import Base
from .session import engine, async_session_factory, build_session_factory
from .models import RegistryRecordModel

__all__ = [
    "Base",
    "engine",
    "async_session_factory",
    "build_session_factory",
    "RegistryRecordModel",
]
