from .registry_repository import SQLAlchemyRegistryClient

__all__ = [
    "SQLAlchemyRegistryClient",
]
