from .registry_record import RegistryRecordModel

__all__ = [
    "RegistryRecordModel",
]
