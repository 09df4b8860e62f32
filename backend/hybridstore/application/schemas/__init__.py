from .record import RecordPageResponse, RecordResponse, RecordSaveRequest, ShardPointerSchema

__all__ = [
    "RecordPageResponse",
    "RecordResponse",
    "RecordSaveRequest",
    "ShardPointerSchema",
]
