from .shard import BlobInfo, ShardPayload, ShardPointer, JSON_MIME_TYPE, BINARY_MIME_TYPE
from .record import (
    Record,
    ActivityRecord,
    NoteRecord,
    ConsultationRecord,
    TracerReferenceRecord,
    PresentationRecord,
    AttachmentRecord,
    RECORD_TYPES,
    record_type_for,
)
from .provisional import (
    BatchMode,
    BatchOutcome,
    BatchState,
    BusyToken,
    Entry,
    OperationBatch,
    ProvisionalEntry,
    ProvisionalTag,
)
from .query import DEFAULT_SORT, SORTABLE_FIELDS, RegistryPage, RegistryQuery, SortKey
from .upload import UploadItem
from .record_event import RecordEvent, RecordEventType

__all__ = [
    "BlobInfo",
    "ShardPayload",
    "ShardPointer",
    "JSON_MIME_TYPE",
    "BINARY_MIME_TYPE",
    "Record",
    "ActivityRecord",
    "NoteRecord",
    "ConsultationRecord",
    "TracerReferenceRecord",
    "PresentationRecord",
    "AttachmentRecord",
    "RECORD_TYPES",
    "record_type_for",
    "BatchMode",
    "BatchOutcome",
    "BatchState",
    "BusyToken",
    "Entry",
    "OperationBatch",
    "ProvisionalEntry",
    "ProvisionalTag",
    "DEFAULT_SORT",
    "SORTABLE_FIELDS",
    "RegistryPage",
    "RegistryQuery",
    "SortKey",
    "UploadItem",
    "RecordEvent",
    "RecordEventType",
]
