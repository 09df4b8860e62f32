"""Record CRUD endpoints: one route set for every record kind."""

from fastapi import APIRouter, Depends, File, HTTPException, Query, Response, UploadFile, status

from hybridstore.application.schemas.record import (
    RecordPageResponse,
    RecordResponse,
    RecordSaveRequest,
)
from hybridstore.application.services import RecordService
from hybridstore.domain.exceptions import (
    EntityNotFoundError,
    PersistenceError,
    RegistryError,
    ShardError,
    ShardNotFoundError,
    UnknownRecordKindError,
)
from hybridstore.infrastructure.dependencies import get_record_service

router = APIRouter(prefix="/records", tags=["Records"])

_HANDLED = (
    EntityNotFoundError,
    UnknownRecordKindError,
    PersistenceError,
    ShardError,
    RegistryError,
    ValueError,
)


def _http_error(exc: Exception) -> HTTPException:
    """Map domain failures onto HTTP status codes."""
    if isinstance(exc, (EntityNotFoundError, UnknownRecordKindError, ShardNotFoundError)):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, PersistenceError):
        code = status.HTTP_409_CONFLICT if exc.is_conflict else status.HTTP_502_BAD_GATEWAY
        return HTTPException(status_code=code, detail=str(exc))
    if isinstance(exc, (ShardError, RegistryError)):
        return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc))
    return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))


@router.get("/{kind}", response_model=RecordPageResponse)
async def list_records(
    kind: str,
    parent_id: str | None = Query(None, description="Filter by the kind's parent (collection, project, owner)"),
    search: str = Query("", description="Case-insensitive substring search"),
    sort: list[str] = Query(["-updated_at"], description="Sort keys, '-' prefix for descending"),
    page: int = Query(1, ge=1),
    page_size: int = Query(25, ge=1, le=200),
    service: RecordService = Depends(get_record_service),
) -> RecordPageResponse:
    """Retrieve a filtered, sorted page of records of one kind."""
    try:
        result = await service.list_records(
            kind,
            parent_id=parent_id,
            search=search,
            sort=sort,
            page=page,
            page_size=page_size,
        )
    except _HANDLED as e:
        raise _http_error(e)
    return RecordPageResponse(
        items=[RecordResponse.from_entity(r) for r in result.items],
        total_count=result.total_count,
        page=page,
        page_size=page_size,
    )


@router.get("/{kind}/{record_id}", response_model=RecordResponse)
async def get_record(
    kind: str,
    record_id: str,
    service: RecordService = Depends(get_record_service),
) -> RecordResponse:
    """Retrieve a single record by ID."""
    try:
        record = await service.get_record(kind, record_id)
    except _HANDLED as e:
        raise _http_error(e)
    return RecordResponse.from_entity(record)


@router.put("/{kind}/{record_id}", response_model=RecordResponse)
async def save_record(
    kind: str,
    record_id: str,
    data: RecordSaveRequest,
    service: RecordService = Depends(get_record_service),
) -> RecordResponse:
    """Create or update a record, writing its JSON payload shard-first."""
    try:
        record = await service.save_record(kind, record_id, data)
    except _HANDLED as e:
        raise _http_error(e)
    return RecordResponse.from_entity(record)


@router.put("/{kind}/{record_id}/file", response_model=RecordResponse)
async def upload_record_file(
    kind: str,
    record_id: str,
    file: UploadFile = File(...),
    service: RecordService = Depends(get_record_service),
) -> RecordResponse:
    """Store an uploaded file as the record's binary payload."""
    content = await file.read()
    try:
        record = await service.save_file(
            kind,
            record_id,
            content,
            filename=file.filename or "upload",
            mime_type=file.content_type,
        )
    except _HANDLED as e:
        raise _http_error(e)
    return RecordResponse.from_entity(record)


@router.get("/{kind}/{record_id}/payload")
async def get_record_payload(
    kind: str,
    record_id: str,
    service: RecordService = Depends(get_record_service),
) -> Response:
    """Stream the record's payload back with its stored MIME type."""
    try:
        payload = await service.load_payload(kind, record_id)
    except _HANDLED as e:
        raise _http_error(e)
    return Response(content=payload.data, media_type=payload.mime_type)


@router.delete("/{kind}/{record_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_record(
    kind: str,
    record_id: str,
    service: RecordService = Depends(get_record_service),
) -> None:
    """Delete a record; its payload is removed best-effort."""
    try:
        await service.delete_record(kind, record_id)
    except _HANDLED as e:
        raise _http_error(e)
