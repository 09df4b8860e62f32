"""Concrete registry client backed by SQLAlchemy.

Each call runs in its own session and commits before returning, so a
successful ``upsert`` is durable by the time the coordinator reports it.
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from hybridstore.application.interfaces import RegistryClient
from hybridstore.domain.entities import (
    Record,
    RegistryPage,
    RegistryQuery,
    ShardPointer,
    record_type_for,
)
from hybridstore.domain.exceptions import (
    RegistryConflictError,
    RegistryError,
    RegistryUnreachableError,
    RegistryWriteError,
)
from hybridstore.infrastructure.database.models import RegistryRecordModel

logger = logging.getLogger(__name__)


def _as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _translate(exc: Exception, record_id: str | None = None) -> RegistryError:
    """Map driver/ORM failures onto the registry error taxonomy."""
    if isinstance(exc, IntegrityError):
        return RegistryConflictError(str(exc.orig or exc), record_id=record_id)
    if isinstance(exc, (OperationalError, InterfaceError, OSError)):
        return RegistryUnreachableError(str(exc), record_id=record_id)
    return RegistryWriteError(str(exc), record_id=record_id)


class SQLAlchemyRegistryClient(RegistryClient):
    """Implements the RegistryClient port using SQLAlchemy async sessions."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    def _to_entity(self, model: RegistryRecordModel) -> Record:
        """Map ORM model → domain entity."""
        record_cls = record_type_for(model.kind)
        pointer = None
        if model.shard_id and model.node_address:
            pointer = ShardPointer(shard_id=model.shard_id, node_address=model.node_address)
        return record_cls.from_registry(
            scalar_fields=model.fields or {},
            id=model.id,
            shard_pointer=pointer,
            is_favorite=bool(model.is_favorite),
            search_all=model.search_all or "",
            created_at=_as_utc(model.created_at),
            updated_at=_as_utc(model.updated_at),
        )

    @staticmethod
    def _column_values(record: Record) -> dict:
        """Every column but the key, taken from the entity (full replace semantics)."""
        pointer = record.shard_pointer
        return {
            "kind": record.kind,
            "parent_id": record.parent_id,
            "title": record.title,
            "is_favorite": record.is_favorite,
            "search_all": record.search_all,
            "shard_id": pointer.shard_id if pointer else None,
            "node_address": pointer.node_address if pointer else None,
            "fields": record.scalar_fields(),
            "created_at": record.created_at,
            "updated_at": record.updated_at,
        }

    async def _swap(self, session: AsyncSession, record: Record, expected: datetime) -> None:
        """Single conditional UPDATE; no match means the row is gone or newer."""
        stmt = (
            update(RegistryRecordModel)
            .where(
                RegistryRecordModel.id == record.id,
                RegistryRecordModel.updated_at == _as_utc(expected),
            )
            .values(**self._column_values(record))
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        if result.rowcount == 0:
            raise RegistryConflictError(
                f"Row missing or modified since {_as_utc(expected).isoformat()}",
                record_id=record.id,
            )

    async def upsert(self, record: Record, *, expected_updated_at: datetime | None = None) -> None:
        async with self._session_factory() as session:
            try:
                if expected_updated_at is not None:
                    await self._swap(session, record, expected_updated_at)
                else:
                    model = await session.get(RegistryRecordModel, record.id)
                    if model is None:
                        model = RegistryRecordModel(id=record.id)
                        session.add(model)
                    for column, value in self._column_values(record).items():
                        setattr(model, column, value)
                await session.commit()
            except RegistryError:
                await session.rollback()
                raise
            except (SQLAlchemyError, OSError) as exc:
                await session.rollback()
                raise _translate(exc, record.id) from exc

        logger.debug("Upserted %s %s", record.kind, record.id)

    async def delete(self, record_id: str) -> bool:
        async with self._session_factory() as session:
            try:
                model = await session.get(RegistryRecordModel, record_id)
                if model is None:
                    return False
                await session.delete(model)
                await session.commit()
            except (SQLAlchemyError, OSError) as exc:
                await session.rollback()
                raise _translate(exc, record_id) from exc
        return True

    async def get(self, record_id: str) -> Record | None:
        async with self._session_factory() as session:
            try:
                model = await session.get(RegistryRecordModel, record_id)
            except (SQLAlchemyError, OSError) as exc:
                raise _translate(exc, record_id) from exc
            return self._to_entity(model) if model else None

    async def query(self, query: RegistryQuery) -> RegistryPage[Record]:
        stmt = select(RegistryRecordModel).where(RegistryRecordModel.kind == query.kind)

        if query.parent_id is not None:
            stmt = stmt.where(RegistryRecordModel.parent_id == query.parent_id)
        if query.search:
            pattern = f"%{_escape_like(query.search.strip().lower())}%"
            stmt = stmt.where(RegistryRecordModel.search_all.ilike(pattern, escape="\\"))
        if query.created_from is not None:
            stmt = stmt.where(RegistryRecordModel.created_at >= query.created_from)
        if query.created_to is not None:
            stmt = stmt.where(RegistryRecordModel.created_at <= query.created_to)

        count_stmt = select(func.count()).select_from(stmt.subquery())

        order_by = []
        for key in query.sort:
            column = getattr(RegistryRecordModel, key.field)
            order_by.append(column.desc() if key.descending else column.asc())
        order_by.append(RegistryRecordModel.id.asc())
        stmt = stmt.order_by(*order_by).offset(query.offset).limit(query.page_size)

        async with self._session_factory() as session:
            try:
                total = (await session.execute(count_stmt)).scalar_one()
                result = await session.execute(stmt)
                models = result.scalars().all()
            except (SQLAlchemyError, OSError) as exc:
                raise _translate(exc) from exc

        return RegistryPage(items=[self._to_entity(m) for m in models], total_count=int(total))

    async def referenced_pointers(self) -> set[ShardPointer]:
        stmt = select(RegistryRecordModel.shard_id, RegistryRecordModel.node_address).where(
            RegistryRecordModel.shard_id.is_not(None),
            RegistryRecordModel.node_address.is_not(None),
        )
        async with self._session_factory() as session:
            try:
                rows = (await session.execute(stmt)).all()
            except (SQLAlchemyError, OSError) as exc:
                raise _translate(exc) from exc
        return {ShardPointer(shard_id=s, node_address=n) for s, n in rows}
