"""SQLAlchemy ORM model for registry rows (metadata + shard pointer)."""

from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, Index, JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from hybridstore.infrastructure.database.base import Base


class RegistryRecordModel(Base):
    """ORM model: maps to the 'registry_records' table.

    ``kind`` discriminates the Record variant; variant scalars live in
    ``fields``. ``updated_at`` is written verbatim from the entity so it can
    serve as a compare-and-swap token.
    """

    __tablename__ = "registry_records"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    kind: Mapped[str] = mapped_column(String(50), nullable=False)
    parent_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    title: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    is_favorite: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    search_all: Mapped[str] = mapped_column(Text, nullable=False, default="")
    shard_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    node_address: Mapped[str | None] = mapped_column(String(255), nullable=True)
    fields: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    __table_args__ = (
        Index("ix_registry_records_kind_parent", "kind", "parent_id"),
        Index("ix_registry_records_kind_updated", "kind", "updated_at"),
        Index("ix_registry_records_shard", "node_address", "shard_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<RegistryRecordModel(id={self.id}, kind='{self.kind}', "
            f"shard='{self.node_address}/{self.shard_id}')>"
        )
