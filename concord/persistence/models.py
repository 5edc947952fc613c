"""
Database models for Concord.

The collaboration core keeps its working state in memory; finished
collaborations, consensus sessions and handoffs are written here as
archived JSON documents.
"""

import uuid
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import JSON, DateTime, Index, String, Uuid
from sqlalchemy.ext.asyncio import AsyncAttrs
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.sql import func


class Base(AsyncAttrs, DeclarativeBase):
    """Base class for all database models."""
    pass


class ArchivedRecord(Base):
    """
    One archived collaboration artefact.

    ``kind`` says which component produced it (collaboration, consensus,
    handoff) and ``record_id`` is that component's own identifier.
    """
    __tablename__ = "archived_records"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    kind: Mapped[str] = mapped_column(String(50), nullable=False)
    record_id: Mapped[str] = mapped_column(String(100), nullable=False)
    user_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    payload: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False)
    archived_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )

    __table_args__ = (
        Index("idx_archived_records_kind", "kind"),
        Index("idx_archived_records_user", "user_id"),
        Index("idx_archived_records_record", "record_id"),
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": str(self.id),
            "kind": self.kind,
            "record_id": self.record_id,
            "user_id": self.user_id,
            "payload": self.payload,
            "archived_at": self.archived_at.isoformat() if self.archived_at else None,
        }

    def __repr__(self) -> str:
        return f"<ArchivedRecord(kind={self.kind}, record_id={self.record_id})>"
