"""
Archive sinks for finished collaboration artefacts.

Components hand completed sessions, consensus results and handoffs to an
``ArchiveSink``. From the components' side archiving is fire-and-forget:
``archive_quietly`` logs and swallows sink failures.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from sqlalchemy import select

from concord.persistence.database import DatabaseManager
from concord.persistence.models import ArchivedRecord
from concord.utils.exceptions import DatabaseError
from concord.utils.helpers import short_id, to_jsonable, utcnow
from concord.utils.logger import get_logger

logger = get_logger("persistence.archive")


class ArchiveSink(ABC):
    """Write-only destination for archived records."""

    @abstractmethod
    async def archive(self, kind: str, record_id: str, user_id: Optional[str], payload: Dict[str, Any]) -> None:
        """Persist one record."""

    @abstractmethod
    async def list_records(self, kind: Optional[str] = None, user_id: Optional[str] = None) -> List[Dict[str, Any]]:
        """Read back archived records, oldest first."""


class InMemoryArchive(ArchiveSink):
    """Archive kept in process memory."""

    def __init__(self):
        self._records: List[Dict[str, Any]] = []
        self._lock = asyncio.Lock()

    async def archive(self, kind: str, record_id: str, user_id: Optional[str], payload: Dict[str, Any]) -> None:
        async with self._lock:
            self._records.append({
                "kind": kind,
                "record_id": record_id,
                "user_id": user_id,
                "payload": to_jsonable(payload),
                "archived_at": utcnow().isoformat(),
            })

    async def list_records(self, kind: Optional[str] = None, user_id: Optional[str] = None) -> List[Dict[str, Any]]:
        return [
            record for record in self._records
            if (kind is None or record["kind"] == kind)
            and (user_id is None or record["user_id"] == user_id)
        ]

    def __len__(self) -> int:
        return len(self._records)


class DatabaseArchive(ArchiveSink):
    """Archive backed by the SQLAlchemy ``archived_records`` table."""

    def __init__(self, db_manager: DatabaseManager):
        self.db_manager = db_manager
        self.logger = get_logger("persistence.database_archive")

    async def archive(self, kind: str, record_id: str, user_id: Optional[str], payload: Dict[str, Any]) -> None:
        try:
            async with self.db_manager.get_session() as session:
                session.add(ArchivedRecord(
                    kind=kind,
                    record_id=record_id,
                    user_id=user_id,
                    payload=to_jsonable(payload)
                ))
        except DatabaseError:
            raise
        except Exception as e:
            raise DatabaseError(f"Failed to archive {kind} {record_id}: {e}", operation="archive",
                                original_exception=e) from e

    async def list_records(self, kind: Optional[str] = None, user_id: Optional[str] = None) -> List[Dict[str, Any]]:
        stmt = select(ArchivedRecord).order_by(ArchivedRecord.archived_at, ArchivedRecord.record_id)
        if kind is not None:
            stmt = stmt.where(ArchivedRecord.kind == kind)
        if user_id is not None:
            stmt = stmt.where(ArchivedRecord.user_id == user_id)

        async with self.db_manager.get_session() as session:
            result = await session.execute(stmt)
            return [record.to_dict() for record in result.scalars().all()]


async def archive_quietly(
    sink: Optional[ArchiveSink],
    kind: str,
    record_id: str,
    user_id: Optional[str],
    payload: Dict[str, Any]
) -> bool:
    """Archive a record, logging instead of raising on failure."""
    if sink is None:
        return False
    try:
        await sink.archive(kind, record_id, user_id, payload)
        return True
    except Exception as e:
        logger.warning(f"Archiving {kind} {short_id(record_id)} failed: {e}")
        return False
