"""Archive persistence for finished collaboration artefacts."""

from .models import Base, ArchivedRecord
from .database import DatabaseManager
from .archive import ArchiveSink, InMemoryArchive, DatabaseArchive, archive_quietly

__all__ = [
    "Base",
    "ArchivedRecord",
    "DatabaseManager",
    "ArchiveSink",
    "InMemoryArchive",
    "DatabaseArchive",
    "archive_quietly"
]
