"""
Local backend: notes persisted to an on-device SQLite file.

The database is accessed through SQLAlchemy's asyncio extension on top of
aiosqlite, so every query suspends instead of blocking the event loop.

Embeddings, tags and source are stored as JSON columns. There is no vector
index on this side: search_by_vector() loads every stored embedding and ranks
it with the cosine scorer. That is fine for the thousands of notes a single
device accumulates and is the expected scaling limit of this backend.
"""

import logging
import uuid
from pathlib import Path
from typing import List, Optional

from sqlalchemy import BigInteger, Column, JSON, String, Text, delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import StaticPool

from ainotes.embedding import rank_by_similarity
from ainotes.errors import NoteNotFoundError, StorageError, WriteRejectedError
from ainotes.storage.base import StorageBackend
from ainotes.types import NewNote, NoteRecord, NoteUpdate

logger = logging.getLogger(__name__)

Base = declarative_base()

MEMORY_PATH = ":memory:"


class NoteRow(Base):
    """One saved note."""

    __tablename__ = "notes"

    id = Column(String(36), primary_key=True)
    content = Column(Text, nullable=False)
    embedding = Column(JSON, nullable=False)
    tags = Column(JSON, nullable=False, default=list)
    source = Column(JSON, nullable=False)
    created_at = Column(BigInteger, nullable=False, index=True)
    updated_at = Column(BigInteger, nullable=False)

    def to_record(self) -> NoteRecord:
        return {
            "id": self.id,
            "content": self.content,
            "embedding": list(self.embedding),
            "tags": list(self.tags or []),
            "source": dict(self.source),
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


class LocalBackend(StorageBackend):
    """
    SQLite-backed implementation of StorageBackend.

    Parameters
    ----------
    path : str | Path
        Database file. Parent directories are created on initialize().
        ":memory:" keeps everything in a single shared in-process connection.
    """

    kind = "local"

    def __init__(self, path: str | Path) -> None:
        super().__init__()
        self.path = str(path)
        self._engine: Optional[AsyncEngine] = None
        self._sessions: Optional[async_sessionmaker] = None

    # -----------------------------------------------------------------------
    # Lifecycle
    # -----------------------------------------------------------------------

    async def _initialize(self) -> None:
        if self.path == MEMORY_PATH:
            engine = create_async_engine(
                "sqlite+aiosqlite://",
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        else:
            Path(self.path).expanduser().parent.mkdir(parents=True, exist_ok=True)
            engine = create_async_engine(
                f"sqlite+aiosqlite:///{Path(self.path).expanduser()}"
            )

        try:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
                result = await conn.execute(select(func.max(NoteRow.updated_at)))
                self._last_timestamp = result.scalar() or 0
        except SQLAlchemyError as exc:
            await engine.dispose()
            raise StorageError(f"Failed to open local store at {self.path}: {exc}") from exc

        self._engine = engine
        self._sessions = async_sessionmaker(engine, expire_on_commit=False)
        logger.debug("Local store ready at %s", self.path)

    async def _close(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
        self._engine = None
        self._sessions = None

    def _session(self):
        if self._sessions is None:
            raise StorageError("Local store session factory is not available")
        return self._sessions()

    # -----------------------------------------------------------------------
    # Writes
    # -----------------------------------------------------------------------

    async def _save_note(self, note: NewNote) -> NoteRecord:
        timestamp = self._next_timestamp()
        row = NoteRow(
            id=str(uuid.uuid4()),
            content=note["content"],
            embedding=note["embedding"],
            tags=note["tags"],
            source=note["source"],
            created_at=timestamp,
            updated_at=timestamp,
        )

        try:
            async with self._session() as session:
                session.add(row)
                await session.commit()
        except SQLAlchemyError as exc:
            logger.error("Local insert failed: %s", exc)
            raise WriteRejectedError(f"Failed to save note locally: {exc}") from exc

        logger.debug("Saved note %s", row.id)
        return row.to_record()

    async def _update_note(self, note_id: str, updates: NoteUpdate) -> NoteRecord:
        try:
            async with self._session() as session:
                row = await session.get(NoteRow, note_id)
                if row is None:
                    raise NoteNotFoundError(note_id)

                # JSON columns are replaced, never mutated in place, so the
                # unit of work sees the change.
                if "content" in updates:
                    row.content = updates["content"]
                if "embedding" in updates:
                    row.embedding = list(updates["embedding"])
                if "tags" in updates:
                    row.tags = list(updates["tags"])
                row.updated_at = max(self._next_timestamp(), row.updated_at + 1)

                await session.commit()
                return row.to_record()
        except SQLAlchemyError as exc:
            logger.error("Local update of %s failed: %s", note_id, exc)
            raise WriteRejectedError(f"Failed to update note {note_id}: {exc}") from exc

    async def _delete_note(self, note_id: str) -> None:
        try:
            async with self._session() as session:
                row = await session.get(NoteRow, note_id)
                if row is None:
                    raise NoteNotFoundError(note_id)
                await session.delete(row)
                await session.commit()
        except SQLAlchemyError as exc:
            raise WriteRejectedError(f"Failed to delete note {note_id}: {exc}") from exc

    async def _clear_all(self) -> None:
        try:
            async with self._session() as session:
                await session.execute(delete(NoteRow))
                await session.commit()
        except SQLAlchemyError as exc:
            raise WriteRejectedError(f"Failed to clear local store: {exc}") from exc

    # -----------------------------------------------------------------------
    # Reads
    # -----------------------------------------------------------------------

    async def _select(self, statement) -> List[NoteRow]:
        try:
            async with self._session() as session:
                result = await session.execute(statement)
                return list(result.scalars().all())
        except SQLAlchemyError as exc:
            raise StorageError(f"Local query failed: {exc}") from exc

    async def _get_note(self, note_id: str) -> Optional[NoteRecord]:
        try:
            async with self._session() as session:
                row = await session.get(NoteRow, note_id)
        except SQLAlchemyError as exc:
            raise StorageError(f"Local lookup of {note_id} failed: {exc}") from exc
        return row.to_record() if row is not None else None

    async def _get_all_notes(self) -> List[NoteRecord]:
        rows = await self._select(select(NoteRow).order_by(NoteRow.created_at.desc()))
        return [row.to_record() for row in rows]

    async def _get_recent_notes(self, limit: int) -> List[NoteRecord]:
        rows = await self._select(
            select(NoteRow).order_by(NoteRow.created_at.desc()).limit(limit)
        )
        return [row.to_record() for row in rows]

    async def _search_notes(self, query: str) -> List[NoteRecord]:
        statement = (
            select(NoteRow)
            .where(func.lower(NoteRow.content).contains(query.lower(), autoescape=True))
            .order_by(NoteRow.created_at.desc())
        )
        rows = await self._select(statement)
        return [row.to_record() for row in rows]

    async def _search_by_tag(self, tag: str) -> List[NoteRecord]:
        rows = await self._select(select(NoteRow).order_by(NoteRow.created_at.desc()))
        return [row.to_record() for row in rows if tag in (row.tags or [])]

    async def _search_by_vector(
        self, embedding: List[float], limit: int, threshold: float
    ) -> List[NoteRecord]:
        rows = await self._select(select(NoteRow).order_by(NoteRow.created_at.desc()))
        ranked = rank_by_similarity(
            embedding,
            ((row, row.embedding) for row in rows),
            threshold=threshold,
            limit=limit,
        )
        logger.debug("Vector search over %d notes returned %d", len(rows), len(ranked))
        return [row.to_record() for row, _score in ranked]

    async def _get_tags(self) -> List[str]:
        try:
            async with self._session() as session:
                result = await session.execute(select(NoteRow.tags))
                tag_lists = result.scalars().all()
        except SQLAlchemyError as exc:
            raise StorageError(f"Local tag query failed: {exc}") from exc

        tags = set()
        for tag_list in tag_lists:
            tags.update(tag_list or [])
        return sorted(tags)
