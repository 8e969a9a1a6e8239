"""
Storage backend interface shared by the local and remote backends.

StorageBackend is the single contract callers depend on. The public
coroutines defined here do the work that must be identical across backends:

    • refuse to run before initialize() (NotInitializedError)
    • validate input and normalize tags
    • normalize embeddings on every write and every vector query
    • track in-flight requests so a retired backend fails them cleanly

Concrete backends only implement the underscore-prefixed hooks and receive
input that is already validated and normalized.
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from typing import Awaitable, Iterable, List, Optional, TypeVar

from ainotes.embedding import (
    DEFAULT_MATCH_COUNT,
    DEFAULT_MATCH_THRESHOLD,
    ensure_canonical,
    normalize_embedding,
)
from ainotes.errors import BackendReselectedError, NotInitializedError
from ainotes.types import NewNote, NoteRecord, NoteUpdate

logger = logging.getLogger(__name__)

R = TypeVar("R")

MUTABLE_FIELDS = frozenset({"content", "embedding", "tags"})


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


# ---------------------------------------------------------------------------
# Input preparation helpers
# ---------------------------------------------------------------------------


def normalize_tags(tags: Optional[Iterable[str]]) -> List[str]:
    """
    Strip whitespace, drop empty entries and remove duplicates.

    Order of first occurrence is preserved; comparison is case-sensitive.
    """
    result: List[str] = []
    seen = set()

    for tag in tags or []:
        if not tag:
            continue

        normalized = tag.strip()
        if normalized and normalized not in seen:
            seen.add(normalized)
            result.append(normalized)

    return result


def prepare_new_note(note: NewNote) -> NewNote:
    """Validate a note for save_note() and return its canonical form."""
    content = note.get("content")
    if not content or not content.strip():
        raise ValueError("content must be provided")

    source = note.get("source")
    if not source:
        raise ValueError("source must be provided")

    if not note.get("embedding"):
        raise ValueError("embedding must be provided")

    embedding = normalize_embedding(note["embedding"])
    ensure_canonical(embedding)

    timestamp = source.get("timestamp")
    if timestamp is None:
        timestamp = now_ms()

    return {
        "content": content,
        "embedding": embedding,
        "tags": normalize_tags(note.get("tags")),
        "source": {
            "url": source.get("url", ""),
            "title": source.get("title", ""),
            "timestamp": int(timestamp),
        },
    }


def prepare_update(updates: NoteUpdate) -> NoteUpdate:
    """
    Validate a partial update and return its canonical form.

    Raises
    ------
    ValueError
        If the update touches an immutable field or blanks the content.
    """
    immutable = set(updates) - MUTABLE_FIELDS
    if immutable:
        raise ValueError(f"Cannot update immutable fields: {', '.join(sorted(immutable))}")

    prepared: NoteUpdate = {}

    if "content" in updates:
        content = updates["content"]
        if not content or not content.strip():
            raise ValueError("content must be provided")
        prepared["content"] = content

    if "embedding" in updates:
        if not updates["embedding"]:
            raise ValueError("embedding must be provided")
        embedding = normalize_embedding(updates["embedding"])
        ensure_canonical(embedding)
        prepared["embedding"] = embedding

    if "tags" in updates:
        prepared["tags"] = normalize_tags(updates["tags"])

    return prepared


def validate_limit(limit: int) -> int:
    if isinstance(limit, bool) or not isinstance(limit, int) or limit <= 0:
        raise ValueError(f"limit must be a positive integer, got {limit!r}")
    return limit


# ---------------------------------------------------------------------------
# StorageBackend
# ---------------------------------------------------------------------------


class StorageBackend(ABC):
    """
    Uniform note storage contract.

    Lifecycle
    ---------
    construct → initialize() → operations ... → retire() / close()

    retire() is used by the BackendSelector on reconfiguration: the backend
    stops accepting requests, requests already in flight raise
    BackendReselectedError once they complete, and the underlying resources
    are released after the last of them has drained.
    """

    kind: str = "abstract"

    def __init__(self) -> None:
        self._initialized = False
        self._retired = False
        self._inflight = 0
        self._idle = asyncio.Event()
        self._idle.set()
        self._last_timestamp = 0
        self._init_lock = asyncio.Lock()

    # -----------------------------------------------------------------------
    # Lifecycle
    # -----------------------------------------------------------------------

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def retired(self) -> bool:
        return self._retired

    async def initialize(self) -> None:
        """Open connections and ensure the schema exists. Idempotent."""
        if self._retired:
            raise BackendReselectedError(f"{self.kind} backend has been reselected")
        async with self._init_lock:
            if self._initialized:
                return
            await self._initialize()
            self._initialized = True
        logger.info("Initialized %s storage backend", self.kind)

    async def close(self) -> None:
        """Release resources. The backend must be initialized again to be reused."""
        if not self._initialized:
            return
        self._initialized = False
        await self._close()
        logger.debug("Closed %s storage backend", self.kind)

    async def retire(self) -> None:
        """Stop serving requests and close once in-flight work has drained."""
        self._retired = True
        if self._inflight:
            logger.info(
                "Waiting for %d in-flight request(s) on retired %s backend",
                self._inflight,
                self.kind,
            )
            await self._idle.wait()
        await self.close()

    def _next_timestamp(self) -> int:
        """Wall-clock milliseconds, forced strictly above the last issued value."""
        self._last_timestamp = max(now_ms(), self._last_timestamp + 1)
        return self._last_timestamp

    def _check_ready(self) -> None:
        if self._retired:
            raise BackendReselectedError(f"{self.kind} backend has been reselected")
        if not self._initialized:
            raise NotInitializedError(
                f"{self.kind} backend is not initialized. Call initialize() first."
            )

    async def _track(self, operation: Awaitable[R]) -> R:
        """Await a backend hook while counting it as in flight."""
        self._inflight += 1
        self._idle.clear()
        try:
            result = await operation
        finally:
            self._inflight -= 1
            if self._inflight == 0:
                self._idle.set()

        if self._retired:
            raise BackendReselectedError(
                f"{self.kind} backend was reselected while the request was in flight"
            )
        return result

    # -----------------------------------------------------------------------
    # Public operations
    # -----------------------------------------------------------------------

    async def save_note(self, note: NewNote) -> NoteRecord:
        """Persist a new note and return it with id and timestamps assigned."""
        self._check_ready()
        prepared = prepare_new_note(note)
        return await self._track(self._save_note(prepared))

    async def get_note(self, note_id: str) -> Optional[NoteRecord]:
        """Return the note, or None when no note has this id."""
        self._check_ready()
        return await self._track(self._get_note(note_id))

    async def get_all_notes(self) -> List[NoteRecord]:
        """Every note, newest first."""
        self._check_ready()
        return await self._track(self._get_all_notes())

    async def update_note(self, note_id: str, updates: NoteUpdate) -> NoteRecord:
        """
        Replace the given fields in place and refresh updated_at.

        Raises
        ------
        NoteNotFoundError
            If no note has this id.
        """
        self._check_ready()
        prepared = prepare_update(updates)
        return await self._track(self._update_note(note_id, prepared))

    async def delete_note(self, note_id: str) -> None:
        """
        Permanently delete a note.

        Raises
        ------
        NoteNotFoundError
            If no note has this id.
        """
        self._check_ready()
        await self._track(self._delete_note(note_id))

    async def search_notes(self, query: str) -> List[NoteRecord]:
        """Notes whose content matches `query`. A blank query matches nothing."""
        self._check_ready()
        if not query or not query.strip():
            return []
        return await self._track(self._search_notes(query.strip()))

    async def search_by_vector(
        self,
        embedding: List[float],
        limit: int = DEFAULT_MATCH_COUNT,
        threshold: float = DEFAULT_MATCH_THRESHOLD,
    ) -> List[NoteRecord]:
        """
        The `limit` most similar notes scoring at least `threshold`.

        Returns an empty list, not an error, when nothing clears the threshold.
        """
        self._check_ready()
        validate_limit(limit)
        query = normalize_embedding(embedding)
        ensure_canonical(query)
        return await self._track(self._search_by_vector(query, limit, threshold))

    async def search_by_tag(self, tag: str) -> List[NoteRecord]:
        """Notes carrying exactly this tag, newest first."""
        self._check_ready()
        return await self._track(self._search_by_tag(tag))

    async def get_recent_notes(self, limit: int = DEFAULT_MATCH_COUNT) -> List[NoteRecord]:
        """The `limit` most recently created notes, newest first."""
        self._check_ready()
        validate_limit(limit)
        return await self._track(self._get_recent_notes(limit))

    async def get_tags(self) -> List[str]:
        """Every distinct tag across all notes, sorted alphabetically."""
        self._check_ready()
        return await self._track(self._get_tags())

    async def clear_all(self) -> None:
        """Irreversibly delete every note."""
        self._check_ready()
        await self._track(self._clear_all())
        logger.warning("Cleared all notes from %s backend", self.kind)

    # -----------------------------------------------------------------------
    # Hooks implemented by concrete backends
    # -----------------------------------------------------------------------

    @abstractmethod
    async def _initialize(self) -> None: ...

    @abstractmethod
    async def _close(self) -> None: ...

    @abstractmethod
    async def _save_note(self, note: NewNote) -> NoteRecord: ...

    @abstractmethod
    async def _get_note(self, note_id: str) -> Optional[NoteRecord]: ...

    @abstractmethod
    async def _get_all_notes(self) -> List[NoteRecord]: ...

    @abstractmethod
    async def _update_note(self, note_id: str, updates: NoteUpdate) -> NoteRecord: ...

    @abstractmethod
    async def _delete_note(self, note_id: str) -> None: ...

    @abstractmethod
    async def _search_notes(self, query: str) -> List[NoteRecord]: ...

    @abstractmethod
    async def _search_by_vector(
        self, embedding: List[float], limit: int, threshold: float
    ) -> List[NoteRecord]: ...

    @abstractmethod
    async def _search_by_tag(self, tag: str) -> List[NoteRecord]: ...

    @abstractmethod
    async def _get_recent_notes(self, limit: int) -> List[NoteRecord]: ...

    @abstractmethod
    async def _get_tags(self) -> List[str]: ...

    @abstractmethod
    async def _clear_all(self) -> None: ...

    def __repr__(self) -> str:
        if self._retired:
            state = "retired"
        elif self._initialized:
            state = "ready"
        else:
            state = "uninitialized"
        return f"<{type(self).__name__} {state}>"
