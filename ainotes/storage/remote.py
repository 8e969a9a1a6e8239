"""
Remote backend: notes persisted to a Supabase (Postgres + pgvector) project.

This backend talks to the `notes` table described in sql/schema.sql through
the async Supabase client. Vector ranking is delegated to the `match_notes`
Postgres function, which scores rows with `1 - (embedding <=> query)` and
applies the same threshold and ordering as the local brute-force scorer.
Embeddings are normalized client side (by StorageBackend) before every write
and every query, so both sides of a comparison live in the same 1536-wide
space.

Error mapping
-------------
    • PostgREST errors on writes  → WriteRejectedError (code, hint, details)
    • PostgREST errors on reads   → StorageError
    • connectivity failures       → same split as above
    • PGRST116 on a point lookup  → None, exactly like the local backend
    • ids that are not UUIDs      → None / NoteNotFoundError without a request
"""

import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Type, TypeVar, cast

import httpx
from postgrest.exceptions import APIError
from supabase import acreate_client

from ainotes.errors import NoteNotFoundError, StorageError, WriteRejectedError
from ainotes.storage.base import StorageBackend
from ainotes.types import (
    NewNote,
    NoteRecord,
    NoteUpdate,
    SupabaseClientInterface,
    SupabaseExecuteResponse,
)

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=Dict[str, Any])

# PostgREST code for "JSON object requested, multiple (or no) rows returned".
NOT_FOUND_CODE = "PGRST116"

MATCH_FUNCTION = "match_notes"

# clear_all() needs a filter; no real row has the nil UUID.
NIL_UUID = "00000000-0000-0000-0000-000000000000"


def _is_uuid(value: str) -> bool:
    try:
        uuid.UUID(str(value))
    except ValueError:
        return False
    return True


# ---------------------------------------------------------------------------
# Helper: normalize Supabase responses
# ---------------------------------------------------------------------------


def _extract_data(resp: Any, error_cls: Type[StorageError] = StorageError) -> List[T]:
    """
    Normalize Supabase responses across:
        • real SDK objects
        • dict-style responses from test doubles

    Always returns a list of row dictionaries.
    Raises `error_cls` when the response carries an error.
    """

    # Dict-style response
    if isinstance(resp, dict):
        body = cast(SupabaseExecuteResponse, resp)
        status = body.get("status", 200)
        if status >= 400 or body.get("error"):
            raise error_cls(f"Supabase error: {body.get('error') or body}")
        data = body.get("data", [])
        return cast(List[T], data or [])

    # SDK-style response
    error = getattr(resp, "error", None)
    if error:
        raise error_cls(f"Supabase error: {error}")

    data = getattr(resp, "data", None)
    if data is None:
        return []

    if isinstance(data, list):
        return cast(List[T], data)

    return cast(List[T], [data])


# ---------------------------------------------------------------------------
# Helpers: row conversion
# ---------------------------------------------------------------------------


def _to_iso(timestamp_ms: int) -> str:
    return datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc).isoformat()


def _to_ms(value: Any) -> int:
    """Convert a timestamptz string (or an epoch number) to epoch milliseconds."""
    if value is None:
        return 0
    if isinstance(value, (int, float)):
        return int(value)
    parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return int(round(parsed.timestamp() * 1000))


def _parse_embedding(value: Any) -> List[float]:
    """pgvector columns come back from PostgREST as "[0.1,0.2,...]" strings."""
    if value is None:
        return []
    if isinstance(value, str):
        value = json.loads(value)
    return [float(x) for x in value]


def _row_to_note(row: Dict[str, Any]) -> NoteRecord:
    source = row.get("source") or {}
    if isinstance(source, str):
        source = json.loads(source)

    return {
        "id": str(row["id"]),
        "content": row["content"],
        "embedding": _parse_embedding(row.get("embedding")),
        "tags": list(row.get("tags") or []),
        "source": source,
        "created_at": _to_ms(row.get("created_at")),
        "updated_at": _to_ms(row.get("updated_at")),
    }


# ---------------------------------------------------------------------------
# Main backend class
# ---------------------------------------------------------------------------


class RemoteBackend(StorageBackend):
    """
    Supabase-backed implementation of StorageBackend.

    Parameters
    ----------
    url : str
        Supabase project URL.
    key : str
        Supabase API key.
    client : SupabaseClientInterface | None
        Pre-built async client. When omitted, initialize() creates one with
        `acreate_client(url, key)`. Tests inject an in-memory double here.
    table : str
        Target table. Defaults to "notes".
    """

    kind = "remote"

    def __init__(
        self,
        url: str,
        key: str,
        client: Optional[SupabaseClientInterface] = None,
        table: str = "notes",
    ) -> None:
        super().__init__()
        self.url = url
        self._key = key
        self.table = table
        self._client: Optional[SupabaseClientInterface] = client
        self._owns_client = client is None

    # -----------------------------------------------------------------------
    # Lifecycle
    # -----------------------------------------------------------------------

    async def _initialize(self) -> None:
        if self._client is not None:
            return

        if not self.url or not self._key:
            raise StorageError("Supabase URL and key are required for the remote backend")

        try:
            self._client = await acreate_client(self.url, self._key)
        except Exception as exc:
            raise StorageError(f"Failed to create Supabase client for {self.url}: {exc}") from exc
        logger.debug("Supabase client created for %s", self.url)

    async def _close(self) -> None:
        if self._owns_client:
            self._client = None

    def _require_client(self) -> SupabaseClientInterface:
        if self._client is None:
            raise StorageError("Supabase client is not configured")
        return self._client

    def _query(self) -> Any:
        return self._require_client().table(self.table)

    # -----------------------------------------------------------------------
    # Internal helper: execute + error translation
    # -----------------------------------------------------------------------

    async def _execute(self, query: Any, action: str, write: bool = False) -> List[Dict[str, Any]]:
        error_cls: Type[StorageError] = WriteRejectedError if write else StorageError

        try:
            resp = await query.execute()
        except APIError as exc:
            logger.error(
                "Supabase %s error: message=%s code=%s details=%s hint=%s",
                action,
                exc.message,
                exc.code,
                exc.details,
                exc.hint,
            )
            raise error_cls(
                f"Failed to {action} in Supabase: {exc.message}",
                code=exc.code,
                hint=exc.hint,
                details=exc.details,
            ) from exc
        except httpx.HTTPError as exc:
            logger.error("Supabase %s request failed: %s", action, exc)
            raise error_cls(f"Failed to {action} in Supabase: {exc}") from exc

        return _extract_data(resp, error_cls)

    # -----------------------------------------------------------------------
    # Writes
    # -----------------------------------------------------------------------

    async def _save_note(self, note: NewNote) -> NoteRecord:
        timestamp = _to_iso(self._next_timestamp())
        payload = {
            "content": note["content"],
            "embedding": note["embedding"],
            "tags": note["tags"],
            "source": note["source"],
            "created_at": timestamp,
            "updated_at": timestamp,
        }

        rows = await self._execute(self._query().insert(payload), "save note", write=True)
        if not rows:
            raise WriteRejectedError("Supabase insert returned no rows")

        logger.debug("Saved note %s", rows[0].get("id"))
        return _row_to_note(rows[0])

    async def _update_note(self, note_id: str, updates: NoteUpdate) -> NoteRecord:
        # The id column is a uuid; any other string cannot name a note.
        if not _is_uuid(note_id):
            raise NoteNotFoundError(note_id)

        payload: Dict[str, Any] = dict(updates)
        payload["updated_at"] = _to_iso(self._next_timestamp())

        rows = await self._execute(
            self._query().update(payload).eq("id", note_id),
            "update note",
            write=True,
        )
        if not rows:
            raise NoteNotFoundError(note_id)
        return _row_to_note(rows[0])

    async def _delete_note(self, note_id: str) -> None:
        if not _is_uuid(note_id):
            raise NoteNotFoundError(note_id)

        rows = await self._execute(
            self._query().delete().eq("id", note_id),
            "delete note",
            write=True,
        )
        if not rows:
            raise NoteNotFoundError(note_id)

    async def _clear_all(self) -> None:
        await self._execute(
            self._query().delete().neq("id", NIL_UUID),
            "clear notes",
            write=True,
        )

    # -----------------------------------------------------------------------
    # Reads
    # -----------------------------------------------------------------------

    async def _get_note(self, note_id: str) -> Optional[NoteRecord]:
        if not _is_uuid(note_id):
            return None

        query = self._query().select("*").eq("id", note_id).single()

        try:
            rows = await self._execute(query, "get note")
        except StorageError as exc:
            if exc.code == NOT_FOUND_CODE:
                return None
            raise

        return _row_to_note(rows[0]) if rows else None

    async def _get_all_notes(self) -> List[NoteRecord]:
        rows = await self._execute(
            self._query().select("*").order("created_at", desc=True),
            "list notes",
        )
        return [_row_to_note(row) for row in rows]

    async def _get_recent_notes(self, limit: int) -> List[NoteRecord]:
        rows = await self._execute(
            self._query().select("*").order("created_at", desc=True).limit(limit),
            "list recent notes",
        )
        return [_row_to_note(row) for row in rows]

    async def _search_notes(self, query: str) -> List[NoteRecord]:
        # websearch_to_tsquery accepts free text without tsquery operators; the
        # english config matches the GIN index in sql/schema.sql.
        rows = await self._execute(
            self._query()
            .select("*")
            .text_search("content", query, options={"type": "web_search", "config": "english"}),
            "search notes",
        )
        return [_row_to_note(row) for row in rows]

    async def _search_by_tag(self, tag: str) -> List[NoteRecord]:
        rows = await self._execute(
            self._query().select("*").contains("tags", [tag]).order("created_at", desc=True),
            "search notes by tag",
        )
        return [_row_to_note(row) for row in rows]

    async def _search_by_vector(
        self, embedding: List[float], limit: int, threshold: float
    ) -> List[NoteRecord]:
        params = {
            "query_embedding": embedding,
            "match_threshold": threshold,
            "match_count": limit,
        }
        rows = await self._execute(
            self._require_client().rpc(MATCH_FUNCTION, params),
            "match notes",
        )
        logger.debug("%s returned %d results", MATCH_FUNCTION, len(rows))
        return [_row_to_note(row) for row in rows]

    async def _get_tags(self) -> List[str]:
        rows = await self._execute(self._query().select("tags"), "list tags")

        tags = set()
        for row in rows:
            tags.update(row.get("tags") or [])
        return sorted(tags)
