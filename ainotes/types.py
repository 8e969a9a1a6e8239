"""
ainotes/types.py

Centralized type definitions for ainotes.

This module defines the TypedDicts and Protocols shared by the storage
backends, the note service, the CLI and the test doubles. Keeping them in one
place gives:

    • a single source of truth for the note schema
    • clear contracts between the service layer and the storage layer
    • easy mocking and dependency injection in tests

When the `notes` table schema changes, this file should be updated first.
"""

from typing import Any, Dict, List, Optional, Protocol, TypedDict


# ---------------------------------------------------------------------------
# NoteSource
# ---------------------------------------------------------------------------
# Provenance of a captured fragment. Set once at capture time and never
# modified afterwards.
# ---------------------------------------------------------------------------
class NoteSource(TypedDict):
    url: str
    title: str
    timestamp: int


# ---------------------------------------------------------------------------
# NoteRecord
# ---------------------------------------------------------------------------
# A persisted note as returned by every backend.
#
#   • embedding always has EMBEDDING_DIMENSIONS components
#   • created_at / updated_at are epoch milliseconds
#   • tags keep their insertion order and contain no duplicates
# ---------------------------------------------------------------------------
class NoteRecord(TypedDict):
    id: str
    content: str
    embedding: List[float]
    tags: List[str]
    source: NoteSource
    created_at: int
    updated_at: int


# ---------------------------------------------------------------------------
# NewNote
# ---------------------------------------------------------------------------
# Input to save_note(): a note minus the fields the backend assigns.
# The embedding may have any native length; the backend normalizes it.
# ---------------------------------------------------------------------------
class NewNote(TypedDict):
    content: str
    embedding: List[float]
    tags: List[str]
    source: NoteSource


# ---------------------------------------------------------------------------
# NoteUpdate
# ---------------------------------------------------------------------------
# Partial update accepted by update_note(). Only the mutable fields appear
# here; source, id and timestamps are immutable.
# ---------------------------------------------------------------------------
class NoteUpdate(TypedDict, total=False):
    content: str
    embedding: List[float]
    tags: List[str]


# ---------------------------------------------------------------------------
# Question answering results
# ---------------------------------------------------------------------------
class AnswerSource(TypedDict):
    id: str
    content: str
    tags: List[str]


class AnswerResult(TypedDict):
    answer: str
    sources: List[AnswerSource]


# ---------------------------------------------------------------------------
# SupabaseExecuteResponse
# ---------------------------------------------------------------------------
# Dict-shaped response produced by test doubles. The real SDK returns an
# object exposing .data instead; _extract_data() in the remote backend
# accepts both shapes.
#
# total=False allows partial responses (e.g., error-only).
# ---------------------------------------------------------------------------
class SupabaseExecuteResponse(TypedDict, total=False):
    status: int
    data: Any
    error: Optional[Any]


# ---------------------------------------------------------------------------
# AIProvider
# ---------------------------------------------------------------------------
# The capability the note service consumes from an AI provider. The core
# makes no assumption about embedding dimensionality or latency; every call
# eventually resolves or raises.
# ---------------------------------------------------------------------------
class AIProvider(Protocol):
    async def generate_embedding(self, text: str) -> List[float]: ...

    async def generate_tags(self, text: str) -> List[str]: ...

    async def answer_question(self, question: str, context: str) -> str: ...


# ---------------------------------------------------------------------------
# SupabaseClientInterface
# ---------------------------------------------------------------------------
# The subset of the async Supabase client used by RemoteBackend.
#
# The real client supports chains such as:
#   await client.table("notes").select("*").eq("id", x).execute()
#   await client.rpc("match_notes", {...}).execute()
#
# This Protocol is structural: the real AsyncClient and the in-memory test
# double both satisfy it.
# ---------------------------------------------------------------------------
class SupabaseClientInterface(Protocol):
    def table(self, name: str) -> Any:
        """Return a query builder for the given table."""
        ...

    def rpc(self, fn: str, params: Dict[str, Any]) -> Any:
        """Return an executable builder for a Postgres function call."""
        ...
