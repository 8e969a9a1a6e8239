"""
High-level note service.

NoteService is what the capture and query callers (CLI, HTTP API, browser
extension glue) talk to. It pairs the active storage backend with an AI
provider and encodes the end-to-end flows:

    capture  → embed + tag concurrently → save_note
    ask      → embed question → vector search → recency fallback → answer
    config   → persist → reselect backend

It never touches backend internals: every storage call goes through the
StorageBackend contract of whichever backend the selector returns.
"""

import asyncio
import logging
from pathlib import Path
from typing import List, Optional

from ainotes.ai_client import create_ai_client
from ainotes.config import AIConfig, StorageConfig, save_config
from ainotes.embedding import DEFAULT_MATCH_COUNT
from ainotes.storage.base import StorageBackend, now_ms
from ainotes.storage.selector import BackendSelector, get_selector
from ainotes.types import AIProvider, AnswerResult, NoteRecord, NoteUpdate

logger = logging.getLogger(__name__)

ASK_CONTEXT_NOTES = 5
SOURCE_PREVIEW_CHARS = 200


def build_context(notes: List[NoteRecord]) -> str:
    """Render notes as "[tag, tag] content" blocks separated by blank lines."""
    return "\n\n".join(f"[{', '.join(note['tags'])}] {note['content']}" for note in notes)


class NoteService:
    """
    Parameters
    ----------
    selector : BackendSelector | None
        Source of the active backend. Defaults to the process-wide selector.
    ai : AIProvider | None
        AI provider. Defaults to the one described by AIConfig.from_env().
    config_path : Path | None
        Where set_config() persists configuration. None means the default
        location resolved by ainotes.config.
    """

    def __init__(
        self,
        selector: Optional[BackendSelector] = None,
        ai: Optional[AIProvider] = None,
        config_path: Optional[Path] = None,
    ) -> None:
        self.selector = selector or get_selector()
        self.ai = ai or create_ai_client(AIConfig.from_env())
        self.config_path = config_path

    async def storage(self) -> StorageBackend:
        return await self.selector.get_backend()

    # -----------------------------------------------------------------------
    # Capture
    # -----------------------------------------------------------------------

    async def capture(
        self,
        content: str,
        url: str = "",
        title: str = "Untitled",
        timestamp: Optional[int] = None,
    ) -> NoteRecord:
        """
        Embed, tag and persist a captured text fragment.

        Embedding and tag generation run concurrently; the note is saved only
        after both succeed. Any failure propagates to the caller.
        """
        if not content or not content.strip():
            raise ValueError("content must be provided")

        storage = await self.storage()

        embedding, tags = await asyncio.gather(
            self.ai.generate_embedding(content),
            self.ai.generate_tags(content),
        )

        note = await storage.save_note(
            {
                "content": content,
                "embedding": embedding,
                "tags": tags,
                "source": {
                    "url": url,
                    "title": title or "Untitled",
                    "timestamp": timestamp if timestamp is not None else now_ms(),
                },
            }
        )
        logger.info("Captured note %s with %d tag(s)", note["id"], len(note["tags"]))
        return note

    # -----------------------------------------------------------------------
    # Retrieval
    # -----------------------------------------------------------------------

    async def get(self, note_id: str) -> Optional[NoteRecord]:
        return await (await self.storage()).get_note(note_id)

    async def search(self, query: str) -> List[NoteRecord]:
        """Keyword search over note content."""
        return await (await self.storage()).search_notes(query)

    async def similar(self, text: str, limit: int = DEFAULT_MATCH_COUNT) -> List[NoteRecord]:
        """Notes semantically close to `text`."""
        storage = await self.storage()
        embedding = await self.ai.generate_embedding(text)
        return await storage.search_by_vector(embedding, limit)

    async def recent(self, limit: int = DEFAULT_MATCH_COUNT) -> List[NoteRecord]:
        return await (await self.storage()).get_recent_notes(limit)

    async def by_tag(self, tag: str) -> List[NoteRecord]:
        return await (await self.storage()).search_by_tag(tag)

    async def tags(self) -> List[str]:
        return await (await self.storage()).get_tags()

    async def ask(self, question: str, limit: int = ASK_CONTEXT_NOTES) -> AnswerResult:
        """
        Answer a question from the saved notes.

        The most similar notes form the context. When semantic search finds
        nothing above the threshold, the most recent notes are used instead.
        """
        if not question or not question.strip():
            raise ValueError("question must be provided")

        storage = await self.storage()
        query_embedding = await self.ai.generate_embedding(question)
        logger.debug("Query embedding generated, dimensions: %d", len(query_embedding))

        notes = await storage.search_by_vector(query_embedding, limit)
        if not notes:
            logger.info("No vector matches, falling back to recent notes")
            notes = await storage.get_recent_notes(limit)

        context = build_context(notes)
        answer = await self.ai.answer_question(question, context)

        return {
            "answer": answer,
            "sources": [
                {
                    "id": note["id"],
                    "content": note["content"][:SOURCE_PREVIEW_CHARS],
                    "tags": note["tags"],
                }
                for note in notes
            ],
        }

    # -----------------------------------------------------------------------
    # Mutation
    # -----------------------------------------------------------------------

    async def update(
        self,
        note_id: str,
        content: Optional[str] = None,
        tags: Optional[List[str]] = None,
    ) -> NoteRecord:
        """
        Update a note. New content is re-embedded so search stays consistent.
        """
        updates: NoteUpdate = {}
        if content is not None:
            updates["content"] = content
            updates["embedding"] = await self.ai.generate_embedding(content)
        if tags is not None:
            updates["tags"] = tags
        if not updates:
            raise ValueError("nothing to update")

        return await (await self.storage()).update_note(note_id, updates)

    async def delete(self, note_id: str) -> None:
        await (await self.storage()).delete_note(note_id)
        logger.info("Deleted note %s", note_id)

    async def delete_all(self) -> int:
        """Delete every note and return how many were removed."""
        storage = await self.storage()
        count = len(await storage.get_all_notes())
        await storage.clear_all()
        return count

    # -----------------------------------------------------------------------
    # Configuration
    # -----------------------------------------------------------------------

    def get_config(self) -> StorageConfig:
        return self.selector.config

    async def set_config(self, config: StorageConfig) -> bool:
        """
        Persist `config` and make it active.

        Returns True when the active backend changed.
        """
        save_config(config, self.config_path)
        return await self.selector.select(config)
