"""
AI provider abstraction layer.

The note service needs three things from an AI provider:

    • generate_embedding(text) → vector of floats (any length)
    • generate_tags(text)      → short topical tags
    • answer_question(question, context) → answer text

Hosted providers (OpenAI, Gemini, on-device models) live outside this
package; anything exposing these coroutines satisfies ainotes.types.AIProvider.
This module ships the deterministic offline provider used for local
development and tests, and a factory that builds a provider from AIConfig.

    client = create_ai_client(AIConfig(provider="deterministic", embedding_dimensions=768))
    vector = await client.generate_embedding("some text")
"""

import re
from collections import Counter
from typing import List

from ainotes.config import AIConfig
from ainotes.embedding import EMBEDDING_DIMENSIONS, compute_embedding
from ainotes.types import AIProvider

MAX_TAGS = 5

_WORD = re.compile(r"[A-Za-z][A-Za-z0-9'-]+")

_STOPWORDS = frozenset(
    """
    about above after again against also among been before being below between
    both but can could does doing down during each from further have having here
    hers herself himself into itself just more most much must myself once only
    other ours ourselves over same should some such than that their theirs them
    themselves then there these they this those through under until very was
    were what when where which while whom why will with would your yours
    yourself yourselves the and for are not you his her its our out who how all
    any few nor off own too has had did may might shall via per
    """.split()
)


def _keywords(text: str) -> List[str]:
    return [
        word.lower()
        for word in _WORD.findall(text)
        if len(word) > 3 and word.lower() not in _STOPWORDS
    ]


class DeterministicAIClient:
    """
    Offline AI provider with reproducible output.

    Parameters
    ----------
    dimensions : int
        Native width of the embeddings it produces. Narrower widths emulate
        providers such as on-device models (384) or Gemini (768).
    """

    def __init__(self, dimensions: int = EMBEDDING_DIMENSIONS) -> None:
        if dimensions <= 0:
            raise ValueError("dimensions must be positive")
        self.dimensions = dimensions

    async def generate_embedding(self, text: str) -> List[float]:
        return compute_embedding(text, self.dimensions)

    async def generate_tags(self, text: str) -> List[str]:
        """Most frequent keywords, ties broken by first appearance."""
        counts = Counter(_keywords(text))
        ranked = sorted(counts, key=lambda word: -counts[word])
        return ranked[:MAX_TAGS]

    async def answer_question(self, question: str, context: str) -> str:
        """
        Extractive answer: the context paragraphs sharing the most keywords
        with the question.
        """
        paragraphs = [p.strip() for p in context.split("\n\n") if p.strip()]
        if not paragraphs:
            return "I couldn't find anything in your notes about that."

        wanted = set(_keywords(question))
        scored = [
            (len(wanted.intersection(_keywords(paragraph))), index, paragraph)
            for index, paragraph in enumerate(paragraphs)
        ]
        best = [p for score, _i, p in sorted(scored, key=lambda s: (-s[0], s[1])) if score > 0]

        if not best:
            best = paragraphs[:1]

        return "Based on your notes:\n" + "\n".join(best[:3])


def create_ai_client(config: AIConfig) -> AIProvider:
    """
    Build the AI provider named by `config`.

    Only the "deterministic" provider ships with this package; asking for
    another one fails loudly instead of silently falling back.
    """
    if config.provider != "deterministic":
        raise NotImplementedError(
            f"Provider '{config.provider}' is not implemented yet. "
            "Currently supported: 'deterministic'."
        )
    return DeterministicAIClient(config.embedding_dimensions)
