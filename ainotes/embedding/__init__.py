"""
Public API for the embedding subsystem.

Callers can rely on:

    from ainotes.embedding import normalize_embedding, cosine_similarity

without needing to know anything about the internal module layout.
"""

from .deterministic import compute_embedding
from .normalize import EMBEDDING_DIMENSIONS, ensure_canonical, normalize_embedding
from .similarity import (
    DEFAULT_MATCH_COUNT,
    DEFAULT_MATCH_THRESHOLD,
    cosine_similarity,
    rank_by_similarity,
)

__all__ = [
    "EMBEDDING_DIMENSIONS",
    "DEFAULT_MATCH_COUNT",
    "DEFAULT_MATCH_THRESHOLD",
    "compute_embedding",
    "cosine_similarity",
    "ensure_canonical",
    "normalize_embedding",
    "rank_by_similarity",
]
