"""
Cosine similarity scoring and brute-force ranking.

The local backend ranks notes with rank_by_similarity(); the remote backend
delegates the same computation to the `match_notes` Postgres function
(`1 - (embedding <=> query)`). Both sides share the threshold and ordering
semantics defined here: higher is more similar, a note is kept when its score
is greater than or equal to the threshold, results are sorted by descending
score.
"""

import math
from typing import Iterable, List, Sequence, Tuple, TypeVar

from ainotes.errors import DimensionMismatchError

T = TypeVar("T")

# Permissive on purpose: zero padding compresses scores between vectors
# from different providers.
DEFAULT_MATCH_THRESHOLD = 0.3

DEFAULT_MATCH_COUNT = 10


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine similarity of two equal-length vectors, clamped to [-1, 1].

    A zero vector has no direction; its similarity to anything is 0.0.

    Raises
    ------
    DimensionMismatchError
        If the vectors differ in length.
    """
    if len(a) != len(b):
        raise DimensionMismatchError(
            f"Cannot compare vectors of length {len(a)} and {len(b)}"
        )

    dot = math.fsum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(math.fsum(x * x for x in a))
    norm_b = math.sqrt(math.fsum(y * y for y in b))

    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0

    score = dot / (norm_a * norm_b)
    return max(-1.0, min(1.0, score))


def rank_by_similarity(
    query: Sequence[float],
    candidates: Iterable[Tuple[T, Sequence[float]]],
    threshold: float = DEFAULT_MATCH_THRESHOLD,
    limit: int = DEFAULT_MATCH_COUNT,
) -> List[Tuple[T, float]]:
    """
    Score every candidate against `query` and return the best matches.

    Parameters
    ----------
    query : Sequence[float]
        Normalized query vector.
    candidates : Iterable[tuple[T, Sequence[float]]]
        (item, normalized embedding) pairs.
    threshold : float
        Minimum score a candidate needs to be kept.
    limit : int
        Maximum number of results.

    Returns
    -------
    list[tuple[T, float]]
        (item, score) pairs, highest score first. Ties keep input order.
    """
    scored: List[Tuple[T, float]] = []
    for item, embedding in candidates:
        score = cosine_similarity(query, embedding)
        if score >= threshold:
            scored.append((item, score))

    scored.sort(key=lambda pair: pair[1], reverse=True)
    return scored[:limit]
