"""
Deterministic embedding stub used during local development and testing.

This module provides a lightweight, offline replacement for a real embedding
provider. It lets the capture and retrieval pipelines run end‑to‑end without
network access, API keys or rate limits.

The goal is to simulate the *shape* of a real embedding vector:
    • configurable native dimensionality (384, 768 and 1536 are the sizes
      observed across providers)
    • deterministic output for identical inputs
    • input‑sensitive variation for different inputs
    • normalized to unit length

It is *not* intended to approximate semantic similarity beyond shared byte
patterns.
"""

from typing import List

from .normalize import EMBEDDING_DIMENSIONS


def compute_embedding(text: str, dimensions: int = EMBEDDING_DIMENSIONS) -> List[float]:
    """
    Compute a deterministic, input‑sensitive embedding vector.

    Parameters
    ----------
    text : str
        The input text to embed.
    dimensions : int
        Native length of the produced vector. Lets tests emulate providers
        whose output is narrower than the canonical width.

    Returns
    -------
    List[float]
        A unit-length vector of `dimensions` floats.
    """
    if dimensions <= 0:
        raise ValueError("dimensions must be positive")

    vec = [0.0] * dimensions

    # Each byte contributes a value in [0, 1) to a position determined by
    # its index modulo the dimension.
    for i, ch in enumerate(text.encode("utf-8")):
        vec[i % dimensions] += (ch % 97) / 97.0

    # The `or 1.0` guard prevents division by zero for empty input.
    norm = sum(x * x for x in vec) ** 0.5 or 1.0
    return [x / norm for x in vec]
