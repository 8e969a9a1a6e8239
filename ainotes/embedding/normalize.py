"""
Embedding normalization.

AI providers return embeddings of different native lengths (observed: 384,
768, 1536). Every vector that is written to storage or compared against
stored vectors first passes through normalize_embedding(), which maps it to
the canonical length EMBEDDING_DIMENSIONS:

    • equal length   → unchanged
    • longer         → truncated to the first EMBEDDING_DIMENSIONS components
    • shorter        → right-padded with zeros

Truncation keeps the prefix rather than projecting, so vectors already
stored by earlier versions remain comparable.

Known approximation
-------------------
Zero padding treats the unpopulated dimensions of two short vectors as equal,
which compresses cosine scores between vectors from the same low-dimensional
provider. DEFAULT_MATCH_THRESHOLD is tuned against this behaviour; do not
renormalize here, it would break comparability with stored vectors.
"""

import logging
from typing import List, Sequence

from ainotes.errors import DimensionMismatchError

logger = logging.getLogger(__name__)

# Canonical width of every stored embedding (OpenAI text-embedding size).
EMBEDDING_DIMENSIONS = 1536


def normalize_embedding(
    embedding: Sequence[float],
    dimensions: int = EMBEDDING_DIMENSIONS,
) -> List[float]:
    """
    Map an embedding of any native length onto `dimensions` components.

    Parameters
    ----------
    embedding : Sequence[float]
        Vector as produced by an AI provider.
    dimensions : int
        Target length. Defaults to EMBEDDING_DIMENSIONS.

    Returns
    -------
    list[float]
        A new list of exactly `dimensions` floats.
    """
    length = len(embedding)

    if length == dimensions:
        return [float(x) for x in embedding]

    if length > dimensions:
        logger.warning(
            "Embedding has %d dimensions, truncating to %d", length, dimensions
        )
        return [float(x) for x in embedding[:dimensions]]

    logger.debug("Padding embedding from %d to %d dimensions", length, dimensions)
    return [float(x) for x in embedding] + [0.0] * (dimensions - length)


def ensure_canonical(
    embedding: Sequence[float],
    dimensions: int = EMBEDDING_DIMENSIONS,
) -> Sequence[float]:
    """Raise DimensionMismatchError unless `embedding` is already canonical."""
    if len(embedding) != dimensions:
        raise DimensionMismatchError(
            f"Expected a {dimensions}-dimensional embedding, got {len(embedding)}"
        )
    return embedding
