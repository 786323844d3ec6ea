"""Brute-force cosine similarity search over an in-memory index."""
import logging
import math
from typing import List, Sequence, Tuple

import numpy as np

from models.chunk import EmbeddedChunk
from models.index import RagIndex
from services.errors import DimensionMismatchError

logger = logging.getLogger(__name__)


def cosine_similarity(vec1: Sequence[float], vec2: Sequence[float]) -> float:
    """
    Cosine of the angle between two vectors, in [-1, 1].

    Args:
        vec1: First vector
        vec2: Second vector

    Returns:
        ``dot(vec1, vec2) / (|vec1| * |vec2|)``, or 0.0 when either vector has
        zero magnitude

    Raises:
        DimensionMismatchError: If the vectors differ in length
        ValueError: If the vectors are empty or not one-dimensional numbers
    """
    a = np.asarray(vec1, dtype=np.float64)
    b = np.asarray(vec2, dtype=np.float64)

    if a.ndim != 1 or b.ndim != 1:
        raise ValueError("Vectors must be one-dimensional")
    if a.shape[0] != b.shape[0]:
        raise DimensionMismatchError(a.shape[0], b.shape[0])
    if a.shape[0] == 0:
        raise ValueError("Vectors cannot be empty")

    norm_a = np.linalg.norm(a)
    norm_b = np.linalg.norm(b)
    if norm_a == 0.0 or norm_b == 0.0:
        logger.debug("One or both vectors have zero magnitude")
        return 0.0

    return float(np.dot(a, b) / (norm_a * norm_b))


def find_top_k(
    query_embedding: Sequence[float],
    index: RagIndex,
    k: int = 3
) -> List[Tuple[EmbeddedChunk, float]]:
    """
    Rank every chunk in ``index`` against ``query_embedding``.

    Chunks whose similarity cannot be computed are skipped with a warning.
    Equal scores keep their index order.

    Args:
        query_embedding: Embedding of the query text
        index: Loaded index
        k: Maximum number of results

    Returns:
        Up to ``k`` (chunk, score) pairs, highest score first
    """
    if k <= 0:
        logger.warning(f"Invalid k value: {k}, returning empty list")
        return []

    if not index.chunks:
        logger.warning("Index contains no chunks")
        return []

    logger.info(f"Finding top-{k} similar chunks from {len(index.chunks)} total chunks")

    scored: List[Tuple[EmbeddedChunk, float]] = []
    for chunk in index.chunks:
        try:
            similarity = cosine_similarity(query_embedding, chunk.embedding)
        except (ValueError, TypeError) as e:
            logger.warning(
                f"Skipping chunk {chunk.position} from {chunk.source}: {e}"
            )
            continue

        if not math.isfinite(similarity):
            logger.warning(
                f"Skipping chunk {chunk.position} from {chunk.source}: non-finite similarity"
            )
            continue

        scored.append((chunk, similarity))

    # sorted() is stable, including with reverse=True
    top_k = sorted(scored, key=lambda pair: pair[1], reverse=True)[:k]

    for rank, (chunk, score) in enumerate(top_k, start=1):
        logger.debug(f"  {rank}. [{chunk.source}#{chunk.position}] score: {score:.4f}")

    return top_k
