"""Exception types raised by the indexing and query services."""
from typing import Optional


class RagError(Exception):
    """Base class for all errors raised by the RAG services."""


class IndexNotFoundError(RagError):
    """Raised when a query runs before any index has been built."""

    def __init__(self, index_path: Optional[str] = None):
        self.index_path = index_path
        super().__init__("RAG index not found. Please build the index first.")


class IndexCorruptError(RagError):
    """Raised when the index file exists but cannot be decoded."""

    def __init__(self, index_path: str, reason: str):
        self.index_path = index_path
        self.reason = reason
        super().__init__(f"RAG index at {index_path} is corrupt: {reason}")


class EmbeddingServiceError(RagError):
    """Raised when the embedding service fails or returns an unusable payload."""


class EmbeddingTimeoutError(EmbeddingServiceError):
    """Raised when the embedding service does not answer within the timeout."""


class EmbeddingBatchError(EmbeddingServiceError):
    """Raised when one batch of an index build cannot be embedded."""

    def __init__(self, batch_number: int, total_batches: int, reason: str):
        self.batch_number = batch_number
        self.total_batches = total_batches
        super().__init__(
            f"Failed to generate embeddings for batch {batch_number}/{total_batches}: {reason}"
        )


class EmbeddingBatchTimeoutError(EmbeddingBatchError, EmbeddingTimeoutError):
    """Raised when one batch of an index build times out."""


class RerankingError(RagError):
    """Raised inside a re-ranking backend; never escapes ``Reranker.rerank``."""


class DimensionMismatchError(RagError, ValueError):
    """Raised when two vectors of different lengths are compared."""

    def __init__(self, left: int, right: int):
        self.left = left
        self.right = right
        super().__init__(f"Vectors must have the same dimension: {left} != {right}")
