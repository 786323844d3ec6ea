"""Query result data models."""
from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class RetrievedChunk:
    """Score-annotated view of a chunk returned alongside an answer."""
    source: str
    text: str
    similarity: float  # Score used for ordering and filtering
    cosine_score: Optional[float] = None  # Only set when re-ranking was applied
    llm_score: Optional[float] = None

    @property
    def reranked(self) -> bool:
        return self.llm_score is not None


@dataclass
class QueryResult:
    """Answer from the completion provider plus the context it was grounded on."""
    answer: str
    retrieved_chunks: List[RetrievedChunk] = field(default_factory=list)
