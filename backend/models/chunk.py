"""Chunk data models."""
from dataclasses import dataclass
from typing import List


@dataclass(frozen=True)
class Chunk:
    """A bounded segment of a source document's text."""
    text: str
    source: str  # Path relative to the indexed directory
    position: int  # Index among chunks emitted from the same source


@dataclass(frozen=True)
class EmbeddedChunk:
    """Chunk together with its embedding vector."""
    text: str
    source: str
    position: int
    embedding: List[float]

    @classmethod
    def from_chunk(cls, chunk: Chunk, embedding: List[float]) -> "EmbeddedChunk":
        return cls(
            text=chunk.text,
            source=chunk.source,
            position=chunk.position,
            embedding=[float(value) for value in embedding],
        )


@dataclass
class RerankedCandidate:
    """Candidate chunk scored by both vector similarity and the re-ranking model."""
    chunk: EmbeddedChunk
    cosine_score: float
    llm_score: float  # 0.0 to 1.0
