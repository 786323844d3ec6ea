"""Data models for the document RAG service."""
from .chunk import Chunk, EmbeddedChunk, RerankedCandidate
from .index import RagIndex
from .query import RetrievedChunk, QueryResult
from .conversation import Message, MessageRole

__all__ = [
    "Chunk",
    "EmbeddedChunk",
    "RerankedCandidate",
    "RagIndex",
    "RetrievedChunk",
    "QueryResult",
    "Message",
    "MessageRole",
]
