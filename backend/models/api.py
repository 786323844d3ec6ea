"""API request and response models."""
from typing import List, Optional

from pydantic import BaseModel, Field

from models.conversation import MessageRole
from models.query import QueryResult


class HistoryMessage(BaseModel):
    """A prior conversation message supplied by the client."""
    role: MessageRole
    content: str


class QueryRequest(BaseModel):
    """Body of POST /query."""
    question: str
    top_k: int = Field(default=3, ge=1, le=50)
    history: Optional[List[HistoryMessage]] = None


class RetrievedChunkResponse(BaseModel):
    source: str
    text: str
    similarity: float
    cosine_score: Optional[float] = None
    llm_score: Optional[float] = None


class QueryResponse(BaseModel):
    """Body returned by POST /query."""
    answer: str
    retrieved_chunks: List[RetrievedChunkResponse]

    @classmethod
    def from_result(cls, result: QueryResult) -> "QueryResponse":
        return cls(
            answer=result.answer,
            retrieved_chunks=[
                RetrievedChunkResponse(
                    source=chunk.source,
                    text=chunk.text,
                    similarity=chunk.similarity,
                    cosine_score=chunk.cosine_score,
                    llm_score=chunk.llm_score,
                )
                for chunk in result.retrieved_chunks
            ],
        )


class IndexRequest(BaseModel):
    """Body of POST /index."""
    source_directory: Optional[str] = None


class IndexResponse(BaseModel):
    chunks_indexed: int
    progress: List[str]
