"""Services for the document RAG pipeline."""
from .errors import (
    RagError,
    IndexNotFoundError,
    IndexCorruptError,
    EmbeddingServiceError,
    EmbeddingTimeoutError,
    EmbeddingBatchError,
    EmbeddingBatchTimeoutError,
    RerankingError,
    DimensionMismatchError,
)
from .document_loader import DocumentLoader
from .chunking_engine import ChunkingEngine
from .embedding_model import EmbeddingModel
from .index_store import IndexStore
from .similarity_search import cosine_similarity, find_top_k
from .llm_client import LLMClient, ChatRequest, ChatResponse, TokenUsage, LLMError, LLMClientError
from .reranker import Reranker, OllamaReranker, ProviderReranker, create_reranker
from .indexing_service import IndexingService
from .retrieval_engine import RetrievalEngine
from .query_service import RagQueryService

__all__ = [
    'RagError', 'IndexNotFoundError', 'IndexCorruptError', 'EmbeddingServiceError',
    'EmbeddingTimeoutError', 'EmbeddingBatchError', 'EmbeddingBatchTimeoutError',
    'RerankingError', 'DimensionMismatchError',
    'DocumentLoader', 'ChunkingEngine', 'EmbeddingModel', 'IndexStore',
    'cosine_similarity', 'find_top_k',
    'LLMClient', 'ChatRequest', 'ChatResponse', 'TokenUsage', 'LLMError', 'LLMClientError',
    'Reranker', 'OllamaReranker', 'ProviderReranker', 'create_reranker',
    'IndexingService', 'RetrievalEngine', 'RagQueryService',
]
