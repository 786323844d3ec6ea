"""Main entry point for the document RAG API."""
import logging
import time
from typing import List

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from config import PORT, LOG_LEVEL, LOG_FORMAT, RagConfig
from logger import setup_logging
from models.api import IndexRequest, IndexResponse, QueryRequest, QueryResponse
from models.conversation import Message, MessageRole
from services.embedding_model import EmbeddingModel
from services.errors import EmbeddingServiceError, IndexCorruptError, IndexNotFoundError
from services.index_store import IndexStore
from services.indexing_service import IndexingService
from services.llm_client import LLMClient, LLMClientError
from services.query_service import RagQueryService
from services.reranker import create_reranker
from services.retrieval_engine import RetrievalEngine

# Initialize logging
if LOG_FORMAT == "json":
    setup_logging(LOG_LEVEL)
logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="Document RAG",
    description="Retrieval-augmented question answering over a folder of documents",
    version="1.0.0"
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://localhost:3001"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Initialize services (will be done on startup)
rag_config: RagConfig = None
embedding_model: EmbeddingModel = None
index_store: IndexStore = None
query_service: RagQueryService = None


@app.on_event("startup")
async def startup_event():
    """Initialize services on startup."""
    global rag_config, embedding_model, index_store, query_service

    logger.info("Initializing RAG services...")

    try:
        rag_config = RagConfig.from_env()

        embedding_model = EmbeddingModel(
            base_url=rag_config.ollama_base_url,
            model_name=rag_config.embedding_model,
            timeout=rag_config.request_timeout
        )
        index_store = IndexStore(rag_config.index_path)

        llm_client = LLMClient(timeout=rag_config.request_timeout)
        reranker = create_reranker(rag_config, llm_client)

        retrieval_engine = RetrievalEngine(index_store, embedding_model, rag_config, reranker)
        query_service = RagQueryService(retrieval_engine, llm_client, rag_config)

        logger.info("All services initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize services: {e}", exc_info=True)
        raise


@app.get("/health")
async def health():
    """Detailed health check."""
    return {
        "status": "healthy",
        "service": "document-rag",
        "version": "1.0.0",
        "index_available": index_store.exists() if index_store is not None else False
    }


@app.post("/index", response_model=IndexResponse)
def index_endpoint(request: IndexRequest) -> IndexResponse:
    """
    Rebuild the index from a directory of documents.

    Raises:
        HTTPException: 400 for an invalid directory, 503 if embedding fails
    """
    progress: List[str] = []
    indexing_service = IndexingService.from_config(
        rag_config, embedding_model, progress_callback=progress.append
    )

    try:
        count = indexing_service.build_index(request.source_directory)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except EmbeddingServiceError as e:
        logger.error(f"Index build failed: {e}")
        raise HTTPException(status_code=503, detail=str(e))

    return IndexResponse(chunks_indexed=count, progress=progress)


@app.post("/query", response_model=QueryResponse)
def query_endpoint(request: QueryRequest) -> QueryResponse:
    """
    Answer a question from the indexed documents.

    When ``history`` is supplied, retrieval is biased toward the recent
    conversation. Nothing is stored server-side; the client keeps its history
    and should record only the question and the answer.

    Raises:
        HTTPException: For validation errors, a missing index or upstream failures
    """
    start_time = time.time()

    if not request.question or not request.question.strip():
        raise HTTPException(status_code=400, detail="Question field is required and cannot be empty")

    try:
        if request.history:
            history = [
                Message(role=MessageRole(item.role), content=item.content)
                for item in request.history
            ]
            result = query_service.query_with_history(request.question, history, top_k=request.top_k)
        else:
            result = query_service.query(request.question, top_k=request.top_k)

    except IndexNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except IndexCorruptError as e:
        logger.error(f"Index is corrupt: {e}")
        raise HTTPException(status_code=500, detail=str(e))
    except EmbeddingServiceError as e:
        raise HTTPException(status_code=503, detail=f"Embedding service unavailable: {e}")
    except LLMClientError as e:
        # Handle LLM client errors with structured error response
        logger.error(f"LLM client error: {e.error.message}")
        raise HTTPException(
            status_code=503,
            detail={
                "error": {
                    "code": e.error.code,
                    "message": e.error.message,
                    "details": e.error.details
                }
            }
        )

    total_latency_ms = int((time.time() - start_time) * 1000)
    logger.info(f"Query processed successfully in {total_latency_ms}ms")
    return QueryResponse.from_result(result)


if __name__ == "__main__":
    import uvicorn
    logger.info(f"Starting document RAG API on port {PORT}")
    uvicorn.run(app, host="0.0.0.0", port=PORT)
