"""Retrieval engine for orchestrating query embedding, ranking and re-ranking."""
import logging
from typing import List, Optional

from config import RagConfig
from models.chunk import RerankedCandidate
from models.query import RetrievedChunk
from services.embedding_model import EmbeddingModel
from services.errors import EmbeddingServiceError, IndexNotFoundError
from services.index_store import IndexStore
from services.reranker import Reranker
from services.similarity_search import find_top_k

logger = logging.getLogger(__name__)


class RetrievalEngine:
    """Select the chunks an answer is grounded on."""

    def __init__(
        self,
        storage: IndexStore,
        embedding_model: EmbeddingModel,
        config: RagConfig,
        reranker: Optional[Reranker] = None
    ):
        """
        Initialize the retrieval engine.

        Args:
            storage: Source of the persisted index
            embedding_model: Client used to embed the search text
            config: Embedding model, candidate pool size and relevance threshold
            reranker: Second-pass scorer; re-ranking is disabled when None
        """
        self.storage = storage
        self.embedding_model = embedding_model
        self.config = config
        self.reranker = reranker
        logger.info(
            f"Initialized RetrievalEngine (reranking: "
            f"{reranker.name if reranker else 'disabled'}, "
            f"threshold: {config.filter_threshold})"
        )

    def retrieve(
        self,
        question: str,
        top_k: int = 3,
        search_text: Optional[str] = None
    ) -> List[RetrievedChunk]:
        """
        Retrieve the chunks most relevant to ``question``.

        Pipeline:
        1. Load the index (fresh on every call)
        2. Embed ``search_text`` (or the question itself)
        3. Rank all chunks by cosine similarity, keeping ``top_k`` results, or
           the larger candidate pool when a reranker is configured
        4. Re-rank the pool and order it by LLM score; if the reranker raises,
           continue with the cosine order
        5. Drop candidates whose score is below the relevance threshold and
           keep the first ``top_k``

        Args:
            question: User question, shown to the reranker
            top_k: Maximum number of chunks to return
            search_text: Text to embed instead of the question, e.g. with
                recent conversation turns prepended

        Returns:
            Chunks ordered by relevance; may be empty

        Raises:
            IndexNotFoundError: If no index has been built yet
            IndexCorruptError: If the index file cannot be decoded
            EmbeddingServiceError: If the search text cannot be embedded
        """
        index = self.storage.load()
        if index is None:
            raise IndexNotFoundError(str(self.storage.index_path))

        if index.model != self.config.embedding_model:
            logger.warning(
                f"Index was built with {index.model} but queries use "
                f"{self.config.embedding_model}; similarity scores may be meaningless"
            )

        text = search_text or question
        logger.debug(f"Embedding search text: {text[:100]}...")
        embeddings = self.embedding_model.embed([text], self.config.embedding_model)
        if not embeddings:
            raise EmbeddingServiceError("Embedding service returned no vector for the query")
        query_embedding = embeddings[0]

        pool_size = top_k
        if self.reranker is not None:
            pool_size = max(self.config.candidate_count, top_k)
        logger.debug(f"Searching for top {pool_size} candidates")
        candidates = find_top_k(query_embedding, index, pool_size)

        if not candidates:
            logger.info("No chunks found for query")
            return []

        reranked = self._rerank(question, candidates)
        if reranked is not None:
            selected = [
                RetrievedChunk(
                    source=item.chunk.source,
                    text=item.chunk.text,
                    similarity=item.llm_score,
                    cosine_score=item.cosine_score,
                    llm_score=item.llm_score
                )
                for item in reranked
            ]
        else:
            selected = [
                RetrievedChunk(source=chunk.source, text=chunk.text, similarity=score)
                for chunk, score in candidates
            ]

        threshold = self.config.filter_threshold
        filtered = [chunk for chunk in selected if chunk.similarity >= threshold][:top_k]

        logger.info(
            f"Retrieved {len(filtered)} chunks "
            f"({len(candidates)} candidates, threshold: {threshold})"
        )
        return filtered

    def _rerank(self, question, candidates) -> Optional[List[RerankedCandidate]]:
        if self.reranker is None:
            return None

        try:
            reranked = self.reranker.rerank(question, candidates)
        except Exception as e:
            logger.warning(f"Re-ranking failed, using cosine similarity order: {e}", exc_info=True)
            return None

        return sorted(reranked, key=lambda item: item.llm_score, reverse=True)
