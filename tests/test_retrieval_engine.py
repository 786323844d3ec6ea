"""Unit tests for RetrievalEngine."""
import sys
from datetime import datetime, timezone
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

import pytest
from unittest.mock import Mock
from config import RagConfig
from models.chunk import EmbeddedChunk, RerankedCandidate
from models.index import RagIndex
from services.errors import IndexCorruptError, IndexNotFoundError
from services.retrieval_engine import RetrievalEngine


def make_index(model="mxbai-embed-large"):
    """Four chunks whose cosine similarity to [1, 0] is 1.0, 0.8, 0.6 and 0.0."""
    vectors = [[1.0, 0.0], [0.8, 0.6], [0.6, 0.8], [0.0, 1.0]]
    return RagIndex(
        model=model,
        created_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
        chunks=[
            EmbeddedChunk(text=f"chunk {i}", source=f"doc{i}.md", position=0, embedding=vector)
            for i, vector in enumerate(vectors)
        ],
    )


@pytest.fixture
def mock_storage():
    storage = Mock()
    storage.index_path = "dataForRag/indexed/index.json"
    storage.load.return_value = make_index()
    return storage


@pytest.fixture
def mock_embedding_model():
    model = Mock()
    model.embed.return_value = [[1.0, 0.0]]
    return model


@pytest.fixture
def config():
    return RagConfig(
        embedding_model="mxbai-embed-large",
        filter_threshold=0.5,
        candidate_count=15,
    )


class TestRetrievalEngine:
    """Test suite for RetrievalEngine class."""

    def test_initialization(self, mock_storage, mock_embedding_model, config):
        """Test that RetrievalEngine initializes correctly."""
        engine = RetrievalEngine(mock_storage, mock_embedding_model, config)

        assert engine.storage == mock_storage
        assert engine.embedding_model == mock_embedding_model
        assert engine.reranker is None

    def test_missing_index_raises(self, mock_storage, mock_embedding_model, config):
        mock_storage.load.return_value = None
        engine = RetrievalEngine(mock_storage, mock_embedding_model, config)

        with pytest.raises(IndexNotFoundError, match="build the index first"):
            engine.retrieve("question")

        mock_embedding_model.embed.assert_not_called()

    def test_corrupt_index_propagates(self, mock_storage, mock_embedding_model, config):
        mock_storage.load.side_effect = IndexCorruptError("index.json", "bad json")
        engine = RetrievalEngine(mock_storage, mock_embedding_model, config)

        with pytest.raises(IndexCorruptError):
            engine.retrieve("question")

    def test_retrieve_cosine_order_and_threshold(self, mock_storage, mock_embedding_model, config):
        engine = RetrievalEngine(mock_storage, mock_embedding_model, config)

        results = engine.retrieve("question", top_k=4)

        assert [r.source for r in results] == ["doc0.md", "doc1.md", "doc2.md"]
        assert results[0].similarity == pytest.approx(1.0)
        assert results[1].similarity == pytest.approx(0.8)
        assert results[2].similarity == pytest.approx(0.6)
        assert all(not r.reranked for r in results)
        mock_embedding_model.embed.assert_called_once_with(["question"], "mxbai-embed-large")

    def test_top_k_limits_results(self, mock_storage, mock_embedding_model, config):
        engine = RetrievalEngine(mock_storage, mock_embedding_model, config)

        results = engine.retrieve("question", top_k=1)

        assert [r.source for r in results] == ["doc0.md"]

    def test_threshold_can_empty_results(self, mock_storage, mock_embedding_model):
        config = RagConfig(embedding_model="mxbai-embed-large", filter_threshold=1.5)
        engine = RetrievalEngine(mock_storage, mock_embedding_model, config)

        assert engine.retrieve("question") == []

    def test_empty_index_returns_empty(self, mock_storage, mock_embedding_model, config):
        mock_storage.load.return_value = RagIndex(
            model="mxbai-embed-large", created_at=datetime.now(timezone.utc), chunks=[]
        )
        engine = RetrievalEngine(mock_storage, mock_embedding_model, config)

        assert engine.retrieve("question") == []

    def test_search_text_is_embedded_instead_of_question(self, mock_storage, mock_embedding_model, config):
        engine = RetrievalEngine(mock_storage, mock_embedding_model, config)

        engine.retrieve("and then?", search_text="User: hi\nUser: and then?")

        mock_embedding_model.embed.assert_called_once_with(
            ["User: hi\nUser: and then?"], "mxbai-embed-large"
        )

    def test_model_mismatch_still_retrieves(self, mock_storage, mock_embedding_model, config):
        mock_storage.load.return_value = make_index(model="nomic-embed-text")
        engine = RetrievalEngine(mock_storage, mock_embedding_model, config)

        results = engine.retrieve("question", top_k=1)

        assert len(results) == 1

    def test_reranker_receives_candidate_pool(self, mock_storage, mock_embedding_model):
        config = RagConfig(embedding_model="mxbai-embed-large", filter_threshold=0.0, candidate_count=3)
        reranker = Mock()
        reranker.rerank.side_effect = lambda question, candidates: [
            RerankedCandidate(chunk=chunk, cosine_score=score, llm_score=score)
            for chunk, score in candidates
        ]
        engine = RetrievalEngine(mock_storage, mock_embedding_model, config, reranker)

        engine.retrieve("question", top_k=1)

        question, candidates = reranker.rerank.call_args[0]
        assert question == "question"
        assert len(candidates) == 3

    def test_pool_never_smaller_than_top_k(self, mock_storage, mock_embedding_model):
        config = RagConfig(embedding_model="mxbai-embed-large", filter_threshold=0.0, candidate_count=1)
        reranker = Mock()
        reranker.rerank.side_effect = lambda question, candidates: [
            RerankedCandidate(chunk=chunk, cosine_score=score, llm_score=0.9)
            for chunk, score in candidates
        ]
        engine = RetrievalEngine(mock_storage, mock_embedding_model, config, reranker)

        results = engine.retrieve("question", top_k=4)

        assert len(reranker.rerank.call_args[0][1]) == 4
        assert len(results) == 4

    def test_reranked_results_sorted_by_llm_score(self, mock_storage, mock_embedding_model, config):
        llm_scores = {"doc0.md": 0.2, "doc1.md": 0.95, "doc2.md": 0.7, "doc3.md": 0.4}
        reranker = Mock()
        reranker.rerank.side_effect = lambda question, candidates: [
            RerankedCandidate(chunk=chunk, cosine_score=score, llm_score=llm_scores[chunk.source])
            for chunk, score in candidates
        ]
        engine = RetrievalEngine(mock_storage, mock_embedding_model, config, reranker)

        results = engine.retrieve("question", top_k=3)

        # doc0 (0.2) and doc3 (0.4) fall below the 0.5 threshold
        assert [r.source for r in results] == ["doc1.md", "doc2.md"]
        assert results[0].similarity == 0.95
        assert results[0].llm_score == 0.95
        assert results[0].cosine_score == pytest.approx(0.8)
        assert results[0].reranked

    def test_reranker_exception_falls_back_to_cosine(self, mock_storage, mock_embedding_model, config):
        reranker = Mock()
        reranker.rerank.side_effect = RuntimeError("unexpected")
        engine = RetrievalEngine(mock_storage, mock_embedding_model, config, reranker)

        results = engine.retrieve("question", top_k=3)

        assert [r.source for r in results] == ["doc0.md", "doc1.md", "doc2.md"]
        assert all(not r.reranked for r in results)
