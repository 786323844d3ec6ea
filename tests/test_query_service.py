"""Unit tests for RagQueryService."""
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

import pytest
from unittest.mock import Mock
from config import RagConfig
from models.conversation import Message, MessageRole
from models.query import RetrievedChunk
from services.errors import IndexNotFoundError
from services.llm_client import ChatResponse, LLMClientError, LLMError
from services.query_service import NO_CONTEXT_NOTICE, SYSTEM_PROMPT, RagQueryService


@pytest.fixture
def mock_retrieval_engine():
    engine = Mock()
    engine.retrieve.return_value = [
        RetrievedChunk(source="README.md", text="Run build_index.py to index.", similarity=0.8712),
        RetrievedChunk(source="guide/setup.md", text="Set OLLAMA_BASE_URL.", similarity=0.74),
    ]
    return engine


@pytest.fixture
def mock_llm_client():
    client = Mock()
    client.send.return_value = ChatResponse(
        content="Run build_index.py.", model_used="llama-3.3-70b-versatile", latency_ms=200
    )
    return client


@pytest.fixture
def config():
    return RagConfig(llm_model="llama-3.3-70b-versatile", llm_max_tokens=800,
                     llm_temperature=0.2, history_context_size=2)


@pytest.fixture
def service(mock_retrieval_engine, mock_llm_client, config):
    return RagQueryService(mock_retrieval_engine, mock_llm_client, config)


class TestQuery:
    """Test suite for RagQueryService.query."""

    def test_query_returns_answer_and_chunks(self, service, mock_retrieval_engine):
        result = service.query("How do I index?", top_k=2)

        assert result.answer == "Run build_index.py."
        assert result.retrieved_chunks == mock_retrieval_engine.retrieve.return_value
        mock_retrieval_engine.retrieve.assert_called_once_with(
            "How do I index?", top_k=2, search_text=None
        )

    def test_query_builds_augmented_prompt(self, service, mock_llm_client):
        service.query("How do I index?")

        request = mock_llm_client.send.call_args[0][0]
        assert request.model == "llama-3.3-70b-versatile"
        assert request.max_tokens == 800
        assert request.temperature == 0.2
        assert [m.role for m in request.messages] == [MessageRole.SYSTEM, MessageRole.USER]
        assert request.messages[0].content == SYSTEM_PROMPT

        prompt = request.messages[1].content
        assert prompt.startswith("Context from documents:\n")
        assert "[Source: README.md, Relevance: 0.87]\nRun build_index.py to index." in prompt
        assert "[Source: guide/setup.md, Relevance: 0.74]" in prompt
        assert prompt.endswith("\n\nUser Question: How do I index?")

    def test_no_context_still_asks_llm(self, service, mock_retrieval_engine, mock_llm_client):
        mock_retrieval_engine.retrieve.return_value = []

        result = service.query("Unrelated?")

        assert result.retrieved_chunks == []
        assert result.answer == "Run build_index.py."
        prompt = mock_llm_client.send.call_args[0][0].messages[-1].content
        assert prompt == f"User Question: Unrelated?\n\n{NO_CONTEXT_NOTICE}"
        assert "Context from documents" not in prompt

    @pytest.mark.parametrize("question", ["", "   ", "\n"])
    def test_blank_question_raises(self, service, mock_retrieval_engine, question):
        with pytest.raises(ValueError, match="Question cannot be empty"):
            service.query(question)

        mock_retrieval_engine.retrieve.assert_not_called()

    def test_llm_error_propagates(self, service, mock_llm_client):
        mock_llm_client.send.side_effect = LLMClientError(
            LLMError(code="RATE_LIMIT_ERROR", message="Rate limit exceeded")
        )

        with pytest.raises(LLMClientError) as exc_info:
            service.query("How do I index?")

        assert exc_info.value.error.code == "RATE_LIMIT_ERROR"

    def test_missing_index_propagates(self, service, mock_retrieval_engine, mock_llm_client):
        mock_retrieval_engine.retrieve.side_effect = IndexNotFoundError("index.json")

        with pytest.raises(IndexNotFoundError):
            service.query("How do I index?")

        mock_llm_client.send.assert_not_called()


class TestQueryWithHistory:
    """Test suite for conversation-aware queries."""

    def test_search_text_includes_recent_turns(self, service, mock_retrieval_engine):
        history = [
            Message.system("You are helpful."),
            Message.user("What is the index?"),
            Message.assistant("A JSON file of embedded chunks."),
            Message.user("Where is it stored?"),
        ]

        service.query_with_history("Can I move it?", history, top_k=3)

        kwargs = mock_retrieval_engine.retrieve.call_args.kwargs
        assert kwargs["search_text"] == (
            "Assistant: A JSON file of embedded chunks.\n"
            "User: Where is it stored?\n"
            "User: Can I move it?"
        )
        assert mock_retrieval_engine.retrieve.call_args.args[0] == "Can I move it?"

    def test_history_forwarded_to_llm(self, service, mock_llm_client):
        history = [Message.user("What is the index?"), Message.assistant("A JSON file.")]

        service.query_with_history("Where is it?", history)

        messages = mock_llm_client.send.call_args[0][0].messages
        assert [m.role for m in messages] == [
            MessageRole.SYSTEM, MessageRole.USER, MessageRole.ASSISTANT, MessageRole.USER
        ]
        assert messages[1].content == "What is the index?"
        assert messages[-1].content.endswith("User Question: Where is it?")

    def test_empty_history_matches_plain_query(self, service, mock_retrieval_engine):
        service.query_with_history("How do I index?", [])

        assert mock_retrieval_engine.retrieve.call_args.kwargs["search_text"] == "How do I index?"


class TestHelpers:
    """Test suite for the prompt helpers."""

    def test_select_history_skips_system_and_blank(self):
        messages = [
            Message.system("sys"),
            Message.user("one"),
            Message.assistant("  "),
            Message.user("two"),
            Message.assistant("three"),
        ]

        selected = RagQueryService.select_history(messages, 2)

        assert [m.content for m in selected] == ["two", "three"]

    def test_select_history_zero_limit(self):
        assert RagQueryService.select_history([Message.user("one")], 0) == []

    def test_format_context_empty(self):
        assert RagQueryService.format_context([]) == ""

    def test_format_context_layout(self):
        chunks = [RetrievedChunk(source="a.md", text="alpha", similarity=0.5)]

        assert RagQueryService.format_context(chunks) == (
            "Context from documents:\n\n---\n[Source: a.md, Relevance: 0.50]\nalpha\n---"
        )
