"""Query pipeline: retrieve context, build the augmented prompt, ask the LLM."""
import logging
from typing import List, Optional, Sequence

from config import RagConfig
from models.conversation import Message, MessageRole
from models.query import QueryResult, RetrievedChunk
from services.llm_client import ChatRequest, LLMClient
from services.retrieval_engine import RetrievalEngine

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a helpful assistant. Answer the user's question based on the provided "
    "context from documents. If the context doesn't contain enough information, say so."
)

NO_CONTEXT_NOTICE = "Note: No relevant context was found in the knowledge base."


class RagQueryService:
    """Answer questions grounded on the indexed documents."""

    def __init__(self, retrieval_engine: RetrievalEngine, llm_client: LLMClient, config: RagConfig):
        """
        Initialize the query service.

        Args:
            retrieval_engine: Selects the context chunks
            llm_client: Completion provider for the final answer
            config: Generation model, temperature, token limit and history window
        """
        self.retrieval_engine = retrieval_engine
        self.llm_client = llm_client
        self.config = config

    def query(self, question: str, top_k: int = 3) -> QueryResult:
        """
        Answer ``question`` using the chunks most similar to it.

        Retrieved chunks are returned for display only; callers should store
        just the question and the answer in their conversation history.

        Raises:
            ValueError: If the question is blank
            IndexNotFoundError: If no index has been built yet
            IndexCorruptError: If the index file cannot be decoded
            EmbeddingServiceError: If the question cannot be embedded
            LLMClientError: If the completion provider fails
        """
        return self._run(question, top_k)

    def query_with_history(
        self,
        question: str,
        recent_messages: Sequence[Message],
        top_k: int = 3
    ) -> QueryResult:
        """
        Answer ``question`` with retrieval biased toward the ongoing conversation.

        The last ``history_context_size`` non-system messages are prepended to
        the question and embedded as one search text. The same messages are
        forwarded to the completion provider so follow-up questions resolve.

        Raises:
            Same as :meth:`query`
        """
        history = self.select_history(recent_messages, self.config.history_context_size)
        search_text = self.build_search_text(question, history)
        return self._run(question, top_k, search_text=search_text, history=history)

    def _run(
        self,
        question: str,
        top_k: int,
        search_text: Optional[str] = None,
        history: Optional[List[Message]] = None
    ) -> QueryResult:
        if not question or not question.strip():
            raise ValueError("Question cannot be empty")

        logger.info(f"Starting RAG query: {question[:100]!r} (top_k={top_k})")

        chunks = self.retrieval_engine.retrieve(question, top_k=top_k, search_text=search_text)
        if not chunks:
            logger.warning("No relevant chunks found for query")

        messages = [Message.system(SYSTEM_PROMPT)]
        messages.extend(history or [])
        messages.append(Message.user(self.build_user_prompt(question, chunks)))

        request = ChatRequest(
            model=self.config.llm_model,
            messages=messages,
            max_tokens=self.config.llm_max_tokens,
            temperature=self.config.llm_temperature
        )

        logger.info(f"Sending augmented prompt with {len(chunks)} context chunks to LLM")
        try:
            response = self.llm_client.send(request)
        except Exception:
            logger.error("Failed to get response from LLM", exc_info=True)
            raise

        logger.info(f"Received answer from LLM (length: {len(response.content)} chars)")
        return QueryResult(answer=response.content, retrieved_chunks=chunks)

    @staticmethod
    def select_history(recent_messages: Sequence[Message], limit: int) -> List[Message]:
        """Keep the last ``limit`` non-system messages, in conversation order."""
        if limit <= 0:
            return []
        conversational = [
            message for message in recent_messages
            if message.role != MessageRole.SYSTEM and message.content.strip()
        ]
        return conversational[-limit:]

    @staticmethod
    def build_search_text(question: str, history: Sequence[Message]) -> str:
        """Join recent turns and the question into the single text to embed."""
        if not history:
            return question
        lines = [f"{message.role.value.capitalize()}: {message.content}" for message in history]
        lines.append(f"User: {question}")
        return "\n".join(lines)

    @staticmethod
    def format_context(chunks: Sequence[RetrievedChunk]) -> str:
        """
        Render retrieved chunks as the context block of the prompt.

        Format:
            Context from documents:

            ---
            [Source: README.md, Relevance: 0.87]
            <chunk text>
            ---
        """
        if not chunks:
            return ""

        parts = ["Context from documents:\n"]
        for chunk in chunks:
            parts.append(
                f"\n---\n[Source: {chunk.source}, Relevance: {chunk.similarity:.2f}]\n{chunk.text}\n---"
            )
        return "".join(parts)

    @classmethod
    def build_user_prompt(cls, question: str, chunks: Sequence[RetrievedChunk]) -> str:
        if not chunks:
            return f"User Question: {question}\n\n{NO_CONTEXT_NOTICE}"
        return f"{cls.format_context(chunks)}\n\nUser Question: {question}"
