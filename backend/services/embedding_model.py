"""Embedding model integration with the Ollama embed API."""
import time
import logging
from typing import List, Optional
import httpx
from config import OLLAMA_BASE_URL, EMBEDDING_MODEL, REQUEST_TIMEOUT
from services.errors import EmbeddingServiceError, EmbeddingTimeoutError

logger = logging.getLogger(__name__)


class EmbeddingModel:
    """Client for an Ollama server's embedding endpoint."""

    def __init__(
        self,
        base_url: str = OLLAMA_BASE_URL,
        model_name: str = EMBEDDING_MODEL,
        max_retries: int = 3,
        initial_delay: float = 1.0,
        timeout: float = REQUEST_TIMEOUT
    ):
        """
        Initialize the embedding model client.

        Args:
            base_url: Base URL of the Ollama server
            model_name: Default embedding model (e.g. mxbai-embed-large)
            max_retries: Maximum number of attempts for network errors and timeouts
            initial_delay: Initial delay in seconds for exponential backoff
            timeout: Request timeout in seconds
        """
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")

        self.base_url = base_url.rstrip("/")
        self.model_name = model_name
        self.max_retries = max_retries
        self.initial_delay = initial_delay
        self.timeout = timeout
        self.api_url = f"{self.base_url}/api/embed"

        logger.info(f"Initialized EmbeddingModel with model: {model_name} at {self.base_url}")

    def embed(self, texts: List[str], model: Optional[str] = None) -> List[List[float]]:
        """
        Generate one embedding per input text, in input order.

        Args:
            texts: Texts to embed
            model: Model override; defaults to ``model_name``

        Returns:
            Embedding vectors, ``result[i]`` belonging to ``texts[i]``

        Raises:
            ValueError: If ``texts`` is empty or contains a blank string
            EmbeddingServiceError: If the service fails or answers with the wrong count
            EmbeddingTimeoutError: If every attempt timed out
        """
        if not texts:
            raise ValueError("Texts list cannot be empty")

        if any(not text or not text.strip() for text in texts):
            raise ValueError("Texts cannot contain empty strings")

        return self._embed_with_retry(texts, model or self.model_name)

    def embed_text(self, text: str, model: Optional[str] = None) -> List[float]:
        """
        Generate embedding for a single text string.

        Raises:
            ValueError: If text is empty
            EmbeddingServiceError: If the request fails
        """
        if not text or not text.strip():
            raise ValueError("Text cannot be empty")

        return self.embed([text], model)[0]

    def _embed_with_retry(self, texts: List[str], model: str) -> List[List[float]]:
        """
        Call the embed API, retrying transient failures with exponential backoff.

        Only connection problems and timeouts are retried; an HTTP error status
        or a malformed payload fails immediately.
        """
        payload = {"model": model, "input": texts}

        delay = self.initial_delay
        last_error = None
        timed_out = False

        for attempt in range(self.max_retries):
            try:
                start_time = time.time()

                with httpx.Client(timeout=self.timeout) as client:
                    response = client.post(self.api_url, json=payload)

                elapsed = time.time() - start_time

                if response.status_code != 200:
                    error_msg = (
                        f"Embedding request failed with status {response.status_code}: "
                        f"{response.text[:500]}"
                    )
                    logger.error(error_msg)
                    raise EmbeddingServiceError(error_msg)

                embeddings = self._parse_embeddings(response, len(texts))
                logger.debug(f"Generated embeddings for {len(texts)} texts in {elapsed:.2f}s")
                return embeddings

            except httpx.TimeoutException:
                timed_out = True
                last_error = f"Request timeout after {self.timeout}s"
                logger.warning(f"{last_error} on attempt {attempt + 1}/{self.max_retries}")

            except httpx.RequestError as e:
                timed_out = False
                last_error = f"Network error: {e}"
                logger.warning(f"{last_error} on attempt {attempt + 1}/{self.max_retries}")

            if attempt < self.max_retries - 1:
                time.sleep(delay)
                delay = min(delay * 2, 30.0)

        # All retries exhausted
        error_msg = (
            f"Failed to generate embeddings after {self.max_retries} attempts. "
            f"Last error: {last_error}"
        )
        logger.error(error_msg)
        if timed_out:
            raise EmbeddingTimeoutError(error_msg)
        raise EmbeddingServiceError(error_msg)

    @staticmethod
    def _parse_embeddings(response: httpx.Response, expected: int) -> List[List[float]]:
        try:
            data = response.json()
            embeddings = [[float(value) for value in vector] for vector in data["embeddings"]]
        except (ValueError, KeyError, TypeError) as e:
            raise EmbeddingServiceError(f"Malformed embedding response: {e}") from e

        if len(embeddings) != expected:
            raise EmbeddingServiceError(
                f"Embedding service returned {len(embeddings)} vectors for {expected} texts"
            )
        return embeddings
