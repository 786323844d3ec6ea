"""LLM Client for Groq API integration."""
import time
from dataclasses import dataclass, field
from typing import List, Optional, Dict, Any
from groq import Groq
from groq import RateLimitError, AuthenticationError, APIError, APITimeoutError
import logging

from config import GROQ_API_KEY, REQUEST_TIMEOUT
from models.conversation import Message
from services.errors import RagError

logger = logging.getLogger(__name__)


@dataclass
class ChatRequest:
    """Request for a single chat completion."""
    model: str
    messages: List[Message]
    max_tokens: int = 1000
    temperature: float = 0.3


@dataclass
class TokenUsage:
    """Token accounting reported by the provider."""
    prompt_tokens: Optional[int] = None
    completion_tokens: Optional[int] = None
    total_tokens: Optional[int] = None


@dataclass
class ChatResponse:
    """Response from LLM generation."""
    content: str
    model_used: str
    latency_ms: int
    usage: Optional[TokenUsage] = None


@dataclass
class LLMError:
    """Structured error response from LLM operations."""
    code: str
    message: str
    details: Dict[str, Any] = field(default_factory=dict)


class LLMClientError(RagError):
    """Custom exception for LLM client errors with structured error information."""

    def __init__(self, error: LLMError):
        self.error = error
        super().__init__(error.message)

    @property
    def is_timeout(self) -> bool:
        return self.error.code == "TIMEOUT_ERROR"


class LLMClient:
    """Client for interfacing with Groq API for text generation."""

    def __init__(self, api_key: Optional[str] = None, timeout: float = REQUEST_TIMEOUT):
        """
        Initialize LLM client with Groq API key.

        Args:
            api_key: Groq API key (defaults to GROQ_API_KEY from environment)
            timeout: Per-request timeout in seconds
        """
        self.api_key = api_key or GROQ_API_KEY
        if not self.api_key:
            raise ValueError("GROQ_API_KEY must be provided or set in environment")

        self.timeout = timeout
        self.client = Groq(api_key=self.api_key, timeout=timeout)
        logger.info("LLMClient initialized successfully")

    def send(self, request: ChatRequest) -> ChatResponse:
        """
        Send a chat completion request to Groq.

        Args:
            request: Model, messages and sampling parameters

        Returns:
            ChatResponse with content, token usage and latency

        Raises:
            LLMClientError: Structured error with code, message, and details
        """
        start_time = time.time()
        model = request.model

        try:
            logger.debug(f"Generating response with model: {model} ({len(request.messages)} messages)")

            response = self.client.chat.completions.create(
                model=model,
                messages=[
                    {"role": message.role.value, "content": message.content}
                    for message in request.messages
                ],
                max_tokens=request.max_tokens,
                temperature=request.temperature
            )

            latency_ms = int((time.time() - start_time) * 1000)

            text = response.choices[0].message.content if response.choices else None
            if not text:
                raise LLMClientError(LLMError(
                    code="EMPTY_RESPONSE",
                    message="Response does not contain content",
                    details={"model": model, "latency_ms": latency_ms}
                ))

            usage = None
            if response.usage is not None:
                usage = TokenUsage(
                    prompt_tokens=response.usage.prompt_tokens,
                    completion_tokens=response.usage.completion_tokens,
                    total_tokens=response.usage.total_tokens
                )

            logger.info(
                f"Generated response: model={model}, "
                f"input_tokens={usage.prompt_tokens if usage else None}, "
                f"output_tokens={usage.completion_tokens if usage else None}, "
                f"latency={latency_ms}ms"
            )

            return ChatResponse(
                content=text,
                model_used=model,
                latency_ms=latency_ms,
                usage=usage
            )

        except LLMClientError as e:
            logger.error(f"LLM error: model={model}, code={e.error.code}")
            raise

        except RateLimitError as e:
            raise self._fail(
                "RATE_LIMIT_ERROR",
                "Rate limit exceeded. Please try again in a few moments.",
                model, start_time, e, retry_after=60
            )

        except AuthenticationError as e:
            raise self._fail(
                "AUTHENTICATION_ERROR",
                "Authentication failed. Please check your API key.",
                model, start_time, e
            )

        except APITimeoutError as e:
            raise self._fail(
                "TIMEOUT_ERROR",
                f"Request timed out after {self.timeout}s. Please try again.",
                model, start_time, e
            )

        except APIError as e:
            raise self._fail("API_ERROR", f"Groq API error: {str(e)}", model, start_time, e)

        except Exception as e:
            raise self._fail(
                "UNKNOWN_ERROR",
                f"Unexpected error during generation: {str(e)}",
                model, start_time, e, error_type=type(e).__name__
            )

    @staticmethod
    def _fail(
        code: str,
        message: str,
        model: str,
        start_time: float,
        cause: Exception,
        **extra: Any
    ) -> LLMClientError:
        latency_ms = int((time.time() - start_time) * 1000)
        error = LLMError(
            code=code,
            message=message,
            details={
                **extra,
                "model": model,
                "latency_ms": latency_ms,
                "original_error": str(cause)
            }
        )
        logger.error(
            f"{code}: model={model}, latency={latency_ms}ms, error={cause}",
            exc_info=True,
            extra={"error_code": error.code, "error_details": error.details}
        )
        client_error = LLMClientError(error)
        client_error.__cause__ = cause
        return client_error
