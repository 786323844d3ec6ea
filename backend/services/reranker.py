"""
Second-pass relevance scoring of retrieved candidates with a generative model.

Vector similarity is cheap but coarse: it often ranks a chunk that merely shares
vocabulary with the question above the chunk that actually answers it. The
rerankers in this module show the question and a short preview of each
candidate to a language model and ask for a relevance score between 0.0 and 1.0
per candidate.

Two backends implement the same :class:`Reranker` contract:

* :class:`OllamaReranker` calls a small local model through Ollama's
  ``/api/generate`` endpoint. It is slow on CPU but free.
* :class:`ProviderReranker` sends the same prompt through the
  :class:`~services.llm_client.LLMClient` used for final answers.

Both share the prompt, the response parsing and the failure policy:

* an empty or unparseable answer, or one with the wrong number of scores, gives every
  candidate the neutral score 0.5;
* a transport or provider error gives every candidate its cosine score back,
  which leaves the first-pass order untouched.

``rerank`` therefore never raises for backend problems.

Example usage:

    from services.reranker import create_reranker

    reranker = create_reranker(config, llm_client)
    if reranker is not None:
        reranked = reranker.rerank("how do I rebuild the index?", candidates)
"""

from __future__ import annotations

import json
import logging
import time
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Tuple

import httpx

from config import OLLAMA_BASE_URL, RAG_RERANK_MODEL, RERANK_TIMEOUT, RagConfig
from models.chunk import EmbeddedChunk, RerankedCandidate
from models.conversation import Message
from services.errors import RerankingError
from services.llm_client import ChatRequest, LLMClient, LLMClientError

logger = logging.getLogger(__name__)

# Longest candidate preview shown to the model, in characters.
MAX_PREVIEW_CHARS: int = 200

# Score every candidate receives when the model's answer cannot be used.
NEUTRAL_SCORE: float = 0.5

Candidates = List[Tuple[EmbeddedChunk, float]]


class Reranker(ABC):
    """Re-scores first-pass candidates by their relevance to a question.

    Subclasses only provide :meth:`_generate`, which sends a prompt to a
    model and returns its complete textual answer.  Prompt construction,
    parsing and the degradation policy live here so that every backend
    behaves identically.
    """

    name: str = "reranker"

    # Errors that mean "the backend could not answer"; these keep the cosine order.
    transport_errors: Tuple[type, ...] = (httpx.HTTPError, LLMClientError, RerankingError)

    @abstractmethod
    def _generate(self, prompt: str) -> str:
        """Send ``prompt`` to the backing model and return its full answer."""

    def rerank(self, question: str, candidates: Candidates) -> List[RerankedCandidate]:
        """Score each candidate against ``question``.

        Parameters
        ----------
        question : str
            The user's question (without any conversation history).
        candidates : list of (EmbeddedChunk, float)
            First-pass results with their cosine scores, best first.

        Returns
        -------
        list of RerankedCandidate
            One entry per candidate, in the input order.  Sorting by
            ``llm_score`` is left to the caller.
        """
        if not candidates:
            logger.warning("No candidates to re-rank")
            return []

        logger.info(f"Re-ranking {len(candidates)} candidates with {self.name}")
        prompt = self.build_prompt(question, candidates)
        logger.debug(f"Built re-ranking prompt (length: {len(prompt)} chars)")

        start_time = time.time()
        try:
            answer = self._generate(prompt)
        except self.transport_errors as e:
            logger.warning(
                f"Re-ranking with {self.name} failed, keeping cosine scores: {e}"
            )
            return [
                RerankedCandidate(chunk=chunk, cosine_score=score, llm_score=score)
                for chunk, score in candidates
            ]

        elapsed_ms = int((time.time() - start_time) * 1000)
        logger.info(f"{self.name} answered in {elapsed_ms}ms ({len(answer)} chars)")

        scores = self.parse_scores(answer, len(candidates))
        return self._map_scores(candidates, scores)

    @staticmethod
    def build_prompt(question: str, candidates: Candidates) -> str:
        """Render the scoring prompt, enumerating candidates from 1."""
        lines = [
            "Rate each text chunk by how relevant it is to the question.",
            "Use a score from 0.0 (irrelevant) to 1.0 (highly relevant).",
            "",
            f"Question: {question}",
            "",
            "Chunks:",
        ]
        for number, (chunk, _) in enumerate(candidates, start=1):
            lines.append(f"{number}. {truncate_preview(chunk.text)}")

        lines.append("")
        lines.append(
            "Return ONLY a JSON array with one entry per chunk id, for example: "
            '[{"id": 1, "score": 0.9}, {"id": 2, "score": 0.4}]'
        )
        lines.append("JSON:")
        return "\n".join(lines)

    @staticmethod
    def parse_scores(answer: str, expected_count: int) -> Dict[int, float]:
        """Extract ``{id: score}`` from the model's answer.

        The JSON array is taken from the first ``[`` to the last ``]`` so
        that commentary around it is ignored.  Anything unusable yields the
        neutral score for every id ``1..expected_count``.
        """
        fallback = {number: NEUTRAL_SCORE for number in range(1, expected_count + 1)}

        start = answer.find("[")
        end = answer.rfind("]")
        if start == -1 or end <= start:
            logger.warning(
                f"No JSON array in re-ranking answer, using neutral scores: {answer[:200]!r}"
            )
            return fallback

        try:
            entries = json.loads(answer[start:end + 1])
            if not isinstance(entries, list):
                raise ValueError("expected a JSON array")
            scores = {
                int(entry["id"]): min(1.0, max(0.0, float(entry["score"])))
                for entry in entries
            }
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"Failed to parse re-ranking scores, using neutral scores: {e}")
            return fallback

        if len(entries) != expected_count:
            logger.warning(
                f"Expected {expected_count} re-ranking scores, got {len(entries)}; "
                f"using neutral scores"
            )
            return fallback

        logger.info(f"Parsed {len(scores)} re-ranking scores")
        return scores

    @staticmethod
    def _map_scores(candidates: Candidates, scores: Dict[int, float]) -> List[RerankedCandidate]:
        reranked = []
        for number, (chunk, cosine_score) in enumerate(candidates, start=1):
            llm_score = scores.get(number)
            if llm_score is None:
                logger.warning(f"No re-ranking score for candidate {number}, keeping cosine score")
                llm_score = cosine_score
            logger.debug(f"Candidate {number}: cosine={cosine_score:.4f}, llm={llm_score:.4f}")
            reranked.append(
                RerankedCandidate(chunk=chunk, cosine_score=cosine_score, llm_score=llm_score)
            )
        return reranked


def truncate_preview(text: str, limit: int = MAX_PREVIEW_CHARS) -> str:
    if len(text) <= limit:
        return text
    return text[:limit - 3] + "..."


class OllamaReranker(Reranker):
    """Reranker backed by a local model served by Ollama.

    Parameters
    ----------
    model : str, optional
        Ollama model tag, e.g. ``qwen2.5``.
    base_url : str, optional
        Base URL of the Ollama server.
    timeout : float, optional
        Seconds allowed for the whole generate call.  Small models on CPU
        routinely take 30-60 seconds for a 15-candidate prompt.
    """

    name = "ollama"

    def __init__(
        self,
        model: str = RAG_RERANK_MODEL,
        base_url: str = OLLAMA_BASE_URL,
        timeout: float = RERANK_TIMEOUT,
    ) -> None:
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def _generate(self, prompt: str) -> str:
        payload = {"model": self.model, "prompt": prompt, "stream": False}
        with httpx.Client(timeout=httpx.Timeout(self.timeout, connect=10.0)) as client:
            response = client.post(f"{self.base_url}/api/generate", json=payload)
        response.raise_for_status()
        return self.collect_response(response.text)

    @staticmethod
    def collect_response(body: str) -> str:
        """Concatenate the ``response`` field of every NDJSON line in ``body``.

        Ollama may stream one JSON object per token even when
        ``stream`` is false, so the body is treated as newline-delimited
        JSON in all cases.
        """
        parts: List[str] = []
        for line in body.splitlines():
            line = line.strip()
            if not line:
                continue
            try:
                obj = json.loads(line)
            except ValueError:
                logger.warning(f"Skipping undecodable line from Ollama: {line[:100]}")
                continue
            if not isinstance(obj, dict):
                continue
            if obj.get("error"):
                raise RerankingError(f"Ollama returned an error: {obj['error']}")
            parts.append(str(obj.get("response", "")))
        return "".join(parts)


class ProviderReranker(Reranker):
    """Reranker that reuses the completion provider used for final answers."""

    name = "provider"

    SYSTEM_PROMPT = (
        "You are a relevance evaluation assistant. "
        "Return ONLY valid JSON, no explanations."
    )

    def __init__(
        self,
        llm_client: LLMClient,
        model: str,
        max_tokens: int = 1000,
        temperature: float = 0.1,
    ) -> None:
        self.llm_client = llm_client
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature

    def _generate(self, prompt: str) -> str:
        request = ChatRequest(
            model=self.model,
            messages=[Message.system(self.SYSTEM_PROMPT), Message.user(prompt)],
            max_tokens=self.max_tokens,
            temperature=self.temperature,
        )
        try:
            return self.llm_client.send(request).content
        except LLMClientError as e:
            # Empty content gets the neutral fallback like any unusable answer
            if e.error.code == "EMPTY_RESPONSE":
                logger.warning("Provider returned an empty re-ranking answer")
                return ""
            raise


def create_reranker(config: RagConfig, llm_client: Optional[LLMClient] = None) -> Optional[Reranker]:
    """Build the reranker selected by ``config``, or None when re-ranking is off.

    Raises
    ------
    ValueError
        If the provider backend is selected without an ``llm_client``.
    """
    if not config.reranking:
        return None

    if config.reranking_provider == "ollama":
        logger.info(f"Using Ollama reranker (model: {config.rerank_model})")
        return OllamaReranker(
            model=config.rerank_model,
            base_url=config.ollama_base_url,
            timeout=config.rerank_timeout,
        )

    if llm_client is None:
        raise ValueError("The provider reranker requires an LLM client")
    logger.info(f"Using provider reranker (model: {config.llm_model})")
    return ProviderReranker(
        llm_client=llm_client,
        model=config.llm_model,
        max_tokens=config.rerank_max_tokens,
        temperature=config.rerank_temperature,
    )
