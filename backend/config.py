"""Configuration management for the document RAG service."""
import os
import logging
from dataclasses import dataclass, fields
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Defaults for every setting, keyed by environment variable
DEFAULTS = {
    # Server Configuration
    "PORT": "8000",
    "LOG_LEVEL": "INFO",
    "LOG_FORMAT": "text",
    # Ollama (embeddings and local re-ranking)
    "OLLAMA_BASE_URL": "http://127.0.0.1:11434",
    "REQUEST_TIMEOUT": "60",
    "RERANK_TIMEOUT": "60",
    # Model Configuration
    "EMBEDDING_MODEL": "mxbai-embed-large",
    "LLM_MODEL": "llama-3.3-70b-versatile",
    "LLM_MAX_TOKENS": "1000",
    "LLM_TEMPERATURE": "0.3",
    # Chunking Configuration (characters)
    "CHUNK_SIZE": "500",
    "CHUNK_OVERLAP": "50",
    "EMBEDDING_BATCH_SIZE": "10",
    # Re-ranking Configuration
    "RAG_RERANKING": "false",
    "RAG_RERANKING_PROVIDER": "ollama",
    "RAG_CANDIDATE_COUNT": "15",
    "RAG_RERANK_MODEL": "qwen2.5",
    "RERANK_MAX_TOKENS": "1000",
    "RERANK_TEMPERATURE": "0.1",
    # Retrieval Configuration
    "RAG_FILTER_THRESHOLD": "0.7",
    "RAG_HISTORY_CONTEXT_SIZE": "5",
    # Storage Configuration
    "INDEX_PATH": "dataForRag/indexed/index.json",
}


def _env(name: str) -> str:
    return os.getenv(name, DEFAULTS[name])


def _env_bool(name: str) -> bool:
    return _env(name).strip().lower() in ("1", "true", "yes", "on")


# API Keys
GROQ_API_KEY = os.getenv("GROQ_API_KEY")

# Server Configuration
PORT = int(_env("PORT"))
LOG_LEVEL = _env("LOG_LEVEL")
LOG_FORMAT = _env("LOG_FORMAT")

# Ollama (embeddings and local re-ranking)
OLLAMA_BASE_URL = _env("OLLAMA_BASE_URL")
REQUEST_TIMEOUT = float(_env("REQUEST_TIMEOUT"))
RERANK_TIMEOUT = float(_env("RERANK_TIMEOUT"))

# Model Configuration
EMBEDDING_MODEL = _env("EMBEDDING_MODEL")
LLM_MODEL = _env("LLM_MODEL")
LLM_MAX_TOKENS = int(_env("LLM_MAX_TOKENS"))
LLM_TEMPERATURE = float(_env("LLM_TEMPERATURE"))

# Chunking Configuration
CHUNK_SIZE = int(_env("CHUNK_SIZE"))
CHUNK_OVERLAP = int(_env("CHUNK_OVERLAP"))
EMBEDDING_BATCH_SIZE = int(_env("EMBEDDING_BATCH_SIZE"))

# Re-ranking Configuration
RAG_RERANKING = _env_bool("RAG_RERANKING")
RAG_RERANKING_PROVIDER = _env("RAG_RERANKING_PROVIDER")
RAG_CANDIDATE_COUNT = int(_env("RAG_CANDIDATE_COUNT"))
RAG_RERANK_MODEL = _env("RAG_RERANK_MODEL")
RERANK_MAX_TOKENS = int(_env("RERANK_MAX_TOKENS"))
RERANK_TEMPERATURE = float(_env("RERANK_TEMPERATURE"))

# Retrieval Configuration
RAG_FILTER_THRESHOLD = float(_env("RAG_FILTER_THRESHOLD"))
RAG_HISTORY_CONTEXT_SIZE = int(_env("RAG_HISTORY_CONTEXT_SIZE"))

# Storage Configuration
INDEX_PATH = _env("INDEX_PATH")
DOCS_DIRECTORY = os.getenv("DOCS_DIRECTORY", os.getcwd())

RERANKING_PROVIDERS = ("ollama", "provider")

# Environment variable behind each RagConfig field
FIELD_ENV_VARS = {
    "embedding_model": "EMBEDDING_MODEL",
    "chunk_size": "CHUNK_SIZE",
    "chunk_overlap": "CHUNK_OVERLAP",
    "batch_size": "EMBEDDING_BATCH_SIZE",
    "reranking": "RAG_RERANKING",
    "reranking_provider": "RAG_RERANKING_PROVIDER",
    "candidate_count": "RAG_CANDIDATE_COUNT",
    "rerank_model": "RAG_RERANK_MODEL",
    "rerank_max_tokens": "RERANK_MAX_TOKENS",
    "rerank_temperature": "RERANK_TEMPERATURE",
    "rerank_timeout": "RERANK_TIMEOUT",
    "filter_threshold": "RAG_FILTER_THRESHOLD",
    "history_context_size": "RAG_HISTORY_CONTEXT_SIZE",
    "llm_model": "LLM_MODEL",
    "llm_max_tokens": "LLM_MAX_TOKENS",
    "llm_temperature": "LLM_TEMPERATURE",
    "index_path": "INDEX_PATH",
    "ollama_base_url": "OLLAMA_BASE_URL",
    "request_timeout": "REQUEST_TIMEOUT",
}

# Logging Configuration
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)


@dataclass(frozen=True)
class RagConfig:
    """Resolved settings shared by the indexing and query services."""
    embedding_model: str = EMBEDDING_MODEL
    chunk_size: int = CHUNK_SIZE
    chunk_overlap: int = CHUNK_OVERLAP
    batch_size: int = EMBEDDING_BATCH_SIZE
    reranking: bool = RAG_RERANKING
    reranking_provider: str = RAG_RERANKING_PROVIDER
    candidate_count: int = RAG_CANDIDATE_COUNT
    rerank_model: str = RAG_RERANK_MODEL
    rerank_max_tokens: int = RERANK_MAX_TOKENS
    rerank_temperature: float = RERANK_TEMPERATURE
    rerank_timeout: float = RERANK_TIMEOUT
    filter_threshold: float = RAG_FILTER_THRESHOLD
    history_context_size: int = RAG_HISTORY_CONTEXT_SIZE
    llm_model: str = LLM_MODEL
    llm_max_tokens: int = LLM_MAX_TOKENS
    llm_temperature: float = LLM_TEMPERATURE
    index_path: str = INDEX_PATH
    ollama_base_url: str = OLLAMA_BASE_URL
    request_timeout: float = REQUEST_TIMEOUT

    def __post_init__(self):
        if self.chunk_overlap < 0:
            raise ValueError("chunk_overlap must be non-negative")
        if self.chunk_size <= self.chunk_overlap:
            raise ValueError("chunk_size must be greater than chunk_overlap")
        if self.batch_size <= 0:
            raise ValueError("batch_size must be positive")
        if self.candidate_count <= 0:
            raise ValueError("candidate_count must be positive")
        if self.history_context_size < 0:
            raise ValueError("history_context_size must be non-negative")
        if self.reranking_provider not in RERANKING_PROVIDERS:
            raise ValueError(
                f"Unknown reranking provider: {self.reranking_provider} "
                f"(expected one of {', '.join(RERANKING_PROVIDERS)})"
            )

    @classmethod
    def from_env(cls) -> "RagConfig":
        """Build a config from the current environment, falling back to defaults."""
        values = {}
        for f in fields(cls):
            name = FIELD_ENV_VARS[f.name]
            if f.type in (bool, "bool"):
                values[f.name] = _env_bool(name)
            elif f.type in (int, "int"):
                values[f.name] = int(_env(name))
            elif f.type in (float, "float"):
                values[f.name] = float(_env(name))
            else:
                values[f.name] = _env(name)
        return cls(**values)
