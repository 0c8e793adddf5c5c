"""
Configuration settings for the docqa document Q&A system.

WHAT LIVES HERE:
- Azure OpenAI connection details (embedding + chat deployments)
- Chunking and retrieval parameters
- Retry policy for the remote model calls
- Upload limits and the SQLite database location

Values come from environment variables (optionally from a .env file).
Remote credentials are only checked when a client that needs them is
constructed, so chunking, ranking and storage work without them.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

BASE_DIR = Path(__file__).parent.parent
DATA_DIR = BASE_DIR / "data"


@dataclass
class AzureOpenAIConfig:
    """
    Configuration for Azure OpenAI services.

    Deployment names are the names given when deploying a model,
    not the model names themselves.
    """
    endpoint: Optional[str]
    api_key: Optional[str]
    api_version: str = "2024-02-15-preview"
    chat_deployment: str = "gpt-4o"              # For generating answers
    embedding_deployment: str = "text-embedding"  # For creating vectors

    def require_credentials(self) -> Tuple[str, str]:
        """Return (endpoint, api_key), failing loudly when either is missing."""
        if not self.endpoint:
            raise ValueError(
                "AZURE_OPENAI_ENDPOINT not set. "
                "Add it to your .env file or set it as an environment variable."
            )
        if not self.api_key:
            raise ValueError(
                "AZURE_OPENAI_API_KEY not set. "
                "Add it to your .env file or set it as an environment variable."
            )
        return self.endpoint, self.api_key


@dataclass
class ChunkingConfig:
    """
    Configuration for document chunking.

    - max_chunk_size=500: characters per chunk (a target, not a hard cap)
    - overlap=50: trailing characters carried into the next chunk
    - min_chunk_length=20: shorter chunks are discarded
    """
    max_chunk_size: int = 500
    overlap: int = 50
    min_chunk_length: int = 20


@dataclass
class RetrievalConfig:
    """
    Configuration for document retrieval.

    - top_k=5: number of chunks ranked per question
    - min_similarity=0.3: chunks at or below this score are not used as context
    """
    top_k: int = 5
    min_similarity: float = 0.3


@dataclass
class RetryConfig:
    """Exponential backoff for embedding and answer requests."""
    max_attempts: int = 3
    base_delay: float = 1.0   # seconds, doubled after every failed attempt
    max_delay: float = 8.0


@dataclass
class UploadConfig:
    """Limits applied to uploaded files and questions."""
    max_file_size: int = 5 * 1024 * 1024
    max_question_length: int = 1000
    valid_extensions: Tuple[str, ...] = (".txt", ".md", ".text", ".pdf")
    valid_mime_types: Tuple[str, ...] = (
        "text/plain",
        "text/markdown",
        "application/octet-stream",
        "application/pdf",
    )


@dataclass
class DatabaseConfig:
    """Location of the SQLite knowledge base (":memory:" is accepted)."""
    path: str = str(DATA_DIR / "knowledge.db")


@dataclass
class Settings:
    """
    Main settings container, organised by domain.
    """
    azure: AzureOpenAIConfig
    chunking: ChunkingConfig = field(default_factory=ChunkingConfig)
    retrieval: RetrievalConfig = field(default_factory=RetrievalConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    upload: UploadConfig = field(default_factory=UploadConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    log_level: str = "INFO"


def _int_env(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


def _float_env(name: str, default: float) -> float:
    return float(os.getenv(name, str(default)))


def load_settings() -> Settings:
    """
    Load settings from environment variables.

    RECOGNISED ENVIRONMENT VARIABLES:
    - AZURE_OPENAI_ENDPOINT / AZURE_OPENAI_API_KEY: remote model access
    - AZURE_OPENAI_API_VERSION, AZURE_OPENAI_CHAT_DEPLOYMENT,
      AZURE_OPENAI_EMBEDDING_DEPLOYMENT: deployment details
    - CHUNK_SIZE, CHUNK_OVERLAP, MIN_CHUNK_LENGTH: chunking
    - RETRIEVAL_TOP_K, MIN_SIMILARITY: retrieval
    - RETRY_ATTEMPTS, RETRY_BASE_DELAY: backoff policy
    - DOCQA_DB_PATH: SQLite file
    - LOG_LEVEL: structured logging level
    """
    return Settings(
        azure=AzureOpenAIConfig(
            endpoint=os.getenv("AZURE_OPENAI_ENDPOINT"),
            api_key=os.getenv("AZURE_OPENAI_API_KEY"),
            api_version=os.getenv("AZURE_OPENAI_API_VERSION", "2024-02-15-preview"),
            chat_deployment=os.getenv("AZURE_OPENAI_CHAT_DEPLOYMENT", "gpt-4o"),
            embedding_deployment=os.getenv(
                "AZURE_OPENAI_EMBEDDING_DEPLOYMENT", "text-embedding"
            ),
        ),
        chunking=ChunkingConfig(
            max_chunk_size=_int_env("CHUNK_SIZE", 500),
            overlap=_int_env("CHUNK_OVERLAP", 50),
            min_chunk_length=_int_env("MIN_CHUNK_LENGTH", 20),
        ),
        retrieval=RetrievalConfig(
            top_k=_int_env("RETRIEVAL_TOP_K", 5),
            min_similarity=_float_env("MIN_SIMILARITY", 0.3),
        ),
        retry=RetryConfig(
            max_attempts=_int_env("RETRY_ATTEMPTS", 3),
            base_delay=_float_env("RETRY_BASE_DELAY", 1.0),
        ),
        database=DatabaseConfig(
            path=os.getenv("DOCQA_DB_PATH", str(DATA_DIR / "knowledge.db")),
        ),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
    )


# Load settings once and reuse
_settings = None

def get_settings() -> Settings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings


def reset_settings():
    """Forget the cached settings (used by tests after changing the environment)."""
    global _settings
    _settings = None
