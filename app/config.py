"""Application configuration and environment-driven settings.

Defines the Settings class based on pydantic-settings to centralize configuration for:
- API keys and model names (chat + embeddings)
- Data stores (PostgreSQL/pgvector knowledge base, Redis chat history)
- Retrieval defaults (top-k, similarity threshold)
- Conversation orchestration limits (step budget, wall-clock cap)
- The events search API used by the searchEvents tool
- Optional observability (Langfuse) and log level

A light-weight local safety warning is logged if OPENAI_API_KEY is not set when not running in Docker.
"""
import logging
import os
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Strongly-typed application settings loaded from environment variables.

    Uses pydantic-settings to populate fields from a .env file or process env.
    See individual field names for semantics and safe defaults.
    """
    # Required
    OPENAI_API_KEY: str = Field(default="", description="OpenAI API key")

    # Models
    OPENAI_MODEL: str = "gpt-4o"
    OPENAI_EMBEDDING_MODEL: str = "text-embedding-ada-002"  # 1536 dims

    # Data stores
    DATABASE_URL: str = "postgresql+psycopg2://rag_user:rag_pass@db:5432/rag_db"
    REDIS_URL: str = "redis://redis:6379/0"
    CHAT_HISTORY_TTL_SECONDS: int = 0  # 0 keeps history forever
    KNOWLEDGE_STORE_BACKEND: Literal["pgvector", "memory"] = "pgvector"
    CHAT_STORE_BACKEND: Literal["redis", "memory"] = "redis"

    # Retrieval
    RETRIEVAL_TOP_K: int = 4
    RETRIEVAL_MIN_SIMILARITY: float = 0.5  # 0-1

    # Conversation orchestration
    MAX_STEPS: int = 5
    MAX_DURATION_SECONDS: float = 30.0

    # Events search tool
    EVENTS_API_URL: str = "https://real-time-events-search.p.rapidapi.com/search-events"
    EVENTS_API_KEY: str = ""
    EVENTS_API_HOST: str = "real-time-events-search.p.rapidapi.com"
    EVENTS_API_TIMEOUT_SECONDS: int = 15

    # Auth
    SESSION_COOKIE_NAME: str = "session_token"

    # Observability (optional)
    LOG_LEVEL: str = "INFO"
    LANGFUSE_HOST: str = ""
    LANGFUSE_PUBLIC_KEY: str = ""
    LANGFUSE_SECRET_KEY: str = ""

    # Derived
    @property
    def EMBEDDING_DIM(self) -> int:
        """Embedding dimension for the configured embedding model.

        Returns:
            int: The vector dimension inferred from OPENAI_EMBEDDING_MODEL.
        """
        model = self.OPENAI_EMBEDDING_MODEL.lower()
        if "text-embedding-3-large" in model:
            return 3072
        # ada-002 and 3-small share the same width
        return 1536

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)


settings = Settings()

# Safety check for local dev (inside API container this must be set)
if os.environ.get("RUNNING_IN_DOCKER", "0") == "0":
    if not settings.OPENAI_API_KEY:
        # Avoid raising to allow local scaffolding before setting .env
        logger.warning("OPENAI_API_KEY not set. Set it in .env before running ingestion or /api/chat.")
