"""Configuration management for the Recovery Advisor application."""

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

env_path = Path(__file__).parent.parent / ".env"

if env_path.exists():
    load_dotenv(env_path)


def _split_names(raw: str) -> tuple[str, ...]:
    return tuple(name.strip() for name in raw.split(",") if name.strip())


class Config:
    """Application configuration loaded from environment variables."""

    # OpenAI Configuration
    @classmethod
    def get_openai_api_key(cls) -> str:
        """Get OpenAI API key from environment variables.

        Returns:
            OpenAI API key from environment or empty string if not set.
        """
        return os.getenv("OPENAI_API_KEY", "")

    OPENAI_BASE_URL: str | None = os.getenv("OPENAI_BASE_URL")
    EMBEDDING_MODEL: str = os.getenv("EMBEDDING_MODEL", "text-embedding-3-small")

    # Logging Configuration
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
    OPENAI_LOG_LEVEL: str = os.getenv("OPENAI_LOG_LEVEL", "WARNING").upper()

    # Application Settings
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")

    # Vector Store Configuration
    VECTOR_BACKEND: str = os.getenv("VECTOR_BACKEND", "faiss").lower()
    VECTOR_STORE_DB_PATH: Path = Path(
        os.getenv("VECTOR_STORE_DB_PATH", "data/vector_store.db")
    )
    VECTOR_STORE_DIR: Path = Path(os.getenv("VECTOR_STORE_DIR", "data/vectors"))
    FAISS_INDEX_PATH: Path = Path(
        os.getenv("FAISS_INDEX_PATH", "data/faiss/index.faiss")
    )

    # Document Corpus
    DOCUMENTS_DIR: Path = Path(os.getenv("DOCUMENTS_DIR", "data/documents"))
    JURISDICTIONS: tuple[str, ...] = _split_names(
        os.getenv("JURISDICTIONS", "LA County,Pasadena County")
    )

    # Persistence and Audit Logs
    ANALYTICS_DB_PATH: Path = Path(os.getenv("ANALYTICS_DB_PATH", "data/advisor.db"))
    BIAS_LOG_PATH: Path = Path(os.getenv("BIAS_LOG_PATH", "logs/bias_fairness.log"))
    ERROR_LOG_PATH: Path = Path(os.getenv("ERROR_LOG_PATH", "logs/error.log"))
    BIAS_LOG_TAIL: int = int(os.getenv("BIAS_LOG_TAIL", "100"))

    # Conversation Sessions
    SESSION_TTL_SECONDS: int = int(os.getenv("SESSION_TTL_SECONDS", "21600"))
    MAX_SESSIONS: int = int(os.getenv("MAX_SESSIONS", "10000"))

    # Knowledge Base Readiness
    READY_POLL_INTERVAL: float = float(os.getenv("READY_POLL_INTERVAL", "0.5"))
    READY_MAX_POLLS: int = int(os.getenv("READY_MAX_POLLS", "10"))

    # Retrieval and Conversation Constants (fixed for response compatibility)
    MAX_HISTORY_TURNS = 5
    QUERY_CONTEXT_TURNS = 3
    CHAT_TOP_K = 3
    SEARCH_TOP_K = 5
    CHAT_DISTANCE_THRESHOLD = 2.0
    SEARCH_DISTANCE_THRESHOLD = 1.5
    UNCERTAINTY_THRESHOLD = 0.4
    CHUNK_MERGE_WINDOW = 2
    MIN_KEYWORD_LENGTH = 3
    HANDOFF_METHOD = "email"

    # API Header Configuration
    API_USER_AGENT: str = os.getenv("API_USER_AGENT", "RecoveryAdvisor/1.0")

    @classmethod
    def validate(cls) -> None:
        """Validate required configuration values.

        Raises:
            ValueError: If OPENAI_API_KEY is not set or the backend is unknown.
        """
        if not cls.get_openai_api_key():
            msg = (
                "OPENAI_API_KEY is required. Please set it in .env file or environment."
            )
            raise ValueError(msg)
        if cls.VECTOR_BACKEND not in {"faiss", "sqlite"}:
            msg = f"Unsupported VECTOR_BACKEND: {cls.VECTOR_BACKEND}"
            raise ValueError(msg)

    @classmethod
    def is_development(cls) -> bool:
        """Check if running in development environment.

        Returns:
            True if environment is development.
        """
        return cls.ENVIRONMENT.lower() == "development"

    @classmethod
    def is_production(cls) -> bool:
        """Check if running in production environment.

        Returns:
            True if environment is production.
        """
        return cls.ENVIRONMENT.lower() == "production"

    @classmethod
    def setup_logging(cls) -> None:
        """Setup basic logging configuration.

        Configure logging once at application startup with:
        - Console output for all levels
        - Simple, readable format
        - Configurable level via environment variable
        """
        logging.basicConfig(
            level=getattr(logging, cls.LOG_LEVEL, logging.INFO),
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )

        third_party_level = getattr(logging, cls.OPENAI_LOG_LEVEL, logging.WARNING)
        for name in ("openai", "httpx", "faiss"):
            logging.getLogger(name).setLevel(third_party_level)

    @classmethod
    def get_logger(cls, name: str) -> logging.Logger:
        """Get a logger with the specified name.

        Args:
            name: Logger name (typically __name__)

        Returns:
            Logger instance
        """
        return logging.getLogger(name)

    @classmethod
    def get_api_headers(cls) -> dict[str, str]:
        """Build default headers for outbound API calls.

        Returns:
            Mapping of header names to values used on outbound HTTP requests.
        """
        headers: dict[str, str] = {}

        if cls.API_USER_AGENT:
            headers["User-Agent"] = cls.API_USER_AGENT

        return headers


config = Config()
