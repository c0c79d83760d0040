"""Environment configuration management for the constellation server."""

from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings

_CONFIG_DIR = Path(__file__).resolve().parent


class Settings(BaseSettings):
    """Application settings from environment variables."""

    # Server configuration
    APP_NAME: str = "Thought Constellation API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    HOST: str = "0.0.0.0"
    PORT: int = 9127

    # Telemetry persistence
    REDIS_URL: str = "redis://localhost:6379"

    # External providers (Ollama serves both narrative generation and embeddings)
    OLLAMA_URL: Optional[str] = "http://localhost:11434"
    NARRATIVE_PROVIDER_ENABLED: bool = True
    EMBEDDING_PROVIDER_ENABLED: bool = True
    PROVIDER_TIMEOUT_SECONDS: float = 60.0
    LLM_POLICY_FILE: str = str(_CONFIG_DIR / "llm_policies.yaml")

    # Analysis engine
    CONNECTION_THRESHOLD: float = 0.2
    DEFAULT_MERGE_THRESHOLD: float = 0.20

    # Layout canvas
    CANVAS_WIDTH: float = 2400.0
    CANVAS_HEIGHT: float = 1600.0
    CANVAS_PADDING: float = 120.0

    # CORS settings
    CORS_ORIGINS: list[str] = ["http://localhost:8080", "http://localhost:5173"]
    CORS_CREDENTIALS: bool = True
    CORS_METHODS: list[str] = ["*"]
    CORS_HEADERS: list[str] = ["*"]

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"  # Allow extra env vars without error


# Global settings instance
settings = Settings()


def is_provider_configured(kind: str) -> bool:
    """Whether the external provider for ``kind`` ("narrative" or "embedding") can be called."""
    if not settings.OLLAMA_URL:
        return False
    flags = {
        "narrative": settings.NARRATIVE_PROVIDER_ENABLED,
        "embedding": settings.EMBEDDING_PROVIDER_ENABLED,
    }
    return flags.get(kind, False)


def get_cors_config() -> dict:
    """Get CORS configuration."""
    return {
        "allow_origins": settings.CORS_ORIGINS,
        "allow_credentials": settings.CORS_CREDENTIALS,
        "allow_methods": settings.CORS_METHODS,
        "allow_headers": settings.CORS_HEADERS,
    }
