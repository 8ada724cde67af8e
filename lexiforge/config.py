"""Application configuration management.

Loads settings from environment with validation. Only the outer edges
(API container, CLI, logging) read settings; services receive explicit
config objects in their constructors.
"""

from functools import lru_cache
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DAY = 60 * 60 * 24


def default_cache_ttls() -> dict[str, int]:
    """Per-operation cache TTLs in seconds."""
    return {
        "suggest_phoneme_inventory": 7 * DAY,
        "fill_paradigm_gaps": 7 * DAY,
        "generate_lexicon": 7 * DAY,
        "generate_corpus": DAY,
        "explain_rule": 30 * DAY,
        "check_consistency": 60 * 60,
    }


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        protected_namespaces=()
    )

    # Model provider (OpenAI-compatible chat completions)
    model_api_key: str = ""
    model_name: str = "stepfun/step-3.5-flash:free"
    model_base_url: str = "https://openrouter.ai/api/v1"
    model_timeout_seconds: float = 30.0
    model_max_retries: int = 5
    model_max_tokens: int = 4096
    model_temperature: float = 0.7
    site_url: str = "https://lexiforge.dev"
    site_name: str = "Lexiforge"

    # Cache
    cache_backend: str = "memory"
    cache_key_prefix: str = "lexiforge:llm:"
    cache_ttls: dict[str, int] = Field(default_factory=default_cache_ttls)

    # Redis
    redis_host: str = "localhost"
    redis_port: int = 6379

    # Executor
    max_attempts: int = 3

    # Pipeline
    lexicon_batch_size: int = 5
    target_lexicon_size: int = 50
    max_lexicon_batches: int = 15
    corpus_min_lexicon: int = 50
    corpus_sample_count: int = 5
    inter_call_delay_seconds: float = 12.0

    # API
    api_port: int = 8000
    api_host: str = "0.0.0.0"
    cors_origins: list[str] = Field(default=["http://localhost:5173"])

    # Development
    debug: bool = False
    log_level: str = "INFO"

    @property
    def redis_url(self) -> str:
        """Redis connection URL."""
        return f"redis://{self.redis_host}:{self.redis_port}"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()

