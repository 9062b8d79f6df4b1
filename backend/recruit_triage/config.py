"""Application configuration. All sensitive config from .env."""
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """App settings from environment."""

    # Generative tier - set OPENAI_API_KEY to enable it
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    openai_temperature: float = 0.1
    openai_max_tokens: int = 400
    generative_tier_enabled: bool = True

    # Statistical tier (local transformers pipelines, loaded once per process)
    statistical_tier_enabled: bool = True
    zero_shot_model: str = "typeform/mobilebert-uncased-mnli"
    question_answering_model: str = "distilbert-base-uncased-distilled-squad"
    statistical_device: int = -1  # -1 = CPU

    # Extraction tuning
    fast_path_max_body_chars: int = 50
    context_max_chars: int = 2000
    title_max_chars: int = 50
    # Per-call timeout for model collaborators; None keeps calls unbounded.
    model_call_timeout_s: Optional[float] = None

    # Attachments
    max_attachment_bytes: int = 10 * 1024 * 1024  # 10MB
    max_attachment_chars: int = 50000

    # Redis (short-TTL dedup markers)
    redis_url: str = "redis://localhost:6379/0"
    dedup_ttl_s: int = 60 * 60
    batch_concurrency: int = 4

    # Logging / HTTP
    log_level: str = "INFO"
    cors_origins: list[str] = ["http://localhost:3000", "http://localhost:5173"]

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()
