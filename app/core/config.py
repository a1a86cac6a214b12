"""Application configuration managed via environment variables."""
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "Study Plan Backend"
    debug: bool = False
    log_level: str = "INFO"
    opik_enabled: bool = False
    opik_api_key: str | None = None
    opik_project: str = "study-plan"

    # Providers are tried in this order: primary first, then secondary.
    primary_provider_name: str = "deepseek"
    primary_provider_base_url: str = "https://api.deepseek.com/v1"
    primary_provider_model: str = "deepseek-chat"
    primary_provider_api_key: str | None = None
    secondary_provider_name: str = "openrouter"
    secondary_provider_base_url: str = "https://openrouter.ai/api/v1"
    secondary_provider_model: str = "anthropic/claude-3-opus"
    secondary_provider_api_key: str | None = None

    provider_timeout_seconds: float = 120.0
    provider_max_attempts: int = 2
    provider_retry_delay_seconds: float = 1.0
    generation_temperature: float = 0.3
    generation_max_tokens: int = 8000

    max_daily_plan_days: int = 30
    default_knowledge_points: int = 30

    diagnostics_provider: str = "file"
    diagnostics_dir: str = "logs/study_plans"


@lru_cache
def get_settings() -> Settings:
    """Return a cached Settings instance."""
    return Settings()


settings = get_settings()
