from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "hirefeed-api"
    environment: str = "dev"
    log_level: str = "INFO"
    store_backend: Literal["postgres", "memory"] = "postgres"
    database_url: str | None = None
    database_pool_min_size: int = 1
    database_pool_max_size: int = 10
    database_auto_migrate: bool = True
    supabase_url: str | None = None
    supabase_anon_key: str | None = None
    auth_timeout_seconds: float = 5.0
    caption_max_length: int = 256
    comment_max_length: int = 1000
    like_toggle_max_attempts: int = 3
    feed_page_size_max: int = 100
    otel_enabled: bool = True
    otel_service_name: str = "hirefeed-api"
    otel_exporter_otlp_endpoint: str | None = None
    otel_exporter_otlp_headers: str | None = None
    otel_trace_sample_ratio: float = 1.0
    otel_log_correlation: bool = True
    otel_excluded_urls: str = "healthz,readyz"

    model_config = SettingsConfigDict(env_prefix="HF_", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    return Settings()
