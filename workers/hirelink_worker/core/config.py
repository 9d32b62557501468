from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    environment: str = "dev"
    api_base_url: str = "http://localhost:8000"
    module_id: str = "employment-sweeper"
    api_key: str = "local-sweeper-key"
    request_timeout_seconds: float = 10.0
    sweep_interval_seconds: float = 300.0
    sweep_batch_size: int = 100
    sweep_max_batches: int = 20
    retry_base_seconds: float = 5.0
    max_backoff_seconds: float = 120.0
    otel_enabled: bool = True
    otel_service_name: str = "hirelink-workers"
    otel_exporter_otlp_endpoint: str | None = None
    otel_exporter_otlp_headers: str | None = None
    otel_trace_sample_ratio: float = 1.0

    model_config = SettingsConfigDict(env_prefix="HL_WORKER_", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    return Settings()
