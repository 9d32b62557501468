from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "hirelink-api"
    environment: str = "dev"
    api_key_header: str = "X-API-Key"
    storage_backend: Literal["postgres", "memory"] = "postgres"
    database_url: str | None = None
    database_pool_min_size: int = 1
    database_pool_max_size: int = 10
    database_command_timeout_seconds: float = 15.0
    supabase_url: str | None = None
    supabase_anon_key: str | None = None
    supabase_service_role_key: str | None = None
    storage_bucket: str = "chat-attachments"
    auth_timeout_seconds: float = 5.0
    upload_timeout_seconds: float = 30.0
    upload_max_bytes: int = 10 * 1024 * 1024
    mail_api_url: str = "https://api.brevo.com/v3/smtp/email"
    mail_api_key: str | None = None
    mail_sender: str | None = None
    mail_timeout_seconds: float = 10.0
    client_base_url: str = "http://localhost:5173"
    employment_reconcile_max_batch: int = 500
    otel_enabled: bool = True
    otel_service_name: str = "hirelink-api"
    otel_exporter_otlp_endpoint: str | None = None
    otel_exporter_otlp_headers: str | None = None
    otel_trace_sample_ratio: float = 1.0
    otel_log_correlation: bool = True

    model_config = SettingsConfigDict(env_prefix="HL_", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    return Settings()
