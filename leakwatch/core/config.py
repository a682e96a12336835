from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    environment: str = "dev"
    store_path: str = "leakwatch-findings.json"
    config_path: str = "leakwatch-config.json"
    probe_timeout_seconds: float = 8.0
    env_strict_identifiers: bool = True
    user_agent: str = "leakwatch-probe/1.0"
    default_enabled_kinds: list[str] = ["git", "env"]
    default_max_stored_findings: int = 100
    default_notify_on_new: bool = True
    default_pipeline_enabled: bool = True
    debug: bool = False
    otel_enabled: bool = True
    otel_service_name: str = "leakwatch"
    otel_exporter_otlp_endpoint: str | None = None
    otel_exporter_otlp_headers: str | None = None
    otel_trace_sample_ratio: float = 1.0
    otel_log_correlation: bool = True

    model_config = SettingsConfigDict(env_prefix="LEAKWATCH_", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    return Settings()
