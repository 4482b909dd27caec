# Assumptions:
# - Configuration management using environment variables
# - Pydantic Settings for validation
# - Defaults reproduce the demo service (otel-docs / dev / 0.1, local collector)

import logging

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from otel_docs.domain.errors import ConfigurationError


class Settings(BaseSettings):
    """Application settings"""

    # Resource
    service_name: str = "otel-docs"
    environment: str = "dev"
    service_version: str = "0.1"

    # OpenTelemetry
    otel_exporter_otlp_endpoint: str = "http://localhost:4317"
    otel_exporter_otlp_insecure: bool = True
    tracer_name: str = "client-tracer"
    meter_name: str = "otel-docs"
    counter_name: str = "otel.docs.custom.metric"
    metric_export_interval_millis: int = Field(default=60000, gt=0)
    # 0 skips the collector readiness check at startup
    startup_check_timeout_seconds: float = Field(default=5.0, ge=0)
    shutdown_timeout_seconds: float = Field(default=30.0, gt=0)

    # Logging
    log_file: str = "/var/log/app/app.log"
    log_level: str = "INFO"
    log_source: str = "app"

    # Work loop
    span_name: str = "work"
    work_interval_seconds: float = Field(default=5.0, gt=0)
    work_max_iterations: int | None = Field(default=None, ge=1)

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        level = value.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"unknown log level: {value}")
        return level

    @property
    def shutdown_timeout_millis(self) -> int:
        return int(self.shutdown_timeout_seconds * 1000)


def load_settings(**overrides) -> Settings:
    """Build settings from the environment, raising ConfigurationError on invalid input"""
    try:
        return Settings(**overrides)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid settings: {e}") from e

