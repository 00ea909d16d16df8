"""Centralized configuration using Pydantic BaseSettings"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppConfig(BaseSettings):
    """Application configuration with environment variable support"""

    # Registries
    # Note: per-registry source URLs and sync settings live in registries.yaml
    registries_config_path: str = Field(
        default="registries.yaml", description="Path to the registries YAML file"
    )
    output_root: str = Field(
        default="./registries",
        description="Root directory; each registry is mirrored into <output_root>/<name>",
    )
    global_index_path: str = Field(
        default="./index.json", description="Path of the combined index of all registries"
    )

    # HTTP
    user_agent: str = Field(
        default="registry-mirror/1.0", description="User-Agent header sent upstream"
    )
    http_timeout: float = Field(
        default=30.0, gt=0, le=300, description="Transport timeout per request in seconds"
    )

    # Logging
    log_level: str = Field(default="INFO", description="Root log level for the CLI")

    # OpenTelemetry
    otel_enabled: bool = Field(default=False, description="Enable OpenTelemetry logging")
    otel_tracing_enabled: bool = Field(
        default=False, description="Enable OpenTelemetry tracing for HTTP requests"
    )
    otel_endpoint: str = Field(
        default="http://localhost:4318",
        description="OpenTelemetry collector endpoint (HTTP/protobuf)",
    )
    otel_service_name: str = Field(
        default="registry-mirror", description="Service name for OpenTelemetry"
    )
    otel_service_version: str = Field(
        default="1.0.0", description="Service version for OpenTelemetry"
    )

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )


# Global config instance
config = AppConfig()
