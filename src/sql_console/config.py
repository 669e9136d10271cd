"""Configuration system for SQL Console.

Loads configuration from:
1. JSON file specified by SQL_CONSOLE_CONFIG env var
2. Environment variable overrides with SQL_CONSOLE_ prefix
   - Nested keys use double underscore: SQL_CONSOLE_QUERY__MAX_STATEMENTS
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class QueryConfig(BaseSettings):
    """Configuration for statement execution."""

    model_config = SettingsConfigDict(
        env_prefix="SQL_CONSOLE_QUERY__",
        env_nested_delimiter="__",
    )

    max_result_rows: int = Field(
        default=10000, ge=1, description="Maximum rows returned per statement"
    )
    max_statements: int = Field(
        default=100, ge=1, description="Maximum statements accepted in one submission"
    )
    default_stop_on_error: bool = Field(
        default=False, description="Stop a session at its first failing statement"
    )
    enforce_row_limit: bool = Field(
        default=False, description="Rewrite SELECT statements to cap result size"
    )
    history_size: int = Field(
        default=200, ge=0, description="Number of finished sessions kept in memory"
    )


class DuckDBConfig(BaseSettings):
    """Configuration for the bundled DuckDB connections."""

    model_config = SettingsConfigDict(
        env_prefix="SQL_CONSOLE_DUCKDB__",
        env_nested_delimiter="__",
    )

    memory_limit: str = Field(
        default="4GB", description="DuckDB memory limit (e.g., '4GB', '512MB')"
    )
    threads: int = Field(default=4, ge=1, description="Number of DuckDB threads")
    connections: dict[str, str] = Field(
        default_factory=lambda: {"default": ":memory:"},
        description="Connection id to DuckDB database path",
    )


class ServerConfig(BaseSettings):
    """Configuration for the HTTP server."""

    model_config = SettingsConfigDict(
        env_prefix="SQL_CONSOLE_SERVER__",
        env_nested_delimiter="__",
    )

    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8080, ge=1, le=65535, description="Server port")


class OTelConfig(BaseSettings):
    """Configuration for OpenTelemetry."""

    model_config = SettingsConfigDict(
        env_prefix="SQL_CONSOLE_OTEL__",
        env_nested_delimiter="__",
    )

    enabled: bool = Field(default=False, description="Enable OpenTelemetry instrumentation")
    endpoint: str = Field(
        default="http://localhost:4317", description="OTLP exporter endpoint"
    )
    insecure: bool = Field(default=True, description="Use an insecure gRPC channel")
    service_name: str = Field(default="sql-console", description="Service name for traces")


class Settings(BaseSettings):
    """Root configuration for SQL Console."""

    model_config = SettingsConfigDict(
        env_prefix="SQL_CONSOLE_",
        env_nested_delimiter="__",
        env_file=None,
        extra="ignore",
    )

    query: QueryConfig = Field(default_factory=QueryConfig)
    duckdb: DuckDBConfig = Field(default_factory=DuckDBConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    otel: OTelConfig = Field(default_factory=OTelConfig)

    @model_validator(mode="before")
    @classmethod
    def load_from_json_file(cls, data: dict[str, Any]) -> dict[str, Any]:
        """Load configuration from JSON file if SQL_CONSOLE_CONFIG is set."""
        import os

        config_path = os.environ.get("SQL_CONSOLE_CONFIG")
        if config_path:
            path = Path(config_path)
            if not path.exists():
                raise ValueError(f"Config file not found: {config_path}")
            with path.open() as f:
                file_config = json.load(f)
            for key, value in file_config.items():
                if key not in data:
                    data[key] = value
                elif isinstance(value, dict) and isinstance(data.get(key), dict):
                    data[key] = {**value, **data[key]}
        return data


_settings: Settings | None = None


def get_settings() -> Settings:
    """Get the application settings (cached)."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def load_settings(config_path: str | Path | None = None) -> Settings:
    """Load settings, optionally from a specific config file.

    Args:
        config_path: Path to JSON config file. If None, uses SQL_CONSOLE_CONFIG env var.

    Returns:
        Loaded Settings instance.
    """
    import os

    if config_path is not None:
        os.environ["SQL_CONSOLE_CONFIG"] = str(config_path)

    global _settings
    _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset cached settings (useful for testing)."""
    global _settings
    _settings = None
