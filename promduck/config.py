"""Configuration management using pydantic-settings."""

from pathlib import Path
from typing import Any, Literal, Tuple, Type

import yaml
from pydantic import Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

# section -> {yaml key: settings field}
_YAML_FIELDS: dict[str, dict[str, str]] = {
    "server": {
        "host": "promduck_host",
        "port": "promduck_port",
        "telemetry_path": "telemetry_path",
    },
    "storage": {
        "database_path": "database_path",
        "table": "table_name",
        "timeout_seconds": "remote_timeout_seconds",
    },
    "duckdb": {
        "memory_limit": "duckdb_memory_limit",
        "threads": "duckdb_threads",
        "pool_size": "duckdb_pool_size",
    },
    "limits": {
        "max_request_size_mb": "max_request_size_mb",
    },
    "logging": {
        "level": "log_level",
        "format": "log_format",
    },
    "tracing": {
        "enable": "tracing_enabled",
        "exporter": "tracing_exporter",
        "endpoint": "tracing_endpoint",
        "service_name": "tracing_service_name",
    },
}


def load_yaml_config(config_path: Path | None = None) -> dict[str, Any]:
    """
    Load configuration from YAML file.

    Priority:
    1. Explicitly provided config_path
    2. ~/.promduck/config.yaml (default location)
    3. Empty dict if no file exists

    Args:
        config_path: Optional path to config file

    Returns:
        Dictionary of configuration values (flattened from nested YAML)
    """
    if config_path is None:
        config_path = Path.home() / ".promduck" / "config.yaml"

    if not config_path.exists():
        return {}

    try:
        with open(config_path) as f:
            yaml_data = yaml.safe_load(f) or {}

        flattened = {}

        for section, fields in _YAML_FIELDS.items():
            values = yaml_data.get(section)
            if not isinstance(values, dict):
                continue
            for yaml_key, field_name in fields.items():
                if yaml_key in values:
                    flattened[field_name] = values[yaml_key]

        return flattened

    except Exception as e:
        import warnings

        warnings.warn(f"Failed to load config from {config_path}: {e}")
        return {}


_config_path: Path | None = None


class YamlSettingsSource(PydanticBaseSettingsSource):
    """Settings source that loads configuration from the YAML file."""

    def get_field_value(self, field: Any, field_name: str) -> Tuple[Any, str, bool]:
        """Not used since we override __call__."""
        return None, field_name, False

    def __call__(self) -> dict[str, Any]:
        """Load configuration from YAML file."""
        return load_yaml_config(_config_path)


class Settings(BaseSettings):
    """
    promduck configuration settings.

    Configuration priority (highest to lowest):
    1. Environment variables (e.g., PROMDUCK_PORT=9201)
    2. YAML configuration file (~/.promduck/config.yaml)
    3. Default values defined in this class
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    promduck_host: str = Field(default="0.0.0.0", description="Server bind address")
    promduck_port: int = Field(default=9201, ge=1, le=65535, description="Server port")
    telemetry_path: str = Field(
        default="/metrics", description="Path exposing adapter metrics"
    )

    database_path: str = Field(
        default="~/.promduck/metrics.duckdb",
        description="DuckDB database file (or :memory:)",
    )
    table_name: str = Field(default="metrics", description="Metrics table name")
    remote_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Deadline for each warehouse insert or query",
    )

    duckdb_memory_limit: str = Field(default="4GB", description="DuckDB memory limit")
    duckdb_threads: int = Field(default=4, ge=1, description="DuckDB thread count")
    duckdb_pool_size: int = Field(
        default=8, ge=1, description="DuckDB connection pool size"
    )

    max_request_size_mb: int = Field(
        default=32, ge=1, description="Max compressed remote request size"
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    log_format: Literal["json", "text"] = Field(
        default="json", description="Log format"
    )

    tracing_enabled: bool = Field(
        default=False, description="Export OpenTelemetry traces for /write and /read"
    )
    tracing_exporter: Literal[
        "otlp", "otlp-grpc", "otlp-http", "jaeger", "zipkin", "stdout", "console"
    ] = Field(default="otlp-grpc", description="Span exporter")
    tracing_endpoint: str = Field(
        default="", description="Collector endpoint (exporter default when empty)"
    )
    tracing_service_name: str = Field(
        default="promduck", description="service.name resource attribute"
    )

    @field_validator("database_path")
    @classmethod
    def validate_database_path(cls, v: str) -> str:
        """Expand ~ in file-backed database paths."""
        if v == ":memory:" or v.startswith(":memory:"):
            return v
        return str(Path(v).expanduser())

    @field_validator("telemetry_path")
    @classmethod
    def validate_telemetry_path(cls, v: str) -> str:
        """Telemetry path must be absolute."""
        if not v.startswith("/"):
            raise ValueError("Telemetry path must start with '/'")
        return v

    @property
    def is_in_memory(self) -> bool:
        """Check if the warehouse lives in memory only."""
        return self.database_path.startswith(":memory:")

    @property
    def max_request_size_bytes(self) -> int:
        """Get max request size in bytes."""
        return self.max_request_size_mb * 1024 * 1024

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        """
        Customize settings sources priority.

        Priority order (highest to lowest):
        1. Explicit kwargs (init_settings) - for testing and programmatic config
        2. Environment variables
        3. YAML configuration file
        4. .env file
        5. Field defaults
        """
        return (
            init_settings,
            env_settings,
            YamlSettingsSource(settings_cls),
            dotenv_settings,
        )


_settings: Settings | None = None


def get_settings(config_path: Path | None = None, reload: bool = False) -> Settings:
    """
    Get global settings instance.

    Args:
        config_path: Optional path to YAML config file (defaults to ~/.promduck/config.yaml)
        reload: If True, force reload settings (useful for testing)

    Returns:
        Settings instance with merged configuration
    """
    global _settings, _config_path
    if _settings is None or reload:
        _config_path = config_path

        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset settings singleton (useful for testing)."""
    global _settings
    _settings = None
