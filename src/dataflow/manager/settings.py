"""Centralized configuration using pydantic-settings.

All configuration is loaded from environment variables and .env files.
This is the single source of truth for all manager configuration.
"""

from enum import Enum
from typing import Annotated, Any

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Environment(str, Enum):
    """Application environment."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"
    TEST = "test"


class LogLevel(str, Enum):
    """Log levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class AuditQuerySource(str, Enum):
    """Time-series backend that serves audit queries."""

    MYSQL = "MYSQL"
    ELASTICSEARCH = "ELASTICSEARCH"
    CLICKHOUSE = "CLICKHOUSE"


def _split_csv(value: Any) -> Any:
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    return value


class Settings(BaseSettings):
    """Main application settings.

    All settings can be overridden via environment variables.
    For nested settings, use double underscore: AUDIT__QUERY_SOURCE=CLICKHOUSE
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        env_nested_delimiter="__",
        extra="ignore",
    )

    # ============================================================
    # Core Application Settings
    # ============================================================

    app_name: str = Field("dataflow-manager", description="Application name")
    environment: Environment = Field(Environment.DEVELOPMENT, description="Deployment environment")

    # ============================================================
    # Database Configuration
    # ============================================================

    class DatabaseSettings(BaseModel):
        """Relational store holding audit configuration, topology and raw audit rows."""

        url: str | None = Field(None, description="Full SQLAlchemy database URL")
        host: str = Field("localhost", description="Database host")
        port: int = Field(3306, description="Database port")
        database: str = Field("manager", description="Database name")
        username: str = Field("root", description="Database username")
        password: str = Field("", description="Database password")

        # Connection pool
        pool_size: int = Field(10, description="Connection pool size")
        max_overflow: int = Field(20, description="Max overflow connections")
        pool_timeout: int = Field(30, description="Pool timeout in seconds")
        pool_recycle: int = Field(3600, description="Recycle connections after seconds")
        pool_pre_ping: bool = Field(True, description="Test connections before use")

        echo: bool = Field(False, description="Echo SQL statements")

    database: DatabaseSettings = DatabaseSettings()  # type: ignore[call-arg]

    # ============================================================
    # Elasticsearch Configuration
    # ============================================================

    class ElasticsearchSettings(BaseModel):
        """Elasticsearch cluster holding per-day audit indices."""

        url: str = Field("http://localhost:9200", description="Elasticsearch URL")
        username: str | None = Field(None, description="Basic auth username")
        password: str | None = Field(None, description="Basic auth password")
        verify_certs: bool = Field(True, description="Verify TLS certificates")
        request_timeout: float = Field(30.0, description="Client request timeout in seconds")

    elasticsearch: ElasticsearchSettings = ElasticsearchSettings()  # type: ignore[call-arg]

    # ============================================================
    # ClickHouse Configuration
    # ============================================================

    class ClickHouseSettings(BaseModel):
        """Columnar warehouse holding raw audit rows."""

        url: str | None = Field(
            None,
            description="SQLAlchemy URL, e.g. clickhouse+asynch://default:@localhost:9000/audit",
        )
        table: str = Field("audit_data", description="Raw audit table name")
        pool_size: int = Field(5, description="Connection pool size")
        pool_recycle: int = Field(3600, description="Recycle connections after seconds")

    clickhouse: ClickHouseSettings = ClickHouseSettings()  # type: ignore[call-arg]

    # ============================================================
    # Audit Query Configuration
    # ============================================================

    class AuditSettings(BaseModel):
        """Audit query engine configuration."""

        query_source: AuditQuerySource = Field(
            AuditQuerySource.MYSQL, description="Active audit query backend"
        )
        # 3/4: agent received/sent, 5/6: data proxy received/sent
        admin_ids: Annotated[list[str], NoDecode] = Field(
            default_factory=lambda: ["3", "4", "5", "6"],
            description="Audit ids always returned to tenant admins",
        )
        user_ids: Annotated[list[str], NoDecode] = Field(
            default_factory=lambda: ["3", "4", "5", "6"],
            description="Audit ids always returned to regular users",
        )
        backend_timeout_seconds: float = Field(
            30.0, gt=0, description="Timeout for a single backend query"
        )
        max_concurrent_queries: int = Field(
            8, gt=0, description="Maximum backend queries in flight per request"
        )
        isolate_backend_failures: bool = Field(
            True,
            description="Treat relational/search driver errors as zero rows for that audit id",
        )

        @field_validator("admin_ids", "user_ids", mode="before")
        @classmethod
        def split_ids(cls, v: Any) -> Any:
            """Accept comma-separated id lists."""
            return _split_csv(v)

    audit: AuditSettings = AuditSettings()  # type: ignore[call-arg]

    # ============================================================
    # Observability
    # ============================================================

    class ObservabilitySettings(BaseModel):
        """Observability configuration."""

        log_level: LogLevel = Field(LogLevel.INFO, description="Log level")
        log_format: str = Field("json", description="Log format (json or text)")
        enable_correlation_ids: bool = Field(True, description="Enable correlation IDs")

    observability: ObservabilitySettings = ObservabilitySettings()  # type: ignore[call-arg]

    # ============================================================
    # Validation & Helpers
    # ============================================================

    @field_validator("environment", mode="before")
    def validate_environment(cls, v: str) -> str:
        """Validate environment."""
        if isinstance(v, str):
            return Environment(v.lower())
        return v

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == Environment.PRODUCTION

    @property
    def is_development(self) -> bool:
        """Check if running in development."""
        return self.environment == Environment.DEVELOPMENT


# Global settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get global settings instance (singleton)."""
    global _settings
    if _settings is None:
        _settings = Settings()  # type: ignore
    return _settings


# Convenience export
settings = get_settings()
