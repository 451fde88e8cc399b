"""
Application settings loaded from environment variables.

Uses pydantic-settings for validation and type safety.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    """
    Application settings.

    All values loaded from .env file or environment variables.
    Validation happens automatically on startup.
    """

    model_config = SettingsConfigDict(
        env_file=(".env", "../.env"),  # Check current dir, then parent
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"  # Ignore extra env vars
    )

    # ===================
    # DIRECTORY BACKEND
    # ===================
    backend_url: str = Field(
        default="http://localhost:5000",
        description="Base URL of the directory backend"
    )
    upload_path: str = Field(
        default="/api/import/upload",
        description="Multipart upload endpoint, relative to backend_url"
    )
    hub_name: str = Field(
        default="csvImportHub",
        description="Name of the push hub exposed by the backend"
    )
    backend_api_key: Optional[str] = Field(
        None,
        description="Bearer token forwarded to the backend"
    )

    # ===================
    # TIMEOUTS (seconds)
    # ===================
    upload_timeout: float = Field(
        default=300.0,
        gt=0,
        le=3600,
        description="Ceiling for the file upload"
    )
    analysis_timeout: float = Field(
        default=120.0,
        gt=0,
        le=3600,
        description="Ceiling for waiting on the analyzed event"
    )
    import_timeout: float = Field(
        default=300.0,
        gt=0,
        le=7200,
        description="Ceiling for waiting on the import completion event"
    )
    connect_timeout: float = Field(
        default=15.0,
        gt=0,
        le=120,
        description="Ceiling for opening the push channel"
    )

    # ===================
    # PUSH CHANNEL
    # ===================
    auto_reconnect: bool = Field(
        default=True,
        description="Reconnect the push channel after an unexpected close"
    )
    reconnect_max_attempts: int = Field(
        default=5,
        ge=0,
        le=50,
        description="Reconnect attempts before giving up"
    )
    reconnect_max_delay: float = Field(
        default=30.0,
        ge=0,
        le=300,
        description="Upper bound of the exponential reconnect delay"
    )
    health_check_interval: float = Field(
        default=30.0,
        gt=0,
        le=600,
        description="Seconds between connectivity health checks"
    )

    # ===================
    # EVENT AGGREGATION
    # ===================
    progress_min_interval: float = Field(
        default=0.2,
        ge=0,
        le=5,
        description="Minimum seconds between two relayed progress events (0.2 = 5/sec)"
    )
    log_flush_interval: float = Field(
        default=0.5,
        gt=0,
        le=10,
        description="Seconds between two log batch flushes"
    )

    # ===================
    # TEMPLATES
    # ===================
    sam_account_max_length: int = Field(
        default=20,
        ge=1,
        le=256,
        description="Maximum length of a synthesized sAMAccountName"
    )

    # ===================
    # APP SETTINGS
    # ===================
    environment: str = Field(
        default="development",
        pattern="^(development|staging|production)$",
        description="Application environment"
    )
    debug: bool = Field(
        default=True,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Logging level"
    )
    api_host: str = Field(
        default="0.0.0.0",
        description="API host"
    )
    api_port: int = Field(
        default=8000,
        ge=1000,
        le=65535,
        description="API port"
    )
    cors_origins: list[str] = Field(
        default=["http://localhost:3000", "http://localhost:5173"],
        description="Origins allowed to call the API (JSON list in the environment)"
    )

    # ===================
    # COMPUTED PROPERTIES
    # ===================
    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == "production"

    @property
    def hub_url(self) -> str:
        """Absolute URL of the push hub."""
        return f"{self.backend_url.rstrip('/')}/{self.hub_name}"

    @property
    def upload_url(self) -> str:
        """Absolute URL of the upload endpoint."""
        return f"{self.backend_url.rstrip('/')}/{self.upload_path.lstrip('/')}"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload.

    Returns:
        Settings: Application settings

    Raises:
        ValidationError: If env vars are invalid
    """
    return Settings()


# For convenient imports: from config.settings import settings
settings = get_settings()
