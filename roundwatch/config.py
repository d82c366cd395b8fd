"""
Roundwatch Configuration.

Pydantic Settings v2 — loads from .env, environment variables.
"""

from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # ── Application ──────────────────────────────────────────────────────
    app_name: str = "Roundwatch"
    app_version: str = "1.0.0"
    environment: str = Field(default="development", alias="ENVIRONMENT")
    debug: bool = Field(default=False, alias="DEBUG")

    # ── API ───────────────────────────────────────────────────────────────
    api_prefix: str = "/api/v1"
    allowed_origins: List[str] = Field(
        default=["http://localhost:5173"],
        alias="CORS_ORIGINS",
    )

    # ── Database ─────────────────────────────────────────────────────────
    database_url: str = Field(
        default="sqlite+aiosqlite:///./roundwatch.db",
        alias="DATABASE_URL",
    )
    db_pool_size: int = Field(default=10, alias="DB_POOL_SIZE")
    db_max_overflow: int = Field(default=20, alias="DB_MAX_OVERFLOW")
    db_pool_recycle: int = Field(default=3600, alias="DB_POOL_RECYCLE")

    # ── JWT ────────────────────────────────────────────────────────────────
    jwt_secret: str = Field(
        default="dev-jwt-secret-change-in-production",
        alias="JWT_SECRET",
    )
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    jwt_access_token_expire_minutes: int = Field(default=480, alias="JWT_EXPIRE_MINUTES")

    # ── Oracle (advisory LLM) ─────────────────────────────────────────────
    ai_enabled: bool = Field(
        default=True, alias="AI_ENABLED",
        description="Global switch for reminder generation",
    )
    oracle_enabled: bool = Field(default=True, alias="ORACLE_ENABLED")
    anthropic_api_key: str = Field(default="", alias="ANTHROPIC_API_KEY")
    oracle_model: str = Field(default="claude-haiku-4-5-20251001", alias="ORACLE_MODEL")
    oracle_timeout_seconds: float = Field(default=20.0, alias="ORACLE_TIMEOUT_SECONDS")

    # ── Risk Engine ────────────────────────────────────────────────────────
    risk_threshold: float = Field(default=50.0, alias="RISK_THRESHOLD")
    activity_window_days: int = Field(default=7, alias="ACTIVITY_WINDOW_DAYS")

    # Severity bands
    severity_critical_threshold: float = Field(default=75.0, alias="SEVERITY_CRITICAL_THRESHOLD")
    severity_high_threshold: float = Field(default=50.0, alias="SEVERITY_HIGH_THRESHOLD")
    severity_medium_threshold: float = Field(default=25.0, alias="SEVERITY_MEDIUM_THRESHOLD")

    # ── Sweep ──────────────────────────────────────────────────────────────
    sweep_hour: int = Field(default=0, alias="SWEEP_HOUR")
    sweep_minute: int = Field(default=0, alias="SWEEP_MINUTE")
    sweep_timezone: str = Field(default="UTC", alias="SWEEP_TIMEZONE")
    sweep_concurrency: int = Field(
        default=4, alias="SWEEP_CONCURRENCY",
        description="Max teams processed at once within a round",
    )
    lifecycle_respect_manual_deactivation: bool = Field(
        default=False, alias="LIFECYCLE_RESPECT_MANUAL_DEACTIVATION",
        description="Never re-activate a round an organizer switched off",
    )
    enable_scheduler: bool = Field(
        default=True, alias="ENABLE_SCHEDULER",
        description="Run the sweep scheduler inside the API process",
    )

    # ── Live events ────────────────────────────────────────────────────────
    event_queue_size: int = Field(default=100, alias="EVENT_QUEUE_SIZE")
    event_keepalive_seconds: float = Field(default=30.0, alias="EVENT_KEEPALIVE_SECONDS")

    # ── Operational ────────────────────────────────────────────────────────
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    @property
    def async_database_url(self) -> str:
        """Ensure the database URL uses an async driver."""
        url = self.database_url
        if url.startswith("postgresql://"):
            url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
        if url.startswith("sqlite://"):
            url = url.replace("sqlite://", "sqlite+aiosqlite://", 1)
        return url


settings = Settings()
