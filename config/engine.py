"""Order engine configuration.

Settings for the exposure ledger, the lock coordinator and the order
lifecycle. Values are loaded from environment variables (prefix ``ENGINE_``)
or a ``.env`` file using pydantic-settings; tolerances and retry settings
can also be kept in YAML through :class:`RetryPolicy`.
"""

import os
from typing import Literal, Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from config.base import BaseConfig


class RetryPolicy(BaseConfig):
    """
    Exponential backoff for transient failures (lock busy, store unavailable).

    Attributes:
        max_attempts: Total attempts including the first call
        initial_delay: Delay before the first retry (seconds)
        max_delay: Upper bound for a single delay (seconds)
        backoff_multiplier: Growth factor between delays
    """

    max_attempts: int = Field(default=3, ge=1, le=20, description="Total attempts")
    initial_delay: float = Field(default=0.05, ge=0.0, description="Initial delay (seconds)")
    max_delay: float = Field(default=2.0, ge=0.0, description="Max delay (seconds)")
    backoff_multiplier: float = Field(default=2.0, ge=1.0, description="Backoff multiplier")

    @model_validator(mode="after")
    def validate_delays(self) -> "RetryPolicy":
        """Ensure the initial delay does not exceed the cap."""
        if self.initial_delay > self.max_delay:
            raise ValueError(
                f"initial_delay ({self.initial_delay}) cannot exceed max_delay ({self.max_delay})"
            )
        return self


class EngineConfig(BaseSettings):
    """
    Main engine configuration loaded from environment variables.

    Attributes:
        database_url: SQLAlchemy URL of the order store
        lock_backend: Named-mutex implementation ('auto' picks postgres
            advisory locks for PostgreSQL URLs, in-process locks otherwise)
        lock_timeout_seconds: Bounded wait for a scope lock
        fill_epsilon_mw: Tolerance for fill quantity / fully-filled checks
        coverage_epsilon_mw: Tolerance for the sell coverage check
        default_validity_hours: Validity applied when a draft has no valid_until
        ledger_scope: Orders feeding the ledger ('organization' = all live
            orders of the organization, 'profile' = only the candidate's profile)
        retry: Backoff settings for transient failures
        log_level: Logging level name
        json_logs: Emit JSON log lines instead of human-readable ones
    """

    model_config = SettingsConfigDict(
        env_prefix="ENGINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    database_url: Optional[str] = Field(
        default=None,
        validate_default=True,
        description="Database URL (falls back to DATABASE_URL env var)",
    )
    lock_backend: Literal["auto", "in_process", "postgres"] = Field(
        default="auto",
        description="Lock backend for the concurrency coordinator",
    )
    lock_timeout_seconds: float = Field(
        default=5.0,
        gt=0.0,
        le=300.0,
        description="Maximum wait for a scope lock (seconds)",
    )

    fill_epsilon_mw: float = Field(default=0.0001, ge=0.0, description="Fill tolerance (MW)")
    coverage_epsilon_mw: float = Field(default=0.001, ge=0.0, description="Sell coverage tolerance (MW)")

    default_validity_hours: float = Field(
        default=24.0,
        gt=0.0,
        description="Order validity when none is supplied (hours)",
    )
    ledger_scope: Literal["organization", "profile"] = Field(
        default="organization",
        description="Which live orders feed the exposure ledger",
    )

    retry: RetryPolicy = Field(default_factory=RetryPolicy)

    log_level: str = Field(default="INFO", description="Logging level")
    json_logs: bool = Field(default=False, description="JSON formatted logs")

    @field_validator("database_url", mode="before")
    @classmethod
    def get_database_url(cls, v: Optional[str]) -> Optional[str]:
        """Fall back to DATABASE_URL env var if not set."""
        if v:
            return v
        return os.getenv("DATABASE_URL")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize and validate log level."""
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Invalid log level: {v}")
        return level

    def resolved_lock_backend(self, dialect: Optional[str] = None) -> str:
        """
        Lock backend after resolving 'auto'.

        Args:
            dialect: SQLAlchemy dialect name of the open store, preferred
                over guessing from database_url
        """
        if self.lock_backend != "auto":
            return self.lock_backend
        if dialect:
            return "postgres" if dialect == "postgresql" else "in_process"
        if self.database_url and self.database_url.startswith("postgresql"):
            return "postgres"
        return "in_process"


_config: Optional[EngineConfig] = None


def get_engine_config() -> EngineConfig:
    """Get engine configuration singleton.

    When ENGINE_CONFIG_FILE names a YAML file, its ``retry`` section
    replaces the retry policy read from the environment.
    """
    global _config
    if _config is None:
        _config = EngineConfig()
        config_file = os.getenv("ENGINE_CONFIG_FILE")
        if config_file:
            _config.retry = RetryPolicy.from_yaml(config_file, section="retry")
    return _config
