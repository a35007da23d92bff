"""HTTP server settings.

Read from ``API_``-prefixed environment variables or a .env file. Engine
behaviour (locks, tolerances, retries) is configured separately through
:class:`config.engine.EngineConfig`.
"""

import os
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class APIConfig(BaseSettings):
    """Order API server configuration."""

    model_config = SettingsConfigDict(
        env_prefix="API_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    host: str = Field(default="0.0.0.0", description="Bind address")
    port: int = Field(default=8000, ge=1, le=65535, description="Bind port")
    debug: bool = Field(default=False, description="Auto-reload and verbose errors")
    docs_enabled: bool = Field(default=True, description="Serve /docs and /redoc")

    database_url: Optional[str] = Field(
        default=None,
        validate_default=True,
        description="Order store URL (falls back to ENGINE_DATABASE_URL, then DATABASE_URL)",
    )

    # The upstream proxy may omit X-User-Role for plain client sessions
    default_role: str = Field(default="CLIENT", description="Role assumed when X-User-Role is absent")

    cors_origins: List[str] = Field(default=["*"], description="Allowed CORS origins")
    cors_allow_credentials: bool = Field(default=True, description="Allow CORS credentials")

    log_level: str = Field(default="INFO", description="Uvicorn log level")

    @field_validator("database_url", mode="before")
    @classmethod
    def get_database_url(cls, v: Optional[str]) -> Optional[str]:
        """Share the engine's database when the API has none of its own."""
        if v:
            return v
        return os.getenv("ENGINE_DATABASE_URL") or os.getenv("DATABASE_URL")


_config: Optional[APIConfig] = None


def get_config() -> APIConfig:
    """Get API configuration singleton."""
    global _config
    if _config is None:
        _config = APIConfig()
    return _config
