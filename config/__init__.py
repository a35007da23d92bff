"""Configuration management using Pydantic models."""

from config.base import BaseConfig
from config.engine import EngineConfig, RetryPolicy, get_engine_config

__all__ = [
    "BaseConfig",
    "EngineConfig",
    "RetryPolicy",
    "get_engine_config",
]
