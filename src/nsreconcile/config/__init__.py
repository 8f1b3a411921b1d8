"""Application configuration helpers."""

from __future__ import annotations

from .engine import LOG_LEVEL_VAR, TRACK_NOTES_VAR, EngineConfig, get_engine_config
from .env import env_flag, env_log_level
from .errors import ConfigurationError

__all__ = [
    "LOG_LEVEL_VAR",
    "TRACK_NOTES_VAR",
    "ConfigurationError",
    "EngineConfig",
    "env_flag",
    "env_log_level",
    "get_engine_config",
]
