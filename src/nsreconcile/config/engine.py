"""Engine runtime configuration."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Final

from .env import env_flag, env_log_level

LOG_LEVEL_VAR: Final[str] = "NSRECONCILE_LOG_LEVEL"
TRACK_NOTES_VAR: Final[str] = "NSRECONCILE_TRACK_NOTES"


@dataclass(frozen=True, slots=True)
class EngineConfig:
    log_level: int = logging.INFO
    track_notes: bool = True


def get_engine_config() -> EngineConfig:
    return EngineConfig(
        log_level=env_log_level(LOG_LEVEL_VAR),
        track_notes=env_flag(TRACK_NOTES_VAR, default=True),
    )
