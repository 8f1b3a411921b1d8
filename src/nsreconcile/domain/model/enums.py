"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class Visibility(StrEnum):
    """How a name is visible inside one namespace."""

    INTERNAL = "internal"
    EXTERNAL = "external"
    INHERITED = "inherited"
    SHADOWED = "shadowed"


class UpgradeMode(StrEnum):
    SOFT = "soft"
    HARD = "hard"
