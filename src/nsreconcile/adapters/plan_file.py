"""TOML plan files: seed namespaces plus an ordered list of definitions to apply.

A plan is the small harness around the engine: it decides which definitions run, in
which order, and which failures are expected. Definitions are kept as raw mappings
here so that an invalid definition surfaces as ``InvalidSpecificationError`` when the
step runs (and can therefore be an expected outcome), not as a plan-file error.
"""

from __future__ import annotations

import tomllib
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from nsreconcile.domain.errors import ERROR_KINDS

if TYPE_CHECKING:
    from pathlib import Path

    from nsreconcile.domain.model import Namespace
    from nsreconcile.domain.registry import NamespaceRegistry


class PlanFileError(ValueError):
    """Raised when a plan file cannot be read or does not match the plan schema."""


class PlanBaseModel(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)


class SeedNamespace(PlanBaseModel):
    """Pre-existing namespace state, as left behind by an earlier generation."""

    name: str
    aliases: tuple[str, ...] = ()
    documentation: str | None = None
    internal: tuple[str, ...] = ()
    external: tuple[str, ...] = ()
    use: tuple[str, ...] = ()


class PlanStep(BaseModel):
    """One definition to apply; unknown keys are the definition itself."""

    model_config = ConfigDict(extra="allow", frozen=True, populate_by_name=True)

    expect_error: str | None = Field(default=None, alias="expect-error")
    repeat: int = Field(default=1, ge=1)

    @field_validator("expect_error")
    @classmethod
    def _known_error_kind(cls, value: str | None) -> str | None:
        if value is not None and value not in ERROR_KINDS:
            known = ", ".join(sorted(ERROR_KINDS))
            raise ValueError(f"unknown error kind {value!r} (expected one of: {known})")
        return value

    @property
    def definition(self) -> dict[str, Any]:
        return dict(self.model_extra or {})

    @property
    def target(self) -> str:
        name = self.definition.get("name")
        return name if isinstance(name, str) else "<unnamed>"


class Plan(PlanBaseModel):
    namespaces: tuple[SeedNamespace, ...] = Field(default=(), alias="namespace")
    steps: tuple[PlanStep, ...] = Field(default=(), alias="step")


def parse_plan(text: str) -> Plan:
    try:
        document = tomllib.loads(text)
    except tomllib.TOMLDecodeError as exc:
        raise PlanFileError(f"Plan is not valid TOML: {exc}") from exc
    try:
        return Plan.model_validate(document)
    except ValidationError as exc:
        raise PlanFileError(f"Plan does not match the plan schema: {exc}") from exc


def load_plan(path: Path) -> Plan:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise PlanFileError(f"Cannot read plan file {path}: {exc}") from exc
    return parse_plan(text)


def seed_registry(registry: NamespaceRegistry, seeds: tuple[SeedNamespace, ...]) -> None:
    """Create the seed namespaces, then wire their ``use`` edges once all exist."""

    created: list[tuple[SeedNamespace, Namespace]] = []
    for seed in seeds:
        namespace = registry.create(
            seed.name,
            aliases=seed.aliases,
            documentation=seed.documentation,
        )
        for name in (*seed.internal, *seed.external):
            namespace.intern(name)
        for name in seed.external:
            namespace.export(name)
        created.append((seed, namespace))
    for seed, namespace in created:
        for used in seed.use:
            namespace.use(registry.require(used, referenced_by=seed.name))
