"""Pydantic models describing a declarative namespace definition.

The engine only ever consumes a validated ``NamespaceSpec``. Every construction path
converts pydantic failures into ``InvalidSpecificationError`` so nothing downstream
needs to know about pydantic.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from typing import cast

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from nsreconcile.domain.errors import InvalidSpecificationError
from nsreconcile.domain.model import UpgradeMode


def _kebab(field_name: str) -> str:
    return field_name.replace("_", "-")


def _dedupe(values: Iterable[str]) -> tuple[str, ...]:
    return tuple(dict.fromkeys(values))


class SpecBaseModel(BaseModel):
    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
        populate_by_name=True,
        alias_generator=_kebab,
    )


class ImportClause(SpecBaseModel):
    """One ``(source, names)`` pair of an import clause."""

    source: str
    names: tuple[str, ...] = ()

    @model_validator(mode="before")
    @classmethod
    def _accept_pairs(cls, value: object) -> object:
        if isinstance(value, Sequence) and not isinstance(value, str):
            pair = cast(Sequence[object], value)
            if len(pair) != 2:
                raise ValueError("import clause must be a (source, names) pair")
            return {"source": pair[0], "names": pair[1]}
        return value

    @field_validator("names", mode="after")
    @classmethod
    def _dedupe_names(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        return _dedupe(value)


class NamespaceSpec(SpecBaseModel):
    """Target shape for one namespace.

    ``recycle`` left as ``None`` means "donate from whatever currently answers to this
    definition's own name and aliases", the usual case when a definition is reapplied
    to its previous generation.
    """

    name: str = Field(min_length=1)
    aliases: tuple[str, ...] = ()
    documentation: str | None = None
    upgrade_mode: UpgradeMode = UpgradeMode.SOFT
    use: tuple[str, ...] = ()
    shadow: tuple[str, ...] = ()
    shadowing_import_from: tuple[ImportClause, ...] = ()
    import_from: tuple[ImportClause, ...] = ()
    export: tuple[str, ...] = ()
    intern: tuple[str, ...] = ()
    recycle: tuple[str, ...] | None = None
    mix: tuple[str, ...] = ()
    reexport: tuple[str, ...] = ()
    unintern: tuple[str, ...] = ()
    remove_binding: tuple[str, ...] = ()
    remove_setf_binding: tuple[str, ...] = ()

    @field_validator("upgrade_mode", mode="before")
    @classmethod
    def _normalize_upgrade_mode(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator(
        "aliases",
        "use",
        "shadow",
        "export",
        "intern",
        "recycle",
        "mix",
        "reexport",
        "unintern",
        "remove_binding",
        "remove_setf_binding",
        mode="after",
    )
    @classmethod
    def _dedupe_names(cls, value: tuple[str, ...] | None) -> tuple[str, ...] | None:
        if value is None:
            return None
        return _dedupe(value)

    @property
    def names(self) -> tuple[str, ...]:
        return (self.name, *(alias for alias in self.aliases if alias != self.name))

    @property
    def recycle_names(self) -> tuple[str, ...]:
        return self.names if self.recycle is None else self.recycle

    @property
    def binding_names(self) -> tuple[str, ...]:
        """Names that must end up interned without being exported."""
        return _dedupe((*self.intern, *self.remove_binding, *self.remove_setf_binding))

    @classmethod
    def from_fields(cls, **fields: object) -> NamespaceSpec:
        """Declarative construction from keyword fields (snake or kebab case)."""

        return cls.from_mapping(fields)

    @classmethod
    def from_mapping(cls, fields: Mapping[str, object]) -> NamespaceSpec:
        name = fields.get("name")
        namespace = name if isinstance(name, str) else None
        duplicates = _duplicate_spellings(fields)
        if duplicates:
            raise InvalidSpecificationError(namespace=namespace, problems=duplicates)
        try:
            return cls.model_validate(dict(fields))
        except ValidationError as exc:
            raise InvalidSpecificationError(namespace=namespace, problems=_problems(exc)) from exc

    @classmethod
    def from_clauses(
        cls,
        name: str,
        clauses: Iterable[tuple[str, object]],
    ) -> NamespaceSpec:
        """Build from ordered ``(keyword, value)`` clauses, rejecting repeated keywords."""

        fields: dict[str, object] = {"name": name}
        problems: list[str] = []
        for keyword, value in clauses:
            field_name = keyword.lstrip(":").replace("-", "_")
            if field_name == "name" or field_name in fields:
                problems.append(f"{keyword}: duplicate clause")
                continue
            if field_name not in cls.model_fields:
                problems.append(f"{keyword}: unknown clause")
                continue
            fields[field_name] = value
        if problems:
            raise InvalidSpecificationError(namespace=name, problems=problems)
        return cls.from_mapping(fields)


def _problems(exc: ValidationError) -> list[str]:
    problems: list[str] = []
    for error in exc.errors():
        location = ".".join(_kebab(str(part)) for part in error["loc"]) or "<root>"
        if error["type"] == "extra_forbidden":
            problems.append(f"{location}: unknown field")
        else:
            problems.append(f"{location}: {error['msg']}")
    return problems


def _duplicate_spellings(fields: Mapping[str, object]) -> list[str]:
    """Keys naming the same field twice, once snake_case and once kebab-case."""

    seen: dict[str, str] = {}
    problems: list[str] = []
    for key in fields:
        spelling = _kebab(key)
        if spelling in seen:
            problems.append(f"{spelling}: duplicate field ({seen[spelling]!r} and {key!r})")
        else:
            seen[spelling] = key
    return problems
