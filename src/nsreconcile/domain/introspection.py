"""Deterministic snapshots of namespaces for diffing and testing."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING

from nsreconcile.domain.model import Visibility

if TYPE_CHECKING:
    from nsreconcile.domain.model import Namespace
    from nsreconcile.domain.registry import NamespaceRegistry


@dataclass(slots=True, frozen=True, kw_only=True)
class NamespaceSnapshot:
    """Names partitioned by visibility, every list sorted lexicographically.

    ``identities`` maps every visible name to its entry identity token so two
    snapshots can be compared for identity preservation, not only for shape.
    """

    name: str
    aliases: tuple[str, ...]
    documentation: str | None
    internal: tuple[str, ...]
    external: tuple[str, ...]
    shadowed: tuple[str, ...]
    inherited: tuple[tuple[str, str], ...]
    uses: tuple[str, ...]
    used_by: tuple[str, ...]
    identities: tuple[tuple[str, int], ...]

    def as_dict(self) -> dict[str, object]:
        data = asdict(self)
        data["inherited"] = {name: origin for name, origin in self.inherited}
        data["identities"] = dict(self.identities)
        return data


def snapshot(namespace: Namespace) -> NamespaceSnapshot:
    by_visibility: dict[Visibility, list[str]] = {
        Visibility.INTERNAL: [],
        Visibility.EXTERNAL: [],
        Visibility.SHADOWED: [],
    }
    identities: dict[str, int] = {}
    for name in namespace.present_names():
        visibility = namespace.visibility(name)
        entry = namespace.present_entry(name)
        if visibility is None or entry is None:
            continue
        by_visibility[visibility].append(name)
        identities[name] = entry.identity

    inherited: list[tuple[str, str]] = []
    for name, entry, origin in namespace.inherited_entries():
        inherited.append((name, origin.name))
        identities[name] = entry.identity

    return NamespaceSnapshot(
        name=namespace.name,
        aliases=tuple(sorted(namespace.aliases)),
        documentation=namespace.documentation,
        internal=tuple(sorted(by_visibility[Visibility.INTERNAL])),
        external=tuple(sorted(by_visibility[Visibility.EXTERNAL])),
        shadowed=tuple(sorted(by_visibility[Visibility.SHADOWED])),
        inherited=tuple(sorted(inherited)),
        uses=tuple(sorted(used.name for used in namespace.uses)),
        used_by=tuple(sorted(dependent.name for dependent in namespace.used_by)),
        identities=tuple(sorted(identities.items())),
    )


def snapshot_registry(registry: NamespaceRegistry) -> tuple[NamespaceSnapshot, ...]:
    return tuple(
        snapshot(namespace)
        for namespace in sorted(registry.namespaces(), key=lambda namespace: namespace.name)
    )
