"""Namespace aggregate: entries, visibility tags and dependency edges.

The operations here are primitive and never consult a registry or a definition.
They keep two local invariants:

- ``uses``/``used_by`` edges are always added and removed in pairs
- a locally present entry always wins over an inherited one during lookup

Everything smarter (conflict detection, recycling, propagation) lives in
``nsreconcile.domain.reconciliation``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from nsreconcile.domain.model.entry import Entry
from nsreconcile.domain.model.enums import Visibility

if TYPE_CHECKING:
    from collections.abc import Iterator


type Lookup = tuple[Entry, Visibility] | tuple[None, None]


@dataclass(eq=False, kw_only=True)
class Namespace:
    """Named, aliasable container of uniquely named entries."""

    name: str
    aliases: tuple[str, ...] = ()
    documentation: str | None = None

    _present: dict[str, Entry] = field(default_factory=dict["str", "Entry"], repr=False)
    _external: set[str] = field(default_factory=set["str"], repr=False)
    _shadowing: set[str] = field(default_factory=set["str"], repr=False)
    _uses: list[Namespace] = field(default_factory=list["Namespace"], repr=False)
    _used_by: list[Namespace] = field(default_factory=list["Namespace"], repr=False)

    # ------------------------------------------------------------------ names

    @property
    def names(self) -> tuple[str, ...]:
        return (self.name, *self.aliases)

    def set_names(self, name: str, aliases: tuple[str, ...]) -> None:
        """Registry-only: use ``NamespaceRegistry.rename`` from outside."""
        self.name = name
        self.aliases = tuple(alias for alias in dict.fromkeys(aliases) if alias != name)

    # ----------------------------------------------------------------- lookup

    def find(self, name: str) -> Lookup:
        """Return the entry visible under ``name`` and whether it is local or inherited."""
        entry = self._present.get(name)
        if entry is not None:
            status = Visibility.EXTERNAL if name in self._external else Visibility.INTERNAL
            return entry, status
        origin = self.inherited_origin(name)
        if origin is not None:
            return origin._present[name], Visibility.INHERITED  # noqa: SLF001
        return None, None

    def inherited_origin(self, name: str) -> Namespace | None:
        if name in self._present:
            return None
        for used in self._uses:
            if name in used._external:  # noqa: SLF001
                return used
        return None

    def visibility(self, name: str) -> Visibility | None:
        """Single visibility tag for ``name``: external, shadowed, internal or inherited."""
        if name in self._present:
            if name in self._external:
                return Visibility.EXTERNAL
            if name in self._shadowing:
                return Visibility.SHADOWED
            return Visibility.INTERNAL
        if self.inherited_origin(name) is not None:
            return Visibility.INHERITED
        return None

    def present_entry(self, name: str) -> Entry | None:
        return self._present.get(name)

    def present_names(self) -> tuple[str, ...]:
        return tuple(self._present)

    def is_shadowing(self, name: str) -> bool:
        return name in self._shadowing

    def is_external(self, name: str) -> bool:
        return name in self._external

    def external_entries(self) -> tuple[tuple[str, Entry], ...]:
        return tuple(
            (name, entry) for name, entry in self._present.items() if name in self._external
        )

    def inherited_entries(self) -> Iterator[tuple[str, Entry, Namespace]]:
        seen: set[str] = set()
        for used in self._uses:
            for name, entry in used.external_entries():
                if name in seen or name in self._present:
                    continue
                seen.add(name)
                yield name, entry, used

    # --------------------------------------------------------------- mutation

    def intern(self, name: str) -> Entry:
        """Return the accessible entry for ``name``, creating a home entry if none is."""
        existing, _status = self.find(name)
        if existing is not None:
            return existing
        entry = Entry(name=name, home=self)
        self._present[name] = entry
        return entry

    def shadow(self, name: str) -> Entry:
        """Pin an entry homed here under ``name``, replacing any foreign binding."""
        existing = self._present.get(name)
        if existing is None or existing.home is not self:
            if existing is not None:
                self.unintern(name)
            existing = Entry(name=name, home=self)
            self._present[name] = existing
        self._shadowing.add(name)
        return existing

    def import_entry(self, entry: Entry) -> None:
        existing = self._present.get(entry.name)
        if existing is not None and existing is not entry:
            raise ValueError(f"name {entry.name!r} already bound in {self.name}")
        self._present[entry.name] = entry
        if entry.home is None:
            entry.home = self

    def shadowing_import(self, entry: Entry) -> None:
        existing = self._present.get(entry.name)
        if existing is not None and existing is not entry:
            self.unintern(entry.name)
        self.import_entry(entry)
        self._shadowing.add(entry.name)

    def unintern(self, name: str) -> Entry | None:
        entry = self._present.pop(name, None)
        self._external.discard(name)
        self._shadowing.discard(name)
        if entry is not None and entry.home is self:
            entry.home = None
        return entry

    def export(self, name: str) -> None:
        entry, status = self.find(name)
        if entry is None:
            raise ValueError(f"name {name!r} not accessible in {self.name}")
        if status is Visibility.INHERITED:
            self.import_entry(entry)
        self._external.add(name)

    def unexport(self, name: str) -> None:
        self._external.discard(name)

    def rehome(self, entry: Entry) -> None:
        """Make this namespace the home of ``entry``; it stays present in its old home."""
        if entry.home is self and self._present.get(entry.name) is entry:
            return
        existing = self._present.get(entry.name)
        if existing is not None and existing is not entry:
            pinned = entry.name in self._shadowing
            self.unintern(entry.name)
            if pinned:
                self._shadowing.add(entry.name)
        self._present[entry.name] = entry
        entry.home = self

    # ------------------------------------------------------------------ edges

    @property
    def uses(self) -> tuple[Namespace, ...]:
        return tuple(self._uses)

    @property
    def used_by(self) -> tuple[Namespace, ...]:
        return tuple(self._used_by)

    def use(self, other: Namespace) -> None:
        if other not in self._uses:
            self._uses.append(other)
        if self not in other._used_by:  # noqa: SLF001
            other._used_by.append(self)  # noqa: SLF001

    def unuse(self, other: Namespace) -> None:
        if other in self._uses:
            self._uses.remove(other)
        if self in other._used_by:  # noqa: SLF001
            other._used_by.remove(self)  # noqa: SLF001

    def release(self) -> None:
        """Drop every edge and orphan every entry homed here."""
        for dependent in self.used_by:
            dependent.unuse(self)
        for used in self.uses:
            self.unuse(used)
        for entry in self._present.values():
            if entry.home is self:
                entry.home = None
        self._present.clear()
        self._external.clear()
        self._shadowing.clear()
