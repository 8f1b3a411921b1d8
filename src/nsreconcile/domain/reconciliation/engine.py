"""Reconciliation engine: make a live namespace match a declarative definition.

The engine runs a fixed, ordered protocol. Each step relies on the invariants the
previous ones established, so the order is part of the contract:

1) consolidate every namespace answering to the definition's names into one
2) rename it to the final primary name and aliases
3) set documentation
4) prune ``uses`` edges the definition no longer asks for
5) unintern
6) compute the export set
7) down-level stale exports before any new binding appears
8) shadow
9) shadowing-import-from
10) mix
11) import-from
12) use
13) materialize the export set
14) materialize intern / binding-removal names
15) sweep remaining local names through recycling
16) export and propagate to dependents
17) remove bindings
18) destroy discarded duplicates and return

A conflict in steps 8-12 aborts with ``NamespaceConflictError``. Nothing is rolled
back: callers that need all-or-nothing semantics must snapshot and restore themselves.
Reapplying the same definition is idempotent.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from nsreconcile.domain.errors import NamespaceConflictError, UnsupportedUpgradeModeError
from nsreconcile.domain.model import UpgradeMode, Visibility

from .notes import NoteJournal, NoteKind
from .propagate import PropagationStep, propagate_export
from .recycle import Recycled, RecyclingResolver

if TYPE_CHECKING:
    from nsreconcile.domain.model import Entry, Namespace
    from nsreconcile.domain.registry import NamespaceRegistry

    from .spec import NamespaceSpec

log = getLogger(__name__)


@dataclass(slots=True)
class ReconciliationEngine:
    """Apply ``NamespaceSpec`` definitions against one registry."""

    registry: NamespaceRegistry
    journal: NoteJournal = field(default_factory=NoteJournal)
    propagation: list[PropagationStep] = field(default_factory=list["PropagationStep"])

    def reconcile(self, spec: NamespaceSpec) -> Namespace:
        """Run the full protocol for ``spec`` and return the namespace of record."""

        log.info("Reconciling namespace %s", spec.name)
        self.propagation.clear()
        run = _Run(spec=spec, registry=self.registry, journal=self.journal)
        namespace = run.execute()
        self.propagation.extend(run.propagation)
        log.info(
            "Reconciled namespace %s: entries=%s, exported=%s, uses=%s",
            namespace.name,
            len(namespace.present_names()),
            len(namespace.external_entries()),
            len(namespace.uses),
        )
        return namespace


@dataclass(slots=True, frozen=True)
class _Inherited:
    entry: Entry
    source: Namespace


@dataclass(slots=True)
class _Dependencies:
    use: tuple[Namespace, ...]
    mix: tuple[Namespace, ...]
    reexport: tuple[Namespace, ...]
    shadowing_import_from: tuple[tuple[Namespace, tuple[str, ...]], ...]
    import_from: tuple[tuple[Namespace, tuple[str, ...]], ...]
    donors: tuple[Namespace, ...]


@dataclass(slots=True)
class _Run:
    """State of one reconciliation pass (which names each clause already claimed)."""

    spec: NamespaceSpec
    registry: NamespaceRegistry
    journal: NoteJournal

    namespace: Namespace = field(init=False)
    deps: _Dependencies = field(init=False)
    resolver: RecyclingResolver = field(init=False)
    to_delete: list[Namespace] = field(default_factory=list["Namespace"])
    exported: dict[str, None] = field(default_factory=dict["str", "None"])
    shadowed: dict[str, Entry] = field(default_factory=dict["str", "Entry"])
    imported: set[str] = field(default_factory=set["str"])
    inherited: dict[str, _Inherited] = field(default_factory=dict["str", "_Inherited"])
    propagation: list[PropagationStep] = field(default_factory=list["PropagationStep"])

    def execute(self) -> Namespace:
        self._check_preconditions()
        self._consolidate()
        self.registry.rename(self.namespace, self.spec.name, self.spec.aliases)
        if self.spec.documentation is not None:
            self.namespace.documentation = self.spec.documentation
        self._prune_uses()
        self._unintern()
        self._compute_export_set()
        self._down_level_exports()
        self._shadow()
        for source, names in self.deps.shadowing_import_from:
            for name in names:
                self._ensure_shadowing_import(name, source)
        self._mix()
        for source, names in self.deps.import_from:
            for name in names:
                self._ensure_import(name, source)
        self._use()
        for name in self.exported:
            self._ensure_entry(name, intern=True)
        for name in self.spec.binding_names:
            self._ensure_entry(name, intern=True)
        for name in self.namespace.present_names():
            self._ensure_entry(name, intern=False)
        for name in self.exported:
            self._ensure_export(name)
        self._remove_bindings()
        for discarded in self.to_delete:
            self.registry.destroy(discarded)
        return self.namespace

    # ---------------------------------------------------------- preconditions

    def _check_preconditions(self) -> None:
        spec = self.spec
        if spec.upgrade_mode is not UpgradeMode.SOFT:
            raise UnsupportedUpgradeModeError(namespace=spec.name, mode=spec.upgrade_mode.value)

        def require(name: str) -> Namespace:
            return self.registry.require(name, referenced_by=spec.name)

        self.deps = _Dependencies(
            use=tuple(require(name) for name in spec.use),
            mix=tuple(require(name) for name in spec.mix),
            reexport=tuple(require(name) for name in spec.reexport),
            shadowing_import_from=tuple(
                (require(clause.source), clause.names) for clause in spec.shadowing_import_from
            ),
            import_from=tuple(
                (require(clause.source), clause.names) for clause in spec.import_from
            ),
            donors=tuple(self.registry.resolve_all(spec.recycle_names)),
        )
        self.resolver = RecyclingResolver(
            donors=self.deps.donors,
            on_duplicate=self._note_duplicate_donor,
        )

    # ------------------------------------------------------------- structure

    def _consolidate(self) -> None:
        names = self.spec.names
        previous = self.registry.resolve_all(names)
        if not previous:
            self.namespace = self.registry.create(self.spec.name, aliases=self.spec.aliases)
            return
        self.namespace, *discarded = previous
        for duplicate in discarded:
            remaining = [name for name in duplicate.names if name not in names]
            self.journal.record(
                NoteKind.DISCARDED_NAMESPACE,
                self.spec.name,
                detail=f"{duplicate.name} keeps {remaining or 'no names'}",
            )
            if remaining:
                self.registry.rename(duplicate, remaining[0], remaining[1:])
            else:
                self.registry.release_names(duplicate)
                self.to_delete.append(duplicate)

    def _prune_uses(self) -> None:
        wanted = (*self.deps.use, *self.deps.mix)
        for used in self.namespace.uses:
            if not any(used is candidate for candidate in wanted):
                self.journal.record(NoteKind.OVER_USE, self.namespace.name, detail=used.name)
                self.namespace.unuse(used)

    def _unintern(self) -> None:
        for name in self.spec.unintern:
            existing, status = self.namespace.find(name)
            if existing is None or status is Visibility.INHERITED:
                continue
            self.journal.record(
                NoteKind.UNINTERN, self.namespace.name, name, f"status={status.value}"
            )
            self.namespace.unintern(name)

    def _compute_export_set(self) -> None:
        self.exported = dict.fromkeys(self.spec.export)
        for source in self.deps.reexport:
            for name, _entry in source.external_entries():
                self.exported.setdefault(name, None)

    def _down_level_exports(self) -> None:
        for name, entry in self.namespace.external_entries():
            if name in self.exported:
                continue
            self.journal.record(
                NoteKind.OVER_EXPORT,
                self.namespace.name,
                name,
                f"home={entry.home_name or 'uninterned'}",
            )
            self.namespace.unexport(name)

    # ---------------------------------------------------------------- clauses

    def _shadow(self) -> None:
        namespace = self.namespace
        for name in self.spec.shadow:
            existing, _status = namespace.find(name)
            recycled = self._recycle(name)
            if recycled is not None and recycled.donor is not namespace:
                self._rehome(recycled)
                namespace.shadowing_import(recycled.entry)
                entry = recycled.entry
            else:
                entry = namespace.shadow(name)
                if existing is not None and existing is not entry:
                    self.journal.record(
                        NoteKind.SHADOW_REPLACED,
                        namespace.name,
                        name,
                        f"dropped entry from {existing.home_name or 'uninterned'}",
                    )
            self._pin(name, entry, origin=namespace)

    def _pin(self, name: str, entry: Entry, *, origin: Namespace) -> None:
        pinned = self.shadowed.get(name)
        if pinned is not None and not pinned.same_identity(entry):
            raise self._conflict(name, pinned, origin, "already shadowed by a different entry")
        self.shadowed[name] = entry

    def _ensure_shadowing_import(self, name: str, source: Namespace) -> None:
        entry = self._source_entry(name, source)
        pinned = self.shadowed.get(name)
        if pinned is not None:
            if not pinned.same_identity(entry):
                raise self._conflict(
                    name, pinned, source, "already shadowing-imported a different entry"
                )
            return
        existing, _status = self.namespace.find(name)
        if existing is not None and existing is not entry:
            self.journal.record(
                NoteKind.SHADOWING_IMPORT,
                self.namespace.name,
                name,
                f"from {source.name} over entry from {existing.home_name or 'uninterned'}",
            )
        self._pin(name, entry, origin=source)
        self.imported.add(name)
        self.namespace.shadowing_import(entry)

    def _mix(self) -> None:
        """Inherit every mix source's exports; on disagreement the last source wins.

        The winner of each name is decided from all mix sources up front, so a name
        the namespace already holds as the winning shadowing entry is left untouched.
        """
        offers: dict[str, list[tuple[Entry, Namespace]]] = {}
        for source in self.deps.mix:
            for name, entry in source.external_entries():
                offers.setdefault(name, []).append((entry, source))
        for name, offered in offers.items():
            if name in self.shadowed:
                continue
            first, first_source = offered[0]
            winner, winner_source = offered[-1]
            held = self._held_entry(name, winner)
            if held is not None:
                self.shadowed[name] = held
                self.imported.add(name)
            elif all(winner.same_identity(entry) for entry, _source in offered):
                self._ensure_inherited(name, first, first_source, mixing=True)
            else:
                self._promote(name, winner, winner_source, over=first_source.name)

    def _held_entry(self, name: str, entry: Entry) -> Entry | None:
        """The shadowing entry already bound under ``name`` if it is ``entry``."""
        present = self.namespace.present_entry(name)
        if self.namespace.is_shadowing(name) and entry.same_identity(present):
            return present
        return None

    def _promote(self, name: str, entry: Entry, source: Namespace, *, over: str) -> None:
        """Resolve a double inheritance from ``mix`` by pinning the latest source's entry."""
        self.journal.record(
            NoteKind.MIX_PROMOTION,
            self.namespace.name,
            name,
            f"{source.name} wins over {over}",
        )
        self.shadowed[name] = entry
        self.imported.add(name)
        self.namespace.shadowing_import(entry)

    def _ensure_inherited(
        self,
        name: str,
        entry: Entry,
        source: Namespace,
        *,
        mixing: bool,
    ) -> None:
        if entry.home is None:
            self.journal.record(
                NoteKind.IMPORT_UNINTERNED, self.namespace.name, name, f"homed in {source.name}"
            )
            entry.home = source
        if name in self.shadowed:
            return
        existing, status = self.namespace.find(name)
        inherited = self.inherited.get(name)
        if inherited is not None:
            if not inherited.entry.same_identity(entry):
                raise NamespaceConflictError(
                    namespace=self.namespace.name,
                    name=name,
                    existing_origin=inherited.source.name,
                    incoming_origin=source.name,
                    reason="inherited from two namespaces",
                )
            return
        if name in self.imported:
            if not entry.same_identity(existing):
                raise self._conflict(name, existing, source, "inherited entry conflicts with import")
            return
        self.inherited[name] = _Inherited(entry=entry, source=source)
        if existing is None or existing.same_identity(entry):
            return
        self.journal.record(
            NoteKind.INHERITED_OVER_LOCAL,
            self.namespace.name,
            name,
            f"{source.name} over entry from {existing.home_name or 'uninterned'}",
        )
        if self.namespace.is_shadowing(name):
            if mixing:
                self._promote(name, entry, source, over=existing.home_name or "uninterned")
                return
            self.inherited.pop(name)
            self._ensure_shadowing_import(name, source)
        elif status is not Visibility.INHERITED:
            self.namespace.unintern(name)

    def _ensure_import(self, name: str, source: Namespace) -> None:
        entry = self._source_entry(name, source)
        existing, _status = self.namespace.find(name)
        if name in self.imported:
            if not entry.same_identity(existing):
                raise self._conflict(name, existing, source, "imported from two namespaces")
            return
        pinned = self.shadowed.get(name)
        if pinned is not None:
            raise self._conflict(name, pinned, source, "both shadowed and imported")
        self.imported.add(name)
        self._ensure_imported(entry, source)

    def _ensure_imported(self, entry: Entry, source: Namespace) -> None:
        namespace = self.namespace
        existing, status = namespace.find(entry.name)
        if existing is None:
            namespace.import_entry(entry)
            return
        if existing.same_identity(entry):
            return
        self.journal.record(
            NoteKind.DISPLACED_BINDING,
            namespace.name,
            entry.name,
            f"import from {source.name} over entry from {existing.home_name or 'uninterned'}",
        )
        if namespace.is_shadowing(entry.name):
            namespace.shadowing_import(entry)
            return
        if status is not Visibility.INHERITED:
            namespace.unintern(entry.name)
        namespace.import_entry(entry)

    def _use(self) -> None:
        for source in dict.fromkeys((*self.deps.use, *self.deps.mix)):
            for name, entry in source.external_entries():
                self._ensure_inherited(name, entry, source, mixing=False)
            self.namespace.use(source)

    # ----------------------------------------------------------- materialize

    def _ensure_entry(self, name: str, *, intern: bool) -> None:
        if name in self.shadowed or name in self.imported or name in self.inherited:
            return
        namespace = self.namespace
        existing, status = namespace.find(name)
        recycled = self._recycle(name)
        if recycled is not None:
            if recycled.donor is namespace:
                return
            self._rehome(recycled)
            return
        if existing is not None and status is not Visibility.INHERITED:
            if existing.home is namespace:
                return
            self.journal.record(
                NoteKind.DROPPED_STALE,
                namespace.name,
                name,
                f"entry from {existing.home_name or 'uninterned'}",
            )
            namespace.unintern(name)
        if intern:
            namespace.intern(name)

    def _ensure_export(self, name: str) -> None:
        entry, status = self.namespace.find(name)
        if status is Visibility.EXTERNAL:
            return
        if entry is None:
            entry = self.namespace.intern(name)
        self.propagation.extend(
            propagate_export(
                self.namespace,
                name,
                entry,
                resolver=self.resolver,
                journal=self.journal,
            )
        )

    def _remove_bindings(self) -> None:
        for name in self.spec.remove_binding:
            entry, _status = self.namespace.find(name)
            if entry is not None:
                entry.unbind()
        for name in self.spec.remove_setf_binding:
            entry, _status = self.namespace.find(name)
            if entry is not None:
                entry.unbind_setf()

    # --------------------------------------------------------------- helpers

    def _recycle(self, name: str) -> Recycled | None:
        if name not in self.exported:
            return None
        return self.resolver.find(name)

    def _rehome(self, recycled: Recycled) -> None:
        self.journal.record(
            NoteKind.REHOMED,
            self.namespace.name,
            recycled.entry.name,
            f"from {recycled.donor.name}",
        )
        self.namespace.rehome(recycled.entry)

    def _source_entry(self, name: str, source: Namespace) -> Entry:
        entry, _status = source.find(name)
        if entry is None:
            self.journal.record(
                NoteKind.IMPORT_UNINTERNED,
                self.namespace.name,
                name,
                f"interned in {source.name} first",
            )
            entry = source.intern(name)
        return entry

    def _note_duplicate_donor(self, name: str, first: Namespace, second: Namespace) -> None:
        self.journal.record(
            NoteKind.RECYCLED_DUPLICATE,
            self.namespace.name,
            name,
            f"{first.name} wins over {second.name}",
        )

    def _conflict(
        self,
        name: str,
        existing: Entry | None,
        incoming: Namespace,
        reason: str,
    ) -> NamespaceConflictError:
        return NamespaceConflictError(
            namespace=self.namespace.name,
            name=name,
            existing_origin=existing.home_name if existing is not None else None,
            incoming_origin=incoming.name,
            reason=reason,
        )
