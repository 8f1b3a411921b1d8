"""Export propagation through ``used_by`` edges.

When a namespace starts exporting an entry, every dependent that can currently see a
different entry under the same name must be brought in line, and dependents that
re-export the name must forward the new entry to their own dependents in turn.

Propagation runs over an explicit FIFO work-queue instead of recursing, so long
dependency chains cannot exhaust the call stack, mutually-using namespaces terminate,
and the visitation order is recorded for auditing.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

from nsreconcile.domain.model import Visibility

from .notes import NoteKind

if TYPE_CHECKING:
    from nsreconcile.domain.model import Entry, Namespace

    from .notes import NoteJournal
    from .recycle import RecyclingResolver


class PropagationAction(StrEnum):
    EXPORTED = "exported"
    UNCHANGED = "unchanged"
    INHERITED = "inherited"
    KEPT_SHADOW = "kept_shadow"
    SHADOWING_IMPORTED = "shadowing_imported"
    DISPLACED = "displaced"


@dataclass(slots=True, frozen=True)
class PropagationStep:
    namespace: str
    name: str
    action: PropagationAction


def propagate_export(
    origin: Namespace,
    name: str,
    entry: Entry,
    *,
    resolver: RecyclingResolver,
    journal: NoteJournal,
) -> list[PropagationStep]:
    """Export ``entry`` as ``name`` from ``origin`` and push it down to dependents."""

    steps: list[PropagationStep] = []
    visited: set[int] = {id(origin)}
    queue: deque[Namespace] = deque([origin])
    while queue:
        source = queue.popleft()
        for dependent in source.used_by:
            action, forwards = _update_dependent(
                dependent, name, entry, resolver=resolver, journal=journal
            )
            steps.append(PropagationStep(namespace=dependent.name, name=name, action=action))
            if forwards and id(dependent) not in visited:
                visited.add(id(dependent))
                queue.append(dependent)
        _export_from(source, name, entry)
        steps.append(
            PropagationStep(namespace=source.name, name=name, action=PropagationAction.EXPORTED)
        )
    return steps


def _update_dependent(
    dependent: Namespace,
    name: str,
    entry: Entry,
    *,
    resolver: RecyclingResolver,
    journal: NoteJournal,
) -> tuple[PropagationAction, bool]:
    existing, status = dependent.find(name)
    if existing is None:
        return PropagationAction.INHERITED, False
    if existing.same_identity(entry):
        return PropagationAction.UNCHANGED, False

    shadowing = dependent.is_shadowing(name)
    if shadowing and not resolver.is_recycled(existing):
        return PropagationAction.KEPT_SHADOW, False

    journal.record(
        NoteKind.EXPORT_DISPLACED,
        dependent.name,
        name,
        f"replaced entry from {existing.home_name or 'uninterned'}",
    )
    forwards = status is Visibility.EXTERNAL
    if status is Visibility.INHERITED or shadowing:
        dependent.shadowing_import(entry)
        return PropagationAction.SHADOWING_IMPORTED, forwards
    dependent.unintern(name)
    return PropagationAction.DISPLACED, forwards


def _export_from(source: Namespace, name: str, entry: Entry) -> None:
    present = source.present_entry(name)
    if present is not entry:
        if present is not None:
            source.unintern(name)
        source.import_entry(entry)
    source.export(name)
