"""Anomaly journal for tolerated-but-unusual reconciliation transitions.

A note never changes the outcome of a reconciliation; it exists so a caller can audit
why a definition did not apply as cleanly as it reads (an export dropped, a stale
import displaced, an entry moved between generations, ...).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from logging import getLogger

log = getLogger(__name__)


class NoteKind(StrEnum):
    OVER_USE = "over_use"
    DISCARDED_NAMESPACE = "discarded_namespace"
    UNINTERN = "unintern"
    OVER_EXPORT = "over_export"
    SHADOW_REPLACED = "shadow_replaced"
    SHADOWING_IMPORT = "shadowing_import"
    DISPLACED_BINDING = "displaced_binding"
    IMPORT_UNINTERNED = "import_uninterned"
    INHERITED_OVER_LOCAL = "inherited_over_local"
    MIX_PROMOTION = "mix_promotion"
    RECYCLED_DUPLICATE = "recycled_duplicate"
    REHOMED = "rehomed"
    DROPPED_STALE = "dropped_stale"
    EXPORT_DISPLACED = "export_displaced"


@dataclass(slots=True, frozen=True, kw_only=True)
class ReconciliationNote:
    kind: NoteKind
    namespace: str
    name: str | None = None
    detail: str = ""


@dataclass(slots=True)
class NoteJournal:
    """Collects notes when enabled; always logs them at DEBUG."""

    enabled: bool = True
    notes: list[ReconciliationNote] = field(default_factory=list["ReconciliationNote"])

    def record(
        self,
        kind: NoteKind,
        namespace: str,
        name: str | None = None,
        detail: str = "",
    ) -> None:
        log.debug("%s in %s: %s %s", kind.value, namespace, name or "-", detail)
        if self.enabled:
            self.notes.append(
                ReconciliationNote(kind=kind, namespace=namespace, name=name, detail=detail)
            )

    def kinds(self) -> list[NoteKind]:
        return [note.kind for note in self.notes]

    def clear(self) -> None:
        self.notes.clear()
