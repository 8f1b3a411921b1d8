"""Reconciliation of live namespaces against declarative definitions.

Layered flow:
1) validate a definition into a ``NamespaceSpec``
2) resolve dependencies and recycling donors through the registry
3) run the ordered reconciliation protocol (``engine``)
4) propagate new exports to dependents (``propagate``)
5) journal every tolerated anomaly (``notes``)
"""

from __future__ import annotations

from .engine import ReconciliationEngine
from .notes import NoteJournal, NoteKind, ReconciliationNote
from .propagate import PropagationAction, PropagationStep
from .recycle import Recycled, RecyclingResolver
from .spec import ImportClause, NamespaceSpec

__all__ = [
    "ImportClause",
    "NamespaceSpec",
    "NoteJournal",
    "NoteKind",
    "PropagationAction",
    "PropagationStep",
    "ReconciliationEngine",
    "ReconciliationNote",
    "Recycled",
    "RecyclingResolver",
]
