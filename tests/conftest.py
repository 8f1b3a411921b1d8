from __future__ import annotations

import pytest

from nsreconcile.domain.reconciliation import NoteJournal, ReconciliationEngine
from nsreconcile.domain.registry import NamespaceRegistry


@pytest.fixture
def registry() -> NamespaceRegistry:
    return NamespaceRegistry()


@pytest.fixture
def engine(registry: NamespaceRegistry) -> ReconciliationEngine:
    return ReconciliationEngine(registry=registry, journal=NoteJournal(enabled=True))
