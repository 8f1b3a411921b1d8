"""Public domain model surface."""

from __future__ import annotations

from nsreconcile.domain.model.entry import Entry, Identity, new_identity
from nsreconcile.domain.model.enums import UpgradeMode, Visibility
from nsreconcile.domain.model.namespace import Lookup, Namespace

__all__ = [
    "Entry",
    "Identity",
    "Lookup",
    "Namespace",
    "UpgradeMode",
    "Visibility",
    "new_identity",
]
