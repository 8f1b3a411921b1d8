"""Error kinds surfaced by the registry and the reconciliation engine.

None of these are retried internally: a conflicting definition is a programmer error,
not a transient condition. Every error keeps its structured fields as attributes so
callers (and the plan harness) can classify failures without parsing messages.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence


class ReconciliationError(Exception):
    """Base class for classified reconciliation failures."""

    kind: str = "ReconciliationError"


class UnsupportedUpgradeModeError(ReconciliationError):
    """Raised when a definition asks for an upgrade mode the engine refuses to run."""

    kind = "UnsupportedUpgradeMode"

    def __init__(self, *, namespace: str, mode: str) -> None:
        self.namespace = namespace
        self.mode = mode
        super().__init__(f"Upgrade mode {mode!r} is not supported (namespace {namespace})")


class NameConflictError(ReconciliationError):
    """Raised when a name or alias is already claimed by a different live namespace."""

    kind = "NameConflict"

    def __init__(self, *, name: str, claimed_by: str) -> None:
        self.name = name
        self.claimed_by = claimed_by
        super().__init__(f"Namespace name {name!r} is already claimed by {claimed_by}")


class UnknownNamespaceError(ReconciliationError):
    """Raised when a referenced dependency does not resolve in the registry."""

    kind = "UnknownNamespace"

    def __init__(self, *, name: str, referenced_by: str | None = None) -> None:
        self.name = name
        self.referenced_by = referenced_by
        suffix = f" (referenced by {referenced_by})" if referenced_by else ""
        super().__init__(f"Unknown namespace {name!r}{suffix}")


class NamespaceConflictError(ReconciliationError):
    """Raised when two clauses disagree on the entry bound to one name."""

    kind = "NamespaceConflict"

    def __init__(
        self,
        *,
        namespace: str,
        name: str,
        existing_origin: str | None,
        incoming_origin: str | None,
        reason: str,
    ) -> None:
        self.namespace = namespace
        self.name = name
        self.existing_origin = existing_origin
        self.incoming_origin = incoming_origin
        self.reason = reason
        super().__init__(
            f"Conflict on {name!r} in {namespace}: {reason} "
            f"(existing from {existing_origin or 'uninterned'}, "
            f"incoming from {incoming_origin or 'uninterned'})"
        )


class InvalidSpecificationError(ReconciliationError):
    """Raised when a namespace definition is malformed, duplicated or unknown."""

    kind = "InvalidSpecification"

    def __init__(self, *, namespace: str | None, problems: Sequence[str]) -> None:
        self.namespace = namespace
        self.problems = tuple(problems)
        target = namespace or "<unnamed>"
        super().__init__(f"Invalid definition for {target}: " + "; ".join(self.problems))


ERROR_KINDS: dict[str, type[ReconciliationError]] = {
    error.kind: error
    for error in (
        UnsupportedUpgradeModeError,
        NameConflictError,
        UnknownNamespaceError,
        NamespaceConflictError,
        InvalidSpecificationError,
    )
}
