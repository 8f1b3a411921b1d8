"""Process-wide name table mapping namespace names and aliases to namespaces.

The registry is an owned service object rather than ambient global state, so each
caller (and each test) can hold an independent table. It is the only place names are
resolved. Mutating calls take one re-entrant lock so a multi-threaded host cannot
observe a half-applied rename.
"""

from __future__ import annotations

from logging import getLogger
from threading import RLock
from typing import TYPE_CHECKING

from nsreconcile.domain.errors import NameConflictError, UnknownNamespaceError
from nsreconcile.domain.model import Namespace

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

log = getLogger(__name__)


class NamespaceRegistry:
    """Unique mapping from every live primary name and alias to one namespace."""

    def __init__(self) -> None:
        self._by_name: dict[str, Namespace] = {}
        self._lock = RLock()

    def __contains__(self, name: str) -> bool:
        return name in self._by_name

    def __len__(self) -> int:
        return len(self.namespaces())

    def resolve(self, name: str) -> Namespace | None:
        return self._by_name.get(name)

    def require(self, name: str, *, referenced_by: str | None = None) -> Namespace:
        namespace = self._by_name.get(name)
        if namespace is None:
            raise UnknownNamespaceError(name=name, referenced_by=referenced_by)
        return namespace

    def resolve_all(self, names: Iterable[str]) -> list[Namespace]:
        """Distinct live namespaces claiming any of ``names``, in first-claim order."""
        found: list[Namespace] = []
        for name in names:
            namespace = self._by_name.get(name)
            if namespace is not None and namespace not in found:
                found.append(namespace)
        return found

    def namespaces(self) -> tuple[Namespace, ...]:
        return tuple(dict.fromkeys(self._by_name.values()))

    def create(
        self,
        name: str,
        *,
        aliases: Sequence[str] = (),
        documentation: str | None = None,
    ) -> Namespace:
        with self._lock:
            namespace = Namespace(name=name, documentation=documentation)
            namespace.set_names(name, tuple(aliases))
            for claimed in namespace.names:
                self._check_unclaimed(claimed, owner=None)
            for claimed in namespace.names:
                self._by_name[claimed] = namespace
            log.debug("Created namespace %s (aliases=%s)", name, namespace.aliases)
            return namespace

    def rename(self, namespace: Namespace, name: str, aliases: Sequence[str] = ()) -> None:
        with self._lock:
            new_names = (name, *(alias for alias in aliases if alias != name))
            for claimed in new_names:
                self._check_unclaimed(claimed, owner=namespace)
            self._forget(namespace)
            namespace.set_names(name, tuple(aliases))
            for claimed in namespace.names:
                self._by_name[claimed] = namespace

    def release_names(self, namespace: Namespace) -> None:
        """Stop resolving ``namespace`` under any name while leaving its content intact."""
        with self._lock:
            self._forget(namespace)

    def destroy(self, namespace: Namespace) -> None:
        with self._lock:
            namespace.release()
            self._forget(namespace)
            log.debug("Destroyed namespace %s", namespace.name)

    def _check_unclaimed(self, name: str, *, owner: Namespace | None) -> None:
        claimed_by = self._by_name.get(name)
        if claimed_by is not None and claimed_by is not owner:
            raise NameConflictError(name=name, claimed_by=claimed_by.name)

    def _forget(self, namespace: Namespace) -> None:
        for key in [key for key, value in self._by_name.items() if value is namespace]:
            del self._by_name[key]
