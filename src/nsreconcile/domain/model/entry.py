"""
Base building block:
identity-bearing entries and their home namespace.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from itertools import count
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from nsreconcile.domain.model.namespace import Namespace


type Identity = int

_identities = count(1)


def new_identity() -> Identity:
    return next(_identities)


@dataclass(eq=False, kw_only=True)
class Entry:
    """Named unit whose identity survives renames, rehoming and reconciliation.

    ``home`` is the namespace the entry is currently interned in. An entry can be
    present in several namespaces (through imports) but has at most one home; it is
    ``None`` once the entry is uninterned from its home or the home is destroyed.
    """

    name: str
    identity: Identity = field(default_factory=new_identity)
    home: Namespace | None = field(default=None, repr=False)

    # payload slots for definitions attached by the outside world
    binding: object | None = field(default=None, repr=False)
    setf_binding: object | None = field(default=None, repr=False)

    @property
    def home_name(self) -> str | None:
        return self.home.name if self.home is not None else None

    def same_identity(self, other: Entry | None) -> bool:
        return other is not None and other.identity == self.identity

    def bind(self, value: object) -> None:
        self.binding = value

    def bind_setf(self, value: object) -> None:
        self.setf_binding = value

    def unbind(self) -> None:
        self.binding = None

    def unbind_setf(self) -> None:
        self.setf_binding = None
