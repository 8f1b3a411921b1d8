"""Identity recycling across namespace generations.

Responsibilities of this stage:
- given a name, find an entry homed in one of the donor namespaces
- report when more than one donor could supply the name (first donor wins)
- tell whether an entry currently bound somewhere was donated by a donor

Out of scope for this stage:
- deciding *whether* a name may be recycled (the engine only asks for exported names)
- moving the entry (the engine rehomes it)
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from nsreconcile.domain.model import Entry, Namespace


type OnDuplicateDonor = Callable[[str, "Namespace", "Namespace"], None]


@dataclass(slots=True, frozen=True)
class Recycled:
    entry: Entry
    donor: Namespace


@dataclass(slots=True)
class RecyclingResolver:
    """Look up reusable entries in an ordered list of donor namespaces."""

    donors: tuple[Namespace, ...] = ()
    on_duplicate: OnDuplicateDonor | None = field(default=None, repr=False)

    def find(self, name: str) -> Recycled | None:
        found: Recycled | None = None
        for donor in self.donors:
            entry = donor.present_entry(name)
            if entry is None or entry.home is not donor:
                continue
            if found is None:
                found = Recycled(entry=entry, donor=donor)
            elif self.on_duplicate is not None:
                self.on_duplicate(name, found.donor, donor)
        return found

    def is_donor(self, namespace: Namespace | None) -> bool:
        return namespace is not None and any(donor is namespace for donor in self.donors)

    def is_recycled(self, entry: Entry) -> bool:
        return self.is_donor(entry.home)
