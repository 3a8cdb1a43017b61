from __future__ import annotations
from bisect import bisect_right
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional

import numpy as np

from ..errors import InvalidLease
from ..ir.trace import Access


@dataclass(frozen=True)
class LeaseEntry:
    """
    Lease assignment for one block reference.

    The short lease is chosen with probability ``short_prob`` and the long lease
    otherwise. The entry applies to accesses at or after ``position`` until a
    later entry for the same reference takes over.
    """
    reference: int
    short_lease: int
    long_lease: int
    short_prob: float = 1.0
    position: int = 0

    def __post_init__(self):
        if self.short_lease < 0 or self.long_lease < 0:
            raise InvalidLease("Leases must not be negative.")
        if not 0.0 <= self.short_prob <= 1.0:
            raise InvalidLease(f"Short lease probability {self.short_prob} is outside [0, 1].")
        if self.position < 0:
            raise InvalidLease("Lease position must not be negative.")

    @property
    def is_deterministic(self) -> bool:
        return (self.short_lease == self.long_lease
                or self.short_prob >= 1.0 or self.short_prob <= 0.0)

    def choose(self, rng: Optional[np.random.Generator] = None) -> int:
        if self.short_lease == self.long_lease or self.short_prob >= 1.0:
            return self.short_lease
        if self.short_prob <= 0.0:
            return self.long_lease
        if rng is None:
            raise InvalidLease(f"Lease for reference {self.reference:#x} is stochastic and needs a random generator.")
        return self.short_lease if rng.random() < self.short_prob else self.long_lease


class LeaseDirectory:
    """Read-only lookup from accesses to leases, built once before a run."""

    def __init__(self, entries: Iterable[LeaseEntry] = ()):
        table: Dict[int, List[LeaseEntry]] = {}
        for entry in entries:
            history = table.setdefault(entry.reference, [])
            if history and entry.position <= history[-1].position:
                raise InvalidLease(
                    f"Lease entries for reference {entry.reference:#x} must have increasing positions "
                    f"({entry.position} after {history[-1].position})."
                )
            history.append(entry)
        self._table = table
        self._positions = {ref: [e.position for e in history] for ref, history in table.items()}

    @classmethod
    def from_leases(cls, leases: Mapping[int, int]) -> LeaseDirectory:
        """Builds a directory of fixed leases keyed by reference."""
        return cls(LeaseEntry(ref, lease, lease) for ref, lease in leases.items())

    def __len__(self) -> int:
        return sum(len(history) for history in self._table.values())

    def __contains__(self, reference: int) -> bool:
        return reference in self._table

    def entry_for(self, access: Access) -> Optional[LeaseEntry]:
        """The latest entry for the access's block that is in effect at its position."""
        reference = access.block_reference
        positions = self._positions.get(reference)
        if not positions:
            return None
        i = bisect_right(positions, access.position)
        if i == 0:
            return None
        return self._table[reference][i - 1]

    def lease_for(self, access: Access, rng: Optional[np.random.Generator] = None) -> Optional[int]:
        """The lease for this access, or None when the table has no entry for it."""
        entry = self.entry_for(access)
        if entry is None:
            return None
        return entry.choose(rng)
