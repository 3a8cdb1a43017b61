from __future__ import annotations
from typing import Dict, Hashable, Optional


class LeasePredictor:
    """
    Fallback leases for accesses the lease table does not cover.

    A block that has left the cache before is predicted to need the lease it
    still had when it left (0 after a natural expiry). Blocks never seen
    leaving get the configured default.
    """

    def __init__(self, default_lease: int):
        if default_lease < 0:
            raise ValueError("Default lease must not be negative.")
        self.default_lease = default_lease
        self._history: Dict[Hashable, int] = {}

    def predict(self, block: Hashable) -> int:
        return self._history.get(block, self.default_lease)

    def observe_departure(self, block: Hashable, remaining_lease: int):
        """Records the remaining lease of a block at eviction or expiry."""
        self._history[block] = remaining_lease

    def last_departure(self, block: Hashable) -> Optional[int]:
        return self._history.get(block)

    def reset(self):
        self._history.clear()
