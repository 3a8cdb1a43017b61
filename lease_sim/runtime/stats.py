from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict

from ..errors import InvariantViolation


class AccessOutcome(Enum):
    HIT = "hit"
    MISS = "miss"                                   # placed in a free way
    MISS_EXPIRED = "miss_expired"                   # placed where a lease just expired
    MISS_REPLACED = "miss_replaced"                 # ordinary capacity eviction (LRU)
    MISS_FORCED_EVICTION = "miss_forced_eviction"   # evicted a line whose lease had not expired

    @property
    def is_hit(self) -> bool:
        return self is AccessOutcome.HIT


@dataclass
class SimulationStats:
    """Per-run counters. Frozen once the trace is exhausted."""
    hits: int = 0
    misses: int = 0
    forced_evictions: int = 0
    accesses: int = 0
    expirations: int = 0
    replacements: int = 0
    frozen: bool = field(default=False, compare=False)

    def record(self, outcome: AccessOutcome, expired: int = 0):
        if self.frozen:
            raise InvariantViolation("Statistics are final; the run has already completed.")
        self.accesses += 1
        self.expirations += expired
        if outcome.is_hit:
            self.hits += 1
            return
        self.misses += 1
        if outcome is AccessOutcome.MISS_FORCED_EVICTION:
            self.forced_evictions += 1
        elif outcome is AccessOutcome.MISS_REPLACED:
            self.replacements += 1

    def freeze(self) -> SimulationStats:
        if self.hits + self.misses != self.accesses:
            raise InvariantViolation(
                f"hits ({self.hits}) + misses ({self.misses}) != accesses ({self.accesses})"
            )
        self.frozen = True
        return self

    @property
    def hit_ratio(self) -> float:
        return self.hits / self.accesses if self.accesses else 0.0

    @property
    def miss_ratio(self) -> float:
        return self.misses / self.accesses if self.accesses else 0.0

    @property
    def forced_eviction_ratio(self) -> float:
        return self.forced_evictions / self.accesses if self.accesses else 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "accesses": self.accesses,
            "hits": self.hits,
            "misses": self.misses,
            "forced_evictions": self.forced_evictions,
            "expirations": self.expirations,
            "replacements": self.replacements,
            "hit_ratio": self.hit_ratio,
            "miss_ratio": self.miss_ratio,
            "forced_eviction_ratio": self.forced_eviction_ratio,
        }
