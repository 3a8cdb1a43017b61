from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Iterable, List, Optional

from .cache_config import CacheConfig
from ..errors import InvariantViolation


class CacheLine:
    """Represents a single line (way) in a cache set."""
    def __init__(self):
        self.valid = False
        self.tag = -1
        self.remaining_lease = 0
        self.tenancy = 0
        self.inserted_at = -1
        self.last_used = -1

    @classmethod
    def filled(cls, tag: int, position: int, remaining_lease: int = 0) -> CacheLine:
        line = cls()
        line.valid = True
        line.tag = tag
        line.remaining_lease = remaining_lease
        line.inserted_at = position
        line.last_used = position
        return line

    def copy(self) -> CacheLine:
        other = CacheLine()
        other.__dict__.update(self.__dict__)
        return other

    def invalidate(self):
        self.__init__()

    def describe(self) -> str:
        return (f"tag: {self.tag:#x}, remaining_lease: {self.remaining_lease}, "
                f"tenancy: {self.tenancy}, inserted_at: {self.inserted_at}, "
                f"last_used: {self.last_used}")


class CacheSet:
    """A fixed array of ways. Eviction and insertion rewrite a slot in place."""
    def __init__(self, associativity: int):
        self.ways = [CacheLine() for _ in range(associativity)]

    def find(self, tag: int) -> Optional[int]:
        """Returns the way holding a valid line with the given tag."""
        for way, line in enumerate(self.ways):
            if line.valid and line.tag == tag:
                return way
        return None

    def free_way(self) -> Optional[int]:
        for way, line in enumerate(self.ways):
            if not line.valid:
                return way
        return None

    def valid_ways(self) -> List[int]:
        return [way for way, line in enumerate(self.ways) if line.valid]

    @property
    def occupancy(self) -> int:
        return sum(1 for line in self.ways if line.valid)


VictimRule = Callable[[CacheSet], int]


class InsertionKind(Enum):
    PLACED_IN_EMPTY_SLOT = "placed_in_empty_slot"
    EVICTED_EXPIRED_LINE = "evicted_expired_line"
    EVICTED_VICTIM = "evicted_victim"


@dataclass
class InsertionOutcome:
    kind: InsertionKind
    way: int
    victim: Optional[CacheLine] = None


class SetAssociativeStore:
    """
    The cache lines of all sets.

    The store knows nothing about leases or recency. It offers the first empty
    way on insertion and otherwise asks a policy-supplied victim rule to name a
    valid way. Both structural invariants (no duplicate valid tags in a set, at
    most ``associativity`` valid lines) are checked here for every policy.
    """
    def __init__(self, config: CacheConfig):
        self.config = config
        self.sets = [CacheSet(config.associativity) for _ in range(config.num_sets)]

    def _set(self, set_index: int) -> CacheSet:
        if not 0 <= set_index < len(self.sets):
            raise InvariantViolation(f"Set index {set_index} out of range [0, {len(self.sets)}).")
        return self.sets[set_index]

    def lookup(self, tag: int, set_index: int) -> Optional[int]:
        """Returns the way on a hit, None on a miss."""
        return self._set(set_index).find(tag)

    def line(self, set_index: int, way: int) -> CacheLine:
        return self._set(set_index).ways[way]

    def evict(self, set_index: int, way: int) -> CacheLine:
        """Invalidates one line and returns a copy of what it held."""
        line = self._set(set_index).ways[way]
        if not line.valid:
            raise InvariantViolation(f"Way {way} of set {set_index} is not valid, cannot evict it.")
        evicted = line.copy()
        line.invalidate()
        return evicted

    def insert(self, set_index: int, new_line: CacheLine, victim_rule: VictimRule,
               expired_ways: Iterable[int] = ()) -> InsertionOutcome:
        """
        Places ``new_line`` in the set.

        ``expired_ways`` are ways whose lines expired during the current access;
        landing in one of them is reported as EVICTED_EXPIRED_LINE.
        """
        cache_set = self._set(set_index)
        if cache_set.find(new_line.tag) is not None:
            raise InvariantViolation(f"Tag {new_line.tag:#x} is already resident in set {set_index}.")

        way = cache_set.free_way()
        if way is not None:
            kind = (InsertionKind.EVICTED_EXPIRED_LINE if way in set(expired_ways)
                    else InsertionKind.PLACED_IN_EMPTY_SLOT)
            cache_set.ways[way] = new_line
            self.check_invariants(set_index)
            return InsertionOutcome(kind, way)

        way = victim_rule(cache_set)
        if not isinstance(way, int) or not 0 <= way < len(cache_set.ways):
            raise InvariantViolation(f"Victim rule returned invalid way {way!r} for set {set_index}.")
        victim = self.evict(set_index, way)
        cache_set.ways[way] = new_line
        self.check_invariants(set_index)
        return InsertionOutcome(InsertionKind.EVICTED_VICTIM, way, victim)

    def check_invariants(self, set_index: int):
        cache_set = self._set(set_index)
        tags = [line.tag for line in cache_set.ways if line.valid]
        if len(tags) > self.config.associativity:
            raise InvariantViolation(
                f"Set {set_index} holds {len(tags)} valid lines, associativity is {self.config.associativity}."
            )
        if len(tags) != len(set(tags)):
            raise InvariantViolation(f"Duplicate tag among valid lines of set {set_index}.")

    @property
    def occupancy(self) -> int:
        return sum(s.occupancy for s in self.sets)

    def reset(self):
        for cache_set in self.sets:
            for line in cache_set.ways:
                line.invalidate()

    def format_state(self, step: int | None = None) -> str:
        """Renders every non-empty set, one line per valid way."""
        header = f"----The cache status: resident lines: {self.occupancy} / {self.config.num_lines}"
        if step is not None:
            header += f", step: {step}"
        out = [header]
        for index, cache_set in enumerate(self.sets):
            if not cache_set.occupancy:
                continue
            out.append(f"*CacheSet index: {index}")
            for way, line in enumerate(cache_set.ways):
                if line.valid:
                    out.append(f"  way {way}: {line.describe()}")
        return "\n".join(out) + "\n"

    def dump(self, path: str, step: int | None = None):
        """Appends the current cache state to a text file."""
        output = Path(path)
        output.parent.mkdir(parents=True, exist_ok=True)
        with open(output, "a") as f:
            f.write(self.format_state(step))
