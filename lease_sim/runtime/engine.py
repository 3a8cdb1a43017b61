from __future__ import annotations
from typing import Dict, Iterable, List, Optional

from ..cache.cache_config import CacheConfig
from ..cache.store import InsertionKind, SetAssociativeStore
from ..errors import InvariantViolation
from ..ir.trace import Access
from ..utils.logging import get_logger
from .policies import ReplacementPolicy
from .stats import AccessOutcome, SimulationStats

logger = get_logger(__name__)


class CacheEngine:
    """
    The cache state machine shared by all modes.

    Every access first ages each resident line in every set, except the line
    being hit, and frees the lines whose leases ran out. The access is then a
    hit, or a miss that places the block in a free way, in a way freed by an
    expired lease, or in a way taken from a victim. The policy decides
    addressing, lease bookkeeping and the victim; the engine drives the store
    and the statistics.
    """
    def __init__(self, cache: CacheConfig, policy: ReplacementPolicy,
                 stats: Optional[SimulationStats] = None):
        self.cache = cache
        self.policy = policy
        self.store = SetAssociativeStore(cache)
        self.stats = stats or SimulationStats()
        self.step = 0

    def _expire(self, set_index: int, ways: List[int]):
        for way in ways:
            expired = self.store.evict(set_index, way)
            self.policy.on_departure(expired, set_index)

    def _age_all(self, set_index: int, hit_way: Optional[int]) -> Dict[int, List[int]]:
        """Ages every resident line in the cache except the one being hit, expiring lines that run out."""
        expired_by_set: Dict[int, List[int]] = {}
        for index, cache_set in enumerate(self.store.sets):
            skip_way = hit_way if index == set_index else None
            expired = self.policy.age(cache_set, skip_way)
            if expired:
                self._expire(index, expired)
                expired_by_set[index] = expired
        return expired_by_set

    def access(self, access: Access) -> AccessOutcome:
        """Processes one access and returns its outcome."""
        if access.position != self.step:
            raise InvariantViolation(
                f"Access at position {access.position} arrived out of order; expected {self.step}."
            )

        block = self.policy.decompose(access)
        if not 0 <= block.set_index < self.cache.num_sets:
            raise InvariantViolation(f"Set index {block.set_index} out of range for {self.cache.num_sets} sets.")
        cache_set = self.store.sets[block.set_index]
        way = self.store.lookup(block.tag, block.set_index)

        expired_by_set = self._age_all(block.set_index, way)

        if way is not None:
            self.policy.on_hit(cache_set, way, access, block)
            outcome = AccessOutcome.HIT
        else:
            new_line = self.policy.new_line(access, block)
            inserted = self.store.insert(block.set_index, new_line, self.policy.select_victim,
                                         expired_by_set.get(block.set_index, ()))
            if inserted.kind is InsertionKind.EVICTED_VICTIM:
                self.policy.on_departure(inserted.victim, block.set_index)
                outcome = (AccessOutcome.MISS_FORCED_EVICTION if self.policy.counts_forced_evictions
                           else AccessOutcome.MISS_REPLACED)
            elif inserted.kind is InsertionKind.EVICTED_EXPIRED_LINE:
                outcome = AccessOutcome.MISS_EXPIRED
            else:
                outcome = AccessOutcome.MISS

        self.stats.record(outcome, expired=sum(len(ways) for ways in expired_by_set.values()))
        self.step += 1
        logger.debug("access %d addr=%#x set=%d tag=%#x -> %s",
                     access.position, access.address, block.set_index, block.tag, outcome.value)
        return outcome

    def run(self, trace: Iterable[Access]) -> SimulationStats:
        """Feeds the whole trace in order and returns the final statistics."""
        for access in trace:
            self.access(access)
        return self.stats.freeze()
