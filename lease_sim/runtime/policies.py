from __future__ import annotations
from typing import List, Optional

import numpy as np

from ..cache.address import AddressDecomposer, BlockAddress
from ..cache.cache_config import CacheConfig
from ..cache.store import CacheLine, CacheSet
from ..errors import ConfigError
from ..ir.trace import Access
from ..lease.directory import LeaseDirectory
from ..lease.predictor import LeasePredictor
from ..lease.translator import AddressTranslator


class ReplacementPolicy:
    """
    What differs between simulation modes.

    The engine asks the policy how to address an access, how an access ages
    the lines of each set (returning the ways whose lines expired), what to
    refresh on a hit, what the new line looks like and which line to give up
    when the set is full.
    """
    name = "base"
    counts_forced_evictions = False

    def __init__(self, cache: CacheConfig, directory: Optional[LeaseDirectory] = None,
                 rng: Optional[np.random.Generator] = None):
        self.cache = cache
        self.decomposer = AddressDecomposer(cache.offset_bits, cache.set_bits)
        self.directory = directory if directory is not None else LeaseDirectory()
        self.rng = rng

    def decompose(self, access: Access) -> BlockAddress:
        return self.decomposer.decompose(access.address)

    def lease_for(self, access: Access, block: BlockAddress) -> Optional[int]:
        return None

    def age(self, cache_set: CacheSet, skip_way: Optional[int] = None) -> List[int]:
        return []

    def on_hit(self, cache_set: CacheSet, way: int, access: Access, block: BlockAddress):
        raise NotImplementedError

    def new_line(self, access: Access, block: BlockAddress) -> CacheLine:
        raise NotImplementedError

    def select_victim(self, cache_set: CacheSet) -> int:
        raise NotImplementedError

    def on_departure(self, line: CacheLine, set_index: int):
        """Called with a copy of every line that leaves the cache."""


class PhysicalLeasePolicy(ReplacementPolicy):
    """Mode 0: raw addresses, leases straight from the lease table."""
    name = "physical"
    counts_forced_evictions = True

    def lease_for(self, access: Access, block: BlockAddress) -> Optional[int]:
        return self.directory.lease_for(access, self.rng)

    def age(self, cache_set: CacheSet, skip_way: Optional[int] = None) -> List[int]:
        """Charges one access to every other resident line and returns the expired ways."""
        expired = []
        for way, line in enumerate(cache_set.ways):
            if not line.valid or way == skip_way:
                continue
            if line.remaining_lease > 0:
                line.remaining_lease -= 1
            line.tenancy += 1
            if line.remaining_lease == 0:
                expired.append(way)
        return expired

    def on_hit(self, cache_set: CacheSet, way: int, access: Access, block: BlockAddress):
        line = cache_set.ways[way]
        line.last_used = access.position
        lease = self.lease_for(access, block)
        if lease is not None:
            line.remaining_lease = lease

    def new_line(self, access: Access, block: BlockAddress) -> CacheLine:
        lease = self.lease_for(access, block)
        # no lease means eviction-eligible at the next access
        return CacheLine.filled(block.tag, access.position, 0 if lease is None else lease)

    def select_victim(self, cache_set: CacheSet) -> int:
        # smallest remaining lease, ties to the earliest inserted line
        return min(
            cache_set.valid_ways(),
            key=lambda w: (cache_set.ways[w].remaining_lease, cache_set.ways[w].inserted_at),
        )


class VirtualLeasePolicy(PhysicalLeasePolicy):
    """Mode 1: lines are tagged by the translated block reference."""
    name = "virtual"

    def __init__(self, cache: CacheConfig, directory: Optional[LeaseDirectory] = None,
                 rng: Optional[np.random.Generator] = None):
        super().__init__(cache, directory, rng)
        self.translator = AddressTranslator(cache.offset_bits)

    def decompose(self, access: Access) -> BlockAddress:
        return self.decomposer.decompose(self.translator.translate(access.block_reference))


class PredictiveLeasePolicy(VirtualLeasePolicy):
    """Mode 2: virtual mode that predicts a lease when the table has none."""
    name = "predictive"

    def __init__(self, cache: CacheConfig, directory: Optional[LeaseDirectory] = None,
                 rng: Optional[np.random.Generator] = None, default_lease: int = 16):
        super().__init__(cache, directory, rng)
        self.predictor = LeasePredictor(default_lease)

    def lease_for(self, access: Access, block: BlockAddress) -> Optional[int]:
        lease = super().lease_for(access, block)
        if lease is None:
            lease = self.predictor.predict((block.tag, block.set_index))
        return lease

    def on_departure(self, line: CacheLine, set_index: int):
        self.predictor.observe_departure((line.tag, set_index), line.remaining_lease)


class LRUPolicy(ReplacementPolicy):
    """Mode 3: recency only. Leases are ignored and nothing expires."""
    name = "lru"

    def on_hit(self, cache_set: CacheSet, way: int, access: Access, block: BlockAddress):
        cache_set.ways[way].last_used = access.position

    def new_line(self, access: Access, block: BlockAddress) -> CacheLine:
        return CacheLine.filled(block.tag, access.position)

    def select_victim(self, cache_set: CacheSet) -> int:
        return min(cache_set.valid_ways(), key=lambda w: cache_set.ways[w].last_used)


def create_policy(mode: int, cache: CacheConfig, directory: Optional[LeaseDirectory] = None,
                  rng: Optional[np.random.Generator] = None, default_lease: int = 16) -> ReplacementPolicy:
    """Builds the policy for a simulation mode (0 physical, 1 virtual, 2 predictive, 3 LRU)."""
    if mode == 0:
        return PhysicalLeasePolicy(cache, directory, rng)
    if mode == 1:
        return VirtualLeasePolicy(cache, directory, rng)
    if mode == 2:
        return PredictiveLeasePolicy(cache, directory, rng, default_lease=default_lease)
    if mode == 3:
        return LRUPolicy(cache, directory, rng)
    raise ConfigError(f"Unknown mode {mode!r}; expected one of [0, 1, 2, 3].")
