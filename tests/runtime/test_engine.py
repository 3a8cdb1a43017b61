import pytest
from lease_sim.cache.cache_config import CacheConfig
from lease_sim.errors import InvariantViolation
from lease_sim.ir.trace import Access, make_trace
from lease_sim.lease.directory import LeaseDirectory, LeaseEntry
from lease_sim.runtime.engine import CacheEngine
from lease_sim.runtime.policies import (
    LRUPolicy, PhysicalLeasePolicy, PredictiveLeasePolicy, VirtualLeasePolicy,
)
from lease_sim.runtime.stats import AccessOutcome

A, B, C = 0xA, 0xB, 0xC


def outcomes(engine, trace):
    return [engine.access(a) for a in trace]


def test_physical_forced_eviction_scenario(single_line_cache):
    """[A, B, A] in a one-line cache, A leased for 5 accesses from position 0."""
    # given
    directory = LeaseDirectory([LeaseEntry(A, 5, 5, position=0)])
    engine = CacheEngine(single_line_cache, PhysicalLeasePolicy(single_line_cache, directory))

    # when
    result = outcomes(engine, make_trace([A, B, A]))

    # then
    assert result[0] is AccessOutcome.MISS
    # A still had 4 accesses of lease left when B needed the line
    assert result[1] is AccessOutcome.MISS_FORCED_EVICTION
    # B had no lease, so it expired and A is reinserted without forcing
    assert not result[2].is_hit
    assert result[2] is not AccessOutcome.MISS_FORCED_EVICTION

    stats = engine.stats.freeze()
    assert (stats.hits, stats.misses, stats.forced_evictions, stats.accesses) == (0, 3, 1, 3)
    line = engine.store.sets[0].ways[0]
    assert line.tag == A and line.remaining_lease == 5


def test_lru_scenario(single_line_cache):
    engine = CacheEngine(single_line_cache, LRUPolicy(single_line_cache))

    result = outcomes(engine, make_trace([A, B, A]))

    assert result == [AccessOutcome.MISS, AccessOutcome.MISS_REPLACED, AccessOutcome.MISS_REPLACED]
    stats = engine.stats.freeze()
    assert stats.misses == 3
    assert stats.forced_evictions == 0
    assert stats.replacements == 2


def test_hit_refreshes_lease(two_way_cache):
    # addresses 0x0 and 0x8 share set 0 (4-byte blocks, 2 sets)
    directory = LeaseDirectory.from_leases({0x0: 3, 0x8: 10})
    engine = CacheEngine(two_way_cache, PhysicalLeasePolicy(two_way_cache, directory))

    result = outcomes(engine, make_trace([0x0, 0x8, 0x0]))

    assert result == [AccessOutcome.MISS, AccessOutcome.MISS, AccessOutcome.HIT]
    cache_set = engine.store.sets[0]
    line_0 = cache_set.ways[cache_set.find(0x0 >> 3)]
    line_8 = cache_set.ways[cache_set.find(0x8 >> 3)]
    assert line_0.remaining_lease == 3      # refreshed on the hit
    assert line_8.remaining_lease == 9      # aged once by the other access
    assert line_0.tenancy == 1


def test_hit_without_lease_keeps_countdown(two_way_cache):
    directory = LeaseDirectory([LeaseEntry(0x0, 6, 6, position=0), LeaseEntry(0x8, 2, 2, position=0)])
    policy = PhysicalLeasePolicy(two_way_cache, directory)
    engine = CacheEngine(two_way_cache, policy)

    # offset bytes of the same block hit without a lease of their own
    outcomes(engine, make_trace([0x0, 0x8, 0x1]))

    cache_set = engine.store.sets[0]
    assert cache_set.ways[cache_set.find(0)].remaining_lease == 5


def test_expired_line_frees_its_way(two_way_cache):
    directory = LeaseDirectory.from_leases({0x0: 1, 0x8: 5, 0x10: 5})
    engine = CacheEngine(two_way_cache, PhysicalLeasePolicy(two_way_cache, directory))

    result = outcomes(engine, make_trace([0x0, 0x8, 0x10]))

    # 0x0 expires when 0x8 arrives and 0x8 takes its way
    assert result == [AccessOutcome.MISS, AccessOutcome.MISS_EXPIRED, AccessOutcome.MISS]
    assert engine.stats.expirations == 1
    assert engine.stats.forced_evictions == 0


def test_forced_victim_smallest_lease_then_oldest(two_way_cache):
    directory = LeaseDirectory.from_leases({0x0: 9, 0x8: 4, 0x10: 4, 0x18: 4})
    engine = CacheEngine(two_way_cache, PhysicalLeasePolicy(two_way_cache, directory))

    # 0x0 (9) and 0x8 (4) resident; 0x10 forces out 0x8, the smaller lease
    outcomes(engine, make_trace([0x0, 0x8, 0x10]))
    cache_set = engine.store.sets[0]
    assert cache_set.find(0x8 >> 3) is None
    assert cache_set.find(0x0) is not None
    assert engine.stats.forced_evictions == 1


def test_forced_victim_tie_goes_to_earliest_inserted(two_way_cache):
    directory = LeaseDirectory.from_leases({0x0: 5, 0x8: 6, 0x10: 5})
    engine = CacheEngine(two_way_cache, PhysicalLeasePolicy(two_way_cache, directory))

    # level both leases so only insertion order decides
    outcomes(engine, make_trace([0x0, 0x8]))
    cache_set = engine.store.sets[0]
    for line in cache_set.ways:
        line.remaining_lease = 4
    engine.access(Access(2, 0x10))

    assert cache_set.find(0x0) is None
    assert cache_set.find(0x8 >> 3) is not None


def test_virtual_mode_tags_by_reference(single_line_cache):
    # two raw addresses, one analysis-level block
    trace = make_trace([0x100, 0x204], references=[0x7, 0x7])
    directory = LeaseDirectory.from_leases({0x7: 4})

    physical = CacheEngine(single_line_cache, PhysicalLeasePolicy(single_line_cache, directory))
    virtual = CacheEngine(single_line_cache, VirtualLeasePolicy(single_line_cache, directory))

    assert outcomes(physical, trace)[1] is not AccessOutcome.HIT
    assert outcomes(virtual, trace)[1] is AccessOutcome.HIT


def test_virtual_mode_never_aliases_distinct_references(two_way_cache):
    # references differing only in what would be offset bits
    trace = make_trace([0x0, 0x1], references=[0x10, 0x11])
    engine = CacheEngine(two_way_cache, VirtualLeasePolicy(two_way_cache, LeaseDirectory.from_leases({0x10: 9, 0x11: 9})))

    assert outcomes(engine, trace) == [AccessOutcome.MISS, AccessOutcome.MISS]


def test_predictive_default_then_departure_lease(single_line_cache):
    """Unleased X: default on first sight, then the lease it had when it was evicted."""
    X, Y = 0x1, 0x2
    directory = LeaseDirectory.from_leases({Y: 10})
    policy = PredictiveLeasePolicy(single_line_cache, directory, default_lease=16)
    engine = CacheEngine(single_line_cache, policy)
    line = lambda: engine.store.sets[0].ways[0]

    engine.access(Access(0, X))
    assert line().remaining_lease == 16

    # Y forces X out with 15 left
    assert engine.access(Access(1, Y)) is AccessOutcome.MISS_FORCED_EVICTION

    engine.access(Access(2, X))
    assert line().remaining_lease == 15

    # the prediction is never written into the directory
    assert X not in directory


def test_predictive_after_natural_expiry_predicts_zero(two_way_cache):
    directory = LeaseDirectory.from_leases({0xB: 1})
    policy = PredictiveLeasePolicy(two_way_cache, directory, default_lease=3)
    engine = CacheEngine(two_way_cache, policy)

    # references 0xA, 0xB, 0xC -> virtual blocks 0, 1, 2 -> sets 0, 1, 0
    trace = make_trace([0] * 6, references=[0xA, 0xB, 0xC, 0xC, 0xC, 0xA])
    result = outcomes(engine, trace)

    # 0xA (default 3) is aged by every access, in either set, and runs out on the first hit to 0xC
    assert result[3:5] == [AccessOutcome.HIT, AccessOutcome.HIT]
    assert result[-1] is AccessOutcome.MISS
    assert policy.predictor.last_departure((0, 0)) == 0
    cache_set = engine.store.sets[0]
    assert cache_set.ways[cache_set.find(0)].remaining_lease == 0


def test_modes_zero_and_one_do_not_predict(single_line_cache):
    policy = VirtualLeasePolicy(single_line_cache)
    engine = CacheEngine(single_line_cache, policy)
    engine.access(Access(0, 0x5))
    assert engine.store.sets[0].ways[0].remaining_lease == 0


def test_out_of_order_access_is_rejected(single_line_cache):
    engine = CacheEngine(single_line_cache, LRUPolicy(single_line_cache))
    engine.access(Access(0, A))
    with pytest.raises(InvariantViolation, match="out of order"):
        engine.access(Access(5, B))


def test_stats_frozen_after_run(single_line_cache):
    engine = CacheEngine(single_line_cache, LRUPolicy(single_line_cache))
    stats = engine.run(make_trace([A, A]))
    assert stats.hits == 1 and stats.misses == 1
    with pytest.raises(InvariantViolation):
        engine.access(Access(2, A))


def test_larger_geometry_lru_hits(two_way_cache):
    engine = CacheEngine(two_way_cache, LRUPolicy(two_way_cache))
    # 0x0, 0x8 fill set 0; 0x0 touched; 0x10 evicts 0x8 (LRU); 0x0 still hits
    result = outcomes(engine, make_trace([0x0, 0x8, 0x0, 0x10, 0x0, 0x8]))
    assert result == [
        AccessOutcome.MISS, AccessOutcome.MISS, AccessOutcome.HIT,
        AccessOutcome.MISS_REPLACED, AccessOutcome.HIT, AccessOutcome.MISS_REPLACED,
    ]


def test_accesses_to_one_set_age_lines_in_every_set():
    """A line in set 0 runs out of lease while only set 1 is being accessed."""
    # given: direct-mapped, 2 sets, 1-byte blocks; even addresses map to set 0
    cache = CacheConfig(associativity=1, offset_bits=0, set_bits=1, cache_size=2)
    directory = LeaseDirectory.from_leases({0x0: 2, 0x1: 9, 0x3: 9, 0x2: 9})
    engine = CacheEngine(cache, PhysicalLeasePolicy(cache, directory))

    # when
    result = outcomes(engine, make_trace([0x0, 0x1, 0x3, 0x2]))

    # then
    # 0x0 expires during the second access to set 1 ...
    assert result[2] is AccessOutcome.MISS_FORCED_EVICTION     # 0x3 displaces 0x1 in set 1
    assert engine.stats.expirations == 1
    # ... so 0x2 finds set 0 already empty
    assert result[3] is AccessOutcome.MISS
    stats = engine.stats.freeze()
    assert stats.forced_evictions == 1
    assert engine.store.sets[0].ways[0].tag == 0x2 >> 1


def test_lru_lines_never_age_out():
    cache = CacheConfig(associativity=1, offset_bits=0, set_bits=1, cache_size=2)
    engine = CacheEngine(cache, LRUPolicy(cache))

    result = outcomes(engine, make_trace([0x0, 0x1, 0x3, 0x1, 0x0]))

    assert result[-1] is AccessOutcome.HIT
    assert engine.stats.expirations == 0
