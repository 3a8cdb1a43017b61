import pytest
from lease_sim.cache.cache_config import CacheConfig


@pytest.fixture
def single_line_cache():
    """A direct-mapped cache holding exactly one line."""
    return CacheConfig(associativity=1, offset_bits=0, set_bits=0, cache_size=1)


@pytest.fixture
def two_way_cache():
    """2-way, 2 sets, 4-byte blocks."""
    return CacheConfig(associativity=2, offset_bits=2, set_bits=1, cache_size=16)
