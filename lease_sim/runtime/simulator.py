from __future__ import annotations
from dataclasses import replace
from typing import Dict, Optional, Sequence

import numpy as np

from ..config import MODES, SimConfig
from ..ir.trace import Access
from ..lease.directory import LeaseDirectory
from ..utils.logging import get_logger
from .engine import CacheEngine
from .policies import create_policy
from .stats import SimulationStats

logger = get_logger(__name__)


def build_engine(config: SimConfig, directory: Optional[LeaseDirectory] = None) -> CacheEngine:
    """Validates the config and builds a fresh engine for its mode."""
    cache = config.validate()
    rng = np.random.default_rng(config.seed)
    policy = create_policy(config.mode, cache, directory, rng, default_lease=config.default_lease)
    return CacheEngine(cache, policy)


def run(trace: Sequence[Access], directory: Optional[LeaseDirectory], config: SimConfig) -> SimulationStats:
    """
    Runs one simulation of the trace in the configured mode.

    Every call builds its own cache, random generator and policy state, so the
    same inputs always give the same statistics.
    """
    engine = build_engine(config, directory)
    logger.info("Running simulation with mode=%d (%s), %d-way, %d sets, %d-byte blocks",
                config.mode, config.mode_name, engine.cache.associativity,
                engine.cache.num_sets, engine.cache.block_size)

    stats = engine.run(trace)

    if config.dump_state:
        engine.store.dump(config.dump_state, step=engine.step)
        logger.info("Cache state written to %s", config.dump_state)

    logger.info("Finished %d accesses: %d hits, %d misses, %d forced evictions",
                stats.accesses, stats.hits, stats.misses, stats.forced_evictions)
    return stats


def run_all_modes(trace: Sequence[Access], directory: Optional[LeaseDirectory],
                  config: SimConfig) -> Dict[str, SimulationStats]:
    """Runs every mode on the same inputs. Runs share no state."""
    config.validate()
    results: Dict[str, SimulationStats] = {}
    for mode, name in MODES.items():
        mode_config = replace(config, mode=mode, dump_state="")
        results[name] = run(trace, directory, mode_config)
    return results
