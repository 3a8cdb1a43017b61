from __future__ import annotations
from typing import Any, Dict, Iterable, Optional

import numpy as np

from ..ir.trace import Access
from ..lease.directory import LeaseDirectory


def estimate_lease_coverage(trace: Iterable[Access], directory: LeaseDirectory,
                            rng: Optional[np.random.Generator] = None) -> Dict[str, Any]:
    """
    Estimates how well the leases fit the trace without simulating a cache.

    An access is covered when its reuse interval fits within its lease, i.e.
    the block would still be leased when it is next used. Accesses without a
    reuse interval or without a lease are counted as unknown.
    """
    covered = 0
    uncovered = 0
    unknown = 0
    for access in trace:
        if access.reuse_interval is None:
            unknown += 1
            continue
        lease = directory.lease_for(access, rng)
        if lease is None:
            unknown += 1
        elif access.reuse_interval <= lease:
            covered += 1
        else:
            uncovered += 1

    judged = covered + uncovered
    return {
        "covered": covered,
        "uncovered": uncovered,
        "unknown": unknown,
        "estimated_miss_ratio": uncovered / judged if judged else 0.0,
    }
