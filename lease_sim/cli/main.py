from __future__ import annotations
import argparse
import sys
import time

import numpy as np

from ..config import SimConfig
from ..errors import ConfigError, LeaseSimError
from ..ir.lease_table import load_lease_table
from ..ir.trace import load_trace
from ..lease.directory import LeaseDirectory
from ..runtime.coverage import estimate_lease_coverage
from ..runtime.simulator import run as run_sim, run_all_modes
from ..utils.reporting import generate_report, generate_comparison_report


def _load_inputs(config: SimConfig):
    config.validate()
    if not config.trace:
        raise ConfigError("No trace file given (use -t or set 'trace' in the config file).")
    trace = load_trace(config.trace)
    directory = load_lease_table(config.lease_table) if config.lease_table else LeaseDirectory()
    return trace, directory


def cmd_run(args):
    """Handles the 'run' command."""
    config = SimConfig.from_args(args)

    print("--- Simulator Configuration ---")
    print(config)
    print("-----------------------------")

    trace, directory = _load_inputs(config)

    start = time.perf_counter()
    stats = run_sim(trace, directory, config)
    elapsed = time.perf_counter() - start

    coverage = None
    if config.coverage:
        coverage = estimate_lease_coverage(trace, directory, np.random.default_rng(config.seed))

    generate_report(stats, config, elapsed, coverage)
    return 0


def cmd_compare(args):
    """Handles the 'compare' command."""
    config = SimConfig.from_args(args)
    trace, directory = _load_inputs(config)

    start = time.perf_counter()
    results = run_all_modes(trace, directory, config)
    elapsed = time.perf_counter() - start

    generate_comparison_report(results, config, elapsed)
    return 0


def _add_common_args(p: argparse.ArgumentParser):
    # default=None everywhere so YAML values are only overridden when given
    p.add_argument("-c", "--config", type=str, default=None,
                   help="Path to YAML config file to override defaults")
    p.add_argument("-t", "--trace", type=str, default=None,
                   help="Path of the trace file")
    p.add_argument("-l", "--lease-table", type=str, default=None, dest="lease_table",
                   help="Path of the lease table file")

    geometry = p.add_argument_group('Cache Geometry')
    geometry.add_argument("-a", "--associativity", type=int, default=None,
                          help="Ways per set")
    geometry.add_argument("-o", "--offset", type=int, default=None, dest="offset_bits",
                          help="Length of the block offset in bits")
    geometry.add_argument("-s", "--set", type=int, default=None, dest="set_bits",
                          help="Length of the set index in bits")
    geometry.add_argument("--cache-size", type=int, default=None, dest="cache_size",
                          help="Total cache size; must equal associativity * 2^set * 2^offset")

    leases = p.add_argument_group('Leases')
    leases.add_argument("--seed", type=int, default=None,
                        help="Seed for choosing between short and long leases")
    leases.add_argument("--default-lease", type=int, default=None, dest="default_lease",
                        help="Lease predicted for blocks never seen leaving the cache (mode 2)")

    p.add_argument("--report", type=str, default=None, dest="report_dir",
                   help="Directory to save simulation reports")


def build_parser():
    p = argparse.ArgumentParser(
        prog="lease-sim",
        description="Lease cache simulator",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )
    sub = p.add_subparsers(dest="cmd", required=True)

    # --- Run Command ---
    pr = sub.add_parser("run", help="Simulate one mode",
                        formatter_class=argparse.ArgumentDefaultsHelpFormatter)
    _add_common_args(pr)
    pr.add_argument("-m", "--mode", type=int, default=None, choices=[0, 1, 2, 3],
                    help="0 physical, 1 virtual, 2 virtual with prediction, 3 LRU")
    pr.add_argument("--dump-state", type=str, default=None, dest="dump_state",
                    help="Append the final cache state to this file")
    pr.add_argument("--coverage", action="store_true", default=None,
                    help="Also estimate lease coverage from the trace's reuse intervals")
    pr.set_defaults(func=cmd_run)

    # --- Compare Command ---
    pc = sub.add_parser("compare", help="Simulate every mode on the same inputs",
                        formatter_class=argparse.ArgumentDefaultsHelpFormatter)
    _add_common_args(pc)
    pc.set_defaults(func=cmd_compare)

    return p


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        return args.func(args)
    except (LeaseSimError, OSError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
