from __future__ import annotations
import json
from pathlib import Path
from typing import Any, Dict, Optional

from ..config import SimConfig
from ..runtime.stats import SimulationStats
from . import viz


def generate_report_json(stats: SimulationStats, config: SimConfig, elapsed_s: float = 0.0,
                         coverage: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Generates a JSON-compatible dictionary for one run."""
    report_data = {
        "mode": config.mode,
        "mode_name": config.mode_name,
        "elapsed_s": elapsed_s,
        "config": dict(config.__dict__),
    }
    report_data.update(stats.to_dict())
    if coverage is not None:
        report_data["lease_coverage"] = coverage
    return report_data


def format_summary(report_data: Dict[str, Any]) -> str:
    lines = [
        f"Mode: {report_data['mode']} ({report_data['mode_name']})",
        f"Accesses: {report_data['accesses']}",
        f"Hits: {report_data['hits']}",
        f"Misses: {report_data['misses']}",
        f"Miss ratio: {report_data['miss_ratio']:.6f}",
        f"Force Eviction: {report_data['forced_evictions']} / {report_data['accesses']} "
        f"({report_data['forced_eviction_ratio']:.6f})",
    ]
    if report_data.get("lease_coverage"):
        cov = report_data["lease_coverage"]
        lines.append(
            f"Lease coverage: {cov['covered']} covered, {cov['uncovered']} uncovered, "
            f"{cov['unknown']} unknown (estimated miss ratio {cov['estimated_miss_ratio']:.6f})"
        )
    lines.append(f"Time elapsed: {report_data['elapsed_s']:.3f}s")
    return "\n".join(lines)


def generate_report(stats: SimulationStats, config: SimConfig, elapsed_s: float = 0.0,
                    coverage: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Writes report.json and prints a summary."""
    report_data = generate_report_json(stats, config, elapsed_s, coverage)
    output_dir = Path(config.report_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    with open(output_dir / "report.json", "w") as f:
        json.dump(report_data, f, indent=4)

    print(format_summary(report_data))
    print(f"\nReports generated in {output_dir.absolute()}")
    return report_data


def generate_comparison_report(results: Dict[str, SimulationStats], config: SimConfig,
                               elapsed_s: float = 0.0) -> Dict[str, Any]:
    """Writes comparison.json and comparison.html for a run of every mode."""
    rows = [{"mode": name, **stats.to_dict()} for name, stats in results.items()]
    report_data = {
        "elapsed_s": elapsed_s,
        "config": dict(config.__dict__),
        "modes": rows,
    }
    output_dir = Path(config.report_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    with open(output_dir / "comparison.json", "w") as f:
        json.dump(report_data, f, indent=4)

    viz.export_mode_comparison(rows, str(output_dir / "comparison.html"))
    print(viz.export_mode_comparison_ascii(rows))

    print(f"\nReports generated in {output_dir.absolute()}")
    return report_data
