from __future__ import annotations
import csv
from pathlib import Path
from typing import Dict, List

from ..errors import LeaseParseError
from ..lease.directory import LeaseDirectory, LeaseEntry
from ..utils.logging import get_logger

logger = get_logger(__name__)

# The text format starts with two header lines
TEXT_HEADER_LINES = 2


def _parse_hex(text: str) -> int:
    text = text.strip()
    if text[:2].lower() == "0x":
        text = text[2:]
    return int(text, 16)


def _make_entry(line_no: int, record: str, position: int, fields: List[str],
                last_position: Dict[int, int]) -> LeaseEntry:
    try:
        reference = _parse_hex(fields[0])
        short_lease = _parse_hex(fields[1])
        long_lease = _parse_hex(fields[2])
        short_prob = float(fields[3])
        entry = LeaseEntry(reference, short_lease, long_lease, short_prob, position)
    except ValueError as e:
        raise LeaseParseError(line_no, record, str(e)) from e

    previous = last_position.get(reference)
    if previous is not None and position <= previous:
        raise LeaseParseError(
            line_no, record,
            f"reference {reference:#x} repeated without a later position (previous {previous})",
        )
    last_position[reference] = position
    return entry


def _read_text(lines: List[str]) -> List[LeaseEntry]:
    entries: List[LeaseEntry] = []
    last_position: Dict[int, int] = {}
    for line_no, line in enumerate(lines[TEXT_HEADER_LINES:], start=TEXT_HEADER_LINES + 1):
        if not line.strip():
            continue
        parts = line.split(",")
        if len(parts) < 5:
            raise LeaseParseError(line_no, line, "expected position, reference, short lease, long lease, short probability")
        try:
            position = int(parts[0].strip())
        except ValueError as e:
            raise LeaseParseError(line_no, line, f"bad position: {e}") from e
        entries.append(_make_entry(line_no, line, position, parts[1:5], last_position))
    return entries


def _read_csv(lines: List[str]) -> List[LeaseEntry]:
    entries: List[LeaseEntry] = []
    last_position: Dict[int, int] = {}
    # Header row first, then reference, short lease, long lease, short probability
    for line_no, row in enumerate(csv.reader(lines[1:]), start=2):
        record = ",".join(row)
        if not record.strip():
            continue
        if len(row) < 4:
            raise LeaseParseError(line_no, record, "expected reference, short lease, long lease, short probability")
        entries.append(_make_entry(line_no, record, 0, row[:4], last_position))
    return entries


def load_lease_table(path: str) -> LeaseDirectory:
    """Loads a lease table file (.csv, or the two-line-header text format) into a LeaseDirectory."""
    with open(path, "r", newline="") as f:
        lines = f.read().splitlines()

    if Path(path).suffix.lower() == ".csv":
        entries = _read_csv(lines)
    else:
        entries = _read_text(lines)

    logger.info("Loaded %d lease entries from %s", len(entries), path)
    return LeaseDirectory(entries)
