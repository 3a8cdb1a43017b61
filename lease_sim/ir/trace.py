from __future__ import annotations
import csv
from dataclasses import dataclass
from typing import Iterable, List, Optional

from ..errors import TraceParseError
from ..utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class Access:
    """A single memory access of the trace."""
    position: int
    address: int
    reference: Optional[int] = None
    reuse_interval: Optional[int] = None

    @property
    def block_reference(self) -> int:
        """The analysis-level block identity; the raw address when none was recorded."""
        return self.address if self.reference is None else self.reference


def parse_int(text: str) -> int:
    """Parses ``0x``-prefixed hex or plain decimal."""
    text = text.strip()
    if text[:2].lower() == "0x":
        value = int(text[2:], 16)
    else:
        value = int(text, 10)
    if value < 0:
        raise ValueError("negative value")
    return value


def make_trace(addresses: Iterable[int], references: Optional[Iterable[int]] = None,
               reuse_intervals: Optional[Iterable[Optional[int]]] = None) -> List[Access]:
    """Builds an in-memory trace, numbering accesses by position."""
    addresses = list(addresses)
    refs = list(references) if references is not None else [None] * len(addresses)
    ris = list(reuse_intervals) if reuse_intervals is not None else [None] * len(addresses)
    if len(refs) != len(addresses) or len(ris) != len(addresses):
        raise ValueError("addresses, references and reuse intervals must have the same length")
    return [Access(i, a, r, ri) for i, (a, r, ri) in enumerate(zip(addresses, refs, ris))]


def _parse_csv(lines: List[str]) -> List[Access]:
    # Header row first, then reference, reuse_interval, address
    trace: List[Access] = []
    rows = csv.reader(lines[1:])
    for position, row in enumerate(rows):
        record = ",".join(row)
        if len(row) < 3:
            raise TraceParseError(position, record, "expected reference, reuse_interval, address")
        try:
            reference = parse_int(row[0])
            reuse_interval = parse_int(row[1])
            address = parse_int(row[2])
        except ValueError as e:
            raise TraceParseError(position, record, f"bad number: {e}") from e
        trace.append(Access(position, address, reference, reuse_interval))
    return trace


def _parse_plain(lines: List[str]) -> List[Access]:
    trace: List[Access] = []
    for line in lines:
        record = line.split("#", 1)[0].strip()
        if not record:
            continue
        position = len(trace)
        try:
            address = parse_int(record)
        except ValueError as e:
            raise TraceParseError(position, line.rstrip("\n"), f"bad address: {e}") from e
        trace.append(Access(position, address))
    return trace


def load_trace(path: str) -> List[Access]:
    """
    Loads a trace file.

    A file whose first non-comment line contains a comma is read as CSV with a
    header row (reference, reuse_interval, address). Anything else is read as
    one address per line.
    """
    with open(path, "r", newline="") as f:
        lines = [line for line in f.read().splitlines() if line.strip()]

    first = next((line for line in lines if not line.lstrip().startswith("#")), "")
    if "," in first:
        trace = _parse_csv([line for line in lines if not line.lstrip().startswith("#")])
    else:
        trace = _parse_plain(lines)

    logger.info("Loaded %d accesses from %s", len(trace), path)
    return trace
