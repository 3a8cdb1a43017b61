from __future__ import annotations


class LeaseSimError(Exception):
    """Base class for all simulator errors."""


class ConfigError(LeaseSimError, ValueError):
    """Inconsistent cache geometry or unknown mode. The run never starts."""


class InvalidAddress(LeaseSimError, ValueError):
    """Address or bit lengths that cannot be decomposed."""


class InvalidLease(LeaseSimError, ValueError):
    """Lease entry or directory that cannot be used for a run."""


class _RecordError(LeaseSimError):
    kind = "record"

    def __init__(self, position: int, record: str, reason: str):
        self.position = position
        self.record = record
        self.reason = reason
        super().__init__(f"{self.kind} {position}: {reason} ({record!r})")


class TraceParseError(_RecordError):
    """Malformed trace record."""
    kind = "trace record"


class LeaseParseError(_RecordError):
    """Malformed lease table record."""
    kind = "lease table line"


class InvariantViolation(LeaseSimError, RuntimeError):
    """Internal defect. The statistics of the run are meaningless."""
