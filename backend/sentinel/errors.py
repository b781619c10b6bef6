# sentinel/errors.py
from __future__ import annotations


class SentinelError(Exception):
    """Base class for pipeline errors."""


class SourceUnavailable(SentinelError):
    """Adapter could not reach its source (network error or timeout). Retried next cycle."""

    def __init__(self, source: str, reason: str) -> None:
        super().__init__(f"{source}: {reason}")
        self.source = source
        self.reason = reason


class IdentityConflict(SentinelError):
    """Identity data was malformed or the store rejected the property write."""


class PersistenceFailure(SentinelError):
    """Store rejected a write for a reason other than the expected unique-key collision."""


class StoreUnavailable(SentinelError):
    """Backing store unreachable. Fatal to a cycle."""


class InvalidCycleParameters(SentinelError):
    """Cycle was scheduled with unusable parameters (e.g. no target counties)."""


class AppendOnlyViolation(SentinelError):
    """Attempted update or delete of an append-only row."""
