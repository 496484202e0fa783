"""Error taxonomy shared by the conversational pipeline.

Only :class:`GenerationError` is meant to reach the orchestrator. The other
types are captured inside :class:`~calma_dialog.outcome.Outcome` values or
logged by the persistence fan-out.
"""

from __future__ import annotations

from typing import Optional


class CalmaError(Exception):
    """Base class for pipeline errors."""


class ClassificationError(CalmaError):
    """A text classifier failed; callers always receive its neutral default."""


class MemoryStoreError(CalmaError):
    """Reading or writing the per-user interaction ledger failed."""


class PersonalizationError(CalmaError):
    """Reading or updating the personalization profile failed."""


class PersistenceError(CalmaError):
    """One fan-out write failed."""

    def __init__(self, store: str, message: str) -> None:
        super().__init__(f"{store}: {message}")
        self.store = store


class GenerationError(CalmaError):
    """The external text-generation capability could not produce a reply."""

    TIMEOUT = "timeout"
    QUOTA = "quota"
    UNREACHABLE = "unreachable"
    MALFORMED = "malformed"
    CANCELLED = "cancelled"
    NOT_CONFIGURED = "not_configured"

    def __init__(self, message: str, *, reason: str, attempts: Optional[int] = None) -> None:
        super().__init__(message)
        self.reason = reason
        self.attempts = attempts


__all__ = [
    "CalmaError",
    "ClassificationError",
    "MemoryStoreError",
    "PersonalizationError",
    "PersistenceError",
    "GenerationError",
]
