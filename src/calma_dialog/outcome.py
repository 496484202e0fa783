from __future__ import annotations

"""Outcome values returned at component boundaries that fail open."""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Generic, Optional, Type, TypeVar

from .errors import CalmaError

T = TypeVar("T")


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """A value that is always usable, plus the error that was absorbed (if any)."""

    value: T
    error: Optional[CalmaError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "Outcome[T]":
        return cls(value=value)

    @classmethod
    def absorbed(cls, default: T, error: CalmaError) -> "Outcome[T]":
        return cls(value=default, error=error)


def _wrap(exc: Exception, error_cls: Type[CalmaError]) -> CalmaError:
    if isinstance(exc, error_cls):
        return exc
    wrapped = error_cls(repr(exc))
    wrapped.__cause__ = exc
    return wrapped


def absorb(
    fn: Callable[[], T],
    *,
    default: Callable[[], T],
    error_cls: Type[CalmaError],
    event: str,
    logger: logging.Logger,
) -> Outcome[T]:
    """Run ``fn``; on any exception log ``event`` and return ``default()``."""
    try:
        return Outcome.success(fn())
    except Exception as exc:
        logger.warning(event, extra={"error": repr(exc)})
        return Outcome.absorbed(default(), _wrap(exc, error_cls))


async def absorb_async(
    fn: Callable[[], Awaitable[T]],
    *,
    default: Callable[[], T],
    error_cls: Type[CalmaError],
    event: str,
    logger: logging.Logger,
) -> Outcome[T]:
    """Async flavour of :func:`absorb`."""
    try:
        return Outcome.success(await fn())
    except Exception as exc:
        logger.warning(event, extra={"error": repr(exc)})
        return Outcome.absorbed(default(), _wrap(exc, error_cls))


__all__ = ["Outcome", "absorb", "absorb_async"]
