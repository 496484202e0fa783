from __future__ import annotations

import abc
from typing import Any, Dict, Mapping, Optional, Sequence


class DocumentStore(abc.ABC):
    """Interface for per-user document storage engines.

    Documents are plain JSON-compatible dicts addressed by ``(collection, key)``.
    Field names are dotted paths (``"time_buckets.morning"``). Every mutating
    operation upserts: writing to a missing document creates it. Mutations are
    field-level so concurrent writers merge instead of replacing each other.
    """

    name: str

    @abc.abstractmethod
    async def get(self, collection: str, key: str) -> Optional[Dict[str, Any]]:
        """Return the document or ``None`` when it does not exist."""
        raise NotImplementedError

    @abc.abstractmethod
    async def get_or_create(
        self,
        collection: str,
        key: str,
        defaults: Mapping[str, Any],
    ) -> Dict[str, Any]:
        """Return the document, filling any field missing from ``defaults``."""
        raise NotImplementedError

    @abc.abstractmethod
    async def push(
        self,
        collection: str,
        key: str,
        field: str,
        items: Sequence[Any],
        *,
        max_len: Optional[int] = None,
    ) -> None:
        """Append ``items`` to a list field, keeping only the newest ``max_len``."""
        raise NotImplementedError

    @abc.abstractmethod
    async def add_to_set(self, collection: str, key: str, field: str, items: Sequence[Any]) -> None:
        """Append the ``items`` not already present in a list field."""
        raise NotImplementedError

    @abc.abstractmethod
    async def increment(self, collection: str, key: str, field: str, amount: float = 1) -> float:
        """Add ``amount`` to a numeric field and return the new value."""
        raise NotImplementedError

    @abc.abstractmethod
    async def set_fields(self, collection: str, key: str, fields: Mapping[str, Any]) -> None:
        """Overwrite the given fields."""
        raise NotImplementedError

    async def close(self) -> None:
        return None


__all__ = ["DocumentStore"]
