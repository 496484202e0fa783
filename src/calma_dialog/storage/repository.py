from __future__ import annotations

"""Typed per-user repositories on top of a :class:`DocumentStore`."""

from typing import Any, Callable, Generic, Mapping, Optional, Sequence, Type, TypeVar

from pydantic import BaseModel
from pydantic_core import to_jsonable_python

from .base import DocumentStore

M = TypeVar("M", bound=BaseModel)


def to_document(value: Any) -> Any:
    """Convert models, datetimes and enums into JSON-compatible values."""
    return to_jsonable_python(value)


class UserRepository(Generic[M]):
    """One collection of per-user documents validated through ``model``.

    ``get_or_create`` never duplicates a document: the store merges defaults
    into whatever already exists under the key.
    """

    def __init__(
        self,
        store: DocumentStore,
        *,
        collection: str,
        model: Type[M],
        factory: Optional[Callable[[str], M]] = None,
    ) -> None:
        self._store = store
        self._collection = collection
        self._model = model
        self._factory = factory or (lambda key: model(user_id=key))

    @property
    def collection(self) -> str:
        return self._collection

    async def get(self, key: str) -> Optional[M]:
        raw = await self._store.get(self._collection, key)
        if raw is None:
            return None
        return self._model.model_validate(raw)

    async def get_or_create(self, key: str) -> M:
        defaults = self._factory(key).model_dump(mode="json")
        raw = await self._store.get_or_create(self._collection, key, defaults)
        return self._model.model_validate(raw)

    async def append(
        self,
        key: str,
        field: str,
        *records: Any,
        max_len: Optional[int] = None,
    ) -> None:
        await self._store.push(
            self._collection,
            key,
            field,
            [to_document(record) for record in records],
            max_len=max_len,
        )

    async def add_to_set(self, key: str, field: str, items: Sequence[Any]) -> None:
        await self._store.add_to_set(self._collection, key, field, [to_document(i) for i in items])

    async def increment(self, key: str, field: str, amount: float = 1) -> float:
        return await self._store.increment(self._collection, key, field, amount)

    async def patch(self, key: str, fields: Mapping[str, Any]) -> None:
        await self._store.set_fields(
            self._collection,
            key,
            {path: to_document(value) for path, value in fields.items()},
        )


__all__ = ["UserRepository", "to_document"]
