from __future__ import annotations

"""Process-local document store used by tests and single-node deployments."""

import copy
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

from .base import DocumentStore


def _walk(doc: Dict[str, Any], path: str) -> Tuple[Dict[str, Any], str]:
    parts = path.split(".")
    node = doc
    for part in parts[:-1]:
        child = node.get(part)
        if not isinstance(child, dict):
            child = {}
            node[part] = child
        node = child
    return node, parts[-1]


def _merge_defaults(doc: Dict[str, Any], defaults: Mapping[str, Any]) -> None:
    for name, value in defaults.items():
        if name not in doc:
            doc[name] = copy.deepcopy(value)
        elif isinstance(doc[name], dict) and isinstance(value, Mapping):
            _merge_defaults(doc[name], value)


class InMemoryDocumentStore(DocumentStore):
    """Dict-backed store. Operations never await, so each one is atomic on the loop."""

    name = "memory"

    def __init__(self) -> None:
        self._docs: Dict[Tuple[str, str], Dict[str, Any]] = {}

    def _doc(self, collection: str, key: str) -> Dict[str, Any]:
        return self._docs.setdefault((collection, key), {})

    async def get(self, collection: str, key: str) -> Optional[Dict[str, Any]]:
        doc = self._docs.get((collection, key))
        return copy.deepcopy(doc) if doc is not None else None

    async def get_or_create(
        self,
        collection: str,
        key: str,
        defaults: Mapping[str, Any],
    ) -> Dict[str, Any]:
        doc = self._doc(collection, key)
        _merge_defaults(doc, defaults)
        return copy.deepcopy(doc)

    async def push(
        self,
        collection: str,
        key: str,
        field: str,
        items: Sequence[Any],
        *,
        max_len: Optional[int] = None,
    ) -> None:
        parent, leaf = _walk(self._doc(collection, key), field)
        current = parent.get(leaf)
        if not isinstance(current, list):
            current = []
        current.extend(copy.deepcopy(list(items)))
        if max_len is not None and max_len >= 0 and len(current) > max_len:
            del current[: len(current) - max_len]
        parent[leaf] = current

    async def add_to_set(self, collection: str, key: str, field: str, items: Sequence[Any]) -> None:
        parent, leaf = _walk(self._doc(collection, key), field)
        current = parent.get(leaf)
        if not isinstance(current, list):
            current = []
        for item in items:
            if item not in current:
                current.append(copy.deepcopy(item))
        parent[leaf] = current

    async def increment(self, collection: str, key: str, field: str, amount: float = 1) -> float:
        parent, leaf = _walk(self._doc(collection, key), field)
        current = parent.get(leaf) or 0
        parent[leaf] = current + amount
        return parent[leaf]

    async def set_fields(self, collection: str, key: str, fields: Mapping[str, Any]) -> None:
        doc = self._doc(collection, key)
        for path, value in fields.items():
            parent, leaf = _walk(doc, path)
            parent[leaf] = copy.deepcopy(value)


__all__ = ["InMemoryDocumentStore"]
