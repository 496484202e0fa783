"""
Redis-backed document store.

Layout per document (``<prefix>:<collection>:<key>``):

- a hash holding every scalar leaf under its dotted path, JSON encoded
- one Redis list per list field (``<doc>:list:<dotted.path>``), JSON items
- a set (``<doc>:lists``) naming the list fields, so reads can reassemble them

Counters use HINCRBY/HINCRBYFLOAT and bounded windows use RPUSH + LTRIM, so
concurrent writers merge at field level.
"""
import json
import logging
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

import redis.asyncio as redis

from .base import DocumentStore

logger = logging.getLogger(__name__)


def _flatten(value: Mapping[str, Any], prefix: str = "") -> Iterator[Tuple[str, Any]]:
    for name, item in value.items():
        path = f"{prefix}{name}"
        if isinstance(item, Mapping):
            yield from _flatten(item, prefix=f"{path}.")
        else:
            yield path, item


def _assign(doc: Dict[str, Any], path: str, value: Any) -> None:
    parts = path.split(".")
    node = doc
    for part in parts[:-1]:
        child = node.get(part)
        if not isinstance(child, dict):
            child = {}
            node[part] = child
        node = child
    node[parts[-1]] = value


def _encode(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False)


def _decode(raw: Any) -> Any:
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8")
    try:
        return json.loads(raw)
    except (TypeError, ValueError):
        return raw


class RedisDocumentStore(DocumentStore):
    """Stores documents as Redis hashes and lists."""

    name = "redis"

    def __init__(self, client: redis.Redis, *, key_prefix: str = "calma") -> None:
        self._client = client
        self._prefix = key_prefix

    @classmethod
    def from_url(cls, url: str, *, key_prefix: str = "calma") -> "RedisDocumentStore":
        return cls(redis.from_url(url, decode_responses=True), key_prefix=key_prefix)

    async def close(self) -> None:
        await self._client.aclose()

    def _key(self, collection: str, key: str) -> str:
        return f"{self._prefix}:{collection}:{key}"

    def _list_key(self, doc_key: str, field: str) -> str:
        return f"{doc_key}:list:{field}"

    def _index_key(self, doc_key: str) -> str:
        return f"{doc_key}:lists"

    async def get(self, collection: str, key: str) -> Optional[Dict[str, Any]]:
        doc_key = self._key(collection, key)
        scalars = await self._client.hgetall(doc_key)
        list_fields = await self._client.smembers(self._index_key(doc_key))
        if not scalars and not list_fields:
            return None

        doc: Dict[str, Any] = {}
        for path, raw in scalars.items():
            if isinstance(path, bytes):
                path = path.decode("utf-8")
            _assign(doc, path, _decode(raw))
        for field in sorted(f.decode("utf-8") if isinstance(f, bytes) else f for f in list_fields):
            items = await self._client.lrange(self._list_key(doc_key, field), 0, -1)
            _assign(doc, field, [_decode(item) for item in items])
        return doc

    async def get_or_create(
        self,
        collection: str,
        key: str,
        defaults: Mapping[str, Any],
    ) -> Dict[str, Any]:
        doc_key = self._key(collection, key)
        list_defaults: List[Tuple[str, List[Any]]] = []
        async with self._client.pipeline(transaction=False) as pipe:
            for path, value in _flatten(defaults):
                if isinstance(value, list):
                    list_defaults.append((path, value))
                    pipe.sadd(self._index_key(doc_key), path)
                else:
                    pipe.hsetnx(doc_key, path, _encode(value))
            await pipe.execute()

        for path, items in list_defaults:
            if items and not await self._client.exists(self._list_key(doc_key, path)):
                await self._client.rpush(self._list_key(doc_key, path), *[_encode(i) for i in items])

        doc = await self.get(collection, key)
        return doc or {}

    async def push(
        self,
        collection: str,
        key: str,
        field: str,
        items: Sequence[Any],
        *,
        max_len: Optional[int] = None,
    ) -> None:
        if not items:
            return
        doc_key = self._key(collection, key)
        list_key = self._list_key(doc_key, field)
        async with self._client.pipeline(transaction=False) as pipe:
            pipe.sadd(self._index_key(doc_key), field)
            pipe.rpush(list_key, *[_encode(item) for item in items])
            if max_len == 0:
                pipe.ltrim(list_key, 1, 0)
            elif max_len is not None and max_len > 0:
                pipe.ltrim(list_key, -max_len, -1)
            await pipe.execute()

    async def add_to_set(self, collection: str, key: str, field: str, items: Sequence[Any]) -> None:
        doc_key = self._key(collection, key)
        list_key = self._list_key(doc_key, field)
        existing = [_decode(raw) for raw in await self._client.lrange(list_key, 0, -1)]
        missing: List[Any] = []
        for item in items:
            if item not in existing and item not in missing:
                missing.append(item)
        if missing:
            await self.push(collection, key, field, missing)
        else:
            await self._client.sadd(self._index_key(doc_key), field)

    async def increment(self, collection: str, key: str, field: str, amount: float = 1) -> float:
        doc_key = self._key(collection, key)
        if isinstance(amount, int):
            value = await self._client.hincrby(doc_key, field, amount)
        else:
            value = await self._client.hincrbyfloat(doc_key, field, amount)
        return value

    async def set_fields(self, collection: str, key: str, fields: Mapping[str, Any]) -> None:
        doc_key = self._key(collection, key)
        async with self._client.pipeline(transaction=False) as pipe:
            for path, value in fields.items():
                nested = _flatten(value, prefix=f"{path}.") if isinstance(value, Mapping) else [(path, value)]
                for leaf, item in nested:
                    if isinstance(item, list):
                        list_key = self._list_key(doc_key, leaf)
                        pipe.sadd(self._index_key(doc_key), leaf)
                        pipe.delete(list_key)
                        if item:
                            pipe.rpush(list_key, *[_encode(i) for i in item])
                    else:
                        pipe.hset(doc_key, leaf, _encode(item))
            await pipe.execute()
        logger.debug("storage.redis.set_fields", extra={"key": doc_key, "fields": list(fields)})


__all__ = ["RedisDocumentStore"]
