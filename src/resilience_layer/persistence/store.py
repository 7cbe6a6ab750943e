"""
Abstract key-value/record store used for caching and cost accounting.

Two operation families:
- Key-value with TTL: get / set / delete (fallback cache, budget counters)
- Append-only records: insert / query (cost records)

Records are plain JSON-compatible dicts. ``created_at`` is an ISO-8601
string; range queries compare it as a timestamp.

Redis layout (RedisStore):
- Values: String "{prefix}kv:{key}" holding JSON, SET with EX for TTL
- Records: Sorted set "{prefix}records:{collection}" (score = created_at timestamp)
"""

import json
import time
import uuid
from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping
from datetime import datetime, timezone
from typing import Any, Optional

import structlog
from redis.asyncio import Redis as AsyncRedis

logger = structlog.get_logger(__name__)

Record = dict[str, Any]


def _to_datetime(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _prepare_record(record: Mapping[str, Any]) -> Record:
    prepared = dict(record)
    prepared.setdefault("id", uuid.uuid4().hex)
    created_at = _to_datetime(prepared.get("created_at")) or datetime.now(timezone.utc)
    prepared["created_at"] = created_at.isoformat()
    return prepared


def record_matches(
    record: Mapping[str, Any],
    filters: Optional[Mapping[str, Any]] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> bool:
    """Equality on every filter key plus an inclusive created_at range."""
    for key, expected in (filters or {}).items():
        if record.get(key) != expected:
            return False

    if start is None and end is None:
        return True

    created_at = _to_datetime(record.get("created_at"))
    if created_at is None:
        return False
    if start is not None and created_at < _to_datetime(start):
        return False
    if end is not None and created_at > _to_datetime(end):
        return False
    return True


class BaseStore(ABC):
    """Contract of the persistence collaborator."""

    @abstractmethod
    async def get(self, key: str) -> Any:
        """Return the value stored under ``key``, or None when missing/expired."""

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        """Store a JSON-compatible value, expiring after ``ttl`` seconds when given."""

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Remove ``key``. Returns True if something was deleted."""

    @abstractmethod
    async def insert(self, collection: str, record: Mapping[str, Any]) -> Record:
        """Append a record; returns it with ``id`` and ``created_at`` filled in."""

    @abstractmethod
    async def query(
        self,
        collection: str,
        filters: Optional[Mapping[str, Any]] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> list[Record]:
        """Records of ``collection`` matching ``filters`` within [start, end], oldest first."""


class InMemoryStore(BaseStore):
    """Single-process store for tests and local runs."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._values: dict[str, tuple[Any, Optional[float]]] = {}
        self._collections: dict[str, list[Record]] = {}

    async def get(self, key: str) -> Any:
        entry = self._values.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and self._clock() >= expires_at:
            del self._values[key]
            return None
        return value

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        expires_at = self._clock() + ttl if ttl is not None else None
        self._values[key] = (value, expires_at)

    async def delete(self, key: str) -> bool:
        return self._values.pop(key, None) is not None

    async def insert(self, collection: str, record: Mapping[str, Any]) -> Record:
        prepared = _prepare_record(record)
        self._collections.setdefault(collection, []).append(prepared)
        return prepared

    async def query(
        self,
        collection: str,
        filters: Optional[Mapping[str, Any]] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> list[Record]:
        return [
            dict(record)
            for record in self._collections.get(collection, [])
            if record_matches(record, filters, start, end)
        ]


class RedisStore(BaseStore):
    """
    Store backed by redis.asyncio.

    The range part of a query is pushed down to ZRANGEBYSCORE; equality
    filters are applied client-side.
    """

    def __init__(self, redis_client: AsyncRedis, prefix: str = "resilience:"):
        self.redis = redis_client
        self.prefix = prefix

    def _kv_key(self, key: str) -> str:
        return f"{self.prefix}kv:{key}"

    def _collection_key(self, collection: str) -> str:
        return f"{self.prefix}records:{collection}"

    async def get(self, key: str) -> Any:
        raw = await self.redis.get(self._kv_key(key))
        if raw is None:
            return None
        return json.loads(raw)

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        if ttl is not None and ttl <= 0:
            # Already expired; Redis rejects a non-positive EX
            await self.redis.delete(self._kv_key(key))
            return
        await self.redis.set(self._kv_key(key), json.dumps(value, default=str), ex=ttl)

    async def delete(self, key: str) -> bool:
        return bool(await self.redis.delete(self._kv_key(key)))

    async def insert(self, collection: str, record: Mapping[str, Any]) -> Record:
        prepared = _prepare_record(record)
        score = _to_datetime(prepared["created_at"]).timestamp()
        await self.redis.zadd(
            self._collection_key(collection),
            {json.dumps(prepared, default=str): score},
        )
        logger.debug("Record inserted", collection=collection, record_id=prepared["id"])
        return prepared

    async def query(
        self,
        collection: str,
        filters: Optional[Mapping[str, Any]] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> list[Record]:
        min_score = _to_datetime(start).timestamp() if start else "-inf"
        max_score = _to_datetime(end).timestamp() if end else "+inf"
        members = await self.redis.zrangebyscore(self._collection_key(collection), min_score, max_score)

        records = [json.loads(member) for member in members]
        return [record for record in records if record_matches(record, filters)]
