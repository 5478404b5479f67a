"""
Counter store adapters — get/put access to a key-value store with per-key expiry.

The tracker only ever needs two operations: read a raw string value and
overwrite it (optionally with an expiry). Counters are stored as decimal
strings and visitor sets as JSON arrays of hash tokens.

``put`` is an unconditional overwrite. There is no compare-and-swap, so a
read followed by a write is NOT atomic: two requests incrementing the same
counter at the same time can both read N and both write N+1. Counts are
therefore approximate under concurrent load. Stores that have a native
increment (Redis, the in-memory store) advertise it with ``atomic = True``
and expose ``incr``; the tracker uses it only when asked to.

Backends:
    memory://                      MemoryCounterStore (process-local)
    redis://… / rediss://…         RedisCounterStore
    sqlite+aiosqlite://… etc.      SqlCounterStore (``kv_entries`` table)
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
import time
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Union

import redis.asyncio as aioredis
from redis.exceptions import RedisError
from sqlalchemy.exc import SQLAlchemyError

from analytics_api.database import (
    close_db,
    init_db,
    make_engine,
    make_session_factory,
    session_limit,
)
from analytics_api.models.kv_entry import KvEntry
from analytics_api.services.keys import CounterKey

logger = logging.getLogger(__name__)

KeyLike = Union[CounterKey, str]

_INT_PREFIX = re.compile(r"^\s*([+-]?\d+)")


class AnalyticsStoreError(Exception):
    """Base class for counter store failures."""


class StoreUnavailableError(AnalyticsStoreError):
    """The backing store could not be reached or rejected the operation."""


# ─────────────────────────────────────────────────────────────────────
# value helpers
# ─────────────────────────────────────────────────────────────────────

def parse_count(raw: Optional[str]) -> int:
    """Leading integer of ``raw``; absent or unparsable values count as 0."""
    if raw is None:
        return 0
    m = _INT_PREFIX.match(str(raw))
    return int(m.group(1)) if m else 0


def parse_visitor_list(raw: Optional[str]) -> list[str]:
    """Decode a stored visitor set; anything that is not a JSON list reads as empty."""
    if not raw:
        return []
    try:
        value = json.loads(raw)
    except (TypeError, ValueError):
        logger.warning("Unparsable visitor set ignored (%d chars)", len(raw))
        return []
    if not isinstance(value, list):
        return []
    return [v for v in value if isinstance(v, str)]


def dump_visitor_list(visitors: list[str]) -> str:
    return json.dumps(visitors, separators=(",", ":"))


# ─────────────────────────────────────────────────────────────────────
# interface
# ─────────────────────────────────────────────────────────────────────

class CounterStore(ABC):
    """Async key-value store consumed by the page-view tracker."""

    #: True when ``incr`` is a single atomic store operation
    atomic = False

    def __init__(self, key_prefix: str = ""):
        self.key_prefix = key_prefix

    def render(self, key: KeyLike) -> str:
        """Turn a key descriptor into this store's key string."""
        rendered = key.render() if isinstance(key, CounterKey) else str(key)
        return f"{self.key_prefix}{rendered}"

    @abstractmethod
    async def get(self, key: KeyLike) -> Optional[str]:
        """Raw value or None when absent/expired."""

    @abstractmethod
    async def put(self, key: KeyLike, value: str, expiration_seconds: Optional[int] = None) -> None:
        """Overwrite ``key``; ``expiration_seconds`` (re)sets its time to live."""

    async def incr(self, key: KeyLike, expiration_seconds: Optional[int] = None) -> int:
        raise NotImplementedError(f"{type(self).__name__} has no atomic increment")

    async def close(self) -> None:
        pass


# ─────────────────────────────────────────────────────────────────────
# in-memory
# ─────────────────────────────────────────────────────────────────────

class MemoryCounterStore(CounterStore):
    """Dict-backed store with lazy expiry. Process-local; used in dev and tests."""

    atomic = True

    def __init__(self, key_prefix: str = "", clock: Callable[[], float] = time.time):
        super().__init__(key_prefix)
        self._clock = clock
        self._data: dict[str, tuple[str, Optional[float]]] = {}

    def _live(self, k: str) -> Optional[str]:
        entry = self._data.get(k)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and expires_at <= self._clock():
            del self._data[k]
            return None
        return value

    def ttl(self, key: KeyLike) -> Optional[float]:
        """Seconds left before ``key`` expires (None = no expiry or absent)."""
        k = self.render(key)
        if self._live(k) is None:
            return None
        expires_at = self._data[k][1]
        return None if expires_at is None else expires_at - self._clock()

    def keys(self) -> list[str]:
        return [k for k in list(self._data) if self._live(k) is not None]

    async def get(self, key: KeyLike) -> Optional[str]:
        return self._live(self.render(key))

    async def put(self, key: KeyLike, value: str, expiration_seconds: Optional[int] = None) -> None:
        expires_at = self._clock() + expiration_seconds if expiration_seconds else None
        self._data[self.render(key)] = (str(value), expires_at)

    async def incr(self, key: KeyLike, expiration_seconds: Optional[int] = None) -> int:
        k = self.render(key)
        value = parse_count(self._live(k)) + 1
        entry = self._data.get(k)
        expires_at = entry[1] if entry else None
        if expiration_seconds:
            expires_at = self._clock() + expiration_seconds
        self._data[k] = (str(value), expires_at)
        return value


# ─────────────────────────────────────────────────────────────────────
# redis
# ─────────────────────────────────────────────────────────────────────

class RedisCounterStore(CounterStore):
    """Redis via ``redis.asyncio``. Values are stored as plain strings."""

    atomic = True

    def __init__(self, client, key_prefix: str = ""):
        super().__init__(key_prefix)
        self.client = client

    @classmethod
    def from_url(cls, url: str, key_prefix: str = "") -> "RedisCounterStore":
        return cls(aioredis.from_url(url, decode_responses=True), key_prefix=key_prefix)

    async def get(self, key: KeyLike) -> Optional[str]:
        try:
            return await self.client.get(self.render(key))
        except RedisError as e:
            raise StoreUnavailableError(f"redis GET failed: {e}") from e

    async def put(self, key: KeyLike, value: str, expiration_seconds: Optional[int] = None) -> None:
        try:
            await self.client.set(self.render(key), str(value), ex=expiration_seconds or None)
        except RedisError as e:
            raise StoreUnavailableError(f"redis SET failed: {e}") from e

    async def incr(self, key: KeyLike, expiration_seconds: Optional[int] = None) -> int:
        k = self.render(key)
        try:
            async with self.client.pipeline(transaction=True) as pipe:
                pipe.incr(k)
                if expiration_seconds:
                    pipe.expire(k, expiration_seconds)
                results = await pipe.execute()
        except RedisError as e:
            raise StoreUnavailableError(f"redis INCR failed: {e}") from e
        return int(results[0])

    async def close(self) -> None:
        await self.client.aclose()


# ─────────────────────────────────────────────────────────────────────
# sql
# ─────────────────────────────────────────────────────────────────────

class SqlCounterStore(CounterStore):
    """Key-value rows in ``kv_entries``; expired rows read as absent and are deleted on read."""

    def __init__(self, session_factory, engine=None, key_prefix: str = "", max_sessions: int = 1):
        super().__init__(key_prefix)
        self.session_factory = session_factory
        self.engine = engine
        # Bounds concurrent reads (a monthly rollup asks for ~31 keys at once)
        self.max_sessions = max_sessions
        self._sessions = asyncio.Semaphore(max_sessions)

    @classmethod
    async def from_url(cls, url: str, key_prefix: str = "") -> "SqlCounterStore":
        engine = make_engine(url)
        await init_db(engine)
        return cls(
            make_session_factory(engine),
            engine=engine,
            key_prefix=key_prefix,
            max_sessions=session_limit(url),
        )

    @staticmethod
    def _now() -> datetime:
        return datetime.now(timezone.utc)

    async def get(self, key: KeyLike) -> Optional[str]:
        k = self.render(key)
        try:
            async with self._sessions, self.session_factory() as session:
                row = await session.get(KvEntry, k)
                if row is None:
                    return None
                expires_at = row.expires_at
                if expires_at is not None:
                    # SQLite hands back naive datetimes
                    if expires_at.tzinfo is None:
                        expires_at = expires_at.replace(tzinfo=timezone.utc)
                    if expires_at <= self._now():
                        await session.delete(row)
                        await session.commit()
                        return None
                return row.value
        except SQLAlchemyError as e:
            raise StoreUnavailableError(f"kv_entries read failed: {e}") from e

    async def put(self, key: KeyLike, value: str, expiration_seconds: Optional[int] = None) -> None:
        expires_at = (
            self._now() + timedelta(seconds=expiration_seconds) if expiration_seconds else None
        )
        try:
            async with self._sessions, self.session_factory() as session:
                await session.merge(KvEntry(key=self.render(key), value=str(value), expires_at=expires_at))
                await session.commit()
        except SQLAlchemyError as e:
            raise StoreUnavailableError(f"kv_entries write failed: {e}") from e

    async def close(self) -> None:
        if self.engine is not None:
            await close_db(self.engine)


# ─────────────────────────────────────────────────────────────────────
# factory
# ─────────────────────────────────────────────────────────────────────

async def open_store(url: str, key_prefix: str = "") -> Optional[CounterStore]:
    """
    Build the store named by ``url``.

    Returns None for a blank URL, meaning tracking is not configured.
    Raises ValueError for an unrecognised scheme.
    """
    url = (url or "").strip()
    if not url:
        return None

    scheme = url.split("://", 1)[0].lower()
    if scheme == "memory":
        return MemoryCounterStore(key_prefix=key_prefix)
    if scheme in ("redis", "rediss", "unix"):
        return RedisCounterStore.from_url(url, key_prefix=key_prefix)
    if "+" in scheme:
        return await SqlCounterStore.from_url(url, key_prefix=key_prefix)

    raise ValueError(f"Unsupported analytics store URL scheme: {scheme!r}")
