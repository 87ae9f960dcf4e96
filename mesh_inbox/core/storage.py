"""
Backing Store - Redis with In-Memory Fallback.

The inbox only needs a handful of key-value primitives:
- Lists (append-tail, pop-head, length) for the per-tier queues
- Hashes (get-all, set-field, increment-field) for continuum stats
- One set (add, members) for the known-continuums registry

Each primitive is a single store round trip and is atomic on its own;
nothing here groups calls into transactions.

Backend selection (``STORAGE_BACKEND``):
- ``redis``  - always Redis; failures surface as StorageError
- ``memory`` - process-local, for development and tests
- ``auto``   - Redis when reachable at first use, memory otherwise
"""

import asyncio
import contextlib
import functools
import logging
from abc import ABC, abstractmethod
from collections import defaultdict, deque
from typing import Any, cast

from redis.exceptions import RedisError

from .config import settings
from .exceptions import StorageError

logger = logging.getLogger(__name__)

# =============================================================================
# ABSTRACT STORAGE INTERFACE
# =============================================================================

class StorageBackend(ABC):
    """Abstract storage backend interface."""

    @abstractmethod
    async def rpush(self, key: str, *values: str) -> int:
        """Push to list tail. Returns the new length."""
        pass

    @abstractmethod
    async def lpop(self, key: str) -> str | None:
        """Pop from list head. None when the list is empty or missing."""
        pass

    @abstractmethod
    async def llen(self, key: str) -> int:
        """Get list length."""
        pass

    @abstractmethod
    async def hgetall(self, name: str) -> dict[str, str]:
        """Get all hash fields."""
        pass

    @abstractmethod
    async def hset(self, name: str, mapping: dict[str, str]) -> int:
        """Set one or more hash fields."""
        pass

    @abstractmethod
    async def hincrby(self, name: str, key: str, amount: int = 1) -> int:
        """Increment an integer hash field."""
        pass

    @abstractmethod
    async def sadd(self, key: str, *members: str) -> int:
        """Add members to a set."""
        pass

    @abstractmethod
    async def smembers(self, key: str) -> set[str]:
        """Get all set members."""
        pass

    @abstractmethod
    async def ping(self) -> bool:
        """Round-trip check against the store."""
        pass

    @abstractmethod
    def is_available(self) -> bool:
        """Check if backend is available."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close connections and release resources."""
        pass

# =============================================================================
# REDIS BACKEND
# =============================================================================

_REDIS_FAILURES = (RedisError, ConnectionError, TimeoutError, OSError)

class RedisBackend(StorageBackend):
    """Redis storage backend using redis.asyncio."""

    def __init__(
        self,
        url: str | None = None,
        *,
        connect_timeout: float | None = None,
        socket_timeout: float | None = None,
    ):
        self.url = url or settings.REDIS_URL
        self._connect_timeout = connect_timeout or settings.REDIS_CONNECT_TIMEOUT
        self._socket_timeout = socket_timeout or settings.REDIS_SOCKET_TIMEOUT
        self._client = None
        self._available: bool | None = None
        self._lock = asyncio.Lock()

    async def _get_client(self):
        """Get or create the Redis client. Raises StorageError when unreachable."""
        if self._client is not None:
            return self._client

        async with self._lock:
            if self._client is not None:
                return self._client

            import redis.asyncio as aioredis

            client = aioredis.from_url(
                self.url,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=self._connect_timeout,
                socket_timeout=self._socket_timeout,
            )
            try:
                await client.ping()
            except _REDIS_FAILURES as e:
                self._available = False
                logger.warning("[RedisBackend] Failed to connect to Redis: %s", e)
                with contextlib.suppress(*_REDIS_FAILURES):
                    await client.aclose()
                raise StorageError("connect", e) from e

            self._client = client
            self._available = True
            logger.info(
                "[RedisBackend] Connected to Redis at %s", self.url.split("@")[-1]
            )
            return self._client

    async def _call(self, op: str, *args: Any) -> Any:
        client = await self._get_client()
        try:
            return await getattr(client, op)(*args)
        except _REDIS_FAILURES as e:
            logger.error("[Redis] %s failed: %s", op.upper(), e)
            raise StorageError(op.upper(), e) from e

    def is_available(self) -> bool:
        """Check if Redis is reachable (sync probe, cached after first answer)."""
        if self._available is not None:
            return self._available

        try:
            import redis

            with redis.from_url(self.url, socket_connect_timeout=2) as r:
                r.ping()
            self._available = True
        except (ImportError, *_REDIS_FAILURES):
            self._available = False

        return self._available

    async def rpush(self, key: str, *values: str) -> int:
        return cast(int, await self._call("rpush", key, *values))

    async def lpop(self, key: str) -> str | None:
        return cast("str | None", await self._call("lpop", key))

    async def llen(self, key: str) -> int:
        return cast(int, await self._call("llen", key))

    async def hgetall(self, name: str) -> dict[str, str]:
        return cast("dict[str, str]", await self._call("hgetall", name))

    async def hset(self, name: str, mapping: dict[str, str]) -> int:
        client = await self._get_client()
        try:
            return cast(int, await client.hset(name, mapping=mapping))
        except _REDIS_FAILURES as e:
            logger.error("[Redis] HSET failed: %s", e)
            raise StorageError("HSET", e) from e

    async def hincrby(self, name: str, key: str, amount: int = 1) -> int:
        return cast(int, await self._call("hincrby", name, key, amount))

    async def sadd(self, key: str, *members: str) -> int:
        return cast(int, await self._call("sadd", key, *members))

    async def smembers(self, key: str) -> set[str]:
        return set(await self._call("smembers", key))

    async def ping(self) -> bool:
        return bool(await self._call("ping"))

    async def close(self) -> None:
        """Close the async Redis connection."""
        if self._client is not None:
            with contextlib.suppress(*_REDIS_FAILURES):
                await self._client.aclose()
            self._client = None
            self._available = None

# =============================================================================
# IN-MEMORY BACKEND (FALLBACK)
# =============================================================================

class MemoryBackend(StorageBackend):
    """Process-local backend. Not shared across workers."""

    def __init__(self):
        self._lists: dict[str, deque[str]] = defaultdict(deque)
        self._hashes: dict[str, dict[str, str]] = defaultdict(dict)
        self._sets: dict[str, set[str]] = defaultdict(set)
        self._lock = asyncio.Lock()

        logger.info("[MemoryBackend] Initialized (fallback mode)")

    def is_available(self) -> bool:
        return True

    async def close(self) -> None:
        """Drop all data."""
        self._lists.clear()
        self._hashes.clear()
        self._sets.clear()

    async def rpush(self, key: str, *values: str) -> int:
        async with self._lock:
            self._lists[key].extend(values)
            return len(self._lists[key])

    async def lpop(self, key: str) -> str | None:
        async with self._lock:
            lst = self._lists.get(key)
            if not lst:
                return None
            value = lst.popleft()
            if not lst:
                del self._lists[key]
            return value

    async def llen(self, key: str) -> int:
        async with self._lock:
            return len(self._lists.get(key, ()))

    async def hgetall(self, name: str) -> dict[str, str]:
        async with self._lock:
            return dict(self._hashes.get(name, {}))

    async def hset(self, name: str, mapping: dict[str, str]) -> int:
        async with self._lock:
            h = self._hashes[name]
            added = sum(1 for k in mapping if k not in h)
            h.update({k: str(v) for k, v in mapping.items()})
            return added

    async def hincrby(self, name: str, key: str, amount: int = 1) -> int:
        async with self._lock:
            h = self._hashes[name]
            try:
                new_val = int(h.get(key, "0")) + amount
            except ValueError as e:
                raise StorageError("HINCRBY", e) from e
            h[key] = str(new_val)
            return new_val

    async def sadd(self, key: str, *members: str) -> int:
        async with self._lock:
            s = self._sets[key]
            before = len(s)
            s.update(members)
            return len(s) - before

    async def smembers(self, key: str) -> set[str]:
        async with self._lock:
            return set(self._sets.get(key, ()))

    async def ping(self) -> bool:
        return True

# =============================================================================
# HYBRID STORAGE (AUTO-SELECTS BACKEND)
# =============================================================================

class HybridStorage:
    """
    Storage facade that picks a backend once, on first use.

    In ``auto`` mode Redis is used when reachable and memory otherwise;
    ``redis`` and ``memory`` force the choice.
    """

    def __init__(self, mode: str | None = None, *, redis: RedisBackend | None = None):
        self.mode = mode or settings.STORAGE_BACKEND
        self._redis = redis if redis is not None else (
            RedisBackend() if self.mode != "memory" else None
        )
        self._memory = MemoryBackend() if self.mode != "redis" else None
        self._backend: StorageBackend = cast(StorageBackend, self._redis or self._memory)
        self._initialized = self.mode != "auto"

    async def initialize(self):
        """Select the best backend (auto mode only)."""
        if self._initialized:
            return

        if self._redis and await asyncio.to_thread(self._redis.is_available):
            self._backend = self._redis
            logger.info("[HybridStorage] Using Redis backend")
        else:
            logger.info("[HybridStorage] Redis unavailable, using memory backend")
            self._backend = cast(StorageBackend, self._memory)

        self._initialized = True

    @property
    def backend(self) -> StorageBackend:
        return self._backend

    @property
    def is_redis(self) -> bool:
        return isinstance(self._backend, RedisBackend)

    def __getattr__(self, name: str) -> Any:
        """
        Delegate StorageBackend methods to the active backend.

        Async methods are wrapped so initialize() runs before delegation.
        """
        attr = getattr(self._backend, name)
        if callable(attr) and asyncio.iscoroutinefunction(attr):

            @functools.wraps(attr)
            async def _proxy(*args: Any, **kwargs: Any) -> Any:
                await self.initialize()
                return await getattr(self._backend, name)(*args, **kwargs)

            return _proxy
        return attr

    async def close(self) -> None:
        """Close the active backend connection."""
        await self._backend.close()

# =============================================================================
# SINGLETON
# =============================================================================

_storage_instance: HybridStorage | None = None

def get_storage() -> HybridStorage:
    # Lock-free benign-race singleton.
    # Avoids threading.Lock which blocks the event loop in async context.
    global _storage_instance
    if _storage_instance is not None:
        return _storage_instance
    _storage_instance = HybridStorage()
    return _storage_instance

__all__ = [
    "HybridStorage",
    "MemoryBackend",
    "RedisBackend",
    "StorageBackend",
    "get_storage",
]
