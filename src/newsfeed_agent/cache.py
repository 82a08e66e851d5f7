"""TTL-bounded response cache in front of the fetch executor."""

import asyncio
import hashlib
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Protocol

from newsfeed_agent.errors import ApiError
from newsfeed_agent.http_client import FetchExecutor, FetchRequest

logger = logging.getLogger(__name__)

CACHE_PREFIX = "newsfeed-cache:"
DEFAULT_TTL = 3600.0  # 1 hour


class KeyValueStore(Protocol):
    """Durable string store the cache writes to."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> bool: ...

    def list_keys(self, prefix: str = "") -> list[str]: ...


@dataclass(frozen=True)
class CacheEntry:
    """A stored response: when it was fetched and the decoded JSON body."""

    timestamp: float
    payload: Any

    def age(self, now: float) -> float:
        return now - self.timestamp

    def is_fresh(self, now: float, ttl: float) -> bool:
        return self.age(now) < ttl

    def to_json(self) -> str:
        return json.dumps({"timestamp": self.timestamp, "payload": self.payload})

    @classmethod
    def from_json(cls, raw: str) -> "CacheEntry":
        data = json.loads(raw)
        return cls(timestamp=float(data["timestamp"]), payload=data["payload"])


def cache_key(signature: str) -> str:
    """Durable key for a request signature."""
    return CACHE_PREFIX + hashlib.sha1(signature.encode("utf-8")).hexdigest()


class ResponseCache:
    """Resolves requests from the store when fresh, from the network otherwise.

    Entries are never expired actively; staleness is decided at read time.
    Concurrent resolves of the same request may both hit the network; the
    last write wins.
    """

    def __init__(
        self,
        executor: FetchExecutor,
        store: KeyValueStore,
        default_ttl: float = DEFAULT_TTL,
        clock: Callable[[], float] = time.time,
    ):
        self.executor = executor
        self.store = store
        self.default_ttl = default_ttl
        self._clock = clock

    async def resolve(
        self,
        request: FetchRequest,
        ttl: float | None = None,
        force: bool = False,
        allow_stale_on_error: bool = True,
    ) -> Any:
        """Return the JSON payload for a request.

        Args:
            request: The request to resolve.
            ttl: Maximum entry age in seconds. Defaults to the cache's TTL.
            force: Skip the freshness check and always fetch.
            allow_stale_on_error: On fetch failure, fall back to any stored
                entry regardless of age.

        Raises:
            ApiError: If the fetch fails and no fallback entry is used.
        """
        ttl = self.default_ttl if ttl is None else ttl
        key = cache_key(request.signature)

        entry = None
        if not force:
            entry = await self._read(key)
            if entry is not None and entry.is_fresh(self._clock(), ttl):
                logger.debug("Cache hit for %s", request.url)
                return entry.payload

        try:
            payload = await self.executor.execute(request)
        except ApiError as e:
            if not allow_stale_on_error:
                raise
            if entry is None:
                entry = await self._read(key)
            if entry is None:
                raise
            logger.warning(
                "Fetch of %s failed (%s); serving cached copy from %.0fs ago",
                request.url, e.kind.value, entry.age(self._clock()),
            )
            return entry.payload

        await self._write(key, CacheEntry(timestamp=self._clock(), payload=payload))
        return payload

    async def invalidate(self, request: FetchRequest) -> bool:
        """Remove the entry for one request. Returns True if it existed."""
        return await asyncio.to_thread(self.store.delete, cache_key(request.signature))

    async def clear(self) -> int:
        """Remove every entry this cache created. Returns the count removed."""
        keys = await asyncio.to_thread(self.store.list_keys, CACHE_PREFIX)
        removed = 0
        for key in keys:
            if await asyncio.to_thread(self.store.delete, key):
                removed += 1
        logger.info("Cleared %d cached responses", removed)
        return removed

    async def _read(self, key: str) -> CacheEntry | None:
        raw = await asyncio.to_thread(self.store.get, key)
        if raw is None:
            return None
        try:
            return CacheEntry.from_json(raw)
        except (ValueError, KeyError, TypeError) as e:
            logger.warning("Ignoring unreadable cache entry %s: %s", key, e)
            return None

    async def _write(self, key: str, entry: CacheEntry) -> None:
        await asyncio.to_thread(self.store.set, key, entry.to_json())
