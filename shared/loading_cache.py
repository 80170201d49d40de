# shared/loading_cache.py
# Size- and TTL-bounded in-process cache that loads missing keys on demand.
import asyncio
import logging
import time
from collections import OrderedDict
from typing import Awaitable, Callable, Dict, Generic, Hashable, TypeVar

from shared.errors import InvalidArgument

logger = logging.getLogger("loading_cache")

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class CacheEntry(Generic[V]):
    __slots__ = ("value", "created_at")

    def __init__(self, value: V, created_at: float):
        self.value = value
        self.created_at = created_at


class LoadingCache(Generic[K, V]):
    """
    Cache in front of an async loader.

    - hit: returns the cached value, no I/O
    - miss: runs ``loader(key)`` once per key; concurrent callers for the same key
      await the same load task and get the same value (or the same exception)
    - cancelling a caller never cancels the shared load
    - failed loads are not cached, the next ``get`` retries
    - entries expire ``expire_seconds`` after write (checked lazily on access)
    - at ``max_size`` live entries the least recently used one is evicted
    """

    def __init__(
        self,
        loader: Callable[[K], Awaitable[V]],
        max_size: int,
        expire_seconds: float,
        name: str = "cache",
        clock: Callable[[], float] = time.monotonic,
    ):
        if not isinstance(max_size, int) or max_size <= 0:
            raise InvalidArgument(f"max_size must be a positive integer, got {max_size!r}")
        if expire_seconds <= 0:
            raise InvalidArgument(f"expire_seconds must be positive, got {expire_seconds!r}")
        self.name = name
        self.max_size = max_size
        self.expire_seconds = expire_seconds
        self._loader = loader
        self._clock = clock
        self._entries: "OrderedDict[K, CacheEntry[V]]" = OrderedDict()
        self._inflight: Dict[K, asyncio.Future] = {}
        self.stats = {"hits": 0, "misses": 0, "loads": 0, "load_failures": 0, "evictions": 0}

    def __len__(self) -> int:
        return sum(1 for e in self._entries.values() if not self._expired(e))

    def __contains__(self, key: K) -> bool:
        entry = self._entries.get(key)
        return entry is not None and not self._expired(entry)

    def _expired(self, entry: CacheEntry[V]) -> bool:
        return self._clock() - entry.created_at >= self.expire_seconds

    async def get(self, key: K) -> V:
        entry = self._entries.get(key)
        if entry is not None:
            if not self._expired(entry):
                self._entries.move_to_end(key)
                self.stats["hits"] += 1
                return entry.value
            del self._entries[key]

        self.stats["misses"] += 1
        task = self._inflight.get(key)
        if task is None:
            self.stats["loads"] += 1
            task = asyncio.ensure_future(self._loader(key))
            task.add_done_callback(lambda t: self._load_done(key, t))
            self._inflight[key] = task
        # Shield: cancelling any one caller, the first one included, must not cancel the shared load
        return await asyncio.shield(task)

    def _load_done(self, key: K, task: asyncio.Future) -> None:
        self._inflight.pop(key, None)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self.stats["load_failures"] += 1
            logger.debug(f"[{self.name}] load of {key!r} failed: {exc!r}")
            return
        self._put(key, task.result())

    def _put(self, key: K, value: V) -> None:
        self._entries.pop(key, None)
        while len(self._entries) >= self.max_size:
            old_key, _ = self._entries.popitem(last=False)
            self.stats["evictions"] += 1
            logger.debug(f"[{self.name}] evicted {old_key!r}")
        self._entries[key] = CacheEntry(value, self._clock())

    def purge_expired(self) -> int:
        """Drop every expired entry now instead of waiting for the next access."""
        stale = [k for k, e in self._entries.items() if self._expired(e)]
        for k in stale:
            self._entries.pop(k, None)
        return len(stale)
