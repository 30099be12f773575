"""Read-Through Cache — TTL cache with stale-while-revalidate and stampede suppression.

Invariants:
    - HIT: entry with expires_at > now is returned, loader not invoked
    - STALE: expired entry + allow_stale returns at once; at most one background reload per key
    - WAIT: callers arriving while a load is in flight share that single task
    - MISS: the first cold caller registers the load; the load populates the entry
    - Check-and-register runs with no await in between (atomic on the event loop)
    - STALE refreshes and cold misses share one in-flight map: one loader call per key
    - A failed load raises CacheLoadError to every sharer and never touches existing entries
    - invalidate()/clear() drop registrations; orphaned loads resolve but do not repopulate
    - At most max_entries entries are held; the least recently used key is evicted first

Design Decisions:
    - Loads run as tasks awaited through asyncio.shield: cancelling one waiter
      never cancels the shared load
    - Clock is injected (monotonic seconds) so TTL tests need no sleeps
    - No loader timeout: that belongs to the loader
"""

import asyncio
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, NamedTuple

from coupon_server.core.domain_types import CacheOrigin
from coupon_server.core.errors import CacheLoadError

logger = logging.getLogger(__name__)

Loader = Callable[[], Awaitable[Any]]


@dataclass
class CacheEntry:
    value: Any
    expires_at: float


class CacheResult(NamedTuple):
    value: Any
    origin: CacheOrigin


class ReadThroughCache:
    """Process-local cache for derived data. Never owns authoritative state."""

    def __init__(
        self,
        name: str = "cache",
        ttl_ms: int = 30_000,
        allow_stale: bool = True,
        max_entries: int = 1000,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.name = name
        self.ttl_ms = ttl_ms
        self.allow_stale = allow_stale
        self.max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._in_flight: dict[str, asyncio.Task] = {}
        self._background: set[asyncio.Task] = set()

    async def get(
        self,
        key: str,
        loader: Loader,
        ttl_ms: int | None = None,
        allow_stale: bool | None = None,
    ) -> CacheResult:
        """Return the cached value for key, loading it through loader when needed."""
        ttl = self.ttl_ms if ttl_ms is None else ttl_ms
        stale_ok = self.allow_stale if allow_stale is None else allow_stale

        entry = self._entries.get(key)
        if entry is not None:
            self._entries.move_to_end(key)
        if entry is not None and entry.expires_at > self._clock():
            return CacheResult(entry.value, CacheOrigin.HIT)

        if entry is not None and stale_ok:
            self._revalidate(key, loader, ttl)
            return CacheResult(entry.value, CacheOrigin.STALE)

        pending = self._in_flight.get(key)
        if pending is not None:
            value = await asyncio.shield(pending)
            return CacheResult(value, CacheOrigin.WAIT)

        task = self._start_load(key, loader, ttl)
        value = await asyncio.shield(task)
        return CacheResult(value, CacheOrigin.MISS)

    def invalidate(self, key: str) -> None:
        self._entries.pop(key, None)
        self._in_flight.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()
        self._in_flight.clear()

    def stats(self) -> dict:
        return {
            "name": self.name,
            "entries": len(self._entries),
            "in_flight": len(self._in_flight),
            "ttl_ms": self.ttl_ms,
            "allow_stale": self.allow_stale,
            "max_entries": self.max_entries,
        }

    # ─── loading ───────────────────────────────────────────────────

    def _start_load(self, key: str, loader: Loader, ttl_ms: int) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(
            self._load(key, loader, ttl_ms),
        )
        self._in_flight[key] = task
        return task

    def _revalidate(self, key: str, loader: Loader, ttl_ms: int) -> None:
        if key in self._in_flight:
            return
        task = self._start_load(key, loader, ttl_ms)
        self._background.add(task)
        task.add_done_callback(self._on_refresh_done)

    async def _load(self, key: str, loader: Loader, ttl_ms: int) -> Any:
        me = asyncio.current_task()
        try:
            try:
                value = await loader()
            except Exception as e:
                logger.warning(
                    f"Cache '{self.name}' loader failed for {key}: {e}",
                    extra={"cache_key": key},
                )
                raise CacheLoadError(key, str(e) or type(e).__name__) from e
            if self._in_flight.get(key) is me:
                self._put(key, CacheEntry(
                    value=value, expires_at=self._clock() + ttl_ms / 1000,
                ))
            return value
        finally:
            if self._in_flight.get(key) is me:
                del self._in_flight[key]

    def _put(self, key: str, entry: CacheEntry) -> None:
        self._entries[key] = entry
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_entries:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug(
                f"Cache '{self.name}' full, evicted {evicted}",
                extra={"cache_key": evicted},
            )

    def _on_refresh_done(self, task: asyncio.Task) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            key = getattr(exc, "key", None)
            logger.warning(
                f"Cache '{self.name}' background refresh failed, keeping stale entry: {exc}",
                extra={"cache_key": key},
            )
