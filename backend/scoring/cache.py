# backend/scoring/cache.py
"""
Content-addressed analysis cache.

Keys are ``<prefix>:<category>:<sha256>`` over the normalized logical input,
so ingredient order and casing do not matter. Concurrent requests for the
same key share one in-flight computation (single-flight). The store is
fail-open: when it errors or times out the computation still runs and the
result is returned uncached.
"""
from __future__ import annotations

import asyncio
import fnmatch
import hashlib
import json
import logging
import threading
import time
from dataclasses import asdict, dataclass
from typing import Any, Awaitable, Callable, Dict, Iterable, Optional

from django.core.cache import caches

from .conf import cache_alias, cache_timeout
from .errors import CacheUnavailable
from .schemas import CacheEntry

logger = logging.getLogger(__name__)

ANALYSIS_PREFIX = "analysis"
INTENSITY_PREFIX = "intensity"
BARCODE_PREFIX = "barcode"


def fingerprint(category: str, product_name: Optional[str], tokens: Iterable[str],
                variant: Optional[Dict[str, Any]] = None, prefix: str = ANALYSIS_PREFIX) -> str:
    payload: Dict[str, Any] = {
        "category": category,
        "name": (product_name or "").strip().lower(),
        "ingredients": sorted(t.strip().lower() for t in tokens),
    }
    if variant:
        payload["variant"] = variant
    digest = hashlib.sha256(
        json.dumps(payload, sort_keys=True, ensure_ascii=False).encode("utf-8")
    ).hexdigest()
    return f"{prefix}:{category}:{digest}"


# =========================
# --------- Store ---------
# =========================

class DjangoCacheStore:
    """
    Key-value store on top of a Django cache alias (Redis, Memcached,
    LocMem...). Backend errors surface as CacheUnavailable.

    ``delete_pattern`` uses the backend's own implementation when it has one
    (django-redis); otherwise it evicts the keys this store has written.
    """

    def __init__(self, alias: Optional[str] = None):
        self.alias = alias or cache_alias()
        self._written: Dict[str, float] = {}
        self._lock = threading.Lock()

    @property
    def backend(self):
        return caches[self.alias]

    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        try:
            return await self.backend.aget(key)
        except Exception as exc:
            raise CacheUnavailable(f"get {key}: {exc}") from exc

    async def set(self, key: str, value: Dict[str, Any], ttl: int) -> None:
        try:
            await self.backend.aset(key, value, timeout=ttl)
        except Exception as exc:
            raise CacheUnavailable(f"set {key}: {exc}") from exc
        now = time.time()
        with self._lock:
            for k in [k for k, exp in self._written.items() if exp <= now]:
                del self._written[k]
            self._written[key] = now + ttl

    async def delete_pattern(self, pattern: str) -> int:
        native = getattr(self.backend, "delete_pattern", None)
        try:
            if native is not None:
                count = await asyncio.to_thread(native, pattern)
                self._forget(pattern)
                return int(count or 0)
            now = time.time()
            with self._lock:
                keys = [k for k, exp in self._written.items() if exp > now and fnmatch.fnmatchcase(k, pattern)]
            if keys:
                await self.backend.adelete_many(keys)
        except Exception as exc:
            raise CacheUnavailable(f"delete_pattern {pattern}: {exc}") from exc
        self._forget(pattern)
        return len(keys)

    def _forget(self, pattern: str) -> None:
        with self._lock:
            for k in [k for k in self._written if fnmatch.fnmatchcase(k, pattern)]:
                del self._written[k]

    @property
    def tracked_keys(self) -> int:
        now = time.time()
        with self._lock:
            return sum(1 for exp in self._written.values() if exp > now)


# =========================
# ----- Analysis cache ----
# =========================

@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    computations: int = 0
    coalesced: int = 0
    bypassed: int = 0


class AnalysisCache:
    def __init__(self, store=None, timeout: Optional[float] = None):
        self.store = store if store is not None else DjangoCacheStore()
        self.timeout = timeout if timeout is not None else cache_timeout()
        self.stats = CacheStats()
        # tasks are bound to the loop that created them; one map per loop
        self._inflight: Dict[asyncio.AbstractEventLoop, Dict[str, asyncio.Future]] = {}
        self._lock = threading.Lock()

    # ---- store access (fail-open) ----

    async def _bounded(self, op: str, key: str, aw: Awaitable[Any]) -> Any:
        try:
            return await asyncio.wait_for(aw, timeout=self.timeout)
        except asyncio.TimeoutError:
            self.stats.bypassed += 1
            logger.warning("Cache %s timed out for %s; bypassing cache", op, key)
        except CacheUnavailable as exc:
            self.stats.bypassed += 1
            logger.warning("Cache %s failed for %s; bypassing cache: %s", op, key, exc)
        return None

    async def read(self, key: str) -> Optional[CacheEntry]:
        raw = await self._bounded("get", key, self.store.get(key))
        if not raw:
            return None
        entry = CacheEntry.from_dict(raw)
        if entry.remaining() <= 0:
            return None
        return entry

    async def write(self, entry: CacheEntry, ttl: Optional[int] = None) -> None:
        ttl = ttl if ttl is not None else max(1, int(entry.remaining()))
        await self._bounded("set", entry.key, self.store.set(entry.key, entry.to_dict(), ttl))

    # ---- single-flight ----

    async def get_or_compute(self, key: str, compute: Callable[[], Awaitable[Any]], *, ttl: int,
                             decode: Callable[[Dict[str, Any]], Any],
                             encode: Callable[[Any], Dict[str, Any]] = lambda v: v.to_dict(),
                             should_store: Optional[Callable[[Any], bool]] = None) -> Any:
        """
        Return the cached value for ``key`` or compute it once.

        The check-and-insert on the in-flight map has no await in between,
        so concurrent callers for the same key await one shared task. The
        task is shielded: a caller that gives up does not cancel it, and it
        still populates the cache for everyone else.

        Coalescing is per event loop. Callers on another loop (another
        thread running ``asyncio.run``) start their own task and meet the
        first one's result in the store once it is written.
        """
        loop = asyncio.get_running_loop()
        with self._lock:
            flights = self._inflight.setdefault(loop, {})
            task = flights.get(key)
            if task is None:
                task = loop.create_task(self._load_or_compute(key, compute, ttl, decode, encode, should_store))
                flights[key] = task
                task.add_done_callback(lambda t, k=key: self._release(loop, k, t))
            else:
                self.stats.coalesced += 1
                logger.debug("Joining in-flight computation for %s", key)
        return await asyncio.shield(task)

    def _release(self, loop: asyncio.AbstractEventLoop, key: str, task: asyncio.Future) -> None:
        with self._lock:
            flights = self._inflight.get(loop, {})
            if flights.get(key) is task:
                del flights[key]
            if not flights:
                self._inflight.pop(loop, None)
        if not task.cancelled() and task.exception() is not None:
            logger.debug("Computation for %s failed: %r", key, task.exception())

    async def _load_or_compute(self, key, compute, ttl, decode, encode, should_store) -> Any:
        entry = await self.read(key)
        if entry is not None:
            self.stats.hits += 1
            entry.hit_count += 1
            logger.debug("Cache hit for %s (hit_count=%d)", key, entry.hit_count)
            await self.write(entry)
            return decode(entry.value)

        self.stats.misses += 1
        self.stats.computations += 1
        logger.debug("Cache miss for %s; computing", key)
        value = await compute()
        if should_store is None or should_store(value):
            await self.write(CacheEntry.new(key, encode(value), ttl), ttl)
        return value

    # ---- aliases & admin ----

    async def link(self, alias_key: str, target_key: str, ttl: int) -> None:
        """Point ``alias_key`` (e.g. a barcode) at an existing entry key."""
        await self.write(CacheEntry.new(alias_key, {"target": target_key}, ttl), ttl)

    async def resolve(self, alias_key: str) -> Optional[CacheEntry]:
        alias = await self.read(alias_key)
        if alias is None:
            return None
        return await self.read(alias.value["target"])

    async def invalidate(self, pattern: str) -> int:
        if "*" not in pattern and "?" not in pattern:
            pattern += "*"
        try:
            count = await asyncio.wait_for(self.store.delete_pattern(pattern), timeout=self.timeout)
        except (asyncio.TimeoutError, CacheUnavailable) as exc:
            self.stats.bypassed += 1
            logger.warning("Cache invalidation of %r failed: %s", pattern, str(exc) or "timeout")
            return 0
        logger.info("Invalidated %d cache entr%s matching %r", count, "y" if count == 1 else "ies", pattern)
        return count

    def snapshot(self) -> Dict[str, Any]:
        data = asdict(self.stats)
        with self._lock:
            data["in_flight"] = sum(len(flights) for flights in self._inflight.values())
        data["tracked_keys"] = getattr(self.store, "tracked_keys", None)
        return data
