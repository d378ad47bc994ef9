"""
Fingerprinting, single-flight coalescing and fail-open behaviour of the
analysis cache.
"""
import asyncio
import threading

from scoring.cache import AnalysisCache, DjangoCacheStore, fingerprint
from scoring.errors import CacheUnavailable


def passthrough(value):
    return value


class FailingStore:
    async def get(self, key):
        raise CacheUnavailable("store down")

    async def set(self, key, value, ttl):
        raise CacheUnavailable("store down")

    async def delete_pattern(self, pattern):
        raise CacheUnavailable("store down")


class SlowStore:
    async def get(self, key):
        await asyncio.sleep(1)

    async def set(self, key, value, ttl):
        await asyncio.sleep(1)

    async def delete_pattern(self, pattern):
        await asyncio.sleep(1)
        return 0


class TestFingerprint:

    def test_order_and_case_do_not_matter(self):
        a = fingerprint("food", "Pâte à tartiner", ["sucre", "Huile de palme", "noisettes"])
        b = fingerprint("food", " pâte à tartiner ", ["noisettes", "sucre", "huile de palme"])
        assert a == b

    def test_key_layout(self):
        key = fingerprint("cosmetics", "Crème", ["aqua"])
        prefix, category, digest = key.split(":")
        assert (prefix, category) == ("analysis", "cosmetics")
        assert len(digest) == 64

    def test_category_and_variant_change_the_key(self):
        base = fingerprint("food", "x", ["eau"])
        assert fingerprint("cosmetics", "x", ["eau"]) != base
        assert fingerprint("food", "x", ["eau"], {"enriched": True, "query": ""}) != base
        assert fingerprint("food", "x", ["eau"], prefix="intensity").startswith("intensity:food:")


class TestSingleFlight:

    def test_concurrent_callers_share_one_computation(self):
        cache = AnalysisCache(DjangoCacheStore("default"))
        calls = []

        async def compute():
            calls.append(1)
            await asyncio.sleep(0.1)
            return {"score": 42}

        async def scenario():
            return await asyncio.gather(*[
                cache.get_or_compute("analysis:food:k1", compute, ttl=60, decode=passthrough, encode=passthrough)
                for _ in range(5)
            ])

        results = asyncio.run(scenario())
        assert len(calls) == 1
        assert results == [{"score": 42}] * 5
        assert cache.stats.coalesced == 4
        assert cache.snapshot()["in_flight"] == 0

    def test_cancelled_caller_does_not_cancel_computation(self):
        cache = AnalysisCache(DjangoCacheStore("default"))
        calls = []

        async def compute():
            calls.append(1)
            await asyncio.sleep(0.1)
            return {"score": 7}

        async def scenario():
            first = asyncio.ensure_future(
                cache.get_or_compute("analysis:food:k2", compute, ttl=60, decode=passthrough, encode=passthrough)
            )
            await asyncio.sleep(0.01)
            first.cancel()
            second = await cache.get_or_compute("analysis:food:k2", compute, ttl=60,
                                                decode=passthrough, encode=passthrough)
            return first, second

        first, second = asyncio.run(scenario())
        assert first.cancelled()
        assert second == {"score": 7}
        assert len(calls) == 1

    def test_failure_propagates_and_is_not_cached(self):
        cache = AnalysisCache(DjangoCacheStore("default"))
        attempts = []

        async def compute():
            attempts.append(1)
            if len(attempts) == 1:
                raise RuntimeError("boom")
            return {"score": 1}

        async def scenario():
            try:
                await cache.get_or_compute("analysis:food:k3", compute, ttl=60, decode=passthrough, encode=passthrough)
            except RuntimeError:
                pass
            return await cache.get_or_compute("analysis:food:k3", compute, ttl=60,
                                              decode=passthrough, encode=passthrough)

        assert asyncio.run(scenario()) == {"score": 1}
        assert len(attempts) == 2

    def test_callers_on_separate_loops_do_not_share_tasks(self):
        cache = AnalysisCache(DjangoCacheStore("default"))
        results, errors = [], []

        async def compute():
            await asyncio.sleep(0.2)
            return {"score": 33}

        def worker():
            try:
                results.append(asyncio.run(cache.get_or_compute(
                    "analysis:food:k7", compute, ttl=60, decode=passthrough, encode=passthrough)))
            except Exception as exc:
                errors.append(exc)

        threads = [threading.Thread(target=worker) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert errors == []
        assert results == [{"score": 33}] * 2
        assert cache.snapshot()["in_flight"] == 0


class TestStorage:

    def test_hit_increments_hit_count(self):
        cache = AnalysisCache(DjangoCacheStore("default"))

        async def compute():
            return {"score": 10}

        async def scenario():
            for _ in range(3):
                await cache.get_or_compute("analysis:food:k4", compute, ttl=60, decode=passthrough, encode=passthrough)
            return await cache.read("analysis:food:k4")

        entry = asyncio.run(scenario())
        assert entry.hit_count == 2
        assert entry.value == {"score": 10}
        assert cache.stats.hits == 2
        assert cache.stats.computations == 1

    def test_should_store_false_skips_the_write(self):
        cache = AnalysisCache(DjangoCacheStore("default"))

        async def compute():
            return {"score": 50}

        async def scenario():
            await cache.get_or_compute("analysis:food:k5", compute, ttl=60, decode=passthrough,
                                       encode=passthrough, should_store=lambda v: False)
            return await cache.read("analysis:food:k5")

        assert asyncio.run(scenario()) is None

    def test_link_and_resolve(self):
        cache = AnalysisCache(DjangoCacheStore("default"))

        async def compute():
            return {"score": 64}

        async def scenario():
            await cache.get_or_compute("analysis:food:k6", compute, ttl=60, decode=passthrough, encode=passthrough)
            await cache.link("barcode:123", "analysis:food:k6", 60)
            return await cache.resolve("barcode:123"), await cache.resolve("barcode:999")

        found, missing = asyncio.run(scenario())
        assert found.value == {"score": 64}
        assert missing is None

    def test_invalidate_by_prefix_and_glob(self):
        cache = AnalysisCache(DjangoCacheStore("default"))

        async def compute():
            return {"score": 1}

        async def scenario():
            for key in ("analysis:food:a", "analysis:food:b", "analysis:cosmetics:c"):
                await cache.get_or_compute(key, compute, ttl=60, decode=passthrough, encode=passthrough)
            food = await cache.invalidate("analysis:food")
            rest = await cache.invalidate("analysis:*")
            return food, rest, await cache.read("analysis:food:a")

        food, rest, gone = asyncio.run(scenario())
        assert food == 2
        assert rest == 1
        assert gone is None

    def test_expired_keys_are_pruned_on_write(self):
        store = DjangoCacheStore("default")

        async def scenario():
            for key in ("analysis:food:x1", "analysis:food:x2", "analysis:food:x3"):
                await store.set(key, {"score": 1}, 1)
            await asyncio.sleep(1.1)
            await store.set("analysis:food:x4", {"score": 1}, 60)

        asyncio.run(scenario())
        assert list(store._written) == ["analysis:food:x4"]
        assert store.tracked_keys == 1


class TestFailOpen:

    def test_store_errors_bypass_the_cache(self):
        cache = AnalysisCache(FailingStore())

        async def compute():
            return {"score": 3}

        result = asyncio.run(
            cache.get_or_compute("analysis:food:k7", compute, ttl=60, decode=passthrough, encode=passthrough)
        )
        assert result == {"score": 3}
        assert cache.stats.bypassed == 2
        assert asyncio.run(cache.invalidate("analysis:*")) == 0

    def test_store_timeouts_bypass_the_cache(self):
        cache = AnalysisCache(SlowStore(), timeout=0.05)

        async def compute():
            return {"score": 4}

        result = asyncio.run(
            cache.get_or_compute("analysis:food:k8", compute, ttl=60, decode=passthrough, encode=passthrough)
        )
        assert result == {"score": 4}
        assert cache.stats.bypassed == 2
