"""Tests for the TTL cache."""

import asyncio

from storefront.infrastructure.cache import CacheRegistry, TTLCache


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class TestTTLCache:
    def test_get_before_and_after_expiry(self):
        clock = FakeClock()
        cache = TTLCache("t", ttl=60, clock=clock)
        cache.set("k", "v")

        clock.now += 59
        assert cache.get("k") == "v"

        clock.now += 1
        assert cache.get("k") is None
        assert len(cache) == 0

    def test_evicts_oldest_when_full(self):
        cache = TTLCache("t", ttl=60, max_size=2)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.set("c", 3)

        assert cache.get("a") is None
        assert cache.get("b") == 2
        assert cache.get("c") == 3

    def test_overwrite_does_not_evict(self):
        cache = TTLCache("t", ttl=60, max_size=2)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.set("a", 10)

        assert cache.get("a") == 10
        assert cache.get("b") == 2

    def test_delete_prefix(self):
        cache = TTLCache("t", ttl=60)
        cache.set("orders:u1:1:10:all", 1)
        cache.set("orders:u1:2:10:all", 2)
        cache.set("orders:u2:1:10:all", 3)

        assert cache.delete_prefix("orders:u1:") == 2
        assert cache.get("orders:u2:1:10:all") == 3

    def test_delete(self):
        cache = TTLCache("t", ttl=60)
        cache.set("k", "v")
        assert cache.delete("k")
        assert not cache.delete("k")

    def test_sweep_removes_only_expired(self):
        clock = FakeClock()
        cache = TTLCache("t", ttl=10, clock=clock)
        cache.set("old", 1)
        clock.now += 5
        cache.set("new", 2)
        clock.now += 6

        assert cache.sweep() == 1
        assert cache.get("new") == 2


class TestCacheRegistry:
    async def test_stop_clears_all_caches(self):
        registry = CacheRegistry(order_ttl=60, cart_ttl=60, product_ttl=60)
        registry.orders.set("a", 1)
        registry.carts.set("b", 2)
        registry.products.set("c", 3)

        await registry.stop()

        assert all(len(cache) == 0 for cache in registry.all())

    async def test_background_sweeper_prunes_expired_entries(self):
        registry = CacheRegistry(order_ttl=0.01, cart_ttl=60, product_ttl=60)
        registry.orders.set("a", 1)
        registry.carts.set("b", 2)

        registry.start_sweeper(interval=0.02)
        await asyncio.sleep(0.1)

        assert len(registry.orders) == 0
        assert len(registry.carts) == 1
        await registry.stop()
