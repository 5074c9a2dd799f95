import hashlib

from folioils.cache import MemoryCache, NamespacedCache, cache_key


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_cache_key_format():
    expected = "FOLIO-" + hashlib.md5(b"diku|token").hexdigest()
    assert cache_key("diku", "token") == expected


def test_cache_key_differs_per_tenant():
    assert cache_key("diku", "token") != cache_key("other", "token")


def test_namespaced_caches_share_backend_without_collisions():
    backend = MemoryCache()
    diku = NamespacedCache(backend, "diku")
    other = NamespacedCache(backend, "other")

    diku.set("locationMap", {"a": 1})
    other.set("locationMap", {"b": 2})

    assert diku.get("locationMap") == {"a": 1}
    assert other.get("locationMap") == {"b": 2}
    assert len(backend) == 2
    other.delete("locationMap")
    assert other.get("locationMap") is None
    assert diku.get("locationMap") == {"a": 1}


def test_memory_cache_ttl_expiry():
    clock = FakeClock()
    cache = MemoryCache(clock=clock)
    cache.set("short", "value", ttl=10)
    cache.set("forever", "value")

    clock.now += 9
    assert cache.get("short") == "value"
    clock.now += 1
    assert cache.get("short") is None
    assert "short" not in cache
    assert cache.get("forever") == "value"


def test_memory_cache_delete_and_clear():
    cache = MemoryCache()
    cache.set("a", 1)
    cache.set("b", 2)
    cache.delete("a")
    cache.delete("missing")
    assert "a" not in cache
    assert "b" in cache
    cache.clear()
    assert len(cache) == 0
