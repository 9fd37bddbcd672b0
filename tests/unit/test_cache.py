"""
Unit tests for the response cache.
"""

import pytest

from provider_gateway.services.cache import (
    CacheManager,
    InMemoryCacheBackend,
    RedisCacheBackend,
)


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class FailingBackend:
    """Backend whose every operation raises."""

    def get(self, key):
        raise ConnectionError("cache down")

    def set(self, key, value, ttl):
        raise ConnectionError("cache down")

    def delete(self, key):
        raise ConnectionError("cache down")

    def flush(self):
        raise ConnectionError("cache down")


class FakeRedis:
    """Minimal stand-in for a redis client."""

    def __init__(self):
        self.data = {}
        self.expiry = {}

    def get(self, key):
        return self.data.get(key)

    def set(self, key, value, ex=None):
        self.data[key] = value
        self.expiry[key] = ex

    def delete(self, *keys):
        for key in keys:
            self.data.pop(key, None)

    def scan_iter(self, match=None):
        prefix = match.rstrip("*")
        return [k for k in list(self.data) if k.startswith(prefix)]


class TestCacheKeys:
    """Test cache key generation."""

    def test_key_is_deterministic(self):
        """Test that key order does not change the key."""
        a = CacheManager.generate_cache_key("completion", {"model": "gpt-4o", "messages": [{"role": "user", "content": "hi"}]})
        b = CacheManager.generate_cache_key("completion", {"messages": [{"role": "user", "content": "hi"}], "model": "gpt-4o"})
        assert a == b
        assert a.startswith("completion:")
        assert len(a.split(":", 1)[1]) == 64

    def test_ignored_params(self):
        """Test stream and user flags do not affect the key."""
        base = {"model": "gpt-4o", "input": "x"}
        assert CacheManager.generate_cache_key("embeddings", base) == CacheManager.generate_cache_key(
            "embeddings", {**base, "stream": True, "user": "u-1"}
        )

    def test_operation_and_content_change_key(self):
        """Test different operations and content give different keys."""
        params = {"model": "m", "input": "x"}
        assert CacheManager.generate_cache_key("a", params) != CacheManager.generate_cache_key("b", params)
        assert CacheManager.generate_cache_key("a", params) != CacheManager.generate_cache_key("a", {**params, "input": "y"})

    def test_completion_key_depends_on_provider(self):
        """Test the same request to two providers uses two keys."""
        cache = CacheManager()
        messages = [{"role": "user", "content": "hi"}]
        assert cache.completion_key("openai", "m", messages, {}) != cache.completion_key("claude", "m", messages, {})


class TestCacheManager:
    """Test cache storage semantics."""

    def test_set_and_get(self):
        cache = CacheManager()
        assert cache.set("k", {"content": "hello"}, ttl=60)
        assert cache.get("k") == {"content": "hello"}

    def test_zero_ttl_is_a_no_op(self):
        """Test a TTL of 0 does not store anything."""
        backend = InMemoryCacheBackend()
        cache = CacheManager(backend)

        assert cache.set("k", {"v": 1}, ttl=0) is False
        assert cache.get("k") is None
        assert len(backend) == 0

    def test_entries_expire(self):
        """Test entries disappear once their TTL elapses."""
        clock = FakeClock()
        cache = CacheManager(InMemoryCacheBackend(clock=clock))
        cache.set("k", "v", ttl=10)

        clock.now += 9
        assert cache.get("k") == "v"
        clock.now += 1
        assert cache.get("k") is None

    def test_default_ttl(self):
        clock = FakeClock()
        cache = CacheManager(InMemoryCacheBackend(clock=clock), default_ttl=5)
        cache.set("k", "v")
        clock.now += 5
        assert cache.get("k") is None

    def test_failing_backend_is_best_effort(self):
        """Test backend failures behave like misses."""
        cache = CacheManager(FailingBackend())
        assert cache.get("k") is None
        assert cache.set("k", "v", ttl=60) is False
        cache.delete("k")

    def test_undecodable_entry_is_a_miss(self):
        backend = InMemoryCacheBackend()
        backend.set("k", b"not json", 60)
        assert CacheManager(backend).get("k") is None

    def test_embedding_helpers(self):
        """Test embedding entries are keyed per text and dimensions."""
        cache = CacheManager()
        cache.cache_embeddings("openai", "small", "hello", {"embedding": [1.0]})

        assert cache.get_cached_embeddings("openai", "small", "hello") == {"embedding": [1.0]}
        assert cache.get_cached_embeddings("openai", "small", "hello", dimensions=256) is None
        assert cache.get_cached_embeddings("openai", "small", "world") is None

    def test_completion_helpers(self):
        cache = CacheManager()
        messages = [{"role": "user", "content": "hi"}]
        cache.cache_completion("openai", "gpt-4o", messages, {"temperature": 0.2}, {"content": "hello"})

        assert cache.get_cached_completion("openai", "gpt-4o", messages, {"temperature": 0.2}) == {"content": "hello"}
        assert cache.get_cached_completion("openai", "gpt-4o", messages, {"temperature": 0.3}) is None

    def test_flush(self):
        cache = CacheManager()
        cache.set("a", 1, ttl=60)
        cache.flush()
        assert cache.get("a") is None


class TestRedisBackend:
    """Test the Redis backend against a fake client."""

    def test_prefix_and_expiry(self):
        client = FakeRedis()
        cache = CacheManager(RedisCacheBackend(client=client, prefix="test:"))

        cache.set("k", {"v": 1}, ttl=120)

        assert client.data["test:k"] == b'{"v": 1}'
        assert client.expiry["test:k"] == 120
        assert cache.get("k") == {"v": 1}

    def test_flush_only_removes_prefixed_keys(self):
        client = FakeRedis()
        client.data["other:k"] = b"1"
        backend = RedisCacheBackend(client=client, prefix="test:")
        backend.set("a", b"1", 60)
        backend.set("b", b"2", 60)

        backend.flush()

        assert list(client.data) == ["other:k"]
