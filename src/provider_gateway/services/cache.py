"""
Content-addressed response cache.

Keys are sha256 digests of a canonical JSON rendering of the request,
so the same logical request always maps to the same key. Values are
stored as JSON bytes in a pluggable backend. Cache failures never fail
the provider call: they are logged and treated as a miss.
"""

import hashlib
import json
import logging
import os
import threading
import time
from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple

import redis

logger = logging.getLogger(__name__)

# request fields that never influence the response
_IGNORED_PARAMS = ("stream", "user")


class CacheBackend(Protocol):
    """Storage contract for cached values."""

    def get(self, key: str) -> Optional[bytes]:
        ...

    def set(self, key: str, value: bytes, ttl: int) -> None:
        ...

    def delete(self, key: str) -> None:
        ...

    def flush(self) -> None:
        ...


class InMemoryCacheBackend:
    """Process-local backend with per-entry TTL expiry."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._entries: Dict[str, Tuple[float, bytes]] = {}
        self._lock = threading.Lock()
        self._clock = clock

    def get(self, key: str) -> Optional[bytes]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: bytes, ttl: int) -> None:
        with self._lock:
            self._entries[key] = (self._clock() + ttl, value)

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def flush(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class RedisCacheBackend:
    """Redis backend; expiry is delegated to Redis key TTLs."""

    def __init__(
        self,
        client: Optional[redis.Redis] = None,
        url: Optional[str] = None,
        prefix: str = "provider_gateway:",
    ):
        if client is None:
            url = url or os.getenv("REDIS_URL", "redis://localhost:6379")
            client = redis.from_url(url, decode_responses=False)
        self._client = client
        self._prefix = prefix

    def get(self, key: str) -> Optional[bytes]:
        return self._client.get(self._prefix + key)

    def set(self, key: str, value: bytes, ttl: int) -> None:
        self._client.set(self._prefix + key, value, ex=ttl)

    def delete(self, key: str) -> None:
        self._client.delete(self._prefix + key)

    def flush(self) -> None:
        keys = list(self._client.scan_iter(match=f"{self._prefix}*"))
        if keys:
            self._client.delete(*keys)


class CacheManager:
    """
    Cache for provider responses.

    Embeddings are cached per text so batch requests can reuse entries
    produced by single requests and vice versa.
    """

    DEFAULT_TTL = 3600
    EMBEDDING_TTL = 86400

    def __init__(self, backend: Optional[CacheBackend] = None, default_ttl: int = DEFAULT_TTL):
        """
        Initialize the cache manager.

        Args:
            backend: Storage backend (in-memory when omitted)
            default_ttl: TTL in seconds for entries stored without one
        """
        self._backend = backend if backend is not None else InMemoryCacheBackend()
        self._default_ttl = default_ttl

    @property
    def backend(self) -> CacheBackend:
        return self._backend

    @staticmethod
    def generate_cache_key(operation: str, params: Dict[str, Any]) -> str:
        """
        Compute a deterministic cache key.

        Args:
            operation: Operation name (e.g. "completion", "embeddings")
            params: Request parameters; key order does not matter

        Returns:
            "<operation>:<sha256 hex digest>"
        """
        normalized = {k: v for k, v in params.items() if k not in _IGNORED_PARAMS}
        content = json.dumps(normalized, sort_keys=True, default=str, separators=(",", ":"))
        digest = hashlib.sha256(content.encode()).hexdigest()
        return f"{operation}:{digest}"

    def get(self, key: str) -> Optional[Any]:
        """Get a cached value, or None on miss or backend failure."""
        try:
            raw = self._backend.get(key)
        except Exception as e:
            logger.warning(f"Cache read failed for {key}: {e}")
            return None

        if raw is None:
            return None

        try:
            return json.loads(raw)
        except ValueError as e:
            logger.warning(f"Discarding undecodable cache entry {key}: {e}")
            return None

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        """
        Store a JSON-serializable value.

        A TTL of 0 means "do not cache" and the call is a no-op.

        Returns:
            True if the value was written
        """
        ttl = self._default_ttl if ttl is None else ttl
        if ttl <= 0:
            return False

        try:
            self._backend.set(key, json.dumps(value).encode(), ttl)
        except Exception as e:
            logger.warning(f"Cache write failed for {key}: {e}")
            return False
        return True

    def delete(self, key: str) -> None:
        try:
            self._backend.delete(key)
        except Exception as e:
            logger.warning(f"Cache delete failed for {key}: {e}")

    def flush(self) -> None:
        self._backend.flush()
        logger.info("Cache flushed")

    def completion_key(
        self,
        provider: Optional[str],
        model: Optional[str],
        messages: List[Dict[str, Any]],
        options: Dict[str, Any],
    ) -> str:
        return self.generate_cache_key("completion", {
            "provider": provider or "default",
            "model": model,
            "messages": messages,
            "options": options,
        })

    def get_cached_completion(
        self,
        provider: Optional[str],
        model: Optional[str],
        messages: List[Dict[str, Any]],
        options: Dict[str, Any],
    ) -> Optional[Dict[str, Any]]:
        return self.get(self.completion_key(provider, model, messages, options))

    def cache_completion(
        self,
        provider: Optional[str],
        model: Optional[str],
        messages: List[Dict[str, Any]],
        options: Dict[str, Any],
        response: Dict[str, Any],
        ttl: Optional[int] = None,
    ) -> bool:
        return self.set(self.completion_key(provider, model, messages, options), response, ttl)

    def embedding_key(
        self,
        provider: Optional[str],
        model: Optional[str],
        text: str,
        dimensions: Optional[int] = None,
    ) -> str:
        return self.generate_cache_key("embeddings", {
            "provider": provider or "default",
            "model": model,
            "input": text,
            "dimensions": dimensions,
        })

    def get_cached_embeddings(
        self,
        provider: Optional[str],
        model: Optional[str],
        text: str,
        dimensions: Optional[int] = None,
    ) -> Optional[Dict[str, Any]]:
        return self.get(self.embedding_key(provider, model, text, dimensions))

    def cache_embeddings(
        self,
        provider: Optional[str],
        model: Optional[str],
        text: str,
        entry: Dict[str, Any],
        dimensions: Optional[int] = None,
        ttl: int = EMBEDDING_TTL,
    ) -> bool:
        return self.set(self.embedding_key(provider, model, text, dimensions), entry, ttl)
