"""Key-value cache store used for compliance window entries."""

import logging
from abc import ABC, abstractmethod
from typing import Optional

import redis

from aerolog_core.settings import get_settings

logger = logging.getLogger(__name__)


class CacheStore(ABC):
    """Minimal cache contract.

    ``ttl`` follows Redis semantics: -2 when the key does not exist, -1 when
    it has no expiry, otherwise the remaining seconds.
    """

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        pass

    @abstractmethod
    def set(self, key: str, value: str, ttl: Optional[int] = None):
        pass

    @abstractmethod
    def delete(self, key: str) -> bool:
        pass

    @abstractmethod
    def keys(self, pattern: str, limit: int) -> list[str]:
        """Up to ``limit`` keys matching a glob pattern."""

    @abstractmethod
    def ttl(self, key: str) -> int:
        pass

    @abstractmethod
    def stats(self) -> dict:
        """used_memory bytes, keyspace_hits and keyspace_misses."""


class RedisCacheStore(CacheStore):
    """Cache store over redis-py."""

    def __init__(self, client: redis.Redis):
        self.client = client

    @classmethod
    def from_url(cls, url: str) -> "RedisCacheStore":
        return cls(redis.from_url(url, decode_responses=True))

    def get(self, key: str) -> Optional[str]:
        return self.client.get(key)

    def set(self, key: str, value: str, ttl: Optional[int] = None):
        self.client.set(key, value, ex=ttl)

    def delete(self, key: str) -> bool:
        return bool(self.client.delete(key))

    def keys(self, pattern: str, limit: int) -> list[str]:
        found = []
        for key in self.client.scan_iter(match=pattern, count=500):
            found.append(key)
            if len(found) >= limit:
                break
        return found

    def ttl(self, key: str) -> int:
        return self.client.ttl(key)

    def stats(self) -> dict:
        memory = self.client.info("memory")
        activity = self.client.info("stats")
        return {
            "used_memory": memory.get("used_memory", 0),
            "keyspace_hits": activity.get("keyspace_hits", 0),
            "keyspace_misses": activity.get("keyspace_misses", 0),
            "key_count": self.client.dbsize(),
        }


def get_cache_store() -> CacheStore:
    """Get the Redis cache store from settings."""
    return RedisCacheStore.from_url(get_settings().cache_redis_url_computed)
