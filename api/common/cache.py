"""
Redis-backed cache for computed reports.

The cache is an explicit object handed to the services that use it; there is
no module-level client. Entries expire after a TTL and the number of live
entries is bounded: every write is recorded in a sorted-set index and the
oldest keys are evicted once the bound is exceeded.
"""
import json
import logging
import time
from typing import Any, Dict, Optional

import redis

from api.common.config import REDIS_URL, REPORT_CACHE_MAX_ENTRIES, REPORT_CACHE_TTL

logger = logging.getLogger(__name__)


def generate_cache_key(prefix: str, params: Dict[str, Any]) -> str:
    """
    Generate a cache key from a prefix and parameters.

    Args:
        prefix: The prefix for the key (e.g., "reports:sales")
        params: Dictionary of parameters to include in the key

    Returns:
        A cache key string
    """
    # Sort params to ensure consistent keys
    sorted_params = sorted((k, str(v)) for k, v in params.items() if v is not None)
    param_str = ":".join(f"{k}={v}" for k, v in sorted_params)
    return f"{prefix}:{param_str}" if param_str else prefix


class ReportCache:
    """
    Bounded TTL cache over a Redis client.

    Args:
        client: A redis.Redis instance created with decode_responses=True.
        ttl: Time to live of each entry, in seconds.
        max_entries: Maximum number of entries kept under the namespace.
        namespace: Prefix of every key written by this cache.
    """

    def __init__(self, client: redis.Redis, ttl: int = REPORT_CACHE_TTL,
                 max_entries: int = REPORT_CACHE_MAX_ENTRIES, namespace: str = "reports"):
        if ttl <= 0:
            raise ValueError("ttl must be positive")
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")
        self.client = client
        self.ttl = ttl
        self.max_entries = max_entries
        self.namespace = namespace

    @property
    def index_key(self) -> str:
        return f"{self.namespace}:__index__"

    def key(self, name: str) -> str:
        return f"{self.namespace}:{name}"

    async def get(self, name: str) -> Optional[Any]:
        """
        Get a value from cache by key.

        Returns:
            The cached value if found, otherwise None. Backend errors count
            as a miss.
        """
        try:
            data = self.client.get(self.key(name))
            if data:
                return json.loads(data)
            return None
        except (redis.exceptions.RedisError, ValueError) as e:
            logger.warning("Report cache get error for %s: %s", name, e)
            return None

    async def set(self, name: str, value: Any) -> bool:
        """
        Store a JSON-serializable value and evict the oldest entries beyond
        the bound.

        Returns:
            True if the value was stored, False otherwise
        """
        key = self.key(name)
        try:
            serialized = json.dumps(value)
            pipe = self.client.pipeline()
            pipe.set(key, serialized, ex=self.ttl)
            pipe.zadd(self.index_key, {key: time.time()})
            pipe.zremrangebyscore(self.index_key, "-inf", time.time() - self.ttl)
            pipe.execute()
            self._evict_overflow()
            return True
        except (redis.exceptions.RedisError, TypeError, ValueError) as e:
            logger.warning("Report cache set error for %s: %s", name, e)
            return False

    def _evict_overflow(self) -> int:
        overflow = self.client.zcard(self.index_key) - self.max_entries
        if overflow <= 0:
            return 0

        oldest = self.client.zrange(self.index_key, 0, overflow - 1)
        if oldest:
            self.client.delete(*oldest)
            self.client.zrem(self.index_key, *oldest)
        logger.debug("Evicted %d report cache entries", len(oldest))
        return len(oldest)

    async def delete(self, name: str) -> bool:
        """Delete a single entry."""
        key = self.key(name)
        try:
            self.client.zrem(self.index_key, key)
            return self.client.delete(key) > 0
        except redis.exceptions.RedisError as e:
            logger.warning("Report cache delete error for %s: %s", name, e)
            return False

    async def clear(self) -> int:
        """
        Delete every entry written by this cache.

        Returns:
            Number of keys deleted
        """
        try:
            keys = self.client.zrange(self.index_key, 0, -1)
            deleted = self.client.delete(*keys) if keys else 0
            self.client.delete(self.index_key)
            return deleted
        except redis.exceptions.RedisError as e:
            logger.warning("Report cache clear error: %s", e)
            return 0


def create_report_cache(url: Optional[str] = REDIS_URL, **kwargs) -> Optional[ReportCache]:
    """
    Build a ReportCache for the given Redis URL.

    Returns None when no URL is configured or the server cannot be reached,
    in which case reports are computed on every request.
    """
    if not url:
        return None

    try:
        client = redis.Redis.from_url(
            url,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
            retry_on_timeout=True
        )
        # Ping Redis to ensure connection works
        client.ping()
    except redis.exceptions.RedisError as e:
        logger.warning("Redis connection failed: %s. Report caching disabled.", e)
        return None

    return ReportCache(client, **kwargs)
