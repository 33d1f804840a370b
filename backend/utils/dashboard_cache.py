# backend/utils/dashboard_cache.py
import json
import logging
from typing import Any, Callable, Iterable, Optional

import redis
from fastapi.encoders import jsonable_encoder

logger = logging.getLogger(__name__)

# Logical tags; one dashboard query may belong to several of them
DASHBOARD_CACHE_TAGS = {
    "USER": "dashboard-user",
    "SALES": "dashboard-sales",
    "ORDERS": "dashboard-orders",
    "GROSS_PROFIT": "dashboard-gross-profit",
    "AVG_MARGIN": "dashboard-avg-margin",
    "SHOPS": "dashboard-shops",
    "PRODUCT_VALUE": "dashboard-product-value",
}

KEY_PREFIX = "dashboard:"
TAG_PREFIX = "dashboard-tag:"


class CacheManager:
    """Redis cache whose entries are grouped under tags.

    Entries are written with SETEX; each tag is a Redis set of the keys
    carrying it, expiring together with its newest member. ``invalidate(tag)``
    deletes every key in the set. Dropping an already-empty tag is a no-op.
    Values are stored as JSON, camelCase as rendered on the wire.
    """

    def __init__(self, redis_client: redis.Redis, ttl: int = 3600):
        self.redis_client = redis_client
        self.ttl = ttl

    @classmethod
    def from_url(cls, url: str, ttl: int = 3600) -> "CacheManager":
        return cls(redis.Redis.from_url(url, decode_responses=True), ttl=ttl)

    def get(self, key: str) -> Optional[Any]:
        try:
            raw = self.redis_client.get(KEY_PREFIX + key)
        except redis.RedisError:
            logger.exception("Dashboard cache read failed for %s", key)
            return None
        return None if raw is None else json.loads(raw)

    def set(self, key: str, value: Any, tags: Iterable[str], ttl: Optional[int] = None) -> None:
        ttl = self.ttl if ttl is None else ttl
        payload = json.dumps(jsonable_encoder(value, by_alias=True))
        try:
            pipe = self.redis_client.pipeline()
            pipe.setex(KEY_PREFIX + key, ttl, payload)
            for tag in tags:
                pipe.sadd(TAG_PREFIX + tag, KEY_PREFIX + key)
                pipe.expire(TAG_PREFIX + tag, ttl)
            pipe.execute()
        except redis.RedisError:
            logger.exception("Dashboard cache write failed for %s", key)

    def get_or_set(self, key: str, tags: Iterable[str], loader: Callable[[], Any]) -> Any:
        cached = self.get(key)
        if cached is not None:
            return cached
        value = jsonable_encoder(loader(), by_alias=True)
        self.set(key, value, tags)
        return value

    def invalidate(self, *tags: str) -> int:
        dropped = 0
        try:
            for tag in tags:
                keys = self.redis_client.smembers(TAG_PREFIX + tag)
                if keys:
                    dropped += self.redis_client.delete(*keys)
                self.redis_client.delete(TAG_PREFIX + tag)
        except redis.RedisError:
            logger.exception("Dashboard cache invalidation failed")
        return dropped

    def invalidate_all(self) -> int:
        dropped = self.invalidate(*DASHBOARD_CACHE_TAGS.values())
        logger.info("Dashboard cache invalidated (%d entries dropped)", dropped)
        return dropped

    def close(self) -> None:
        self.redis_client.close()
