"""Redis-backed Cache for sharing tokens and lookups between processes."""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

from redis import Redis

logger = logging.getLogger(__name__)


class RedisCache:
    """Thin Redis wrapper implementing the folioils Cache protocol.

    Values are stored as JSON, so only JSON-serializable values can be cached.
    A ttl of 0 or less means "do not cache" and nothing is written.
    """

    def __init__(self, client: Redis):
        self.client = client

    @classmethod
    def from_url(cls, redis_url: str, *, socket_timeout: float = 5.0) -> "RedisCache":
        return cls(
            Redis.from_url(
                redis_url,
                decode_responses=True,
                socket_timeout=socket_timeout,
                socket_connect_timeout=socket_timeout,
            )
        )

    def get(self, key: str) -> Optional[Any]:
        raw = self.client.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except (TypeError, ValueError):
            logger.warning(f"Discarding undecodable cache entry {key}")
            return None

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        payload = json.dumps(value)
        if ttl is None:
            self.client.set(key, payload)
        elif ttl > 0:
            self.client.set(key, payload, ex=int(ttl))
        else:
            logger.debug(f"Not caching {key}: non-positive ttl {ttl}")

    def delete(self, key: str) -> None:
        self.client.delete(key)
