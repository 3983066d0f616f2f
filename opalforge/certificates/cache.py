"""
Redis-backed cache for certificate projections and rendered documents.

The cache is never authoritative: every entry is derived from the durable store
or from a deterministic render, and expires passively through its TTL. Methods
raise `redis.RedisError` on failure; callers decide whether a failure matters.
"""

import json
from functools import lru_cache
from typing import Any, Optional

from redis import Redis

from opalforge.config import settings
from opalforge.logging import get_logger

logger = get_logger(__name__)

LAST_REQUESTER_KEY = "last_requester"


def certificate_key(cert_id: str) -> str:
    return f"cert:{cert_id}"

def pdf_key(cert_id: str) -> str:
    return f"pdf:{cert_id}"


class CertificateCache:
    """Keyed blobs with expiry, with optional key prefixing for shared Redis instances."""

    def __init__(self, client: Redis, prefix: str = "") -> None:
        self._client = client
        self._prefix = prefix

    @classmethod
    def from_url(cls, url: str, prefix: str = "", socket_timeout: Optional[float] = None) -> "CertificateCache":
        client = Redis.from_url(
            url,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_timeout,
        )
        return cls(client, prefix=prefix)

    def _key(self, key: str) -> str:
        return f"{self._prefix}:{key}" if self._prefix else key

    def get_json(self, key: str) -> Optional[Any]:
        raw = self._client.get(self._key(key))
        if raw is None:
            return None
        return json.loads(raw)

    def set_json(self, key: str, value: Any, ttl: int) -> None:
        self._client.setex(self._key(key), ttl, json.dumps(value))

    def get_bytes(self, key: str) -> Optional[bytes]:
        return self._client.get(self._key(key))

    def set_bytes(self, key: str, value: bytes, ttl: int) -> None:
        self._client.setex(self._key(key), ttl, value)

    def ping(self) -> bool:
        return bool(self._client.ping())


@lru_cache
def get_cache() -> CertificateCache:
    """Dependency returning the process-wide cache client (connections are pooled by redis-py)."""
    logger.info("Creating certificate cache client")
    return CertificateCache.from_url(
        settings.redis_url,
        prefix=settings.redis_prefix,
        socket_timeout=settings.redis_socket_timeout,
    )
