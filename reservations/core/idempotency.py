"""Idempotency keys for webhook deliveries.

Providers deliver notifications at least once. A delivery that was already
processed is remembered here so exact redeliveries return early; the
conditional status updates in the payment processor stay authoritative.
"""

import hashlib
import json
import logging
from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID

import redis.asyncio as redis

logger = logging.getLogger(__name__)


class IdempotencyStore:
    """In-memory idempotency key store, per process."""

    def __init__(self, ttl_seconds: int = 86400):
        self._keys: dict[str, dict] = {}
        self._ttl = timedelta(seconds=ttl_seconds)

    def _cleanup_expired(self) -> None:
        """Remove expired keys."""
        now = datetime.now(UTC)
        expired = [k for k, v in self._keys.items() if v["expires_at"] < now]
        for k in expired:
            del self._keys[k]

    async def get(self, key: str) -> dict | None:
        """Get stored result for idempotency key."""
        self._cleanup_expired()
        entry = self._keys.get(key)
        if entry and entry["expires_at"] > datetime.now(UTC):
            return entry["result"]
        return None

    async def set(self, key: str, result: dict) -> None:
        """Store result for idempotency key."""
        self._keys[key] = {
            "result": result,
            "expires_at": datetime.now(UTC) + self._ttl,
        }

    async def close(self) -> None:
        self._keys.clear()


class RedisIdempotencyStore:
    """Idempotency key store shared across workers through Redis."""

    def __init__(self, redis_url: str, ttl_seconds: int = 86400, prefix: str = "idempotency"):
        self.redis_url = redis_url
        self.ttl_seconds = ttl_seconds
        self.prefix = prefix
        self._redis: redis.Redis | None = None

    async def get_redis(self) -> redis.Redis:
        """Get Redis connection."""
        if self._redis is None:
            self._redis = redis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
            )
        return self._redis

    async def get(self, key: str) -> dict | None:
        client = await self.get_redis()
        raw = await client.get(f"{self.prefix}:{key}")
        return json.loads(raw) if raw else None

    async def set(self, key: str, result: dict) -> None:
        client = await self.get_redis()
        await client.set(f"{self.prefix}:{key}", json.dumps(result, default=str), ex=self.ttl_seconds)

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None


def build_idempotency_store(backend: str, redis_url: str, ttl_seconds: int) -> IdempotencyStore | RedisIdempotencyStore:
    if backend == "redis":
        return RedisIdempotencyStore(redis_url, ttl_seconds=ttl_seconds)
    return IdempotencyStore(ttl_seconds=ttl_seconds)


def generate_idempotency_key(
    operation: str,
    entity_id: UUID | str,
    params: dict[str, Any] | None = None,
) -> str:
    """Generate a deterministic idempotency key.

    Args:
        operation: Operation name (e.g., "webhook:binance")
        entity_id: Primary entity ID
        params: Additional parameters to include in key

    Returns:
        SHA256 hash of operation + entity + params
    """
    key_data = {
        "operation": operation,
        "entity_id": str(entity_id),
        "params": params or {},
    }
    key_str = json.dumps(key_data, sort_keys=True)
    return hashlib.sha256(key_str.encode()).hexdigest()
