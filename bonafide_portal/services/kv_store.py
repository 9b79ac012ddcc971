"""
Bonafide Portal — Key-value store adapter (Redis-backed)

The portal's only datastore. Values are JSON documents; counters are plain
Redis integers so increments stay atomic on the server. Single-use values
(OTP codes, verification tokens, lock tokens) are consumed with a
server-side compare-and-delete. Every call is bounded by KV_TIMEOUT_SECONDS.
"""
import asyncio
import json
import logging
from typing import Any, Awaitable, TypeVar

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from bonafide_portal.core.config import get_settings
from bonafide_portal.core.errors import StorageError, UpstreamTimeoutError

settings = get_settings()
logger = logging.getLogger(__name__)

T = TypeVar("T")

_GLOB_SPECIALS = "\\*?[]"

# DEL only while the key still holds the caller's value.
_DELETE_IF_EQUALS = """
if redis.call("GET", KEYS[1]) == ARGV[1] then
    return redis.call("DEL", KEYS[1])
end
return 0
"""


def _escape_glob(prefix: str) -> str:
    return "".join(f"\\{ch}" if ch in _GLOB_SPECIALS else ch for ch in prefix)


class KVStore:
    def __init__(self, redis: aioredis.Redis, timeout: float | None = None):
        self._redis = redis
        self._timeout = timeout or settings.KV_TIMEOUT_SECONDS

    async def _call(self, op: str, awaitable: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=self._timeout)
        except asyncio.TimeoutError:
            logger.error("KV %s timed out after %.1fs", op, self._timeout)
            raise UpstreamTimeoutError("Key-value store did not respond in time.")
        except RedisError as exc:
            logger.error("KV %s failed: %s", op, exc)
            raise StorageError(f"Key-value store error: {exc}")

    async def get(self, key: str) -> Any | None:
        raw = await self._call("get", self._redis.get(key))
        return None if raw is None else json.loads(raw)

    async def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> None:
        await self._call("set", self._redis.set(key, json.dumps(value), ex=ttl_seconds))

    async def set_if_absent(self, key: str, value: Any, ttl_seconds: int | None = None) -> bool:
        """SET NX. True when this call created the key."""
        created = await self._call(
            "set_if_absent", self._redis.set(key, json.dumps(value), ex=ttl_seconds, nx=True)
        )
        return bool(created)

    async def delete(self, key: str) -> None:
        await self._call("delete", self._redis.delete(key))

    async def delete_if_equals(self, key: str, value: Any) -> bool:
        """Atomic compare-and-delete. True when this call removed the key."""
        removed = await self._call(
            "delete_if_equals", self._redis.eval(_DELETE_IF_EQUALS, 1, key, json.dumps(value))
        )
        return bool(removed)

    async def incr(self, key: str) -> int:
        """Atomic increment; a missing key counts as 0."""
        return int(await self._call("incr", self._redis.incr(key)))

    async def get_by_prefix(self, prefix: str) -> list[Any]:
        async def _scan() -> list[Any]:
            keys = [k async for k in self._redis.scan_iter(match=f"{_escape_glob(prefix)}*", count=500)]
            if not keys:
                return []
            raws = await self._redis.mget(keys)
            return [json.loads(raw) for raw in raws if raw is not None]

        return await self._call("get_by_prefix", _scan())

    async def ping(self) -> bool:
        return bool(await self._call("ping", self._redis.ping()))
