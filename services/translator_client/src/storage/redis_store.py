"""Redis backend for the persisted session record."""

import json
import logging
from typing import Any, cast

import redis.asyncio as redis

from .base import PersistedState, SessionStore

logger = logging.getLogger(__name__)


class RedisSessionStore(SessionStore):
    """Persists the session record as a Redis hash."""

    def __init__(self, redis_client: redis.Redis, key: str = "translator_client:session") -> None:
        """Initialize the Redis store.

        Args:
            redis_client: Redis client created with ``decode_responses=True``
            key: Hash key holding the record
        """
        super().__init__()
        self.redis = redis_client
        self.key = key

    @classmethod
    def from_url(cls, url: str, key: str = "translator_client:session") -> "RedisSessionStore":
        return cls(redis.from_url(url, decode_responses=True), key)

    async def _read(self) -> PersistedState:
        raw = cast("dict[str, str]", await self.redis.hgetall(self.key))  # type: ignore[misc]
        if not raw:
            return PersistedState()

        data: dict[str, Any] = dict(raw)
        if user := data.get("user"):
            try:
                data["user"] = json.loads(user)
            except json.JSONDecodeError as e:
                logger.warning(f"Stored user under {self.key} is corrupt, ignoring it: {e}")
                data["user"] = None
        return PersistedState.from_dict(data)

    async def _write(self, state: PersistedState) -> None:
        record = state.to_dict()
        present = {}
        missing = []
        for name, value in record.items():
            if value is None:
                missing.append(name)
            elif name == "user":
                present[name] = json.dumps(value)
            else:
                present[name] = value

        if present:
            await self.redis.hset(self.key, mapping=present)  # type: ignore[misc]
        if missing:
            await self.redis.hdel(self.key, *missing)  # type: ignore[misc]

    async def _delete(self) -> None:
        await self.redis.delete(self.key)

    async def close(self) -> None:
        await self.redis.aclose()
