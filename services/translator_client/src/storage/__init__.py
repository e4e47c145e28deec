"""Persisted-state storage backends."""

from ..config import StorageConfig
from .base import MemorySessionStore, PersistedState, SessionStore
from .file_store import FileSessionStore
from .redis_store import RedisSessionStore


def create_store(config: StorageConfig) -> SessionStore:
    """Create the store selected by configuration.

    Raises:
        ValueError: If the backend is unknown
    """
    if config.backend == "memory":
        return MemorySessionStore()
    if config.backend == "file":
        return FileSessionStore(config.file_path)
    if config.backend == "redis":
        return RedisSessionStore.from_url(config.redis_url, config.redis_key)
    raise ValueError(f"Unknown storage backend: {config.backend}")


__all__ = [
    "FileSessionStore",
    "MemorySessionStore",
    "PersistedState",
    "RedisSessionStore",
    "SessionStore",
    "create_store",
]
