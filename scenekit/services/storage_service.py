"""Service owning the session store and, when enabled, its Redis pool."""

from typing import Optional

import redis.asyncio as redis
import structlog

from scenekit.config import Settings, settings as default_settings
from scenekit.scenes.session import InMemorySessionStore, RedisSessionStore, SessionStore

logger = structlog.get_logger(__name__)


class StorageService:
    """Build the configured session store and manage its connections."""

    def __init__(self, config: Optional[Settings] = None):
        self.config = config or default_settings
        self._pool: Optional[redis.ConnectionPool] = None
        self._client: Optional[redis.Redis] = None
        self._store: Optional[SessionStore] = None

    async def initialize(self) -> SessionStore:
        """Create the session store, connecting to Redis when configured."""
        if self._store is not None:
            return self._store

        if not self.config.use_redis:
            logger.info("Using in-memory scene session store")
            self._store = InMemorySessionStore()
            return self._store

        logger.info("Initializing Redis connection pool...", url=self.config.redis_url)
        try:
            self._pool = redis.ConnectionPool.from_url(
                self.config.redis_url,
                max_connections=20,
                decode_responses=True,
            )
            self._client = redis.Redis(connection_pool=self._pool)
            await self._client.ping()
        except Exception as e:
            logger.error("Failed to initialize Redis connection pool", error=str(e), exc_info=True)
            self._pool = None
            self._client = None
            raise

        self._store = RedisSessionStore(
            self._client,
            prefix=self.config.session_key_prefix,
            expiry_seconds=self.config.session_expiry_seconds or None,
        )
        logger.info("Redis scene session store ready", prefix=self.config.session_key_prefix)
        return self._store

    @property
    def store(self) -> Optional[SessionStore]:
        return self._store

    def get_client(self) -> Optional[redis.Redis]:
        """Get a Redis client from the pool."""
        return self._client

    async def close(self) -> None:
        """Close the Redis connection pool."""
        if self._pool:
            logger.info("Closing Redis connection pool...")
            await self._pool.disconnect()
            logger.info("Redis connection pool closed.")
        self._pool = None
        self._client = None
        self._store = None


storage_service = StorageService()
