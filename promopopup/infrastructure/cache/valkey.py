# ==============================================================================
# Valkey Cache Implementation
# ==============================================================================
"""
Valkey/Redis implementation of the Cache interface.

Provides generic key-value storage with TTL for visitor state
(frequency capping, snooze, countdown deadlines).

Uses JSON serialization for storing dict values.
"""

import json
import logging

import redis
from redis.backoff import ExponentialBackoff
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError
from redis.retry import Retry

from promopopup.base.cache import Cache
from promopopup.utils.config import get_settings
from promopopup.utils.retry import VALKEY_RETRIES

logger = logging.getLogger(__name__)


class ValkeyCache(Cache):
    """
    Valkey/Redis implementation of the Cache interface.

    Configured with:
    - 5 second socket timeouts for fast failure detection
    - Automatic retries with exponential backoff for transient failures
    - Health check interval to keep connections alive

    All values are stored as JSON strings and deserialized on retrieval.
    """

    def __init__(
        self,
        url: str | None = None,
        socket_timeout: int = 5,
        retries: int | None = None,
        health_check_interval: int = 30,
    ):
        """
        Initialize Valkey cache.

        Args:
            url: Valkey/Redis connection URL. If None, uses settings.
            socket_timeout: Socket timeout in seconds (default: 5)
            retries: Number of retries for transient failures (default: from settings)
            health_check_interval: Health check interval in seconds (default: 30)
        """
        if url is None:
            settings = get_settings()
            url = settings.valkey.url

        retry_count = retries if retries is not None else VALKEY_RETRIES
        retry_strategy = Retry(ExponentialBackoff(cap=8, base=1), retries=retry_count)

        self._client = redis.from_url(
            url,
            decode_responses=True,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_timeout,
            retry=retry_strategy,
            retry_on_error=[RedisTimeoutError, RedisConnectionError],
            health_check_interval=health_check_interval,
        )
        self._url = url

    @property
    def client(self) -> redis.Redis:
        """Get the underlying Redis client for advanced operations."""
        return self._client

    def get(self, key: str) -> dict | None:
        value = self._client.get(key)
        if value is None:
            return None
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            logger.warning("Failed to decode JSON for key %s", key)
            return None

    def set(self, key: str, value: dict, ttl_seconds: int | None = None) -> None:
        json_value = json.dumps(value)
        if ttl_seconds is not None:
            self._client.setex(key, ttl_seconds, json_value)
        else:
            self._client.set(key, json_value)

    def delete(self, key: str) -> bool:
        return self._client.delete(key) > 0

    def ping(self) -> bool:
        """
        Check if the store is reachable.

        Returns:
            True if ping succeeds, False otherwise
        """
        try:
            return self._client.ping()
        except (RedisConnectionError, RedisTimeoutError):
            return False

    def close(self) -> None:
        """Close the connection."""
        self._client.close()
