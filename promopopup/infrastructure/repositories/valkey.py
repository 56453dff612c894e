# ==============================================================================
# Valkey Event Repository
# ==============================================================================
"""
Valkey/Redis implementation of the EventRepository interface.

Each shop's log is one sorted set scored by event timestamp (ms):
    popup:events:{shop}

Members are JSON event records tagged with a random id so that two identical
events are still two members. A window read is a single ZRANGEBYSCORE, which
gives the aggregation engine one consistent snapshot.
"""

import json
import logging
import uuid

from pydantic import ValidationError
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from promopopup.base.repositories import EventRepository
from promopopup.core.errors import AggregationUnavailable
from promopopup.core.models import AnalyticsEvent, parse_event
from promopopup.infrastructure.cache.valkey import ValkeyCache

logger = logging.getLogger(__name__)

EVENTS_KEY_PREFIX = "popup:events:"


class ValkeyEventRepository(EventRepository):
    """Append-only event log stored in Valkey sorted sets."""

    def __init__(self, cache: ValkeyCache | None = None):
        """
        Initialize the event repository.

        Args:
            cache: ValkeyCache instance. If None, one is created on connect().
        """
        self._cache = cache

    def _key(self, shop: str) -> str:
        return f"{EVENTS_KEY_PREFIX}{shop}"

    @property
    def client(self):
        if self._cache is None:
            raise RuntimeError("Valkey connection not established. Call connect() first.")
        return self._cache.client

    def connect(self) -> None:
        if self._cache is None:
            self._cache = ValkeyCache()
        logger.info("ValkeyEventRepository connected")

    def append(self, events: list[AnalyticsEvent]) -> int:
        if not events:
            return 0

        pipe = self.client.pipeline()
        for event in events:
            member = json.dumps({"id": uuid.uuid4().hex, **event.to_record()})
            pipe.zadd(self._key(event.shop), {member: event.timestamp})
        pipe.execute()
        return len(events)

    def fetch(self, shop: str, since_ms: int, popup_id: str | None = None) -> list[AnalyticsEvent]:
        try:
            members = self.client.zrangebyscore(self._key(shop), since_ms, "+inf")
        except (RedisConnectionError, RedisTimeoutError) as e:
            raise AggregationUnavailable(f"Event log unreachable: {e}") from e

        events = []
        for member in members:
            try:
                record = json.loads(member)
                record.pop("id", None)
                event = parse_event(record)
            except (json.JSONDecodeError, ValidationError) as e:
                logger.warning("Skipping malformed event record for shop %s: %s", shop, e)
                continue
            if popup_id is not None and event.popup_id != popup_id:
                continue
            events.append(event)
        return events

    def close(self) -> None:
        if self._cache is not None:
            self._cache.close()
            logger.info("ValkeyEventRepository closed")
