# ==============================================================================
# Event Ingestion
# ==============================================================================
"""
Server side of the analytics endpoint.

Turns one form post from the storefront into a typed AnalyticsEvent and
appends it to the event log. The event is stamped with the server clock on
arrival; the visitor's IP is stored only as a SHA-256 hash.
"""

import hashlib
import json
import logging
from collections.abc import Mapping

from pydantic import ValidationError

from promopopup.base.clock import Clock
from promopopup.base.repositories import EventRepository
from promopopup.base.transport import EventTransport
from promopopup.core.errors import EmissionFailure, InvalidInput, PopupError
from promopopup.core.models import AnalyticsEvent, EventType, build_event

logger = logging.getLogger(__name__)

# Form field -> event field for the optional per-variant fields
_OPTIONAL_FIELDS = {
    "email": "email",
    "discountCode": "discount_code",
    "prizeLabel": "prize_label",
    "popupId": "popup_id",
}

_EVENT_TYPES = {t.value for t in EventType}


def hash_ip(ip: str | None) -> str | None:
    if not ip:
        return None
    return hashlib.sha256(ip.encode("utf-8")).hexdigest()


def client_ip_from_headers(headers: Mapping[str, str]) -> str | None:
    """First hop of X-Forwarded-For, then X-Real-IP, then CF-Connecting-IP."""
    lowered = {k.lower(): v for k, v in headers.items()}
    forwarded = lowered.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    return lowered.get("x-real-ip") or lowered.get("cf-connecting-ip")


def parse_metadata(raw: str | Mapping | None) -> dict | None:
    """Decode the metadata field; text that is not a JSON object is kept under "raw"."""
    if raw is None or raw == "":
        return None
    if isinstance(raw, Mapping):
        return dict(raw)
    try:
        value = json.loads(raw)
    except (TypeError, ValueError):
        return {"raw": raw}
    return value if isinstance(value, dict) else {"raw": raw}


class IngestionService:
    """Validates and stores analytics events posted by the storefront."""

    def __init__(self, repository: EventRepository, clock: Clock):
        self._repository = repository
        self._clock = clock

    def build(
        self,
        form: Mapping[str, str],
        query_shop: str | None = None,
        client_ip: str | None = None,
        user_agent: str | None = None,
    ) -> AnalyticsEvent:
        """
        Validate a posted form into an event without storing it.

        Args:
            form: Posted form fields (camelCase)
            query_shop: ``shop`` query parameter; takes precedence over the form
            client_ip: Resolved client address, hashed before storage
            user_agent: Request User-Agent

        Raises:
            InvalidInput: Missing shop or eventType, unknown event type, or
                          fields missing for the event type
        """
        shop = query_shop or form.get("shop")
        if not shop:
            raise InvalidInput("Shop parameter is required")

        event_type = form.get("eventType")
        if not event_type:
            raise InvalidInput("Event type is required")
        if event_type not in _EVENT_TYPES:
            raise InvalidInput(f"Unknown event type: {event_type}")

        fields = {
            field: form[key] for key, field in _OPTIONAL_FIELDS.items() if form.get(key)
        }
        try:
            return build_event(
                event_type,
                shop=shop,
                session_id=form.get("sessionId") or "",
                timestamp=self._clock.now_ms(),
                metadata=parse_metadata(form.get("metadata")),
                user_agent=user_agent or None,
                ip_hash=hash_ip(client_ip),
                **fields,
            )
        except ValidationError as e:
            raise InvalidInput(f"Invalid {event_type} event: {e}") from e

    def ingest(
        self,
        form: Mapping[str, str],
        query_shop: str | None = None,
        client_ip: str | None = None,
        user_agent: str | None = None,
    ) -> AnalyticsEvent:
        """Validate a posted form and append the event to the log."""
        event = self.build(form, query_shop, client_ip, user_agent)
        self._repository.append([event])
        logger.info("Recording analytics event: %s for shop: %s", event.event_type, event.shop)
        return event


class IngestionTransport(EventTransport):
    """Delivers events straight into an IngestionService, in process."""

    def __init__(self, service: IngestionService, user_agent: str | None = None):
        self._service = service
        self._user_agent = user_agent

    def send(self, event: AnalyticsEvent) -> None:
        try:
            self._service.ingest(
                event.to_form(), query_shop=event.shop, user_agent=self._user_agent
            )
        except PopupError as e:
            raise EmissionFailure(f"{event.event_type} rejected: {e}") from e
