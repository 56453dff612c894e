# ==============================================================================
# HTTP Adapters
# ==============================================================================
"""
HTTP clients for the popup application API.

Provides:
- HttpEventTransport: POST one analytics event to the ingestion endpoint
- ConfigClient: GET the shop's popup config, degrading to FALLBACK_CONFIG
- HttpDiscountIssuer: ask the app to issue a discount code for a prize

All requests carry a hard timeout.
"""

import logging
import re

import requests

from promopopup.base.discounts import DiscountIssuer
from promopopup.base.transport import EventTransport
from promopopup.core.errors import (
    ConfigUnavailable,
    DiscountUnavailable,
    EmissionFailure,
)
from promopopup.core.models import AnalyticsEvent, PopupConfig, parse_popup_config
from promopopup.utils.config import PopupSettings, get_settings
from promopopup.utils.retry import retry_light

logger = logging.getLogger(__name__)

HTTP_RETRY_EXCEPTIONS = (
    requests.exceptions.ConnectionError,
    requests.exceptions.Timeout,
)

REQUEST_HEADERS = {"X-Requested-With": "XMLHttpRequest"}


# Shown when the config endpoint is unreachable so the popup still appears
FALLBACK_CONFIG = parse_popup_config(
    {
        "popup_id": "fallback",
        "title": "Spin to Win!",
        "description": "Try your luck and win a discount!",
        "button_text": "Spin Now!",
        "discount_code": "SAVE10",
        "display_rules": {"frequency": "once", "display_delay_ms": 3000},
        "variant": {
            "kind": "wheel",
            "segments": [
                {"label": "5% OFF", "color": "#ff6b6b", "prize_code": "SAVE5"},
                {"label": "10% OFF", "color": "#4ecdc4", "prize_code": "SAVE10"},
                {"label": "15% OFF", "color": "#45b7d1", "prize_code": "SAVE15"},
                {"label": "20% OFF", "color": "#feca57", "prize_code": "SAVE20"},
                {"label": "FREE SHIPPING", "color": "#ff9ff3", "prize_code": "FREESHIP"},
                {"label": "TRY AGAIN", "color": "#54a0ff", "prize_code": None},
            ],
        },
    }
)


class HttpEventTransport(EventTransport):
    """Sends events as form posts to {app_url}/api/public/analytics."""

    def __init__(self, settings: PopupSettings | None = None):
        self._settings = settings or get_settings().popup
        self._http = requests.Session()
        self._http.headers.update(REQUEST_HEADERS)

    def send(self, event: AnalyticsEvent) -> None:
        try:
            response = self._http.post(
                self._settings.analytics_endpoint,
                params={"shop": event.shop},
                data=event.to_form(),
                timeout=self._settings.emit_timeout_seconds,
            )
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            raise EmissionFailure(f"{event.event_type} not delivered: {e}") from e

    def close(self) -> None:
        self._http.close()


class ConfigClient:
    """
    Fetches the active popup config for a shop.

    fetch() never raises for transport problems: it logs and returns
    FALLBACK_CONFIG. It does raise ConfigurationError for a config that
    violates an invariant, so a broken wheel is never silently replaced.
    """

    def __init__(self, settings: PopupSettings | None = None, fallback: PopupConfig | None = None):
        self._settings = settings or get_settings().popup
        self._fallback = fallback or FALLBACK_CONFIG

    @retry_light(HTTP_RETRY_EXCEPTIONS, logger)
    def _get(self, shop: str) -> dict:
        response = requests.get(
            self._settings.config_endpoint,
            params={"shop": shop},
            headers={"Content-Type": "application/json"},
            timeout=self._settings.config_timeout_seconds,
        )
        response.raise_for_status()
        return response.json()

    def fetch_strict(self, shop: str) -> PopupConfig | None:
        """
        Fetch and validate the config, without fallback.

        Returns:
            The active config, or None when the shop has no active popup

        Raises:
            ConfigUnavailable: Endpoint unreachable or payload malformed
            ConfigurationError: Payload violates a config invariant
        """
        try:
            body = self._get(shop)
        except (requests.exceptions.RequestException, ValueError) as e:
            raise ConfigUnavailable(f"Popup config fetch failed for {shop}: {e}") from e

        payload = body.get("config") if isinstance(body, dict) else None
        if payload is None:
            return None
        config = parse_popup_config(payload)
        if not config.shop:
            config = config.model_copy(update={"shop": shop})
        return config

    def fetch(self, shop: str) -> PopupConfig | None:
        """Fetch the config, degrading to the fallback config on ConfigUnavailable."""
        try:
            return self.fetch_strict(shop)
        except ConfigUnavailable as e:
            logger.warning("%s; using fallback config", e)
            return self._fallback.model_copy(update={"shop": shop})


class HttpDiscountIssuer(DiscountIssuer):
    """Requests a code from {app_url}/api/public/generate-discount."""

    def __init__(self, shop: str, settings: PopupSettings | None = None):
        self._shop = shop
        self._settings = settings or get_settings().popup

    @staticmethod
    def _discount_terms(prize_label: str) -> tuple[str, str]:
        if "shipping" in prize_label.lower():
            return "shipping", "0"
        match = re.search(r"(\d+)", prize_label)
        return "percentage", match.group(1) if match else "10"

    def issue(self, prize_label: str, email: str) -> str:
        discount_type, discount_value = self._discount_terms(prize_label)
        endpoint = f"{self._settings.app_url.rstrip('/')}/api/public/generate-discount"
        try:
            response = requests.post(
                endpoint,
                params={"shop": self._shop},
                data={
                    "shop": self._shop,
                    "email": email,
                    "discountType": discount_type,
                    "discountValue": discount_value,
                },
                headers=REQUEST_HEADERS,
                timeout=self._settings.emit_timeout_seconds,
            )
            response.raise_for_status()
            data = response.json()
        except (requests.exceptions.RequestException, ValueError) as e:
            raise DiscountUnavailable(f"Discount request failed: {e}") from e

        if not data.get("success") or not data.get("discountCode"):
            raise DiscountUnavailable(data.get("error") or "No discount code returned")
        return data["discountCode"]
