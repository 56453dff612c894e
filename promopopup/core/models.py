# ==============================================================================
# Popup Domain Models
# ==============================================================================
"""
Pydantic models for popup configuration, visitor state, analytics events and
analytics reports.

These models are used for:
- Validating popup config at the fetch boundary (including legacy payloads)
- Serializing/deserializing visitor state in the key-value store
- Serializing/deserializing analytics events for transport and storage
- Type safety throughout the application

This module is part of the core domain layer and has no external dependencies
beyond Pydantic.
"""

import json
from collections.abc import Mapping
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from promopopup.core.errors import ConfigUnavailable, ConfigurationError

# ==============================================================================
# Popup Configuration
# ==============================================================================


class Frequency(str, Enum):
    """How often a popup may be shown to the same visitor."""

    ONCE = "once"
    DAILY = "daily"
    WEEKLY = "weekly"
    ALWAYS = "always"


class ExpirationPolicy(str, Enum):
    """What a countdown popup does when its timer reaches zero."""

    SHOW_EXPIRED = "show_expired"
    HIDE = "hide"


class DisplayRules(BaseModel):
    """When and how often a popup is displayed."""

    frequency: Frequency = Field(default=Frequency.ONCE, description="Frequency cap")
    exit_intent_enabled: bool = Field(default=False, description="Trigger on exit intent")
    exit_intent_delay_ms: int = Field(
        default=1000, ge=0, description="Delay between exit-intent signal and display"
    )
    display_delay_ms: int = Field(
        default=3000, ge=0, description="Delay before display when exit intent is off"
    )


class Segment(BaseModel):
    """One slice of a prize wheel."""

    label: str
    color: str | None = None
    prize_code: str | None = Field(default=None, description="Redeemable code; None means lose")

    @property
    def is_win(self) -> bool:
        """A segment wins iff it carries a prize code."""
        return self.prize_code is not None


class SocialLink(BaseModel):
    platform: str
    url: str


class TimerDuration(BaseModel):
    """Configured countdown length, split into units."""

    days: int = Field(default=0, ge=0)
    hours: int = Field(default=0, ge=0)
    minutes: int = Field(default=0, ge=0)
    seconds: int = Field(default=0, ge=0)

    @property
    def total_seconds(self) -> int:
        return self.days * 86_400 + self.hours * 3_600 + self.minutes * 60 + self.seconds


class EmailCapture(BaseModel):
    kind: Literal["email"] = "email"
    placeholder: str = "Your email"


class WheelCombo(BaseModel):
    kind: Literal["wheel"] = "wheel"
    placeholder: str = "Enter your email"
    segments: list[Segment] = Field(..., min_length=1)


class CommunitySocial(BaseModel):
    kind: Literal["community"] = "community"
    social_links: list[SocialLink] = Field(default_factory=list)
    ask_later_enabled: bool = True
    ask_later_text: str = "Ask me later"


class TimerCountdown(BaseModel):
    kind: Literal["timer"] = "timer"
    placeholder: str = "Enter your email to claim this offer"
    duration: TimerDuration = Field(default_factory=lambda: TimerDuration(minutes=5))
    on_expiration: ExpirationPolicy = ExpirationPolicy.SHOW_EXPIRED


PopupVariant = Annotated[
    Union[EmailCapture, WheelCombo, CommunitySocial, TimerCountdown],
    Field(discriminator="kind"),
]


class PopupConfig(BaseModel):
    """
    The active popup configuration for one shop.

    Attributes:
        popup_id: Identifier of this popup (used by per-popup analytics)
        shop: Shop domain the popup belongs to
        is_active: Inactive popups are never displayed
        discount_code: Pre-configured code for email and timer popups
        display_rules: Frequency, delay and exit-intent settings
        variant: Exactly one variant payload, keyed by ``kind``
    """

    popup_id: str = "default"
    shop: str = ""
    is_active: bool = True
    title: str = ""
    description: str = ""
    button_text: str = ""
    discount_code: str | None = None
    display_rules: DisplayRules = Field(default_factory=DisplayRules)
    variant: PopupVariant

    @property
    def kind(self) -> str:
        return self.variant.kind


LEGACY_TYPES = {"wheel", "email", "community", "timer"}


def _legacy_segments(raw: Any) -> list[dict]:
    if isinstance(raw, str):
        raw = json.loads(raw)
    segments = []
    for item in raw or []:
        # Older payloads put the code in "value"; "code" wins when both exist
        code = item.get("code", item.get("value"))
        segments.append(
            {
                "label": item["label"],
                "color": item.get("color"),
                "prize_code": str(code) if code is not None else None,
            }
        )
    return segments


def _legacy_social_links(raw: Any) -> list[dict]:
    if isinstance(raw, str):
        raw = json.loads(raw)
    return [
        {"platform": item.get("platform") or item.get("name", ""), "url": item.get("url", "")}
        for item in raw or []
    ]


def _migrate_legacy(payload: Mapping[str, Any]) -> dict:
    """Convert a flat camelCase popup payload into the typed shape."""
    popup_type = payload.get("type")
    if popup_type not in LEGACY_TYPES:
        raise ConfigUnavailable(f"Unknown popup type: {popup_type!r}")

    placeholder = payload.get("placeholder")
    if popup_type == "wheel":
        variant: dict = {"kind": "wheel", "segments": _legacy_segments(payload.get("segments"))}
    elif popup_type == "email":
        variant = {"kind": "email"}
    elif popup_type == "community":
        variant = {
            "kind": "community",
            "social_links": _legacy_social_links(payload.get("socialIcons")),
            "ask_later_enabled": payload.get("showAskMeLater", True),
        }
        if payload.get("askMeLaterText"):
            variant["ask_later_text"] = payload["askMeLaterText"]
    else:
        units = {
            unit: payload.get(f"timer{unit.capitalize()}")
            for unit in ("days", "hours", "minutes", "seconds")
        }
        duration = {k: int(v) for k, v in units.items() if v not in (None, "")}
        variant = {
            "kind": "timer",
            "duration": duration or {"minutes": 5},
            "on_expiration": (
                ExpirationPolicy.HIDE
                if payload.get("onExpiration") in ("hide", "disappear")
                else ExpirationPolicy.SHOW_EXPIRED
            ),
        }
    if placeholder and popup_type != "community":
        variant["placeholder"] = placeholder

    return {
        "popup_id": str(payload.get("id", "default")),
        "shop": payload.get("shop", ""),
        "is_active": payload.get("isActive", True),
        "title": payload.get("title") or "",
        "description": payload.get("description") or "",
        "button_text": payload.get("buttonText") or "",
        "discount_code": payload.get("discountCode"),
        "display_rules": {
            "frequency": payload.get("frequency") or Frequency.ONCE,
            "exit_intent_enabled": bool(payload.get("exitIntent", False)),
            "exit_intent_delay_ms": payload.get("exitIntentDelay", 1000),
            "display_delay_ms": payload.get("displayDelay", 3000),
        },
        "variant": variant,
    }


def parse_popup_config(payload: Mapping[str, Any]) -> PopupConfig:
    """
    Validate a popup config payload at the fetch boundary.

    Accepts the typed shape (with a ``variant`` object) or the legacy flat
    shape (with a ``type`` string).

    Raises:
        ConfigurationError: A wheel popup has no segments
        ConfigUnavailable: The payload has an unknown or malformed shape
    """
    try:
        data = dict(payload) if "variant" in payload else _migrate_legacy(payload)
    except (KeyError, TypeError, ValueError) as e:
        raise ConfigUnavailable(f"Malformed popup config: {e}") from e

    variant = data.get("variant")
    is_wheel = isinstance(variant, Mapping) and variant.get("kind") == "wheel"
    if is_wheel and not variant.get("segments"):
        raise ConfigurationError("Wheel popup configured with an empty segment list")

    try:
        return PopupConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigUnavailable(f"Invalid popup config: {e}") from e


# ==============================================================================
# Visitor State
# ==============================================================================


class VisitorFrequencyState(BaseModel):
    """Per-visitor frequency capping state, persisted per shop."""

    shown_once: bool = False
    last_shown_at: int | None = Field(default=None, description="Epoch ms of last display")
    snooze_until: int | None = Field(default=None, description="Epoch ms snooze deadline")


class TimerDeadline(BaseModel):
    """Persisted countdown deadline."""

    ends_at: int = Field(..., description="Epoch ms when the countdown reaches zero")


# ==============================================================================
# Analytics Events
# ==============================================================================


class EventType(str, Enum):
    """Discrete visitor actions recorded by the emitter."""

    VIEW = "view"
    EMAIL_ENTERED = "email_entered"
    SPIN = "spin"
    WIN = "win"
    LOSE = "lose"
    CLOSE = "close"
    COPY_CODE = "copy_code"
    ASK_ME_LATER = "ask_me_later"
    TIMER_EXPIRED = "timer_expired"


class _EventBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    shop: str
    session_id: str
    timestamp: int = Field(..., description="Unix timestamp in milliseconds")
    popup_id: str | None = None
    metadata: dict[str, Any] | None = None
    user_agent: str | None = None
    ip_hash: str | None = None

    @property
    def event_time(self) -> datetime:
        """Convert timestamp to a UTC datetime."""
        return datetime.fromtimestamp(self.timestamp / 1000.0, tz=timezone.utc)

    def to_record(self) -> dict:
        """Serialize event for storage (JSON-safe, no None fields)."""
        return self.model_dump(mode="json", exclude_none=True)

    def to_form(self) -> dict:
        """Serialize event as the ingestion endpoint's form fields."""
        record = self.to_record()
        form = {
            "shop": record["shop"],
            "eventType": record["event_type"],
            "sessionId": record["session_id"],
        }
        for key, form_key in (
            ("email", "email"),
            ("discount_code", "discountCode"),
            ("prize_label", "prizeLabel"),
            ("popup_id", "popupId"),
        ):
            if key in record:
                form[form_key] = record[key]
        if "metadata" in record:
            form["metadata"] = json.dumps(record["metadata"])
        return form


class ViewEvent(_EventBase):
    event_type: Literal["view"] = "view"


class EmailEnteredEvent(_EventBase):
    event_type: Literal["email_entered"] = "email_entered"
    email: str


class SpinEvent(_EventBase):
    event_type: Literal["spin"] = "spin"
    email: str | None = None
    prize_label: str | None = None


class WinEvent(_EventBase):
    event_type: Literal["win"] = "win"
    email: str | None = None
    prize_label: str | None = None
    discount_code: str | None = None


class LoseEvent(_EventBase):
    event_type: Literal["lose"] = "lose"
    email: str | None = None
    prize_label: str | None = None


class CloseEvent(_EventBase):
    event_type: Literal["close"] = "close"


class CopyCodeEvent(_EventBase):
    event_type: Literal["copy_code"] = "copy_code"
    discount_code: str


class AskMeLaterEvent(_EventBase):
    event_type: Literal["ask_me_later"] = "ask_me_later"


class TimerExpiredEvent(_EventBase):
    event_type: Literal["timer_expired"] = "timer_expired"


AnalyticsEvent = Annotated[
    Union[
        ViewEvent,
        EmailEnteredEvent,
        SpinEvent,
        WinEvent,
        LoseEvent,
        CloseEvent,
        CopyCodeEvent,
        AskMeLaterEvent,
        TimerExpiredEvent,
    ],
    Field(discriminator="event_type"),
]

_EVENT_ADAPTER: TypeAdapter = TypeAdapter(AnalyticsEvent)


def parse_event(data: Mapping[str, Any]) -> AnalyticsEvent:
    """Validate a stored or transported event record into its typed variant."""
    return _EVENT_ADAPTER.validate_python(dict(data))


def build_event(event_type: EventType | str, **fields: Any) -> AnalyticsEvent:
    """Build the typed event for ``event_type`` from keyword fields."""
    return parse_event({"event_type": EventType(event_type).value, **fields})


# ==============================================================================
# Analytics Reports
# ==============================================================================


class ReportWindow(str, Enum):
    """Trailing aggregation windows."""

    LAST_24H = "24h"
    LAST_7D = "7d"
    LAST_30D = "30d"

    @property
    def milliseconds(self) -> int:
        return {
            ReportWindow.LAST_24H: 86_400_000,
            ReportWindow.LAST_7D: 7 * 86_400_000,
            ReportWindow.LAST_30D: 30 * 86_400_000,
        }[self]


class Summary(BaseModel):
    """Per-event-type tallies and funnel rates (percentages, 1 decimal)."""

    total_views: int = 0
    emails_entered: int = 0
    spins: int = 0
    wins: int = 0
    loses: int = 0
    closes: int = 0
    codes_copied: int = 0
    email_conversion_rate: float = 0.0
    spin_conversion_rate: float = 0.0
    win_rate: float = 0.0
    copy_rate: float = 0.0


class HourlyBucket(BaseModel):
    hour: int = Field(..., ge=0, le=23, description="Hour of day of the bucket start")
    start: int = Field(..., description="Bucket start, epoch ms")
    views: int = 0
    emails: int = 0
    wins: int = 0


class HourPerformance(BaseModel):
    views: int = 0
    conversions: int = 0


class ActivityItem(BaseModel):
    event_type: EventType
    email: str | None = None
    discount_code: str | None = None
    prize_label: str | None = None
    session_id: str
    timestamp: int
    time_ago: str


class Report(BaseModel):
    """Shop-level analytics report for one window."""

    shop: str
    window: ReportWindow
    generated_at: int
    summary: Summary
    hourly: list[HourlyBucket]
    prize_distribution: dict[str, int]
    hourly_performance: dict[int, HourPerformance]
    recent_activity: list[ActivityItem]


class PopupReport(BaseModel):
    """Analytics for one popup: funnel summary plus unique subscribers."""

    shop: str
    popup_id: str
    window: ReportWindow
    generated_at: int
    summary: Summary
    subscribers: int


class PrizeWon(BaseModel):
    prize: str
    code: str | None = None
    timestamp: int


class SubscriberProfile(BaseModel):
    """Interaction history of one email address captured by a popup."""

    email: str
    first_email_entry: int
    last_activity: int
    last_session_id: str
    email_entries: int = 0
    views: int = 0
    spins: int = 0
    wins: int = 0
    losses: int = 0
    codes_copied: int = 0
    closes: int = 0
    prizes_won: list[PrizeWon] = Field(default_factory=list)
