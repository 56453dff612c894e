# ==============================================================================
# Analytics Aggregation
# ==============================================================================
"""
Pure functions turning an unordered event log into analytics reports.

Nothing here reads or writes a store: callers pass one snapshot of events
and the current time, so the same inputs always produce the same report.
Events may arrive in any order; only their own timestamps are used.
"""

import logging
from collections import Counter
from collections.abc import Iterable
from datetime import datetime, timezone, tzinfo

from promopopup.core.errors import InvalidInput
from promopopup.core.models import (
    ActivityItem,
    AnalyticsEvent,
    EventType,
    HourlyBucket,
    HourPerformance,
    PopupReport,
    PrizeWon,
    Report,
    ReportWindow,
    SubscriberProfile,
    Summary,
)

logger = logging.getLogger(__name__)

HOUR_MS = 3_600_000
HOURLY_BUCKETS = 24

RECENT_LIMIT_MIN = 10
RECENT_LIMIT_MAX = 15

_HOURLY_TYPES = {
    EventType.VIEW.value: "views",
    EventType.EMAIL_ENTERED.value: "emails",
    EventType.WIN.value: "wins",
}


def percentage(numerator: int, denominator: int) -> float:
    """numerator / denominator as a percentage with one decimal; 0.0 when denominator is 0."""
    if denominator == 0:
        return 0.0
    return round(numerator / denominator * 100, 1)


def parse_window(window: ReportWindow | str) -> ReportWindow:
    """
    Raises:
        InvalidInput: If window is not one of 24h, 7d, 30d
    """
    try:
        return ReportWindow(window)
    except ValueError as e:
        choices = ", ".join(w.value for w in ReportWindow)
        raise InvalidInput(f"Unknown report window {window!r} (expected one of {choices})") from e


def filter_window(
    events: Iterable[AnalyticsEvent],
    shop: str,
    since_ms: int,
    popup_id: str | None = None,
) -> list[AnalyticsEvent]:
    """Events for ``shop`` (and optionally ``popup_id``) with timestamp >= since_ms."""
    return [
        e
        for e in events
        if e.shop == shop
        and e.timestamp >= since_ms
        and (popup_id is None or e.popup_id == popup_id)
    ]


def summarize(events: Iterable[AnalyticsEvent]) -> Summary:
    """
    Tally events by type and derive the funnel rates.

    Args:
        events: Already-filtered events

    Returns:
        Summary whose rates share the counts' event set
    """
    counts = Counter(e.event_type for e in events)
    views = counts[EventType.VIEW.value]
    emails = counts[EventType.EMAIL_ENTERED.value]
    spins = counts[EventType.SPIN.value]
    wins = counts[EventType.WIN.value]
    copies = counts[EventType.COPY_CODE.value]
    return Summary(
        total_views=views,
        emails_entered=emails,
        spins=spins,
        wins=wins,
        loses=counts[EventType.LOSE.value],
        closes=counts[EventType.CLOSE.value],
        codes_copied=copies,
        email_conversion_rate=percentage(emails, views),
        spin_conversion_rate=percentage(spins, emails),
        win_rate=percentage(wins, spins),
        copy_rate=percentage(copies, wins),
    )


def _hour_of_day(timestamp_ms: int, tz: tzinfo) -> int:
    return datetime.fromtimestamp(timestamp_ms / 1000.0, tz=tz).hour


def hourly_buckets(
    events: Iterable[AnalyticsEvent], now: int, tz: tzinfo = timezone.utc
) -> list[HourlyBucket]:
    """
    Bucket the trailing 24 hours into 24 one-hour slots.

    Bucket k covers [now - 24h + k*1h, now - 23h + k*1h); the last bucket
    also takes events stamped exactly ``now``. Events outside [now - 24h, now]
    are ignored, whatever window the caller filtered by.

    Args:
        events: Events of one shop
        now: Report time, epoch ms
        tz: Timezone used for the hour-of-day labels

    Returns:
        24 buckets, oldest first
    """
    start = now - HOURLY_BUCKETS * HOUR_MS
    buckets = [
        HourlyBucket(hour=_hour_of_day(start + k * HOUR_MS, tz), start=start + k * HOUR_MS)
        for k in range(HOURLY_BUCKETS)
    ]
    for e in events:
        field = _HOURLY_TYPES.get(e.event_type)
        if field is None or not start <= e.timestamp <= now:
            continue
        index = min((e.timestamp - start) // HOUR_MS, HOURLY_BUCKETS - 1)
        bucket = buckets[index]
        setattr(bucket, field, getattr(bucket, field) + 1)
    return buckets


def hourly_performance(
    events: Iterable[AnalyticsEvent], tz: tzinfo = timezone.utc
) -> dict[int, HourPerformance]:
    """Views and conversions (wins) by hour of day across the whole window."""
    performance = {hour: HourPerformance() for hour in range(24)}
    for e in events:
        if e.event_type == EventType.VIEW.value:
            performance[_hour_of_day(e.timestamp, tz)].views += 1
        elif e.event_type == EventType.WIN.value:
            performance[_hour_of_day(e.timestamp, tz)].conversions += 1
    return performance


def prize_distribution(events: Iterable[AnalyticsEvent]) -> dict[str, int]:
    """Histogram of win prize labels, most frequent first."""
    counts = Counter(
        e.prize_label for e in events if e.event_type == EventType.WIN.value and e.prize_label
    )
    return dict(counts.most_common())


def mask_email(email: str | None) -> str | None:
    """alice@example.com -> ali***@example.com"""
    if not email or "@" not in email:
        return email
    local, _, domain = email.rpartition("@")
    return f"{local[:3]}***@{domain}"


def time_ago(timestamp: int, now: int) -> str:
    """Human-relative age: "Ns ago", "Nm ago", "Nh ago" or "Nd ago"."""
    seconds = max(0, now - timestamp) // 1000
    if seconds < 60:
        return f"{seconds}s ago"
    if seconds < 3_600:
        return f"{seconds // 60}m ago"
    if seconds < 86_400:
        return f"{seconds // 3_600}h ago"
    return f"{seconds // 86_400}d ago"


def validate_recent_limit(limit: int) -> int:
    """
    Raises:
        InvalidInput: If limit is outside 10..15
    """
    if not RECENT_LIMIT_MIN <= limit <= RECENT_LIMIT_MAX:
        raise InvalidInput(
            f"recent_limit must be between {RECENT_LIMIT_MIN} and {RECENT_LIMIT_MAX}, got {limit}"
        )
    return limit


def recent_activity(
    events: Iterable[AnalyticsEvent], now: int, limit: int = RECENT_LIMIT_MIN
) -> list[ActivityItem]:
    """
    Most recent events, newest first, with masked emails.

    Raises:
        InvalidInput: If limit is outside 10..15
    """
    validate_recent_limit(limit)
    latest = sorted(events, key=lambda e: e.timestamp, reverse=True)[:limit]
    return [
        ActivityItem(
            event_type=e.event_type,
            email=mask_email(getattr(e, "email", None)),
            discount_code=getattr(e, "discount_code", None),
            prize_label=getattr(e, "prize_label", None),
            session_id=e.session_id,
            timestamp=e.timestamp,
            time_ago=time_ago(e.timestamp, now),
        )
        for e in latest
    ]


def unique_subscribers(events: Iterable[AnalyticsEvent], popup_id: str) -> int:
    """Distinct emails across email_entered events of one popup."""
    return len(
        {
            e.email
            for e in events
            if e.event_type == EventType.EMAIL_ENTERED.value and e.popup_id == popup_id and e.email
        }
    )


def aggregate(
    events: Iterable[AnalyticsEvent],
    shop: str,
    window: ReportWindow | str,
    now: int,
    recent_limit: int = RECENT_LIMIT_MIN,
    tz: tzinfo = timezone.utc,
) -> Report:
    """
    Build the shop-level report for a trailing window.

    Args:
        events: Event snapshot (any order, may include other shops)
        shop: Shop domain
        window: "24h", "7d" or "30d"
        now: Report time, epoch ms
        recent_limit: Size of the activity feed (10..15)
        tz: Timezone for hour-of-day labels

    Returns:
        Report; an empty snapshot yields an all-zero report
    """
    window = parse_window(window)
    selected = filter_window(events, shop, now - window.milliseconds)
    logger.debug("Aggregating %d events for %s (%s)", len(selected), shop, window.value)
    return Report(
        shop=shop,
        window=window,
        generated_at=now,
        summary=summarize(selected),
        hourly=hourly_buckets(selected, now, tz),
        prize_distribution=prize_distribution(selected),
        hourly_performance=hourly_performance(selected, tz),
        recent_activity=recent_activity(selected, now, recent_limit),
    )


def aggregate_popup(
    events: Iterable[AnalyticsEvent],
    shop: str,
    popup_id: str,
    window: ReportWindow | str,
    now: int,
) -> PopupReport:
    """Funnel summary and unique subscriber count for a single popup."""
    window = parse_window(window)
    selected = filter_window(events, shop, now - window.milliseconds, popup_id=popup_id)
    return PopupReport(
        shop=shop,
        popup_id=popup_id,
        window=window,
        generated_at=now,
        summary=summarize(selected),
        subscribers=unique_subscribers(selected, popup_id),
    )


_PROFILE_COUNTERS = {
    EventType.EMAIL_ENTERED.value: "email_entries",
    EventType.VIEW.value: "views",
    EventType.SPIN.value: "spins",
    EventType.WIN.value: "wins",
    EventType.LOSE.value: "losses",
    EventType.COPY_CODE.value: "codes_copied",
    EventType.CLOSE.value: "closes",
}


def subscriber_profiles(
    events: Iterable[AnalyticsEvent], shop: str, search: str = ""
) -> list[SubscriberProfile]:
    """
    Per-email interaction history for everyone who entered an email.

    Args:
        events: Event snapshot
        shop: Shop domain
        search: Case-insensitive substring filter on the email

    Returns:
        Profiles ordered by last activity, most recent first
    """
    shop_events = sorted(
        (e for e in events if e.shop == shop and getattr(e, "email", None)),
        key=lambda e: e.timestamp,
    )
    needle = search.lower()
    subscribers = {
        e.email
        for e in shop_events
        if e.event_type == EventType.EMAIL_ENTERED.value and needle in e.email.lower()
    }

    profiles: dict[str, SubscriberProfile] = {}
    for e in shop_events:
        if e.email not in subscribers:
            continue
        profile = profiles.get(e.email)
        if profile is None:
            profile = profiles[e.email] = SubscriberProfile(
                email=e.email,
                first_email_entry=e.timestamp,
                last_activity=e.timestamp,
                last_session_id=e.session_id,
            )
        if e.event_type == EventType.EMAIL_ENTERED.value and profile.email_entries == 0:
            profile.first_email_entry = e.timestamp
        counter = _PROFILE_COUNTERS.get(e.event_type)
        if counter is not None:
            setattr(profile, counter, getattr(profile, counter) + 1)
        if e.event_type == EventType.WIN.value and e.prize_label:
            profile.prizes_won.append(
                PrizeWon(prize=e.prize_label, code=e.discount_code, timestamp=e.timestamp)
            )
        profile.last_activity = e.timestamp
        profile.last_session_id = e.session_id

    return sorted(profiles.values(), key=lambda p: p.last_activity, reverse=True)
