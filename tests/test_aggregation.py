# ==============================================================================
# Tests for Analytics Aggregation
# ==============================================================================
"""
Unit tests for the pure aggregation functions.

Tests cover:
- Funnel counts and rates, including zero denominators
- Window and shop filtering
- 24 hourly buckets fixed to the trailing day for every window
- Prize distribution ordering
- Recent activity ordering, masking and time-ago strings
- Unique subscribers and subscriber profiles
"""

import pytest
from conftest import SHOP, START_MS, make_event

from promopopup.core.aggregation import (
    HOUR_MS,
    aggregate,
    aggregate_popup,
    hourly_buckets,
    mask_email,
    percentage,
    prize_distribution,
    recent_activity,
    subscriber_profiles,
    summarize,
    time_ago,
    unique_subscribers,
)
from promopopup.core.errors import InvalidInput
from promopopup.core.models import ReportWindow

NOW = START_MS
DAY = 24 * HOUR_MS


def _funnel_events(timestamp=NOW - 60_000):
    events = [make_event("view", timestamp) for _ in range(10)]
    events += [make_event("email_entered", timestamp, email=f"v{i}@example.com") for i in range(4)]
    events += [make_event("spin", timestamp) for _ in range(3)]
    events.append(make_event("win", timestamp, prize_label="10% OFF", discount_code="SAVE10"))
    events.append(make_event("copy_code", timestamp, discount_code="SAVE10"))
    return events


# ==============================================================================
# Rates and summary
# ==============================================================================


class TestRates:
    def test_zero_denominator(self):
        assert percentage(0, 0) == 0.0
        assert percentage(5, 0) == 0.0

    def test_win_rate(self):
        assert percentage(3, 10) == 30.0

    def test_rounding(self):
        assert percentage(1, 3) == 33.3
        assert percentage(2, 3) == 66.7

    def test_empty_summary(self):
        summary = summarize([])
        assert summary.total_views == 0
        assert summary.win_rate == 0.0
        assert summary.copy_rate == 0.0


class TestReport:
    def test_funnel_round_trip(self):
        report = aggregate(_funnel_events(), SHOP, "24h", NOW)
        summary = report.summary

        assert summary.total_views == 10
        assert summary.emails_entered == 4
        assert summary.spins == 3
        assert summary.wins == 1
        assert summary.codes_copied == 1
        assert summary.email_conversion_rate == 40.0
        assert summary.spin_conversion_rate == 75.0
        assert summary.win_rate == 33.3
        assert summary.copy_rate == 100.0
        assert report.prize_distribution == {"10% OFF": 1}

    def test_empty_log_is_valid_report(self):
        report = aggregate([], SHOP, ReportWindow.LAST_30D, NOW)
        assert report.summary.total_views == 0
        assert len(report.hourly) == 24
        assert report.prize_distribution == {}
        assert report.recent_activity == []

    def test_filters_shop_and_window(self):
        events = [
            make_event("view", NOW - 1000),
            make_event("view", NOW - 1000, shop="other.myshopify.com"),
            make_event("view", NOW - DAY),  # inclusive lower bound
            make_event("view", NOW - DAY - 1),
        ]
        assert aggregate(events, SHOP, "24h", NOW).summary.total_views == 2
        assert aggregate(events, SHOP, "7d", NOW).summary.total_views == 3

    def test_unknown_window(self):
        with pytest.raises(InvalidInput):
            aggregate([], SHOP, "90d", NOW)

    def test_order_independent(self):
        events = _funnel_events() + [make_event("view", NOW - 5 * HOUR_MS)]
        forward = aggregate(events, SHOP, "7d", NOW)
        backward = aggregate(list(reversed(events)), SHOP, "7d", NOW)
        assert forward.summary == backward.summary
        assert forward.hourly == backward.hourly
        assert forward.prize_distribution == backward.prize_distribution
        assert forward.hourly_performance == backward.hourly_performance


# ==============================================================================
# Hourly buckets
# ==============================================================================


class TestHourlyBuckets:
    def test_always_24_buckets(self):
        buckets = hourly_buckets([], NOW)
        assert len(buckets) == 24
        assert buckets[0].start == NOW - DAY
        assert buckets[-1].start == NOW - HOUR_MS

    def test_labels_are_bucket_start_hours(self):
        # NOW is 12:00 UTC, so the first bucket starts at 12:00 the day before
        hours = [b.hour for b in hourly_buckets([], NOW)]
        assert hours == [(12 + k) % 24 for k in range(24)]

    def test_bucket_boundaries(self):
        events = [
            make_event("view", NOW - DAY),
            make_event("view", NOW - DAY + HOUR_MS - 1),
            make_event("email_entered", NOW - DAY + HOUR_MS, email="a@b.co"),
            make_event("win", NOW, prize_label="5% OFF"),
            make_event("spin", NOW - 1000),
        ]
        buckets = hourly_buckets(events, NOW)
        assert buckets[0].views == 2
        assert buckets[1].emails == 1
        assert buckets[23].wins == 1
        assert sum(b.views + b.emails + b.wins for b in buckets) == 4

    def test_seven_day_report_charts_last_day_only(self):
        events = []
        for day in range(7):
            for hour in range(0, 24, 3):
                ts = NOW - day * DAY - hour * HOUR_MS - 1
                events.append(make_event("view", ts))
                events.append(make_event("email_entered", ts, email=f"{day}-{hour}@example.com"))
                events.append(make_event("win", ts, prize_label="FREE SHIPPING"))
                events.append(make_event("close", ts))

        report = aggregate(events, SHOP, "7d", NOW)
        in_last_day = [
            e
            for e in events
            if e.event_type in ("view", "email_entered", "win") and NOW - DAY <= e.timestamp <= NOW
        ]
        charted = sum(b.views + b.emails + b.wins for b in report.hourly)
        assert charted == len(in_last_day)
        assert report.summary.total_views == 7 * 8

    def test_hourly_performance_covers_window(self):
        events = [make_event("view", NOW - 3 * DAY), make_event("win", NOW - 3 * DAY)]
        report = aggregate(events, SHOP, "7d", NOW)
        assert report.hourly_performance[12].views == 1
        assert report.hourly_performance[12].conversions == 1
        assert sum(b.views for b in report.hourly) == 0


# ==============================================================================
# Prize distribution
# ==============================================================================


class TestPrizeDistribution:
    def test_descending_by_count(self):
        events = [make_event("win", NOW, prize_label="5% OFF")]
        events += [make_event("win", NOW, prize_label="FREE SHIPPING") for _ in range(3)]
        events += [make_event("win", NOW, prize_label="10% OFF") for _ in range(2)]
        events.append(make_event("lose", NOW, prize_label="TRY AGAIN"))

        distribution = prize_distribution(events)
        assert list(distribution) == ["FREE SHIPPING", "10% OFF", "5% OFF"]
        assert distribution["FREE SHIPPING"] == 3
        assert "TRY AGAIN" not in distribution


# ==============================================================================
# Recent activity
# ==============================================================================


class TestRecentActivity:
    def test_masking(self):
        assert mask_email("alice@example.com") == "ali***@example.com"
        assert mask_email("al@example.com") == "al***@example.com"
        assert mask_email(None) is None

    @pytest.mark.parametrize(
        "age_ms,expected",
        [
            (0, "0s ago"),
            (59_999, "59s ago"),
            (60_000, "1m ago"),
            (HOUR_MS - 1, "59m ago"),
            (HOUR_MS, "1h ago"),
            (DAY - 1, "23h ago"),
            (DAY, "1d ago"),
            (3 * DAY + 5, "3d ago"),
        ],
    )
    def test_time_ago(self, age_ms, expected):
        assert time_ago(NOW - age_ms, NOW) == expected

    def test_newest_first_and_limited(self):
        events = [make_event("view", NOW - i * 1000) for i in range(20)]
        feed = recent_activity(list(reversed(events)), NOW, limit=12)
        assert len(feed) == 12
        assert [item.timestamp for item in feed] == [NOW - i * 1000 for i in range(12)]

    def test_masks_feed_emails(self):
        events = [make_event("email_entered", NOW - 5000, email="alice@example.com")]
        (item,) = recent_activity(events, NOW)
        assert item.email == "ali***@example.com"
        assert item.time_ago == "5s ago"

    @pytest.mark.parametrize("limit", [0, 9, 16])
    def test_limit_bounds(self, limit):
        with pytest.raises(InvalidInput):
            recent_activity([], NOW, limit=limit)


# ==============================================================================
# Subscribers
# ==============================================================================


class TestSubscribers:
    def test_unique_subscribers_per_popup(self):
        events = [
            make_event("email_entered", NOW, email="a@example.com", popup_id="p1"),
            make_event("email_entered", NOW, email="a@example.com", popup_id="p1"),
            make_event("email_entered", NOW, email="b@example.com", popup_id="p1"),
            make_event("email_entered", NOW, email="c@example.com", popup_id="p2"),
            make_event("win", NOW, email="d@example.com", popup_id="p1"),
        ]
        assert unique_subscribers(events, "p1") == 2

    def test_popup_report(self):
        events = [make_event("view", NOW, popup_id="p1") for _ in range(4)]
        events.append(make_event("email_entered", NOW, email="a@example.com", popup_id="p1"))
        events.append(make_event("view", NOW, popup_id="p2"))

        report = aggregate_popup(events, SHOP, "p1", "30d", NOW)
        assert report.summary.total_views == 4
        assert report.summary.email_conversion_rate == 25.0
        assert report.subscribers == 1

    def test_profiles(self):
        events = [
            make_event("email_entered", NOW - 4000, email="alice@example.com", session_id="s1"),
            make_event("spin", NOW - 3000, email="alice@example.com", session_id="s1"),
            make_event(
                "win",
                NOW - 2000,
                email="alice@example.com",
                prize_label="10% OFF",
                discount_code="SAVE10",
                session_id="s1",
            ),
            make_event("email_entered", NOW - 1000, email="bob@example.com", session_id="s2"),
            make_event("spin", NOW - 500, email="carol@example.com", session_id="s3"),
        ]
        profiles = subscriber_profiles(events, SHOP)

        assert [p.email for p in profiles] == ["bob@example.com", "alice@example.com"]
        alice = profiles[1]
        assert alice.email_entries == 1
        assert alice.spins == 1
        assert alice.wins == 1
        assert alice.first_email_entry == NOW - 4000
        assert alice.last_activity == NOW - 2000
        assert alice.prizes_won[0].code == "SAVE10"

    def test_profile_search(self):
        events = [
            make_event("email_entered", NOW, email="alice@example.com"),
            make_event("email_entered", NOW, email="bob@gmail.com"),
        ]
        assert [p.email for p in subscriber_profiles(events, SHOP, search="GMAIL")] == [
            "bob@gmail.com"
        ]
