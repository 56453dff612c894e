# ==============================================================================
# Tests for the Scheduler and Session State
# ==============================================================================
"""
Unit tests for SchedScheduler under a virtual clock, and for the visitor
state a PopupSession keeps in the key-value store.
"""

import pytest
from conftest import SHOP, START_MS

from promopopup.core.models import TimerDeadline
from promopopup.core.session import generate_session_id


class TestSchedScheduler:
    def test_runs_in_time_order(self, scheduler, clock):
        fired = []
        scheduler.call_later(300, lambda: fired.append(("b", clock.now)))
        scheduler.call_later(100, lambda: fired.append(("a", clock.now)))

        scheduler.run(until_ms=START_MS + 1000)

        assert fired == [("a", START_MS + 100), ("b", START_MS + 300)]
        assert clock.now == START_MS + 1000

    def test_until_leaves_later_callbacks(self, scheduler):
        fired = []
        scheduler.call_later(5000, lambda: fired.append(True))
        scheduler.run(until_ms=START_MS + 4999)
        assert fired == []
        assert scheduler.pending == 1

    def test_cancel(self, scheduler):
        fired = []
        handle = scheduler.call_later(10, lambda: fired.append(True))
        scheduler.cancel(handle)
        scheduler.cancel(handle)
        scheduler.cancel(None)
        scheduler.run()
        assert fired == []

    def test_cancel_all(self, scheduler):
        for delay in (10, 20, 30):
            scheduler.call_later(delay, lambda: None)
        scheduler.cancel_all()
        assert scheduler.pending == 0

    def test_callback_may_reschedule(self, scheduler, clock):
        ticks = []

        def tick():
            ticks.append(clock.now)
            if len(ticks) < 3:
                scheduler.call_later(1000, tick)

        scheduler.call_later(0, tick)
        scheduler.run()
        assert ticks == [START_MS, START_MS + 1000, START_MS + 2000]

    def test_negative_delay(self, scheduler):
        with pytest.raises(ValueError):
            scheduler.call_later(-1, lambda: None)


class TestSessionState:
    def test_session_id_is_fresh_per_load(self):
        assert generate_session_id(START_MS) != generate_session_id(START_MS)

    def test_frequency_state_round_trip(self, session):
        assert session.load_frequency_state().shown_once is False

        session.update_frequency_state(shown_once=True, last_shown_at=START_MS)
        state = session.update_frequency_state(snooze_until=START_MS + 10)

        assert state.shown_once is True
        assert state.last_shown_at == START_MS
        assert session.load_frequency_state() == state

    def test_state_keyed_by_visitor_and_shop(self, session, fake_redis):
        session.save_timer_deadline(TimerDeadline(ends_at=START_MS))
        assert fake_redis.exists(f"popup:visitor:visitor-1:{SHOP}:timer")

    def test_state_ttl(self, session, fake_redis):
        session.state_ttl_seconds = 3600
        session.update_frequency_state(shown_once=True)
        assert 0 < fake_redis.ttl(session.frequency_key) <= 3600
