# ==============================================================================
# Tests for the Countdown Timer
# ==============================================================================
"""
Unit tests for the persistent countdown.

Tests cover:
- Remaining time decomposition
- First activation persists the deadline; reloads reuse it
- Exactly one timer_expired event, then the expiration policy
- Halt and cancel stop ticking without an expiry event
"""

from conftest import SHOP, START_MS, RecordingView

from promopopup.core.countdown import CountdownTimer, Remaining, TimerState
from promopopup.core.models import ExpirationPolicy, TimerCountdown, TimerDeadline, TimerDuration
from promopopup.core.session import PopupSession
from promopopup.infrastructure.scheduler import SchedScheduler

FIVE_MINUTES = TimerCountdown(duration=TimerDuration(minutes=5, seconds=0))


# ==============================================================================
# Remaining
# ==============================================================================


class TestRemaining:
    def test_decomposition(self):
        ms = ((1 * 24 + 2) * 3600 + 3 * 60 + 4) * 1000 + 999
        assert Remaining.from_ms(ms) == Remaining(days=1, hours=2, minutes=3, seconds=4)

    def test_negative_clamps_to_zero(self):
        assert Remaining.from_ms(-5000) == Remaining(0, 0, 0, 0)

    def test_duration_total_seconds(self):
        duration = TimerDuration(days=1, hours=1, minutes=1, seconds=1)
        assert duration.total_seconds == 86_400 + 3_600 + 60 + 1


# ==============================================================================
# Activation and persistence
# ==============================================================================


class TestActivation:
    def test_first_activation(self, session, emitter, view):
        timer = CountdownTimer(session, FIVE_MINUTES)
        remaining = timer.activate()

        assert remaining == Remaining(0, 0, 5, 0)
        assert timer.state is TimerState.RUNNING
        assert session.load_timer_deadline() == TimerDeadline(ends_at=START_MS + 300_000)
        assert view.last("render_timer") == (0, 0, 5, 0)

    def test_ticks_every_second(self, session, emitter, view, scheduler):
        timer = CountdownTimer(session, FIVE_MINUTES)
        timer.activate()
        scheduler.run(until_ms=START_MS + 3_000)
        ticks = [args for name, args in view.calls if name == "render_timer"]
        assert ticks == [(0, 0, 5, 0), (0, 0, 4, 59), (0, 0, 4, 58), (0, 0, 4, 57)]

    def test_reload_reuses_deadline(self, session, emitter, scheduler, clock, fake_cache):
        first = CountdownTimer(session, FIVE_MINUTES)
        before = first.activate()
        scheduler.run(until_ms=START_MS + 42_000)
        first.cancel()

        # Second page load, same visitor
        session2 = PopupSession(
            SHOP, "visitor-1", clock, fake_cache, SchedScheduler(clock), RecordingView()
        )
        second = CountdownTimer(session2, FIVE_MINUTES)
        after = second.activate()

        assert after.total_seconds <= before.total_seconds
        assert after == Remaining(0, 0, 4, 18)
        assert session2.load_timer_deadline().ends_at == START_MS + 300_000

    def test_expired_deadline_restarts(self, session, emitter, clock):
        session.save_timer_deadline(TimerDeadline(ends_at=START_MS - 1))
        timer = CountdownTimer(session, FIVE_MINUTES)
        assert timer.activate() == Remaining(0, 0, 5, 0)
        assert session.load_timer_deadline().ends_at == START_MS + 300_000

    def test_activate_twice_keeps_single_tick_chain(self, session, emitter, scheduler):
        timer = CountdownTimer(session, FIVE_MINUTES)
        timer.activate()
        timer.activate()
        assert scheduler.pending == 1


# ==============================================================================
# Expiry
# ==============================================================================


class TestExpiry:
    def test_single_expiry_event(self, session, emitter, transport, view, scheduler):
        timer = CountdownTimer(session, FIVE_MINUTES)
        timer.activate()
        scheduler.run(until_ms=START_MS + 301_000)

        assert timer.state is TimerState.EXPIRED
        assert transport.types() == ["timer_expired"]
        event = transport.events[0]
        assert event.metadata["popupType"] == "timer"
        assert event.metadata["expiredAt"].startswith("2024-03-01T12:05:00")
        assert view.names()[-1] == "render_expired"
        assert scheduler.pending == 0

        scheduler.run(until_ms=START_MS + 600_000)
        assert transport.types() == ["timer_expired"]

    def test_hide_policy_calls_back(self, session, emitter, view, scheduler):
        hidden = []
        countdown = TimerCountdown(
            duration=TimerDuration(seconds=2), on_expiration=ExpirationPolicy.HIDE
        )
        timer = CountdownTimer(session, countdown, on_expired=lambda: hidden.append(True))
        timer.activate()
        scheduler.run(until_ms=START_MS + 5_000)

        assert hidden == [True]
        assert "render_expired" not in view.names()

    def test_sub_second_remainder_is_not_expired(
        self, session, emitter, transport, view, scheduler, clock
    ):
        session.save_timer_deadline(TimerDeadline(ends_at=START_MS + 1500))
        timer = CountdownTimer(session, FIVE_MINUTES)
        timer.activate()

        scheduler.run(until_ms=START_MS + 1000)
        assert timer.state is TimerState.RUNNING
        assert transport.events == []
        assert view.last("render_timer") == (0, 0, 0, 0)

        scheduler.run(until_ms=START_MS + 1499)
        assert timer.state is TimerState.RUNNING

        scheduler.run(until_ms=START_MS + 1500)
        assert timer.state is TimerState.EXPIRED
        assert transport.types() == ["timer_expired"]
        assert transport.events[0].timestamp == START_MS + 1500

    def test_zero_duration_expires_immediately(self, session, emitter, transport):
        timer = CountdownTimer(session, TimerCountdown(duration=TimerDuration()))
        timer.activate()
        assert timer.state is TimerState.EXPIRED
        assert transport.types() == ["timer_expired"]


# ==============================================================================
# Halt and cancel
# ==============================================================================


class TestStopping:
    def test_halt_prevents_expiry(self, session, emitter, transport, scheduler):
        timer = CountdownTimer(session, FIVE_MINUTES)
        timer.activate()
        scheduler.run(until_ms=START_MS + 60_000)
        timer.halt()
        scheduler.run(until_ms=START_MS + 400_000)

        assert timer.state is TimerState.HALTED
        assert transport.events == []
        assert scheduler.pending == 0

    def test_cancel(self, session, emitter, scheduler):
        timer = CountdownTimer(session, FIVE_MINUTES)
        timer.activate()
        timer.cancel()
        assert timer.state is TimerState.CANCELLED
        assert scheduler.pending == 0

    def test_halt_after_expiry_is_noop(self, session, emitter, scheduler):
        timer = CountdownTimer(session, TimerCountdown(duration=TimerDuration(seconds=1)))
        timer.activate()
        scheduler.run(until_ms=START_MS + 2_000)
        timer.halt()
        assert timer.state is TimerState.EXPIRED
