# ==============================================================================
# Countdown Timer
# ==============================================================================
"""
Persistent countdown for timer popups.

The deadline is computed once and stored in the visitor's key-value state, so
reloading the page resumes the same countdown instead of restarting it. Only
an absent or already-passed deadline causes a new one to be written.

State machine:
    IDLE -> RUNNING -> EXPIRED     (deadline reached; one timer_expired event)
                    -> HALTED      (form submitted before the deadline)
                    -> CANCELLED   (page unload)
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum

from promopopup.core.models import EventType, ExpirationPolicy, TimerCountdown, TimerDeadline
from promopopup.core.session import PopupSession

logger = logging.getLogger(__name__)

TICK_MS = 1000


class TimerState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    EXPIRED = "expired"
    HALTED = "halted"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class Remaining:
    """Time left on the countdown, split into non-negative units."""

    days: int
    hours: int
    minutes: int
    seconds: int

    @classmethod
    def from_ms(cls, remaining_ms: int) -> "Remaining":
        total = max(0, remaining_ms) // 1000
        return cls(
            days=total // 86_400,
            hours=(total % 86_400) // 3_600,
            minutes=(total % 3_600) // 60,
            seconds=total % 60,
        )

    @property
    def total_seconds(self) -> int:
        return self.days * 86_400 + self.hours * 3_600 + self.minutes * 60 + self.seconds


class CountdownTimer:
    """Ticks once per second until the persisted deadline, then expires once."""

    def __init__(
        self,
        session: PopupSession,
        countdown: TimerCountdown,
        on_expired: Callable[[], None] | None = None,
    ):
        """
        Initialize the timer.

        Args:
            session: Page-load context (clock, cache, scheduler, view, emitter)
            countdown: Timer variant of the popup config
            on_expired: Called when the HIDE policy fires (the controller
                        hides the popup)
        """
        self._session = session
        self._countdown = countdown
        self._on_expired = on_expired
        self._handle = None
        self.state = TimerState.IDLE
        self.deadline: TimerDeadline | None = None

    def activate(self) -> Remaining:
        """
        Start ticking against the persisted deadline.

        Returns:
            Remaining time at activation
        """
        if self.state is not TimerState.IDLE:
            return self.remaining()

        session = self._session
        now = session.now()
        stored = session.load_timer_deadline()
        if stored is not None and stored.ends_at > now:
            self.deadline = stored
            logger.debug("Resuming countdown for %s (ends_at=%d)", session.shop, stored.ends_at)
        else:
            ends_at = now + self._countdown.duration.total_seconds * 1000
            self.deadline = TimerDeadline(ends_at=ends_at)
            session.save_timer_deadline(self.deadline)
            logger.debug("Started countdown for %s (ends_at=%d)", session.shop, ends_at)

        self.state = TimerState.RUNNING
        self._tick()
        return self.remaining()

    def remaining(self) -> Remaining:
        if self.deadline is None:
            return Remaining.from_ms(self._countdown.duration.total_seconds * 1000)
        return Remaining.from_ms(self.deadline.ends_at - self._session.now())

    def _tick(self) -> None:
        self._handle = None
        if self.state is not TimerState.RUNNING:
            return

        # Expiry is decided on milliseconds; Remaining floors to whole seconds
        ms_left = self.deadline.ends_at - self._session.now()
        if ms_left <= 0:
            self._expire()
            return

        remaining = Remaining.from_ms(ms_left)
        self._session.view.render_timer(
            remaining.days, remaining.hours, remaining.minutes, remaining.seconds
        )
        self._handle = self._session.scheduler.call_later(min(TICK_MS, ms_left), self._tick)

    def _expire(self) -> None:
        self.state = TimerState.EXPIRED
        session = self._session
        logger.info("Countdown expired for %s (session=%s)", session.shop, session.session_id)

        if session.emitter is not None:
            expired_at = datetime.fromtimestamp(session.now() / 1000.0, tz=timezone.utc)
            session.emitter.emit(
                EventType.TIMER_EXPIRED,
                metadata={"popupType": "timer", "expiredAt": expired_at.isoformat()},
            )

        if self._countdown.on_expiration is ExpirationPolicy.SHOW_EXPIRED:
            session.view.render_expired()
        elif self._on_expired is not None:
            self._on_expired()

    def _stop(self, state: TimerState) -> None:
        if self.state is not TimerState.RUNNING:
            return
        self.state = state
        self._session.scheduler.cancel(self._handle)
        self._handle = None

    def halt(self) -> None:
        """Stop ticking after a conversion. No expiry event follows."""
        self._stop(TimerState.HALTED)

    def cancel(self) -> None:
        """Stop ticking on page unload."""
        self._stop(TimerState.CANCELLED)
