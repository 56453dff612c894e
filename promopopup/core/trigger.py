# ==============================================================================
# Trigger Controller
# ==============================================================================
"""
Per-session popup state machine.

    IDLE -> ARMED_DELAY       -> SHOWN -> DISMISSED
         -> ARMED_EXIT_INTENT          -> CONVERTED

The controller decides whether and when the popup appears (display delay or
exit intent, frequency capping, snooze), drives the countdown and the prize
wheel, and records every visitor action through the session's emitter. The
presentation layer is reached only through the session's PopupView.
"""

import logging
from enum import Enum
from typing import Any

from promopopup.base.discounts import DiscountIssuer
from promopopup.core.countdown import CountdownTimer, TimerState
from promopopup.core.errors import DiscountUnavailable, InvalidInput
from promopopup.core.models import (
    CommunitySocial,
    DisplayRules,
    EmailCapture,
    EventType,
    Frequency,
    PopupConfig,
    TimerCountdown,
    VisitorFrequencyState,
    WheelCombo,
)
from promopopup.core.prize import spin
from promopopup.core.session import PopupSession

logger = logging.getLogger(__name__)

DAY_MS = 86_400_000
WEEK_MS = 604_800_000
SNOOZE_MS = 3_600_000

EMAIL_DISCOUNT_LABEL = "Email Discount"
TIMER_DISCOUNT_LABEL = "Timer Discount"
DEFAULT_EMAIL_CODE = "WELCOME10"
DEFAULT_TIMER_CODE = "TIMER10"

INVALID_EMAIL_MESSAGE = "Please enter a valid email address"
EXPIRED_OFFER_MESSAGE = "Sorry, this offer has expired"


class TriggerState(str, Enum):
    IDLE = "idle"
    ARMED_DELAY = "armed_delay"
    ARMED_EXIT_INTENT = "armed_exit_intent"
    SHOWN = "shown"
    DISMISSED = "dismissed"
    CONVERTED = "converted"


ARMED_STATES = (TriggerState.ARMED_DELAY, TriggerState.ARMED_EXIT_INTENT)

_FREQUENCY_WINDOWS_MS = {
    Frequency.DAILY: DAY_MS,
    Frequency.WEEKLY: WEEK_MS,
}


def should_show(rules: DisplayRules, state: VisitorFrequencyState, now: int) -> bool:
    """
    Decide whether the popup may be displayed right now.

    An active snooze always wins. Otherwise ``once`` shows until the first
    display, ``daily``/``weekly`` show when the last display is older than the
    window, and ``always`` shows unconditionally.

    Args:
        rules: Display rules of the active config
        state: Persisted frequency state for this visitor and shop
        now: Current time, epoch ms

    Returns:
        True if the popup should be shown
    """
    if state.snooze_until is not None and now < state.snooze_until:
        return False

    match rules.frequency:
        case Frequency.ONCE:
            return not state.shown_once
        case Frequency.DAILY | Frequency.WEEKLY:
            if state.last_shown_at is None:
                return True
            return now - state.last_shown_at > _FREQUENCY_WINDOWS_MS[rules.frequency]
        case _:
            return True


class TriggerController:
    """
    Drives one popup through its lifecycle for one page load.

    All methods are called from the session's scheduler thread. Signals that
    arrive in a state where they have no meaning are ignored.
    """

    def __init__(
        self,
        session: PopupSession,
        config: PopupConfig | None,
        discount_issuer: DiscountIssuer | None = None,
    ):
        """
        Initialize the controller.

        Args:
            session: Page-load context
            config: Active popup config, or None when the shop has none
            discount_issuer: Optional issuer asked for a code after a win;
                             pre-configured codes are used when it is absent
                             or unavailable
        """
        self.session = session
        self.config = config
        self.state = TriggerState.IDLE
        self.timer: CountdownTimer | None = None
        self.revealed_code: str | None = None
        self._issuer = discount_issuer
        self._pending = None
        self._started = False
        self._exit_signal_seen = False
        self._spun = False
        self._close_handled = False
        if config is not None:
            session.popup_id = config.popup_id

    # ==========================================================================
    # Arming and display
    # ==========================================================================

    def start(self) -> TriggerState:
        """Arm the popup on page load. Later calls return the current state."""
        if self._started:
            return self.state
        self._started = True

        if self.config is None or not self.config.is_active:
            logger.debug("No active popup for %s", self.session.shop)
            return self.state

        rules = self.config.display_rules
        if rules.exit_intent_enabled:
            self.state = TriggerState.ARMED_EXIT_INTENT
        else:
            self.state = TriggerState.ARMED_DELAY
            self._pending = self.session.scheduler.call_later(
                rules.display_delay_ms, self._evaluate
            )
        logger.debug("Popup %s armed (%s)", self.config.popup_id, self.state.value)
        return self.state

    def on_pointer_leave(self, client_y: float) -> None:
        """
        Exit-intent signal: the pointer left the viewport.

        Only a leave through the top edge (client_y <= 0) qualifies, and only
        the first qualifying signal counts.
        """
        if self.state is not TriggerState.ARMED_EXIT_INTENT or self._exit_signal_seen:
            return
        if client_y > 0:
            return

        self._exit_signal_seen = True
        delay_ms = self.config.display_rules.exit_intent_delay_ms
        if delay_ms == 0:
            self._evaluate()
        else:
            self._pending = self.session.scheduler.call_later(delay_ms, self._evaluate)

    def _evaluate(self) -> None:
        self._pending = None
        if self.state not in ARMED_STATES:
            return

        now = self.session.now()
        frequency_state = self.session.load_frequency_state()
        if not should_show(self.config.display_rules, frequency_state, now):
            logger.debug("Popup %s suppressed by frequency cap", self.config.popup_id)
            self.state = TriggerState.IDLE
            return
        self._show(now)

    def _show(self, now: int) -> None:
        config = self.config
        rules = config.display_rules
        self.state = TriggerState.SHOWN

        match rules.frequency:
            case Frequency.ONCE:
                self.session.update_frequency_state(shown_once=True)
            case Frequency.DAILY | Frequency.WEEKLY:
                self.session.update_frequency_state(last_shown_at=now)
            case Frequency.ALWAYS:
                pass

        self.session.view.show(config)
        self._emit(
            EventType.VIEW,
            metadata={
                "popupType": config.kind,
                "displayDelay": rules.display_delay_ms,
                "frequency": rules.frequency.value,
                "exitIntent": rules.exit_intent_enabled,
            },
        )
        logger.info("Popup %s shown (session=%s)", config.popup_id, self.session.session_id)

        if isinstance(config.variant, TimerCountdown):
            self.timer = CountdownTimer(
                self.session, config.variant, on_expired=self._on_timer_expired
            )
            self.timer.activate()

    def _on_timer_expired(self) -> None:
        if self.state is TriggerState.SHOWN:
            self.state = TriggerState.DISMISSED
            self.session.view.hide()

    # ==========================================================================
    # Visitor actions
    # ==========================================================================

    def close(self) -> None:
        """Visitor closed the popup. Only the first close is recorded."""
        if self._close_handled:
            return
        if self.state is TriggerState.SHOWN:
            self.state = TriggerState.DISMISSED
            self._stop_timer()
        elif self.state is not TriggerState.CONVERTED:
            return
        self._close_handled = True
        self._emit(EventType.CLOSE)
        self.session.view.hide()

    def ask_me_later(self) -> None:
        """
        Snooze the popup for one hour (community popups only).

        Raises:
            InvalidInput: If the popup offers no "ask me later" action
        """
        variant = self.config.variant if self.config is not None else None
        if not isinstance(variant, CommunitySocial) or not variant.ask_later_enabled:
            raise InvalidInput("Ask me later is only available on community popups")
        if self.state is not TriggerState.SHOWN:
            return

        snooze_until = self.session.now() + SNOOZE_MS
        self.session.update_frequency_state(snooze_until=snooze_until)
        self._emit(EventType.ASK_ME_LATER)
        self.state = TriggerState.DISMISSED
        self.session.view.hide()
        logger.debug("Popup %s snoozed until %d", self.config.popup_id, snooze_until)

    def submit_email(self, email: str) -> str | None:
        """
        Handle the popup's email form.

        Args:
            email: Address typed by the visitor

        Returns:
            The revealed discount code, or None (lose, or nothing to do)

        Raises:
            InvalidInput: Malformed email, expired offer, or a popup without
                          an email form
        """
        if self.state is not TriggerState.SHOWN:
            return None

        variant = self.config.variant
        if isinstance(variant, CommunitySocial):
            raise InvalidInput("Community popups do not collect email addresses")
        if self.timer is not None and self.timer.state is TimerState.EXPIRED:
            self.session.view.show_validation_error(EXPIRED_OFFER_MESSAGE)
            raise InvalidInput("Email submitted after the countdown expired", EXPIRED_OFFER_MESSAGE)

        email = (email or "").strip()
        if not email or "@" not in email:
            self.session.view.show_validation_error(INVALID_EMAIL_MESSAGE)
            raise InvalidInput("Rejected malformed email address", INVALID_EMAIL_MESSAGE)

        match variant:
            case WheelCombo():
                return self._spin(variant, email)
            case TimerCountdown():
                time_remaining = self.timer.deadline.ends_at - self.session.now()
                self._stop_timer(halt=True)
                fallback = self.config.discount_code or DEFAULT_TIMER_CODE
                return self._convert(
                    email,
                    TIMER_DISCOUNT_LABEL,
                    fallback,
                    {"popupType": "timer", "timeRemaining": time_remaining},
                )
            case EmailCapture():
                fallback = self.config.discount_code or DEFAULT_EMAIL_CODE
                return self._convert(email, EMAIL_DISCOUNT_LABEL, fallback, {"popupType": "email"})
        return None

    def _spin(self, wheel: WheelCombo, email: str) -> str | None:
        if self._spun:
            return None
        self._spun = True

        self._emit(EventType.EMAIL_ENTERED, email=email)
        outcome = spin(wheel.segments, self.session.rng)
        label = outcome.segment.label
        self._emit(
            EventType.SPIN,
            email=email,
            prize_label=label,
            metadata={"prizeIndex": outcome.index, "totalSegments": len(wheel.segments)},
        )

        code = None
        if outcome.is_win:
            code, preconfigured = self._issue(label, email, outcome.segment.prize_code)
            self._emit(
                EventType.WIN,
                email=email,
                prize_label=label,
                discount_code=code,
                metadata={"preconfigured": preconfigured, "segmentIndex": outcome.index},
            )
            self.revealed_code = code
            self.state = TriggerState.CONVERTED
        else:
            self._emit(EventType.LOSE, email=email, prize_label=label)

        self.session.view.render_prize(label, code, outcome.rotation)
        return code

    def _convert(
        self, email: str, prize_label: str, fallback_code: str, metadata: dict[str, Any]
    ) -> str:
        self._emit(EventType.EMAIL_ENTERED, email=email)
        code, preconfigured = self._issue(prize_label, email, fallback_code)
        self._emit(
            EventType.WIN,
            email=email,
            prize_label=prize_label,
            discount_code=code,
            metadata={**metadata, "preconfigured": preconfigured},
        )
        self.revealed_code = code
        self.state = TriggerState.CONVERTED
        self.session.view.render_code(code)
        return code

    def _issue(self, prize_label: str, email: str, fallback_code: str) -> tuple[str, bool]:
        """Returns (code, preconfigured); preconfigured is True for the fallback code."""
        if self._issuer is None:
            return fallback_code, True
        try:
            return self._issuer.issue(prize_label, email), False
        except DiscountUnavailable as e:
            logger.warning("Discount issuance failed (%s); using %s", e, fallback_code)
            return fallback_code, True

    def copy_code(self) -> None:
        """Visitor copied the revealed discount code."""
        if self.revealed_code is None:
            return
        self._emit(EventType.COPY_CODE, discount_code=self.revealed_code)

    # ==========================================================================
    # Teardown
    # ==========================================================================

    def unload(self) -> None:
        """Page unload: clear every pending callback and in-flight send."""
        self.session.scheduler.cancel(self._pending)
        self._pending = None
        self._stop_timer()
        self.session.scheduler.cancel_all()
        if self.session.emitter is not None:
            self.session.emitter.close()

    def _stop_timer(self, halt: bool = False) -> None:
        if self.timer is None:
            return
        if halt:
            self.timer.halt()
        else:
            self.timer.cancel()

    def _emit(self, event_type: EventType, **payload: Any) -> None:
        if self.session.emitter is not None:
            self.session.emitter.emit(event_type, **payload)
