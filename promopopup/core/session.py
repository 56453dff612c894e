# ==============================================================================
# Popup Session
# ==============================================================================
"""
Per-page-load context shared by every popup component.

One PopupSession is built per page load and handed to the trigger
controller, the countdown timer and the event emitter. It owns the session
id, the visitor's storage keys and the shared collaborators; nothing about a
visitor's session lives in module globals.
"""

import logging
import random
import string

from promopopup.base.cache import Cache
from promopopup.base.clock import Clock
from promopopup.base.scheduler import Scheduler
from promopopup.base.view import PopupView
from promopopup.core.models import TimerDeadline, VisitorFrequencyState

logger = logging.getLogger(__name__)

_BASE36 = string.digits + string.ascii_lowercase

# Key prefix for visitor-scoped state
VISITOR_KEY_PREFIX = "popup:visitor:"


def generate_session_id(now_ms: int, rng: random.Random | None = None) -> str:
    """Opaque id of the form session_<epoch ms>_<9 base36 chars>."""
    rng = rng or random.Random()
    suffix = "".join(rng.choice(_BASE36) for _ in range(9))
    return f"session_{now_ms}_{suffix}"


class PopupSession:
    """
    Everything one popup lifecycle needs, constructed once per page load.

    Attributes:
        shop: Shop domain
        visitor_id: Stable id of the browser/visitor owning the stored state
        session_id: Correlates all events from this popup lifecycle
        popup_id: Set by the trigger controller once config is known
        clock, cache, scheduler, view: Injected collaborators
    """

    def __init__(
        self,
        shop: str,
        visitor_id: str,
        clock: Clock,
        cache: Cache,
        scheduler: Scheduler,
        view: PopupView,
        state_ttl_seconds: int | None = None,
        rng: random.Random | None = None,
    ):
        self.shop = shop
        self.visitor_id = visitor_id
        self.clock = clock
        self.cache = cache
        self.scheduler = scheduler
        self.view = view
        self.state_ttl_seconds = state_ttl_seconds
        self.rng = rng or random.Random()
        self.session_id = generate_session_id(clock.now_ms(), self.rng)
        self.popup_id: str | None = None
        # Attached by EventEmitter.__init__
        self.emitter = None

    def now(self) -> int:
        return self.clock.now_ms()

    # ==========================================================================
    # Visitor State
    # ==========================================================================

    @property
    def frequency_key(self) -> str:
        return f"{VISITOR_KEY_PREFIX}{self.visitor_id}:{self.shop}:frequency"

    @property
    def timer_key(self) -> str:
        return f"{VISITOR_KEY_PREFIX}{self.visitor_id}:{self.shop}:timer"

    def load_frequency_state(self) -> VisitorFrequencyState:
        data = self.cache.get(self.frequency_key)
        return VisitorFrequencyState.model_validate(data) if data else VisitorFrequencyState()

    def update_frequency_state(self, **changes) -> VisitorFrequencyState:
        """
        Read-modify-write the frequency state.

        Other tabs may write between the read and the write; the last writer
        wins, which frequency capping tolerates.
        """
        state = self.load_frequency_state().model_copy(update=changes)
        self.cache.set(self.frequency_key, state.model_dump(), self.state_ttl_seconds)
        return state

    def load_timer_deadline(self) -> TimerDeadline | None:
        data = self.cache.get(self.timer_key)
        return TimerDeadline.model_validate(data) if data else None

    def save_timer_deadline(self, deadline: TimerDeadline) -> None:
        self.cache.set(self.timer_key, deadline.model_dump(), self.state_ttl_seconds)
