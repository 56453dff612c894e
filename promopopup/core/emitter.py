# ==============================================================================
# Event Emitter
# ==============================================================================
"""
Fire-and-forget analytics emission.

emit() builds the typed event from the session (shop, session id, popup id,
clock) and hands delivery to an executor. Delivery is at-most-once: a failed,
timed-out or cancelled send is logged and dropped, never retried or queued.
Sends may complete in any order; each event carries its own timestamp.
"""

import logging
import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor, wait as wait_futures
from typing import Any

from pydantic import ValidationError

from promopopup.base.transport import EventTransport
from promopopup.core.errors import EmissionFailure
from promopopup.core.models import AnalyticsEvent, EventType, build_event
from promopopup.core.session import PopupSession

logger = logging.getLogger(__name__)


class EventEmitter:
    """Non-blocking, best-effort event sender bound to one PopupSession."""

    def __init__(
        self,
        session: PopupSession,
        transport: EventTransport,
        executor: Executor | None = None,
        max_workers: int = 4,
    ):
        """
        Initialize the emitter and attach it to the session.

        Args:
            session: Page-load context providing shop, ids and clock
            transport: Performs the (timeout-bounded) send
            executor: Runs sends off the caller's thread. If None, a private
                      ThreadPoolExecutor is created and shut down by close().
            max_workers: Worker count for the private executor
        """
        self._session = session
        self._transport = transport
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="popup-emit"
        )
        self._pending: set[Future] = set()
        self._closed = False
        self._transport_closed = False
        self._lock = threading.Lock()
        session.emitter = self

    def emit(self, event_type: EventType | str, **payload: Any) -> Future | None:
        """
        Emit one event without waiting for delivery.

        Args:
            event_type: Event type
            **payload: Variant fields (email, prize_label, discount_code, metadata)

        Returns:
            Future resolving to True when delivered, False when dropped;
            None if the emitter is closed or the event could not be built
        """
        if self._closed:
            logger.debug("Emitter closed; dropping %s", event_type)
            return None

        session = self._session
        try:
            event = build_event(
                event_type,
                shop=session.shop,
                session_id=session.session_id,
                popup_id=session.popup_id,
                timestamp=session.now(),
                **payload,
            )
        except ValidationError as e:
            logger.warning("Dropping malformed %s event: %s", event_type, e)
            return None

        future = self._executor.submit(self._deliver, event)
        self._pending.add(future)
        future.add_done_callback(self._pending.discard)
        return future

    def _deliver(self, event: AnalyticsEvent) -> bool:
        try:
            self._transport.send(event)
        except EmissionFailure as e:
            logger.debug("Analytics tracking unavailable: %s", e)
            return False
        except Exception as e:
            logger.warning("Unexpected error sending %s: %s", event.event_type, e)
            return False
        logger.debug("Tracked event %s (session=%s)", event.event_type, event.session_id)
        return True

    def close(self, wait: bool = False) -> None:
        """
        Stop emitting and cancel sends that have not started.

        The transport is closed once no send is in flight. Without wait,
        the last running send closes it when it finishes.

        Args:
            wait: Block until in-flight sends finish (they are bounded by the
                  transport timeout)
        """
        self._closed = True
        for future in list(self._pending):
            future.cancel()
        if self._owns_executor:
            self._executor.shutdown(wait=wait, cancel_futures=True)

        in_flight = list(self._pending)
        if wait and in_flight:
            wait_futures(in_flight)
            in_flight = []
        if not in_flight:
            self._close_transport()
            return
        for future in in_flight:
            future.add_done_callback(self._close_when_drained)

    def _close_when_drained(self, future: Future) -> None:
        self._pending.discard(future)
        if not self._pending:
            self._close_transport()

    def _close_transport(self) -> None:
        with self._lock:
            if self._transport_closed:
                return
            self._transport_closed = True
        self._transport.close()
