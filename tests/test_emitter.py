# ==============================================================================
# Tests for the Event Emitter
# ==============================================================================
"""
Unit tests for fire-and-forget event emission.

Tests cover:
- Events carry the session id, popup id and clock timestamp
- Transport failures are swallowed, never retried
- Malformed events are dropped before sending
- close() stops emission and cancels queued sends
"""

import threading
from concurrent.futures import ThreadPoolExecutor

from conftest import SHOP, START_MS, RecordingTransport

from promopopup.core.emitter import EventEmitter
from promopopup.core.models import CopyCodeEvent, EventType, ViewEvent


class BlockingTransport(RecordingTransport):
    """Holds every send until released."""

    def __init__(self):
        super().__init__()
        self.entered = threading.Event()
        self.release = threading.Event()

    def send(self, event):
        self.entered.set()
        self.release.wait(timeout=5)
        super().send(event)


class TestEmit:
    def test_event_fields(self, session, emitter, transport, clock):
        session.popup_id = "popup-9"
        clock.advance(250)
        future = emitter.emit(EventType.VIEW, metadata={"popupType": "wheel"})

        assert future.result() is True
        (event,) = transport.events
        assert isinstance(event, ViewEvent)
        assert event.shop == SHOP
        assert event.session_id == session.session_id
        assert event.popup_id == "popup-9"
        assert event.timestamp == START_MS + 250

    def test_session_id_format(self, session):
        prefix, ms, suffix = session.session_id.split("_")
        assert prefix == "session"
        assert ms == str(START_MS)
        assert len(suffix) == 9
        assert suffix.isalnum() and suffix.lower() == suffix

    def test_accepts_string_type(self, emitter, transport):
        emitter.emit("copy_code", discount_code="SAVE10")
        assert isinstance(transport.events[0], CopyCodeEvent)

    def test_transport_failure_swallowed(self, emitter, transport):
        transport.fail = True
        future = emitter.emit(EventType.CLOSE)
        assert future.result() is False
        assert transport.events == []

        # Nothing was queued for later
        transport.fail = False
        emitter.emit(EventType.CLOSE)
        assert transport.types() == ["close"]

    def test_unexpected_error_swallowed(self, emitter, transport):
        transport.send = lambda event: 1 / 0
        assert emitter.emit(EventType.VIEW).result() is False

    def test_malformed_event_dropped(self, emitter, transport):
        """email_entered without an email never reaches the transport."""
        assert emitter.emit(EventType.EMAIL_ENTERED) is None
        assert transport.events == []

    def test_attaches_to_session(self, session, emitter):
        assert session.emitter is emitter


class TestClose:
    def test_emit_after_close_is_dropped(self, emitter, transport):
        emitter.close()
        assert emitter.emit(EventType.VIEW) is None
        assert transport.events == []
        assert transport.closed

    def test_close_cancels_queued_sends(self, session):
        transport = BlockingTransport()
        executor = ThreadPoolExecutor(max_workers=1)
        emitter = EventEmitter(session, transport, executor=executor)

        in_flight = emitter.emit(EventType.VIEW)
        assert transport.entered.wait(timeout=5)
        queued = emitter.emit(EventType.CLOSE)
        emitter.close()
        transport.release.set()
        executor.shutdown(wait=True)

        assert queued.cancelled()
        assert in_flight.result() is True
        assert transport.types() == ["view"]

    def test_transport_stays_open_until_in_flight_send_finishes(self, session):
        transport = BlockingTransport()
        executor = ThreadPoolExecutor(max_workers=1)
        emitter = EventEmitter(session, transport, executor=executor)

        in_flight = emitter.emit(EventType.VIEW)
        assert transport.entered.wait(timeout=5)
        emitter.close()
        assert not transport.closed

        transport.release.set()
        executor.shutdown(wait=True)
        assert in_flight.result() is True
        assert transport.types() == ["view"]
        assert transport.closed

    def test_close_with_wait_drains_shared_executor(self, session):
        transport = BlockingTransport()
        executor = ThreadPoolExecutor(max_workers=1)
        emitter = EventEmitter(session, transport, executor=executor)

        emitter.emit(EventType.VIEW)
        assert transport.entered.wait(timeout=5)
        threading.Timer(0.05, transport.release.set).start()
        emitter.close(wait=True)

        assert transport.types() == ["view"]
        assert transport.closed
        executor.shutdown(wait=True)

    def test_owned_executor_shut_down(self, session, transport):
        emitter = EventEmitter(session, transport, max_workers=1)
        emitter.emit(EventType.VIEW).result(timeout=5)
        emitter.close(wait=True)
        assert transport.types() == ["view"]
