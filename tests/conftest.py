# ==============================================================================
# Shared Test Fixtures
# ==============================================================================
"""
Pytest fixtures shared across all test modules.

Provides:
- fakeredis-backed ValkeyCache (clean state per test)
- A virtual clock and a SchedScheduler driven by it
- An executor that runs sends inline, a recording transport and view
- A fully wired PopupSession with an EventEmitter attached
"""

import random
from concurrent.futures import Executor, Future

import fakeredis
import pytest

from promopopup.base.clock import Clock
from promopopup.base.transport import EventTransport
from promopopup.base.view import PopupView
from promopopup.core.emitter import EventEmitter
from promopopup.core.errors import EmissionFailure
from promopopup.core.models import build_event
from promopopup.core.session import PopupSession
from promopopup.infrastructure.cache import ValkeyCache
from promopopup.infrastructure.scheduler import SchedScheduler

# 2024-03-01 12:00:00 UTC
START_MS = 1_709_294_400_000
SHOP = "test-shop.myshopify.com"


# ==============================================================================
# Test Doubles
# ==============================================================================


class FakeClock(Clock):
    """Virtual clock; sleep() advances time instantly."""

    def __init__(self, start_ms: int = START_MS):
        self.now = start_ms

    def now_ms(self) -> int:
        return self.now

    def sleep(self, seconds: float) -> None:
        if seconds > 0:
            self.now += int(round(seconds * 1000))

    def advance(self, ms: int) -> None:
        self.now += ms


class ImmediateExecutor(Executor):
    """Runs submitted callables synchronously."""

    def submit(self, fn, /, *args, **kwargs):
        future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as e:
            future.set_exception(e)
        return future


class RecordingTransport(EventTransport):
    """Keeps every delivered event; can be told to fail."""

    def __init__(self):
        self.events = []
        self.fail = False
        self.closed = False

    def send(self, event):
        if self.fail:
            raise EmissionFailure("simulated timeout")
        self.events.append(event)

    def close(self):
        self.closed = True

    def types(self) -> list[str]:
        return [e.event_type for e in self.events]


class RecordingView(PopupView):
    """Records every presentation callback as (name, args)."""

    def __init__(self):
        self.calls = []

    def _record(self, name, *args):
        self.calls.append((name, args))

    def show(self, config):
        self._record("show", config)

    def hide(self):
        self._record("hide")

    def show_validation_error(self, message):
        self._record("show_validation_error", message)

    def render_timer(self, days, hours, minutes, seconds):
        self._record("render_timer", days, hours, minutes, seconds)

    def render_expired(self):
        self._record("render_expired")

    def render_prize(self, label, discount_code, rotation):
        self._record("render_prize", label, discount_code, rotation)

    def render_code(self, discount_code):
        self._record("render_code", discount_code)

    def names(self) -> list[str]:
        return [name for name, _ in self.calls]

    def last(self, name):
        return [args for n, args in self.calls if n == name][-1]


def make_event(event_type, timestamp, shop=SHOP, session_id="session_1_abc", **fields):
    """Build a typed event with test defaults."""
    return build_event(event_type, shop=shop, session_id=session_id, timestamp=timestamp, **fields)


# ==============================================================================
# Fixtures
# ==============================================================================


@pytest.fixture()
def fake_redis():
    """A clean fakeredis instance for each test.

    Uses decode_responses=True to match the real ValkeyCache behavior.
    """
    server = fakeredis.FakeServer()
    client = fakeredis.FakeRedis(server=server, decode_responses=True)
    yield client
    client.flushall()
    client.close()


@pytest.fixture()
def fake_cache(fake_redis):
    """A ValkeyCache with its internal client replaced by fakeredis.

    This avoids needing a real Valkey/Redis server for unit tests while
    exercising the full ValkeyCache API surface.
    """
    cache = ValkeyCache.__new__(ValkeyCache)
    cache._client = fake_redis
    cache._url = "redis://fake:6379"
    return cache


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def scheduler(clock):
    return SchedScheduler(clock)


@pytest.fixture()
def view():
    return RecordingView()


@pytest.fixture()
def transport():
    return RecordingTransport()


@pytest.fixture()
def session(clock, fake_cache, scheduler, view):
    """A PopupSession for visitor-1 on the test shop, seeded for repeatable spins."""
    return PopupSession(
        shop=SHOP,
        visitor_id="visitor-1",
        clock=clock,
        cache=fake_cache,
        scheduler=scheduler,
        view=view,
        rng=random.Random(7),
    )


@pytest.fixture()
def emitter(session, transport):
    """An EventEmitter attached to ``session`` that delivers inline."""
    return EventEmitter(session, transport, executor=ImmediateExecutor())
