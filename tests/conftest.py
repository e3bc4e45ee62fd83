import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from tilecache.backends import InMemoryStorage
from tilecache.consent import ConsentState
from tilecache.keys import encode_consent_key
from tilecache.manager import StorageCacheManager
from tilecache.session import CacheSession

COURSE = 12
USER = 5


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ManualScheduler:
    """Collects deferred callbacks; run_due() fires those whose delay has passed."""

    def __init__(self):
        self.elapsed = 0.0
        self.pending = []

    def call_later(self, delay_sec, callback):
        self.pending.append((self.elapsed + delay_sec, callback))

    @property
    def delays(self):
        return [due - self.elapsed for due, _ in self.pending]

    def advance(self, seconds: float) -> int:
        self.elapsed += seconds
        due = [item for item in self.pending if item[0] <= self.elapsed]
        self.pending = [item for item in self.pending if item[0] > self.elapsed]
        for _, callback in due:
            callback()
        return len(due)


class FakePrompt:
    def __init__(self):
        self.shown = 0
        self.on_accept = None
        self.on_decline = None

    def show(self, on_accept, on_decline):
        self.shown += 1
        self.on_accept = on_accept
        self.on_decline = on_decline


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def durable():
    return InMemoryStorage(name="local")


@pytest.fixture
def ephemeral():
    return InMemoryStorage(name="session")


@pytest.fixture
def session():
    return CacheSession(
        course_id=COURSE,
        user_id=USER,
        max_sections_to_store=10,
        stale_minutes=30,
    )


@pytest.fixture
def make_manager(durable, ephemeral, clock):
    def _make(session, consent=None):
        if consent is not None:
            durable.set_item(encode_consent_key(session.user_id), consent.stored_value)
        return StorageCacheManager(session, durable, ephemeral, clock=clock)

    return _make


@pytest.fixture
def manager(make_manager, session):
    """Manager for a user who has already said yes."""
    return make_manager(session, consent=ConsentState.GIVEN)


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def prompt():
    return FakePrompt()
