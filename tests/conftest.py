import os
import sys
import pytest

# ──────────────────────────────────────────────────────────────────────────────
# Make sure the repo root is on sys.path so `import mirror_relay` works even
# without an editable install.
# ──────────────────────────────────────────────────────────────────────────────
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

# fmt: off
from mirror_relay.handlers.signaling_handler import SignalingRouter
from mirror_relay.services.registry import ConnectionRegistry
from mirror_relay.services.session_store import SessionStore
# fmt: on


class FakeConnection:
    """Stands in for a ConnectionHandler: records every queued message."""

    def __init__(self, connection_id):
        self.connection_id = connection_id
        self.sent = []

    def enqueue(self, message):
        self.sent.append(message)

    def types(self):
        return [m["msg_type"] for m in self.sent]

    def of_type(self, msg_type):
        return [m for m in self.sent if m["msg_type"] == msg_type]

    def clear(self):
        self.sent.clear()


class ManualClock:
    def __init__(self, now=1_000_000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def store(clock):
    return SessionStore(clock=clock)


@pytest.fixture
def registry(store):
    return ConnectionRegistry(store)


@pytest.fixture
def router(registry):
    return SignalingRouter(registry)


@pytest.fixture
def connect(registry):
    """Register fake connections by id; keeps strong references for the registry's weak map."""
    live = []

    def _connect(connection_id):
        conn = FakeConnection(connection_id)
        live.append(conn)
        registry.register(conn)
        return conn

    return _connect
