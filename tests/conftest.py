import os
import sys
import pytest

# Ensure the project root (containing the `gpu_race` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from gpu_race import create_app, socketio
from gpu_race.services.race import RoomTable, SessionCoordinator


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    CORS_ORIGIN = 'http://localhost:3000'
    PING_TIMEOUT = 60
    PING_INTERVAL = 25
    SEED_BYTES = 16
    LOG_LEVEL = 'DEBUG'


class RecordingEmitter:
    """Captures outbound messages as (conn_id, event, payload) tuples."""

    def __init__(self):
        self.sent = []

    def send(self, conn_id, event, payload=None):
        self.sent.append((conn_id, event, payload))

    def broadcast(self, members, event, payload=None):
        for conn_id in list(members):
            self.send(conn_id, event, payload)

    def broadcast_except(self, members, sender, event, payload=None):
        self.broadcast([m for m in members if m != sender], event, payload)

    def to(self, conn_id):
        return [(event, payload) for cid, event, payload in self.sent if cid == conn_id]

    def events(self, name):
        return [(cid, payload) for cid, event, payload in self.sent if event == name]

    def clear(self):
        self.sent = []


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        yield application


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_factory(flask_app):
    """Builds connected Socket.IO test clients; all are disconnected on teardown."""
    made = []

    def _make():
        test_client = socketio.test_client(flask_app, flask_test_client=flask_app.test_client())
        made.append(test_client)
        return test_client

    yield _make
    for test_client in made:
        try:
            if test_client.is_connected():
                test_client.disconnect()
        except Exception:
            pass


@pytest.fixture()
def emitter():
    return RecordingEmitter()


@pytest.fixture()
def coordinator(emitter):
    seeds = iter(f"seed-{n}" for n in range(1000))
    return SessionCoordinator(RoomTable(), emitter, seed_factory=lambda nbytes: next(seeds))
