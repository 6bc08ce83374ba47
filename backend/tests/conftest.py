import os
import sys
import pytest

# Ensure the backend root (containing the `wordchain` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from wordchain import create_app, db, socketio


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    CORS_ORIGINS = '*'
    LOG_LEVEL = 'DEBUG'
    MIN_PLAYERS = 2
    ROOM_CODE_LENGTH = 6
    WORD_LIST_PATH = None
    DISCONNECT_GRACE_SEC = 0
    REASSIGN_HOST_ON_LEAVE = True
    HOST_ONLY_START = True
    TURN_DURATION_SEC = 0
    READY_SET_URL = ''


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import wordchain.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_factory(flask_app):
    created = []

    def make():
        test_client = socketio.test_client(
            flask_app,
            flask_test_client=flask_app.test_client(),
            namespace='/ws'
        )
        created.append(test_client)
        return test_client

    yield make
    for test_client in created:
        try:
            if test_client.is_connected('/ws'):
                test_client.disconnect(namespace='/ws')
        except Exception:
            pass


@pytest.fixture()
def fixed_letter(monkeypatch):
    """Make every new round start on a known letter."""
    from wordchain.services.game import turns

    def apply(letter='C'):
        monkeypatch.setattr(turns, 'pick_start_letter', lambda rng=None: letter)
        return letter

    return apply


@pytest.fixture()
def broadcasts(monkeypatch):
    """Record room broadcasts issued by the coordinator."""
    from wordchain.services.game import coordinator

    events = []
    original = coordinator._broadcast

    def record(code, event, payload):
        events.append((event, dict(payload)))
        original(code, event, payload)

    monkeypatch.setattr(coordinator, '_broadcast', record)
    return events
