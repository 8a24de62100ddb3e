import os
import sys
import pytest

# Ensure the backend root (containing the `arcade` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from arcade import create_app, db, socketio


W1 = 'bc1qw1' + 'a' * 24
W2 = 'bc1qw2' + 'b' * 24
W3 = 'bc1qw3' + 'c' * 24


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    CORS_ORIGINS = []
    GAME_TYPES = ['snake', 'fallingFruit', 'breakBricks', 'carRacing']
    COMING_SOON_GAMES = ['breakBricks', 'carRacing']
    ORACLE_POINT_RATE = 100
    DEFAULT_PAGE_SIZE = 50
    MAX_PAGE_SIZE = 100
    LEADERBOARD_BROADCAST_LIMIT = 10
    AUTO_CREATE_PLAYERS = True


def _make_app(config_class):
    application = create_app(config_class)
    with application.app_context():
        # Ensure models are imported so tables are created
        import arcade.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def flask_app():
    yield from _make_app(TestConfig)


@pytest.fixture()
def file_app(tmp_path):
    """App backed by an on-disk SQLite file so threads get separate connections."""
    class FileConfig(TestConfig):
        SQLALCHEMY_DATABASE_URI = f"sqlite:///{tmp_path / 'ledger.db'}"

    yield from _make_app(FileConfig)


@pytest.fixture()
def settings(flask_app):
    return flask_app.extensions['ledger_settings']


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


def login(test_client, wallet_address):
    res = test_client.post('/api/auth/login', json={'wallet_address': wallet_address})
    assert res.status_code == 200, res.get_json()
    return res.get_json()['player']


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(flask_app, namespace='/ws')
    yield test_client
    try:
        test_client.disconnect(namespace='/ws')
    except Exception:
        pass
