import os
import sys
import pytest

# Ensure the backend root (containing the `dominoes` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from dominoes import create_app, db, socketio
from dominoes.services.games.state import PLAYING, GameState, Player
from dominoes.services.games.tiles import Tile


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    AI_THINK_DELAY_SEC = 0
    DEFAULT_TARGET_SCORE = 300
    DEFAULT_DIFFICULTY = 'medium'
    ROOM_TRANSPORT = 'replicated'
    ROOM_CODE_ATTEMPTS = 10
    HISTORY_LIMIT = 50
    TIMER_HEARTBEAT_SEC = 0


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import dominoes.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    try:
        test_client.disconnect(namespace='/ws')
    except Exception:
        pass


def tile(tile_id, left, right):
    return Tile(id=tile_id, left=left, right=right)


def make_state(hands, board=(), boneyard=(), scores=None, computers=(), current=0, target=300):
    """Playing state with players p1..pN holding the given hands."""
    scores = scores or [0] * len(hands)
    players = tuple(
        Player(id=f'p{i + 1}', name=f'Player {i + 1}', hand=tuple(hand), score=scores[i],
               is_computer=f'p{i + 1}' in computers)
        for i, hand in enumerate(hands)
    )
    return GameState(players=players, current_player_index=current, board=tuple(board),
                     boneyard=tuple(boneyard), status=PLAYING, target_score=target)
