import os
import sys
import pytest

# Ensure the backend root (containing the `imposter` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from config import Config
from imposter import create_app, db, socketio
from imposter.models import Lobby, Player, Round, RoundStatus
from imposter.services.game.words import WordSupplier


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    BETTING_DURATION_SEC = 0
    ENABLE_SCHEDULER_IN_TESTS = False


class RecordingBroadcaster:
    """Collects published events instead of emitting them."""

    def __init__(self):
        self.published = []

    def publish(self, topic, event):
        self.published.append((topic, event))

    def types(self, topic=None):
        return [e['type'] for t, e in self.published if topic is None or t == topic]

    def of_type(self, event_type):
        return [e for _, e in self.published if e['type'] == event_type]

    def clear(self):
        self.published = []


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import imposter.models  # noqa: F401
        db.create_all()
        application.extensions['imposter.words'] = WordSupplier({'Animals': ['Elephant']})
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def broadcaster(flask_app):
    recorder = RecordingBroadcaster()
    flask_app.extensions['imposter.broadcaster'] = recorder
    return recorder


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    if test_client.is_connected('/ws'):
        test_client.disconnect(namespace='/ws')


@pytest.fixture()
def make_lobby(flask_app):
    """Build a lobby with named players; the first player hosts."""
    def _make(names=('Alice', 'Bob', 'Charlie', 'Dave'), scores=None, betting=False, emergency=False, target_score=7):
        lobby = Lobby(target_score=target_score, betting_enabled=betting, emergency_votes_enabled=emergency)
        db.session.add(lobby)
        db.session.flush()
        players = []
        for name in names:
            player = Player(name=name, lobby_id=lobby.id, score=(scores or {}).get(name, 0))
            db.session.add(player)
            db.session.flush()
            players.append(player)
        lobby.owner_id = players[0].id
        db.session.commit()
        return lobby, {p.name: p for p in players}
    return _make


@pytest.fixture()
def make_round(flask_app):
    """Insert a round in a given phase with a known imposter."""
    def _make(lobby, imposter, status=RoundStatus.IN_PROGRESS, turn_order=None, current_turn=0, word='Elephant'):
        last = Round.query.filter_by(lobby_id=lobby.id).count()
        round_obj = Round(
            lobby_id=lobby.id,
            round_number=last + 1,
            word=word,
            category='Animals',
            imposter_id=imposter.id,
            current_turn=current_turn,
            status=status,
        )
        round_obj.turn_order = turn_order if turn_order is not None else [p.id for p in lobby.online_players]
        db.session.add(round_obj)
        db.session.commit()
        return round_obj
    return _make


def score_of(player):
    return db.session.query(Player.score).filter_by(id=player.id).scalar()
