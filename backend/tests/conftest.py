import os
import random
import sys
import pytest

# Ensure the backend root (containing the `dualmath` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from dualmath import create_app, socketio
from dualmath.commands import CreateRoom, JoinRoom, SetReady, SitTeam, StartGame
from dualmath.models import TeamQuestion
from dualmath.services.games.broadcast import Emit
from dualmath.services.games.coordinator import GameSettings, MatchCoordinator
from dualmath.services.games.registry import RoomRegistry
from dualmath.services.games.scheduler import ManualScheduler
from dualmath.services.games.scoring import new_board

NAMESPACE = '/ws'


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    ALLOWED_ORIGINS = ['http://localhost:5173']
    SOCKETIO_NAMESPACE = NAMESPACE
    TARGET_CORRECT = 10
    FINALIZE_DELAY_MS = 150
    NEXT_ROUND_DELAY_MS = 800
    ENABLE_SCHEDULER_IN_TESTS = False


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
    clients = []

    def _make():
        c = socketio.test_client(flask_app, namespace=NAMESPACE)
        c.get_received(NAMESPACE)  # flush 'connected'
        clients.append(c)
        return c

    yield _make
    for c in clients:
        try:
            c.disconnect(namespace=NAMESPACE)
        except Exception:
            pass


@pytest.fixture()
def sio_client(sio_factory):
    return sio_factory()


class Recorder:
    """Sink that keeps every effect the coordinator dispatches from timers."""

    def __init__(self):
        self.effects = []

    def __call__(self, effects):
        self.effects.extend(effects)

    def emits(self, event, to=None):
        return [e for e in self.effects
                if isinstance(e, Emit) and e.event == event and (to is None or e.to == to)]

    def clear(self):
        self.effects.clear()


@pytest.fixture()
def scheduler():
    return ManualScheduler()


@pytest.fixture()
def recorder():
    return Recorder()


@pytest.fixture()
def coordinator(scheduler, recorder):
    # the clock follows the manual scheduler so elapsed times are exact
    return MatchCoordinator(
        RoomRegistry(),
        scheduler,
        sink=recorder,
        settings=GameSettings(target_correct=10),
        clock=lambda: scheduler.now,
        rng=random.Random(1234),
    )


@pytest.fixture()
def ready_room(coordinator):
    """A lobby room with host on A0, 'a1' on A1, 'b0' on B0, 'b1' on B1, all ready."""
    coordinator.handle('host', CreateRoom('Arena', 'Hana'))
    code = coordinator.registry.room_of('host').code
    seats = {'host': ('A', 0), 'a1': ('A', 1), 'b0': ('B', 0), 'b1': ('B', 1)}
    for sid, (team, slot) in seats.items():
        if sid != 'host':
            coordinator.handle(sid, JoinRoom(code, sid.upper()))
        coordinator.handle(sid, SitTeam(code, team, slot))
        coordinator.handle(sid, SetReady(code, True))
    return coordinator.registry.get(code)


@pytest.fixture()
def playing_room(coordinator, ready_room):
    coordinator.handle('host', StartGame(ready_room.code))
    return ready_room


def set_question(room, team, answer, a=0, b=0, op='+'):
    """Replace a team's current question with one whose answer is known."""
    round_no = room.team_rounds[team]
    room.questions[team] = TeamQuestion(a, b, op, answer, round=round_no)
    room.boards[team] = new_board(answer, room.config.difficulty)
