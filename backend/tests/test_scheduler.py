import time

import pytest

from conftest import NAMESPACE, TestConfig, set_question
from dualmath import create_app, socketio
from dualmath.services.games.scheduler import TimerScheduler


class LiveTimerConfig(TestConfig):
    ENABLE_SCHEDULER_IN_TESTS = True
    FINALIZE_DELAY_MS = 50
    NEXT_ROUND_DELAY_MS = 20


@pytest.fixture()
def live_app():
    application = create_app(LiveTimerConfig)
    with application.app_context():
        yield application


@pytest.fixture()
def live_match(live_app):
    """Four seated, ready clients with the match started; yields (clients, room)."""
    coordinator = live_app.extensions['dualmath']
    clients = []
    for _ in range(4):
        c = socketio.test_client(live_app, namespace=NAMESPACE)
        c.get_received(NAMESPACE)
        clients.append(c)

    host = clients[0]
    host.emit('room:create', {'name': 'Live', 'playerName': 'Ann'}, namespace=NAMESPACE)
    joined = [p['args'][0] for p in host.get_received(NAMESPACE) if p['name'] == 'room:joined']
    code = joined[0]['roomCode']
    for client in clients[1:]:
        client.emit('room:join', {'roomCode': code, 'name': 'Guest'}, namespace=NAMESPACE)
    for client, (team, slot) in zip(clients, (('A', 0), ('A', 1), ('B', 0), ('B', 1))):
        client.emit('team:sit', {'roomCode': code, 'team': team, 'slot': slot}, namespace=NAMESPACE)
        client.emit('player:ready', {'roomCode': code, 'ready': True}, namespace=NAMESPACE)
    host.emit('game:start', {'roomCode': code}, namespace=NAMESPACE)

    room = coordinator.registry.get(code)
    assert room.phase == 'playing'
    with coordinator.lock:
        set_question(room, 'A', 42)
    yield clients, room
    for client in clients:
        if client.is_connected(NAMESPACE):
            client.disconnect(namespace=NAMESPACE)


def _wait_for(predicate, timeout=3.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        socketio.sleep(0.01)
    return predicate()


def _lock_team_a(clients, room, tens=4, ones=2):
    clients[0].emit('team:digit', {'roomCode': room.code, 'place': 'tens', 'digit': tens}, namespace=NAMESPACE)
    clients[1].emit('team:digit', {'roomCode': room.code, 'place': 'ones', 'digit': ones}, namespace=NAMESPACE)


def test_live_app_uses_timer_scheduler(live_app):
    assert isinstance(live_app.extensions['dualmath'].scheduler, TimerScheduler)


def test_live_timers_score_then_deal_next_round(live_app, live_match):
    clients, room = live_match
    scheduler = live_app.extensions['dualmath'].scheduler

    _lock_team_a(clients, room)
    assert room.boards['A'].overall_locked

    assert _wait_for(lambda: room.team_rounds['A'] == 2)
    assert room.stats['A'].correct_count == 1
    assert room.team_rounds['B'] == 1
    assert not room.boards['A'].overall_locked
    # both timers claimed their tokens before running
    assert scheduler.pending(room.code) == 0


def test_cancelled_room_timers_do_nothing(live_app, live_match):
    clients, room = live_match
    scheduler = live_app.extensions['dualmath'].scheduler

    _lock_team_a(clients, room)
    assert scheduler.pending(room.code) == 1
    scheduler.cancel_room(room.code)
    assert scheduler.pending(room.code) == 0

    socketio.sleep(0.3)
    assert room.team_rounds == {'A': 1, 'B': 1}
    assert room.questions['A'].resolved is False
    assert room.stats['A'].correct_count == 0


def test_room_destroyed_before_timer_fires(live_app, live_match):
    clients, room = live_match
    coordinator = live_app.extensions['dualmath']

    _lock_team_a(clients, room)
    for client in clients:
        client.emit('room:leave', {'roomCode': room.code}, namespace=NAMESPACE)
    assert coordinator.registry.get(room.code) is None
    assert coordinator.scheduler.pending(room.code) == 0

    socketio.sleep(0.3)
    assert room.team_rounds['A'] == 1
    assert room.questions['A'].resolved is False
