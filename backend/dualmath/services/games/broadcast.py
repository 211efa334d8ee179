import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List

from dualmath.models import Room, TEAMS

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Emit:
    event: str
    payload: Any
    # a room code or a connection id (every connection is its own Socket.IO room)
    to: str


@dataclass(frozen=True)
class JoinChannel:
    sid: str
    room: str


@dataclass(frozen=True)
class LeaveChannel:
    sid: str
    room: str


def team_stats_dict(room: Room) -> Dict[str, Dict[str, Any]]:
    return {t: room.stats[t].to_dict() for t in TEAMS}


def public_view(room: Room) -> Dict[str, Any]:
    """Redacted projection of a room, safe to send to every client in it.

    Questions go out as operands, operator and round only. Boards go out as
    stored; they only reveal what the per-place locks already give away.
    """
    players = [p.to_dict() for p in room.players.values()]
    teams = {}
    for team in TEAMS:
        members = [p for p in players if p['team'] == team]
        teams[team] = {'members': members, 'score': room.team_scores.get(team, 0)}

    questions = {t: q.public_dict() for t, q in room.questions.items() if q is not None}
    boards = {t: b.to_dict() for t, b in room.boards.items() if b is not None}

    return {
        'roomCode': room.code,
        'name': room.name,
        'hostId': room.host_id,
        'state': {
            'mode': room.mode,
            'phase': room.phase,
            'diff': room.config.difficulty,
            'roundMs': room.config.round_ms,
            'totalRounds': room.config.total_rounds,
            'targetCorrect': room.config.target_correct,
            'round': room.round,
            'matchStartAt': room.match_start_at,
            'teamStats': team_stats_dict(room),
            'teamScores': dict(room.team_scores),
            'teamQuestions': questions,
            'teamDigits': boards,
            'teamRounds': dict(room.team_rounds),
        },
        'players': players,
        'teams': teams,
    }


def room_update(room: Room) -> Emit:
    return Emit('room:update', public_view(room), room.code)


def to_team(room: Room, team: str, event: str, payload) -> List[Emit]:
    return [Emit(event, payload, p.id) for p in room.team_members(team)]


def to_room(room: Room, event: str, payload) -> Emit:
    return Emit(event, payload, room.code)


def to_sid(sid: str, event: str, payload) -> Emit:
    return Emit(event, payload, sid)


class BroadcastGateway:
    """Performs the effects returned by the coordinator over Socket.IO."""

    def __init__(self, socketio, namespace: str = '/ws'):
        self.socketio = socketio
        self.namespace = namespace

    def dispatch(self, effects: Iterable) -> None:
        for effect in effects:
            if isinstance(effect, Emit):
                self.socketio.emit(effect.event, effect.payload, to=effect.to, namespace=self.namespace)
            elif isinstance(effect, JoinChannel):
                self.socketio.server.enter_room(effect.sid, effect.room, namespace=self.namespace)
            elif isinstance(effect, LeaveChannel):
                self.socketio.server.leave_room(effect.sid, effect.room, namespace=self.namespace)
            else:
                logger.warning(f"[dispatch-skip] unknown effect {effect!r}")
