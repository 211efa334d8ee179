import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, List, Optional

from dualmath.commands import (
    CreateRoom, Disconnect, JoinRandom, JoinRoom, LeaveRoom, SendChat, SetReady,
    SitTeam, StartGame, SubmitAnswer, UpdateSettings, WriteDigit,
)
from dualmath.models import (
    EDITABLE_PLACES, TEAMS, MatchConfig, Player, Room, TeamQuestion,
    PHASE_ENDED, PHASE_LOBBY, PHASE_PLAYING, other_team,
)
from .broadcast import JoinChannel, LeaveChannel, room_update, team_stats_dict, to_room, to_sid, to_team
from .questions import make_question, normalize_difficulty
from .registry import RoomRegistry
from .scoring import compose_value, decide_winner, expected_digits, new_board, record_result, score_board

logger = logging.getLogger(__name__)


class RoomError(Exception):
    """A rejected request the sender should be told about."""


@dataclass
class GameSettings:
    target_correct: int = 10
    finalize_delay_ms: int = 150
    next_round_delay_ms: int = 800
    max_room_players: int = 4
    chat_max_chars: int = 300
    name_max_chars: int = 32
    avatar_max_chars: int = 200000
    default_difficulty: str = 'easy'
    default_round_ms: int = 12000
    default_total_rounds: int = 10

    @classmethod
    def from_config(cls, config) -> 'GameSettings':
        defaults = cls()
        return cls(
            target_correct=int(config.get('TARGET_CORRECT', defaults.target_correct)),
            finalize_delay_ms=int(config.get('FINALIZE_DELAY_MS', defaults.finalize_delay_ms)),
            next_round_delay_ms=int(config.get('NEXT_ROUND_DELAY_MS', defaults.next_round_delay_ms)),
            max_room_players=int(config.get('MAX_ROOM_PLAYERS', defaults.max_room_players)),
            chat_max_chars=int(config.get('CHAT_MAX_CHARS', defaults.chat_max_chars)),
            name_max_chars=int(config.get('NAME_MAX_CHARS', defaults.name_max_chars)),
            avatar_max_chars=int(config.get('AVATAR_MAX_CHARS', defaults.avatar_max_chars)),
            default_difficulty=normalize_difficulty(config.get('DEFAULT_DIFFICULTY')) or defaults.default_difficulty,
            default_round_ms=int(config.get('DEFAULT_ROUND_MS', defaults.default_round_ms)),
            default_total_rounds=int(config.get('DEFAULT_TOTAL_ROUNDS', defaults.default_total_rounds)),
        )


def _wall_clock_ms() -> int:
    return int(time.time() * 1000)


class MatchCoordinator:
    """Single entry point for every room mutation.

    ``handle`` applies one command and returns the effects (emits and channel
    joins/leaves) it produced. ``process`` does the same under the coordinator
    lock and hands the effects to the sink, which is how the socket handlers
    and the deferred timers both reach clients.
    """

    def __init__(self, registry: RoomRegistry, scheduler, sink: Optional[Callable] = None,
                 settings: Optional[GameSettings] = None, clock: Optional[Callable[[], int]] = None,
                 rng=None):
        self.registry = registry
        self.scheduler = scheduler
        self.settings = settings or GameSettings()
        self.clock = clock or _wall_clock_ms
        self.rng = rng
        self.lock = threading.RLock()
        self._sink = sink or (lambda effects: None)
        self._handlers = {
            CreateRoom: self._create_room,
            JoinRoom: self._join_room,
            JoinRandom: self._join_random,
            SitTeam: self._sit,
            SetReady: self._set_ready,
            UpdateSettings: self._update_settings,
            StartGame: self._start_game,
            WriteDigit: self._write_digit,
            SubmitAnswer: self._submit,
            SendChat: self._chat,
            LeaveRoom: self._leave,
            Disconnect: self._disconnect,
        }

    # ---- entry points ----

    def handle(self, sid: str, command) -> List:
        handler = self._handlers.get(type(command))
        if handler is None:
            return []
        try:
            return handler(sid, command)
        except RoomError as exc:
            logger.info(f"[room-error] sid={sid} event={command.event} message={exc}")
            return [to_sid(sid, 'room:error', {'message': str(exc)})]

    def process(self, sid: str, command) -> List:
        with self.lock:
            effects = self.handle(sid, command)
            self._sink(effects)
        return effects

    def _defer(self, room: Room, delay_ms: int, fn: Callable, *args, label: str) -> None:
        self.scheduler.schedule(room.code, delay_ms, self._run_deferred, fn, args, label=label)

    def _run_deferred(self, fn: Callable, args) -> None:
        with self.lock:
            self._sink(fn(*args))

    # ---- membership ----

    def _clip(self, value: Optional[str], default: str) -> str:
        return (value or default)[:self.settings.name_max_chars]

    def _avatar(self, value):
        if isinstance(value, str) and len(value) <= self.settings.avatar_max_chars:
            return value
        return None

    def _new_config(self) -> MatchConfig:
        return MatchConfig(
            difficulty=self.settings.default_difficulty,
            target_correct=self.settings.target_correct,
            round_ms=self.settings.default_round_ms,
            total_rounds=self.settings.default_total_rounds,
        )

    def _add_player(self, room: Room, sid: str, name: str, avatar_data) -> List:
        room.players[sid] = Player(id=sid, name=name, avatar_data=self._avatar(avatar_data))
        logger.info(f"[room-join] room={room.code} sid={sid} name={name!r} players={len(room.players)}")
        return [
            JoinChannel(sid, room.code),
            to_sid(sid, 'room:joined', {'roomCode': room.code, 'selfId': sid}),
            room_update(room),
        ]

    def _rejoined(self, room: Room, sid: str) -> List:
        return [to_sid(sid, 'room:joined', {'roomCode': room.code, 'selfId': sid}), room_update(room)]

    def _remove_player(self, room: Room, sid: str) -> List:
        room.players.pop(sid, None)
        if not room.players:
            self.scheduler.cancel_room(room.code)
            self.registry.remove(room.code)
            return []
        if room.host_id == sid:
            room.host_id = next(iter(room.players))
            logger.info(f"[host-reassign] room={room.code} host={room.host_id}")
        return [room_update(room)]

    def _leave_current(self, sid: str) -> List:
        room = self.registry.room_of(sid)
        if room is None:
            return []
        logger.info(f"[room-leave] room={room.code} sid={sid} reason=switch")
        return [LeaveChannel(sid, room.code)] + self._remove_player(room, sid)

    def _create_room(self, sid: str, cmd: CreateRoom) -> List:
        effects = self._leave_current(sid)
        code = self.registry.create(self._clip(cmd.room_name, 'Unnamed Room'), sid, self._new_config())
        room = self.registry.get(code)
        return effects + self._add_player(room, sid, self._clip(cmd.player_name, 'Host'), cmd.avatar_data)

    def _join_room(self, sid: str, cmd: JoinRoom) -> List:
        room = self.registry.get(cmd.room_code)
        if room is None:
            raise RoomError('Room not found.')
        if sid in room.players:
            return self._rejoined(room, sid)
        effects = self._leave_current(sid)
        return effects + self._add_player(room, sid, self._clip(cmd.name, 'Guest'), cmd.avatar_data)

    def _join_random(self, sid: str, cmd: JoinRandom) -> List:
        current = self.registry.room_of(sid)
        if current is not None and current.phase == PHASE_LOBBY:
            return self._rejoined(current, sid)
        effects = self._leave_current(sid)
        room = self.registry.find_joinable()
        if room is None:
            code = self.registry.create('Random Match', sid, self._new_config())
            room = self.registry.get(code)
        return effects + self._add_player(room, sid, self._clip(cmd.name, 'Guest'), cmd.avatar_data)

    def _leave(self, sid: str, cmd: LeaveRoom) -> List:
        room = self.registry.get(cmd.room_code)
        if room is None or sid not in room.players:
            return []
        logger.info(f"[room-leave] room={room.code} sid={sid}")
        return [LeaveChannel(sid, room.code)] + self._remove_player(room, sid)

    def _disconnect(self, sid: str, cmd: Disconnect) -> List:
        effects = []
        for room in self.registry:
            if sid in room.players:
                logger.info(f"[room-leave] room={room.code} sid={sid} reason=disconnect")
                effects += self._remove_player(room, sid)
        return effects

    # ---- lobby ----

    def _member(self, sid: str, room_code: str):
        room = self.registry.get(room_code)
        if room is None:
            return None, None
        return room, room.players.get(sid)

    def _sit(self, sid: str, cmd: SitTeam) -> List:
        room, me = self._member(sid, cmd.room_code)
        if me is None or room.phase == PHASE_PLAYING:
            return []
        holder = room.seat_holder(cmd.team, cmd.slot)
        if holder is not None and holder is not me:
            raise RoomError('That slot is taken.')
        me.team, me.slot, me.ready = cmd.team, cmd.slot, False
        logger.info(f"[seat] room={room.code} sid={sid} team={cmd.team} slot={cmd.slot}")
        return [room_update(room)]

    def _set_ready(self, sid: str, cmd: SetReady) -> List:
        room, me = self._member(sid, cmd.room_code)
        if me is None or room.phase == PHASE_PLAYING:
            return []
        me.ready = cmd.ready
        return [room_update(room)]

    def _update_settings(self, sid: str, cmd: UpdateSettings) -> List:
        room, me = self._member(sid, cmd.room_code)
        if me is None:
            return []
        if room.host_id != sid:
            raise RoomError('Only the host can change settings.')
        if room.phase == PHASE_PLAYING:
            return []
        if cmd.difficulty is not None:
            room.config.difficulty = cmd.difficulty
        if cmd.round_ms is not None:
            room.config.round_ms = cmd.round_ms
        if cmd.total_rounds is not None:
            room.config.total_rounds = cmd.total_rounds
        return [room_update(room)]

    def _chat(self, sid: str, cmd: SendChat) -> List:
        room, me = self._member(sid, cmd.room_code)
        if me is None:
            return []
        text = cmd.text[:self.settings.chat_max_chars]
        return [to_room(room, 'chat:new', {'from': me.name, 'text': text, 'at': self.clock()})]

    # ---- match ----

    def _start_game(self, sid: str, cmd: StartGame) -> List:
        room, me = self._member(sid, cmd.room_code)
        if me is None:
            return []
        if room.host_id != sid:
            raise RoomError('Only the host can start the match.')
        if room.phase == PHASE_PLAYING:
            return []
        if not room.all_ready():
            raise RoomError('Need 4 seated players and everyone ready.')

        self.scheduler.cancel_room(room.code)
        room.reset_match(self.clock())
        room.config.target_correct = self.settings.target_correct
        room.phase = PHASE_PLAYING
        logger.info(f"[match-start] room={room.code} diff={room.config.difficulty} target={room.config.target_correct}")
        return self.start_round(room, TEAMS)

    def start_round(self, room: Room, teams=TEAMS) -> List:
        """Deal a fresh question and board to each of ``teams``."""
        difficulty = room.config.difficulty
        for team in teams:
            q = make_question(difficulty, self.rng)
            room.team_rounds[team] += 1
            room.questions[team] = TeamQuestion(q.a, q.b, q.op, q.answer, round=room.team_rounds[team])
            room.boards[team] = new_board(q.answer, difficulty)
            logger.info(f"[round-start] room={room.code} team={team} round={room.team_rounds[team]}")
        room.round = max(room.team_rounds.values())
        room.phase = PHASE_PLAYING

        effects = [room_update(room)]
        for team in teams:
            question = room.questions[team]
            effects += to_team(room, team, 'game:roundStart', {
                'round': room.team_rounds[team],
                'question': {'a': question.a, 'b': question.b, 'op': question.op},
                'teamRounds': dict(room.team_rounds),
                'answerLength': room.boards[team].answer_length,
                'noTimer': True,
            })
        return effects

    def _live_board(self, sid: str, room_code: str):
        """Room, player, question and board for a seated player mid-round, else None."""
        room, me = self._member(sid, room_code)
        if me is None or room.phase != PHASE_PLAYING or not me.seated:
            return None
        question = room.questions.get(me.team)
        board = room.boards.get(me.team)
        if question is None or board is None or board.overall_locked:
            return None
        return room, me, question, board

    def _write_digit(self, sid: str, cmd: WriteDigit) -> List:
        live = self._live_board(sid, cmd.room_code)
        if live is None:
            return []
        room, me, question, board = live
        if cmd.place != me.place or board.locked[cmd.place]:
            return []

        board.write(cmd.place, cmd.digit, sid)
        board.clear_submission()
        if cmd.digit == expected_digits(question.answer)[cmd.place]:
            board.locked[cmd.place] = True

        if board.complete:
            return self._lock_board(room, me.team)
        return [room_update(room)]

    def _submit(self, sid: str, cmd: SubmitAnswer) -> List:
        live = self._live_board(sid, cmd.room_code)
        if live is None:
            return []
        room, me, question, board = live
        expected = expected_digits(question.answer)
        for place, digit in (('tens', cmd.tens), ('ones', cmd.ones)):
            if board.locked[place]:
                continue
            board.write(place, digit, sid)
            if digit == expected[place]:
                board.locked[place] = True

        board.submitted_value = compose_value(board.values, question.answer)
        board.submitted_by = sid
        board.submitted_at = self.clock()
        return self._lock_board(room, me.team)

    def _lock_board(self, room: Room, team: str) -> List:
        board = room.boards[team]
        board.overall_locked = True
        board.locked_at = self.clock()
        for place in EDITABLE_PLACES:
            board.locked[place] = True
        round_no = room.questions[team].round
        self._defer(room, self.settings.finalize_delay_ms, self._finalize_deferred,
                    room.code, team, round_no, label=f'finalize:{team}:{round_no}')
        return [room_update(room)]

    def _finalize_deferred(self, room_code: str, team: str, round_no: int) -> List:
        room = self.registry.get(room_code)
        if room is None:
            return []
        return self.finalize_round(room, team, round_no)

    def finalize_round(self, room: Room, team: str, round_no: Optional[int] = None) -> List:
        """Score ``team``'s locked board, then end the match or queue its next round."""
        if room.phase != PHASE_PLAYING:
            return []
        question = room.questions.get(team)
        if question is None or room.boards.get(team) is None or question.resolved:
            return []
        if round_no is not None and question.round != round_no:
            return []

        effects = self._settle(room, team)
        target = room.config.target_correct
        if room.stats[team].correct_count >= target:
            # the other team may have locked its own winning board before this
            # timer fired; score it now so lock times decide, not timer order
            rival = other_team(team)
            rival_board = room.boards.get(rival)
            rival_question = room.questions.get(rival)
            if (rival_board is not None and rival_board.overall_locked
                    and rival_question is not None and not rival_question.resolved):
                effects += self._settle(room, rival)
            return effects + self._end_match(room, decide_winner(room.stats, target))

        self._defer(room, self.settings.next_round_delay_ms, self._next_round_deferred,
                    room.code, team, question.round, label=f'next-round:{team}')
        return effects

    def _settle(self, room: Room, team: str) -> List:
        question = room.questions[team]
        board = room.boards[team]
        question.resolved = True
        built, is_correct = score_board(board, question.answer)

        now = self.clock()
        start = room.match_start_at if room.match_start_at is not None else now
        locked_at = board.locked_at if board.locked_at is not None else now
        stats = room.stats[team]
        record_result(stats, is_correct, room.config.target_correct, locked_at - start)
        room.team_scores[team] = stats.correct_count
        logger.info(
            f"[round-end] room={room.code} team={team} round={question.round} "
            f"built={built} correct={is_correct} count={stats.correct_count}"
        )
        return to_team(room, team, 'game:teamRoundEnd', {
            'team': team,
            'correct': question.answer,
            'built': built,
            'isCorrect': is_correct,
            'round': room.team_rounds[team],
            'teamStats': team_stats_dict(room),
        }) + [room_update(room)]

    def _end_match(self, room: Room, winner: str) -> List:
        room.phase = PHASE_ENDED
        self.scheduler.cancel_room(room.code)
        logger.info(f"[match-end] room={room.code} winner={winner} stats={team_stats_dict(room)}")
        results = [
            {'id': p.id, 'name': p.name, 'score': p.score, 'team': p.team, 'slot': p.slot}
            for p in room.players.values()
        ]
        return [
            room_update(room),
            to_room(room, 'game:ended', {
                'results': results,
                'teamStats': team_stats_dict(room),
                'winner': winner,
                'teamRounds': dict(room.team_rounds),
            }),
        ]

    def _next_round_deferred(self, room_code: str, team: str, finished_round: int) -> List:
        room = self.registry.get(room_code)
        if room is None or room.phase != PHASE_PLAYING:
            logger.info(f"[timer-abort] room={room_code} team={team} room gone or not playing")
            return []
        if room.team_rounds[team] != finished_round:
            return []
        return self.start_round(room, (team,))
