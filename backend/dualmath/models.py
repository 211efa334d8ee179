"""In-memory game records: players, digit boards, per-team questions and rooms.

Nothing here touches the transport. Rooms are plain objects owned by the
registry and mutated only by the match coordinator.
"""
import random
from dataclasses import dataclass, field
from typing import Dict, List, Optional

TEAMS = ('A', 'B')
PLACES = ('thousands', 'hundreds', 'tens', 'ones')
# slot 0 always edits tens, slot 1 always edits ones
SLOT_PLACES = {0: 'tens', 1: 'ones'}
EDITABLE_PLACES = ('tens', 'ones')

PHASE_LOBBY = 'lobby'
PHASE_PLAYING = 'playing'
PHASE_ENDED = 'ended'

DIFFICULTIES = ('easy', 'medium', 'hard')

# 32 characters: no 0/O or 1/I
ROOM_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
ROOM_CODE_LENGTH = 5


def other_team(team: str) -> str:
    return 'B' if team == 'A' else 'A'


def digits_of(n: int, width: int = 4) -> List[int]:
    """Split a non-negative integer into ``width`` decimal digits, most significant first.

    ``digits_of(42)`` is ``[0, 0, 4, 2]``. Digits above ``width`` are discarded.
    """
    out = []
    for _ in range(width):
        n, d = divmod(n, 10)
        out.append(d)
    return out[::-1]


def digit_length(n: int) -> int:
    return len(str(abs(int(n))))


def generate_room_code(taken=(), length: int = ROOM_CODE_LENGTH) -> str:
    """Generate a room code that is not in ``taken``."""
    while True:
        code = ''.join(random.choices(ROOM_CODE_ALPHABET, k=length))
        if code not in taken:
            return code


@dataclass
class Player:
    id: str
    name: str
    avatar_data: Optional[str] = None
    team: Optional[str] = None
    slot: Optional[int] = None
    ready: bool = False
    score: int = 0

    @property
    def seated(self) -> bool:
        return self.team in TEAMS and self.slot in SLOT_PLACES

    @property
    def place(self) -> Optional[str]:
        """The one board place this player may write, if seated."""
        return SLOT_PLACES.get(self.slot) if self.seated else None

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'ready': self.ready,
            'score': self.score,
            'team': self.team,
            'slot': self.slot,
            'avatarData': self.avatar_data,
        }


@dataclass
class DigitBoard:
    answer_length: int
    values: Dict[str, Optional[int]] = field(default_factory=lambda: dict.fromkeys(PLACES))
    who: Dict[str, Optional[str]] = field(default_factory=lambda: dict.fromkeys(PLACES))
    locked: Dict[str, bool] = field(default_factory=lambda: dict.fromkeys(PLACES, False))
    overall_locked: bool = False
    locked_at: Optional[int] = None
    submitted_value: Optional[int] = None
    submitted_by: Optional[str] = None
    submitted_at: Optional[int] = None

    def prefill(self, place: str, digit: int) -> None:
        self.values[place] = digit
        self.locked[place] = True

    def write(self, place: str, digit: int, who: str) -> None:
        self.values[place] = digit
        self.who[place] = who

    def clear_submission(self) -> None:
        self.submitted_value = None
        self.submitted_by = None
        self.submitted_at = None

    @property
    def complete(self) -> bool:
        return all(self.values[p] is not None for p in EDITABLE_PLACES)

    def to_dict(self):
        out = {}
        for place in PLACES:
            cap = place.capitalize()
            out[place] = self.values[place]
            out[f'who{cap}'] = self.who[place]
            out[f'locked{cap}'] = self.locked[place]
        out.update({
            'overallLocked': self.overall_locked,
            'lockedAt': self.locked_at,
            'submittedValue': self.submitted_value,
            'submittedBy': self.submitted_by,
            'submittedAt': self.submitted_at,
            'answerLength': self.answer_length,
        })
        return out


@dataclass
class TeamQuestion:
    a: int
    b: int
    op: str
    answer: int
    round: int
    # set once the round has been scored, so a late timer cannot score it twice
    resolved: bool = False

    def public_dict(self):
        # the answer never leaves the server
        return {'a': self.a, 'b': self.b, 'op': self.op, 'round': self.round}


@dataclass
class TeamStats:
    correct_count: int = 0
    time_to_target: Optional[int] = None

    def to_dict(self):
        return {'correctCount': self.correct_count, 'timeToTarget': self.time_to_target}


@dataclass
class MatchConfig:
    difficulty: str = 'easy'
    target_correct: int = 10
    round_ms: int = 12000
    total_rounds: int = 10


@dataclass
class Room:
    code: str
    name: str
    host_id: Optional[str]
    config: MatchConfig = field(default_factory=MatchConfig)
    phase: str = PHASE_LOBBY
    mode: str = '2v2'
    round: int = 0
    match_start_at: Optional[int] = None
    # connection id -> Player, in join order
    players: Dict[str, Player] = field(default_factory=dict)
    questions: Dict[str, Optional[TeamQuestion]] = field(default_factory=lambda: dict.fromkeys(TEAMS))
    boards: Dict[str, Optional[DigitBoard]] = field(default_factory=lambda: dict.fromkeys(TEAMS))
    stats: Dict[str, TeamStats] = field(default_factory=lambda: {t: TeamStats() for t in TEAMS})
    team_rounds: Dict[str, int] = field(default_factory=lambda: dict.fromkeys(TEAMS, 0))
    team_scores: Dict[str, int] = field(default_factory=lambda: dict.fromkeys(TEAMS, 0))

    def team_members(self, team: str) -> List[Player]:
        return [p for p in self.players.values() if p.team == team]

    def seat_holder(self, team: str, slot: int) -> Optional[Player]:
        for p in self.players.values():
            if p.team == team and p.slot == slot:
                return p
        return None

    def all_ready(self) -> bool:
        """Exactly four seated players, two per team on distinct slots, all ready."""
        seated = [p for p in self.players.values() if p.seated]
        if len(seated) != 4:
            return False
        if len({(p.team, p.slot) for p in seated}) != 4:
            return False
        for team in TEAMS:
            if sum(1 for p in seated if p.team == team) != 2:
                return False
        return all(p.ready for p in seated)

    def reset_match(self, now_ms: int) -> None:
        for p in self.players.values():
            if p.seated:
                p.score = 0
                p.ready = False
        self.round = 0
        self.match_start_at = now_ms
        self.questions = dict.fromkeys(TEAMS)
        self.boards = dict.fromkeys(TEAMS)
        self.stats = {t: TeamStats() for t in TEAMS}
        self.team_rounds = dict.fromkeys(TEAMS, 0)
        self.team_scores = dict.fromkeys(TEAMS, 0)
