"""Typed commands for every client event.

Payloads are checked here and turned into frozen dataclasses. Anything that
does not fit the contract parses to ``None`` and is dropped by the caller.
Length limits are applied later by the coordinator, which owns the settings.
"""
from dataclasses import dataclass
from typing import ClassVar, Optional

from dualmath.models import EDITABLE_PLACES, SLOT_PLACES, TEAMS
from dualmath.services.games.questions import normalize_difficulty


def _code(value) -> str:
    if isinstance(value, (str, int)) and not isinstance(value, bool):
        return str(value).strip().upper()
    return ''


def _text(value) -> Optional[str]:
    if not isinstance(value, str):
        return None
    value = value.strip()
    return value or None


def _digit(value) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    elif isinstance(value, str):
        # ASCII only: str.isdigit also accepts superscripts and other scripts
        value = value.strip()
        value = int(value) if len(value) == 1 and value in '0123456789' else None
    if isinstance(value, int) and 0 <= value <= 9:
        return value
    return None


def _positive_int(value) -> Optional[int]:
    if isinstance(value, bool):
        return None
    try:
        value = int(value)
    except (TypeError, ValueError, OverflowError):
        return None
    return value if value > 0 else None


@dataclass(frozen=True)
class CreateRoom:
    event: ClassVar[str] = 'room:create'
    room_name: Optional[str]
    player_name: Optional[str]
    avatar_data: Optional[str] = None

    @classmethod
    def from_payload(cls, data):
        room_name = _text(data.get('roomName')) or _text(data.get('name'))
        return cls(room_name, _text(data.get('playerName')), data.get('avatarData'))


@dataclass(frozen=True)
class JoinRoom:
    event: ClassVar[str] = 'room:join'
    room_code: str
    name: Optional[str]
    avatar_data: Optional[str] = None

    @classmethod
    def from_payload(cls, data):
        return cls(_code(data.get('roomCode')), _text(data.get('name')), data.get('avatarData'))


@dataclass(frozen=True)
class JoinRandom:
    event: ClassVar[str] = 'room:joinRandom'
    name: Optional[str]
    avatar_data: Optional[str] = None

    @classmethod
    def from_payload(cls, data):
        return cls(_text(data.get('name')), data.get('avatarData'))


@dataclass(frozen=True)
class SitTeam:
    event: ClassVar[str] = 'team:sit'
    room_code: str
    team: str
    slot: int

    @classmethod
    def from_payload(cls, data):
        team, slot = data.get('team'), data.get('slot')
        if not isinstance(slot, int) or isinstance(slot, bool):
            return None
        if team not in TEAMS or slot not in SLOT_PLACES:
            return None
        return cls(_code(data.get('roomCode')), team, slot)


@dataclass(frozen=True)
class SetReady:
    event: ClassVar[str] = 'player:ready'
    room_code: str
    ready: bool

    @classmethod
    def from_payload(cls, data):
        return cls(_code(data.get('roomCode')), bool(data.get('ready')))


@dataclass(frozen=True)
class UpdateSettings:
    event: ClassVar[str] = 'room:settings'
    room_code: str
    difficulty: Optional[str] = None
    round_ms: Optional[int] = None
    total_rounds: Optional[int] = None

    @classmethod
    def from_payload(cls, data):
        return cls(
            _code(data.get('roomCode')),
            normalize_difficulty(data.get('diff')),
            _positive_int(data.get('roundMs')),
            _positive_int(data.get('totalRounds')),
        )


@dataclass(frozen=True)
class StartGame:
    event: ClassVar[str] = 'game:start'
    room_code: str

    @classmethod
    def from_payload(cls, data):
        return cls(_code(data.get('roomCode')))


@dataclass(frozen=True)
class WriteDigit:
    event: ClassVar[str] = 'team:digit'
    room_code: str
    place: str
    digit: int

    @classmethod
    def from_payload(cls, data):
        place = data.get('place')
        digit = _digit(data.get('digit'))
        if place not in EDITABLE_PLACES or digit is None:
            return None
        return cls(_code(data.get('roomCode')), place, digit)


@dataclass(frozen=True)
class SubmitAnswer:
    event: ClassVar[str] = 'team:submit'
    room_code: str
    tens: int
    ones: int

    @classmethod
    def from_payload(cls, data):
        tens, ones = _digit(data.get('tens')), _digit(data.get('ones'))
        if tens is None or ones is None:
            return None
        return cls(_code(data.get('roomCode')), tens, ones)


@dataclass(frozen=True)
class SendChat:
    event: ClassVar[str] = 'chat:send'
    room_code: str
    text: str

    @classmethod
    def from_payload(cls, data):
        text = data.get('text')
        if isinstance(text, (int, float)) and not isinstance(text, bool):
            text = str(text)
        text = _text(text)
        if text is None:
            return None
        return cls(_code(data.get('roomCode')), text)


@dataclass(frozen=True)
class LeaveRoom:
    event: ClassVar[str] = 'room:leave'
    room_code: str

    @classmethod
    def from_payload(cls, data):
        return cls(_code(data.get('roomCode')))


@dataclass(frozen=True)
class Disconnect:
    event: ClassVar[str] = 'disconnect'


CLIENT_COMMANDS = {
    cls.event: cls
    for cls in (CreateRoom, JoinRoom, JoinRandom, SitTeam, SetReady, UpdateSettings,
                StartGame, WriteDigit, SubmitAnswer, SendChat, LeaveRoom)
}


def parse_command(event: str, data):
    """Build the command for ``event`` from its payload, or None if it does not fit."""
    cls = CLIENT_COMMANDS.get(event)
    if cls is None:
        return None
    if not isinstance(data, dict):
        data = {}
    return cls.from_payload(data)
