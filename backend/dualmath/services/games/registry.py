import logging
from typing import Dict, Iterator, List, Optional

from dualmath.models import MatchConfig, Room, PHASE_LOBBY, generate_room_code

logger = logging.getLogger(__name__)


class RoomRegistry:
    """Process-wide map of room code -> Room.

    One instance is built by the app factory and handed to the coordinator;
    tests build their own.
    """

    def __init__(self, max_players: int = 4):
        self.max_players = max_players
        self._rooms: Dict[str, Room] = {}

    def create(self, name: str, host_id: Optional[str], config: Optional[MatchConfig] = None) -> str:
        code = generate_room_code(self._rooms)
        self._rooms[code] = Room(code=code, name=name, host_id=host_id, config=config or MatchConfig())
        logger.info(f"[room-create] room={code} name={name!r} host={host_id}")
        return code

    def get(self, code) -> Optional[Room]:
        if not code:
            return None
        return self._rooms.get(code)

    def remove(self, code: str) -> Optional[Room]:
        room = self._rooms.pop(code, None)
        if room is not None:
            logger.info(f"[room-destroy] room={code}")
        return room

    def find_joinable(self) -> Optional[Room]:
        """First room still in the lobby with a free seat, in creation order."""
        for room in self._rooms.values():
            if room.phase == PHASE_LOBBY and len(room.players) < self.max_players:
                return room
        return None

    def joinable(self) -> List[Room]:
        return [r for r in self._rooms.values()
                if r.phase == PHASE_LOBBY and len(r.players) < self.max_players]

    def room_of(self, sid: str) -> Optional[Room]:
        for room in self._rooms.values():
            if sid in room.players:
                return room
        return None

    def __contains__(self, code) -> bool:
        return code in self._rooms

    def __iter__(self) -> Iterator[Room]:
        return iter(list(self._rooms.values()))

    def __len__(self) -> int:
        return len(self._rooms)
