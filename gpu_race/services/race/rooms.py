"""In-memory room table.

Holds every live room keyed by its caller-chosen id, each room's race state,
and a reverse index from connection id to room id so disconnect cleanup never
has to scan the table.

Locking:
- every Room carries its own lock; all read-modify-write sequences on a
  room's members or race state happen while holding it
- the table lock only guards the two dictionaries and is never held while
  waiting for a room lock (order is always room lock, then table lock)
- a room deleted while another event waited for its lock is marked closed;
  ``locked`` notices this and retries against the table
"""
import logging
import threading
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional

from .exceptions import RoomFull

logger = logging.getLogger(__name__)

MAX_PARTICIPANTS = 2


class RaceState:
    """Results and restart votes for the race currently running in a room."""

    def __init__(self):
        # conn id -> {'fps': float, 'raceTime': float}, insertion ordered
        self.results: Dict[str, dict] = {}
        self.ready: List[str] = []
        self.results_sent = False

    def record_result(self, conn_id: str, fps: float, race_time: float) -> None:
        self.results[conn_id] = {'fps': fps, 'raceTime': race_time}

    def add_ready(self, conn_id: str) -> None:
        if conn_id not in self.ready:
            self.ready.append(conn_id)

    def reset(self) -> None:
        # Replace both containers in one step so nothing observes a half-cleared state
        self.results, self.ready, self.results_sent = {}, [], False

    def results_payload(self) -> List[dict]:
        return [
            {'id': conn_id, 'fps': data['fps'], 'raceTime': data['raceTime']}
            for conn_id, data in self.results.items()
        ]


class Room:
    def __init__(self, room_id: str):
        self.room_id = room_id
        self.members: List[str] = []
        self.race = RaceState()
        self.lock = threading.Lock()
        self.closed = False

    def is_full(self) -> bool:
        return len(self.members) >= MAX_PARTICIPANTS

    def others(self, conn_id: str) -> List[str]:
        return [m for m in self.members if m != conn_id]

    def __repr__(self):
        return f"<Room {self.room_id!r} members={self.members}>"


class RoomTable:
    def __init__(self):
        self._rooms: Dict[str, Room] = {}
        self._room_by_conn: Dict[str, str] = {}
        self._lock = threading.Lock()

    def __len__(self):
        with self._lock:
            return len(self._rooms)

    def __contains__(self, room_id):
        with self._lock:
            return room_id in self._rooms

    def get(self, room_id: str) -> Optional[Room]:
        with self._lock:
            return self._rooms.get(room_id)

    def ensure(self, room_id: str) -> Room:
        """Return the room for ``room_id``, creating it (and its race state) if unseen."""
        with self._lock:
            room = self._rooms.get(room_id)
            if room is None:
                room = Room(room_id)
                self._rooms[room_id] = room
                logger.debug(f"[room-create] room={room_id}")
            return room

    def room_of(self, conn_id: str) -> Optional[str]:
        with self._lock:
            return self._room_by_conn.get(conn_id)

    @contextmanager
    def locked(self, room_id: str, create: bool = False) -> Iterator[Optional[Room]]:
        """Yield the room with its lock held, or None if absent and not creating.

        A room left without members when the block exits (for instance one
        created for a join that then failed) is dropped from the table.
        """
        while True:
            room = self.ensure(room_id) if create else self.get(room_id)
            if room is None:
                yield None
                return
            with room.lock:
                if room.closed:
                    continue
                try:
                    yield room
                finally:
                    if not room.members and not room.closed:
                        self._discard(room)
                return

    def join(self, room: Room, conn_id: str) -> None:
        """Add ``conn_id`` to ``room``; the caller holds the room lock."""
        if room.is_full():
            raise RoomFull(room.room_id)
        room.members.append(conn_id)
        with self._lock:
            self._room_by_conn[conn_id] = room.room_id

    def leave(self, room: Room, conn_id: str) -> List[str]:
        """Remove ``conn_id`` from ``room`` and return the remaining members.

        The room and its race state are deleted once the last member leaves.
        The caller holds the room lock.
        """
        if conn_id in room.members:
            room.members.remove(conn_id)
        with self._lock:
            if self._room_by_conn.get(conn_id) == room.room_id:
                del self._room_by_conn[conn_id]
        if not room.members:
            self._discard(room)
        return list(room.members)

    def snapshot(self) -> Dict[str, List[str]]:
        """Copy of the current membership, room id -> ordered members."""
        with self._lock:
            rooms = list(self._rooms.values())
        return {room.room_id: list(room.members) for room in rooms}

    def _discard(self, room: Room) -> None:
        room.closed = True
        with self._lock:
            if self._rooms.get(room.room_id) is room:
                del self._rooms[room.room_id]
        logger.debug(f"[room-delete] room={room.room_id}")
