import logging
import threading
from typing import Any, Callable, Dict, List, Optional

from .exceptions import RoomFull
from .rooms import MAX_PARTICIPANTS, Room, RoomTable
from .seed import DEFAULT_SEED_BYTES, generate_seed

logger = logging.getLogger(__name__)


class SessionCoordinator:
    """Reacts to client events and drives each room through its race cycle.

    Every transition runs under the lock of the room it touches and emits its
    messages before releasing it, after the mutation, so a room's messages go
    out in transition order and always describe the post-mutation state.
    Events for a room that no longer exists, or from a connection that is not
    one of its members, are stale and dropped.

    Membership changes of one connection (join, switch, disconnect) are also
    serialized on a per-connection lock that only exists while the connection
    is live. A join handled after its connection closed finds no lock and is
    dropped, so a closed connection can never become a member again.
    Lock order: connection lock, room lock, table lock.
    """

    def __init__(self, rooms: RoomTable, emitter, seed_bytes: int = DEFAULT_SEED_BYTES,
                 seed_factory: Optional[Callable[[int], str]] = None):
        self.rooms = rooms
        self.emitter = emitter
        self.seed_bytes = seed_bytes
        self._seed_factory = seed_factory or generate_seed
        self._conn_locks: Dict[str, threading.Lock] = {}
        self._conn_guard = threading.Lock()

    # ---- connections ----

    def connect(self, conn_id: str) -> None:
        with self._conn_guard:
            self._conn_locks.setdefault(conn_id, threading.Lock())

    def is_connected(self, conn_id: str) -> bool:
        with self._conn_guard:
            return conn_id in self._conn_locks

    def connections(self) -> List[str]:
        with self._conn_guard:
            return list(self._conn_locks)

    def disconnect(self, conn_id: str) -> None:
        with self._conn_guard:
            lock = self._conn_locks.get(conn_id)
        if lock is None:
            return
        with lock:
            with self._conn_guard:
                if self._conn_locks.get(conn_id) is not lock:
                    return
                del self._conn_locks[conn_id]
            room_id = self.rooms.room_of(conn_id)
            if room_id is not None:
                self._leave(conn_id, room_id)

    # ---- pairing ----

    def join_room(self, conn_id: str, room_id: str) -> None:
        with self._conn_guard:
            lock = self._conn_locks.get(conn_id)
        if lock is None:
            logger.info(f"[stale] event=joinRoom sid={conn_id} room={room_id} connection closed")
            return
        with lock:
            if not self._holds(conn_id, lock):
                logger.info(f"[stale] event=joinRoom sid={conn_id} room={room_id} connection closed")
                return
            current = self.rooms.room_of(conn_id)
            if current == room_id:
                logger.info(f"[join-dup] sid={conn_id} already in room={room_id}")
                return
            if current is not None:
                # One room per connection: leaving the old room first keeps the reverse index exact
                logger.info(f"[join-switch] sid={conn_id} from room={current} to room={room_id}")
                self._leave(conn_id, current)

            with self.rooms.locked(room_id, create=True) as room:
                try:
                    self.rooms.join(room, conn_id)
                except RoomFull:
                    logger.info(f"[room-full] sid={conn_id} room={room_id}")
                    self.emitter.send(conn_id, 'roomFull')
                    return
                logger.info(f"[join] sid={conn_id} room={room_id} size={len(room.members)}")
                if len(room.members) == MAX_PARTICIPANTS:
                    self._start_race(room, reason='paired')

    # ---- results ----

    def race_complete(self, conn_id: str, room_id: str, fps: float, race_time: float) -> None:
        with self.rooms.locked(room_id) as room:
            if not self._is_member(room, conn_id, 'raceComplete', room_id):
                return
            race = room.race
            if race.results_sent:
                logger.info(f"[results-late] sid={conn_id} room={room_id} results already sent")
                return
            if conn_id in race.results:
                logger.warning(f"[results-overwrite] sid={conn_id} room={room_id}")
            race.record_result(conn_id, fps, race_time)
            # Counts entries, not current members: a departed member's result still pairs up
            if len(race.results) == MAX_PARTICIPANTS:
                race.results_sent = True
                payload = race.results_payload()
                logger.info(f"[results] room={room_id} results={payload}")
                self.emitter.broadcast(room.members, 'raceResults', payload)

    # ---- restart ----

    def ready_for_next_race(self, conn_id: str, room_id: str) -> None:
        with self.rooms.locked(room_id) as room:
            if not self._is_member(room, conn_id, 'readyForNextRace', room_id):
                return
            race = room.race
            race.add_ready(conn_id)
            if len(race.ready) == MAX_PARTICIPANTS:
                # Only a restart starts a new result-collection cycle
                race.reset()
                self._start_race(room, reason='restart')
            else:
                logger.info(f"[ready] sid={conn_id} room={room_id}")
                self.emitter.broadcast_except(room.members, conn_id, 'opponentReady')

    # ---- relays ----

    def relay_signal(self, conn_id: str, target: str, signal: Any) -> None:
        self.emitter.send(target, 'signal', {'from': conn_id, 'signal': signal})

    def relay_metrics(self, conn_id: str, room_id: str, metrics: Any) -> None:
        with self.rooms.locked(room_id) as room:
            if room is None:
                return
            self.emitter.broadcast_except(
                room.members, conn_id, 'opponentMetrics', {'from': conn_id, 'metrics': metrics}
            )

    # ---- helpers ----

    def _leave(self, conn_id: str, room_id: str) -> None:
        with self.rooms.locked(room_id) as room:
            if room is None or conn_id not in room.members:
                return
            remaining = self.rooms.leave(room, conn_id)
            logger.info(f"[leave] sid={conn_id} room={room_id} remaining={remaining}")
            if remaining:
                self.emitter.broadcast(remaining, 'opponentLeft')

    def _start_race(self, room: Room, reason: str) -> None:
        seed = self._seed_factory(self.seed_bytes)
        participants = list(room.members)
        logger.info(f"[start] room={room.room_id} reason={reason} participants={participants}")
        self.emitter.broadcast(room.members, 'startRace', {'seed': seed, 'participants': participants})

    def _holds(self, conn_id: str, lock: threading.Lock) -> bool:
        with self._conn_guard:
            return self._conn_locks.get(conn_id) is lock

    def _is_member(self, room: Optional[Room], conn_id: str, event: str, room_id: str) -> bool:
        if room is None or conn_id not in room.members:
            logger.debug(f"[stale] event={event} sid={conn_id} room={room_id}")
            return False
        return True
