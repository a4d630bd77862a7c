"""Outbound addressing primitives.

Every Socket.IO session is addressable as its own room, so delivering to a
connection id is a plain ``emit(..., to=sid)``. Room-level delivery is
expressed against the coordinator's member lists instead of Socket.IO rooms,
keeping the room table the single source of truth for who is in a race.
"""
from typing import Any, Iterable, Optional


class SocketIOEmitter:
    def __init__(self, socketio, namespace: str = '/'):
        self.socketio = socketio
        self.namespace = namespace

    def send(self, conn_id: str, event: str, payload: Any = None) -> None:
        args = () if payload is None else (payload,)
        self.socketio.emit(event, *args, to=conn_id, namespace=self.namespace)

    def broadcast(self, members: Iterable[str], event: str, payload: Any = None) -> None:
        for conn_id in list(members):
            self.send(conn_id, event, payload)

    def broadcast_except(self, members: Iterable[str], sender: Optional[str], event: str, payload: Any = None) -> None:
        self.broadcast([m for m in members if m != sender], event, payload)
