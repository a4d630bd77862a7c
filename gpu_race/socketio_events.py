import time
from numbers import Real
from typing import Any, Dict

from flask import current_app, request
from gpu_race import socketio
from gpu_race.services.race.exceptions import MalformedMessage

NAMESPACE = '/'


def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _coordinator():
    return current_app.extensions['race_coordinator']


# ---- payload parsing ----

def _room_id(event: str, value: Any) -> str:
    # Room ids are map keys: 1 and "1" would be different rooms, so only strings are accepted
    if not isinstance(value, str):
        raise MalformedMessage(event, 'roomId must be a string')
    if not value:
        raise MalformedMessage(event, 'roomId is required')
    return value


def _mapping(event: str, data: Any) -> Dict[str, Any]:
    if not isinstance(data, dict):
        raise MalformedMessage(event, 'expected an object payload')
    return data


def _number(event: str, data: Dict[str, Any], key: str) -> float:
    value = data.get(key)
    if isinstance(value, bool) or not isinstance(value, Real):
        raise MalformedMessage(event, f'{key} must be a number')
    return float(value)


# ---- handlers ----

def handle_connect(auth=None):
    sid = _get_sid()
    _coordinator().connect(sid)
    current_app.logger.info(f"[connect] sid={sid}")


def handle_disconnect(reason=None):
    sid = _get_sid()
    current_app.logger.info(f"[disconnect] sid={sid} reason={reason}")
    _coordinator().disconnect(sid)


def handle_join_room(room_id=None):
    _coordinator().join_room(_get_sid(), _room_id('joinRoom', room_id))


def handle_race_complete(data=None):
    data = _mapping('raceComplete', data)
    _coordinator().race_complete(
        _get_sid(),
        _room_id('raceComplete', data.get('roomId')),
        _number('raceComplete', data, 'fps'),
        _number('raceComplete', data, 'raceTime'),
    )


def handle_ready_for_next_race(room_id=None):
    _coordinator().ready_for_next_race(_get_sid(), _room_id('readyForNextRace', room_id))


def handle_signal(data=None):
    data = _mapping('signal', data)
    target = data.get('target')
    if not isinstance(target, str) or not target:
        raise MalformedMessage('signal', 'target must be a connection id')
    _coordinator().relay_signal(_get_sid(), target, data.get('signal'))


def handle_metric_update(data=None):
    data = _mapping('metricUpdate', data)
    _coordinator().relay_metrics(_get_sid(), _room_id('metricUpdate', data.get('roomId')), data.get('metrics'))


def handle_error(exc):
    """Default Socket.IO error handler: faults stay local to the event that raised them."""
    sid = getattr(request, 'sid', None)
    if isinstance(exc, MalformedMessage):
        current_app.logger.warning(f"[bad-payload] sid={sid} {exc}")
        return
    current_app.logger.error(f"[socket-error] sid={sid} event failed: {exc}", exc_info=exc)


def drain_connections(timeout: float = 0) -> int:
    """Disconnect every live session, running room cleanup for each.

    Waits up to ``timeout`` seconds for the transport to finish closing the
    disconnected sockets before returning.
    """
    coordinator = _coordinator()
    sids = coordinator.connections()
    for sid in sids:
        coordinator.disconnect(sid)
        socketio.server.disconnect(sid, namespace=NAMESPACE)
    deadline = time.monotonic() + timeout
    while socketio.server.eio.sockets and time.monotonic() < deadline:
        socketio.sleep(0.1)
    return len(sids)


def register_socketio_handlers(namespace: str = NAMESPACE) -> None:
    """Register Socket.IO event handlers on ``namespace``."""
    socketio.on_event('connect', handle_connect, namespace=namespace)
    socketio.on_event('disconnect', handle_disconnect, namespace=namespace)
    socketio.on_event('joinRoom', handle_join_room, namespace=namespace)
    socketio.on_event('raceComplete', handle_race_complete, namespace=namespace)
    socketio.on_event('readyForNextRace', handle_ready_for_next_race, namespace=namespace)
    socketio.on_event('signal', handle_signal, namespace=namespace)
    socketio.on_event('metricUpdate', handle_metric_update, namespace=namespace)
    socketio.on_error_default(handle_error)
