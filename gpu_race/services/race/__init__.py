"""Race session domain: room membership, race state and the coordinator.

Nothing in this package imports Flask; socket handlers translate transport
events into coordinator calls and the coordinator talks back through an
emitter, keeping transport concerns separated from session mechanics.
"""

from .coordinator import SessionCoordinator
from .emitter import SocketIOEmitter
from .rooms import RoomTable

__all__ = ['SessionCoordinator', 'SocketIOEmitter', 'RoomTable']
