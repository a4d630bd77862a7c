"""Race session exceptions, handled by the socket layer."""


class RaceError(Exception):
    """Base class for all race session errors"""
    pass


class RoomFull(RaceError):
    """The room already holds two participants"""
    def __init__(self, room_id):
        self.room_id = room_id
        super().__init__(f"Room {room_id} is full")


class MalformedMessage(RaceError):
    """An inbound event payload is missing fields or has the wrong shape"""
    def __init__(self, event, reason):
        self.event = event
        self.reason = reason
        super().__init__(f"Malformed '{event}' payload: {reason}")
