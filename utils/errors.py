"""Exception types shared by the history tracker, the room stores and the match code."""


class StorageError(Exception):
    """A durable store could not be read or written."""


class TransactionConflict(Exception):
    """A room transaction could not acquire isolation; safe to retry."""


class MatchError(Exception):
    """Base class for match validation errors surfaced to callers."""

    code = "match_error"


class AuthRequired(MatchError):
    code = "auth_required"

    def __init__(self, message: str = "Must be signed in"):
        super().__init__(message)


class RoomNotFound(MatchError):
    code = "room_not_found"

    def __init__(self, message: str = "Room not found or already started"):
        super().__init__(message)


class RoomFull(MatchError):
    code = "room_full"

    def __init__(self, message: str = "Room is full"):
        super().__init__(message)


class RoomAlreadyStarted(MatchError):
    code = "room_already_started"

    def __init__(self, message: str = "Room has already started"):
        super().__init__(message)


class NotHost(MatchError):
    code = "not_host"

    def __init__(self, message: str = "Only the host can start the match"):
        super().__init__(message)


class PlayerNotInRoom(MatchError):
    code = "player_not_in_room"

    def __init__(self, message: str = "Player is not in this room"):
        super().__init__(message)


class MatchNotActive(MatchError):
    code = "match_not_active"

    def __init__(self, message: str = "Match is not in progress"):
        super().__init__(message)
