from __future__ import annotations


class QueueError(Exception):
    """Base class for scheduler errors surfaced to callers.

    ``code`` is a stable machine-readable identifier; the HTTP layer maps each
    subclass to a status code (see frontdesk.api.errors).
    """

    code = "queue_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class QueueValidationError(QueueError):
    code = "validation_error"


class InvalidTransition(QueueError):
    code = "invalid_transition"


class NotCheckedIn(QueueError):
    code = "not_checked_in"


class RoomOccupiedByOther(QueueError):
    code = "room_occupied_by_other"


class RoomHasNoActiveOccupant(QueueError):
    code = "room_has_no_active_occupant"


class Forbidden(QueueError):
    code = "forbidden"


class NotFound(QueueError):
    code = "not_found"
