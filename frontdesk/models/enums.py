from __future__ import annotations

from enum import Enum, IntEnum


class Priority(IntEnum):
    """Queue priority.

    Lower ordinal is served first: EMERGENCY (1) before HIGH (2) before
    NORMAL (3). Always sort ascending by value; ``Priority.EMERGENCY <
    Priority.NORMAL`` reads as "more urgent than".
    """

    EMERGENCY = 1
    HIGH = 2
    NORMAL = 3


class EntryStatus(str, Enum):
    WAITING = "WAITING"
    CALLED = "CALLED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


ACTIVE_STATUSES: tuple[EntryStatus, ...] = (
    EntryStatus.WAITING,
    EntryStatus.CALLED,
    EntryStatus.IN_PROGRESS,
)

TERMINAL_STATUSES: tuple[EntryStatus, ...] = (
    EntryStatus.COMPLETED,
    EntryStatus.CANCELLED,
)


class StaffRole(str, Enum):
    VET = "VET"
    FRONT_DESK = "FRONT_DESK"
    ADMIN = "ADMIN"
