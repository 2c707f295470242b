"""Priority and scheduling policy.

Pure functions only: no I/O, no clock reads. Callers pass ``now`` so the same
rules apply at creation time, on edit, and in the escalation sweep.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import ColumnElement

from frontdesk.models.enums import Priority
from frontdesk.models.queue_entry import QueueEntry


# A scheduled appointment is honored until it is this late.
APPOINTMENT_TOLERANCE = timedelta(minutes=15)

LAPSED_APPOINTMENT_MESSAGE = "Entry converted to walk-in: arrived more than 15 minutes late."


@dataclass(frozen=True)
class Classification:
    priority: Priority
    scheduled: bool
    scheduled_at: datetime | None
    # True when a scheduled appointment was demoted to a walk-in.
    lapsed: bool = False


def classify(
    base_priority: Priority | int,
    has_scheduled_appointment: bool,
    scheduled_at: datetime | None,
    now: datetime,
) -> Classification:
    """Compute effective priority and scheduled/walk-in status.

    - Not scheduled (or no time given): walk-in at the requested priority.
    - Late by at least APPOINTMENT_TOLERANCE: walk-in at NORMAL, except
      EMERGENCY which is never demoted.
    - Otherwise (future, on time, late within grace): unchanged.
    """

    base = Priority(base_priority)

    if not has_scheduled_appointment or scheduled_at is None:
        return Classification(priority=base, scheduled=False, scheduled_at=None)

    late_by = now - scheduled_at
    if late_by >= APPOINTMENT_TOLERANCE:
        priority = Priority.EMERGENCY if base == Priority.EMERGENCY else Priority.NORMAL
        return Classification(priority=priority, scheduled=False, scheduled_at=None, lapsed=True)

    return Classification(priority=base, scheduled=True, scheduled_at=scheduled_at)


def selection_order() -> tuple[ColumnElement, ...]:
    """ORDER BY for "who is served next": priority asc, then FIFO."""

    return (
        QueueEntry.priority.asc(),
        QueueEntry.created_at.asc(),
        QueueEntry.id.asc(),
    )
