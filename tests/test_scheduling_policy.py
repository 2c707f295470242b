from datetime import datetime, timedelta, timezone

from frontdesk.models.enums import Priority
from frontdesk.services.scheduling_policy import APPOINTMENT_TOLERANCE, classify


NOW = datetime(2026, 3, 2, 10, 0, tzinfo=timezone.utc)


def test_walk_in_keeps_requested_priority():
    result = classify(Priority.HIGH, False, None, NOW)

    assert result.priority == Priority.HIGH
    assert result.scheduled is False
    assert result.scheduled_at is None
    assert result.lapsed is False


def test_scheduled_flag_without_time_is_a_walk_in():
    result = classify(Priority.NORMAL, True, None, NOW)

    assert result.scheduled is False
    assert result.lapsed is False


def test_future_and_on_time_appointments_are_unchanged():
    for scheduled_at in (NOW + timedelta(hours=1), NOW):
        result = classify(Priority.HIGH, True, scheduled_at, NOW)
        assert result.priority == Priority.HIGH
        assert result.scheduled is True
        assert result.scheduled_at == scheduled_at


def test_late_within_grace_is_unchanged():
    scheduled_at = NOW - timedelta(minutes=10)
    result = classify(Priority.HIGH, True, scheduled_at, NOW)

    assert result.scheduled is True
    assert result.priority == Priority.HIGH
    assert result.lapsed is False


def test_late_exactly_at_tolerance_lapses_to_normal_walk_in():
    result = classify(Priority.HIGH, True, NOW - APPOINTMENT_TOLERANCE, NOW)

    assert result.priority == Priority.NORMAL
    assert result.scheduled is False
    assert result.scheduled_at is None
    assert result.lapsed is True


def test_lapsed_emergency_is_never_demoted():
    result = classify(Priority.EMERGENCY, True, NOW - timedelta(hours=2), NOW)

    assert result.priority == Priority.EMERGENCY
    assert result.scheduled is False
    assert result.lapsed is True


def test_accepts_plain_int_priority():
    result = classify(2, False, None, NOW)
    assert result.priority is Priority.HIGH


def test_priority_ordering_reads_as_urgency():
    assert Priority.EMERGENCY < Priority.HIGH < Priority.NORMAL
    assert sorted([Priority.NORMAL, Priority.EMERGENCY, Priority.HIGH]) == [
        Priority.EMERGENCY,
        Priority.HIGH,
        Priority.NORMAL,
    ]
