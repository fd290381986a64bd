from dataclasses import replace
from datetime import timedelta

import pytest

from civicwatch.complaints.domain import ComplaintChanges
from civicwatch.config import ComplaintStatus
from civicwatch.core import InvalidTransitionException
from civicwatch.sla.domain import (
    OFFICIAL_TARGETS,
    check_assignment,
    check_official_transition,
    next_escalation,
)

from conftest import T0, WINDOW


@pytest.mark.parametrize(
    "level, expected_level, expected_status",
    [
        (0, 1, ComplaintStatus.SLA_WARNING),
        (1, 2, ComplaintStatus.ESCALATED),
        (2, 3, ComplaintStatus.ESCALATED),
    ],
)
def test_ladder_step_grants_fresh_window(level, expected_level, expected_status):
    step = next_escalation(level, T0, WINDOW)

    assert step.previous_level == level
    assert step.level == expected_level
    assert step.status == expected_status
    assert step.next_escalation_at == T0 + WINDOW
    assert not step.auto_resolved


def test_final_level_auto_resolves_and_clears_deadline():
    step = next_escalation(3, T0, WINDOW)

    assert step.level == 3
    assert step.status == ComplaintStatus.RESOLVED
    assert step.next_escalation_at is None
    assert step.auto_resolved


@pytest.mark.parametrize("level", [-1, 4])
def test_out_of_range_level_rejected(level):
    with pytest.raises(ValueError):
        next_escalation(level, T0, WINDOW)


@pytest.mark.parametrize("target", sorted(OFFICIAL_TARGETS, key=lambda s: s.value))
def test_official_may_move_working_complaint(target):
    check_official_transition(ComplaintStatus.ESCALATED, target)


@pytest.mark.parametrize(
    "target",
    [ComplaintStatus.SLA_WARNING, ComplaintStatus.ESCALATED, ComplaintStatus.ASSIGNED, ComplaintStatus.SUBMITTED],
)
def test_official_cannot_set_system_statuses(target):
    with pytest.raises(InvalidTransitionException):
        check_official_transition(ComplaintStatus.ANALYZED, target)


def test_nothing_leaves_resolved():
    with pytest.raises(InvalidTransitionException) as exc_info:
        check_official_transition(ComplaintStatus.RESOLVED, ComplaintStatus.IN_PROGRESS)
    assert exc_info.value.details["current_status"] == "resolved"

    with pytest.raises(InvalidTransitionException):
        check_assignment(ComplaintStatus.RESOLVED)


def test_same_status_update_rejected():
    with pytest.raises(InvalidTransitionException):
        check_official_transition(ComplaintStatus.ON_HOLD, ComplaintStatus.ON_HOLD)


async def test_apply_bumps_version_and_keeps_assignment(make_complaint):
    complaint = await make_complaint(assigned_official_id="off-1")
    later = T0 + timedelta(minutes=5)

    updated = complaint.apply(ComplaintChanges(
        status=ComplaintStatus.IN_PROGRESS,
        escalation_level=0,
        next_escalation_at=complaint.next_escalation_at,
        updated_at=later,
    ))

    assert updated.version == complaint.version + 1
    assert updated.status == ComplaintStatus.IN_PROGRESS
    assert updated.assigned_official_id == "off-1"
    assert complaint.status == ComplaintStatus.ANALYZED


async def test_apply_rejects_level_decrease(make_complaint):
    complaint = await make_complaint(escalation_level=2, status=ComplaintStatus.ESCALATED)

    with pytest.raises(InvalidTransitionException):
        complaint.apply(ComplaintChanges(
            status=ComplaintStatus.ACKNOWLEDGED,
            escalation_level=1,
            next_escalation_at=complaint.next_escalation_at,
            updated_at=T0,
        ))


async def test_deadline_present_exactly_when_unresolved(make_complaint):
    complaint = await make_complaint()

    with pytest.raises(ValueError):
        replace(complaint, status=ComplaintStatus.RESOLVED)
    with pytest.raises(ValueError):
        replace(complaint, next_escalation_at=None)
    with pytest.raises(ValueError):
        replace(complaint, escalation_level=4)
