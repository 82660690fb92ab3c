"""Unit tests for the status vocabularies and the transition tables."""

import uuid
from datetime import datetime, timezone

import pytest
from services.volunteer_service.models import (
    ACTIVE_ASSIGNMENT_STATUSES,
    ALLOWED_ASSIGNMENT_TRANSITIONS,
    TERMINAL_ASSIGNMENT_STATUSES,
    AssignmentStatus,
    AttendanceType,
    EventStatus,
    ParticipationStatus,
)
from services.volunteer_service.schemas import AssignmentResponse, HistoryUpdate


@pytest.mark.unit
@pytest.mark.parametrize("label", ["no-show", "NO_SHOW", "No_Show", "no show", " no-show "])
def test_participation_status_parses_any_casing(label):
    assert ParticipationStatus.parse(label) is ParticipationStatus.NO_SHOW


@pytest.mark.unit
def test_parse_rejects_unknown_label():
    with pytest.raises(ValueError):
        AssignmentStatus.parse("maybe")


@pytest.mark.unit
def test_wire_form_is_lowercase_hyphenated():
    assert EventStatus.IN_PROGRESS.wire == "in-progress"
    assert ParticipationStatus.NO_SHOW.wire == "no-show"
    assert AttendanceType.PRESENT.wire == "present"


@pytest.mark.unit
def test_terminal_statuses_have_no_outgoing_transitions():
    for status in TERMINAL_ASSIGNMENT_STATUSES:
        assert not ALLOWED_ASSIGNMENT_TRANSITIONS.get(status)


@pytest.mark.unit
def test_completed_is_reachable_only_from_confirmed():
    sources = {
        source
        for source, targets in ALLOWED_ASSIGNMENT_TRANSITIONS.items()
        if AssignmentStatus.COMPLETED in targets
    }
    assert sources == {AssignmentStatus.CONFIRMED}


@pytest.mark.unit
def test_active_set_holds_capacity():
    assert ACTIVE_ASSIGNMENT_STATUSES == {
        AssignmentStatus.PENDING,
        AssignmentStatus.CONFIRMED,
        AssignmentStatus.COMPLETED,
    }


@pytest.mark.unit
def test_schema_accepts_any_casing_and_emits_wire_form():
    update = HistoryUpdate(status="No_Show", attendance="ABSENT")
    assert update.status is ParticipationStatus.NO_SHOW
    assert update.model_dump(exclude_unset=True) == {
        "status": "no-show",
        "attendance": "absent",
    }


@pytest.mark.unit
def test_schema_rejects_unknown_fields():
    with pytest.raises(ValueError):
        HistoryUpdate(volunteer_id="someone-else")


@pytest.mark.unit
def test_assignment_response_serializes_status_for_the_wire():
    now = datetime.now(timezone.utc)
    payload = AssignmentResponse(
        id=uuid.uuid4(),
        event_id=uuid.uuid4(),
        volunteer_id=uuid.uuid4(),
        status="CONFIRMED",
        match_score=0.7,
        assigned_at=now,
        confirmed_at=now,
        updated_at=now,
    ).model_dump(mode="json")
    assert payload["status"] == "confirmed"
