"""Tests for the flight record lifecycle."""

from datetime import timedelta

import pytest

from aerolog_core.errors import ConflictError, NotFoundError, ValidationError
from aerolog_core.models import AuditLogEntry, FlightRecord, RecordState, RegulatoryTier
from conftest import T0, record_fields


def test_create_draft_assigns_sequence(db, make_record, aircraft):
    first = make_record()
    second = make_record()

    assert first.state == RecordState.DRAFT
    assert (first.sequence_number, second.sequence_number) == (1, 2)
    assert first.created_by == "pilot.silva"
    assert first.version_id == 1


def test_sequences_are_per_aircraft(make_aircraft, make_record):
    other = make_aircraft(RegulatoryTier.C)
    make_record()
    assert make_record(other).sequence_number == 1


def test_deleted_draft_sequence_is_not_reused(db, make_record, record_service, pilot):
    """Test sequence numbers stay monotonic across deletions."""
    make_record()
    second = make_record()
    record_service.delete_draft(second.id, pilot.actor_id, now=T0)

    assert db.query(FlightRecord).count() == 1
    assert make_record().sequence_number == 3


def test_create_draft_unknown_aircraft(record_service, pilot):
    with pytest.raises(NotFoundError):
        record_service.create_draft(404, pilot.actor_id, record_fields(), now=T0)


def test_create_draft_rejects_unknown_field(record_service, aircraft, pilot):
    fields = record_fields()
    fields["tail_colour"] = "blue"
    with pytest.raises(ValidationError) as exc_info:
        record_service.create_draft(aircraft.id, pilot.actor_id, fields, now=T0)

    assert exc_info.value.kind == "validation"
    assert "tail_colour" in exc_info.value.reason


def test_draft_is_fully_editable(db, make_record, record_service, pilot):
    record = make_record()
    record_service.update_fields(
        record.id, pilot.actor_id, {"persons_on_board": 6, "corrective_actions": "None"}, now=T0
    )
    db.refresh(record)
    assert record.persons_on_board == 6
    assert record.version_id == 2


def test_pilot_section_locked_after_pilot_signature(db, make_record, record_service, signature_service, pilot):
    """Test edit lock on items I-XII once the pilot has signed."""
    record = make_record()
    signature_service.sign_as_pilot(record.id, pilot.actor_id, now=T0)

    with pytest.raises(ConflictError):
        record_service.update_fields(record.id, pilot.actor_id, {"persons_on_board": 2}, now=T0)
    db.rollback()

    record_service.update_fields(
        record.id, pilot.actor_id, {"next_maintenance_type": "100h inspection"}, now=T0
    )
    db.refresh(record)
    assert record.next_maintenance_type == "100h inspection"
    assert record.persons_on_board == 4


def test_nothing_editable_after_operator_signature(db, make_completed, record_service, signatory):
    record = make_completed()
    with pytest.raises(ConflictError):
        record_service.update_fields(record.id, signatory.actor_id, {"corrective_actions": "late"}, now=T0)


def test_cancel_only_drafts(db, make_record, record_service, signature_service, pilot):
    draft = make_record()
    cancelled = record_service.cancel(draft.id, pilot.actor_id, "Duplicate entry", now=T0)
    assert cancelled.state == RecordState.CANCELLED
    assert cancelled.cancellation_reason == "Duplicate entry"

    signed = make_record()
    signature_service.sign_as_pilot(signed.id, pilot.actor_id, now=T0)
    with pytest.raises(ConflictError):
        record_service.cancel(signed.id, pilot.actor_id, "Too late", now=T0)
    db.rollback()
    with pytest.raises(ConflictError):
        record_service.delete_draft(signed.id, pilot.actor_id, now=T0)


def test_cancelled_record_cannot_be_edited_or_deleted(db, make_record, record_service, pilot):
    record = make_record()
    record_service.cancel(record.id, pilot.actor_id, "Duplicate entry", now=T0)
    with pytest.raises(ConflictError):
        record_service.update_fields(record.id, pilot.actor_id, {"occurrences": "x"}, now=T0)
    db.rollback()
    with pytest.raises(ConflictError):
        record_service.delete_draft(record.id, pilot.actor_id, now=T0)


def test_lifecycle_changes_are_audited(db, make_record, record_service, pilot):
    record = make_record()
    record_service.update_fields(record.id, pilot.actor_id, {"occurrences": "Light turbulence"}, now=T0)
    record_service.cancel(record.id, pilot.actor_id, "Entered twice", now=T0)

    operations = [e.operation for e in db.query(AuditLogEntry).order_by(AuditLogEntry.id)]
    assert operations == ["create_draft", "update_fields", "cancel"]
    update = db.query(AuditLogEntry).filter(AuditLogEntry.operation == "update_fields").one()
    assert update.after_json == {"fields": ["occurrences"]}


def test_deadline_status(make_aircraft, make_record, record_service, signature_service, pilot):
    record = make_record(make_aircraft(RegulatoryTier.A))
    signature_service.sign_as_pilot(record.id, pilot.actor_id, now=T0)

    status = record_service.get_deadline_status(record.id, now=T0)
    assert status.state == RecordState.PILOT_SIGNED
    assert status.tier == "A"
    assert status.deadline_at == T0 + timedelta(days=2)
    assert status.remaining_days == 2
    assert status.is_near_deadline is True
    assert status.is_overdue is False

    late = record_service.get_deadline_status(record.id, now=T0 + timedelta(days=3))
    assert late.remaining_days == 0
    assert late.overdue_days == 1
    assert late.is_overdue is True
    assert late.is_near_deadline is False


def test_deadline_status_not_tracked_for_draft_or_complete(make_record, make_completed, record_service):
    draft = record_service.get_deadline_status(make_record().id, now=T0)
    assert draft.deadline_at is None
    assert (draft.remaining_days, draft.overdue_days) == (0, 0)

    complete = record_service.get_deadline_status(make_completed().id, now=T0 + timedelta(days=60))
    assert complete.state == RecordState.COMPLETE
    assert complete.overdue_days == 0


def test_deadline_status_missing_record(record_service):
    with pytest.raises(NotFoundError):
        record_service.get_deadline_status(1)
