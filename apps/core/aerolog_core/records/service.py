"""Flight record lifecycle service."""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from aerolog_core import deadlines
from aerolog_core.audit.service import AuditLogService
from aerolog_core.errors import ConflictError, NotFoundError, ValidationError
from aerolog_core.models import FlightRecord, RecordState
from aerolog_core.models.flight_record import EDITABLE_FIELDS, POST_PILOT_FIELDS
from aerolog_core.records.repository import FlightRecordRepository
from aerolog_core.settings import get_settings
from aerolog_core.utils.time import utcnow

logger = logging.getLogger(__name__)

ENTITY_TYPE = "flight_record"


@dataclass
class DeadlineStatus:
    record_id: int
    state: RecordState
    tier: str
    deadline_at: Optional[datetime]
    remaining_days: int
    overdue_days: int
    is_near_deadline: bool

    @property
    def is_overdue(self) -> bool:
        return self.overdue_days > 0


class FlightRecordService:
    """Draft creation, edits, cancellation and deletion with edit locks."""

    def __init__(self, db: Session, settings=None):
        self.db = db
        self.settings = settings or get_settings()
        self.records = FlightRecordRepository(db)
        self.audit = AuditLogService(db)

    def _get(self, record_id: int) -> FlightRecord:
        record = self.records.get_for_update(record_id)
        if record is None:
            raise NotFoundError(f"Flight record {record_id} not found")
        return record

    def _validate_fields(self, fields: dict, allowed: tuple):
        unknown = sorted(set(fields) - set(EDITABLE_FIELDS))
        if unknown:
            raise ValidationError(f"Unknown flight record fields: {', '.join(unknown)}")
        locked = sorted(set(fields) - set(allowed))
        if locked:
            raise ConflictError(f"Fields are locked by the pilot signature: {', '.join(locked)}")

    def create_draft(
        self, aircraft_id: int, actor_id: str, fields: dict, now: Optional[datetime] = None
    ) -> FlightRecord:
        """Create a draft with the next sequence number of the aircraft."""
        now = now or utcnow()
        aircraft = self.records.get_aircraft(aircraft_id)
        if aircraft is None or not aircraft.active:
            raise NotFoundError(f"Active aircraft {aircraft_id} not found")
        self._validate_fields(fields, EDITABLE_FIELDS)

        record = FlightRecord(
            aircraft_id=aircraft_id,
            sequence_number=self.records.next_sequence_number(aircraft_id),
            created_by=actor_id,
            updated_by=actor_id,
            created_at=now,
            updated_at=now,
            **fields,
        )
        self.records.save(record)
        self.audit.record(
            "create_draft",
            ENTITY_TYPE,
            record.id,
            actor_id=actor_id,
            after={"sequence_number": record.sequence_number, "aircraft_id": aircraft_id},
            now=now,
        )
        self.db.commit()
        logger.info(
            f"Draft record {record.id} created for aircraft {aircraft.registration} "
            f"with sequence {record.sequence_number}"
        )
        return record

    def update_fields(
        self, record_id: int, actor_id: str, changes: dict, now: Optional[datetime] = None
    ) -> FlightRecord:
        """Apply edits allowed by the record's signing state."""
        now = now or utcnow()
        record = self._get(record_id)
        state = record.state
        if state == RecordState.DRAFT:
            allowed = EDITABLE_FIELDS
        elif state == RecordState.PILOT_SIGNED:
            allowed = POST_PILOT_FIELDS
        else:
            raise ConflictError(f"Record {record_id} is {state.value} and cannot be edited")
        self._validate_fields(changes, allowed)

        for name, value in changes.items():
            setattr(record, name, value)
        record.updated_by = actor_id
        record.updated_at = now
        self.records.save(record)
        self.audit.record(
            "update_fields",
            ENTITY_TYPE,
            record.id,
            actor_id=actor_id,
            before={"state": state.value},
            after={"fields": sorted(changes)},
            now=now,
        )
        self.db.commit()
        return record

    def cancel(
        self, record_id: int, actor_id: str, reason: str, now: Optional[datetime] = None
    ) -> FlightRecord:
        now = now or utcnow()
        record = self._get(record_id)
        if record.state != RecordState.DRAFT:
            raise ConflictError(f"Only drafts can be cancelled; record {record_id} is {record.state.value}")

        record.cancelled_at = now
        record.cancellation_reason = reason
        record.updated_by = actor_id
        self.records.save(record)
        self.audit.record(
            "cancel",
            ENTITY_TYPE,
            record.id,
            actor_id=actor_id,
            before={"state": RecordState.DRAFT.value},
            after={"state": RecordState.CANCELLED.value, "reason": reason},
            now=now,
        )
        self.db.commit()
        return record

    def delete_draft(self, record_id: int, actor_id: str, now: Optional[datetime] = None):
        """Delete a draft. Its sequence number is not reused."""
        now = now or utcnow()
        record = self._get(record_id)
        if record.state != RecordState.DRAFT:
            raise ConflictError(f"Only drafts can be deleted; record {record_id} is {record.state.value}")

        sequence_number = record.sequence_number
        self.records.delete(record)
        self.audit.record(
            "delete_draft",
            ENTITY_TYPE,
            record_id,
            actor_id=actor_id,
            before={"state": RecordState.DRAFT.value, "sequence_number": sequence_number},
            now=now,
        )
        self.db.commit()

    def get_deadline_status(self, record_id: int, now: Optional[datetime] = None) -> DeadlineStatus:
        now = now or utcnow()
        record = self.records.get(record_id)
        if record is None:
            raise NotFoundError(f"Flight record {record_id} not found")

        tier = record.aircraft.regulatory_tier
        signed_at = record.pilot_signed_at if record.state == RecordState.PILOT_SIGNED else None
        return DeadlineStatus(
            record_id=record.id,
            state=record.state,
            tier=tier.value,
            deadline_at=deadlines.deadline_at(record.pilot_signed_at, tier),
            remaining_days=deadlines.remaining_days(signed_at, tier, now),
            overdue_days=deadlines.overdue_days(signed_at, tier, now),
            is_near_deadline=deadlines.is_near_deadline(
                signed_at, tier, now, self.settings.near_deadline_days
            ),
        )
