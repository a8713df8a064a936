"""Flight record queries used by the signature service and the jobs."""

from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session, joinedload

from aerolog_core import deadlines
from aerolog_core.models import Aircraft, FlightRecord, FlightRecordSequence, Signature


class FlightRecordRepository:
    """SQLAlchemy-backed flight record repository."""

    def __init__(self, db: Session):
        self.db = db

    def _base_query(self):
        return self.db.query(FlightRecord).options(joinedload(FlightRecord.aircraft))

    def get(self, record_id: int) -> Optional[FlightRecord]:
        return self.db.query(FlightRecord).filter(FlightRecord.id == record_id).first()

    def get_for_update(self, record_id: int) -> Optional[FlightRecord]:
        """Load a record holding a row lock until the transaction ends."""
        return (
            self.db.query(FlightRecord)
            .filter(FlightRecord.id == record_id)
            .with_for_update()
            .populate_existing()
            .first()
        )

    def save(self, record: FlightRecord) -> FlightRecord:
        self.db.add(record)
        self.db.flush()
        return record

    def delete(self, record: FlightRecord):
        self.db.delete(record)
        self.db.flush()

    def append_signature(self, signature: Signature) -> Signature:
        self.db.add(signature)
        self.db.flush()
        return signature

    def next_sequence_number(self, aircraft_id: int) -> int:
        """Advance the aircraft's sequence counter under a row lock."""
        sequence = (
            self.db.query(FlightRecordSequence)
            .filter(FlightRecordSequence.aircraft_id == aircraft_id)
            .with_for_update()
            .first()
        )
        if sequence is None:
            sequence = FlightRecordSequence(aircraft_id=aircraft_id, last_value=0)
            self.db.add(sequence)
        sequence.last_value = sequence.last_value + 1
        self.db.flush()
        return sequence.last_value

    def active_aircraft(self) -> list[Aircraft]:
        return self.db.query(Aircraft).filter(Aircraft.active.is_(True)).order_by(Aircraft.id.asc()).all()

    def get_aircraft(self, aircraft_id: int) -> Optional[Aircraft]:
        return self.db.query(Aircraft).filter(Aircraft.id == aircraft_id).first()

    def find_pilot_signed_not_operator_signed(self) -> list[FlightRecord]:
        return (
            self._base_query()
            .filter(
                FlightRecord.pilot_signed.is_(True),
                FlightRecord.operator_signed.is_(False),
                FlightRecord.cancelled_at.is_(None),
            )
            .order_by(FlightRecord.pilot_signed_at.asc(), FlightRecord.id.asc())
            .all()
        )

    def find_overdue(self, now: datetime) -> list[FlightRecord]:
        return [
            record
            for record in self.find_pilot_signed_not_operator_signed()
            if deadlines.is_overdue(record.pilot_signed_at, record.aircraft.regulatory_tier, now)
        ]

    def find_near_deadline(self, now: datetime, within_days: int = deadlines.NEAR_DEADLINE_DAYS) -> list[FlightRecord]:
        return [
            record
            for record in self.find_pilot_signed_not_operator_signed()
            if deadlines.is_near_deadline(
                record.pilot_signed_at, record.aircraft.regulatory_tier, now, within_days
            )
        ]

    def _complete_unsynced(self):
        return self._base_query().filter(
            FlightRecord.pilot_signed.is_(True),
            FlightRecord.operator_signed.is_(True),
            FlightRecord.synced_with_regulator.is_(False),
        )

    def find_unsynced(self, max_attempts: int) -> list[FlightRecord]:
        """Complete records eligible for submission."""
        return (
            self._complete_unsynced()
            .filter(
                FlightRecord.sync_on_hold.is_(False),
                FlightRecord.sync_attempts < max_attempts,
            )
            .order_by(FlightRecord.operator_signed_at.asc(), FlightRecord.id.asc())
            .all()
        )

    def find_failed_sync(self) -> list[FlightRecord]:
        return (
            self._complete_unsynced()
            .filter(
                FlightRecord.sync_on_hold.is_(False),
                FlightRecord.last_sync_error.isnot(None),
            )
            .order_by(FlightRecord.id.asc())
            .all()
        )

    def find_stale_in_flight(self, cutoff: datetime) -> list[FlightRecord]:
        """Complete records still unsynced that were operator-signed before cutoff."""
        return (
            self._complete_unsynced()
            .filter(FlightRecord.operator_signed_at < cutoff)
            .order_by(FlightRecord.operator_signed_at.asc(), FlightRecord.id.asc())
            .all()
        )

    def _window_query(self, aircraft_id: int, now: datetime, days: int):
        """Non-cancelled records flown in the last `days` days, today included."""
        today = now.date()
        return self.db.query(FlightRecord).filter(
            FlightRecord.aircraft_id == aircraft_id,
            FlightRecord.flight_date > today - timedelta(days=days),
            FlightRecord.flight_date <= today,
            FlightRecord.cancelled_at.is_(None),
        )

    def find_in_compliance_window(self, aircraft_id: int, now: datetime, days: int = 30) -> list[FlightRecord]:
        return self._window_query(aircraft_id, now, days).order_by(FlightRecord.sequence_number.asc()).all()

    def count_in_compliance_window(self, aircraft_id: int, now: datetime, days: int = 30) -> int:
        return self._window_query(aircraft_id, now, days).count()

    def find_completed(self, limit: Optional[int] = None) -> list[FlightRecord]:
        query = (
            self._base_query()
            .filter(FlightRecord.operator_signed.is_(True))
            .order_by(FlightRecord.id.asc())
        )
        if limit is not None:
            query = query.limit(limit)
        return query.all()
