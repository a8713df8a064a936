"""Flight record models."""

import enum
from datetime import datetime

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from aerolog_core.db.base import Base, enum_type


class FlightNature(str, enum.Enum):
    PRIVATE = "private"
    COMMERCIAL = "commercial"
    OTHER = "other"


class RecordState(str, enum.Enum):
    DRAFT = "draft"
    PILOT_SIGNED = "pilot_signed"
    COMPLETE = "complete"
    CANCELLED = "cancelled"


# Items I-XII, sealed by the pilot signature
PILOT_SECTION_FIELDS = (
    "sequence_number",
    "pilot_in_command_id",
    "pilot_in_command_function",
    "pilot_report_time",
    "flight_date",
    "departure_aerodrome",
    "arrival_aerodrome",
    "engine_start_utc",
    "takeoff_utc",
    "landing_utc",
    "engine_stop_utc",
    "ifr_time_hours",
    "fuel_quantity",
    "fuel_unit",
    "flight_nature",
    "flight_nature_other",
    "persons_on_board",
    "cargo_quantity",
    "cargo_unit",
    "occurrences",
    "technical_discrepancies",
    "discrepancy_detected_by",
)

# Items XIII-XVII, editable between the pilot and operator signatures
POST_PILOT_FIELDS = (
    "corrective_actions",
    "last_maintenance_type",
    "next_maintenance_type",
    "airframe_hours_next_maintenance",
    "return_to_service_approver",
)

EDITABLE_FIELDS = tuple(f for f in PILOT_SECTION_FIELDS if f != "sequence_number") + POST_PILOT_FIELDS

# Required before a record can be considered conformant
MANDATORY_FIELDS = (
    "sequence_number",
    "pilot_in_command_id",
    "flight_date",
    "departure_aerodrome",
    "arrival_aerodrome",
    "engine_start_utc",
    "takeoff_utc",
    "landing_utc",
    "engine_stop_utc",
    "flight_nature",
    "persons_on_board",
)


class FlightRecordSequence(Base):
    """Per-aircraft sequence counter; values are never reused."""

    __tablename__ = "flight_record_sequences"

    aircraft_id = Column(Integer, ForeignKey("aircraft.id"), primary_key=True)
    last_value = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class FlightRecord(Base):
    """One flight-log entry with its signature and regulator sync state."""

    __tablename__ = "flight_records"
    __table_args__ = (UniqueConstraint("aircraft_id", "sequence_number", name="uq_flight_record_sequence"),)

    id = Column(Integer, primary_key=True, index=True)
    aircraft_id = Column(Integer, ForeignKey("aircraft.id"), nullable=False, index=True)
    sequence_number = Column(Integer, nullable=False)

    # II pilot in command
    pilot_in_command_id = Column(String(100), nullable=False, index=True)
    pilot_in_command_function = Column(String(50), nullable=True)
    pilot_report_time = Column(DateTime, nullable=True)
    # III
    flight_date = Column(Date, nullable=False, index=True)
    # IV
    departure_aerodrome = Column(String(10), nullable=True)
    arrival_aerodrome = Column(String(10), nullable=True)
    # V
    engine_start_utc = Column(DateTime, nullable=True)
    takeoff_utc = Column(DateTime, nullable=True)
    landing_utc = Column(DateTime, nullable=True)
    engine_stop_utc = Column(DateTime, nullable=True)
    # VI
    ifr_time_hours = Column(Numeric(6, 2), nullable=True)
    # VII
    fuel_quantity = Column(Numeric(10, 2), nullable=True)
    fuel_unit = Column(String(10), nullable=True)
    # VIII
    flight_nature = Column(enum_type(FlightNature), nullable=True)
    flight_nature_other = Column(String(255), nullable=True)
    # IX
    persons_on_board = Column(Integer, nullable=True)
    # X
    cargo_quantity = Column(Numeric(10, 2), nullable=True)
    cargo_unit = Column(String(10), nullable=True)
    # XI
    occurrences = Column(Text, nullable=True)
    # XII
    technical_discrepancies = Column(Text, nullable=True)
    discrepancy_detected_by = Column(String(100), nullable=True)
    # XIII-XVII
    corrective_actions = Column(Text, nullable=True)
    last_maintenance_type = Column(String(100), nullable=True)
    next_maintenance_type = Column(String(100), nullable=True)
    airframe_hours_next_maintenance = Column(Numeric(10, 2), nullable=True)
    return_to_service_approver = Column(String(100), nullable=True)

    # Signature state
    pilot_signed = Column(Boolean, default=False, nullable=False)
    pilot_signed_at = Column(DateTime, nullable=True, index=True)
    operator_signed = Column(Boolean, default=False, nullable=False)
    operator_signed_at = Column(DateTime, nullable=True)

    # Regulator sync state
    synced_with_regulator = Column(Boolean, default=False, nullable=False, index=True)
    synced_at = Column(DateTime, nullable=True)
    regulator_reference = Column(String(255), nullable=True)
    last_sync_error = Column(Text, nullable=True)
    sync_attempts = Column(Integer, default=0, nullable=False)
    last_sync_attempt_at = Column(DateTime, nullable=True)
    sync_on_hold = Column(Boolean, default=False, nullable=False)
    record_hash = Column(String(64), nullable=True)

    overdue_flagged_at = Column(DateTime, nullable=True)

    cancelled_at = Column(DateTime, nullable=True)
    cancellation_reason = Column(Text, nullable=True)

    created_by = Column(String(100), nullable=True)
    updated_by = Column(String(100), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
    version_id = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version_id}

    aircraft = relationship("Aircraft")
    signatures = relationship("Signature", back_populates="flight_record", order_by="Signature.id")

    @property
    def state(self) -> RecordState:
        if self.cancelled_at is not None:
            return RecordState.CANCELLED
        if self.operator_signed:
            return RecordState.COMPLETE
        if self.pilot_signed:
            return RecordState.PILOT_SIGNED
        return RecordState.DRAFT

    @property
    def is_complete(self) -> bool:
        return self.pilot_signed and self.operator_signed

    def signature_of(self, kind):
        for signature in self.signatures:
            if signature.kind == kind:
                return signature
        return None

    def summary(self) -> dict:
        """Flags and hash for audit entries; never full content."""
        return {
            "state": self.state.value,
            "pilot_signed": self.pilot_signed,
            "operator_signed": self.operator_signed,
            "record_hash": self.record_hash,
            "synced_with_regulator": self.synced_with_regulator,
            "sync_on_hold": self.sync_on_hold,
        }
