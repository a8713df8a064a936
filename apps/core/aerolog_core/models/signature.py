"""Append-only signature model."""

import enum

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint, event
from sqlalchemy.orm import relationship

from aerolog_core.db.base import Base, enum_type


class SignatureKind(str, enum.Enum):
    PILOT = "pilot"
    OPERATOR = "operator"


class HashScope(str, enum.Enum):
    PILOT_SECTION = "pilot_section"
    FULL_RECORD = "full_record"


class Signature(Base):
    """Signature event over a content hash. Rows are never updated or deleted."""

    __tablename__ = "signatures"
    __table_args__ = (UniqueConstraint("flight_record_id", "kind", name="uq_signature_record_kind"),)

    id = Column(Integer, primary_key=True, index=True)
    flight_record_id = Column(Integer, ForeignKey("flight_records.id"), nullable=False, index=True)
    actor_id = Column(String(100), nullable=False)
    kind = Column(enum_type(SignatureKind), nullable=False)
    signed_at = Column(DateTime, nullable=False)
    content_hash = Column(String(64), nullable=False)
    hash_scope = Column(enum_type(HashScope), nullable=False)
    origin_ip = Column(String(64), nullable=True)
    client_string = Column(String(512), nullable=True)
    signature_value = Column(Text, nullable=False)  # base64 RSA-PSS over content_hash
    key_id = Column(String(255), nullable=False)

    flight_record = relationship("FlightRecord", back_populates="signatures")


@event.listens_for(Signature, "before_update")
def _reject_signature_update(mapper, connection, target):
    raise ValueError(f"Signature {target.id} is append-only and cannot be updated")


@event.listens_for(Signature, "before_delete")
def _reject_signature_delete(mapper, connection, target):
    raise ValueError(f"Signature {target.id} is append-only and cannot be deleted")
