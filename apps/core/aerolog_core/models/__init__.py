"""Database models - import all models here so create_all sees every table."""

from aerolog_core.models.audit import AuditChainHead, AuditLogEntry
from aerolog_core.models.fleet import Aircraft, CrewMember, CrewRole, Operator, RegulatoryTier
from aerolog_core.models.flight_record import FlightNature, FlightRecord, FlightRecordSequence, RecordState
from aerolog_core.models.signature import HashScope, Signature, SignatureKind

__all__ = [
    "Operator",
    "Aircraft",
    "CrewMember",
    "CrewRole",
    "RegulatoryTier",
    "FlightRecord",
    "FlightRecordSequence",
    "FlightNature",
    "RecordState",
    "Signature",
    "SignatureKind",
    "HashScope",
    "AuditLogEntry",
    "AuditChainHead",
]
