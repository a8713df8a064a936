"""Two-step flight record signing and integrity validation."""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from aerolog_core import deadlines
from aerolog_core.audit.service import AuditLogService
from aerolog_core.errors import (
    ComplianceError,
    ConflictError,
    DeadlineExceededError,
    ForbiddenError,
    NotFoundError,
)
from aerolog_core.models import CrewMember, CrewRole, FlightRecord, HashScope, Signature, SignatureKind
from aerolog_core.notifications.base import SEVERITY_CRITICAL, Notifier
from aerolog_core.records.repository import FlightRecordRepository
from aerolog_core.settings import get_settings
from aerolog_core.signing.hasher import hash_record
from aerolog_core.signing.signer import Signer
from aerolog_core.utils.metrics import integrity_violations_total, signatures_total
from aerolog_core.utils.time import utcnow

logger = logging.getLogger(__name__)

ENTITY_TYPE = "flight_record"


class SignatureService:
    """Applies pilot and operator signatures and validates stored hashes.

    Each operation runs as its own unit of work: it commits on success, and
    on rejection rolls back, writes a failure audit entry, commits that
    entry and re-raises.
    """

    def __init__(self, db: Session, signer: Signer, notifier: Notifier, settings=None):
        self.db = db
        self.signer = signer
        self.notifier = notifier
        self.settings = settings or get_settings()
        self.records = FlightRecordRepository(db)
        self.audit = AuditLogService(db)

    def _load(self, record_id: int) -> FlightRecord:
        record = self.records.get_for_update(record_id)
        if record is None:
            raise NotFoundError(f"Flight record {record_id} not found")
        return record

    def _active_crew(self, actor_id: str, now: datetime) -> Optional[CrewMember]:
        crew = self.db.query(CrewMember).filter(CrewMember.actor_id == actor_id).first()
        if crew is None or not crew.active or not crew.license_valid_on(now.date()):
            return None
        return crew

    def _check_pilot(self, record: FlightRecord, actor_id: str, now: datetime):
        if actor_id != record.pilot_in_command_id:
            raise ForbiddenError(f"Actor {actor_id} is not the pilot in command of record {record.id}")
        crew = self._active_crew(actor_id, now)
        if crew is None or crew.role != CrewRole.PILOT:
            raise ForbiddenError(f"Actor {actor_id} is not an active pilot with a valid license")

    def _check_operator(self, record: FlightRecord, actor_id: str, now: datetime):
        crew = self._active_crew(actor_id, now)
        if (
            crew is None
            or crew.role != CrewRole.OPERATOR_SIGNATORY
            or crew.operator_id != record.aircraft.operator_id
        ):
            raise ForbiddenError(
                f"Actor {actor_id} is not an active signatory of the operator of aircraft "
                f"{record.aircraft.registration}"
            )

    def _new_signature(
        self,
        record: FlightRecord,
        kind: SignatureKind,
        scope: HashScope,
        actor_id: str,
        origin_ip: Optional[str],
        client_string: Optional[str],
        now: datetime,
    ) -> Signature:
        content_hash = hash_record(record, scope)
        return Signature(
            flight_record=record,
            actor_id=actor_id,
            kind=kind,
            signed_at=now,
            content_hash=content_hash,
            hash_scope=scope,
            origin_ip=origin_ip,
            client_string=client_string,
            signature_value=self.signer.sign_hash(content_hash),
            key_id=self.signer.get_key_id(),
        )

    def _record_failure(self, operation: str, record_id: int, actor_id: str, error: ComplianceError, now: datetime):
        self.db.rollback()
        self.audit.record(
            operation,
            ENTITY_TYPE,
            record_id,
            actor_id=actor_id,
            after={"error_kind": error.kind},
            success=False,
            error=error.reason,
            now=now,
        )
        self.db.commit()

    def _commit_signature(self, operation: str, record_id: int, actor_id: str, kind: SignatureKind, now: datetime):
        try:
            self.db.commit()
        except (IntegrityError, StaleDataError) as e:
            conflict = ConflictError(f"Record {record_id} was signed concurrently by another actor")
            logger.warning(f"Concurrent {kind.value} signature on record {record_id}: {e}")
            signatures_total.labels(kind=kind.value, outcome="conflict").inc()
            self._record_failure(operation, record_id, actor_id, conflict, now)
            raise conflict from e

    def sign_as_pilot(
        self,
        record_id: int,
        actor_id: str,
        origin_ip: Optional[str] = None,
        client_string: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Signature:
        """Seal items I-XII with the pilot in command's signature."""
        now = now or utcnow()
        operation = "sign_pilot"
        try:
            record = self._load(record_id)
            before = record.summary()
            self._check_pilot(record, actor_id, now)
            if record.cancelled_at is not None:
                raise ConflictError(f"Record {record_id} is cancelled")
            if record.pilot_signed:
                raise ConflictError(f"Record {record_id} is already pilot-signed")

            signature = self._new_signature(
                record, SignatureKind.PILOT, HashScope.PILOT_SECTION, actor_id, origin_ip, client_string, now
            )
            self.records.append_signature(signature)

            record.pilot_signed = True
            record.pilot_signed_at = now
            record.record_hash = signature.content_hash
            record.updated_by = actor_id
            self.records.save(record)

            after = record.summary()
            after["signature_id"] = signature.id
            self.audit.record(operation, ENTITY_TYPE, record.id, actor_id=actor_id, before=before, after=after, now=now)
        except ComplianceError as e:
            signatures_total.labels(kind="pilot", outcome=e.kind).inc()
            self._record_failure(operation, record_id, actor_id, e, now)
            raise
        except (IntegrityError, StaleDataError) as e:
            conflict = ConflictError(f"Record {record_id} was signed concurrently by another actor")
            signatures_total.labels(kind="pilot", outcome="conflict").inc()
            self._record_failure(operation, record_id, actor_id, conflict, now)
            raise conflict from e

        self._commit_signature(operation, record_id, actor_id, SignatureKind.PILOT, now)
        signatures_total.labels(kind="pilot", outcome="success").inc()
        logger.info(f"Record {record_id} pilot-signed by {actor_id}", extra={"record_id": record_id})
        return signature

    def sign_as_operator(
        self,
        record_id: int,
        actor_id: str,
        origin_ip: Optional[str] = None,
        client_string: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Signature:
        """Seal the full record with the operator signature, within the tier deadline."""
        now = now or utcnow()
        operation = "sign_operator"
        try:
            record = self._load(record_id)
            before = record.summary()
            self._check_operator(record, actor_id, now)
            if record.cancelled_at is not None or not record.pilot_signed:
                raise ConflictError(f"Record {record_id} has no pilot signature")
            if record.operator_signed:
                raise ConflictError(f"Record {record_id} is already operator-signed")

            tier = record.aircraft.regulatory_tier
            deadline = deadlines.deadline_at(record.pilot_signed_at, tier)
            if now > deadline:
                raise DeadlineExceededError(
                    f"Operator signing deadline for record {record_id} passed at {deadline.isoformat()}",
                    deadline_at=deadline,
                    overdue_days=deadlines.overdue_days(record.pilot_signed_at, tier, now),
                )

            signature = self._new_signature(
                record, SignatureKind.OPERATOR, HashScope.FULL_RECORD, actor_id, origin_ip, client_string, now
            )
            self.records.append_signature(signature)

            record.operator_signed = True
            record.operator_signed_at = now
            record.record_hash = signature.content_hash
            record.updated_by = actor_id
            self.records.save(record)

            after = record.summary()
            after["signature_id"] = signature.id
            self.audit.record(operation, ENTITY_TYPE, record.id, actor_id=actor_id, before=before, after=after, now=now)
        except ComplianceError as e:
            signatures_total.labels(kind="operator", outcome=e.kind).inc()
            self._record_failure(operation, record_id, actor_id, e, now)
            raise
        except (IntegrityError, StaleDataError) as e:
            conflict = ConflictError(f"Record {record_id} was signed concurrently by another actor")
            signatures_total.labels(kind="operator", outcome="conflict").inc()
            self._record_failure(operation, record_id, actor_id, conflict, now)
            raise conflict from e

        self._commit_signature(operation, record_id, actor_id, SignatureKind.OPERATOR, now)
        signatures_total.labels(kind="operator", outcome="success").inc()
        logger.info(f"Record {record_id} operator-signed by {actor_id}", extra={"record_id": record_id})
        return signature

    def check_signature(self, signature: Signature) -> Optional[str]:
        """Side-effect free check; returns the failure reason or None."""
        if hash_record(signature.flight_record, signature.hash_scope) != signature.content_hash:
            return "content hash mismatch"
        if not self.signer.verify_hash(signature.content_hash, signature.signature_value):
            return "signature verification failed"
        return None

    def validate_integrity(self, signature_id: int, now: Optional[datetime] = None) -> bool:
        """Recompute the signed hash and verify the stored signature.

        A mismatch is recorded, puts the record on sync hold and alerts the
        regulator liaison and administrators. Nothing is repaired.
        """
        now = now or utcnow()
        signature = self.db.query(Signature).filter(Signature.id == signature_id).first()
        if signature is None:
            raise NotFoundError(f"Signature {signature_id} not found")

        record = signature.flight_record
        recomputed = hash_record(record, signature.hash_scope)
        reason = self.check_signature(signature)
        if reason is None:
            return True

        before = record.summary()
        record.sync_on_hold = True
        self.records.save(record)
        self.audit.record(
            "integrity_violation",
            ENTITY_TYPE,
            record.id,
            before=before,
            after={
                "signature_id": signature.id,
                "kind": signature.kind.value,
                "stored_hash": signature.content_hash,
                "recomputed_hash": recomputed,
                "sync_on_hold": True,
            },
            success=False,
            error=reason,
            now=now,
        )
        self.db.commit()
        integrity_violations_total.inc()

        logger.critical(
            f"Integrity violation on record {record.id} signature {signature.id}: {reason}",
            extra={"record_id": record.id, "signature_id": signature.id},
        )
        subject = f"Integrity violation on flight record {record.id}"
        body = (
            f"The {signature.kind.value} signature {signature.id} no longer matches record "
            f"{record.id} ({reason}). Regulator sync is on hold pending manual review."
        )
        for group in (self.settings.regulator_liaison_group, self.settings.administrators_group):
            self.notifier.notify(group, subject, body, severity=SEVERITY_CRITICAL)
        return False

    def list_signatures(self, record_id: int) -> list[Signature]:
        if self.records.get(record_id) is None:
            raise NotFoundError(f"Flight record {record_id} not found")
        return (
            self.db.query(Signature)
            .filter(Signature.flight_record_id == record_id)
            .order_by(Signature.id.asc())
            .all()
        )
