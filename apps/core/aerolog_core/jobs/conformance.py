"""Weekly conformance audit over completed records."""

import logging
import random
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from aerolog_core import deadlines
from aerolog_core.audit.service import AuditLogService
from aerolog_core.models import FlightRecord, SignatureKind
from aerolog_core.models.flight_record import MANDATORY_FIELDS
from aerolog_core.notifications.base import SEVERITY_CRITICAL, Notifier
from aerolog_core.records.repository import FlightRecordRepository
from aerolog_core.settings import get_settings
from aerolog_core.signing.service import SignatureService
from aerolog_core.utils.time import utcnow

logger = logging.getLogger(__name__)


class ConformanceAuditJob:
    """Scores a sample of completed records against the signing rules."""

    name = "conformance_audit"

    def __init__(
        self,
        db: Session,
        signatures: SignatureService,
        notifier: Notifier,
        settings=None,
        rng: Optional[random.Random] = None,
    ):
        self.db = db
        self.signatures = signatures
        self.notifier = notifier
        self.settings = settings or get_settings()
        self.records = FlightRecordRepository(db)
        self.audit = AuditLogService(db)
        self.rng = rng or random.Random()

    def _sample(self) -> list[FlightRecord]:
        completed = self.records.find_completed()
        size = self.settings.conformance_sample_size
        if len(completed) <= size:
            return completed
        return self.rng.sample(completed, size)

    def _signature_intact(self, record: FlightRecord, kind: SignatureKind) -> bool:
        signature = record.signature_of(kind)
        return signature is not None and self.signatures.check_signature(signature) is None

    def _within_deadline(self, record: FlightRecord) -> bool:
        deadline = deadlines.deadline_at(record.pilot_signed_at, record.aircraft.regulatory_tier)
        return (
            deadline is not None
            and record.operator_signed_at is not None
            and record.operator_signed_at <= deadline
        )

    def _mandatory_present(self, record: FlightRecord) -> bool:
        return all(getattr(record, name) not in (None, "") for name in MANDATORY_FIELDS)

    def _signing_order(self, record: FlightRecord) -> bool:
        if not record.operator_signed:
            return True
        return (
            record.pilot_signed
            and record.pilot_signed_at is not None
            and record.operator_signed_at is not None
            and record.pilot_signed_at <= record.operator_signed_at
        )

    def _raise_integrity_incidents(self, record: FlightRecord, checks: dict, now: datetime) -> int:
        """Hand every broken signature to validate_integrity, which holds the record and alerts."""
        raised = 0
        pairs = ((SignatureKind.PILOT, "pilot_signature"), (SignatureKind.OPERATOR, "operator_signature"))
        for kind, check in pairs:
            signature = record.signature_of(kind)
            if signature is not None and not checks[check]:
                if not self.signatures.validate_integrity(signature.id, now=now):
                    raised += 1
        return raised

    def check_record(self, record: FlightRecord) -> dict:
        return {
            "pilot_signature": self._signature_intact(record, SignatureKind.PILOT),
            "operator_signature": self._signature_intact(record, SignatureKind.OPERATOR),
            "deadline": self._within_deadline(record),
            "mandatory_fields": self._mandatory_present(record),
            "signing_order": self._signing_order(record),
        }

    def run(self, now: Optional[datetime] = None) -> dict:
        now = now or utcnow()
        sample = self._sample()

        passed = 0
        total = 0
        failures = []
        violations = 0
        for record in sample:
            checks = self.check_record(record)
            total += len(checks)
            passed += sum(1 for ok in checks.values() if ok)
            failed = sorted(name for name, ok in checks.items() if not ok)
            if failed:
                failures.append({"record_id": record.id, "failed": failed})
            violations += self._raise_integrity_incidents(record, checks, now)

        chain_ok, chain_error = self.audit.verify_chain()
        total += 1
        passed += 1 if chain_ok else 0

        score = round(passed / total * 100, 2)
        report = {
            "date": now.date().isoformat(),
            "sampled": len(sample),
            "checks": total,
            "passed": passed,
            "score": score,
            "audit_chain_ok": chain_ok,
            "audit_chain_error": chain_error,
            "integrity_violations": violations,
            "failures": failures,
        }

        self.audit.record(
            "conformance_audit",
            "system",
            None,
            after={"sampled": len(sample), "checks": total, "passed": passed, "score": score},
            success=score >= self.settings.conformance_critical_threshold,
            now=now,
        )
        self.db.commit()

        if score < self.settings.conformance_critical_threshold:
            logger.critical(f"Conformance score {score}% below threshold", extra={"job": self.name})
            body = (
                f"Conformance score: {score}% (threshold {self.settings.conformance_critical_threshold}%)\n"
                f"Records sampled: {len(sample)}\n"
                f"Failed checks: {total - passed}\n"
                f"Audit chain intact: {chain_ok}"
            )
            for group in (self.settings.regulator_liaison_group, self.settings.administrators_group):
                self.notifier.notify(group, "Conformance audit below threshold", body, severity=SEVERITY_CRITICAL)
        else:
            logger.info(f"Conformance score {score}%", extra={"job": self.name})
        return report
