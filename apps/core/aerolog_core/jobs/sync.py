"""Regulator synchronization of completed flight records."""

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from aerolog_core.audit.service import AuditLogService
from aerolog_core.errors import ExternalUnavailableError, TransientError
from aerolog_core.jobs.budget import RunBudget
from aerolog_core.models import FlightRecord, SignatureKind
from aerolog_core.notifications.base import SEVERITY_CRITICAL, SEVERITY_INFO, Notifier
from aerolog_core.records.repository import FlightRecordRepository
from aerolog_core.regulator.base import RegulatorClient
from aerolog_core.settings import get_settings
from aerolog_core.signing.service import SignatureService
from aerolog_core.utils.metrics import sync_attempts_total
from aerolog_core.utils.time import utcnow

logger = logging.getLogger(__name__)

SYNC_OPERATION = "regulator_sync"


@dataclass
class SyncRunResult:
    succeeded: int = 0
    failed: int = 0
    held: int = 0
    eligible: int = 0
    stopped_on_budget: bool = False


class RegulatorSyncJob:
    """Submits completed, unsynced records to the regulator."""

    name = "regulator_sync"

    def __init__(
        self,
        db: Session,
        client: RegulatorClient,
        signatures: SignatureService,
        notifier: Notifier,
        settings=None,
    ):
        self.db = db
        self.client = client
        self.signatures = signatures
        self.notifier = notifier
        self.settings = settings or get_settings()
        self.records = FlightRecordRepository(db)
        self.audit = AuditLogService(db)

    def _integrity_ok(self, record: FlightRecord, now: datetime) -> bool:
        signature = record.signature_of(SignatureKind.OPERATOR)
        if signature is None:
            return False
        return self.signatures.validate_integrity(signature.id, now=now)

    def _mark_failed(self, record: FlightRecord, error: str, now: datetime):
        record.last_sync_error = error
        self.records.save(record)
        self.audit.record(
            SYNC_OPERATION,
            "flight_record",
            record.id,
            after={"attempt": record.sync_attempts, "mode": self.client.mode},
            success=False,
            error=error,
            now=now,
        )
        self.db.commit()
        sync_attempts_total.labels(mode=self.client.mode, outcome="failed").inc()

    def _sync_one(self, record: FlightRecord, now: datetime) -> bool:
        """Submit one record. Returns True on success; ExternalUnavailableError propagates."""
        record.sync_attempts = (record.sync_attempts or 0) + 1
        record.last_sync_attempt_at = now
        self.records.save(record)
        self.db.commit()

        try:
            outcome = self.client.submit(record)
        except TransientError as e:
            self._mark_failed(record, e.reason, now)
            return False
        except ExternalUnavailableError as e:
            self._mark_failed(record, e.reason, now)
            raise
        except Exception as e:
            logger.exception(f"Unexpected error submitting record {record.id}", extra={"job": self.name})
            self._mark_failed(record, f"Unexpected submission error: {e.__class__.__name__}: {e}", now)
            return False

        if not outcome.ok:
            self._mark_failed(record, outcome.error or "Rejected by regulator", now)
            return False

        record.synced_with_regulator = True
        record.synced_at = outcome.attempted_at
        record.regulator_reference = outcome.external_id
        record.last_sync_error = None
        self.records.save(record)
        self.audit.record(
            SYNC_OPERATION,
            "flight_record",
            record.id,
            after={
                "attempt": record.sync_attempts,
                "mode": self.client.mode,
                "regulator_reference": outcome.external_id,
                "record_hash": record.record_hash,
            },
            now=now,
        )
        self.db.commit()
        sync_attempts_total.labels(mode=self.client.mode, outcome="success").inc()
        return True

    def sync_pending(self, budget: Optional[RunBudget] = None, now: Optional[datetime] = None) -> SyncRunResult:
        """Submit every eligible record until the budget runs out."""
        budget = budget or RunBudget.unlimited()
        now = now or utcnow()
        pending = self.records.find_unsynced(self.settings.sync_max_attempts)
        result = SyncRunResult(eligible=len(pending))
        logger.info(f"Regulator sync: {len(pending)} eligible records", extra={"job": self.name})

        for record in pending:
            if not self._integrity_ok(record, now):
                result.held += 1
                sync_attempts_total.labels(mode=self.client.mode, outcome="held").inc()
            elif self._sync_one(record, now):
                result.succeeded += 1
            else:
                result.failed += 1

            if budget.expired():
                result.stopped_on_budget = True
                logger.warning(f"Regulator sync stopped on budget after record {record.id}")
                break

        logger.info(
            f"Regulator sync finished: {result.succeeded} succeeded, {result.failed} failed, "
            f"{result.held} held",
            extra={"job": self.name},
        )
        self._escalate_if_degraded(result)
        return result

    def _escalate_if_degraded(self, result: SyncRunResult):
        if result.failed > result.succeeded and result.eligible > self.settings.sync_failure_alert_threshold:
            logger.critical(
                f"Regulator sync degraded: {result.failed} failures vs {result.succeeded} successes",
                extra={"job": self.name},
            )
            self.notifier.notify(
                self.settings.administrators_group,
                "Regulator sync failures exceed successes",
                f"Eligible: {result.eligible}\nSucceeded: {result.succeeded}\n"
                f"Failed: {result.failed}\nHeld: {result.held}",
                severity=SEVERITY_CRITICAL,
            )

    def reprocess_failed(self, budget: Optional[RunBudget] = None, now: Optional[datetime] = None) -> SyncRunResult:
        """Reset failed records so they are retried, then run a sync pass."""
        now = now or utcnow()
        failed = self.records.find_failed_sync()

        groups = defaultdict(list)
        for record in failed:
            groups[record.last_sync_error].append(record.id)
        for error, record_ids in groups.items():
            logger.warning(
                f"Reprocessing {len(record_ids)} records failed with: {error}",
                extra={"job": self.name, "record_ids": record_ids},
            )

        for record in failed:
            before = {"last_sync_error": record.last_sync_error, "sync_attempts": record.sync_attempts}
            record.last_sync_error = None
            record.sync_attempts = 0
            self.records.save(record)
            self.audit.record(
                "sync_reset",
                "flight_record",
                record.id,
                before=before,
                after={"last_sync_error": None, "sync_attempts": 0},
                now=now,
            )
        self.db.commit()

        return self.sync_pending(budget, now)

    def check_connectivity(self, now: Optional[datetime] = None) -> dict:
        """Probe the regulator and re-validate records stuck unsynced."""
        now = now or utcnow()
        status = self.client.check_connectivity()
        if status.ok:
            logger.info("Regulator connectivity OK", extra={"job": self.name})
        else:
            logger.error(f"Regulator connectivity failed: {status.error}", extra={"job": self.name})
            for group in (self.settings.administrators_group, self.settings.regulator_liaison_group):
                self.notifier.notify(
                    group,
                    "Regulator unreachable",
                    f"Connectivity check at {now.isoformat()} failed: {status.error}",
                    severity=SEVERITY_CRITICAL,
                )

        cutoff = now - timedelta(hours=self.settings.sync_stale_after_hours)
        stale = self.records.find_stale_in_flight(cutoff)
        violations = 0
        for record in stale:
            if not record.sync_on_hold and not self._integrity_ok(record, now):
                violations += 1
        if stale:
            logger.warning(
                f"{len(stale)} complete records unsynced for more than "
                f"{self.settings.sync_stale_after_hours}h, {violations} failed validation",
                extra={"job": self.name},
            )
        return {"ok": status.ok, "error": status.error, "stale": len(stale), "violations": violations}

    def sync_report(self, now: Optional[datetime] = None) -> dict:
        """Sync success/failure counts over the last 24 hours, sent to management."""
        now = now or utcnow()
        entries = self.audit.find(operation=SYNC_OPERATION, since=now - timedelta(hours=24))
        succeeded = sum(1 for e in entries if e.success)
        failed = len(entries) - succeeded
        rate = round(succeeded / len(entries) * 100, 1) if entries else 0.0
        report = {
            "date": now.date().isoformat(),
            "succeeded": succeeded,
            "failed": failed,
            "success_rate": rate,
        }
        self.notifier.notify(
            self.settings.management_group,
            f"Daily regulator sync report {report['date']}",
            f"Succeeded: {succeeded}\nFailed: {failed}\nSuccess rate: {rate:.1f}%",
            severity=SEVERITY_INFO,
        )
        return report
