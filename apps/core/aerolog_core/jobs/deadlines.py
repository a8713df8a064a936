"""Deadline monitoring: sweep, near-deadline notices, overdue escalation and daily report."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from aerolog_core import deadlines
from aerolog_core.audit.service import AuditLogService
from aerolog_core.jobs.budget import RunBudget
from aerolog_core.models import FlightRecord
from aerolog_core.notifications.base import SEVERITY_CRITICAL, SEVERITY_WARNING, SEVERITY_INFO, Notifier
from aerolog_core.records.repository import FlightRecordRepository
from aerolog_core.settings import get_settings
from aerolog_core.utils.metrics import near_deadline_records, overdue_records
from aerolog_core.utils.time import utcnow

logger = logging.getLogger(__name__)

REPORT_CRITICAL_PERCENTAGE = 80.0


@dataclass
class SweepResult:
    near: list = field(default_factory=list)
    overdue: list = field(default_factory=list)
    normal: list = field(default_factory=list)


class DeadlineMonitorJob:
    """Tracks pilot-signed records against their operator signing deadline."""

    name = "deadline_monitor"

    def __init__(self, db: Session, notifier: Notifier, settings=None):
        self.db = db
        self.notifier = notifier
        self.settings = settings or get_settings()
        self.records = FlightRecordRepository(db)
        self.audit = AuditLogService(db)

    def sweep(self, now: Optional[datetime] = None) -> SweepResult:
        """Partition awaiting records into near-deadline, overdue and normal."""
        now = now or utcnow()
        result = SweepResult()
        for record in self.records.find_pilot_signed_not_operator_signed():
            tier = record.aircraft.regulatory_tier
            if deadlines.is_overdue(record.pilot_signed_at, tier, now):
                result.overdue.append(record)
            elif deadlines.is_near_deadline(
                record.pilot_signed_at, tier, now, self.settings.near_deadline_days
            ):
                result.near.append(record)
            else:
                result.normal.append(record)

        overdue_records.set(len(result.overdue))
        near_deadline_records.set(len(result.near))
        logger.info(
            f"Deadline sweep: {len(result.near)} near, {len(result.overdue)} overdue, "
            f"{len(result.normal)} normal",
            extra={"job": self.name},
        )
        return result

    def notify_near_deadline(self, now: Optional[datetime] = None, budget: Optional[RunBudget] = None) -> int:
        """Send one notice per near-deadline record to its operator group.

        No notified marker is kept, so repeated runs repeat the notice.
        """
        now = now or utcnow()
        budget = budget or RunBudget.unlimited()
        sent = 0
        for record in self.sweep(now).near:
            aircraft = record.aircraft
            remaining = deadlines.remaining_days(record.pilot_signed_at, aircraft.regulatory_tier, now)
            self.notifier.notify(
                aircraft.operator.notification_group,
                f"Operator signature due for {aircraft.registration} record #{record.sequence_number}",
                self._near_body(record, remaining),
                severity=SEVERITY_WARNING,
            )
            sent += 1
            if budget.expired():
                logger.warning(f"Near-deadline notification stopped on budget after {sent} notices")
                break
        return sent

    def escalate_overdue(self, now: Optional[datetime] = None, budget: Optional[RunBudget] = None) -> int:
        """Critical notice to operator and regulator liaison for each overdue record."""
        now = now or utcnow()
        budget = budget or RunBudget.unlimited()
        escalated = 0
        for record in self.records.find_overdue(now):
            aircraft = record.aircraft
            days = deadlines.overdue_days(record.pilot_signed_at, aircraft.regulatory_tier, now)
            subject = f"OVERDUE: {aircraft.registration} record #{record.sequence_number} ({days} days)"
            body = self._overdue_body(record, days)
            for group in (aircraft.operator.notification_group, self.settings.regulator_liaison_group):
                self.notifier.notify(group, subject, body, severity=SEVERITY_CRITICAL)

            first_flag = record.overdue_flagged_at is None
            if first_flag:
                record.overdue_flagged_at = now
                self.records.save(record)
            self.audit.record(
                "overdue_escalation",
                "flight_record",
                record.id,
                after={"overdue_days": days, "first_flag": first_flag},
                now=now,
            )
            self.db.commit()
            escalated += 1
            if budget.expired():
                logger.warning(f"Overdue escalation stopped on budget after {escalated} records")
                break
        return escalated

    def run_hourly(self, now: Optional[datetime] = None, budget: Optional[RunBudget] = None) -> dict:
        now = now or utcnow()
        result = self.sweep(now)
        escalated = self.escalate_overdue(now, budget)
        return {
            "near": len(result.near),
            "overdue": len(result.overdue),
            "normal": len(result.normal),
            "escalated": escalated,
        }

    def aircraft_status(self, aircraft, now: datetime) -> dict:
        records = self.records.find_in_compliance_window(aircraft.id, now, self.settings.compliance_window_days)
        total = len(records)
        complete = sum(1 for r in records if r.pilot_signed and r.operator_signed)
        pending = sum(1 for r in records if r.pilot_signed and not r.operator_signed)
        unsigned = sum(1 for r in records if not r.pilot_signed)
        flagged = sum(1 for r in records if r.overdue_flagged_at is not None and not r.operator_signed)
        return {
            "aircraft_id": aircraft.id,
            "registration": aircraft.registration,
            "tier": aircraft.regulatory_tier.value,
            "total": total,
            "complete": complete,
            "pending": pending,
            "unsigned": unsigned,
            "overdue_flagged": flagged,
            "percentage": round(complete / total * 100, 1) if total else 0.0,
        }

    def daily_report(self, now: Optional[datetime] = None) -> list[dict]:
        """Per-aircraft completion status, lowest completion first, sent to management."""
        now = now or utcnow()
        report = [self.aircraft_status(aircraft, now) for aircraft in self.records.active_aircraft()]
        report.sort(key=lambda row: (row["percentage"], row["registration"]))

        if report:
            self.notifier.notify(
                self.settings.management_group,
                f"Daily signature compliance report {now.date().isoformat()}",
                self._report_body(report, now),
                severity=SEVERITY_INFO,
            )
        logger.info(f"Daily compliance report generated for {len(report)} aircraft", extra={"job": self.name})
        return report

    def _near_body(self, record: FlightRecord, remaining: int) -> str:
        aircraft = record.aircraft
        return (
            f"Aircraft: {aircraft.registration}\n"
            f"Record: #{record.sequence_number}\n"
            f"Flight date: {record.flight_date.isoformat()}\n"
            f"Route: {record.departure_aerodrome or '-'} -> {record.arrival_aerodrome or '-'}\n"
            f"Tier: {aircraft.regulatory_tier.value} "
            f"({deadlines.deadline_days(aircraft.regulatory_tier)} days after the pilot signature)\n"
            f"Days remaining: {remaining}\n"
            "The operator must sign this record before the deadline."
        )

    def _overdue_body(self, record: FlightRecord, days: int) -> str:
        aircraft = record.aircraft
        return (
            f"Aircraft: {aircraft.registration}\n"
            f"Record: #{record.sequence_number}\n"
            f"Flight date: {record.flight_date.isoformat()}\n"
            f"Tier: {aircraft.regulatory_tier.value}\n"
            f"Days overdue: {days}\n"
            "The operator signature deadline has passed and the record can no longer be signed. "
            "Corrective action is required."
        )

    def _report_body(self, report: list[dict], now: datetime) -> str:
        critical = sum(1 for row in report if row["percentage"] < REPORT_CRITICAL_PERCENTAGE)
        average = sum(row["percentage"] for row in report) / len(report)
        lines = [
            f"Report date: {now.date().isoformat()}",
            f"Aircraft: {len(report)}",
            f"Below {REPORT_CRITICAL_PERCENTAGE:.0f}%: {critical}",
            f"Average completion: {average:.1f}%",
            "",
        ]
        for row in report:
            lines.append(
                f"{row['registration']} ({row['tier']}): {row['percentage']:.1f}% "
                f"{row['complete']}/{row['total']} complete, {row['pending']} pending, "
                f"{row['unsigned']} unsigned, {row['overdue_flagged']} overdue"
            )
        return "\n".join(lines)
