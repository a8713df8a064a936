"""Wiring of jobs and their collaborators for one database session."""

from dataclasses import dataclass

from sqlalchemy.orm import Session

from aerolog_core.cache.store import get_cache_store
from aerolog_core.jobs.cache import CacheMaintenanceJob
from aerolog_core.jobs.conformance import ConformanceAuditJob
from aerolog_core.jobs.deadlines import DeadlineMonitorJob
from aerolog_core.jobs.sync import RegulatorSyncJob
from aerolog_core.notifications.base import get_notifier
from aerolog_core.regulator.clients import get_regulator_client
from aerolog_core.settings import get_settings
from aerolog_core.signing.service import SignatureService
from aerolog_core.signing.signer import get_signer


@dataclass
class JobContext:
    signatures: SignatureService
    deadlines: DeadlineMonitorJob
    sync: RegulatorSyncJob
    cache: CacheMaintenanceJob
    conformance: ConformanceAuditJob


def build_jobs(db: Session, notifier=None, client=None, store=None, signer=None, settings=None) -> JobContext:
    """Build every job over ``db``; collaborators not given come from settings."""
    settings = settings or get_settings()
    notifier = notifier or get_notifier()
    signer = signer or get_signer()
    signatures = SignatureService(db, signer, notifier, settings)

    return JobContext(
        signatures=signatures,
        deadlines=DeadlineMonitorJob(db, notifier, settings),
        sync=RegulatorSyncJob(db, client or get_regulator_client(settings), signatures, notifier, settings),
        cache=CacheMaintenanceJob(db, store or get_cache_store(), settings),
        conformance=ConformanceAuditJob(db, signatures, notifier, settings),
    )
