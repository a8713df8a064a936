"""Compliance window cache entries: one per aircraft, trailing N days of records."""

import json
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from aerolog_core.cache.store import CacheStore
from aerolog_core.records.repository import FlightRecordRepository
from aerolog_core.settings import get_settings
from aerolog_core.utils.time import utcnow

logger = logging.getLogger(__name__)

KEY_PREFIX = "compliance:"


def cache_key(aircraft_id: int, days: int = 30) -> str:
    return f"{KEY_PREFIX}aircraft:{aircraft_id}:{days}d"


def _record_entry(record) -> dict:
    return {
        "id": record.id,
        "sequence_number": record.sequence_number,
        "flight_date": record.flight_date.isoformat(),
        "state": record.state.value,
        "pilot_signed": record.pilot_signed,
        "operator_signed": record.operator_signed,
        "synced_with_regulator": record.synced_with_regulator,
        "record_hash": record.record_hash,
    }


def decode_entry(raw: str) -> dict:
    """Parse a cached entry; raises ValueError when it is not a valid entry."""
    payload = json.loads(raw)
    if not isinstance(payload, dict) or not isinstance(payload.get("records"), list):
        raise ValueError("Cache entry has no record list")
    return payload


class ComplianceWindowReader:
    """Reads compliance window entries, populating them from the database on a miss."""

    def __init__(self, db: Session, store: CacheStore, settings=None):
        self.db = db
        self.store = store
        self.settings = settings or get_settings()
        self.records = FlightRecordRepository(db)

    @property
    def days(self) -> int:
        return self.settings.compliance_window_days

    def key(self, aircraft_id: int) -> str:
        return cache_key(aircraft_id, self.days)

    def build(self, aircraft_id: int, now: datetime) -> dict:
        records = self.records.find_in_compliance_window(aircraft_id, now, self.days)
        return {
            "aircraft_id": aircraft_id,
            "window_days": self.days,
            "generated_at": now.isoformat(),
            "count": len(records),
            "records": [_record_entry(r) for r in records],
        }

    def populate(self, aircraft_id: int, now: Optional[datetime] = None) -> dict:
        now = now or utcnow()
        entry = self.build(aircraft_id, now)
        self.store.set(self.key(aircraft_id), json.dumps(entry), ttl=self.settings.cache_entry_ttl_seconds)
        return entry

    def get(self, aircraft_id: int, now: Optional[datetime] = None) -> dict:
        """Cached entry for the aircraft, built and stored if absent or unreadable."""
        raw = self.store.get(self.key(aircraft_id))
        if raw is not None:
            try:
                return decode_entry(raw)
            except ValueError:
                logger.warning(f"Discarding unreadable cache entry for aircraft {aircraft_id}")
        return self.populate(aircraft_id, now)
