"""Compliance window cache maintenance: eviction, preheat, integrity repair and reporting."""

import json
import logging
import random
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from aerolog_core.cache.store import CacheStore
from aerolog_core.cache.window import KEY_PREFIX, ComplianceWindowReader, decode_entry
from aerolog_core.jobs.budget import RunBudget
from aerolog_core.records.repository import FlightRecordRepository
from aerolog_core.settings import get_settings
from aerolog_core.utils.metrics import cache_evictions_total, cache_repairs_total
from aerolog_core.utils.time import utcnow

logger = logging.getLogger(__name__)


class CacheMaintenanceJob:
    """Keeps compliance window entries consistent with the database.

    Entries are never patched in place: a mismatched entry is deleted and
    rebuilt from the source of truth.
    """

    name = "cache_maintenance"

    def __init__(self, db: Session, store: CacheStore, settings=None, rng: Optional[random.Random] = None):
        self.db = db
        self.store = store
        self.settings = settings or get_settings()
        self.records = FlightRecordRepository(db)
        self.window = ComplianceWindowReader(db, store, self.settings)
        self.rng = rng or random.Random()

    def evict(self) -> int:
        """Delete compliance keys with no expiry or an expired TTL."""
        evicted = 0
        for key in self.store.keys(f"{KEY_PREFIX}*", self.settings.cache_evict_scan_limit):
            ttl = self.store.ttl(key)
            # -2 means the key expired between SCAN and TTL
            if ttl == -1 or ttl < -2:
                if self.store.delete(key):
                    evicted += 1
        cache_evictions_total.inc(evicted)
        logger.info(f"Cache eviction removed {evicted} keys", extra={"job": self.name})
        return evicted

    def preheat(self, now: Optional[datetime] = None, budget: Optional[RunBudget] = None) -> dict:
        """Populate the window entry of every active aircraft that has none."""
        now = now or utcnow()
        budget = budget or RunBudget.unlimited()
        populated = 0
        failures = 0
        for aircraft in self.records.active_aircraft():
            try:
                if self.store.get(self.window.key(aircraft.id)) is None:
                    self.window.populate(aircraft.id, now)
                    populated += 1
            except Exception as e:
                failures += 1
                logger.error(f"Cache preheat failed for aircraft {aircraft.id}: {e}", exc_info=True)
            if budget.expired():
                logger.warning(f"Cache preheat stopped on budget after aircraft {aircraft.id}")
                break
        logger.info(
            f"Cache preheat populated {populated} entries, {failures} failures",
            extra={"job": self.name},
        )
        return {"populated": populated, "failures": failures}

    def is_consistent(self, aircraft_id: int, now: datetime) -> bool:
        """Compare the cached count with the database; absent entries are consistent."""
        raw = self.store.get(self.window.key(aircraft_id))
        if raw is None:
            return True
        try:
            entry = decode_entry(raw)
        except ValueError:
            logger.warning(f"Undecodable cache entry for aircraft {aircraft_id}")
            return False
        expected = self.records.count_in_compliance_window(aircraft_id, now, self.window.days)
        return len(entry["records"]) == expected

    def repair(self, aircraft_id: int, now: Optional[datetime] = None):
        """Delete the entry if present, then rebuild it if absent. Safe to repeat."""
        now = now or utcnow()
        key = self.window.key(aircraft_id)
        self.store.delete(key)
        if self.store.get(key) is None:
            self.window.populate(aircraft_id, now)
        cache_repairs_total.inc()
        logger.info(f"Cache entry repaired for aircraft {aircraft_id}", extra={"job": self.name})

    def verify_integrity(self, now: Optional[datetime] = None) -> dict:
        """Check a random sample of aircraft and repair inconsistent entries."""
        now = now or utcnow()
        aircraft = self.records.active_aircraft()
        sample_size = min(len(aircraft), self.settings.cache_integrity_sample_size)
        sample = self.rng.sample(aircraft, sample_size)

        repaired = []
        for item in sample:
            if not self.is_consistent(item.id, now):
                self.repair(item.id, now)
                repaired.append(item.id)

        if repaired:
            logger.warning(
                f"Cache integrity: repaired {len(repaired)} of {sample_size} sampled entries",
                extra={"job": self.name, "aircraft_ids": repaired},
            )
        return {"checked": sample_size, "repaired": repaired}

    def performance_report(self, now: Optional[datetime] = None) -> Optional[dict]:
        """Store memory, key count and hit rate under report:cache:{date}."""
        now = now or utcnow()
        try:
            stats = self.store.stats()
            hits = stats.get("keyspace_hits", 0)
            misses = stats.get("keyspace_misses", 0)
            lookups = hits + misses
            report = {
                "date": now.date().isoformat(),
                "memory_mb": round(stats.get("used_memory", 0) / (1024 * 1024), 2),
                "key_count": stats.get("key_count", 0),
                "hit_rate": round(hits / lookups * 100, 1) if lookups else 0.0,
            }
            self.store.set(
                f"report:cache:{report['date']}",
                json.dumps(report),
                ttl=self.settings.cache_report_ttl_seconds,
            )
        except Exception as e:
            logger.error(f"Cache performance report failed: {e}", exc_info=True)
            return None
        logger.info(f"Cache performance report: {report}", extra={"job": self.name})
        return report
