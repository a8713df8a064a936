"""Tests for compliance window cache maintenance."""

import json
import random
from datetime import date, timedelta
from unittest.mock import Mock

import pytest

from aerolog_core.cache.window import ComplianceWindowReader, cache_key
from aerolog_core.jobs.budget import RunBudget
from aerolog_core.jobs.cache import CacheMaintenanceJob
from aerolog_core.models import RegulatoryTier
from aerolog_core.records.repository import FlightRecordRepository
from conftest import T0

NOW = T0 + timedelta(days=1)


@pytest.fixture
def job(db, cache_store, settings) -> CacheMaintenanceJob:
    return CacheMaintenanceJob(db, cache_store, settings, rng=random.Random(7))


def _cached_count(cache_store, aircraft_id):
    return len(json.loads(cache_store.get(cache_key(aircraft_id)))["records"])


def test_cache_key_format():
    assert cache_key(42) == "compliance:aircraft:42:30d"


def test_reader_populates_on_miss(db, make_record, aircraft, cache_store, settings):
    make_record()
    make_record(flight_date=date(2025, 11, 1))
    reader = ComplianceWindowReader(db, cache_store, settings)

    entry = reader.get(aircraft.id, NOW)

    assert entry["count"] == 1
    assert cache_store.ttl(cache_key(aircraft.id)) > 0
    assert reader.get(aircraft.id, NOW) == entry


def test_window_covers_last_30_days_up_to_today(db, make_record, aircraft):
    make_record(flight_date=date(2026, 2, 1))
    inside = [make_record(flight_date=date(2026, 2, 2)), make_record(flight_date=date(2026, 3, 3))]
    make_record(flight_date=date(2026, 3, 4))

    records = FlightRecordRepository(db).find_in_compliance_window(aircraft.id, NOW)

    assert [r.id for r in records] == [r.id for r in inside]
    assert FlightRecordRepository(db).count_in_compliance_window(aircraft.id, NOW) == 2


def test_reader_excludes_cancelled(db, make_record, record_service, aircraft, cache_store, settings, pilot):
    record = make_record()
    make_record()
    record_service.cancel(record.id, pilot.actor_id, "Duplicate", now=T0)

    entry = ComplianceWindowReader(db, cache_store, settings).get(aircraft.id, NOW)
    assert entry["count"] == 1


def test_evict_removes_keys_without_ttl(job, cache_store):
    cache_store.set("compliance:aircraft:1:30d", "{}", ttl=None)
    cache_store.set("compliance:aircraft:2:30d", "{}", ttl=3600)
    cache_store.set("report:cache:2026-03-01", "{}", ttl=None)

    assert job.evict() == 1
    assert cache_store.get("compliance:aircraft:1:30d") is None
    assert cache_store.get("compliance:aircraft:2:30d") == "{}"
    assert cache_store.get("report:cache:2026-03-01") == "{}"


def test_evict_removes_negative_ttl(job):
    store = Mock()
    store.keys.return_value = ["compliance:aircraft:1:30d", "compliance:aircraft:2:30d"]
    store.ttl.side_effect = [-3, -2]
    store.delete.return_value = True
    job.store = store

    assert job.evict() == 1
    store.delete.assert_called_once_with("compliance:aircraft:1:30d")


def test_preheat_populates_missing_entries(job, db, make_aircraft, make_record, aircraft, cache_store):
    other = make_aircraft(RegulatoryTier.A)
    make_aircraft(RegulatoryTier.C, active=False)
    make_record()
    cache_store.set(cache_key(other.id), json.dumps({"records": []}), ttl=3600)

    result = job.preheat(NOW)

    assert result == {"populated": 1, "failures": 0}
    assert _cached_count(cache_store, aircraft.id) == 1
    assert _cached_count(cache_store, other.id) == 0


def test_preheat_continues_after_failure(job, make_aircraft, aircraft):
    make_aircraft(RegulatoryTier.A)
    job.window.populate = Mock(side_effect=[RuntimeError("redis down"), {"count": 0}])

    assert job.preheat(NOW) == {"populated": 1, "failures": 1}


def test_preheat_stops_on_budget(job, make_aircraft, aircraft):
    make_aircraft(RegulatoryTier.A)
    assert job.preheat(NOW, budget=RunBudget(0))["populated"] == 1


def test_verify_integrity_repairs_count_mismatch(job, db, make_record, aircraft, cache_store):
    """Test that a stale entry with M != N records is rebuilt with exactly N."""
    for _ in range(3):
        make_record()
    stale = {"records": [{"id": 1}], "count": 1}
    cache_store.set(cache_key(aircraft.id), json.dumps(stale), ttl=3600)

    result = job.verify_integrity(NOW)

    assert result == {"checked": 1, "repaired": [aircraft.id]}
    assert _cached_count(cache_store, aircraft.id) == 3


def test_verify_integrity_absent_entry_is_consistent(job, aircraft, cache_store):
    assert job.verify_integrity(NOW) == {"checked": 1, "repaired": []}
    assert cache_store.get(cache_key(aircraft.id)) is None


def test_verify_integrity_undecodable_entry_is_repaired(job, make_record, aircraft, cache_store):
    make_record()
    cache_store.set(cache_key(aircraft.id), "not-json{", ttl=3600)

    assert job.verify_integrity(NOW)["repaired"] == [aircraft.id]
    assert _cached_count(cache_store, aircraft.id) == 1


def test_verify_integrity_samples_at_most_configured_size(job, make_aircraft, settings):
    settings.cache_integrity_sample_size = 3
    for _ in range(5):
        make_aircraft()

    assert job.verify_integrity(NOW)["checked"] == 3


def test_repair_is_idempotent(job, make_record, aircraft, cache_store):
    make_record()
    make_record()

    job.repair(aircraft.id, NOW)
    first = cache_store.get(cache_key(aircraft.id))
    job.repair(aircraft.id, NOW)

    assert cache_store.get(cache_key(aircraft.id)) == first
    assert _cached_count(cache_store, aircraft.id) == 2


def test_performance_report_written_with_ttl(job, cache_store, settings):
    cache_store.set("compliance:aircraft:1:30d", "{}", ttl=3600)
    cache_store.get("compliance:aircraft:1:30d")
    cache_store.get("compliance:aircraft:9:30d")

    report = job.performance_report(NOW)

    assert report["memory_mb"] == 3.0
    assert report["hit_rate"] == 50.0
    key = f"report:cache:{NOW.date().isoformat()}"
    assert json.loads(cache_store.get(key)) == report
    assert 0 < cache_store.ttl(key) <= settings.cache_report_ttl_seconds


def test_performance_report_failure_is_logged_not_raised(job):
    job.store = Mock()
    job.store.stats.side_effect = ConnectionError("INFO unavailable")

    assert job.performance_report(NOW) is None
