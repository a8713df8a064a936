"""Pytest configuration and fixtures."""

import fnmatch
import os
import time
from datetime import date, datetime, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from aerolog_core.cache.store import CacheStore
from aerolog_core.db.base import Base
from aerolog_core.models import Aircraft, CrewMember, CrewRole, FlightNature, Operator, RegulatoryTier
from aerolog_core.notifications.base import Notifier
from aerolog_core.records.service import FlightRecordService
from aerolog_core.regulator.base import ConnectivityStatus, RegulatorClient, SyncOutcome
from aerolog_core.settings import Settings
from aerolog_core.signing.service import SignatureService
from aerolog_core.signing.signer import DevLocalSigner

# Use test database URL from environment or default to SQLite in-memory
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite:///:memory:")

T0 = datetime(2026, 3, 2, 12, 0, 0)


@pytest.fixture(scope="function")
def db():
    """Create a test database session."""
    if TEST_DATABASE_URL.startswith("sqlite"):
        engine = create_engine(
            TEST_DATABASE_URL,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        engine = create_engine(TEST_DATABASE_URL)

    Base.metadata.create_all(engine)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(engine)


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None, environment="test")


@pytest.fixture(scope="session")
def signer(tmp_path_factory) -> DevLocalSigner:
    """One RSA key for the whole session; generation is slow."""
    return DevLocalSigner(key_path=str(tmp_path_factory.mktemp("keys") / "signing_key.pem"))


class FakeNotifier(Notifier):
    """Collects notices instead of sending them."""

    def __init__(self):
        self.sent = []

    def notify(self, recipient_group, subject, body, severity="info"):
        self.sent.append(
            {"group": recipient_group, "subject": subject, "body": body, "severity": severity}
        )

    def to_group(self, group):
        return [n for n in self.sent if n["group"] == group]


class FakeRegulatorClient(RegulatorClient):
    """Replays a script of outcomes; each entry is an exception or a bool."""

    mode = "database"

    def __init__(self, script=None, connectivity=None):
        self.script = list(script or [])
        self.connectivity = connectivity or ConnectivityStatus(ok=True, last_seen=T0)
        self.submitted = []

    def submit(self, record):
        self.submitted.append(record.id)
        step = self.script.pop(0) if self.script else True
        if isinstance(step, Exception):
            raise step
        if step:
            return SyncOutcome(ok=True, attempted_at=T0, external_id=f"REG-{record.id}")
        return SyncOutcome(ok=False, attempted_at=T0, error="Rejected (422): invalid aerodrome")

    def check_connectivity(self):
        return self.connectivity


class InMemoryCacheStore(CacheStore):
    """Dict-backed cache store with Redis TTL semantics."""

    def __init__(self):
        self.data = {}
        self.expiry = {}
        self.hits = 0
        self.misses = 0

    def _alive(self, key):
        deadline = self.expiry.get(key)
        if deadline is not None and deadline <= time.monotonic():
            self.data.pop(key, None)
            self.expiry.pop(key, None)
        return key in self.data

    def get(self, key):
        if self._alive(key):
            self.hits += 1
            return self.data[key]
        self.misses += 1
        return None

    def set(self, key, value, ttl=None):
        self.data[key] = value
        if ttl is None:
            self.expiry.pop(key, None)
        else:
            self.expiry[key] = time.monotonic() + ttl

    def delete(self, key):
        existed = self._alive(key)
        self.data.pop(key, None)
        self.expiry.pop(key, None)
        return existed

    def keys(self, pattern, limit):
        return [k for k in list(self.data) if fnmatch.fnmatch(k, pattern)][:limit]

    def ttl(self, key):
        if not self._alive(key):
            return -2
        if key not in self.expiry:
            return -1
        return int(self.expiry[key] - time.monotonic())

    def stats(self):
        return {
            "used_memory": 3 * 1024 * 1024,
            "keyspace_hits": self.hits,
            "keyspace_misses": self.misses,
            "key_count": len(self.data),
        }


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def cache_store() -> InMemoryCacheStore:
    return InMemoryCacheStore()


@pytest.fixture
def operator(db: Session) -> Operator:
    operator = Operator(name="Test Air", notification_group="ops-test-air")
    db.add(operator)
    db.commit()
    return operator


@pytest.fixture
def make_aircraft(db: Session, operator: Operator):
    counter = {"n": 0}

    def _make(tier=RegulatoryTier.B, active=True) -> Aircraft:
        counter["n"] += 1
        aircraft = Aircraft(
            registration=f"PT-T{counter['n']:02d}",
            operator_id=operator.id,
            regulatory_tier=tier,
            active=active,
        )
        db.add(aircraft)
        db.commit()
        return aircraft

    return _make


@pytest.fixture
def aircraft(make_aircraft) -> Aircraft:
    return make_aircraft(RegulatoryTier.B)


@pytest.fixture
def pilot(db: Session, operator: Operator) -> CrewMember:
    member = CrewMember(
        actor_id="pilot.silva",
        full_name="Ana Silva",
        license_code="PLT-1234",
        operator_id=operator.id,
        role=CrewRole.PILOT,
        license_valid_until=date(2030, 1, 1),
    )
    db.add(member)
    db.commit()
    return member


@pytest.fixture
def signatory(db: Session, operator: Operator) -> CrewMember:
    member = CrewMember(
        actor_id="ops.costa",
        full_name="Bruno Costa",
        operator_id=operator.id,
        role=CrewRole.OPERATOR_SIGNATORY,
    )
    db.add(member)
    db.commit()
    return member


def record_fields(pilot_id="pilot.silva", flight_date=date(2026, 3, 1)) -> dict:
    """Fields of a plausible completed flight."""
    departure = datetime.combine(flight_date, datetime.min.time()) + timedelta(hours=9)
    return {
        "pilot_in_command_id": pilot_id,
        "pilot_in_command_function": "PIC",
        "flight_date": flight_date,
        "departure_aerodrome": "SBSP",
        "arrival_aerodrome": "SBRJ",
        "engine_start_utc": departure,
        "takeoff_utc": departure + timedelta(minutes=10),
        "landing_utc": departure + timedelta(minutes=65),
        "engine_stop_utc": departure + timedelta(minutes=72),
        "ifr_time_hours": Decimal("0.80"),
        "fuel_quantity": Decimal("420.00"),
        "fuel_unit": "L",
        "flight_nature": FlightNature.COMMERCIAL,
        "persons_on_board": 4,
        "cargo_quantity": Decimal("35.5"),
        "cargo_unit": "kg",
    }


@pytest.fixture
def record_service(db: Session, settings) -> FlightRecordService:
    return FlightRecordService(db, settings)


@pytest.fixture
def signature_service(db: Session, signer, notifier, settings) -> SignatureService:
    return SignatureService(db, signer, notifier, settings)


@pytest.fixture
def make_record(record_service, aircraft, pilot):
    def _make(target=None, flight_date=date(2026, 3, 1), **overrides):
        fields = record_fields(pilot.actor_id, flight_date)
        fields.update(overrides)
        return record_service.create_draft((target or aircraft).id, pilot.actor_id, fields, now=T0)

    return _make


@pytest.fixture
def make_completed(make_record, signature_service, pilot, signatory):
    """Draft, pilot-signed at T0 and operator-signed one hour later."""

    def _make(target=None, flight_date=date(2026, 3, 1), signed_at=T0):
        record = make_record(target, flight_date)
        signature_service.sign_as_pilot(record.id, pilot.actor_id, now=signed_at)
        signature_service.sign_as_operator(record.id, signatory.actor_id, now=signed_at + timedelta(hours=1))
        return record

    return _make
