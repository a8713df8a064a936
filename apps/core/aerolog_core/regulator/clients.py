"""HTTP regulator clients for the database and ledger submission modes."""

import logging
from typing import Optional

import httpx

from aerolog_core.errors import ExternalUnavailableError, TransientError
from aerolog_core.models.flight_record import PILOT_SECTION_FIELDS, POST_PILOT_FIELDS
from aerolog_core.regulator.base import ConnectivityStatus, RegulatorClient, SyncOutcome
from aerolog_core.settings import get_settings
from aerolog_core.signing.hasher import normalize_value
from aerolog_core.utils.metrics import regulator_submit_duration
from aerolog_core.utils.time import utcnow

logger = logging.getLogger(__name__)


class HttpRegulatorClient(RegulatorClient):
    """Shared transport and error mapping over httpx."""

    path = "/"

    def __init__(
        self,
        base_url: str,
        api_token: Optional[str] = None,
        timeout: float = 10.0,
        connect_timeout: float = 5.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_token = api_token
        self.timeout = httpx.Timeout(timeout, connect=connect_timeout)
        self._transport = transport

    def _headers(self) -> dict:
        headers = {"Content-Type": "application/json"}
        if self.api_token:
            headers["Authorization"] = f"Bearer {self.api_token}"
        return headers

    def _client(self) -> httpx.Client:
        return httpx.Client(
            base_url=self.base_url,
            timeout=self.timeout,
            headers=self._headers(),
            transport=self._transport,
        )

    def build_payload(self, record) -> dict:
        raise NotImplementedError

    def submit(self, record) -> SyncOutcome:
        attempted_at = utcnow()
        payload = self.build_payload(record)

        try:
            with regulator_submit_duration.labels(mode=self.mode).time():
                with self._client() as client:
                    response = client.post(self.path, json=payload)
        except httpx.TimeoutException as e:
            raise TransientError(f"Regulator timed out: {e}") from e
        except httpx.ConnectError as e:
            raise ExternalUnavailableError(f"Regulator unreachable: {e}") from e
        except httpx.HTTPError as e:
            raise TransientError(f"Regulator transport error: {e}") from e

        if response.status_code >= 500:
            raise TransientError(f"Regulator returned {response.status_code}")
        if response.status_code >= 400:
            logger.warning(
                f"Regulator rejected record {record.id} with {response.status_code}",
                extra={"record_id": record.id, "mode": self.mode},
            )
            return SyncOutcome(
                ok=False,
                attempted_at=attempted_at,
                error=f"Rejected ({response.status_code}): {response.text[:500]}",
            )

        return SyncOutcome(ok=True, attempted_at=attempted_at, external_id=self._reference(response))

    def _reference(self, response: httpx.Response) -> Optional[str]:
        """Regulator reference from an accepted response; the body format is not guaranteed."""
        try:
            body = response.json()
        except ValueError:
            logger.warning(
                f"Regulator accepted submission with a non-JSON body ({response.status_code})",
                extra={"mode": self.mode},
            )
            return None
        if not isinstance(body, dict):
            return None
        reference = body.get("reference") or body.get("id")
        return str(reference) if reference is not None else None

    def check_connectivity(self) -> ConnectivityStatus:
        try:
            with self._client() as client:
                response = client.get("/health")
        except httpx.HTTPError as e:
            return ConnectivityStatus(ok=False, error=str(e) or e.__class__.__name__)

        if response.status_code >= 400:
            return ConnectivityStatus(ok=False, error=f"Health check returned {response.status_code}")
        return ConnectivityStatus(ok=True, last_seen=utcnow())


class DatabaseSubmissionClient(HttpRegulatorClient):
    """Pushes the full record content to the regulator database."""

    mode = "database"
    path = "/flight-records"

    def build_payload(self, record) -> dict:
        fields = {
            name: normalize_value(getattr(record, name))
            for name in PILOT_SECTION_FIELDS + POST_PILOT_FIELDS
        }
        return {
            "aircraft_registration": record.aircraft.registration,
            "record_hash": record.record_hash,
            "pilot_signed_at": normalize_value(record.pilot_signed_at),
            "operator_signed_at": normalize_value(record.operator_signed_at),
            "fields": fields,
        }


class LedgerAnchorClient(HttpRegulatorClient):
    """Anchors only the record hash and identity on the regulator ledger."""

    mode = "ledger"
    path = "/ledger/anchors"

    def build_payload(self, record) -> dict:
        return {
            "aircraft_registration": record.aircraft.registration,
            "sequence_number": record.sequence_number,
            "record_hash": record.record_hash,
            "operator_signed_at": normalize_value(record.operator_signed_at),
        }


def get_regulator_client(settings=None, transport: Optional[httpx.BaseTransport] = None) -> RegulatorClient:
    """Get regulator client for the configured submission mode."""
    settings = settings or get_settings()
    mode = settings.regulator_submission_mode.lower()
    kwargs = dict(
        base_url=settings.regulator_base_url,
        api_token=settings.regulator_api_token,
        timeout=settings.regulator_timeout_seconds,
        connect_timeout=settings.regulator_connect_timeout_seconds,
        transport=transport,
    )

    if mode == "database":
        return DatabaseSubmissionClient(**kwargs)
    elif mode == "ledger":
        return LedgerAnchorClient(**kwargs)
    else:
        raise ValueError(f"Unknown regulator submission mode: {mode}")
