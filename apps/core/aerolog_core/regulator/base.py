"""Regulator client interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass
class SyncOutcome:
    ok: bool
    attempted_at: datetime
    external_id: Optional[str] = None
    error: Optional[str] = None


@dataclass
class ConnectivityStatus:
    ok: bool
    last_seen: Optional[datetime] = None
    error: Optional[str] = None


class RegulatorClient(ABC):
    """Submits completed records to the regulator system.

    Implementations raise ``TransientError`` for retryable faults and
    ``ExternalUnavailableError`` when the regulator cannot be reached; a
    rejected submission is returned as a not-ok ``SyncOutcome``.
    """

    mode = "abstract"

    @abstractmethod
    def submit(self, record) -> SyncOutcome:
        """Submit a completed record."""

    @abstractmethod
    def check_connectivity(self) -> ConnectivityStatus:
        """Probe the regulator endpoint."""
