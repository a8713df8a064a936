"""Error taxonomy for the compliance engine.

Every rejected operation raises a ``ComplianceError`` subclass carrying a
stable ``kind`` and a human-readable ``reason``. The calling layer maps the
kind to its own response format.
"""


class ComplianceError(Exception):
    """Base exception for compliance engine errors."""

    kind = "compliance_error"
    retryable = False

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)

    def to_dict(self) -> dict:
        """Serialize to a stable error payload."""
        return {"kind": self.kind, "reason": self.reason}


class NotFoundError(ComplianceError):
    """Raised when a record, signature or aircraft does not exist."""

    kind = "not_found"


class ValidationError(ComplianceError):
    """Raised when a request names fields the flight record does not have."""

    kind = "validation"


class ForbiddenError(ComplianceError):
    """Raised when the actor is not allowed to apply the signature."""

    kind = "forbidden"


class ConflictError(ComplianceError):
    """Raised on an invalid state transition (double sign, edit after sign)."""

    kind = "conflict"


class DeadlineExceededError(ComplianceError):
    """Raised when an operator signature is attempted past the tier deadline."""

    kind = "deadline_exceeded"

    def __init__(self, reason: str, deadline_at=None, overdue_days: int = 0):
        self.deadline_at = deadline_at
        self.overdue_days = overdue_days
        super().__init__(reason)

    def to_dict(self) -> dict:
        payload = super().to_dict()
        payload["deadline_at"] = self.deadline_at.isoformat() if self.deadline_at else None
        payload["overdue_days"] = self.overdue_days
        return payload


class IntegrityViolationError(ComplianceError):
    """Raised when a stored content hash no longer matches the record."""

    kind = "integrity_violation"

    def __init__(self, reason: str, record_id: int | None = None, signature_id: int | None = None):
        self.record_id = record_id
        self.signature_id = signature_id
        super().__init__(reason)


class ExternalUnavailableError(ComplianceError):
    """Raised when the regulator system cannot be reached."""

    kind = "external_unavailable"
    retryable = True


class TransientError(ComplianceError):
    """Raised on a retryable infrastructure fault (timeout, 5xx, lock wait)."""

    kind = "transient"
    retryable = True
