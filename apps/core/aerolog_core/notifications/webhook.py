"""Webhook notifier with HMAC-signed payloads."""

import hashlib
import hmac
import json
import logging
import time
from typing import Optional

import httpx

from aerolog_core.errors import TransientError
from aerolog_core.notifications.base import SEVERITY_INFO, Notifier

logger = logging.getLogger(__name__)


class WebhookNotifier(Notifier):
    """Posts notices as JSON to a single endpoint that fans out to groups."""

    def __init__(
        self,
        url: str,
        secret: str,
        timeout: float = 10,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.url = url
        self.secret = secret
        self.timeout = timeout
        self._transport = transport

    def _compute_signature(self, payload: bytes, timestamp: str) -> str:
        """Compute HMAC signature for payload with replay protection."""
        message = f"{timestamp}.{payload.decode()}"
        return hmac.new(self.secret.encode(), message.encode(), hashlib.sha256).hexdigest()

    def notify(self, recipient_group: str, subject: str, body: str, severity: str = SEVERITY_INFO):
        payload = {
            "recipient_group": recipient_group,
            "subject": subject,
            "body": body,
            "severity": severity,
        }
        payload_bytes = json.dumps(payload, sort_keys=True).encode()
        timestamp = str(int(time.time()))

        headers = {
            "Content-Type": "application/json",
            "X-Aerolog-Signature": f"sha256={self._compute_signature(payload_bytes, timestamp)}",
            "X-Aerolog-Timestamp": timestamp,
            "X-Aerolog-Severity": severity,
        }

        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                response = client.post(self.url, content=payload_bytes, headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"Notification to {recipient_group} failed: {e}")
            raise TransientError(f"Notification delivery failed: {e}") from e

        if response.status_code >= 500:
            raise TransientError(f"Notification endpoint returned {response.status_code}")
        if response.status_code >= 400:
            logger.error(
                f"Notification to {recipient_group} rejected with {response.status_code}",
                extra={"response_body": response.text[:1000]},
            )
