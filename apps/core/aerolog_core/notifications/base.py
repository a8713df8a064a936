"""Notifier interface and provider selection."""

import logging
from abc import ABC, abstractmethod

from aerolog_core.settings import get_settings

logger = logging.getLogger(__name__)

SEVERITY_INFO = "info"
SEVERITY_WARNING = "warning"
SEVERITY_CRITICAL = "critical"


class Notifier(ABC):
    """Delivers notices to recipient groups."""

    @abstractmethod
    def notify(self, recipient_group: str, subject: str, body: str, severity: str = SEVERITY_INFO):
        """Send a notice to every member of recipient_group."""


class LoggingNotifier(Notifier):
    """Development notifier that writes notices to the log."""

    def notify(self, recipient_group: str, subject: str, body: str, severity: str = SEVERITY_INFO):
        level = logging.CRITICAL if severity == SEVERITY_CRITICAL else logging.INFO
        logger.log(
            level,
            f"[{recipient_group}] {subject}: {body}",
            extra={"recipient_group": recipient_group, "severity": severity},
        )


def get_notifier() -> Notifier:
    """Get notifier instance based on settings."""
    settings = get_settings()
    provider = settings.notification_provider.lower()

    if provider == "log":
        return LoggingNotifier()
    elif provider == "webhook":
        from aerolog_core.notifications.webhook import WebhookNotifier

        if not settings.notification_webhook_url:
            raise ValueError("NOTIFICATION_WEBHOOK_URL required for webhook notifications")
        return WebhookNotifier(
            url=settings.notification_webhook_url,
            secret=settings.notification_webhook_secret or settings.secret_key,
            timeout=settings.notification_timeout_seconds,
        )
    else:
        raise ValueError(f"Unknown notification provider: {provider}")
