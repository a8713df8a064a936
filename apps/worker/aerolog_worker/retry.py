"""Retry countdowns for the regulator sync task."""

DEFAULT_SYNC_RETRY_DELAYS = (300, 600, 1800, 3600)


def sync_retry_countdown(retries: int, delays=DEFAULT_SYNC_RETRY_DELAYS) -> int:
    """Seconds to wait before retry number ``retries + 1``; the last tier repeats."""
    if not delays:
        return 0
    return delays[min(retries, len(delays) - 1)]
