"""Operator signing deadline calculation.

The deadline runs from the pilot signature. Remaining days are floored and
overdue days are rounded up, so a record is overdue exactly when ``now`` is
past the deadline and shows at least one overdue day from that moment.
"""

import math
from datetime import datetime, timedelta
from typing import Optional

from aerolog_core.models.fleet import RegulatoryTier
from aerolog_core.utils.time import as_naive_utc

TIER_DEADLINE_DAYS = {
    RegulatoryTier.A: 2,
    RegulatoryTier.B: 15,
    RegulatoryTier.C: 30,
}

NEAR_DEADLINE_DAYS = 2


def deadline_days(tier) -> int:
    return TIER_DEADLINE_DAYS[RegulatoryTier(tier)]


def deadline_at(pilot_signed_at: Optional[datetime], tier) -> Optional[datetime]:
    if pilot_signed_at is None:
        return None
    return as_naive_utc(pilot_signed_at) + timedelta(days=deadline_days(tier))


def remaining_days(pilot_signed_at: Optional[datetime], tier, now: datetime) -> int:
    """Whole days left before the deadline, floored, never negative."""
    deadline = deadline_at(pilot_signed_at, tier)
    if deadline is None:
        return 0
    delta = deadline - as_naive_utc(now)
    return max(0, delta.days)


def overdue_days(pilot_signed_at: Optional[datetime], tier, now: datetime) -> int:
    """Whole days past the deadline, rounded up; 0 while within the deadline."""
    deadline = deadline_at(pilot_signed_at, tier)
    if deadline is None:
        return 0
    past = (as_naive_utc(now) - deadline).total_seconds()
    if past <= 0:
        return 0
    return math.ceil(past / 86400)


def is_overdue(pilot_signed_at: Optional[datetime], tier, now: datetime) -> bool:
    return overdue_days(pilot_signed_at, tier, now) > 0


def is_near_deadline(
    pilot_signed_at: Optional[datetime],
    tier,
    now: datetime,
    within_days: int = NEAR_DEADLINE_DAYS,
) -> bool:
    if pilot_signed_at is None or is_overdue(pilot_signed_at, tier, now):
        return False
    return remaining_days(pilot_signed_at, tier, now) <= within_days
