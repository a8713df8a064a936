"""Tests for operator signing deadline calculation."""

from datetime import datetime, timedelta

import pytest

from aerolog_core import deadlines
from aerolog_core.models import RegulatoryTier

T0 = datetime(2026, 3, 2, 12, 0, 0)


@pytest.mark.parametrize(
    "tier,days",
    [(RegulatoryTier.A, 2), (RegulatoryTier.B, 15), (RegulatoryTier.C, 30), ("B", 15)],
)
def test_deadline_days(tier, days):
    assert deadlines.deadline_days(tier) == days


@pytest.mark.parametrize(
    "tier,elapsed,remaining,overdue",
    [
        (RegulatoryTier.A, timedelta(0), 2, 0),
        (RegulatoryTier.A, timedelta(days=1, hours=12), 0, 0),
        (RegulatoryTier.A, timedelta(days=2), 0, 0),
        (RegulatoryTier.A, timedelta(days=2, seconds=1), 0, 1),
        (RegulatoryTier.A, timedelta(days=3), 0, 1),
        (RegulatoryTier.A, timedelta(days=3, hours=1), 0, 2),
        (RegulatoryTier.B, timedelta(days=10), 5, 0),
        (RegulatoryTier.B, timedelta(days=13, hours=6), 1, 0),
        (RegulatoryTier.B, timedelta(days=16), 0, 1),
        (RegulatoryTier.C, timedelta(days=29), 1, 0),
        (RegulatoryTier.C, timedelta(days=45), 0, 15),
    ],
)
def test_remaining_and_overdue(tier, elapsed, remaining, overdue):
    now = T0 + elapsed
    assert deadlines.remaining_days(T0, tier, now) == remaining
    assert deadlines.overdue_days(T0, tier, now) == overdue
    assert deadlines.is_overdue(T0, tier, now) == (overdue > 0)


def test_overdue_exactly_when_past_deadline():
    """Test that the deadline instant itself is still within the deadline."""
    deadline = deadlines.deadline_at(T0, RegulatoryTier.B)
    assert deadline == T0 + timedelta(days=15)
    assert not deadlines.is_overdue(T0, RegulatoryTier.B, deadline)
    assert deadlines.is_overdue(T0, RegulatoryTier.B, deadline + timedelta(microseconds=1))


def test_unsigned_record_is_not_tracked():
    assert deadlines.deadline_at(None, RegulatoryTier.A) is None
    assert deadlines.remaining_days(None, RegulatoryTier.A, T0) == 0
    assert deadlines.overdue_days(None, RegulatoryTier.A, T0) == 0
    assert not deadlines.is_overdue(None, RegulatoryTier.A, T0)
    assert not deadlines.is_near_deadline(None, RegulatoryTier.A, T0)


def test_near_deadline_window():
    """Test near-deadline classification excludes overdue records."""
    assert deadlines.is_near_deadline(T0, RegulatoryTier.A, T0)
    assert not deadlines.is_near_deadline(T0, RegulatoryTier.B, T0 + timedelta(days=10))
    assert deadlines.is_near_deadline(T0, RegulatoryTier.B, T0 + timedelta(days=13))
    assert not deadlines.is_near_deadline(T0, RegulatoryTier.B, T0 + timedelta(days=16))
    assert deadlines.is_near_deadline(T0, RegulatoryTier.C, T0 + timedelta(days=25), within_days=5)
