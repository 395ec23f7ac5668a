"""
Urgency classification for brief items.

Maps a handful of situational factors to one of five tiers. Rules are evaluated
top to bottom and the first match wins, so the order below is load-bearing.
"""

import math
from datetime import datetime, timezone
from typing import Optional

from ..models import Urgency, UrgencyFactors, utc_now

SECONDS_PER_DAY = 24 * 60 * 60


def _as_utc(value: datetime) -> datetime:
    """Naive datetimes are treated as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def days_since(timestamp: datetime, now: Optional[datetime] = None) -> int:
    """Whole days between timestamp and now (absolute value, floored)."""
    now = _as_utc(now or utc_now())
    delta = abs((now - _as_utc(timestamp)).total_seconds())
    return int(delta // SECONDS_PER_DAY)


def days_until(due_date: datetime, now: Optional[datetime] = None) -> int:
    """Whole days until due_date, floored (negative once past due)."""
    now = _as_utc(now or utc_now())
    return math.floor((_as_utc(due_date) - now).total_seconds() / SECONDS_PER_DAY)


def classify(factors: UrgencyFactors, now: Optional[datetime] = None) -> Urgency:
    """
    Classify urgency from factors.

    Args:
        factors: Situational factors derived by a provider adapter
        now: Evaluation time (defaults to current UTC time)

    Returns:
        The first matching tier, fyi when nothing matches
    """
    now = _as_utc(now or utc_now())
    blocking = factors.blocking_count or 0

    # Urgent: blocking several people, past due, or sprint at risk while blocking
    if blocking >= 2:
        return Urgency.URGENT
    if factors.due_date is not None and _as_utc(factors.due_date) < now:
        return Urgency.URGENT
    if factors.sprint_risk and blocking > 0:
        return Urgency.URGENT

    # Attention: blocking one person, waiting 2+ days, or due within two days
    if blocking == 1:
        return Urgency.ATTENTION
    if factors.days_waiting is not None and factors.days_waiting >= 2:
        return Urgency.ATTENTION
    if factors.due_date is not None:
        # Due later today floors to 0 and falls through
        remaining = days_until(factors.due_date, now)
        if 0 < remaining <= 2:
            return Urgency.ATTENTION

    if factors.is_follow_up:
        return Urgency.FOLLOWUP

    if factors.is_org_signal:
        return Urgency.ORG

    return Urgency.FYI
