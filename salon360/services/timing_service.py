from __future__ import annotations

import math
from datetime import datetime, timezone

DEVIATION_SLOW_FACTOR = 1.3
DEVIATION_FAST_FACTOR = 0.7
URGENT_HOURS = 6
WARNING_HOURS = 24


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def elapsed_minutes(
    opened_at: datetime,
    closed_at: datetime | None = None,
    completed_at: datetime | None = None,
    *,
    now: datetime | None = None,
    rounded: bool = False,
) -> int:
    end = closed_at or completed_at or now or _now()
    minutes = (end - opened_at).total_seconds() / 60
    # End-of-day reports round to the nearest minute; live views truncate.
    diff = math.floor(minutes + 0.5) if rounded else math.floor(minutes)
    return max(0, diff)


def is_time_deviation_high(
    duration_min: int | None,
    opened_at: datetime,
    closed_at: datetime | None = None,
    completed_at: datetime | None = None,
    *,
    now: datetime | None = None,
    rounded: bool = False,
) -> bool:
    if not duration_min:
        return False

    elapsed = elapsed_minutes(opened_at, closed_at, completed_at, now=now, rounded=rounded)
    if closed_at is None and completed_at is None:
        return elapsed >= duration_min * DEVIATION_SLOW_FACTOR

    too_fast = elapsed <= duration_min * DEVIATION_FAST_FACTOR
    too_slow = elapsed >= duration_min * DEVIATION_SLOW_FACTOR
    return too_fast or too_slow


def format_running_duration(opened_at: datetime, *, now: datetime | None = None) -> str:
    diff = math.floor(((now or _now()) - opened_at).total_seconds())
    if diff < 0:
        return '0s'

    hours, remainder = divmod(diff, 3600)
    minutes, seconds = divmod(remainder, 60)
    if hours > 0:
        return f'{hours}h {minutes}m {seconds}s'
    if minutes > 0:
        return f'{minutes}m {seconds}s'
    return f'{seconds}s'


def hours_until(deadline: datetime, *, now: datetime | None = None) -> float:
    return (deadline - (now or _now())).total_seconds() / 3600


def urgency_level(hours_remaining: float) -> str:
    if hours_remaining < URGENT_HOURS:
        return 'urgent'
    if hours_remaining < WARNING_HOURS:
        return 'warning'
    return 'normal'


def format_hours_remaining(hours_remaining: float, *, suffix: str = '') -> str:
    """Render a positive hour count as ``N min``, ``Hh Mm`` or ``Hh``; negatives are ``Expired``."""
    if hours_remaining < 0:
        return 'Expired'
    if hours_remaining < 1:
        label = f'{math.floor(hours_remaining * 60)} min'
    else:
        hours = math.floor(hours_remaining)
        minutes = math.floor((hours_remaining - hours) * 60)
        label = f'{hours}h {minutes}m' if minutes > 0 else f'{hours}h'
    return f'{label} {suffix}' if suffix else label


def approval_deadline_label(
    approval_status: str | None,
    approval_deadline: datetime | None,
    *,
    now: datetime | None = None,
) -> str | None:
    if approval_deadline is None or approval_status != 'pending_approval':
        return None
    remaining = hours_until(approval_deadline, now=now)
    if remaining < 0:
        return 'Expired'
    return format_hours_remaining(remaining, suffix='remaining')


def queue_time_remaining(
    ticket_start_time: datetime | None,
    estimated_duration_min: int | None,
    *,
    now: datetime | None = None,
) -> str:
    if ticket_start_time is None or not estimated_duration_min:
        return ''

    elapsed = math.floor(((now or _now()) - ticket_start_time).total_seconds() / 60)
    remaining = max(0, estimated_duration_min - elapsed)
    if remaining == 0:
        return 'Finishing soon'
    if remaining < 60:
        return f'~{remaining}min'

    hours, minutes = divmod(remaining, 60)
    return f'~{hours}h {minutes}min' if minutes > 0 else f'~{hours}h'
