"""
Lifecycle engine — decides whether a lead is overdue for follow-up.

Pure functions only: no I/O, no clock reads unless the caller omits `now`.
The same code path serves the single-lead recompute and the bulk sweep.

Idle time is measured in calendar days: both timestamps are truncated to
midnight before differencing, so two evaluations on the same day against the
same last contact always agree.
"""
from datetime import datetime, date
from typing import Mapping, Optional

from leadcrm.config import DEFAULT_MAX_IDLE_DAYS


def _local_date(value) -> date:
    """Calendar date of a datetime (aware values are converted to local time)."""
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone()
        return value.date()
    return value


def idle_days(reference_time, now) -> int:
    """Whole calendar days between the last contact and now."""
    return (_local_date(now) - _local_date(reference_time)).days


def threshold_for(intention_level: str, config: Mapping[str, int]) -> int:
    """Configured max idle days for a level, or the conservative default."""
    value = config.get(intention_level) if config else None
    if isinstance(value, int) and not isinstance(value, bool) and value > 0:
        return value
    return DEFAULT_MAX_IDLE_DAYS


def reference_time(lead, latest_entry=None):
    """Last contact time — the latest journal entry, else the lead intake time."""
    if latest_entry is not None and latest_entry.occurred_at is not None:
        return latest_entry.occurred_at
    return lead.lead_time


def is_tracked(lead) -> bool:
    """Ended leads are out of tracking even if enable_followup was left on."""
    return bool(lead.enable_followup) and not lead.end_followup


def is_overdue(lead, latest_entry, config: Mapping[str, int], now: Optional[datetime] = None) -> bool:
    """
    True when the lead needs follow-up right now.

    Ended or disabled leads are never overdue, whatever their idle time.
    The threshold is inclusive: idle_days == threshold is overdue.
    """
    if not is_tracked(lead):
        return False
    ref = reference_time(lead, latest_entry)
    if ref is None:
        return False
    now = now or datetime.now()
    return idle_days(ref, now) >= threshold_for(lead.intention_level, config)
