"""Lead-time classification of a pickup relative to now.

A pickup closer than the configured threshold is "immediate"; anything
else, including a missing or unparsable date, is a "reservation".
"""

import datetime
import math
import re
from typing import Optional

from vtc.models import LeadTimeMode, LeadTimeResult

_TIME_RE = re.compile(r"^\s*(\d{1,2})\s*[:hH]\s*(\d{2})\s*$", re.ASCII)
_HOUR_RE = re.compile(r"\s*(\d+)", re.ASCII)


def parse_pickup_datetime(pickup_date: str, pickup_time: str) -> Optional[datetime.datetime]:
    """Combine ISO date and HH:MM time into a naive local datetime.

    Time defaults to midnight. Returns None when the date is missing or the
    combination does not parse.
    """
    date_text = (pickup_date or "").strip()
    if not date_text:
        return None
    time_text = (pickup_time or "").strip() or "00:00"
    try:
        return datetime.datetime.fromisoformat(f"{date_text}T{time_text}")
    except ValueError:
        return None


def parse_pickup_hour(pickup_time: str) -> Optional[int]:
    """Leading hour digits of an HH:MM or HHhMM string, or None."""
    match = _HOUR_RE.match(pickup_time or "")
    if not match:
        return None
    return int(match.group(1))


def classify_lead_time(
    pickup_date: str,
    pickup_time: str,
    threshold_minutes: float,
    now: Optional[datetime.datetime] = None,
) -> LeadTimeResult:
    """Classify a pickup as immediate or reservation.

    Must be called for every computation batch; the result depends on ``now``.
    """
    threshold = max(0.0, float(threshold_minutes or 0))
    pickup = parse_pickup_datetime(pickup_date, pickup_time)
    if pickup is None:
        return LeadTimeResult(mode=LeadTimeMode.RESERVATION, threshold_minutes=threshold)

    if now is None:
        now = datetime.datetime.now()
    if pickup.tzinfo is not None and now.tzinfo is None:
        now = now.astimezone()
    elif pickup.tzinfo is None and now.tzinfo is not None:
        now = now.astimezone().replace(tzinfo=None)

    delta = (pickup - now).total_seconds() / 60
    if not math.isfinite(delta):
        return LeadTimeResult(mode=LeadTimeMode.RESERVATION, threshold_minutes=threshold)

    mode = LeadTimeMode.IMMEDIATE if delta < threshold else LeadTimeMode.RESERVATION
    return LeadTimeResult(mode=mode, threshold_minutes=threshold, delta_minutes=delta)


def normalize_time_to_5_minutes(value: str) -> str:
    """Floor an HH:MM (or HHhMM) time to a 5-minute step.

    Anything that is not a valid time is returned unchanged (trimmed).
    """
    text = (value or "").strip()
    match = _TIME_RE.match(text)
    if not match:
        return text
    hh, mm = int(match.group(1)), int(match.group(2))
    if hh > 23 or mm > 59:
        return text
    return f"{hh:02d}:{mm // 5 * 5:02d}"
