# events/datetime_utils.py
"""
Centralized date handling for the crew engine.

Events are scheduled by calendar date in the crew's local time zone
(settings.TIME_ZONE). Every "has this event happened yet?" decision goes
through these helpers so the auto-finalization path and the API agree on
what "today" means.
"""
from datetime import date, datetime
from typing import Optional

from django.utils import timezone


def now() -> datetime:
    """
    Get current datetime (timezone-aware).

    This is the single source of truth for "now" in the engine; tests patch it.
    """
    return timezone.now()


def today() -> date:
    """Current calendar date in the crew's local time zone."""
    return timezone.localdate(now())


def is_event_past(event) -> bool:
    """An event is past once its date is strictly before today."""
    if not event.event_date:
        return False
    return event.event_date < today()


def days_until_event(event) -> Optional[int]:
    """Get number of days until the event date (0 for today or past)."""
    if not event.event_date:
        return None
    return max(0, (event.event_date - today()).days)
