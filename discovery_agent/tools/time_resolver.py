"""
Resolve free-text visit times into concrete, bookable local timestamps.

A label such as "Wednesday afternoon", "Fri 10am" or "13:00" (or an
explicit ISO timestamp) is turned into an aware datetime in the business
timezone that:

- falls Monday to Friday between the opening and closing hour, and
- is at least the minimum lead time after "now".

Resolution only ever moves a candidate forward, so it always terminates.

Usage:
    start = resolve_time("Wednesday afternoon")
    when = format_when_text(start)  # "Wednesday at 2:00 PM"
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from discovery_agent.config import settings

logger = logging.getLogger(__name__)

WEEKDAY_ALIASES: dict[str, int] = {
    "mon": 0, "monday": 0,
    "tue": 1, "tues": 1, "tuesday": 1,
    "wed": 2, "weds": 2, "wednesday": 2,
    "thu": 3, "thur": 3, "thurs": 3, "thursday": 3,
    "fri": 4, "friday": 4,
    "sat": 5, "saturday": 5,
    "sun": 6, "sunday": 6,
}

PART_OF_DAY: dict[str, tuple[int, int]] = {
    "morning": (10, 0),
    "noon": (12, 0),
    "midday": (12, 0),
    "afternoon": (14, 0),
    "evening": (17, 0),
    "night": (17, 0),
    "tonight": (17, 0),
}

RELATIVE_DAYS: dict[str, int] = {"today": 0, "tomorrow": 1}

DEFAULT_TIME: tuple[int, int] = (14, 0)

_WORD = re.compile(r"[a-z]+")
_TIME_TOKEN = re.compile(
    r"\b(\d{1,2})(?::(\d{2}))?\s*(a\.?m\.?|p\.?m\.?)?(?!\d|st\b|nd\b|rd\b|th\b)",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class ParsedLabel:
    """Weekday (0=Monday) and wall-clock time extracted from a label."""
    weekday: Optional[int]
    hour: int
    minute: int
    day_offset: Optional[int] = None


def _parse_time_token(label: str) -> Optional[tuple[int, int]]:
    for match in _TIME_TOKEN.finditer(label):
        hour = int(match.group(1))
        minute = int(match.group(2) or 0)
        meridiem = (match.group(3) or "").lower().replace(".", "")
        if minute > 59:
            continue
        if meridiem:
            if not 1 <= hour <= 12:
                continue
            if meridiem == "pm" and hour != 12:
                hour += 12
            elif meridiem == "am" and hour == 12:
                hour = 0
        elif hour > 23:
            continue
        elif 1 <= hour <= 7 and match.group(2) is None:
            # "Friday at 3" means the afternoon for a daytime visit.
            hour += 12
        return hour, minute
    return None


def parse_label(label: str) -> ParsedLabel:
    """Extract weekday and time from a free-text label.

    Examples:
        >>> parse_label("Wednesday afternoon")
        ParsedLabel(weekday=2, hour=14, minute=0, day_offset=None)
        >>> parse_label("Fri 10:30am")
        ParsedLabel(weekday=4, hour=10, minute=30, day_offset=None)
    """
    text = (label or "").lower()
    words = _WORD.findall(text)

    weekday = next((WEEKDAY_ALIASES[w] for w in words if w in WEEKDAY_ALIASES), None)
    day_offset = next((RELATIVE_DAYS[w] for w in words if w in RELATIVE_DAYS), None)

    time = _parse_time_token(text)
    if time is None:
        time = next((PART_OF_DAY[w] for w in words if w in PART_OF_DAY), DEFAULT_TIME)

    return ParsedLabel(weekday=weekday, hour=time[0], minute=time[1], day_offset=day_offset)


def _at_open(dt: datetime) -> datetime:
    return dt.replace(hour=settings.business.open_hour, minute=0, second=0, microsecond=0)


def next_business_day_open(dt: datetime) -> datetime:
    """Opening time on the first weekday strictly after ``dt``'s date."""
    candidate = dt + timedelta(days=1)
    while candidate.weekday() >= 5:
        candidate += timedelta(days=1)
    return _at_open(candidate)


def clamp_to_business_window(dt: datetime) -> datetime:
    """Move ``dt`` forward into the Monday-Friday business window.

    Weekend instants go to Monday at opening time. Times before opening
    move to opening time the same day. Times after closing (including
    the closing hour with nonzero minutes) roll to the next business day
    at opening time.
    """
    open_hour = settings.business.open_hour
    close_hour = settings.business.close_hour

    if dt.weekday() >= 5:
        return _at_open(dt + timedelta(days=7 - dt.weekday()))
    if dt.hour < open_hour:
        return _at_open(dt)
    if dt.hour > close_hour or (dt.hour == close_hour and (dt.minute or dt.second)):
        return next_business_day_open(dt)
    return dt


def _parse_iso(start_iso: str, zone: ZoneInfo) -> datetime:
    parsed = datetime.fromisoformat(start_iso.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=zone)
    return parsed.astimezone(zone)


def resolve_time(
    label: Optional[str] = None,
    start_iso: Optional[str] = None,
    now: Optional[datetime] = None,
    tz: Optional[str] = None,
) -> datetime:
    """Resolve a label or ISO timestamp into a bookable local datetime.

    Args:
        label: Free-text day/time such as "Wednesday 5pm".
        start_iso: Explicit timestamp; takes precedence over ``label``.
        now: Reference instant (defaults to the current time).
        tz: IANA timezone name (defaults to the business timezone).

    Raises:
        ValueError: If ``start_iso`` is not a valid ISO timestamp.
    """
    zone = ZoneInfo(tz or settings.business.timezone)
    if now is None:
        now = datetime.now(zone)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=zone)
    else:
        now = now.astimezone(zone)

    weekday_named = False
    if start_iso:
        candidate = _parse_iso(start_iso, zone)
    else:
        parsed = parse_label(label or "")
        candidate = now.replace(hour=parsed.hour, minute=parsed.minute, second=0, microsecond=0)
        if parsed.weekday is not None:
            weekday_named = True
            candidate += timedelta(days=(parsed.weekday - now.weekday()) % 7)
        elif parsed.day_offset:
            candidate += timedelta(days=parsed.day_offset)

    candidate = clamp_to_business_window(candidate)

    lead = timedelta(hours=settings.business.min_lead_hours)
    # Elapsed time in UTC; same-zone subtraction ignores DST offset changes.
    issued = now.astimezone(timezone.utc)
    while candidate.astimezone(timezone.utc) - issued < lead:
        if weekday_named:
            candidate += timedelta(days=7)
        else:
            candidate = next_business_day_open(candidate)
        candidate = clamp_to_business_window(candidate)

    logger.debug("Resolved %r / %r to %s", label, start_iso, candidate.isoformat())
    return candidate


def resolve_time_iso(
    label: Optional[str] = None,
    start_iso: Optional[str] = None,
    now: Optional[datetime] = None,
    tz: Optional[str] = None,
) -> str:
    return resolve_time(label=label, start_iso=start_iso, now=now, tz=tz).isoformat()


def format_when_text(dt: datetime) -> str:
    """Human form used in confirmations, e.g. "Wednesday at 5:00 PM"."""
    hour12 = dt.hour % 12 or 12
    meridiem = "AM" if dt.hour < 12 else "PM"
    return f"{dt:%A} at {hour12}:{dt:%M} {meridiem}"


def when_text_from_iso(start_iso: str, tz: Optional[str] = None) -> str:
    """Format a server timestamp in the business timezone.

    Raises:
        ValueError: If ``start_iso`` is not a valid ISO timestamp.
    """
    zone = ZoneInfo(tz or settings.business.timezone)
    return format_when_text(_parse_iso(start_iso, zone))
