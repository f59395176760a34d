from __future__ import annotations

import calendar
import re
from datetime import date, datetime, timedelta, timezone
from typing import Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


MONTH_KEY_PATTERN = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")

DateLike = Union[date, datetime, str]


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 datetime string and normalize to UTC-naive datetime.

    - None / "" -> None
    - "YYYY-MM-DD" is midnight of that day, interpreted as UTC
    - "YYYY-MM-DDTHH:MM" (naive) is interpreted as UTC
    - "...Z" or "...+/-HH:MM" is converted to UTC and tzinfo is stripped
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None

    # Accept trailing Z
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"

    dt = datetime.fromisoformat(s)

    # Normalize to UTC-naive
    if dt.tzinfo is None:
        # interpret naive as UTC
        return dt.replace(tzinfo=None)

    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """
    Serializes datetime to ISO-8601 with trailing 'Z'.
    If dt is naive, it is treated as UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt_utc.isoformat().replace("+00:00", "Z")


def to_date_string(value: Optional[datetime]) -> Optional[str]:
    """Render a date-only business value as YYYY-MM-DD."""
    if value is None:
        return None
    return value.strftime("%Y-%m-%d")


# =============================================================================
# DATE-ONLY HELPERS
# =============================================================================

def truncate_to_utc_day(value: DateLike) -> datetime:
    """
    Truncate a date-like value to 00:00:00 of its UTC calendar day.

    Accepts a date, a datetime (naive is UTC, aware is converted) or an
    ISO-8601 string. The result is UTC-naive, matching how every timestamp
    is stored.

    Raises:
        ValueError: If the value cannot be interpreted as a date.
    """
    if isinstance(value, str):
        parsed = parse_iso_datetime(value)
        if parsed is None:
            raise ValueError("date value is empty")
        value = parsed

    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return datetime(value.year, value.month, value.day)

    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)

    raise ValueError(f"Unsupported date value: {value!r}")


def today_in_timezone(tz_name: str, now: Optional[datetime] = None) -> date:
    """
    Calendar date of 'now' as seen in the given IANA timezone.

    `now` is injectable for tests; a naive value is treated as UTC.
    """
    try:
        tz = ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"Unknown timezone: {tz_name}") from exc

    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(tz).date()


def week_start(value: DateLike) -> datetime:
    """
    Monday at or before the given date (UTC midnight).

    Weeks start on Monday, so a Sunday maps to the Monday six days prior.
    """
    day = truncate_to_utc_day(value)
    return day - timedelta(days=day.weekday())


# =============================================================================
# MONTH KEYS ("YYYY-MM")
# =============================================================================

def is_valid_month_key(value: Optional[str]) -> bool:
    return bool(value) and MONTH_KEY_PATTERN.match(value) is not None


def parse_month_key(month: str) -> tuple[int, int]:
    """
    Split a "YYYY-MM" key into (year, month).

    Raises:
        ValueError: If the key is malformed.
    """
    if not is_valid_month_key(month):
        raise ValueError(f"Month must be in YYYY-MM format, got {month!r}")
    year_str, month_str = month.split("-")
    return int(year_str), int(month_str)


def month_key(value: Union[date, datetime]) -> str:
    return f"{value.year:04d}-{value.month:02d}"


def shift_month(month: str, delta: int) -> str:
    """Move a month key by `delta` months (negative walks back)."""
    year, month_num = parse_month_key(month)
    index = year * 12 + (month_num - 1) + delta
    return f"{index // 12:04d}-{index % 12 + 1:02d}"


def month_range(month: str) -> tuple[datetime, datetime]:
    """
    Half-open UTC range [start, end) covering a calendar month.

    December rolls over to January 1st of the following year.
    """
    year, month_num = parse_month_key(month)
    start = datetime(year, month_num, 1)
    if month_num == 12:
        end = datetime(year + 1, 1, 1)
    else:
        end = datetime(year, month_num + 1, 1)
    return start, end


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def iter_month_days(month: str) -> list[datetime]:
    """Every calendar day of the month as UTC midnights, in order."""
    year, month_num = parse_month_key(month)
    return [datetime(year, month_num, day) for day in range(1, days_in_month(year, month_num) + 1)]
