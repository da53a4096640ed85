# payleave_api/services/calendar_utils.py
"""
Local-calendar helpers shared by the comp-off detector and the absentee audit.

Punch timestamps are bucketed by the *local* civil date of the configured
timezone (APP_TIMEZONE), never the UTC date: a punch at 00:30 IST belongs to
that IST day even though it is still the previous day in UTC.
"""
from __future__ import annotations

import calendar
from datetime import date, datetime, timedelta, tzinfo
from typing import Iterable, List
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from payleave_api.common.errors import ValidationError

WEEKDAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")


def days_in_month(year: int, month: int) -> int:
    if not 1 <= int(month) <= 12:
        raise ValidationError(f"month must be 1..12, got {month}")
    return calendar.monthrange(int(year), int(month))[1]


def as_date(value, field: str = "date") -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip())
    except (TypeError, ValueError):
        raise ValidationError(f"{field} is not a valid ISO date: {value!r}")


def iterate_local_dates(start, end) -> List[date]:
    """Inclusive, ascending list of calendar days. Empty when start > end."""
    d = as_date(start, "start")
    end_d = as_date(end, "end")
    out = []
    while d <= end_d:
        out.append(d)
        d += timedelta(days=1)
    return out


def weekday_name(d) -> str:
    return WEEKDAY_NAMES[as_date(d).weekday()]


def get_tz(name: str | None) -> tzinfo | None:
    if not name:
        return None
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValidationError(f"unknown timezone: {name!r}")


def to_local_date(ts: datetime, tz: tzinfo | None) -> date:
    # naive timestamps are already local civil time
    if ts.tzinfo is None or tz is None:
        return ts.date()
    return ts.astimezone(tz).date()


def local_today(tz: tzinfo | None = None) -> date:
    return datetime.now(tz).date() if tz else date.today()


def punch_query_window(start: date, end: date):
    """
    Naive local [start-1d, end+2d) bounds for the punch query. One day of slack on
    each side covers any UTC offset; exact local bucketing happens afterwards.
    """
    lo = datetime.combine(start - timedelta(days=1), datetime.min.time())
    hi = datetime.combine(end + timedelta(days=2), datetime.min.time())
    return lo, hi


def build_work_map(punches: Iterable, tz: tzinfo | None):
    """{employee_code: {local_date, ...}} from (employee_code, ts) pairs or punch rows."""
    work = {}
    for p in punches:
        code, ts = (p.employee_code, p.ts) if hasattr(p, "employee_code") else p
        work.setdefault(code, set()).add(to_local_date(ts, tz))
    return work
