# alertia_api/common/dates.py
from __future__ import annotations

import os
import re
from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

from flask import current_app, has_app_context

_DMY = re.compile(r"^\s*(\d{1,2})[/\-](\d{1,2})[/\-](\d{4})")
_YMD = re.compile(r"^\s*(\d{4})-(\d{1,2})-(\d{1,2})")


def parse_fecha(value) -> date | None:
    """
    Accepts a date, a datetime, 'DD/MM/YYYY' or 'YYYY-MM-DD' (optionally with a
    time part). Returns a date or None when the value can't be read.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    s = str(value).strip()
    m = _DMY.match(s)
    try:
        if m:
            d, mo, y = (int(x) for x in m.groups())
            return date(y, mo, d)
        m = _YMD.match(s)
        if m:
            y, mo, d = (int(x) for x in m.groups())
            return date(y, mo, d)
    except ValueError:
        return None
    return None


def _tz():
    name = current_app.config.get("ALERTIA_TIMEZONE") if has_app_context() else None
    name = name or os.getenv("ALERTIA_TIMEZONE")
    return ZoneInfo(name) if name else None


def now_local() -> datetime:
    tz = _tz()
    return datetime.now(tz) if tz else datetime.now()


def today() -> date:
    return now_local().date()


def utcnow() -> datetime:
    """Naive UTC now, the form kept in DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def local_to_utc(dt: datetime) -> datetime:
    """Local wall time (naive means ALERTIA_TIMEZONE) -> naive UTC."""
    if dt.tzinfo is None:
        tz = _tz()
        dt = dt.replace(tzinfo=tz) if tz else dt.astimezone()
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def parse_timestamp(value) -> datetime | None:
    """
    ISO timestamp -> naive UTC datetime. Naive input is taken as UTC already;
    aware input is converted. None when the value can't be read.
    """
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        try:
            dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def local_date(value) -> date | None:
    """Calendar date, in ALERTIA_TIMEZONE, of a stored UTC timestamp."""
    if isinstance(value, date) and not isinstance(value, datetime) or len(str(value or "").strip()) <= 10:
        return parse_fecha(value)
    dt = parse_timestamp(value)
    if dt is None:
        return parse_fecha(value)
    aware = dt.replace(tzinfo=timezone.utc)
    tz = _tz()
    return (aware.astimezone(tz) if tz else aware.astimezone()).date()


def iso(d) -> str | None:
    if d is None:
        return None
    if isinstance(d, datetime):
        return d.isoformat()
    if isinstance(d, date):
        return d.isoformat()
    return str(d)


def dmy(d) -> str:
    d = parse_fecha(d)
    return d.strftime("%d/%m/%Y") if d else "N/A"


def days_until(fecha, ref: date | None = None) -> int | None:
    d = parse_fecha(fecha)
    if d is None:
        return None
    return (d - (ref or today())).days
