# backend/propdesk/domain/dates.py
from __future__ import annotations

import calendar
from datetime import date, datetime
from typing import Any, Optional


def as_date(v: Any) -> Optional[date]:
    if v is None:
        return None
    if isinstance(v, datetime):
        return v.date()
    if isinstance(v, date):
        return v
    # allow ISO strings (snapshot payloads, query params)
    s = str(v).strip()
    if not s:
        return None
    try:
        return date.fromisoformat(s[:10])
    except ValueError:
        return None


def add_months(d: date, months: int) -> date:
    """
    Calendar month arithmetic; the day clamps to the end of the target month
    (2024-01-31 + 1 month -> 2024-02-29).
    """
    idx = d.year * 12 + (d.month - 1) + int(months)
    y, m = divmod(idx, 12)
    last_day = calendar.monthrange(y, m + 1)[1]
    return date(y, m + 1, min(d.day, last_day))
