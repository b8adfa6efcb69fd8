# backend/propdesk/domain/compliance/status.py
from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Optional, Union

from ..dates import as_date
from ..entities import ComplianceItem, ComplianceStatus

DEFAULT_DUE_SOON_WINDOW_DAYS = 30


def evaluate(
    item: Optional[ComplianceItem],
    now: Union[date, datetime],
    due_soon_window_days: int = DEFAULT_DUE_SOON_WINDOW_DAYS,
) -> ComplianceStatus:
    """
    Derives a compliance status from dates only.

    - no item for the type           -> N/A (excluded from rate denominators)
    - no next_check (never inspected) -> Action Required
    - next_check < now               -> Expired
    - next_check <= now + window     -> Due Soon
    - otherwise                      -> Compliant

    The stored `status` on the item is ignored; `now` is always injected.
    """
    if item is None:
        return ComplianceStatus.NOT_APPLICABLE

    today = as_date(now)
    if today is None:
        raise ValueError("now is required")

    next_check = as_date(item.next_check)
    if next_check is None:
        return ComplianceStatus.ACTION_REQUIRED

    if next_check < today:
        return ComplianceStatus.EXPIRED
    if next_check <= today + timedelta(days=int(due_soon_window_days)):
        return ComplianceStatus.DUE_SOON
    return ComplianceStatus.COMPLIANT
