# backend/propdesk/services/dashboard_rollups.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Optional, Sequence, Union

from ..domain.compliance.status import evaluate
from ..domain.dates import as_date
from ..domain.entities import (
    ComplianceStatus,
    ComplianceType,
    MaintenanceJob,
    Property,
    StoreSnapshot,
    UnitStatus,
)


@dataclass(frozen=True)
class ComplianceSummary:
    total: int
    compliant: int
    due_soon: int
    action_required: int
    expired: int
    compliance_rate: int


def compliance_summary(
    snap: StoreSnapshot,
    now: Union[date, datetime],
    *,
    due_soon_window_days: int = 30,
) -> ComplianceSummary:
    """
    Portfolio compliance headline over every live compliance item.

    Policy: Due Soon items are counted in `due_soon` AND in `compliant`, so the
    rate reads as "on track". This matches how the dashboard has always shown
    it and is pending product confirmation; do not "fix" it silently.

    compliance_rate is a rounded percentage; 100 when there are no items.
    """
    total = compliant = due_soon = action_required = expired = 0

    for p in snap.properties:
        for item in p.compliance_items:
            if not item.is_live:
                continue
            total += 1
            st = evaluate(item, now, due_soon_window_days)
            if st == ComplianceStatus.EXPIRED:
                expired += 1
            elif st == ComplianceStatus.DUE_SOON:
                due_soon += 1
                compliant += 1
            elif st == ComplianceStatus.COMPLIANT:
                compliant += 1
            elif st == ComplianceStatus.ACTION_REQUIRED:
                action_required += 1

    rate = round(compliant / total * 100) if total else 100
    return ComplianceSummary(
        total=total,
        compliant=compliant,
        due_soon=due_soon,
        action_required=action_required,
        expired=expired,
        compliance_rate=int(rate),
    )


def _in_management(p: Property) -> bool:
    # properties where every unit is Out of Management are not tracked
    if not p.units:
        return True
    return not all(u.status == UnitStatus.OUT_OF_MANAGEMENT for u in p.units)


def compliance_matrix(
    snap: StoreSnapshot,
    now: Union[date, datetime],
    *,
    types: Optional[Sequence[ComplianceType]] = None,
    due_soon_window_days: int = 30,
) -> list[dict[str, Any]]:
    """
    One row per managed property: {property_id, address, provider, statuses}
    where statuses maps each compliance type to its evaluated status, or N/A
    when the property has no live item of that type.
    """
    wanted = list(types) if types else list(ComplianceType)
    out: list[dict[str, Any]] = []
    for p in snap.properties:
        if not _in_management(p):
            continue
        statuses: dict[str, str] = {}
        for t in wanted:
            statuses[t.value] = evaluate(p.live_item_for(t), now, due_soon_window_days).value
        out.append(
            {
                "property_id": p.id,
                "address": p.address.full(),
                "provider": p.provider,
                "region": p.region,
                "statuses": statuses,
            }
        )
    return out


def _is_linked_to(job: MaintenanceJob, actor: str) -> bool:
    a = (actor or "").strip().casefold()
    if not a:
        return False
    if (job.reported_by or "").casefold() == a or (job.assigned_to or "").casefold() == a:
        return True
    return any((e.actor or "").casefold() == a for e in job.activity_log)


def open_actions(snap: StoreSnapshot, actor: str) -> list[tuple[Property, MaintenanceJob]]:
    """Open jobs the actor reported, is assigned to, or has touched; soonest SLA first."""
    found: list[tuple[Property, MaintenanceJob]] = []
    for p in snap.properties:
        for j in p.maintenance_jobs:
            if j.is_open and _is_linked_to(j, actor):
                found.append((p, j))
    return sorted(found, key=lambda pj: as_date(pj[1].sla_due_date) or date.max)

