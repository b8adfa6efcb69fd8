# backend/propdesk/domain/reporting.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Iterable, Optional, Sequence, Union

from .dates import as_date
from .entities import (
    JobStatus,
    JobType,
    Priority,
    ServiceType,
    StoreSnapshot,
    UnitStatus,
)

# -----------------------------------------------------------------------------
# Row projections
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class UnitRow:
    property_id: str
    unit_id: str
    unit_name: str
    full_address: str
    provider: str
    legal_entity: str
    service_type: ServiceType
    status: UnitStatus
    region: str
    handover_date: Optional[date]
    handback_date: Optional[date]
    attention: bool


@dataclass(frozen=True)
class JobRow:
    property_id: str
    job_id: str
    ref: str
    full_address: str
    provider: str
    legal_entity: str
    service_type: ServiceType
    region: str
    category: str
    job_type: JobType
    status: JobStatus
    priority: Priority
    assigned_to: str
    sla_due_date: Optional[date]
    is_overdue: bool


Row = Union[UnitRow, JobRow]


def project_unit_rows(snap: StoreSnapshot) -> list[UnitRow]:
    out: list[UnitRow] = []
    for p in snap.properties:
        addr = p.address.full()
        for u in p.units:
            out.append(
                UnitRow(
                    property_id=p.id,
                    unit_id=u.id,
                    unit_name=u.name,
                    full_address=addr,
                    provider=p.provider,
                    legal_entity=p.legal_entity,
                    service_type=p.service_type,
                    status=u.status,
                    region=p.region,
                    handover_date=p.handover_date,
                    handback_date=p.handback_date,
                    attention=bool(u.attention),
                )
            )
    return out


def project_job_rows(snap: StoreSnapshot, now: Union[date, datetime]) -> list[JobRow]:
    today = as_date(now)
    out: list[JobRow] = []
    for p in snap.properties:
        addr = p.address.full()
        for j in p.maintenance_jobs:
            sla = as_date(j.sla_due_date)
            out.append(
                JobRow(
                    property_id=p.id,
                    job_id=j.id,
                    ref=j.ref,
                    full_address=addr,
                    provider=p.provider,
                    legal_entity=p.legal_entity,
                    service_type=p.service_type,
                    region=p.region,
                    category=j.category,
                    job_type=j.job_type,
                    status=j.status,
                    priority=j.priority,
                    assigned_to=j.assigned_to,
                    sla_due_date=sla,
                    is_overdue=bool(j.is_open and sla is not None and today is not None and sla < today),
                )
            )
    return out


# -----------------------------------------------------------------------------
# Filter clauses (closed set; a list of clauses composes with AND)
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class ServiceTypeIn:
    values: frozenset[ServiceType]


@dataclass(frozen=True)
class UnitStatusIn:
    values: frozenset[UnitStatus]


@dataclass(frozen=True)
class RegionIn:
    values: frozenset[str]


@dataclass(frozen=True)
class ProviderIn:
    values: frozenset[str]


@dataclass(frozen=True)
class AttentionIs:
    value: bool


@dataclass(frozen=True)
class PriorityIn:
    values: frozenset[Priority]


@dataclass(frozen=True)
class OverdueIs:
    value: bool


@dataclass(frozen=True)
class TextMatch:
    text: str


FilterClause = Union[ServiceTypeIn, UnitStatusIn, RegionIn, ProviderIn, AttentionIs, PriorityIn, OverdueIs, TextMatch]

_UNIT_ONLY = (UnitStatusIn, AttentionIs)
_JOB_ONLY = (PriorityIn, OverdueIs)


def _fold(s: str) -> str:
    return (s or "").strip().casefold()


def _text_haystack(row: Row) -> tuple[str, ...]:
    if isinstance(row, UnitRow):
        return (row.property_id, row.unit_id, row.full_address, row.provider)
    return (row.property_id, row.ref, row.full_address, row.provider, row.category)


def validate_clauses(clauses: Sequence[FilterClause], entity: str) -> None:
    """Rejects clauses that cannot apply to the entity kind ('units' | 'jobs')."""
    if entity not in ("units", "jobs"):
        raise ValueError(f"unknown report entity {entity!r}")
    for c in clauses:
        if entity == "units" and isinstance(c, _JOB_ONLY):
            raise ValueError(f"{type(c).__name__} does not apply to units")
        if entity == "jobs" and isinstance(c, _UNIT_ONLY):
            raise ValueError(f"{type(c).__name__} does not apply to jobs")


def matches(row: Row, clause: FilterClause) -> bool:
    if isinstance(clause, TextMatch):
        q = _fold(clause.text)
        return not q or any(q in _fold(x) for x in _text_haystack(row))
    if isinstance(clause, ServiceTypeIn):
        return not clause.values or row.service_type in clause.values
    if isinstance(clause, RegionIn):
        return not clause.values or _fold(row.region) in {_fold(v) for v in clause.values}
    if isinstance(clause, ProviderIn):
        return not clause.values or _fold(row.provider) in {_fold(v) for v in clause.values}
    if isinstance(clause, UnitStatusIn):
        return isinstance(row, UnitRow) and (not clause.values or row.status in clause.values)
    if isinstance(clause, AttentionIs):
        return isinstance(row, UnitRow) and row.attention == clause.value
    if isinstance(clause, PriorityIn):
        return isinstance(row, JobRow) and (not clause.values or row.priority in clause.values)
    if isinstance(clause, OverdueIs):
        return isinstance(row, JobRow) and row.is_overdue == clause.value
    raise TypeError(f"unsupported filter clause {clause!r}")


def apply_filters(rows: Iterable[Row], clauses: Sequence[FilterClause]) -> list[Row]:
    return [r for r in rows if all(matches(r, c) for c in clauses)]


# -----------------------------------------------------------------------------
# Group / KPI
# -----------------------------------------------------------------------------

GROUP_FIELDS = {
    "units": ("region", "service_type", "status", "provider", "legal_entity"),
    "jobs": ("region", "service_type", "status", "provider", "legal_entity", "priority"),
}


def _group_key(v: Any) -> str:
    if v is None:
        return ""
    return str(getattr(v, "value", v))


def group_rows(rows: Iterable[Row], field: str, entity: str = "units") -> dict[str, list[Row]]:
    """Partitions rows by `field`; groups appear in first-seen order."""
    allowed = GROUP_FIELDS.get(entity, ())
    if field not in allowed:
        raise ValueError(f"cannot group {entity} by {field!r}")
    groups: dict[str, list[Row]] = {}
    for r in rows:
        groups.setdefault(_group_key(getattr(r, field)), []).append(r)
    return groups


def kpi_count(rows: Iterable[Any]) -> int:
    return sum(1 for _ in rows)


def rate(numerator: int, denominator: int, *, empty: Optional[float] = None) -> Optional[float]:
    if denominator <= 0:
        return empty
    return float(numerator) / float(denominator)
