# backend/propdesk/domain/compliance/ppm_resolver.py
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Iterable, Optional, Union

from ..dates import add_months, as_date
from ..entities import (
    ComplianceItem,
    ComplianceStatus,
    ComplianceType,
    PpmSchedule,
    Priority,
    Property,
    ScopeType,
)
from ..errors import ResolutionError

log = logging.getLogger("propdesk.ppm_resolver")


@dataclass(frozen=True)
class NewJobRequest:
    """
    A decision that a PPM job should exist for (property, compliance item).

    Not a committed job: the service layer re-checks the open-job invariant and
    creates the job through the lifecycle manager inside one property
    transaction. `placeholder` is set when the property had no live item of the
    schedule's type and one must be created alongside the job.
    """

    property_id: str
    schedule_id: str
    schedule_name: str
    compliance_type: ComplianceType
    compliance_id: str
    due_date: date
    sla_due_date: date
    placeholder: Optional[ComplianceItem] = None

    @property
    def category(self) -> str:
        return f"{self.compliance_type.value} Inspection"

    @property
    def priority(self) -> Priority:
        return Priority.HIGH

    @property
    def creation_note(self) -> str:
        return f"Job auto-created from PPM schedule '{self.schedule_name}'"

    @property
    def summary(self) -> str:
        return f"{self.schedule_name} automatically generated as per PPM schedule."


@dataclass
class ResolutionPass:
    requests: list[NewJobRequest] = field(default_factory=list)
    errors: list[ResolutionError] = field(default_factory=list)
    already_open: int = 0


def _slug(s: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", s.strip().lower()).strip("-")


def placeholder_id(property_id: str, ctype: ComplianceType) -> str:
    return f"comp-{property_id}-{_slug(ctype.value)}"


def _validate_schedule(s: PpmSchedule) -> None:
    if not s.id:
        raise ResolutionError("schedule has no id")
    if not isinstance(s.compliance_type, ComplianceType):
        raise ResolutionError(f"unknown compliance type {s.compliance_type!r}", schedule_id=s.id)
    if not isinstance(s.frequency_months, int) or s.frequency_months <= 0:
        raise ResolutionError(f"frequency_months must be a positive integer, got {s.frequency_months!r}", schedule_id=s.id)
    if not isinstance(s.lead_time_days, int) or s.lead_time_days < 0:
        raise ResolutionError(f"lead_time_days must be a non-negative integer, got {s.lead_time_days!r}", schedule_id=s.id)

    scope = s.scope
    if scope is None or scope.type not in (ScopeType.ALL, ScopeType.REGION):
        raise ResolutionError("malformed scope", schedule_id=s.id)
    if scope.type == ScopeType.REGION and not (scope.value or "").strip():
        raise ResolutionError("region scope without a region", schedule_id=s.id)


def scope_matches(schedule: PpmSchedule, prop: Property) -> bool:
    """
    All -> every property. Region(r) -> properties whose region equals r
    (trimmed, case-insensitive). Raises ResolutionError when the property
    lacks the field the scope needs.
    """
    if schedule.scope.type == ScopeType.ALL:
        return True
    region = (prop.region or "").strip()
    if not region:
        raise ResolutionError(
            "property has no region for a region-scoped schedule",
            schedule_id=schedule.id,
            property_id=prop.id,
        )
    return region.casefold() == (schedule.scope.value or "").strip().casefold()


def governing_schedule(
    schedules: Iterable[PpmSchedule],
    ctype: ComplianceType,
    prop: Optional[Property] = None,
) -> Optional[PpmSchedule]:
    """
    Schedule whose frequency governs an item of `ctype`: prefer one whose scope
    matches `prop`, else the first schedule for the type.
    """
    fallback: Optional[PpmSchedule] = None
    for s in schedules:
        if s.compliance_type != ctype:
            continue
        if fallback is None:
            fallback = s
        if prop is None:
            break
        try:
            if scope_matches(s, prop):
                return s
        except ResolutionError:
            continue
    return fallback


def due_date_for(item: ComplianceItem, schedule: PpmSchedule, now: date) -> date:
    last = as_date(item.last_check)
    if last is None:
        # never inspected: due immediately
        return now
    return add_months(last, schedule.frequency_months)


def is_due(item: ComplianceItem, schedule: PpmSchedule, now: Union[date, datetime]) -> bool:
    """True once `now` has reached the schedule's lead window for `item`."""
    today = as_date(now)
    due = due_date_for(item, schedule, today)
    return today >= due - timedelta(days=schedule.lead_time_days)


def _item_for(schedule: PpmSchedule, prop: Property) -> tuple[ComplianceItem, bool]:
    item = prop.live_item_for(schedule.compliance_type)
    if item is not None:
        last = as_date(item.last_check)
        nxt = as_date(item.next_check)
        if last is not None and nxt is not None and nxt <= last:
            raise ResolutionError(
                "compliance item next_check is not after last_check",
                schedule_id=schedule.id,
                property_id=prop.id,
                compliance_id=item.id,
            )
        return item, False

    return (
        ComplianceItem(
            id=placeholder_id(prop.id, schedule.compliance_type),
            type=schedule.compliance_type,
            status=ComplianceStatus.ACTION_REQUIRED,
        ),
        True,
    )


def resolve(
    schedules: Iterable[PpmSchedule],
    properties: Iterable[Property],
    now: Union[date, datetime],
) -> ResolutionPass:
    """
    Matches schedules against properties and decides which PPM jobs are due.

    A request is emitted for (property, item) when
        now >= due_date - lead_time_days
    and the property has no open (not Completed/Closed) job linked to the item.
    At most one request per (property, item) is emitted per pass, even when
    several schedules govern the same compliance type.

    Malformed schedules and (schedule, property) pairs that cannot be
    evaluated are collected as ResolutionError and skipped.
    """
    today = as_date(now)
    if today is None:
        raise ValueError("now is required")

    props = list(properties)
    out = ResolutionPass()
    decided: set[tuple[str, str]] = set()

    for schedule in schedules:
        try:
            _validate_schedule(schedule)
        except ResolutionError as e:
            log.warning("skipping malformed PPM schedule", extra={"schedule_id": getattr(schedule, "id", None)})
            out.errors.append(e)
            continue

        for prop in props:
            try:
                if not prop.id:
                    raise ResolutionError("property has no id", schedule_id=schedule.id)
                if not scope_matches(schedule, prop):
                    continue

                item, is_placeholder = _item_for(schedule, prop)
                key = (prop.id, item.id)
                if key in decided:
                    continue

                if prop.open_jobs_linked_to(item.id):
                    decided.add(key)
                    out.already_open += 1
                    continue

                if not is_due(item, schedule, today):
                    continue
                due = due_date_for(item, schedule, today)

                decided.add(key)
                out.requests.append(
                    NewJobRequest(
                        property_id=prop.id,
                        schedule_id=schedule.id,
                        schedule_name=schedule.name,
                        compliance_type=schedule.compliance_type,
                        compliance_id=item.id,
                        due_date=due,
                        sla_due_date=as_date(item.next_check) or due,
                        placeholder=item if is_placeholder else None,
                    )
                )
            except ResolutionError as e:
                log.warning(
                    "PPM resolution skipped pair: %s",
                    e.message,
                    extra={"schedule_id": schedule.id, "property_id": getattr(prop, "id", None)},
                )
                out.errors.append(e)

    return out
