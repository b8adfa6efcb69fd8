# backend/propdesk/services/job_lifecycle.py
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from ..domain.dates import as_date
from ..domain.entities import (
    ActivityEntry,
    JobCost,
    JobStatus,
    JobType,
    MaintenanceJob,
    Priority,
    Property,
)
from ..domain.errors import DuplicateJobError, InvalidStateTransition, LinkIntegrityError

log = logging.getLogger("propdesk.job_lifecycle")

# -----------------------------------------------------------------------------
# Maintenance job state machine
# -----------------------------------------------------------------------------
#   Open -> Assigned -> In Progress -> {Awaiting Invoice | Completed} -> Closed
#   Awaiting Invoice -> Completed
#   Reopen: any non-Open state -> Open
#
# Every function here works on a *staged* Property / job (inside a property
# transaction). Validation happens before the first mutation, so a rejected
# command leaves the staged copy untouched as well.
# Every transition appends exactly one activity-log entry; the log is never
# edited or truncated.
# -----------------------------------------------------------------------------

TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.OPEN: frozenset({JobStatus.ASSIGNED}),
    JobStatus.ASSIGNED: frozenset({JobStatus.IN_PROGRESS}),
    JobStatus.IN_PROGRESS: frozenset({JobStatus.AWAITING_INVOICE, JobStatus.COMPLETED}),
    JobStatus.AWAITING_INVOICE: frozenset({JobStatus.COMPLETED}),
    JobStatus.COMPLETED: frozenset({JobStatus.CLOSED}),
    JobStatus.CLOSED: frozenset(),
}

_ACTIONS = {
    JobStatus.ASSIGNED: "Job assigned to {assigned_to}.",
    JobStatus.IN_PROGRESS: "Work started.",
    JobStatus.AWAITING_INVOICE: "Work finished. Awaiting invoice.",
    JobStatus.COMPLETED: "Job completed.",
    JobStatus.CLOSED: "Job closed.",
    JobStatus.OPEN: "Job reopened.",
}


def _keys(job: MaintenanceJob) -> dict:
    return {"property_id": job.property_id, "job_id": job.id, "job_ref": job.ref}


def allowed_targets(status: JobStatus) -> frozenset[JobStatus]:
    out = set(TRANSITIONS.get(status, frozenset()))
    if status != JobStatus.OPEN:
        out.add(JobStatus.OPEN)  # reopen
    return frozenset(out)


def append_activity(job: MaintenanceJob, *, now: datetime, actor: str, action: str) -> ActivityEntry:
    entry = ActivityEntry(date=now, actor=actor or "System", action=action)
    job.activity_log.append(entry)
    return entry


# -----------------------------------------------------------------------------
# Creation (single entry point for manual and PPM-generated jobs)
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class JobFields:
    category: str
    job_type: JobType = JobType.REACTIVE
    sla_due_date: Optional[date] = None
    reported_date: Optional[date] = None
    priority: Priority = Priority.MEDIUM
    unit: str = "Communal"
    summary: str = ""
    reported_by: str = ""
    assigned_to: str = ""
    linked_compliance_id: Optional[str] = None


def next_job_ref(prop: Property, job_type: JobType) -> str:
    seq = len(prop.maintenance_jobs) + 1
    pid = prop.id.upper()
    if job_type == JobType.PPM:
        return f"{pid}-PPM-{seq:03d}"
    return f"{pid}-{seq:03d}"


def create_job(
    prop: Property,
    fields: JobFields,
    *,
    actor: str,
    now: datetime,
    creation_note: str = "Job created.",
) -> MaintenanceJob:
    """
    Adds a new Open job to the staged property and writes its first
    activity-log entry.

    Link rules:
      - linked_compliance_id is only valid on PPM jobs
      - it must reference a live compliance item on the same property
      - no other open job may already be linked to that item
    """
    if not (fields.category or "").strip():
        raise ValueError("job category is required")

    link = fields.linked_compliance_id
    if link is not None:
        if fields.job_type != JobType.PPM:
            raise LinkIntegrityError(
                "only PPM jobs may be linked to a compliance item",
                property_id=prop.id,
                compliance_id=link,
            )
        item = prop.compliance_item(link)
        if item is None or not item.is_live:
            raise LinkIntegrityError(
                "linked compliance item does not exist on this property",
                property_id=prop.id,
                compliance_id=link,
            )
        existing = prop.open_jobs_linked_to(link)
        if existing:
            raise DuplicateJobError(
                "an open job is already linked to this compliance item",
                property_id=prop.id,
                compliance_id=link,
                job_id=existing[0].id,
                job_ref=existing[0].ref,
            )

    job = MaintenanceJob(
        id=f"job-{uuid.uuid4().hex[:12]}",
        ref=next_job_ref(prop, fields.job_type),
        property_id=prop.id,
        category=fields.category.strip(),
        job_type=fields.job_type,
        status=JobStatus.OPEN,
        reported_date=as_date(fields.reported_date) or now.date(),
        sla_due_date=as_date(fields.sla_due_date),
        assigned_to="",
        priority=fields.priority,
        unit=fields.unit or "Communal",
        summary=fields.summary or "",
        reported_by=fields.reported_by or actor,
        linked_compliance_id=link,
        cost=JobCost(),
        activity_log=[],
    )
    append_activity(job, now=now, actor=actor, action=creation_note)
    prop.maintenance_jobs.append(job)

    log.info("job created", extra={"property_id": prop.id, "job_id": job.id, "job_ref": job.ref})

    # A contractor supplied up-front is a normal Open -> Assigned transition.
    if (fields.assigned_to or "").strip():
        transition(job, JobStatus.ASSIGNED, actor=actor, now=now, assigned_to=fields.assigned_to)

    return job


# -----------------------------------------------------------------------------
# Transitions
# -----------------------------------------------------------------------------


def transition(
    job: MaintenanceJob,
    target: JobStatus,
    *,
    actor: str,
    now: datetime,
    assigned_to: Optional[str] = None,
    note: Optional[str] = None,
    allow_linked_completion: bool = False,
) -> MaintenanceJob:
    """
    Moves `job` to `target` or raises InvalidStateTransition without touching it.

    Completing a job linked to a compliance item is reserved for the
    completion cascade (allow_linked_completion=True).
    """
    current = job.status
    target = JobStatus(target)

    if target not in allowed_targets(current):
        raise InvalidStateTransition(
            f"cannot move job from {current.value} to {target.value}",
            from_status=current,
            to_status=target,
            **_keys(job),
        )

    if target == JobStatus.COMPLETED and job.linked_compliance_id and not allow_linked_completion:
        raise InvalidStateTransition(
            "jobs linked to a compliance item are completed by uploading the certificate",
            from_status=current,
            to_status=target,
            **_keys(job),
        )

    contractor = (assigned_to if assigned_to is not None else job.assigned_to or "").strip()
    if target == JobStatus.ASSIGNED and not contractor:
        raise InvalidStateTransition(
            "a contractor is required to assign a job",
            from_status=current,
            to_status=target,
            **_keys(job),
        )

    # ---- mutate (validation done) ----
    if target == JobStatus.ASSIGNED:
        job.assigned_to = contractor
    job.status = target

    action = note or _ACTIONS[target].format(assigned_to=job.assigned_to)
    append_activity(job, now=now, actor=actor, action=action)

    log.info(
        "job %s -> %s",
        current.value,
        target.value,
        extra={"property_id": job.property_id, "job_id": job.id, "job_ref": job.ref},
    )
    return job


def reopen(
    prop: Property,
    job: MaintenanceJob,
    *,
    actor: str,
    now: datetime,
) -> MaintenanceJob:
    """
    Administrative reopen. A linked job may only come back to Open while no
    other open job holds the same compliance item.
    """
    link = job.linked_compliance_id
    if link is not None and job.status != JobStatus.OPEN:
        others = [j for j in prop.open_jobs_linked_to(link) if j.id != job.id]
        if others:
            raise DuplicateJobError(
                "another open job is already linked to this compliance item",
                property_id=prop.id,
                compliance_id=link,
                job_id=others[0].id,
                job_ref=others[0].ref,
            )
    return transition(job, JobStatus.OPEN, actor=actor, now=now)


def record_cost(
    job: MaintenanceJob,
    *,
    net: float,
    vat: float,
    actor: str,
    now: datetime,
) -> MaintenanceJob:
    """
    Attaches the invoice amounts. Zero is a valid, explicit cost; negatives
    are rejected. Not permitted once the job is Closed.
    """
    if job.status == JobStatus.CLOSED:
        raise InvalidStateTransition(
            "closed jobs cannot be changed; reopen first",
            from_status=job.status,
            **_keys(job),
        )
    net_f = float(net)
    vat_f = float(vat)
    if net_f < 0 or vat_f < 0:
        raise ValueError("cost amounts must be >= 0")

    job.cost = JobCost(net=net_f, vat=vat_f, gross=round(net_f + vat_f, 2), recorded=True)
    append_activity(job, now=now, actor=actor, action=f"Cost recorded: net {net_f:.2f}, VAT {vat_f:.2f}.")
    return job
