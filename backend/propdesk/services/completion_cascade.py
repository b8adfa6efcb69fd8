# backend/propdesk/services/completion_cascade.py
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional

from ..domain.compliance.ppm_resolver import governing_schedule
from ..domain.dates import add_months
from ..domain.entities import (
    ComplianceItem,
    ComplianceStatus,
    Document,
    JobStatus,
    MaintenanceJob,
    PpmSchedule,
    Property,
)
from ..domain.errors import LinkIntegrityError, NotFoundError
from . import events as ev
from .job_lifecycle import transition
from .store import EntityStore

log = logging.getLogger("propdesk.completion_cascade")

COMPLETION_ACTION = "Compliance certificate uploaded. Job completed."


@dataclass(frozen=True)
class CompletionOutcome:
    property: Property
    job: MaintenanceJob
    item: ComplianceItem
    document: Document


def certificate_url_for(certificate_name: str) -> str:
    return f"/docs/{certificate_name}.pdf"


def frequency_for(
    item: ComplianceItem,
    prop: Property,
    schedules: Iterable[PpmSchedule],
    default_months: int = 12,
) -> int:
    s = governing_schedule(schedules, item.type, prop)
    if s is None:
        return int(default_months)
    months = s.frequency_months
    if not isinstance(months, int) or months <= 0:
        log.warning(
            "governing schedule has invalid frequency; using default",
            extra={"schedule_id": s.id, "property_id": prop.id},
        )
        return int(default_months)
    return months


def apply_completion(
    staged: Property,
    job_id: str,
    certificate_name: str,
    *,
    now: datetime,
    actor: str,
    schedules: Iterable[PpmSchedule],
    default_frequency_months: int = 12,
    certificate_url: Optional[str] = None,
) -> CompletionOutcome:
    """
    Reconciles a completed PPM job on a *staged* property copy:

      1. the job must exist and carry a linked compliance id that resolves to
         an item on the same property
      2. job -> Completed through the lifecycle manager (one activity entry)
      3. item: last_check=now, next_check=now+frequency, Compliant, report_url
      4. a Document linked to the job ref is appended

    Raises before any partial result can escape; the caller discards the
    staged copy on error.
    """
    name = (certificate_name or "").strip()
    if not name:
        raise ValueError("certificate name is required")

    job = staged.job(job_id)
    if job is None:
        raise NotFoundError("job not found", property_id=staged.id, job_id=job_id)
    if not job.linked_compliance_id:
        raise LinkIntegrityError(
            "job is not linked to a compliance item",
            property_id=staged.id,
            job_id=job.id,
            job_ref=job.ref,
        )

    item = staged.compliance_item(job.linked_compliance_id)
    if item is None or not item.is_live:
        raise LinkIntegrityError(
            "linked compliance item does not exist on this property or was superseded",
            property_id=staged.id,
            job_id=job.id,
            job_ref=job.ref,
            compliance_id=job.linked_compliance_id,
        )

    transition(
        job,
        JobStatus.COMPLETED,
        actor=actor,
        now=now,
        note=COMPLETION_ACTION,
        allow_linked_completion=True,
    )

    url = certificate_url or certificate_url_for(name)
    today = now.date()
    months = frequency_for(item, staged, schedules, default_frequency_months)

    item.last_check = today
    item.next_check = add_months(today, months)
    item.status = ComplianceStatus.COMPLIANT
    item.report_url = url

    doc = Document(
        id=f"doc-{uuid.uuid4().hex[:12]}",
        name=name,
        type="PDF",
        date=today,
        year=today.year,
        url=url,
        linked_job_ref=job.ref,
    )
    staged.documents.append(doc)

    return CompletionOutcome(property=staged, job=job, item=item, document=doc)


def complete_compliance_job(
    store: EntityStore,
    job_id: str,
    certificate_name: str,
    *,
    now: datetime,
    actor: str,
    default_frequency_months: int = 12,
    certificate_url: Optional[str] = None,
) -> CompletionOutcome:
    """
    The only supported way to drive a compliance-linked job to Completed.
    Job, compliance item and document are committed together or not at all.
    """
    property_id = store.find_job_property_id(job_id)

    with store.transaction(property_id) as tx:
        out = apply_completion(
            tx.property,
            job_id,
            certificate_name,
            now=now,
            actor=actor,
            schedules=store.schedules,
            default_frequency_months=default_frequency_months,
            certificate_url=certificate_url,
        )
        tx.emit(
            ev.COMPLIANCE_JOB_COMPLETED,
            occurred_at=now,
            job_id=out.job.id,
            job_ref=out.job.ref,
            compliance_id=out.item.id,
            next_check=out.item.next_check.isoformat(),
            document_id=out.document.id,
        )

    log.info(
        "compliance job completed",
        extra={"property_id": property_id, "job_id": out.job.id, "job_ref": out.job.ref},
    )
    return out
