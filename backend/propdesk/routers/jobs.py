# backend/propdesk/routers/jobs.py
from __future__ import annotations

from fastapi import APIRouter, Depends

from ..deps import get_actor, get_engine, http_error
from ..domain.errors import EngineError
from ..schemas import CompleteComplianceIn, CompletionOut, JobCostIn, JobCreate, JobOut, JobTransitionIn
from ..services.engine import ComplianceEngine
from ..services.job_lifecycle import JobFields

router = APIRouter(prefix="/jobs", tags=["jobs"])


@router.post("", response_model=JobOut, status_code=201)
def create_job(
    payload: JobCreate,
    engine: ComplianceEngine = Depends(get_engine),
    actor: str = Depends(get_actor),
):
    fields = JobFields(
        category=payload.category,
        job_type=payload.job_type,
        sla_due_date=payload.sla_due_date,
        reported_date=payload.reported_date,
        priority=payload.priority,
        unit=payload.unit,
        summary=payload.summary,
        reported_by=payload.reported_by,
        assigned_to=payload.assigned_to,
        linked_compliance_id=payload.linked_compliance_id,
    )
    try:
        return engine.create_job(payload.property_id, fields, actor=actor)
    except (EngineError, ValueError) as e:
        raise http_error(e)


@router.get("/{job_id}", response_model=JobOut)
def get_job(job_id: str, engine: ComplianceEngine = Depends(get_engine)):
    try:
        return engine.get_job(job_id)
    except EngineError as e:
        raise http_error(e)


@router.post("/{job_id}/transition", response_model=JobOut)
def transition_job(
    job_id: str,
    payload: JobTransitionIn,
    engine: ComplianceEngine = Depends(get_engine),
    actor: str = Depends(get_actor),
):
    try:
        return engine.transition_job(job_id, payload.status, actor=actor, assigned_to=payload.assigned_to)
    except EngineError as e:
        raise http_error(e)


@router.post("/{job_id}/cost", response_model=JobOut)
def record_cost(
    job_id: str,
    payload: JobCostIn,
    engine: ComplianceEngine = Depends(get_engine),
    actor: str = Depends(get_actor),
):
    try:
        return engine.record_job_cost(job_id, net=payload.net, vat=payload.vat, actor=actor)
    except (EngineError, ValueError) as e:
        raise http_error(e)


@router.post("/{job_id}/complete-compliance", response_model=CompletionOut)
def complete_compliance(
    job_id: str,
    payload: CompleteComplianceIn,
    engine: ComplianceEngine = Depends(get_engine),
    actor: str = Depends(get_actor),
):
    """Certificate upload: completes the job, renews the item and files the document together."""
    try:
        return engine.complete_compliance_job(
            job_id,
            payload.certificate_name,
            actor=actor,
            certificate_url=payload.certificate_url,
        )
    except (EngineError, ValueError) as e:
        raise http_error(e)
