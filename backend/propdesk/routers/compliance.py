# backend/propdesk/routers/compliance.py
from __future__ import annotations

from fastapi import APIRouter, Depends

from ..deps import get_actor, get_engine, http_error
from ..domain.entities import ComplianceItem
from ..domain.errors import EngineError
from ..schemas import (
    ComplianceItemCorrection,
    ComplianceItemIn,
    ComplianceItemOut,
    ComplianceMatrixRowOut,
    ComplianceSummaryOut,
    ResolverRunOut,
)
from ..services.engine import ComplianceEngine

router = APIRouter(prefix="/compliance", tags=["compliance"])


@router.post("/resolve", response_model=ResolverRunOut)
def run_resolver(engine: ComplianceEngine = Depends(get_engine), actor: str = Depends(get_actor)):
    # manual trigger; the beat schedule runs the same pass as the resolver actor
    return engine.run_resolver(actor=actor).as_dict()


@router.get("/summary", response_model=ComplianceSummaryOut)
def summary(engine: ComplianceEngine = Depends(get_engine)):
    return engine.compliance_summary()


@router.get("/matrix", response_model=list[ComplianceMatrixRowOut])
def matrix(engine: ComplianceEngine = Depends(get_engine)):
    return engine.compliance_matrix()


@router.put("/{property_id}/items/{item_id}", response_model=ComplianceItemOut)
def correct_item(
    property_id: str,
    item_id: str,
    payload: ComplianceItemCorrection,
    engine: ComplianceEngine = Depends(get_engine),
    actor: str = Depends(get_actor),
):
    try:
        prop = engine.correct_compliance_item(
            property_id,
            item_id,
            last_check=payload.last_check,
            next_check=payload.next_check,
            actor=actor,
            report_url=payload.report_url,
        )
    except (EngineError, ValueError) as e:
        raise http_error(e)
    return prop.compliance_item(item_id)


@router.post("/{property_id}/items/{item_id}/supersede", response_model=ComplianceItemOut, status_code=201)
def supersede_item(
    property_id: str,
    item_id: str,
    payload: ComplianceItemIn,
    engine: ComplianceEngine = Depends(get_engine),
    actor: str = Depends(get_actor),
):
    """Replaces a live item with a new one of the same type; open linked jobs follow it."""
    replacement = ComplianceItem(
        id=payload.id,
        type=payload.type,
        last_check=payload.last_check,
        next_check=payload.next_check,
        report_url=payload.report_url,
    )
    try:
        prop = engine.supersede_compliance_item(property_id, item_id, replacement, actor=actor)
    except (EngineError, ValueError) as e:
        raise http_error(e)
    return prop.compliance_item(replacement.id)
