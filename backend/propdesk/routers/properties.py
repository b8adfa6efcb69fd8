# backend/propdesk/routers/properties.py
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from ..deps import get_engine, http_error
from ..domain.compliance.status import evaluate
from ..domain.entities import Address, ComplianceItem, Property, Unit
from ..domain.errors import NotFoundError
from ..schemas import PropertyCreate, PropertyListOut, PropertyOut
from ..services.engine import ComplianceEngine

router = APIRouter(prefix="/properties", tags=["properties"])


def _get_property_or_404(engine: ComplianceEngine, property_id: str) -> Property:
    try:
        return engine.get_property(property_id)
    except NotFoundError as e:
        raise http_error(e)


def _to_domain(payload: PropertyCreate, engine: ComplianceEngine) -> Property:
    now = engine.clock()
    items = []
    for c in payload.compliance_items:
        item = ComplianceItem(
            id=c.id,
            type=c.type,
            last_check=c.last_check,
            next_check=c.next_check,
            report_url=c.report_url,
        )
        item.status = evaluate(item, now, engine.config.due_soon_window_days)
        items.append(item)

    return Property(
        id=payload.id.strip().upper(),
        address=Address(line1=payload.address.line1, city=payload.address.city, postcode=payload.address.postcode),
        region=payload.region.strip(),
        service_type=payload.service_type,
        legal_entity=payload.legal_entity,
        provider=payload.provider,
        handover_date=payload.handover_date,
        handback_date=payload.handback_date,
        units=[Unit(id=u.id, name=u.name, status=u.status, attention=u.attention) for u in payload.units],
        compliance_items=items,
    )


@router.get("", response_model=list[PropertyListOut])
def list_properties(engine: ComplianceEngine = Depends(get_engine)):
    return list(engine.snapshot().properties)


@router.post("", response_model=PropertyOut, status_code=201)
def create_property(payload: PropertyCreate, engine: ComplianceEngine = Depends(get_engine)):
    prop = _to_domain(payload, engine)
    if len({c.type for c in prop.compliance_items}) != len(prop.compliance_items):
        raise HTTPException(status_code=422, detail="at most one compliance item per type")
    try:
        return engine.add_property(prop)
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.get("/{property_id}", response_model=PropertyOut)
def get_property(property_id: str, engine: ComplianceEngine = Depends(get_engine)):
    return _get_property_or_404(engine, property_id)


@router.delete("/{property_id}", status_code=204)
def delete_property(property_id: str, engine: ComplianceEngine = Depends(get_engine)):
    try:
        engine.remove_property(property_id)
    except NotFoundError as e:
        raise http_error(e)
    return None
