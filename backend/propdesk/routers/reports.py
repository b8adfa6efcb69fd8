# backend/propdesk/routers/reports.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from ..deps import get_engine, http_error
from ..domain.reporting_windows import WindowKind
from ..schemas import JobReportOut, OpenActionOut, ReportFilters, UnitReportOut, WindowStatsOut
from ..services.engine import ComplianceEngine

router = APIRouter(prefix="/reports", tags=["reports"])


def _run(engine: ComplianceEngine, entity: str, filters: ReportFilters) -> dict:
    try:
        res = engine.report(entity, filters.to_clauses(), group_by=filters.group_by)
    except ValueError as e:
        raise http_error(e)
    return {"count": res.count, "rows": res.rows, "groups": res.groups}


@router.post("/units", response_model=UnitReportOut)
def unit_report(filters: ReportFilters, engine: ComplianceEngine = Depends(get_engine)):
    return _run(engine, "units", filters)


@router.post("/jobs", response_model=JobReportOut)
def job_report(filters: ReportFilters, engine: ComplianceEngine = Depends(get_engine)):
    return _run(engine, "jobs", filters)


@router.get("/window-stats", response_model=WindowStatsOut)
def window_stats(
    window: WindowKind = Query(WindowKind.MONTH),
    engine: ComplianceEngine = Depends(get_engine),
):
    return engine.window_stats(window)


@router.get("/open-actions", response_model=list[OpenActionOut])
def open_actions(actor: str = Query(..., min_length=1), engine: ComplianceEngine = Depends(get_engine)):
    return [
        {"property_id": p.id, "address": p.address.full(), "job": j}
        for p, j in engine.open_actions(actor)
    ]
