# backend/propdesk/routers/health.py
from __future__ import annotations

from fastapi import APIRouter, Depends

from ..bootstrap import Runtime
from ..deps import get_runtime
from ..schemas import HealthOut

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthOut)
def health(rt: Runtime = Depends(get_runtime)):
    cfg = rt.engine.config
    return HealthOut(
        ok=rt.persistence.last_error is None,
        engine_version=cfg.engine_version,
        store_version=rt.engine.store.version,
        durable_store=cfg.durable_store,
        last_saved_version=rt.persistence.last_saved_version,
        persistence_error=rt.persistence.last_error,
    )
