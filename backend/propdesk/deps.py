# backend/propdesk/deps.py
from __future__ import annotations

from typing import Optional

from fastapi import Header, HTTPException, Request

from .bootstrap import Runtime
from .domain.errors import EngineError
from .middleware.request_context import ACTOR_HEADER, clean_actor
from .services.engine import ComplianceEngine

_STATUS_BY_KIND = {
    "not_found": 404,
    "invalid_state_transition": 409,
    "duplicate_job": 409,
    "link_integrity": 422,
    "resolution_error": 422,
}


def get_runtime(request: Request) -> Runtime:
    return request.app.state.runtime


def get_engine(request: Request) -> ComplianceEngine:
    return request.app.state.runtime.engine


def get_actor(x_actor: Optional[str] = Header(default=None, alias=ACTOR_HEADER)) -> str:
    return clean_actor(x_actor)


def http_error(e: Exception) -> HTTPException:
    """Maps engine failures onto HTTP; only kind, message and keys leave the engine."""
    if isinstance(e, EngineError):
        return HTTPException(status_code=_STATUS_BY_KIND.get(e.kind, 400), detail=e.as_dict())
    return HTTPException(status_code=422, detail={"kind": "invalid_input", "message": str(e)})
