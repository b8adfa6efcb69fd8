# backend/propdesk/middleware/request_context.py
from __future__ import annotations

import uuid
from contextvars import ContextVar
from typing import Callable, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-ID"
ACTOR_HEADER = "X-Actor"

request_id_ctx: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
actor_ctx: ContextVar[Optional[str]] = ContextVar("actor", default=None)


def get_request_id() -> Optional[str]:
    return request_id_ctx.get()


def get_actor() -> Optional[str]:
    return actor_ctx.get()


def clean_actor(raw: Optional[str]) -> str:
    """Acting user as passed by the presentation layer; blank means System."""
    return (raw or "").strip() or "System"


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Binds the request id and the acting user for the life of one request so
    every log line written while handling it (engine, persistence, access log)
    carries both.

    The id comes from X-Request-ID when the caller sends one and is echoed
    back; the actor comes from X-Actor.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        rid = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        actor = clean_actor(request.headers.get(ACTOR_HEADER))

        rid_token = request_id_ctx.set(rid)
        actor_token = actor_ctx.set(actor)
        request.state.request_id = rid
        request.state.actor = actor
        try:
            resp = await call_next(request)
            resp.headers[REQUEST_ID_HEADER] = rid
            return resp
        finally:
            actor_ctx.reset(actor_token)
            request_id_ctx.reset(rid_token)
