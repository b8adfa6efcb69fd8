# backend/propdesk/workers/resolver_tasks.py
from __future__ import annotations

import logging

from ..bootstrap import build_runtime
from ..config import settings
from .celery_app import celery_app

log = logging.getLogger("propdesk.workers.resolver")


@celery_app.task(name="propdesk.workers.resolver_tasks.run_ppm_resolver")
def run_ppm_resolver() -> dict:
    """
    One resolver pass against the latest durable state.

    The runtime is rebuilt per run so the worker always starts from what the
    API last persisted; created jobs are saved by the post-commit writer.
    """
    if settings.durable_store == "memory":
        log.warning("resolver task running against a memory store; results are not shared with the API")

    rt = build_runtime(settings)
    out = rt.engine.run_resolver(actor=settings.resolver_actor).as_dict()
    out["persisted_version"] = rt.persistence.last_saved_version
    out["persistence_error"] = rt.persistence.last_error
    return out
