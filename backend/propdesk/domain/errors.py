# backend/propdesk/domain/errors.py
from __future__ import annotations

from typing import Any, Optional


class EngineError(Exception):
    """
    Base for every failure the compliance/maintenance engine reports.

    Only the kind, a message and the identifying keys cross the boundary;
    callers never see staged entities.
    """

    kind = "engine_error"

    def __init__(
        self,
        message: str,
        *,
        property_id: Optional[str] = None,
        job_id: Optional[str] = None,
        job_ref: Optional[str] = None,
        compliance_id: Optional[str] = None,
        schedule_id: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.property_id = property_id
        self.job_id = job_id
        self.job_ref = job_ref
        self.compliance_id = compliance_id
        self.schedule_id = schedule_id

    @property
    def keys(self) -> dict[str, str]:
        out: dict[str, str] = {}
        for k in ("property_id", "job_id", "job_ref", "compliance_id", "schedule_id"):
            v = getattr(self, k)
            if v is not None:
                out[k] = str(v)
        return out

    def as_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "message": self.message, **self.keys}


class NotFoundError(EngineError):
    kind = "not_found"


class InvalidStateTransition(EngineError):
    kind = "invalid_state_transition"

    def __init__(self, message: str, *, from_status: Any = None, to_status: Any = None, **keys: Any) -> None:
        super().__init__(message, **keys)
        self.from_status = from_status
        self.to_status = to_status

    def as_dict(self) -> dict[str, Any]:
        out = super().as_dict()
        if self.from_status is not None:
            out["from_status"] = str(getattr(self.from_status, "value", self.from_status))
        if self.to_status is not None:
            out["to_status"] = str(getattr(self.to_status, "value", self.to_status))
        return out


class LinkIntegrityError(EngineError):
    kind = "link_integrity"


class DuplicateJobError(EngineError):
    kind = "duplicate_job"


class ResolutionError(EngineError):
    """Non-fatal: one (schedule, property) pairing could not be evaluated."""

    kind = "resolution_error"


class PersistenceError(Exception):
    """Raised by durable store adapters; never unwinds committed engine state."""
