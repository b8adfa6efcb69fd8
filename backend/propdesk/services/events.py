# backend/propdesk/services/events.py
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Optional

log = logging.getLogger("propdesk.events")

JOB_CREATED = "job_created"
JOB_TRANSITIONED = "job_transitioned"
JOB_COST_RECORDED = "job_cost_recorded"
COMPLIANCE_JOB_COMPLETED = "compliance_job_completed"
COMPLIANCE_ITEM_CORRECTED = "compliance_item_corrected"
COMPLIANCE_ITEM_SUPERSEDED = "compliance_item_superseded"
PROPERTY_ONBOARDED = "property_onboarded"
PROPERTY_REMOVED = "property_removed"
PERSON_ADDED = "person_added"
SCHEDULES_REPLACED = "schedules_replaced"


@dataclass(frozen=True)
class DomainEvent:
    event_type: str
    property_id: Optional[str]
    occurred_at: datetime
    payload: dict[str, Any] = field(default_factory=dict)


Handler = Callable[[DomainEvent], None]


class EventBus:
    """
    Post-commit event fan-out.

    Events are only published after the property transaction that produced
    them has been swapped in. A failing subscriber is logged and skipped: the
    in-memory state is already committed and must not be unwound.
    """

    def __init__(self) -> None:
        self._handlers: list[Handler] = []
        self._lock = threading.Lock()

    def subscribe(self, handler: Handler) -> Callable[[], None]:
        with self._lock:
            self._handlers.append(handler)

        def _unsubscribe() -> None:
            with self._lock:
                if handler in self._handlers:
                    self._handlers.remove(handler)

        return _unsubscribe

    def publish(self, event: DomainEvent) -> None:
        with self._lock:
            handlers = list(self._handlers)
        for h in handlers:
            try:
                h(event)
            except Exception:
                log.exception(
                    "event subscriber failed",
                    extra={"event_type": event.event_type, "property_id": event.property_id},
                )

    def publish_all(self, events: list[DomainEvent]) -> None:
        for ev in events:
            self.publish(ev)
