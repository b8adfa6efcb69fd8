# backend/propdesk/services/store.py
from __future__ import annotations

import copy
import logging
import threading
from contextlib import ExitStack, contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable, Iterator, Optional

from ..domain.entities import Person, PpmSchedule, Property, StoreSnapshot
from ..domain.errors import NotFoundError
from .events import PERSON_ADDED, PROPERTY_ONBOARDED, PROPERTY_REMOVED, SCHEDULES_REPLACED, DomainEvent, EventBus

log = logging.getLogger("propdesk.store")


@dataclass
class PropertyTransaction:
    """
    Staged copy of one property's sub-state.

    Commands mutate `property` freely; the store swaps it in as a whole only
    when the `with` block exits without an exception. `events` are published
    after the swap.
    """

    property_id: str
    base_version: int
    property: Property
    events: list[DomainEvent] = field(default_factory=list)
    committed: bool = False

    def emit(self, event_type: str, *, occurred_at: datetime, **payload: Any) -> None:
        self.events.append(
            DomainEvent(
                event_type=event_type,
                property_id=self.property_id,
                occurred_at=occurred_at,
                payload=payload,
            )
        )


class EntityStore:
    """
    In-memory entity store, one instance per process (passed to services, never
    a module global).

    Concurrency model:
      - writers serialize per property (one RLock per property id)
      - committed Property objects are never mutated; a commit replaces the
        dict entry with the staged copy under a short swap lock
      - snapshot() captures the dict under the swap lock, so readers get a
        consistent version without waiting for in-flight transactions
    """

    def __init__(
        self,
        *,
        properties: Iterable[Property] = (),
        schedules: Iterable[PpmSchedule] = (),
        people: Iterable[Person] = (),
        version: int = 0,
        event_bus: Optional[EventBus] = None,
    ) -> None:
        self._properties: dict[str, Property] = {}
        for p in properties:
            if p.id in self._properties:
                raise ValueError(f"duplicate property id {p.id!r}")
            self._properties[p.id] = p
        self._schedules: tuple[PpmSchedule, ...] = tuple(schedules)
        self._people: tuple[Person, ...] = tuple(people)
        self._version = int(version)

        self._swap_lock = threading.Lock()
        self._locks_guard = threading.Lock()
        self._property_locks: dict[str, threading.RLock] = {}

        self.events = event_bus or EventBus()

    @classmethod
    def from_snapshot(cls, snap: StoreSnapshot, *, event_bus: Optional[EventBus] = None) -> "EntityStore":
        return cls(
            properties=snap.properties,
            schedules=snap.schedules,
            people=snap.people,
            version=snap.version,
            event_bus=event_bus,
        )

    # ---- reads ----

    @property
    def version(self) -> int:
        return self._version

    def snapshot(self) -> StoreSnapshot:
        with self._swap_lock:
            return StoreSnapshot(
                version=self._version,
                properties=tuple(self._properties.values()),
                schedules=self._schedules,
                people=self._people,
            )

    def get_property(self, property_id: str) -> Property:
        with self._swap_lock:
            prop = self._properties.get(property_id)
        if prop is None:
            raise NotFoundError("property not found", property_id=property_id)
        return prop

    def find_job_property_id(self, job_id: str) -> str:
        with self._swap_lock:
            props = list(self._properties.values())
        for p in props:
            if p.job(job_id) is not None:
                return p.id
        raise NotFoundError("job not found", job_id=job_id)

    @property
    def schedules(self) -> tuple[PpmSchedule, ...]:
        return self._schedules

    # ---- writes ----

    def property_lock(self, property_id: str) -> threading.RLock:
        with self._locks_guard:
            lock = self._property_locks.get(property_id)
            if lock is None:
                lock = threading.RLock()
                self._property_locks[property_id] = lock
            return lock

    @contextmanager
    def transaction(self, property_id: str) -> Iterator[PropertyTransaction]:
        """
        Per-property copy-on-write transaction.

            with store.transaction(pid) as tx:
                ...mutate tx.property...

        Any exception inside the block discards the staged copy.
        """
        with self.property_lock(property_id):
            with self._swap_lock:
                current = self._properties.get(property_id)
                base_version = self._version
            if current is None:
                raise NotFoundError("property not found", property_id=property_id)

            tx = PropertyTransaction(
                property_id=property_id,
                base_version=base_version,
                property=copy.deepcopy(current),
            )
            yield tx

            if tx.property.id != property_id:
                raise ValueError("a transaction cannot change the property id")

            with self._swap_lock:
                if property_id not in self._properties:
                    raise NotFoundError("property was removed during the transaction", property_id=property_id)
                self._properties[property_id] = tx.property
                self._version += 1
            tx.committed = True

        self.events.publish_all(tx.events)

    def reload(self, snap: StoreSnapshot) -> None:
        """
        Replaces the whole state with `snap` (a newer durable copy written by
        another process). Waits for in-flight property transactions; no events
        are published.
        """
        with self._swap_lock:
            ids = set(self._properties)
        ids.update(p.id for p in snap.properties)

        with ExitStack() as stack:
            # fixed lock order
            for pid in sorted(ids):
                stack.enter_context(self.property_lock(pid))
            with self._swap_lock:
                self._properties = {p.id: p for p in snap.properties}
                self._schedules = tuple(snap.schedules)
                self._people = tuple(snap.people)
                self._version = int(snap.version)
        log.info("store reloaded from durable state", extra={"event_type": "reload"})

    def add_property(self, prop: Property, *, now: datetime) -> Property:
        staged = copy.deepcopy(prop)
        with self.property_lock(prop.id):
            with self._swap_lock:
                if prop.id in self._properties:
                    raise ValueError(f"property {prop.id!r} already exists")
                self._properties[prop.id] = staged
                self._version += 1
        log.info("property onboarded", extra={"property_id": prop.id})
        self.events.publish(DomainEvent(PROPERTY_ONBOARDED, prop.id, now, {"property_id": prop.id}))
        return staged

    def remove_property(self, property_id: str, *, now: datetime) -> None:
        """Removes the property and everything it owns (units, items, jobs, documents)."""
        with self.property_lock(property_id):
            with self._swap_lock:
                if property_id not in self._properties:
                    raise NotFoundError("property not found", property_id=property_id)
                del self._properties[property_id]
                self._people = tuple(p for p in self._people if p.property_id != property_id)
                self._version += 1
        log.info("property removed", extra={"property_id": property_id})
        self.events.publish(DomainEvent(PROPERTY_REMOVED, property_id, now, {"property_id": property_id}))

    def replace_schedules(self, schedules: Iterable[PpmSchedule], *, now: datetime) -> None:
        staged = tuple(schedules)
        with self._swap_lock:
            self._schedules = staged
            self._version += 1
        self.events.publish(DomainEvent(SCHEDULES_REPLACED, None, now, {"count": len(staged)}))

    def add_person(self, person: Person, *, now: datetime) -> None:
        with self._swap_lock:
            if person.property_id not in self._properties:
                raise NotFoundError("property not found", property_id=person.property_id)
            if any(p.id == person.id for p in self._people):
                raise ValueError(f"person {person.id!r} already exists")
            self._people = self._people + (copy.deepcopy(person),)
            self._version += 1
        self.events.publish(DomainEvent(PERSON_ADDED, person.property_id, now, {"person_id": person.id}))
