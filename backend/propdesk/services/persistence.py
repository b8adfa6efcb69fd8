# backend/propdesk/services/persistence.py
from __future__ import annotations

import json
import logging
import threading
from datetime import datetime
from typing import Callable, Optional, Protocol

from pydantic import TypeAdapter, ValidationError
from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from ..domain.entities import StoreSnapshot
from ..domain.errors import PersistenceError
from ..models import StateSnapshot
from .events import DomainEvent
from .store import EntityStore

log = logging.getLogger("propdesk.persistence")

_SNAPSHOT = TypeAdapter(StoreSnapshot)


def dumps_snapshot(snap: StoreSnapshot) -> str:
    return json.dumps(_SNAPSHOT.dump_python(snap, mode="json"), ensure_ascii=False, separators=(",", ":"))


def loads_snapshot(payload: str) -> StoreSnapshot:
    try:
        return _SNAPSHOT.validate_python(json.loads(payload))
    except (ValueError, ValidationError) as e:
        raise PersistenceError(f"stored snapshot is unreadable: {e}") from e


class DurableStore(Protocol):
    def load(self) -> Optional[StoreSnapshot]: ...

    def load_if_changed(self) -> Optional[StoreSnapshot]: ...

    def save(self, snap: StoreSnapshot) -> None: ...

    def clear(self) -> None: ...


class MemorySnapshotStore:
    """Keeps the last serialized blob in memory (dev / tests). Single writer."""

    def __init__(self) -> None:
        self._blob: Optional[str] = None
        self.saves = 0

    def load(self) -> Optional[StoreSnapshot]:
        return loads_snapshot(self._blob) if self._blob is not None else None

    def load_if_changed(self) -> Optional[StoreSnapshot]:
        return None

    def save(self, snap: StoreSnapshot) -> None:
        self._blob = dumps_snapshot(snap)
        self.saves += 1

    def clear(self) -> None:
        self._blob = None


class SqlSnapshotStore:
    """
    Whole-state blob persisted as one row per store key.

    Several processes (API, beat worker, CLI) may share the row, so writes are
    a compare-and-swap on the version this instance last loaded or saved. A
    row that moved underneath it is a conflict, never a silent overwrite.

    Each call opens and closes its own session; failures are rolled back and
    re-raised as PersistenceError.
    """

    def __init__(self, session_factory: sessionmaker, *, store_key: str = "default") -> None:
        self._session_factory = session_factory
        self._store_key = store_key
        self.base_version: Optional[int] = None

    def _session(self) -> Session:
        return self._session_factory()

    def _row(self, db: Session) -> Optional[StateSnapshot]:
        return db.scalar(select(StateSnapshot).where(StateSnapshot.store_key == self._store_key))

    def load(self) -> Optional[StoreSnapshot]:
        db = self._session()
        try:
            row = self._row(db)
            if row is None:
                self.base_version = None
                return None
            snap = loads_snapshot(row.payload_json)
            self.base_version = int(row.version)
            return snap
        except SQLAlchemyError as e:
            raise PersistenceError(f"snapshot load failed: {e}") from e
        finally:
            db.close()

    def stored_version(self) -> Optional[int]:
        db = self._session()
        try:
            return db.scalar(select(StateSnapshot.version).where(StateSnapshot.store_key == self._store_key))
        except SQLAlchemyError as e:
            raise PersistenceError(f"snapshot version check failed: {e}") from e
        finally:
            db.close()

    def load_if_changed(self) -> Optional[StoreSnapshot]:
        """The stored snapshot when another writer saved since our last load/save, else None."""
        stored = self.stored_version()
        if stored is None or stored == self.base_version:
            return None
        return self.load()

    def save(self, snap: StoreSnapshot) -> None:
        payload = dumps_snapshot(snap)
        version = int(snap.version)
        db = self._session()
        try:
            if self.base_version is None:
                # first write for this key; the unique store_key rejects a racing insert
                db.add(
                    StateSnapshot(
                        store_key=self._store_key,
                        version=version,
                        payload_json=payload,
                        saved_at=datetime.utcnow(),
                    )
                )
                db.commit()
            else:
                if version < self.base_version:
                    raise PersistenceError(
                        f"snapshot version {version} is older than stored version {self.base_version}"
                    )
                res = db.execute(
                    update(StateSnapshot)
                    .where(
                        StateSnapshot.store_key == self._store_key,
                        StateSnapshot.version == self.base_version,
                    )
                    .values(version=version, payload_json=payload, saved_at=datetime.utcnow())
                )
                if res.rowcount != 1:
                    db.rollback()
                    raise PersistenceError(
                        f"snapshot conflict: stored state changed since version {self.base_version}"
                    )
                db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise PersistenceError(f"snapshot save failed: {e}") from e
        finally:
            db.close()
        self.base_version = version

    def clear(self) -> None:
        db = self._session()
        try:
            db.execute(delete(StateSnapshot).where(StateSnapshot.store_key == self._store_key))
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise PersistenceError(f"snapshot clear failed: {e}") from e
        finally:
            db.close()
        self.base_version = None


class PersistenceReporter:
    """
    Event subscriber that saves the whole store after each committed change.

    Eventual persistence: a failed save is logged and kept as `last_error`
    (surfaced by /health); the in-memory commit stands. `pull` brings in state
    another process saved, and runs before every engine command.
    """

    def __init__(self, durable: DurableStore, snapshot: Callable[[], StoreSnapshot]) -> None:
        self._durable = durable
        self._snapshot = snapshot
        self._lock = threading.Lock()
        self.last_error: Optional[str] = None
        self.last_saved_version: Optional[int] = None

    def __call__(self, event: DomainEvent) -> None:
        self.flush(reason=event.event_type, property_id=event.property_id)

    def flush(self, *, reason: str = "manual", property_id: Optional[str] = None) -> bool:
        with self._lock:
            snap = self._snapshot()
            try:
                self._durable.save(snap)
            except PersistenceError as e:
                self.last_error = str(e)
                log.error(
                    "persisting snapshot failed; in-memory state kept",
                    extra={"event_type": reason, "property_id": property_id},
                )
                return False
            self.last_error = None
            self.last_saved_version = snap.version
            return True

    def pull(self, store: EntityStore) -> bool:
        with self._lock:
            try:
                snap = self._durable.load_if_changed()
            except PersistenceError as e:
                self.last_error = str(e)
                log.error("reading durable state failed; serving in-memory state", extra={"event_type": "reload"})
                return False
            if snap is None:
                return False
            if self.last_error is not None:
                log.warning(
                    "unsaved local changes replaced by newer durable state",
                    extra={"event_type": "reload"},
                )
            store.reload(snap)
            self.last_error = None
            self.last_saved_version = snap.version
            return True
