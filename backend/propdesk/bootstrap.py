# backend/propdesk/bootstrap.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from .config import Settings, settings as default_settings
from .db import make_session_factory
from .domain.entities import StoreSnapshot
from .seed.demo_portfolio import demo_snapshot
from .services.engine import ComplianceEngine
from .services.persistence import DurableStore, MemorySnapshotStore, PersistenceReporter, SqlSnapshotStore
from .services.store import EntityStore

log = logging.getLogger("propdesk.bootstrap")


@dataclass
class Runtime:
    engine: ComplianceEngine
    durable: DurableStore
    persistence: PersistenceReporter


def make_durable_store(config: Settings) -> DurableStore:
    if config.durable_store == "memory":
        return MemorySnapshotStore()
    return SqlSnapshotStore(make_session_factory(config.database_url), store_key=config.snapshot_key)


def build_runtime(
    config: Optional[Settings] = None,
    *,
    durable: Optional[DurableStore] = None,
    initial: Optional[StoreSnapshot] = None,
    clock: Optional[Callable] = None,
) -> Runtime:
    """
    Wires one engine for the process: load (or seed) state, subscribe the
    post-commit persistence writer, hand back the pieces.
    """
    cfg = config or default_settings
    ds = durable if durable is not None else make_durable_store(cfg)

    snap = initial
    if snap is None:
        snap = ds.load()
        if snap is None and cfg.seed_demo_data:
            log.info("no stored state; seeding demo portfolio")
            snap = demo_snapshot()
    if snap is None:
        snap = StoreSnapshot(version=0)

    store = EntityStore.from_snapshot(snap)
    persistence = PersistenceReporter(ds, store.snapshot)

    kwargs = {"config": cfg, "sync": lambda: persistence.pull(store)}
    if clock is not None:
        kwargs["clock"] = clock
    engine = ComplianceEngine(store, **kwargs)

    store.events.subscribe(persistence)
    return Runtime(engine=engine, durable=ds, persistence=persistence)
