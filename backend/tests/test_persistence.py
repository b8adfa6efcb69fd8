# backend/tests/test_persistence.py
from __future__ import annotations

from dataclasses import replace
from datetime import date

import pytest
from conftest import GAS_ANNUAL, NOW, gas_property

from propdesk.bootstrap import build_runtime
from propdesk.db import make_session_factory
from propdesk.domain.entities import JobStatus, StoreSnapshot
from propdesk.domain.errors import PersistenceError
from propdesk.seed.demo_portfolio import demo_snapshot
from propdesk.services.persistence import (
    MemorySnapshotStore,
    SqlSnapshotStore,
    dumps_snapshot,
    loads_snapshot,
)


class _BrokenStore(MemorySnapshotStore):
    def save(self, snap):
        raise PersistenceError("disk full")


def test_snapshot_survives_serialization():
    snap = demo_snapshot()
    back = loads_snapshot(dumps_snapshot(snap))
    assert back == snap
    assert back.get_property("STRE00").compliance_items[0].type.value == "Gas Safety"


def test_unreadable_payload_is_a_persistence_error():
    with pytest.raises(PersistenceError):
        loads_snapshot("{not json")
    with pytest.raises(PersistenceError):
        loads_snapshot('{"version": "x"}')


def test_sql_store_round_trip_and_never_goes_backwards(tmp_path):
    store = SqlSnapshotStore(make_session_factory(f"sqlite:///{tmp_path / 'state.db'}"))
    assert store.load() is None

    snap = replace(demo_snapshot(), version=5)
    store.save(snap)
    assert store.load() == snap

    with pytest.raises(PersistenceError):
        store.save(replace(snap, version=3, people=()))
    assert store.load().version == 5
    assert len(store.load().people) == 4

    store.clear()
    assert store.load() is None


def test_stale_writer_gets_a_conflict_not_an_overwrite(tmp_path):
    url = f"sqlite:///{tmp_path / 'shared.db'}"
    api = SqlSnapshotStore(make_session_factory(url))
    worker = SqlSnapshotStore(make_session_factory(url))

    api.save(replace(demo_snapshot(), version=1))
    worker.load()
    worker.save(replace(demo_snapshot(), version=2))

    with pytest.raises(PersistenceError, match="conflict"):
        api.save(replace(demo_snapshot(), version=2, people=()))
    assert len(worker.load().people) == 4

    fresh = api.load_if_changed()
    assert fresh is not None and fresh.version == 2
    assert api.load_if_changed() is None


def test_commands_are_persisted_after_commit(engine, durable):
    engine.transition_job("job-3", JobStatus.ASSIGNED, actor="Clara Bell", assigned_to="Green Thumbs")

    saved = durable.load()
    assert saved.version == engine.store.version
    assert saved.get_property("STRE00").job("job-3").status == JobStatus.ASSIGNED


def test_persistence_failure_is_reported_not_raised(config):
    rt = build_runtime(config, durable=_BrokenStore(), initial=demo_snapshot())

    job = rt.engine.transition_job("job-3", JobStatus.ASSIGNED, actor="Clara Bell", assigned_to="Green Thumbs")

    assert job.status == JobStatus.ASSIGNED
    assert rt.engine.store.get_property("STRE00").job("job-3").status == JobStatus.ASSIGNED
    assert rt.persistence.last_error == "disk full"
    assert rt.persistence.last_saved_version is None


def test_runtime_loads_durable_state_before_seeding(config):
    durable = MemorySnapshotStore()
    durable.save(replace(demo_snapshot(), version=9))

    rt = build_runtime(config.model_copy(update={"seed_demo_data": True}), durable=durable)
    assert rt.engine.store.version == 9


def test_runtime_seeds_only_when_asked(config):
    empty = build_runtime(config, durable=MemorySnapshotStore())
    assert empty.engine.snapshot().properties == ()

    seeded = build_runtime(config.model_copy(update={"seed_demo_data": True}), durable=MemorySnapshotStore())
    assert len(seeded.engine.snapshot().properties) == 3


def test_subscriber_failure_does_not_unwind_commit(engine):
    def boom(_event):
        raise RuntimeError("subscriber down")

    engine.store.events.subscribe(boom)
    engine.record_job_cost("job-3", net=50, vat=10, actor="Clara Bell")
    assert engine.store.get_property("STRE00").job("job-3").cost.gross == 60.0


def _shared_runtime(config, url):
    cfg = config.model_copy(update={"durable_store": "sql", "database_url": url})
    return build_runtime(cfg, durable=SqlSnapshotStore(make_session_factory(url)), clock=lambda: NOW)


def test_api_keeps_jobs_written_by_the_worker(config, tmp_path):
    url = f"sqlite:///{tmp_path / 'shared.db'}"
    SqlSnapshotStore(make_session_factory(url)).save(
        StoreSnapshot(version=0, properties=(gas_property(),), schedules=(GAS_ANNUAL,))
    )
    api = _shared_runtime(config, url)
    worker = _shared_runtime(config, url)

    run = worker.engine.run_resolver()
    assert [j.ref for j in run.created] == ["HARR01-PPM-001"]
    assert worker.persistence.last_error is None

    api.engine.correct_compliance_item(
        "HARR01", "comp-1", last_check=date(2024, 5, 15), next_check=date(2025, 5, 15), actor="Site Manager"
    )
    assert api.persistence.last_error is None
    assert api.engine.store.get_property("HARR01").job(run.created[0].id) is not None

    stored = SqlSnapshotStore(make_session_factory(url)).load()
    prop = stored.get_property("HARR01")
    assert [j.ref for j in prop.maintenance_jobs] == ["HARR01-PPM-001"]
    assert prop.compliance_item("comp-1").next_check == date(2025, 5, 15)


def test_conflicting_save_is_reported_then_recovered(config, tmp_path):
    url = f"sqlite:///{tmp_path / 'shared.db'}"
    SqlSnapshotStore(make_session_factory(url)).save(
        StoreSnapshot(version=0, properties=(gas_property(),), schedules=(GAS_ANNUAL,))
    )
    api = _shared_runtime(config, url)
    worker = _shared_runtime(config, url)
    worker.engine.run_resolver()

    # a save attempted before the api has seen the worker's write
    assert api.persistence.flush() is False
    assert "conflict" in api.persistence.last_error

    api.engine.compliance_summary()
    assert api.persistence.last_error is None
    assert api.engine.store.version == worker.engine.store.version
