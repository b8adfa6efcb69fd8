# backend/tests/test_entity_store.py
from __future__ import annotations

from datetime import date

import pytest
from conftest import GAS_ANNUAL

from propdesk.domain.entities import Person, PersonStatus
from propdesk.domain.errors import NotFoundError
from propdesk.domain.reporting_windows import WindowKind


def test_snapshot_is_stable_across_later_commits(engine):
    before = engine.snapshot()
    engine.record_job_cost("job-3", net=10, vat=2, actor="Clara Bell")

    assert before.get_property("STRE00").job("job-3").cost.recorded is False
    assert engine.snapshot().get_property("STRE00").job("job-3").cost.recorded is True
    assert engine.snapshot().version == before.version + 1


def test_removing_property_drops_its_people(engine, durable):
    engine.remove_property("STRE00")

    snap = engine.snapshot()
    assert snap.get_property("STRE00") is None
    assert {p.property_id for p in snap.people} == {"NOTT01"}
    assert durable.load().version == snap.version

    with pytest.raises(NotFoundError):
        engine.remove_property("STRE00")


def test_added_person_feeds_window_stats(engine):
    engine.add_person(
        Person("per-9", "Casey Ward", "NOTT01", "NOTT01-2", PersonStatus.CURRENT, move_in_date=date(2025, 4, 20))
    )
    stats = engine.window_stats(WindowKind.WEEK)
    assert stats.voids_filled == 1
    assert stats.people_supported == 4

    with pytest.raises(ValueError):
        engine.add_person(Person("per-9", "Dup", "NOTT01", "NOTT01-2", PersonStatus.CURRENT, move_in_date=date(2025, 4, 20)))
    with pytest.raises(NotFoundError):
        engine.add_person(Person("per-10", "X", "NOPE", "NOPE-1", PersonStatus.CURRENT, move_in_date=date(2025, 4, 20)))


def test_replacing_schedules_changes_next_resolver_pass(engine, durable):
    engine.replace_schedules([])
    assert engine.run_resolver().created == []
    assert durable.load().schedules == ()

    engine.replace_schedules([GAS_ANNUAL])
    assert len(engine.run_resolver().created) == 2
