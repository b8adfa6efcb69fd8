# backend/tests/test_reporting.py
from __future__ import annotations

import pytest

from propdesk.domain.entities import Priority, ServiceType, UnitStatus
from propdesk.domain.reporting import (
    AttentionIs,
    OverdueIs,
    PriorityIn,
    ProviderIn,
    RegionIn,
    ServiceTypeIn,
    TextMatch,
    UnitStatusIn,
    rate,
)


def test_unit_rows_cover_every_unit(engine):
    res = engine.report("units", [])
    assert res.count == 9
    assert {r.property_id for r in res.rows} == {"STRE00", "NOTT01", "NEWP02"}


def test_clauses_compose_with_and(engine):
    assert engine.report("units", [RegionIn(frozenset({"north"}))]).count == 4
    assert engine.report("units", [UnitStatusIn(frozenset({UnitStatus.VOID}))]).count == 2
    both = engine.report("units", [RegionIn(frozenset({"North"})), UnitStatusIn(frozenset({UnitStatus.VOID}))])
    assert [r.unit_id for r in both.rows] == ["STRE00-3"]


def test_empty_value_set_does_not_restrict(engine):
    assert engine.report("units", [ServiceTypeIn(frozenset())]).count == 9


def test_attention_and_text_search(engine):
    assert [r.unit_id for r in engine.report("units", [AttentionIs(True)]).rows] == ["STRE00-3"]
    assert engine.report("units", [TextMatch("nott")]).count == 3
    assert engine.report("units", [TextMatch("lace market")]).count == 3
    assert engine.report("units", [TextMatch("   ")]).count == 9


def test_group_by_provider_keeps_first_seen_order(engine):
    res = engine.report("units", [], group_by="provider")
    assert list(res.groups) == ["Harbour Homes", "Midland Living"]
    assert len(res.groups["Harbour Homes"]) == 6
    assert sum(len(v) for v in res.groups.values()) == res.count


def test_group_by_enum_field_uses_value(engine):
    res = engine.report("units", [ProviderIn(frozenset({"harbour homes"}))], group_by="service_type")
    assert set(res.groups) == {ServiceType.SUPPORTED_LIVING.value, ServiceType.NURSING_CARE.value}


def test_job_rows_flag_overdue(engine):
    res = engine.report("jobs", [OverdueIs(True)])
    assert [r.ref for r in res.rows] == ["STRE00-001"]
    assert engine.report("jobs", [PriorityIn(frozenset({Priority.HIGH}))]).count == 0


def test_clause_entity_mismatch_is_rejected(engine):
    with pytest.raises(ValueError):
        engine.report("units", [PriorityIn(frozenset({Priority.LOW}))])
    with pytest.raises(ValueError):
        engine.report("jobs", [AttentionIs(True)])
    with pytest.raises(ValueError):
        engine.report("people", [])
    with pytest.raises(ValueError):
        engine.report("units", [], group_by="priority")


def test_rate_guards_empty_denominator():
    assert rate(1, 4) == 0.25
    assert rate(0, 0) is None
    assert rate(0, 0, empty=1.0) == 1.0
