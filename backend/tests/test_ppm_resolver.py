# backend/tests/test_ppm_resolver.py
from __future__ import annotations

import threading
from dataclasses import replace
from datetime import date

from conftest import GAS_ANNUAL, NOW, gas_property

from propdesk.domain.compliance import is_due, resolve
from propdesk.domain.dates import add_months
from propdesk.domain.entities import (
    ComplianceItem,
    ComplianceType,
    JobStatus,
    JobType,
    PpmSchedule,
    PpmScope,
    Priority,
    ScopeType,
)
from propdesk.services import engine as engine_module

EICR_NORTH = PpmSchedule(
    id="ppm-2",
    name="5-Year Electrical Check (EICR) - North",
    compliance_type=ComplianceType.EICR,
    frequency_months=60,
    lead_time_days=60,
    scope=PpmScope(type=ScopeType.REGION, value="North"),
)


def test_job_requested_inside_lead_window():
    out = resolve([GAS_ANNUAL], [gas_property()], date(2025, 4, 20))

    assert len(out.requests) == 1
    req = out.requests[0]
    assert req.property_id == "HARR01"
    assert req.compliance_id == "comp-1"
    assert req.due_date == date(2025, 5, 15)
    assert req.sla_due_date == date(2025, 5, 14)
    assert req.category == "Gas Safety Inspection"
    assert req.priority == Priority.HIGH
    assert req.placeholder is None
    assert out.errors == []


def test_no_job_before_lead_window():
    out = resolve([GAS_ANNUAL], [gas_property()], date(2025, 4, 10))
    assert out.requests == []


def test_lead_window_boundary_is_inclusive():
    assert resolve([GAS_ANNUAL], [gas_property()], date(2025, 4, 15)).requests
    assert not resolve([GAS_ANNUAL], [gas_property()], date(2025, 4, 14)).requests


def test_region_scope_does_not_match_other_region():
    prop = gas_property(region="Midlands")
    prop.compliance_items.append(
        ComplianceItem(id="comp-e", type=ComplianceType.EICR, last_check=date(2020, 5, 1), next_check=date(2025, 5, 1))
    )
    out = resolve([EICR_NORTH], [prop], date(2025, 4, 20))
    assert out.requests == []
    assert out.errors == []


def test_region_scope_is_case_insensitive():
    prop = gas_property(region="  north ")
    prop.compliance_items.append(
        ComplianceItem(id="comp-e", type=ComplianceType.EICR, last_check=date(2020, 5, 1), next_check=date(2025, 5, 1))
    )
    out = resolve([EICR_NORTH], [prop], date(2025, 4, 20))
    assert [r.compliance_id for r in out.requests] == ["comp-e"]


def test_open_linked_job_suppresses_request(gas_engine):
    gas_engine.run_resolver()
    snap = gas_engine.snapshot()

    out = resolve(snap.schedules, snap.properties, NOW)
    assert out.requests == []
    assert out.already_open == 1


def test_one_request_per_item_even_with_overlapping_schedules():
    twin = replace(GAS_ANNUAL, id="ppm-dup", name="Gas (dup)")
    out = resolve([GAS_ANNUAL, twin], [gas_property()], date(2025, 4, 20))
    assert len(out.requests) == 1
    assert out.requests[0].schedule_id == "ppm-1"


def test_missing_item_gets_placeholder_due_now():
    prop = gas_property()
    prop.compliance_items = []
    out = resolve([GAS_ANNUAL], [prop], date(2025, 4, 20))

    req = out.requests[0]
    assert req.placeholder is not None
    assert req.compliance_id == "comp-HARR01-gas-safety"
    assert req.due_date == date(2025, 4, 20)
    assert req.sla_due_date == date(2025, 4, 20)


def test_malformed_schedule_is_reported_and_others_still_run():
    broken = replace(GAS_ANNUAL, id="ppm-bad", frequency_months=0)
    out = resolve([broken, GAS_ANNUAL], [gas_property()], date(2025, 4, 20))

    assert len(out.errors) == 1
    assert out.errors[0].schedule_id == "ppm-bad"
    assert len(out.requests) == 1


def test_region_schedule_against_property_without_region_is_pair_error():
    prop = gas_property(region="")
    prop.compliance_items.append(ComplianceItem(id="comp-e", type=ComplianceType.EICR))
    out = resolve([EICR_NORTH, GAS_ANNUAL], [prop], date(2025, 4, 20))

    assert [e.schedule_id for e in out.errors] == ["ppm-2"]
    assert out.errors[0].property_id == "HARR01"
    assert len(out.requests) == 1


def test_item_with_inverted_dates_is_pair_error():
    prop = gas_property()
    prop.compliance_items[0].next_check = date(2024, 1, 1)
    out = resolve([GAS_ANNUAL], [prop], date(2025, 4, 20))
    assert out.requests == []
    assert out.errors[0].compliance_id == "comp-1"


def test_month_arithmetic_clamps_to_month_end():
    assert add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)
    assert add_months(date(2023, 2, 28), 12) == date(2024, 2, 28)
    assert add_months(date(2024, 11, 30), 3) == date(2025, 2, 28)


def test_engine_run_creates_linked_ppm_job(gas_engine):
    run = gas_engine.run_resolver()
    assert len(run.created) == 1
    job = run.created[0]

    assert job.job_type == JobType.PPM
    assert job.status == JobStatus.OPEN
    assert job.ref == "HARR01-PPM-001"
    assert job.linked_compliance_id == "comp-1"
    assert job.sla_due_date == date(2025, 5, 14)
    assert job.activity_log[0].actor == "System"
    assert job.activity_log[0].action == "Job auto-created from PPM schedule 'Annual Gas Safety Inspection'"


def test_engine_run_is_idempotent(gas_engine):
    first = gas_engine.run_resolver()
    second = gas_engine.run_resolver()

    assert len(first.created) == 1
    assert second.created == []
    assert second.already_open == 1
    prop = gas_engine.store.get_property("HARR01")
    assert len(prop.maintenance_jobs) == 1


def test_engine_run_adds_placeholder_item(engine):
    run = engine.run_resolver()
    refs = sorted(j.ref for j in run.created)
    assert refs == ["NEWP02-PPM-001", "STRE00-PPM-002"]

    newport = engine.store.get_property("NEWP02")
    item = newport.compliance_item("comp-NEWP02-gas-safety")
    assert item is not None
    assert newport.maintenance_jobs[0].linked_compliance_id == item.id


def test_concurrent_runs_never_open_two_jobs(gas_engine):
    barrier = threading.Barrier(4)
    runs = []

    def worker():
        barrier.wait()
        runs.append(gas_engine.run_resolver())

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    prop = gas_engine.store.get_property("HARR01")
    assert len(prop.open_jobs_linked_to("comp-1")) == 1
    assert sum(len(r.created) for r in runs) == 1
    assert all(r.errors == [] for r in runs)


def test_due_check_honours_lead_window():
    item = gas_property().compliance_item("comp-1")
    assert is_due(item, GAS_ANNUAL, date(2025, 4, 15))
    assert not is_due(item, GAS_ANNUAL, date(2025, 4, 14))


def test_item_renewed_after_snapshot_gets_no_job(gas_engine, monkeypatch):
    real_resolve = engine_module.resolve

    def resolve_then_renew(*args, **kwargs):
        decided = real_resolve(*args, **kwargs)
        # lands between the resolver snapshot and job creation
        gas_engine.correct_compliance_item(
            "HARR01",
            "comp-1",
            last_check=date(2025, 4, 18),
            next_check=date(2026, 4, 17),
            actor="Site Manager",
        )
        return decided

    monkeypatch.setattr(engine_module, "resolve", resolve_then_renew)
    run = gas_engine.run_resolver()

    assert run.created == []
    assert run.no_longer_due == 1
    prop = gas_engine.store.get_property("HARR01")
    assert prop.maintenance_jobs == []
    assert prop.compliance_item("comp-1").next_check == date(2026, 4, 17)


def test_resolver_targets_replacement_item(gas_engine):
    gas_engine.supersede_compliance_item(
        "HARR01",
        "comp-1",
        ComplianceItem(id="comp-1b", type=ComplianceType.GAS_SAFETY, last_check=date(2024, 5, 1), next_check=date(2025, 4, 30)),
        actor="Site Manager",
    )
    run = gas_engine.run_resolver()

    assert [j.linked_compliance_id for j in run.created] == ["comp-1b"]
    assert run.created[0].sla_due_date == date(2025, 4, 30)
