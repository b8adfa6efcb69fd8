# backend/tests/test_completion_cascade.py
from __future__ import annotations

from dataclasses import replace
from datetime import date, datetime

import pytest
from conftest import GAS_ANNUAL, gas_property

from propdesk.domain.compliance import evaluate
from propdesk.domain.entities import (
    ComplianceItem,
    ComplianceStatus,
    ComplianceType,
    JobStatus,
    JobType,
    MaintenanceJob,
    PpmSchedule,
    PpmScope,
    ScopeType,
)
from propdesk.domain.errors import InvalidStateTransition, LinkIntegrityError
from propdesk.services.completion_cascade import COMPLETION_ACTION, frequency_for
from propdesk.services.store import EntityStore
from propdesk.services.engine import ComplianceEngine

COMPLETED_ON = datetime(2025, 5, 1, 14, 30)


def _in_progress_ppm_job(engine) -> MaintenanceJob:
    job = engine.run_resolver().created[0]
    engine.transition_job(job.id, JobStatus.ASSIGNED, actor="Clara Bell", assigned_to="Gas Co")
    engine.transition_job(job.id, JobStatus.IN_PROGRESS, actor="Gas Co")
    return job


def test_certificate_upload_renews_item(gas_engine):
    job = _in_progress_ppm_job(gas_engine)

    out = gas_engine.complete_compliance_job(job.id, "gas-cert-25", actor="Gas Co", now=COMPLETED_ON)

    prop = gas_engine.store.get_property("HARR01")
    item = prop.compliance_item("comp-1")
    assert item.last_check == date(2025, 5, 1)
    assert item.next_check == date(2026, 5, 1)
    assert item.status == ComplianceStatus.COMPLIANT
    assert item.report_url == "/docs/gas-cert-25.pdf"
    assert evaluate(item, COMPLETED_ON) == ComplianceStatus.COMPLIANT

    done = prop.job(job.id)
    assert done.status == JobStatus.COMPLETED
    assert done.activity_log[-1].action == COMPLETION_ACTION
    assert done.activity_log[-1].actor == "Gas Co"

    [doc] = prop.documents
    assert doc.name == "gas-cert-25"
    assert doc.linked_job_ref == job.ref
    assert doc.date == date(2025, 5, 1)
    assert doc.year == 2025
    assert out.document == doc


def test_supplied_certificate_url_is_kept(gas_engine):
    job = _in_progress_ppm_job(gas_engine)
    gas_engine.complete_compliance_job(
        job.id, "gas-cert-25", actor="Gas Co", certificate_url="https://files.example/gas.pdf", now=COMPLETED_ON
    )
    item = gas_engine.store.get_property("HARR01").compliance_item("comp-1")
    assert item.report_url == "https://files.example/gas.pdf"


def test_open_job_cannot_be_completed_and_nothing_changes(gas_engine):
    job = gas_engine.run_resolver().created[0]
    version = gas_engine.store.version

    with pytest.raises(InvalidStateTransition):
        gas_engine.complete_compliance_job(job.id, "gas-cert-25", actor="Gas Co", now=COMPLETED_ON)

    prop = gas_engine.store.get_property("HARR01")
    assert gas_engine.store.version == version
    assert prop.job(job.id).status == JobStatus.OPEN
    assert prop.compliance_item("comp-1").last_check == date(2024, 5, 15)
    assert prop.documents == []


def test_dangling_link_rolls_back_everything(config):
    prop = gas_property()
    prop.maintenance_jobs.append(
        MaintenanceJob(
            id="job-x",
            ref="HARR01-PPM-001",
            property_id="HARR01",
            category="Gas Safety Inspection",
            job_type=JobType.PPM,
            status=JobStatus.IN_PROGRESS,
            reported_date=date(2025, 4, 1),
            sla_due_date=date(2025, 5, 14),
            assigned_to="Gas Co",
            linked_compliance_id="comp-gone",
        )
    )
    store = EntityStore(properties=[prop], schedules=[GAS_ANNUAL])
    engine = ComplianceEngine(store, config=config, clock=lambda: COMPLETED_ON)

    with pytest.raises(LinkIntegrityError) as ei:
        engine.complete_compliance_job("job-x", "gas-cert-25", actor="Gas Co")

    assert ei.value.as_dict()["compliance_id"] == "comp-gone"
    after = store.get_property("HARR01")
    assert store.version == 0
    assert after.job("job-x").status == JobStatus.IN_PROGRESS
    assert after.job("job-x").activity_log == []
    assert after.documents == []


def test_reactive_job_is_not_a_compliance_job(engine):
    with pytest.raises(LinkIntegrityError):
        engine.complete_compliance_job("job-3", "cert", actor="x")


def test_frequency_prefers_schedule_matching_property():
    north = PpmSchedule(
        id="eicr-n",
        name="EICR North",
        compliance_type=ComplianceType.EICR,
        frequency_months=60,
        lead_time_days=60,
        scope=PpmScope(type=ScopeType.REGION, value="North"),
    )
    midlands = replace(north, id="eicr-m", name="EICR Midlands", frequency_months=36, scope=PpmScope(ScopeType.REGION, "Midlands"))
    prop = gas_property(region="Midlands")
    item = prop.compliance_items[0]
    item = replace(item, type=ComplianceType.EICR)

    assert frequency_for(item, prop, [north, midlands]) == 36
    assert frequency_for(item, gas_property(region="North"), [north, midlands]) == 60


def test_frequency_falls_back_to_default():
    prop = gas_property()
    item = prop.compliance_items[0]
    assert frequency_for(item, prop, []) == 12
    assert frequency_for(item, prop, [], default_months=24) == 24
    assert frequency_for(item, prop, [replace(GAS_ANNUAL, frequency_months=0)]) == 12


def test_events_published_after_commit(gas_runtime):
    engine = gas_runtime.engine
    seen = []
    engine.store.events.subscribe(lambda e: seen.append((e.event_type, engine.store.version)))

    job = _in_progress_ppm_job(engine)
    engine.complete_compliance_job(job.id, "gas-cert-25", actor="Gas Co", now=COMPLETED_ON)

    assert [t for t, _ in seen] == [
        "job_created",
        "job_transitioned",
        "job_transitioned",
        "compliance_job_completed",
    ]
    # each event observed the version its own commit produced
    assert [v for _, v in seen] == [1, 2, 3, 4]


def test_superseded_link_is_rejected(config):
    prop = gas_property()
    prop.compliance_items[0].superseded = True
    prop.compliance_items.append(
        ComplianceItem(id="comp-1b", type=ComplianceType.GAS_SAFETY, last_check=date(2025, 4, 1), next_check=date(2026, 4, 1))
    )
    prop.maintenance_jobs.append(
        MaintenanceJob(
            id="job-old",
            ref="HARR01-PPM-001",
            property_id="HARR01",
            category="Gas Safety Inspection",
            job_type=JobType.PPM,
            status=JobStatus.IN_PROGRESS,
            reported_date=date(2025, 4, 1),
            sla_due_date=date(2025, 5, 14),
            assigned_to="Gas Co",
            linked_compliance_id="comp-1",
        )
    )
    store = EntityStore(properties=[prop], schedules=[GAS_ANNUAL])
    engine = ComplianceEngine(store, config=config, clock=lambda: COMPLETED_ON)

    with pytest.raises(LinkIntegrityError):
        engine.complete_compliance_job("job-old", "gas-cert-25", actor="Gas Co")
    assert store.version == 0
    assert store.get_property("HARR01").compliance_item("comp-1").last_check == date(2024, 5, 15)


def test_supersede_moves_open_job_to_replacement(gas_engine):
    job = _in_progress_ppm_job(gas_engine)

    prop = gas_engine.supersede_compliance_item(
        "HARR01",
        "comp-1",
        ComplianceItem(id="comp-1b", type=ComplianceType.GAS_SAFETY),
        actor="Site Manager",
    )
    assert prop.compliance_item("comp-1").superseded is True
    assert prop.live_item_for(ComplianceType.GAS_SAFETY).id == "comp-1b"
    assert prop.job(job.id).linked_compliance_id == "comp-1b"

    out = gas_engine.complete_compliance_job(job.id, "gas-cert-25", actor="Gas Co", now=COMPLETED_ON)
    assert out.item.id == "comp-1b"
    assert out.item.next_check == date(2026, 5, 1)


def test_supersede_rules(gas_engine):
    with pytest.raises(ValueError):
        gas_engine.supersede_compliance_item(
            "HARR01", "comp-1", ComplianceItem(id="comp-x", type=ComplianceType.EICR), actor="a"
        )
    with pytest.raises(ValueError):
        gas_engine.supersede_compliance_item(
            "HARR01", "comp-1", ComplianceItem(id="comp-1", type=ComplianceType.GAS_SAFETY), actor="a"
        )
    gas_engine.supersede_compliance_item(
        "HARR01", "comp-1", ComplianceItem(id="comp-1b", type=ComplianceType.GAS_SAFETY), actor="a"
    )
    with pytest.raises(ValueError):
        gas_engine.supersede_compliance_item(
            "HARR01", "comp-1", ComplianceItem(id="comp-1c", type=ComplianceType.GAS_SAFETY), actor="a"
        )
    assert gas_engine.store.version == 1
