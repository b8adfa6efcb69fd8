# backend/propdesk/seed/demo_portfolio.py
from __future__ import annotations

from datetime import date, datetime

from ..domain.entities import (
    ActivityEntry,
    Address,
    ComplianceItem,
    ComplianceStatus,
    ComplianceType,
    Document,
    JobStatus,
    JobType,
    MaintenanceJob,
    Person,
    PersonStatus,
    PpmSchedule,
    PpmScope,
    Priority,
    Property,
    ScopeType,
    ServiceType,
    StoreSnapshot,
    Unit,
    UnitStatus,
)

# Demo portfolio used by `python -m propdesk.cli seed` and the API when
# SEED_DEMO_DATA=true. Dates are fixed so the seeded dashboard is reproducible.

DEMO_SCHEDULES: tuple[PpmSchedule, ...] = (
    PpmSchedule(
        id="ppm-1",
        name="Annual Gas Safety Inspection",
        compliance_type=ComplianceType.GAS_SAFETY,
        frequency_months=12,
        lead_time_days=30,
        scope=PpmScope(type=ScopeType.ALL),
    ),
    PpmSchedule(
        id="ppm-2",
        name="5-Year Electrical Check (EICR) - North",
        compliance_type=ComplianceType.EICR,
        frequency_months=60,
        lead_time_days=60,
        scope=PpmScope(type=ScopeType.REGION, value="North"),
    ),
)


def _harrogate() -> Property:
    return Property(
        id="STRE00",
        address=Address(line1="1 Street", city="Harrogate", postcode="HG1 1AA"),
        region="North",
        service_type=ServiceType.SUPPORTED_LIVING,
        legal_entity="Heathcotes",
        provider="Harbour Homes",
        handover_date=date(2021, 9, 1),
        units=[
            Unit(id="STRE00-M", name="Master", status=UnitStatus.MASTER),
            Unit(id="STRE00-1", name="Flat 1", status=UnitStatus.OCCUPIED),
            Unit(id="STRE00-2", name="Flat 2", status=UnitStatus.OCCUPIED),
            Unit(id="STRE00-3", name="Flat 3", status=UnitStatus.VOID, attention=True),
        ],
        compliance_items=[
            ComplianceItem(
                id="comp-1",
                type=ComplianceType.GAS_SAFETY,
                last_check=date(2024, 5, 15),
                next_check=date(2025, 5, 14),
                status=ComplianceStatus.COMPLIANT,
                report_url="/docs/gas-cert-24.pdf",
            ),
            ComplianceItem(
                id="comp-2",
                type=ComplianceType.EICR,
                last_check=date(2022, 8, 1),
                next_check=date(2027, 7, 31),
                status=ComplianceStatus.COMPLIANT,
                report_url="/docs/eicr-22.pdf",
            ),
            ComplianceItem(
                id="comp-fra-1",
                type=ComplianceType.FIRE_RISK_ASSESSMENT,
                last_check=date(2024, 7, 22),
                next_check=date(2025, 7, 21),
                status=ComplianceStatus.COMPLIANT,
            ),
        ],
        maintenance_jobs=[
            MaintenanceJob(
                id="job-3",
                ref="STRE00-001",
                property_id="STRE00",
                category="Gardening",
                job_type=JobType.REACTIVE,
                status=JobStatus.OPEN,
                reported_date=date(2024, 7, 22),
                sla_due_date=date(2024, 8, 19),
                priority=Priority.LOW,
                unit="Communal",
                summary="Hedges need trimming before next site visit.",
                reported_by="Clara Bell",
                activity_log=[ActivityEntry(date=datetime(2024, 7, 22, 9, 0), actor="Clara Bell", action="Job created.")],
            ),
        ],
        documents=[
            Document(
                id="doc-1",
                name="Gas Safety Certificate 2024",
                type="PDF",
                date=date(2024, 5, 15),
                year=2024,
                url="/docs/gas-cert-24.pdf",
            ),
        ],
    )


def _nottingham() -> Property:
    return Property(
        id="NOTT01",
        address=Address(line1="22 Lace Market", city="Nottingham", postcode="NG1 1HF"),
        region="Midlands",
        service_type=ServiceType.RESIDENTIAL,
        legal_entity="Gresham Care",
        provider="Midland Living",
        handover_date=date(2025, 6, 2),
        units=[
            Unit(id="NOTT01-1", name="Room 1", status=UnitStatus.OCCUPIED),
            Unit(id="NOTT01-2", name="Room 2", status=UnitStatus.VOID),
            Unit(id="NOTT01-S", name="Office", status=UnitStatus.STAFF_SPACE),
        ],
        compliance_items=[
            ComplianceItem(
                id="comp-nott-gas",
                type=ComplianceType.GAS_SAFETY,
                last_check=date(2024, 11, 3),
                next_check=date(2025, 11, 2),
                status=ComplianceStatus.COMPLIANT,
            ),
        ],
    )


def _newport() -> Property:
    return Property(
        id="NEWP02",
        address=Address(line1="5 Commercial Road", city="Newport", postcode="NP20 2PA"),
        region="Wales",
        service_type=ServiceType.NURSING_CARE,
        legal_entity="TLC",
        provider="Harbour Homes",
        handover_date=date(2019, 3, 11),
        handback_date=date(2025, 6, 9),
        units=[
            Unit(id="NEWP02-1", name="Flat 1", status=UnitStatus.OUT_OF_MANAGEMENT),
            Unit(id="NEWP02-2", name="Flat 2", status=UnitStatus.OUT_OF_MANAGEMENT),
        ],
    )


DEMO_PEOPLE: tuple[Person, ...] = (
    Person(
        id="per-1",
        name="Alex Morgan",
        property_id="STRE00",
        unit_id="STRE00-1",
        status=PersonStatus.CURRENT,
        move_in_date=date(2022, 1, 10),
    ),
    Person(
        id="per-2",
        name="Sam Patel",
        property_id="STRE00",
        unit_id="STRE00-2",
        status=PersonStatus.CURRENT,
        move_in_date=date(2025, 6, 10),
    ),
    Person(
        id="per-3",
        name="Jordan Lee",
        property_id="STRE00",
        unit_id="STRE00-3",
        status=PersonStatus.FORMER,
        move_in_date=date(2021, 10, 1),
        move_out_date=date(2025, 5, 20),
    ),
    Person(
        id="per-4",
        name="Robin Hughes",
        property_id="NOTT01",
        unit_id="NOTT01-1",
        status=PersonStatus.CURRENT,
        move_in_date=date(2025, 6, 3),
    ),
)


def demo_snapshot() -> StoreSnapshot:
    return StoreSnapshot(
        version=0,
        properties=(_harrogate(), _nottingham(), _newport()),
        schedules=DEMO_SCHEDULES,
        people=DEMO_PEOPLE,
    )
