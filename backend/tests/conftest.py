# backend/tests/conftest.py
from __future__ import annotations

from datetime import date, datetime

import pytest

from propdesk.bootstrap import build_runtime
from propdesk.config import Settings
from propdesk.domain.entities import (
    Address,
    ComplianceItem,
    ComplianceType,
    PpmSchedule,
    PpmScope,
    Property,
    ScopeType,
    ServiceType,
    StoreSnapshot,
    Unit,
    UnitStatus,
)
from propdesk.seed.demo_portfolio import demo_snapshot
from propdesk.services.persistence import MemorySnapshotStore

NOW = datetime(2025, 4, 20, 9, 0)

GAS_ANNUAL = PpmSchedule(
    id="ppm-1",
    name="Annual Gas Safety Inspection",
    compliance_type=ComplianceType.GAS_SAFETY,
    frequency_months=12,
    lead_time_days=30,
    scope=PpmScope(type=ScopeType.ALL),
)


def gas_property(pid: str = "HARR01", region: str = "North") -> Property:
    return Property(
        id=pid,
        address=Address(line1="1 Street", city="Harrogate", postcode="HG1 1AA"),
        region=region,
        service_type=ServiceType.SUPPORTED_LIVING,
        legal_entity="Heathcotes",
        provider="Harbour Homes",
        units=[Unit(id=f"{pid}-1", name="Flat 1", status=UnitStatus.OCCUPIED)],
        compliance_items=[
            ComplianceItem(
                id="comp-1",
                type=ComplianceType.GAS_SAFETY,
                last_check=date(2024, 5, 15),
                next_check=date(2025, 5, 14),
            )
        ],
    )


@pytest.fixture
def config() -> Settings:
    return Settings(durable_store="memory", seed_demo_data=False)


@pytest.fixture
def durable() -> MemorySnapshotStore:
    return MemorySnapshotStore()


@pytest.fixture
def runtime(config, durable):
    return build_runtime(config, durable=durable, initial=demo_snapshot(), clock=lambda: NOW)


@pytest.fixture
def engine(runtime):
    return runtime.engine


@pytest.fixture
def gas_runtime(config, durable):
    """One North property with a gas item and the annual gas schedule."""
    snap = StoreSnapshot(version=0, properties=(gas_property(),), schedules=(GAS_ANNUAL,))
    return build_runtime(config, durable=durable, initial=snap, clock=lambda: NOW)


@pytest.fixture
def gas_engine(gas_runtime):
    return gas_runtime.engine
