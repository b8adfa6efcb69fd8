# backend/propdesk/domain/entities.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Optional

# -----------------------------------------------------------------------------
# Entities of the compliance & maintenance core
# -----------------------------------------------------------------------------
# A Property owns its units, compliance items, maintenance jobs and documents.
# Committed Property objects are never mutated in place: every write happens on
# a staged deep copy inside a property transaction (services/store.py).
# PPM schedules and people are reference data held next to the properties.
# -----------------------------------------------------------------------------


class ServiceType(str, Enum):
    SUPPORTED_LIVING = "Supported Living"
    RESIDENTIAL = "Residential"
    NURSING_CARE = "Nursing Care"


class UnitStatus(str, Enum):
    OCCUPIED = "Occupied"
    VOID = "Void"
    MASTER = "Master"
    UNAVAILABLE = "Unavailable"
    OUT_OF_MANAGEMENT = "Out of Management"
    STAFF_SPACE = "Staff Space"


class ComplianceType(str, Enum):
    GAS_SAFETY = "Gas Safety"
    EICR = "EICR"
    FIRE_RISK_ASSESSMENT = "Fire Risk Assessment"
    FEE = "FEE"
    FIRE_DOOR = "Fire Door"
    ASBESTOS = "Asbestos"
    LRA = "LRA"
    TMV = "TMV"
    LIFT_LOLER = "Lift LOLER"
    EPC = "EPC"
    SPRINKLER = "Sprinkler"
    EMERGENCY_LIGHTING = "Emergency Lighting"
    FIRE_ALARM = "Fire Alarm System"


class ComplianceStatus(str, Enum):
    COMPLIANT = "Compliant"
    DUE_SOON = "Due Soon"
    ACTION_REQUIRED = "Action Required"
    EXPIRED = "Expired"
    NOT_APPLICABLE = "N/A"


class JobStatus(str, Enum):
    OPEN = "Open"
    ASSIGNED = "Assigned"
    IN_PROGRESS = "In Progress"
    AWAITING_INVOICE = "Awaiting Invoice"
    COMPLETED = "Completed"
    CLOSED = "Closed"


TERMINAL_JOB_STATUSES = frozenset({JobStatus.COMPLETED, JobStatus.CLOSED})


class JobType(str, Enum):
    REACTIVE = "Reactive"
    PPM = "PPM"


class Priority(str, Enum):
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


class ScopeType(str, Enum):
    ALL = "All"
    REGION = "Region"


class PersonStatus(str, Enum):
    CURRENT = "Current"
    FORMER = "Former"


@dataclass
class Address:
    line1: str
    city: str
    postcode: str = ""

    def full(self) -> str:
        return ", ".join(x for x in (self.line1, self.city, self.postcode) if x)


@dataclass
class Unit:
    id: str
    name: str
    status: UnitStatus
    attention: bool = False


@dataclass
class ComplianceItem:
    id: str
    type: ComplianceType
    last_check: Optional[date] = None
    next_check: Optional[date] = None
    status: ComplianceStatus = ComplianceStatus.ACTION_REQUIRED
    report_url: str = ""
    superseded: bool = False

    @property
    def is_live(self) -> bool:
        return not self.superseded


@dataclass(frozen=True)
class PpmScope:
    type: ScopeType
    value: Optional[str] = None

    def describe(self) -> str:
        if self.type == ScopeType.REGION:
            return f"Region({self.value})"
        return "All"


@dataclass(frozen=True)
class PpmSchedule:
    id: str
    name: str
    compliance_type: ComplianceType
    frequency_months: int
    lead_time_days: int
    scope: PpmScope = PpmScope(type=ScopeType.ALL)


@dataclass(frozen=True)
class ActivityEntry:
    date: datetime
    actor: str
    action: str


@dataclass
class JobCost:
    net: float = 0.0
    vat: float = 0.0
    gross: float = 0.0
    recorded: bool = False


@dataclass
class MaintenanceJob:
    id: str
    ref: str
    property_id: str
    category: str
    job_type: JobType
    status: JobStatus
    reported_date: date
    sla_due_date: Optional[date]
    assigned_to: str = ""
    priority: Priority = Priority.MEDIUM
    unit: str = "Communal"
    summary: str = ""
    reported_by: str = ""
    linked_compliance_id: Optional[str] = None
    cost: JobCost = field(default_factory=JobCost)
    activity_log: list[ActivityEntry] = field(default_factory=list)

    @property
    def is_open(self) -> bool:
        return self.status not in TERMINAL_JOB_STATUSES


@dataclass
class Document:
    id: str
    name: str
    type: str
    date: date
    url: str
    year: int = 0
    linked_job_ref: Optional[str] = None


@dataclass
class Property:
    id: str
    address: Address
    region: str
    service_type: ServiceType
    legal_entity: str
    provider: str = ""
    handover_date: Optional[date] = None
    handback_date: Optional[date] = None
    units: list[Unit] = field(default_factory=list)
    compliance_items: list[ComplianceItem] = field(default_factory=list)
    maintenance_jobs: list[MaintenanceJob] = field(default_factory=list)
    documents: list[Document] = field(default_factory=list)

    def job(self, job_id: str) -> Optional[MaintenanceJob]:
        for j in self.maintenance_jobs:
            if j.id == job_id:
                return j
        return None

    def compliance_item(self, item_id: str) -> Optional[ComplianceItem]:
        for c in self.compliance_items:
            if c.id == item_id:
                return c
        return None

    def live_item_for(self, ctype: ComplianceType) -> Optional[ComplianceItem]:
        for c in self.compliance_items:
            if c.type == ctype and c.is_live:
                return c
        return None

    def open_jobs_linked_to(self, item_id: str) -> list[MaintenanceJob]:
        return [j for j in self.maintenance_jobs if j.linked_compliance_id == item_id and j.is_open]


@dataclass
class Person:
    id: str
    name: str
    property_id: str
    unit_id: str
    status: PersonStatus
    move_in_date: date
    move_out_date: Optional[date] = None


@dataclass(frozen=True)
class StoreSnapshot:
    """Consistent, read-only view of the whole store at one version."""

    version: int
    properties: tuple[Property, ...] = ()
    schedules: tuple[PpmSchedule, ...] = ()
    people: tuple[Person, ...] = ()

    def get_property(self, property_id: str) -> Optional[Property]:
        for p in self.properties:
            if p.id == property_id:
                return p
        return None
