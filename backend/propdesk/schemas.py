# backend/propdesk/schemas.py
from __future__ import annotations

from datetime import date, datetime
from typing import Any, Optional, List

from pydantic import BaseModel, Field, ConfigDict, model_validator

from .domain.entities import (
    ComplianceStatus,
    ComplianceType,
    JobStatus,
    JobType,
    Priority,
    ServiceType,
    UnitStatus,
)
from .domain.reporting import (
    AttentionIs,
    FilterClause,
    OverdueIs,
    PriorityIn,
    ProviderIn,
    RegionIn,
    ServiceTypeIn,
    TextMatch,
    UnitStatusIn,
)
from .domain.reporting_windows import WindowKind


# -------------------- Properties --------------------

class AddressIn(BaseModel):
    line1: str = Field(min_length=1)
    city: str = Field(min_length=1)
    postcode: str = ""


class AddressOut(BaseModel):
    line1: str
    city: str
    postcode: str
    model_config = ConfigDict(from_attributes=True)


class UnitIn(BaseModel):
    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    status: UnitStatus
    attention: bool = False


class UnitOut(BaseModel):
    id: str
    name: str
    status: UnitStatus
    attention: bool
    model_config = ConfigDict(from_attributes=True)


class ComplianceItemIn(BaseModel):
    id: str = Field(min_length=1)
    type: ComplianceType
    last_check: Optional[date] = None
    next_check: Optional[date] = None
    report_url: str = ""

    @model_validator(mode="after")
    def _dates_in_order(self) -> "ComplianceItemIn":
        if self.last_check and self.next_check and self.next_check <= self.last_check:
            raise ValueError("next_check must be after last_check")
        return self


class ComplianceItemOut(BaseModel):
    id: str
    type: ComplianceType
    last_check: Optional[date] = None
    next_check: Optional[date] = None
    status: ComplianceStatus
    report_url: str
    superseded: bool
    model_config = ConfigDict(from_attributes=True)


class DocumentOut(BaseModel):
    id: str
    name: str
    type: str
    date: date
    url: str
    year: int
    linked_job_ref: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)


class ActivityEntryOut(BaseModel):
    date: datetime
    actor: str
    action: str
    model_config = ConfigDict(from_attributes=True)


class JobCostOut(BaseModel):
    net: float
    vat: float
    gross: float
    recorded: bool
    model_config = ConfigDict(from_attributes=True)


class JobOut(BaseModel):
    id: str
    ref: str
    property_id: str
    category: str
    job_type: JobType
    status: JobStatus
    reported_date: date
    sla_due_date: Optional[date] = None
    assigned_to: str
    priority: Priority
    unit: str
    summary: str
    reported_by: str
    linked_compliance_id: Optional[str] = None
    cost: JobCostOut
    activity_log: List[ActivityEntryOut]
    model_config = ConfigDict(from_attributes=True)


class PropertyCreate(BaseModel):
    id: str = Field(min_length=1, max_length=40)
    address: AddressIn
    region: str = Field(min_length=1)
    service_type: ServiceType
    legal_entity: str = Field(min_length=1)
    provider: str = ""
    handover_date: Optional[date] = None
    handback_date: Optional[date] = None
    units: List[UnitIn] = Field(default_factory=list)
    compliance_items: List[ComplianceItemIn] = Field(default_factory=list)


class PropertyListOut(BaseModel):
    id: str
    address: AddressOut
    region: str
    service_type: ServiceType
    legal_entity: str
    provider: str
    model_config = ConfigDict(from_attributes=True)


class PropertyOut(PropertyListOut):
    handover_date: Optional[date] = None
    handback_date: Optional[date] = None
    units: List[UnitOut]
    compliance_items: List[ComplianceItemOut]
    maintenance_jobs: List[JobOut]
    documents: List[DocumentOut]


# -------------------- Jobs --------------------

class JobCreate(BaseModel):
    property_id: str
    category: str = Field(min_length=1)
    job_type: JobType = JobType.REACTIVE
    priority: Priority = Priority.MEDIUM
    sla_due_date: Optional[date] = None
    reported_date: Optional[date] = None
    unit: str = "Communal"
    summary: str = ""
    reported_by: str = ""
    assigned_to: str = ""
    linked_compliance_id: Optional[str] = None


class JobTransitionIn(BaseModel):
    status: JobStatus
    assigned_to: Optional[str] = None


class JobCostIn(BaseModel):
    net: float = Field(ge=0)
    vat: float = Field(ge=0)


class CompleteComplianceIn(BaseModel):
    certificate_name: str = Field(min_length=1)
    certificate_url: Optional[str] = None


class CompletionOut(BaseModel):
    job: JobOut
    item: ComplianceItemOut
    document: DocumentOut
    model_config = ConfigDict(from_attributes=True)


# -------------------- Compliance --------------------

class ComplianceItemCorrection(BaseModel):
    last_check: date
    next_check: date
    report_url: Optional[str] = None


class ResolverCreatedOut(BaseModel):
    job_id: str
    job_ref: str
    property_id: str


class ResolverRunOut(BaseModel):
    created: List[ResolverCreatedOut]
    skipped_duplicates: int
    already_open: int
    no_longer_due: int
    errors: List[dict[str, Any]]


class ComplianceSummaryOut(BaseModel):
    total: int
    compliant: int
    due_soon: int
    action_required: int
    expired: int
    compliance_rate: int
    model_config = ConfigDict(from_attributes=True)


class ComplianceMatrixRowOut(BaseModel):
    property_id: str
    address: str
    provider: str
    region: str
    statuses: dict[str, ComplianceStatus]


# -------------------- Reports --------------------

class ReportFilters(BaseModel):
    """
    Query-builder payload. Empty lists mean "no restriction"; unknown keys
    are rejected so a typo never silently widens a report.
    """

    model_config = ConfigDict(extra="forbid")

    search_text: str = ""
    service_types: List[ServiceType] = Field(default_factory=list)
    regions: List[str] = Field(default_factory=list)
    providers: List[str] = Field(default_factory=list)
    unit_statuses: List[UnitStatus] = Field(default_factory=list)
    attention: Optional[bool] = None
    priorities: List[Priority] = Field(default_factory=list)
    is_overdue: Optional[bool] = None
    group_by: Optional[str] = None

    def to_clauses(self) -> list[FilterClause]:
        out: list[FilterClause] = []
        if self.search_text.strip():
            out.append(TextMatch(self.search_text))
        if self.service_types:
            out.append(ServiceTypeIn(frozenset(self.service_types)))
        if self.regions:
            out.append(RegionIn(frozenset(self.regions)))
        if self.providers:
            out.append(ProviderIn(frozenset(self.providers)))
        if self.unit_statuses:
            out.append(UnitStatusIn(frozenset(self.unit_statuses)))
        if self.attention is not None:
            out.append(AttentionIs(self.attention))
        if self.priorities:
            out.append(PriorityIn(frozenset(self.priorities)))
        if self.is_overdue is not None:
            out.append(OverdueIs(self.is_overdue))
        return out


class UnitRowOut(BaseModel):
    property_id: str
    unit_id: str
    unit_name: str
    full_address: str
    provider: str
    legal_entity: str
    service_type: ServiceType
    status: UnitStatus
    region: str
    handover_date: Optional[date] = None
    handback_date: Optional[date] = None
    attention: bool
    model_config = ConfigDict(from_attributes=True)


class JobRowOut(BaseModel):
    property_id: str
    job_id: str
    ref: str
    full_address: str
    provider: str
    legal_entity: str
    service_type: ServiceType
    region: str
    category: str
    job_type: JobType
    status: JobStatus
    priority: Priority
    assigned_to: str
    sla_due_date: Optional[date] = None
    is_overdue: bool
    model_config = ConfigDict(from_attributes=True)


class UnitReportOut(BaseModel):
    count: int
    rows: List[UnitRowOut]
    groups: Optional[dict[str, List[UnitRowOut]]] = None


class JobReportOut(BaseModel):
    count: int
    rows: List[JobRowOut]
    groups: Optional[dict[str, List[JobRowOut]]] = None


class ProviderStatsOut(BaseModel):
    name: str
    properties: int
    units: int
    voids: int
    occupancy_pct: float
    model_config = ConfigDict(from_attributes=True)


class WindowStatsOut(BaseModel):
    window: WindowKind
    start: date
    as_of: date
    new_handovers: int
    new_handbacks: int
    units_in_management: int
    people_supported: int
    current_voids: int
    voids_opened: int
    voids_filled: int
    occupancy_rate: float
    providers: List[ProviderStatsOut]
    model_config = ConfigDict(from_attributes=True)


class OpenActionOut(BaseModel):
    property_id: str
    address: str
    job: JobOut


# -------------------- Health --------------------

class HealthOut(BaseModel):
    ok: bool
    engine_version: str
    store_version: int
    durable_store: str
    last_saved_version: Optional[int] = None
    persistence_error: Optional[str] = None
