# backend/propdesk/services/engine.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from typing import Callable, Optional, Sequence

from ..config import Settings, settings as default_settings
from ..domain.compliance.ppm_resolver import NewJobRequest, is_due, resolve
from ..domain.compliance.status import evaluate
from ..domain.dates import as_date
from ..domain.entities import (
    ComplianceItem,
    ComplianceStatus,
    JobStatus,
    JobType,
    MaintenanceJob,
    Person,
    PpmSchedule,
    Property,
    StoreSnapshot,
)
from ..domain.errors import DuplicateJobError, LinkIntegrityError, NotFoundError, ResolutionError
from ..domain.reporting import (
    FilterClause,
    Row,
    apply_filters,
    group_rows,
    kpi_count,
    project_job_rows,
    project_unit_rows,
    validate_clauses,
)
from ..domain.reporting_windows import WindowKind, WindowStats, window_stats
from . import events as ev
from .completion_cascade import CompletionOutcome, complete_compliance_job
from .dashboard_rollups import ComplianceSummary, compliance_matrix, compliance_summary, open_actions
from .job_lifecycle import JobFields, create_job, record_cost, reopen, transition
from .store import EntityStore

log = logging.getLogger("propdesk.engine")


def _utcnow() -> datetime:
    return datetime.utcnow()


def _no_sync() -> None:
    return None


class _NoLongerDue(Exception):
    """Aborts a PPM job transaction whose item was renewed since the snapshot."""


@dataclass
class ResolverRun:
    created: list[MaintenanceJob] = field(default_factory=list)
    skipped_duplicates: int = 0
    already_open: int = 0
    no_longer_due: int = 0
    errors: list[ResolutionError] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {
            "created": [{"job_id": j.id, "job_ref": j.ref, "property_id": j.property_id} for j in self.created],
            "skipped_duplicates": self.skipped_duplicates,
            "already_open": self.already_open,
            "no_longer_due": self.no_longer_due,
            "errors": [e.as_dict() for e in self.errors],
        }


@dataclass(frozen=True)
class ReportResult:
    rows: list[Row]
    groups: Optional[dict[str, list[Row]]]
    count: int


class ComplianceEngine:
    """
    Command/query facade used by the HTTP layer, the worker and the CLI.

    Built once per process around one EntityStore; `clock` is injectable so
    every date decision is reproducible in tests. `sync` is called before each
    command and query to pick up state another process has saved.
    """

    def __init__(
        self,
        store: EntityStore,
        *,
        config: Optional[Settings] = None,
        clock: Callable[[], datetime] = _utcnow,
        sync: Callable[[], object] = _no_sync,
    ) -> None:
        self.store = store
        self.config = config or default_settings
        self.clock = clock
        self.sync = sync

    def _now(self, now: Optional[datetime]) -> datetime:
        return now if now is not None else self.clock()

    # -------------------------------------------------------------------------
    # Commands
    # -------------------------------------------------------------------------

    def add_property(self, prop: Property, *, now: Optional[datetime] = None) -> Property:
        self.sync()
        return self.store.add_property(prop, now=self._now(now))

    def remove_property(self, property_id: str, *, now: Optional[datetime] = None) -> None:
        self.sync()
        self.store.remove_property(property_id, now=self._now(now))

    def add_person(self, person: Person, *, now: Optional[datetime] = None) -> None:
        self.sync()
        self.store.add_person(person, now=self._now(now))

    def replace_schedules(self, schedules: Sequence[PpmSchedule], *, now: Optional[datetime] = None) -> None:
        self.sync()
        self.store.replace_schedules(schedules, now=self._now(now))

    def create_job(
        self,
        property_id: str,
        fields: JobFields,
        *,
        actor: str,
        now: Optional[datetime] = None,
    ) -> MaintenanceJob:
        self.sync()
        ts = self._now(now)
        with self.store.transaction(property_id) as tx:
            job = create_job(tx.property, fields, actor=actor, now=ts)
            tx.emit(ev.JOB_CREATED, occurred_at=ts, job_id=job.id, job_ref=job.ref, job_type=job.job_type.value)
        return job

    def transition_job(
        self,
        job_id: str,
        target: JobStatus,
        *,
        actor: str,
        assigned_to: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> MaintenanceJob:
        self.sync()
        ts = self._now(now)
        property_id = self.store.find_job_property_id(job_id)
        with self.store.transaction(property_id) as tx:
            job = tx.property.job(job_id)
            if job is None:
                raise NotFoundError("job not found", property_id=property_id, job_id=job_id)
            before = job.status
            if JobStatus(target) == JobStatus.OPEN:
                reopen(tx.property, job, actor=actor, now=ts)
            else:
                transition(job, target, actor=actor, now=ts, assigned_to=assigned_to)
            tx.emit(
                ev.JOB_TRANSITIONED,
                occurred_at=ts,
                job_id=job.id,
                job_ref=job.ref,
                from_status=before.value,
                to_status=job.status.value,
            )
        return job

    def record_job_cost(
        self,
        job_id: str,
        *,
        net: float,
        vat: float,
        actor: str,
        now: Optional[datetime] = None,
    ) -> MaintenanceJob:
        self.sync()
        ts = self._now(now)
        property_id = self.store.find_job_property_id(job_id)
        with self.store.transaction(property_id) as tx:
            job = tx.property.job(job_id)
            if job is None:
                raise NotFoundError("job not found", property_id=property_id, job_id=job_id)
            record_cost(job, net=net, vat=vat, actor=actor, now=ts)
            tx.emit(ev.JOB_COST_RECORDED, occurred_at=ts, job_id=job.id, job_ref=job.ref, gross=job.cost.gross)
        return job

    def complete_compliance_job(
        self,
        job_id: str,
        certificate_name: str,
        *,
        actor: str,
        certificate_url: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> CompletionOutcome:
        self.sync()
        return complete_compliance_job(
            self.store,
            job_id,
            certificate_name,
            now=self._now(now),
            actor=actor,
            default_frequency_months=self.config.default_frequency_months,
            certificate_url=certificate_url,
        )

    def correct_compliance_item(
        self,
        property_id: str,
        item_id: str,
        *,
        last_check: date,
        next_check: date,
        actor: str,
        report_url: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Property:
        """Manual correction of an item's dates; status is re-derived from them."""
        self.sync()
        ts = self._now(now)
        last = as_date(last_check)
        nxt = as_date(next_check)
        if last is None or nxt is None:
            raise ValueError("last_check and next_check are required")
        if nxt <= last:
            raise ValueError("next_check must be after last_check")

        with self.store.transaction(property_id) as tx:
            item = tx.property.compliance_item(item_id)
            if item is None:
                raise NotFoundError("compliance item not found", property_id=property_id, compliance_id=item_id)
            if not item.is_live:
                raise ValueError("superseded compliance items are read-only")
            item.last_check = last
            item.next_check = nxt
            item.status = evaluate(item, ts, self.config.due_soon_window_days)
            if report_url is not None:
                item.report_url = report_url
            tx.emit(
                ev.COMPLIANCE_ITEM_CORRECTED,
                occurred_at=ts,
                compliance_id=item.id,
                actor=actor,
                last_check=last.isoformat(),
                next_check=nxt.isoformat(),
            )
        return tx.property

    def supersede_compliance_item(
        self,
        property_id: str,
        item_id: str,
        replacement: ComplianceItem,
        *,
        actor: str,
        now: Optional[datetime] = None,
    ) -> Property:
        """
        Retires `item_id` and puts `replacement` live in its place (same
        compliance type). Open jobs linked to the old item move to the
        replacement; the old item and its history stay on the property.
        """
        self.sync()
        ts = self._now(now)
        last = as_date(replacement.last_check)
        nxt = as_date(replacement.next_check)
        if last is not None and nxt is not None and nxt <= last:
            raise ValueError("next_check must be after last_check")

        with self.store.transaction(property_id) as tx:
            prop = tx.property
            old = prop.compliance_item(item_id)
            if old is None:
                raise NotFoundError("compliance item not found", property_id=property_id, compliance_id=item_id)
            if not old.is_live:
                raise ValueError("compliance item is already superseded")
            if replacement.type != old.type:
                raise ValueError("replacement must have the same compliance type")
            if prop.compliance_item(replacement.id) is not None:
                raise ValueError(f"compliance item {replacement.id!r} already exists")

            new = replace(replacement, last_check=last, next_check=nxt, superseded=False)
            new.status = evaluate(new, ts, self.config.due_soon_window_days)
            old.superseded = True
            prop.compliance_items.append(new)

            moved = prop.open_jobs_linked_to(old.id)
            for job in moved:
                job.linked_compliance_id = new.id

            tx.emit(
                ev.COMPLIANCE_ITEM_SUPERSEDED,
                occurred_at=ts,
                compliance_id=old.id,
                replacement_id=new.id,
                moved_jobs=[j.ref for j in moved],
                actor=actor,
            )
        return tx.property

    def run_resolver(self, *, actor: Optional[str] = None, now: Optional[datetime] = None) -> ResolverRun:
        """
        Resolves due PPM work and creates the jobs.

        The pure resolver works on a snapshot; each request is then re-checked
        under its property lock (still due, no open linked job) before the job
        is committed, so a concurrent run or a correction made since the
        snapshot never produces a stale or second open job.
        """
        self.sync()
        ts = self._now(now)
        who = actor or self.config.resolver_actor
        snap = self.store.snapshot()
        decided = resolve(snap.schedules, snap.properties, ts)

        out = ResolverRun(errors=list(decided.errors), already_open=decided.already_open)
        for req in decided.requests:
            try:
                job = self._create_from_request(req, actor=who, now=ts)
            except DuplicateJobError:
                out.skipped_duplicates += 1
                continue
            except (NotFoundError, LinkIntegrityError) as e:
                # property removed or item superseded since the snapshot
                out.errors.append(
                    ResolutionError(
                        e.message,
                        property_id=req.property_id,
                        schedule_id=req.schedule_id,
                        compliance_id=req.compliance_id,
                    )
                )
                continue
            if job is None:
                out.no_longer_due += 1
                continue
            out.created.append(job)

        log.info(
            "PPM resolver run: %d created, %d duplicates skipped, %d no longer due, %d errors",
            len(out.created),
            out.skipped_duplicates,
            out.no_longer_due,
            len(out.errors),
        )
        return out

    def _create_from_request(self, req: NewJobRequest, *, actor: str, now: datetime) -> Optional[MaintenanceJob]:
        schedule = next((s for s in self.store.schedules if s.id == req.schedule_id), None)
        try:
            with self.store.transaction(req.property_id) as tx:
                prop = tx.property
                item = prop.compliance_item(req.compliance_id)
                if item is None or not item.is_live:
                    item = prop.live_item_for(req.compliance_type)
                    if item is None:
                        if req.placeholder is None or prop.compliance_item(req.compliance_id) is not None:
                            raise LinkIntegrityError(
                                "compliance item disappeared before job creation",
                                property_id=prop.id,
                                compliance_id=req.compliance_id,
                            )
                        item = req.placeholder
                        prop.compliance_items.append(item)

                if schedule is None or not is_due(item, schedule, now):
                    raise _NoLongerDue()

                job = create_job(
                    prop,
                    JobFields(
                        category=req.category,
                        job_type=JobType.PPM,
                        sla_due_date=req.sla_due_date,
                        priority=req.priority,
                        summary=req.summary,
                        reported_by=f"{actor} (PPM)",
                        linked_compliance_id=item.id,
                    ),
                    actor=actor,
                    now=now,
                    creation_note=req.creation_note,
                )
                tx.emit(
                    ev.JOB_CREATED,
                    occurred_at=now,
                    job_id=job.id,
                    job_ref=job.ref,
                    job_type=job.job_type.value,
                    schedule_id=req.schedule_id,
                )
        except _NoLongerDue:
            log.info(
                "PPM request dropped; item no longer due",
                extra={"property_id": req.property_id, "schedule_id": req.schedule_id},
            )
            return None
        return job

    # -------------------------------------------------------------------------
    # Queries (snapshot-based, never mutate)
    # -------------------------------------------------------------------------

    def snapshot(self) -> StoreSnapshot:
        self.sync()
        return self.store.snapshot()

    def get_property(self, property_id: str) -> Property:
        self.sync()
        return self.store.get_property(property_id)

    def get_job(self, job_id: str) -> MaintenanceJob:
        self.sync()
        prop = self.store.get_property(self.store.find_job_property_id(job_id))
        return prop.job(job_id)

    def evaluate_item(self, property_id: str, item_id: str, now: Optional[datetime] = None) -> ComplianceStatus:
        prop = self.get_property(property_id)
        item = prop.compliance_item(item_id)
        if item is None:
            raise NotFoundError("compliance item not found", property_id=property_id, compliance_id=item_id)
        return evaluate(item, self._now(now), self.config.due_soon_window_days)

    def report(
        self,
        entity: str,
        clauses: Sequence[FilterClause],
        *,
        group_by: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> ReportResult:
        validate_clauses(clauses, entity)
        snap = self.snapshot()
        base: list[Row]
        if entity == "units":
            base = list(project_unit_rows(snap))
        else:
            base = list(project_job_rows(snap, self._now(now)))
        rows = apply_filters(base, clauses)
        groups = group_rows(rows, group_by, entity) if group_by else None
        return ReportResult(rows=rows, groups=groups, count=kpi_count(rows))

    def compliance_summary(self, now: Optional[datetime] = None) -> ComplianceSummary:
        return compliance_summary(
            self.snapshot(),
            self._now(now),
            due_soon_window_days=self.config.due_soon_window_days,
        )

    def compliance_matrix(self, now: Optional[datetime] = None) -> list[dict]:
        return compliance_matrix(
            self.snapshot(),
            self._now(now),
            due_soon_window_days=self.config.due_soon_window_days,
        )

    def window_stats(self, kind: WindowKind, now: Optional[datetime] = None) -> WindowStats:
        return window_stats(self.snapshot(), self._now(now), kind)

    def open_actions(self, actor: str) -> list[tuple[Property, MaintenanceJob]]:
        return open_actions(self.snapshot(), actor)
