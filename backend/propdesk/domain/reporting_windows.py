# backend/propdesk/domain/reporting_windows.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Optional, Union

from .dates import as_date
from .entities import PersonStatus, StoreSnapshot, UnitStatus


class WindowKind(str, Enum):
    WEEK = "week"
    MONTH = "month"
    QUARTER = "quarter"
    YEAR = "year"


def window_start(now: Union[date, datetime], kind: WindowKind) -> date:
    """
    Week    -> most recent Sunday (today if today is Sunday)
    Month   -> 1st of the current month
    Quarter -> 1st of the current calendar quarter
    Year    -> Jan 1
    """
    today = as_date(now)
    if today is None:
        raise ValueError("now is required")
    k = WindowKind(kind)
    if k == WindowKind.WEEK:
        # date.weekday(): Monday=0 .. Sunday=6
        return today - timedelta(days=(today.weekday() + 1) % 7)
    if k == WindowKind.MONTH:
        return date(today.year, today.month, 1)
    if k == WindowKind.QUARTER:
        q = (today.month - 1) // 3
        return date(today.year, q * 3 + 1, 1)
    return date(today.year, 1, 1)


@dataclass(frozen=True)
class ProviderStats:
    name: str
    properties: int
    units: int
    voids: int
    occupancy_pct: float


@dataclass(frozen=True)
class WindowStats:
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
    providers: tuple[ProviderStats, ...]


def _in_window(d: Optional[date], start: date, end: date) -> bool:
    return d is not None and start <= d <= end


def _occupancy_pct(occupied: int, occupiable: int) -> float:
    if occupiable <= 0:
        return 100.0
    return round(occupied / occupiable * 100.0, 1)


def window_stats(snap: StoreSnapshot, now: Union[date, datetime], kind: WindowKind) -> WindowStats:
    """
    Pure function of (snapshot, now, kind): no state is shared between
    windows, so several windows can be computed side by side for one report.

    Dated events (handovers, handbacks, move-ins, move-outs) count when they
    fall within [start, now]. Unit counts are as of the snapshot.
    """
    k = WindowKind(kind)
    today = as_date(now)
    start = window_start(today, k)

    props = snap.properties
    units = [u for p in props for u in p.units]

    new_handovers = sum(1 for p in props if _in_window(as_date(p.handover_date), start, today))
    new_handbacks = sum(1 for p in props if _in_window(as_date(p.handback_date), start, today))
    units_in_mgmt = sum(1 for u in units if u.status != UnitStatus.OUT_OF_MANAGEMENT)
    people_supported = sum(1 for x in snap.people if x.status == PersonStatus.CURRENT)

    current_voids = sum(1 for u in units if u.status == UnitStatus.VOID)
    # a move-out opens a void, a move-in fills one
    voids_opened = sum(1 for x in snap.people if _in_window(as_date(x.move_out_date), start, today))
    voids_filled = sum(1 for x in snap.people if _in_window(as_date(x.move_in_date), start, today))

    occupied = sum(1 for u in units if u.status == UnitStatus.OCCUPIED)
    occupiable = sum(1 for u in units if u.status in (UnitStatus.OCCUPIED, UnitStatus.VOID))

    by_provider: dict[str, list] = {}
    for p in props:
        by_provider.setdefault(p.provider or "", []).append(p)
    providers = []
    for name, plist in by_provider.items():
        punits = [u for p in plist for u in p.units]
        pvoids = sum(1 for u in punits if u.status == UnitStatus.VOID)
        providers.append(
            ProviderStats(
                name=name,
                properties=len(plist),
                units=len(punits),
                voids=pvoids,
                occupancy_pct=_occupancy_pct(len(punits) - pvoids, len(punits)),
            )
        )
    providers.sort(key=lambda s: s.properties, reverse=True)

    return WindowStats(
        window=k,
        start=start,
        as_of=today,
        new_handovers=new_handovers,
        new_handbacks=new_handbacks,
        units_in_management=units_in_mgmt,
        people_supported=people_supported,
        current_voids=current_voids,
        voids_opened=voids_opened,
        voids_filled=voids_filled,
        occupancy_rate=_occupancy_pct(occupied, occupiable),
        providers=tuple(providers),
    )
