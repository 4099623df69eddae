"""
Read models for the mobile views: notifications, kanban boards and the
Gantt timeline. All of them are built from the same contract documents
and only look at non-archived contracts.
"""
from calendar import monthrange
from datetime import date
from typing import Dict, Iterable, List

from aircontrol.schemas import (
    DisplaySettings, EngineerRef, KanbanColumn, MaintenancePeriod, NotificationsResponse,
    PeriodStatus, ScheduledPeriodItem, ServiceContract, Subdivision,
)
from aircontrol.services.status_engine import derive_display_status
from aircontrol.utils.text import navigation_links

SUBDIVISION_TITLES = {
    Subdivision.CLIMATE: "Кондиціонування",
    Subdivision.UPS: "ДБЖ",
    Subdivision.GENERATOR: "ДГУ",
}

UNASSIGNED_KEY = "unassigned"
UNASSIGNED_TITLE = "Виконавці не призначені"


def period_item(
    contract: ServiceContract,
    period: MaintenancePeriod,
    engineers: Dict[str, str],
    today: date,
) -> ScheduledPeriodItem:
    days_diff = (period.start_date - today).days if period.start_date else None
    return ScheduledPeriodItem(
        contract_id=contract.id,
        contract_number=contract.contract_number,
        object_name=contract.object_name,
        address=contract.address,
        period_id=period.id,
        period_name=period.name,
        subdivision=period.subdivision.value,
        start_date=period.start_date,
        end_date=period.end_date,
        status=period.status,
        days_diff=days_diff,
        is_overdue=period.status == PeriodStatus.SCHEDULED and days_diff is not None and days_diff < 0,
        assigned_engineers=[
            EngineerRef(id=eid, name=engineers[eid])
            for eid in period.assigned_engineer_ids
            if eid in engineers
        ],
        navigation=navigation_links(contract.coordinates, contract.address),
    )


def period_items(
    contracts: Iterable[ServiceContract],
    engineers: Dict[str, str],
    today: date,
    include_completed: bool = False,
) -> List[ScheduledPeriodItem]:
    items = []
    for contract in contracts:
        if contract.archived:
            continue
        for period in contract.maintenance_periods:
            if period.status == PeriodStatus.DONE and not include_completed:
                continue
            items.append(period_item(contract, period, engineers, today))
    return items


def upcoming_horizon(settings: DisplaySettings, today: date) -> int:
    if settings.upcoming_days == "endOfMonth":
        return monthrange(today.year, today.month)[1] - today.day
    return int(settings.upcoming_days)


def notifications(
    contracts: Iterable[ServiceContract],
    engineers: Dict[str, str],
    settings: DisplaySettings,
    today: date,
) -> NotificationsResponse:
    """Overdue and upcoming scheduled periods, nearest first"""
    items = [i for i in period_items(contracts, engineers, today) if i.start_date is not None]
    horizon = upcoming_horizon(settings, today)

    overdue = sorted((i for i in items if i.is_overdue), key=lambda i: i.start_date)
    upcoming = sorted(
        (i for i in items if not i.is_overdue and i.days_diff <= horizon),
        key=lambda i: i.days_diff,
    )
    return NotificationsResponse(
        overdue=overdue if settings.show_overdue else [],
        upcoming=upcoming if settings.show_upcoming else [],
    )


def _by_start(item: ScheduledPeriodItem):
    return (item.start_date is None, item.start_date or date.max, item.object_name)


def kanban_by_engineer(
    contracts: Iterable[ServiceContract],
    engineers: Dict[str, str],
    today: date,
    include_completed: bool = False,
) -> List[KanbanColumn]:
    """One column per engineer; a period with several engineers shows in each of them"""
    items = period_items(contracts, engineers, today, include_completed)
    columns = {
        eid: KanbanColumn(key=eid, title=name)
        for eid, name in sorted(engineers.items(), key=lambda kv: kv[1])
    }
    unassigned = KanbanColumn(key=UNASSIGNED_KEY, title=UNASSIGNED_TITLE)

    for item in items:
        if not item.assigned_engineers:
            unassigned.items.append(item)
        for engineer in item.assigned_engineers:
            columns[engineer.id].items.append(item)

    result = list(columns.values())
    if unassigned.items:
        result.append(unassigned)
    for column in result:
        column.items.sort(key=_by_start)
    return result


def kanban_by_subdivision(
    contracts: Iterable[ServiceContract],
    engineers: Dict[str, str],
    today: date,
    include_completed: bool = False,
) -> List[KanbanColumn]:
    items = period_items(contracts, engineers, today, include_completed)
    columns = [KanbanColumn(key=s.value, title=SUBDIVISION_TITLES[s]) for s in Subdivision]
    by_key = {c.key: c for c in columns}
    for item in items:
        by_key[item.subdivision].items.append(item)
    for column in columns:
        column.items.sort(key=_by_start)
    return columns


def gantt(
    contracts: Iterable[ServiceContract],
    start: date,
    end: date,
    today: date,
) -> List[dict]:
    """
    Timeline rows, one per contract object.

    Each bar carries its offset from the timeline start and its duration in
    days; periods without both dates (or reversed ones) are left out, bars
    that fall entirely outside [start, end] are marked out_of_view.
    """
    rows = []
    for contract in contracts:
        if contract.archived:
            continue
        bars = []
        for period in contract.maintenance_periods:
            if not period.start_date or not period.end_date or period.end_date < period.start_date:
                continue
            bars.append({
                "period_id": period.id,
                "name": period.name,
                "subdivision": period.subdivision.value,
                "status": period.status.value,
                "start_date": period.start_date,
                "end_date": period.end_date,
                "offset_days": (period.start_date - start).days,
                "duration_days": (period.end_date - period.start_date).days + 1,
                "out_of_view": period.end_date < start or period.start_date > end,
            })
        if not bars:
            continue
        rows.append({
            "contract_id": contract.id,
            "contract_number": contract.contract_number,
            "object_name": contract.object_name,
            "display_status": derive_display_status(contract.contract_end_date, contract.maintenance_periods, today).value,
            "periods": sorted(bars, key=lambda b: b["start_date"]),
        })
    rows.sort(key=lambda r: r["object_name"])
    return rows
