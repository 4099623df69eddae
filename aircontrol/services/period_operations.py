"""
State transitions on a contract document.

These are the only legal ways to change periods, equipment and the
archived flag. Each operation:

1. checks its preconditions and raises ValidationError before touching
   anything,
2. works on a deep copy, so the caller's contract is never modified,
3. re-derives the persisted contract status when periods changed.

ContractService.apply() wraps them in a read-modify-write transaction.
"""
from datetime import date
from typing import Iterable, List, Optional
import logging

from aircontrol.schemas import (
    ContractStatus, Equipment, EquipmentCreate, MaintenancePeriod, PeriodStatus,
    ServiceContract, ServiceReport, ServiceReportCreate, Subdivision,
)
from aircontrol.services.errors import NotFoundError, ValidationError
from aircontrol.services.status_engine import recompute_status

logger = logging.getLogger(__name__)

DEFAULT_PERIOD_NAME = "ТО {index}"


def _copy(contract: ServiceContract) -> ServiceContract:
    return contract.model_copy(deep=True)


def _period(contract: ServiceContract, period_id: str) -> MaintenancePeriod:
    period = contract.find_period(period_id)
    if period is None:
        raise NotFoundError(f"Maintenance period {period_id} not found")
    return period


def _equipment(contract: ServiceContract, equipment_id: str) -> Equipment:
    equipment = contract.find_equipment(equipment_id)
    if equipment is None:
        raise NotFoundError(f"Equipment {equipment_id} not found")
    return equipment


def _check_date_range(start: Optional[date], end: Optional[date], label: str):
    if start is None or end is None:
        raise ValidationError(f"Both start and end dates are required for '{label}'")
    if start > end:
        raise ValidationError(f"Start date cannot be after end date for '{label}'")


def default_period(index: int) -> MaintenancePeriod:
    return MaintenancePeriod(
        name=DEFAULT_PERIOD_NAME.format(index=index),
        subdivision=Subdivision.CLIMATE,
        status=PeriodStatus.SCHEDULED,
    )


# ============================================================================
# Period operations
# ============================================================================

def toggle_engineer(
    contract: ServiceContract,
    period_id: str,
    engineer_id: str,
    known_engineer_ids: Iterable[str],
    today: date,
) -> ServiceContract:
    """Add the engineer to the period roster, or remove them if already there"""
    _period(contract, period_id)
    if engineer_id not in set(known_engineer_ids):
        raise ValidationError(f"Engineer {engineer_id} does not exist")

    updated = _copy(contract)
    period = _period(updated, period_id)
    if engineer_id in period.assigned_engineer_ids:
        period.assigned_engineer_ids = [e for e in period.assigned_engineer_ids if e != engineer_id]
    else:
        period.assigned_engineer_ids = period.assigned_engineer_ids + [engineer_id]
    return recompute_status(updated, today)


def unassign_engineer(contract: ServiceContract, engineer_id: str, today: date) -> ServiceContract:
    """Take the engineer off every scheduled period roster"""
    for period in contract.maintenance_periods:
        if period.status == PeriodStatus.DONE and engineer_id in period.assigned_engineer_ids:
            raise ValidationError(
                f"Engineer {engineer_id} worked on completed period '{period.name}' "
                f"of contract {contract.contract_number} and cannot be removed"
            )

    updated = _copy(contract)
    for period in updated.maintenance_periods:
        period.assigned_engineer_ids = [e for e in period.assigned_engineer_ids if e != engineer_id]
    return recompute_status(updated, today)


def toggle_equipment(contract: ServiceContract, period_id: str, equipment_id: str, today: date) -> ServiceContract:
    _period(contract, period_id)
    _equipment(contract, equipment_id)

    updated = _copy(contract)
    period = _period(updated, period_id)
    if equipment_id in period.equipment_ids:
        period.equipment_ids = [e for e in period.equipment_ids if e != equipment_id]
    else:
        period.equipment_ids = period.equipment_ids + [equipment_id]
    return recompute_status(updated, today)


def edit_dates(
    contract: ServiceContract,
    period_id: str,
    start: Optional[date],
    end: Optional[date],
    today: date,
) -> ServiceContract:
    period = _period(contract, period_id)
    _check_date_range(start, end, period.name)

    updated = _copy(contract)
    period = _period(updated, period_id)
    period.start_date = start
    period.end_date = end
    return recompute_status(updated, today)


def finalize_period(
    contract: ServiceContract,
    period_id: str,
    actual_start: Optional[date],
    actual_end: Optional[date],
    engineer_ids: List[str],
    today: date,
) -> ServiceContract:
    """Mark a period done with the dates and roster that actually happened"""
    period = _period(contract, period_id)
    _check_date_range(actual_start, actual_end, period.name)
    roster = list(dict.fromkeys(engineer_ids or []))
    if not roster:
        raise ValidationError(f"Select at least one engineer to complete '{period.name}'")

    updated = _copy(contract)
    period = _period(updated, period_id)
    period.status = PeriodStatus.DONE
    period.start_date = actual_start
    period.end_date = actual_end
    period.assigned_engineer_ids = roster
    return recompute_status(updated, today)


def unfinalize_period(contract: ServiceContract, period_id: str, today: date) -> ServiceContract:
    _period(contract, period_id)

    updated = _copy(contract)
    _period(updated, period_id).status = PeriodStatus.SCHEDULED
    return recompute_status(updated, today)


def add_period(contract: ServiceContract, today: date) -> ServiceContract:
    updated = _copy(contract)
    updated.maintenance_periods = updated.maintenance_periods + [
        default_period(len(updated.maintenance_periods) + 1)
    ]
    return recompute_status(updated, today)


def remove_period(contract: ServiceContract, period_id: str, today: date) -> ServiceContract:
    _period(contract, period_id)
    if len(contract.maintenance_periods) <= 1:
        raise ValidationError("A contract must keep at least one maintenance period")

    updated = _copy(contract)
    updated.maintenance_periods = [p for p in updated.maintenance_periods if p.id != period_id]
    return recompute_status(updated, today)


# ============================================================================
# Archive / restore
# ============================================================================

def archive_contract(contract: ServiceContract, today: date) -> ServiceContract:
    end = contract.contract_end_date
    if contract.status != ContractStatus.DONE and end is not None and end > today:
        raise ValidationError(
            "Cannot archive an active contract. Mark all maintenance periods as done first."
        )
    return contract.model_copy(update={"archived": True})


def restore_contract(contract: ServiceContract, today: date) -> ServiceContract:
    return contract.model_copy(update={"archived": False})


# ============================================================================
# Equipment and service reports
# ============================================================================

def add_equipment(contract: ServiceContract, data: EquipmentCreate, today: date) -> ServiceContract:
    updated = _copy(contract)
    updated.equipment = updated.equipment + [Equipment(**data.model_dump())]
    return updated


def remove_equipment(contract: ServiceContract, equipment_id: str, today: date) -> ServiceContract:
    """Drop the unit and every period reference to it"""
    _equipment(contract, equipment_id)

    updated = _copy(contract)
    updated.equipment = [e for e in updated.equipment if e.id != equipment_id]
    for period in updated.maintenance_periods:
        period.equipment_ids = [e for e in period.equipment_ids if e != equipment_id]
    return recompute_status(updated, today)


def _check_report(data: ServiceReportCreate, known_engineer_ids: Iterable[str]):
    if data.engineer_id not in set(known_engineer_ids):
        raise ValidationError(f"Engineer {data.engineer_id} does not exist")
    for part in data.parts_used:
        if part.quantity <= 0:
            raise ValidationError(f"Quantity for '{part.name}' must be positive")


def add_report(
    contract: ServiceContract,
    equipment_id: str,
    data: ServiceReportCreate,
    known_engineer_ids: Iterable[str],
    today: date,
) -> ServiceContract:
    _equipment(contract, equipment_id)
    _check_report(data, known_engineer_ids)

    updated = _copy(contract)
    equipment = _equipment(updated, equipment_id)
    equipment.reports = equipment.reports + [ServiceReport(**data.model_dump())]
    return updated


def update_report(
    contract: ServiceContract,
    equipment_id: str,
    report_id: str,
    data: ServiceReportCreate,
    known_engineer_ids: Iterable[str],
    today: date,
) -> ServiceContract:
    equipment = _equipment(contract, equipment_id)
    if not any(r.id == report_id for r in equipment.reports):
        raise NotFoundError(f"Service report {report_id} not found")
    _check_report(data, known_engineer_ids)

    updated = _copy(contract)
    equipment = _equipment(updated, equipment_id)
    equipment.reports = [
        ServiceReport(id=report_id, **data.model_dump()) if r.id == report_id else r
        for r in equipment.reports
    ]
    return updated
