"""
Contract status derivation.

Every view (contract cards, kanban boards, notifications, reports) and
every mutation derives the contract status through this module, so the
same periods and dates always give the same answer.

Two functions are exposed:

- derive_display_status: the four-way badge shown to users
  (Пролонгація / Крайні роботи / Заплановано; "fully done" contracts are
  shown as Крайні роботи).
- derive_contract_status: the value persisted in ServiceContract.status
  (Пролонгація / Виконано / Заплановано). It is the only producer of that
  field.

Both are pure: "today" is always passed in.
"""
from datetime import date
from typing import Iterable, Optional, Set

from aircontrol.schemas import (
    ContractStatus, DisplayStatus, MaintenancePeriod, PeriodStatus, ServiceContract,
    ServiceContractResponse,
)
from aircontrol.utils.dates import same_month


def needs_prolongation(contract_end_date: Optional[date], today: date) -> bool:
    """The contract ended already or ends this calendar month"""
    if contract_end_date is None:
        return False
    return contract_end_date < today or same_month(contract_end_date, today)


def is_period_completed(period: MaintenancePeriod) -> bool:
    return period.status == PeriodStatus.DONE


def scheduled_periods(periods: Iterable[MaintenancePeriod]):
    return [p for p in periods if p.status == PeriodStatus.SCHEDULED]


def scheduled_start_days(periods: Iterable[MaintenancePeriod]) -> Set[date]:
    """Distinct start days of scheduled periods; periods without a start are skipped"""
    return {p.start_date for p in scheduled_periods(periods) if p.start_date is not None}


def derive_display_status(
    contract_end_date: Optional[date],
    periods: Iterable[MaintenancePeriod],
    today: date,
) -> DisplayStatus:
    periods = list(periods)

    # Prolongation wins regardless of period states
    if needs_prolongation(contract_end_date, today):
        return DisplayStatus.PROLONGATION

    # Nothing left to schedule: either everything is done or all remaining
    # work lands on a single day
    if not scheduled_periods(periods):
        return DisplayStatus.FINAL_WORKS
    if len(scheduled_start_days(periods)) == 1:
        return DisplayStatus.FINAL_WORKS

    return DisplayStatus.SCHEDULED


def derive_contract_status(
    contract_end_date: Optional[date],
    periods: Iterable[MaintenancePeriod],
    today: date,
) -> ContractStatus:
    periods = list(periods)

    if needs_prolongation(contract_end_date, today):
        return ContractStatus.PROLONGATION
    if not scheduled_periods(periods):
        return ContractStatus.DONE
    return ContractStatus.SCHEDULED


def recompute_status(contract: ServiceContract, today: date) -> ServiceContract:
    """Copy of the contract with its persisted status re-derived"""
    status = derive_contract_status(contract.contract_end_date, contract.maintenance_periods, today)
    return contract.model_copy(update={"status": status})


def contract_view(contract: ServiceContract, today: date, **extra) -> ServiceContractResponse:
    """Contract document enriched with the derived display status"""
    periods = contract.maintenance_periods
    return ServiceContractResponse(
        **contract.model_dump(),
        display_status=derive_display_status(contract.contract_end_date, periods, today),
        completed_periods=sum(1 for p in periods if is_period_completed(p)),
        total_periods=len(periods),
        **extra,
    )
