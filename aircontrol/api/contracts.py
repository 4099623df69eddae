"""
Service contracts API.

Every mutation is a single read-modify-write of the contract document.
Pass ?expected_version=N to have the write refused (409) when somebody
else changed the contract in the meantime.
"""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Optional, List
from datetime import date
import logging

from aircontrol.database import get_db
from aircontrol.models import ServiceContract as ServiceContractModel
from aircontrol.schemas import (
    DisplayStatus, EquipmentCreate, PeriodDatesUpdate, PeriodFinalize, ServiceContractCreate,
    ServiceContractResponse, ServiceContractUpdate, ServiceReportCreate,
)
from aircontrol.services.contracts import ContractService, row_to_document
from aircontrol.services import period_operations as ops
from aircontrol.services.status_engine import contract_view

logger = logging.getLogger(__name__)

router = APIRouter()


def to_response(row: ServiceContractModel, today: Optional[date] = None) -> ServiceContractResponse:
    return contract_view(
        row_to_document(row),
        today or date.today(),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


# ============================================================================
# Contract Endpoints
# ============================================================================

@router.get("/", response_model=List[ServiceContractResponse])
async def get_contracts(
    archived: bool = Query(False, description="Show the archive instead of active contracts"),
    status_filter: Optional[DisplayStatus] = Query(None, alias="status", description="Filter by display status"),
    search: Optional[str] = Query(None, description="Search by number, object, counterparty or address"),
    db: Session = Depends(get_db),
):
    """Get contracts with their derived display status"""
    service = ContractService(db)
    today = date.today()
    rows = service.list_rows(archived=archived, search=search)
    result = [to_response(row, today) for row in rows]
    if status_filter is not None:
        result = [c for c in result if c.display_status == status_filter]
    return result


@router.get("/{contract_id}", response_model=ServiceContractResponse)
async def get_contract(contract_id: str, db: Session = Depends(get_db)):
    """Get a specific contract"""
    return to_response(ContractService(db).get_row(contract_id))


@router.post("/", response_model=ServiceContractResponse, status_code=status.HTTP_201_CREATED)
async def create_contract(contract_data: ServiceContractCreate, db: Session = Depends(get_db)):
    """
    Create a new contract.

    Periods without a name are named "ТО 1", "ТО 2", ... in order; the
    status is derived from the periods and the contract end date.
    """
    row = ContractService(db).create_contract(contract_data)
    return to_response(row)


@router.put("/{contract_id}", response_model=ServiceContractResponse)
async def update_contract(
    contract_id: str,
    contract_data: ServiceContractUpdate,
    expected_version: Optional[int] = Query(None),
    db: Session = Depends(get_db),
):
    """Update contract fields; periods and equipment are replaced when given"""
    row = ContractService(db).update_contract(contract_id, contract_data, expected_version=expected_version)
    return to_response(row)


@router.post("/{contract_id}/archive", response_model=ServiceContractResponse)
async def archive_contract(
    contract_id: str,
    expected_version: Optional[int] = Query(None),
    db: Session = Depends(get_db),
):
    """Archive a finished or expired contract"""
    today = date.today()
    row = ContractService(db).apply(
        contract_id, lambda c: ops.archive_contract(c, today), expected_version=expected_version
    )
    logger.info(f"Contract archived: {contract_id}")
    return to_response(row, today)


@router.post("/{contract_id}/restore", response_model=ServiceContractResponse)
async def restore_contract(
    contract_id: str,
    expected_version: Optional[int] = Query(None),
    db: Session = Depends(get_db),
):
    today = date.today()
    row = ContractService(db).apply(
        contract_id, lambda c: ops.restore_contract(c, today), expected_version=expected_version
    )
    logger.info(f"Contract restored: {contract_id}")
    return to_response(row, today)


# ============================================================================
# Maintenance Periods
# ============================================================================

@router.post("/{contract_id}/periods", response_model=ServiceContractResponse, status_code=status.HTTP_201_CREATED)
async def add_period(
    contract_id: str,
    expected_version: Optional[int] = Query(None),
    db: Session = Depends(get_db),
):
    """Append an empty scheduled period named after its position"""
    today = date.today()
    row = ContractService(db).apply(contract_id, lambda c: ops.add_period(c, today), expected_version=expected_version)
    return to_response(row, today)


@router.delete("/{contract_id}/periods/{period_id}", response_model=ServiceContractResponse)
async def remove_period(
    contract_id: str,
    period_id: str,
    expected_version: Optional[int] = Query(None),
    db: Session = Depends(get_db),
):
    today = date.today()
    row = ContractService(db).apply(
        contract_id, lambda c: ops.remove_period(c, period_id, today), expected_version=expected_version
    )
    return to_response(row, today)


@router.put("/{contract_id}/periods/{period_id}/dates", response_model=ServiceContractResponse)
async def edit_period_dates(
    contract_id: str,
    period_id: str,
    dates: PeriodDatesUpdate,
    expected_version: Optional[int] = Query(None),
    db: Session = Depends(get_db),
):
    today = date.today()
    row = ContractService(db).apply(
        contract_id,
        lambda c: ops.edit_dates(c, period_id, dates.start_date, dates.end_date, today),
        expected_version=expected_version,
    )
    return to_response(row, today)


@router.post("/{contract_id}/periods/{period_id}/engineers/{engineer_id}/toggle", response_model=ServiceContractResponse)
async def toggle_period_engineer(
    contract_id: str,
    period_id: str,
    engineer_id: str,
    expected_version: Optional[int] = Query(None),
    db: Session = Depends(get_db),
):
    """Assign the engineer to the period, or unassign if already assigned"""
    today = date.today()
    service = ContractService(db)
    known = service.known_engineer_ids()
    row = service.apply(
        contract_id,
        lambda c: ops.toggle_engineer(c, period_id, engineer_id, known, today),
        expected_version=expected_version,
    )
    return to_response(row, today)


@router.post("/{contract_id}/periods/{period_id}/equipment/{equipment_id}/toggle", response_model=ServiceContractResponse)
async def toggle_period_equipment(
    contract_id: str,
    period_id: str,
    equipment_id: str,
    expected_version: Optional[int] = Query(None),
    db: Session = Depends(get_db),
):
    today = date.today()
    row = ContractService(db).apply(
        contract_id,
        lambda c: ops.toggle_equipment(c, period_id, equipment_id, today),
        expected_version=expected_version,
    )
    return to_response(row, today)


@router.post("/{contract_id}/periods/{period_id}/finalize", response_model=ServiceContractResponse)
async def finalize_period(
    contract_id: str,
    period_id: str,
    completion: PeriodFinalize,
    expected_version: Optional[int] = Query(None),
    db: Session = Depends(get_db),
):
    """
    Mark a period as done.

    The actual dates and the engineers who did the work replace the
    planned ones. At least one engineer is required.
    """
    today = date.today()
    row = ContractService(db).apply(
        contract_id,
        lambda c: ops.finalize_period(
            c, period_id, completion.actual_start_date, completion.actual_end_date,
            completion.engineer_ids, today,
        ),
        expected_version=expected_version,
    )
    logger.info(f"Period {period_id} of contract {contract_id} marked as done")
    return to_response(row, today)


@router.post("/{contract_id}/periods/{period_id}/unfinalize", response_model=ServiceContractResponse)
async def unfinalize_period(
    contract_id: str,
    period_id: str,
    expected_version: Optional[int] = Query(None),
    db: Session = Depends(get_db),
):
    today = date.today()
    row = ContractService(db).apply(
        contract_id, lambda c: ops.unfinalize_period(c, period_id, today), expected_version=expected_version
    )
    logger.info(f"Period {period_id} of contract {contract_id} returned to scheduled")
    return to_response(row, today)


# ============================================================================
# Equipment and Service Reports
# ============================================================================

@router.post("/{contract_id}/equipment", response_model=ServiceContractResponse, status_code=status.HTTP_201_CREATED)
async def add_equipment(
    contract_id: str,
    equipment_data: EquipmentCreate,
    expected_version: Optional[int] = Query(None),
    db: Session = Depends(get_db),
):
    today = date.today()
    row = ContractService(db).apply(
        contract_id, lambda c: ops.add_equipment(c, equipment_data, today), expected_version=expected_version
    )
    return to_response(row, today)


@router.delete("/{contract_id}/equipment/{equipment_id}", response_model=ServiceContractResponse)
async def remove_equipment(
    contract_id: str,
    equipment_id: str,
    expected_version: Optional[int] = Query(None),
    db: Session = Depends(get_db),
):
    """Remove a unit; periods that listed it drop the reference"""
    today = date.today()
    row = ContractService(db).apply(
        contract_id, lambda c: ops.remove_equipment(c, equipment_id, today), expected_version=expected_version
    )
    return to_response(row, today)


@router.post("/{contract_id}/equipment/{equipment_id}/reports", response_model=ServiceContractResponse,
             status_code=status.HTTP_201_CREATED)
async def add_service_report(
    contract_id: str,
    equipment_id: str,
    report_data: ServiceReportCreate,
    expected_version: Optional[int] = Query(None),
    db: Session = Depends(get_db),
):
    today = date.today()
    service = ContractService(db)
    known = service.known_engineer_ids()
    row = service.apply(
        contract_id,
        lambda c: ops.add_report(c, equipment_id, report_data, known, today),
        expected_version=expected_version,
    )
    return to_response(row, today)


@router.put("/{contract_id}/equipment/{equipment_id}/reports/{report_id}", response_model=ServiceContractResponse)
async def update_service_report(
    contract_id: str,
    equipment_id: str,
    report_id: str,
    report_data: ServiceReportCreate,
    expected_version: Optional[int] = Query(None),
    db: Session = Depends(get_db),
):
    today = date.today()
    service = ContractService(db)
    known = service.known_engineer_ids()
    row = service.apply(
        contract_id,
        lambda c: ops.update_report(c, equipment_id, report_id, report_data, known, today),
        expected_version=expected_version,
    )
    return to_response(row, today)
