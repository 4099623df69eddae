"""
AI rescheduling assistant.

Suggestions are advisory: nothing here writes to contracts. The client
applies a chosen date through the period dates endpoint.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from datetime import date
import logging

from aircontrol.database import get_db
from aircontrol.schemas import MonthPlanRequest, MonthPlanResponse, RescheduleRequest, RescheduleResponse
from aircontrol.services.contracts import ContractService
from aircontrol.services.reschedule import RescheduleAdapter
from aircontrol.services.suggestion_oracle import SuggestionOracle, get_oracle

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/suggestions", response_model=RescheduleResponse)
async def suggest_dates(
    request: RescheduleRequest,
    db: Session = Depends(get_db),
    oracle: SuggestionOracle = Depends(get_oracle),
):
    """Suggest new dates for one scheduled period"""
    service = ContractService(db)
    contract = service.get_contract(request.contract_id)
    contracts = service.list_contracts(archived=False)

    logger.info(f"Requesting reschedule suggestions for period {request.period_id} of {contract.contract_number}")
    return await RescheduleAdapter(oracle).suggest_for_period(contract, request.period_id, contracts)


@router.post("/plan", response_model=MonthPlanResponse)
async def plan_month(
    request: MonthPlanRequest,
    db: Session = Depends(get_db),
    oracle: SuggestionOracle = Depends(get_oracle),
):
    """Propose up to two dates for every scheduled period in a month"""
    contracts = ContractService(db).list_contracts(archived=False)

    logger.info(f"Requesting month plan for {request.month_ref or 'current month'}")
    return await RescheduleAdapter(oracle).plan_month(
        contracts, request.month_ref, date.today(), request.contract_ids
    )
