from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from datetime import date

from aircontrol.database import get_db
from aircontrol.api.schedule import engineer_names
from aircontrol.services.contracts import ContractService
from aircontrol.services import reports

router = APIRouter()


@router.get("/summary")
async def get_summary(db: Session = Depends(get_db)):
    """Dashboard numbers for active contracts"""
    contracts = ContractService(db).list_contracts(archived=False)
    return reports.summary(contracts, engineer_names(db), date.today())
