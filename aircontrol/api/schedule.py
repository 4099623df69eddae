from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Dict, List, Literal, Optional
from datetime import date
import logging

from aircontrol.database import get_db
from aircontrol.models import ServiceEngineer as ServiceEngineerModel
from aircontrol.schemas import KanbanColumn, NotificationsResponse
from aircontrol.services.contracts import ContractService
from aircontrol.services.display_settings import DatabaseSettingsStore, DisplaySettingsService
from aircontrol.services import schedule_views

logger = logging.getLogger(__name__)

router = APIRouter()


def engineer_names(db: Session) -> Dict[str, str]:
    return {e.id: e.name for e in db.query(ServiceEngineerModel).all()}


@router.get("/notifications", response_model=NotificationsResponse)
async def get_notifications(
    owner: str = Query("default", description="Whose display settings decide the upcoming horizon"),
    db: Session = Depends(get_db),
):
    """Overdue and upcoming scheduled periods of active contracts"""
    display = DisplaySettingsService(DatabaseSettingsStore(db)).load(owner)
    contracts = ContractService(db).list_contracts(archived=False)
    result = schedule_views.notifications(contracts, engineer_names(db), display, date.today())
    logger.info(f"Notifications: {len(result.overdue)} overdue, {len(result.upcoming)} upcoming")
    return result


@router.get("/kanban", response_model=List[KanbanColumn])
async def get_kanban(
    group_by: Literal["engineer", "subdivision"] = Query("engineer"),
    include_completed: bool = Query(False),
    db: Session = Depends(get_db),
):
    """Maintenance board grouped by engineer or by subdivision"""
    contracts = ContractService(db).list_contracts(archived=False)
    engineers = engineer_names(db)
    if group_by == "subdivision":
        return schedule_views.kanban_by_subdivision(contracts, engineers, date.today(), include_completed)
    return schedule_views.kanban_by_engineer(contracts, engineers, date.today(), include_completed)


@router.get("/gantt")
async def get_gantt(
    year: Optional[int] = Query(None, ge=2000, le=2100, description="Calendar year, defaults to the current one"),
    db: Session = Depends(get_db),
):
    """Period bars per contract for one calendar year"""
    today = date.today()
    year = year or today.year
    start, end = date(year, 1, 1), date(year, 12, 31)
    contracts = ContractService(db).list_contracts(archived=False)
    return {
        "start": start,
        "end": end,
        "rows": schedule_views.gantt(contracts, start, end, today),
    }
