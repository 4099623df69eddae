from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from aircontrol.database import get_db
from aircontrol.schemas import DisplaySettings, DisplaySettingsUpdate
from aircontrol.services.display_settings import DatabaseSettingsStore, DisplaySettingsService

router = APIRouter()


def get_settings_service(db: Session = Depends(get_db)) -> DisplaySettingsService:
    return DisplaySettingsService(DatabaseSettingsStore(db))


@router.get("/display/{owner}", response_model=DisplaySettings)
async def get_display_settings(owner: str, service: DisplaySettingsService = Depends(get_settings_service)):
    """Display settings of one user or device, defaults when never saved"""
    return service.load(owner)


@router.put("/display/{owner}", response_model=DisplaySettings)
async def update_display_settings(
    owner: str,
    changes: DisplaySettingsUpdate,
    service: DisplaySettingsService = Depends(get_settings_service),
):
    """Change some settings; fields left out keep their current value"""
    return service.update(owner, changes)
