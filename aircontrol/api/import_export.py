"""
Import/Export API Endpoints

JSON backups of contracts, engineers and the equipment model directory,
additive JSON import, and the maintenance schedule as an Excel sheet.
"""
from fastapi import APIRouter, Depends, Body, Query
from fastapi.responses import JSONResponse, StreamingResponse
from sqlalchemy.orm import Session
from datetime import date
import logging

from aircontrol.database import get_db
from aircontrol.schemas import ImportResult
from aircontrol.services.import_export import ImportExportService, XLSX_MEDIA_TYPE, export_filename

router = APIRouter()
logger = logging.getLogger(__name__)


# =============================================================================
# Data Export
# =============================================================================

# Declared before the {kind} route so it is not captured by it
@router.get("/export/schedule.xlsx")
async def export_schedule(
    include_archived: bool = Query(False),
    db: Session = Depends(get_db),
):
    """Maintenance schedule, one row per period"""
    today = date.today()
    output = ImportExportService(db).schedule_workbook(today, include_archived=include_archived)
    filename = export_filename("schedule", today, "xlsx")

    logger.info(f"Schedule exported to {filename}")
    return StreamingResponse(
        output,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f"attachment; filename={filename}"}
    )


@router.get("/export/{kind}")
async def export_data(kind: str, db: Session = Depends(get_db)):
    """
    Export existing data as JSON.
    Supported kinds: contracts, engineers, equipment-models, all
    """
    payload = ImportExportService(db).export_payload(kind)
    filename = export_filename(kind, date.today())

    logger.info(f"Exported {kind} to {filename}")
    return JSONResponse(
        content=payload,
        headers={"Content-Disposition": f"attachment; filename={filename}"}
    )


# =============================================================================
# Data Import
# =============================================================================

@router.post("/import", response_model=ImportResult)
async def import_data(payload=Body(...), db: Session = Depends(get_db)):
    """
    Import a JSON backup.

    Accepts a bare array of contracts, engineers or equipment models, or an
    object with any of "contracts", "engineers" and "equipmentModels".
    Existing records are never changed.
    """
    return ImportExportService(db).import_data(payload)
