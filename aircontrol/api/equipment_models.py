from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy import func
from sqlalchemy.orm import Session
from typing import Optional, List
import logging

from aircontrol.database import get_db
from aircontrol.models import EquipmentModel
from aircontrol.schemas import EquipmentModelCreate, EquipmentModelSchema, EquipmentModelUpdate, new_id
from aircontrol.services.errors import ValidationError

logger = logging.getLogger(__name__)

router = APIRouter()


def check_unique_name(db: Session, name: str, exclude_id: Optional[str] = None):
    """Model names are unique ignoring case"""
    query = db.query(EquipmentModel).filter(func.lower(EquipmentModel.name) == name.strip().lower())
    if exclude_id:
        query = query.filter(EquipmentModel.id != exclude_id)
    if query.first():
        raise ValidationError(f"Equipment model '{name}' already exists")


@router.get("/", response_model=List[EquipmentModelSchema])
async def get_equipment_models(
    category: Optional[str] = Query(None, description="Filter by category"),
    db: Session = Depends(get_db),
):
    """Get the equipment model directory"""
    query = db.query(EquipmentModel)
    if category:
        query = query.filter(EquipmentModel.category == category)
    return query.order_by(EquipmentModel.category, EquipmentModel.name).all()


@router.get("/categories", response_model=List[str])
async def get_categories(db: Session = Depends(get_db)):
    """Distinct categories used by the directory"""
    rows = db.query(EquipmentModel.category).distinct().order_by(EquipmentModel.category).all()
    return [row[0] for row in rows]


@router.post("/", response_model=EquipmentModelSchema, status_code=status.HTTP_201_CREATED)
async def create_equipment_model(model_data: EquipmentModelCreate, db: Session = Depends(get_db)):
    check_unique_name(db, model_data.name)

    model = EquipmentModel(id=new_id(), category=model_data.category.strip(), name=model_data.name.strip())
    db.add(model)
    db.commit()
    db.refresh(model)

    logger.info(f"Equipment model created: {model.id} - {model.name}")
    return model


@router.put("/{model_id}", response_model=EquipmentModelSchema)
async def update_equipment_model(
    model_id: str,
    model_data: EquipmentModelUpdate,
    db: Session = Depends(get_db),
):
    model = db.query(EquipmentModel).filter(EquipmentModel.id == model_id).first()
    if not model:
        raise HTTPException(status_code=404, detail="Equipment model not found")

    if model_data.name is not None:
        if not model_data.name.strip():
            raise ValidationError("Model name cannot be empty")
        check_unique_name(db, model_data.name, exclude_id=model_id)
        model.name = model_data.name.strip()
    if model_data.category is not None:
        if not model_data.category.strip():
            raise ValidationError("Category cannot be empty")
        model.category = model_data.category.strip()

    db.commit()
    db.refresh(model)

    logger.info(f"Equipment model updated: {model.id} - {model.name}")
    return model


@router.delete("/{model_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_equipment_model(model_id: str, db: Session = Depends(get_db)):
    model = db.query(EquipmentModel).filter(EquipmentModel.id == model_id).first()
    if not model:
        raise HTTPException(status_code=404, detail="Equipment model not found")

    db.delete(model)
    db.commit()

    logger.info(f"Equipment model deleted: {model_id}")
