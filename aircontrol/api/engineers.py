from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session
from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from typing import Optional, List
from datetime import date
import logging

from aircontrol.database import get_db
from aircontrol.models import ServiceEngineer as ServiceEngineerModel
from aircontrol.schemas import ServiceEngineer, ServiceEngineerCreate, ServiceEngineerUpdate, new_id
from aircontrol.services.contracts import ContractService
from aircontrol.services.errors import ValidationError

logger = logging.getLogger(__name__)

router = APIRouter()


def get_engineer_or_404(db: Session, engineer_id: str) -> ServiceEngineerModel:
    engineer = db.query(ServiceEngineerModel).filter(ServiceEngineerModel.id == engineer_id).first()
    if not engineer:
        raise HTTPException(status_code=404, detail="Engineer not found")
    return engineer


def check_unique_email(db: Session, email: str, exclude_id: Optional[str] = None):
    query = db.query(ServiceEngineerModel).filter(func.lower(ServiceEngineerModel.email) == email.lower())
    if exclude_id:
        query = query.filter(ServiceEngineerModel.id != exclude_id)
    if query.first():
        raise ValidationError(f"Engineer with email {email} already exists")


@router.get("/", response_model=List[ServiceEngineer])
async def get_engineers(
    search: Optional[str] = Query(None, description="Search by name, email or phone"),
    db: Session = Depends(get_db),
):
    """Get all service engineers ordered by name"""
    query = db.query(ServiceEngineerModel)
    if search:
        term = f"%{search}%"
        query = query.filter(
            or_(
                ServiceEngineerModel.name.ilike(term),
                ServiceEngineerModel.email.ilike(term),
                ServiceEngineerModel.phone.ilike(term),
            )
        )
    return query.order_by(ServiceEngineerModel.name).all()


@router.get("/{engineer_id}", response_model=ServiceEngineer)
async def get_engineer(engineer_id: str, db: Session = Depends(get_db)):
    return get_engineer_or_404(db, engineer_id)


@router.post("/", response_model=ServiceEngineer, status_code=status.HTTP_201_CREATED)
async def create_engineer(engineer_data: ServiceEngineerCreate, db: Session = Depends(get_db)):
    """Create a new service engineer (email must be unique)"""
    check_unique_email(db, engineer_data.email)

    engineer = ServiceEngineerModel(id=new_id(), **engineer_data.model_dump())
    db.add(engineer)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ValidationError(f"Engineer with email {engineer_data.email} already exists")
    db.refresh(engineer)

    logger.info(f"Engineer created: {engineer.id} - {engineer.name}")
    return engineer


@router.put("/{engineer_id}", response_model=ServiceEngineer)
async def update_engineer(
    engineer_id: str,
    engineer_data: ServiceEngineerUpdate,
    db: Session = Depends(get_db),
):
    engineer = get_engineer_or_404(db, engineer_id)

    update_data = engineer_data.model_dump(exclude_unset=True)
    if update_data.get("name") is not None and not update_data["name"].strip():
        raise ValidationError("Engineer name cannot be empty")
    if update_data.get("email"):
        check_unique_email(db, update_data["email"], exclude_id=engineer_id)

    for field, value in update_data.items():
        if field in ("name", "email") and value is None:
            continue
        setattr(engineer, field, value)

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ValidationError("Engineer with this email already exists")
    db.refresh(engineer)

    logger.info(f"Engineer updated: {engineer.id} - {engineer.name}")
    return engineer


@router.delete("/{engineer_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_engineer(engineer_id: str, db: Session = Depends(get_db)):
    """
    Delete an engineer.

    The engineer is taken off every scheduled period roster in the same
    transaction. Engineers on a completed period roster cannot be deleted.
    Service reports they authored keep their engineer id as history.
    """
    engineer = get_engineer_or_404(db, engineer_id)
    ContractService(db).delete_engineer(engineer, date.today())
