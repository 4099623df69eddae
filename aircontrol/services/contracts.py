"""
Contract document store.

Contracts are stored one row per document (periods and equipment
embedded as JSON). Every mutation goes through apply(), a
read-modify-write inside one transaction:

    service = ContractService(db)
    contract = service.apply(contract_id, lambda c: finalize_period(c, ...),
                             expected_version=3)

When expected_version is given and the stored document moved on, the
write is refused with ConflictError. Without it the last write wins.
"""
from datetime import date
from typing import Callable, List, Optional
import logging

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from aircontrol.models import ServiceContract as ServiceContractModel, ServiceEngineer as ServiceEngineerModel
from aircontrol.schemas import (
    DisplayStatus, PeriodStatus, ServiceContract, ServiceContractCreate, ServiceContractUpdate, new_id,
)
from aircontrol.services.errors import ConflictError, NotFoundError, PersistenceError, ValidationError
from aircontrol.services.period_operations import DEFAULT_PERIOD_NAME, unassign_engineer
from aircontrol.services.status_engine import derive_display_status, recompute_status
from aircontrol.utils.text import capitalize_words

logger = logging.getLogger(__name__)

ContractOperation = Callable[[ServiceContract], ServiceContract]

CAPITALIZED_FIELDS = ("object_name", "counterparty", "address", "contact_person")


def row_to_document(row: ServiceContractModel) -> ServiceContract:
    return ServiceContract.model_validate(row)


def document_values(contract: ServiceContract) -> dict:
    """Column values for a document; embedded lists are stored as JSON"""
    return {
        "contract_number": contract.contract_number,
        "object_name": contract.object_name,
        "counterparty": contract.counterparty,
        "address": contract.address,
        "coordinates": contract.coordinates,
        "contact_person": contract.contact_person,
        "contact_phone": contract.contact_phone,
        "contract_start_date": contract.contract_start_date,
        "contract_end_date": contract.contract_end_date,
        "service_type": contract.service_type.value if contract.service_type else None,
        "status": contract.status.value,
        "work_description": contract.work_description,
        "maintenance_periods": [p.model_dump(mode="json") for p in contract.maintenance_periods],
        "equipment": [e.model_dump(mode="json") for e in contract.equipment],
        "archived": contract.archived,
    }


def check_document(contract: ServiceContract):
    """Invariants every stored contract satisfies"""
    if not contract.maintenance_periods:
        raise ValidationError("A contract must have at least one maintenance period")

    if contract.contract_start_date and contract.contract_end_date \
            and contract.contract_start_date > contract.contract_end_date:
        raise ValidationError("Contract start date cannot be after contract end date")

    for period in contract.maintenance_periods:
        if period.start_date and period.end_date and period.start_date > period.end_date:
            raise ValidationError(f"Start date cannot be after end date for '{period.name}'")
        # Same preconditions as finalize_period
        if period.status == PeriodStatus.DONE:
            if period.start_date is None or period.end_date is None:
                raise ValidationError(f"Completed period '{period.name}' must have start and end dates")
            if not period.assigned_engineer_ids:
                raise ValidationError(f"Completed period '{period.name}' must have at least one engineer")

    period_ids = [p.id for p in contract.maintenance_periods]
    if len(set(period_ids)) != len(period_ids):
        raise ValidationError("Maintenance period ids must be unique within a contract")

    equipment_ids = {e.id for e in contract.equipment}
    for period in contract.maintenance_periods:
        unknown = [e for e in period.equipment_ids if e not in equipment_ids]
        if unknown:
            raise ValidationError(
                f"Period '{period.name}' references equipment not on this contract: {', '.join(unknown)}"
            )


class ContractService:
    """Read and write contract documents"""

    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_row(self, contract_id: str) -> ServiceContractModel:
        try:
            row = self.db.query(ServiceContractModel).filter(ServiceContractModel.id == contract_id).first()
        except SQLAlchemyError as e:
            logger.error(f"Error loading contract {contract_id}: {e}")
            raise PersistenceError("Could not load contract")
        if not row:
            raise NotFoundError(f"Contract {contract_id} not found")
        return row

    def get_contract(self, contract_id: str) -> ServiceContract:
        return row_to_document(self.get_row(contract_id))

    def list_rows(
        self,
        archived: Optional[bool] = False,
        search: Optional[str] = None,
    ) -> List[ServiceContractModel]:
        try:
            query = self.db.query(ServiceContractModel)
            if archived is not None:
                query = query.filter(ServiceContractModel.archived == archived)
            if search:
                term = f"%{search}%"
                query = query.filter(
                    or_(
                        ServiceContractModel.contract_number.ilike(term),
                        ServiceContractModel.object_name.ilike(term),
                        ServiceContractModel.counterparty.ilike(term),
                        ServiceContractModel.address.ilike(term),
                    )
                )
            return query.order_by(ServiceContractModel.object_name).all()
        except SQLAlchemyError as e:
            logger.error(f"Error listing contracts: {e}")
            raise PersistenceError("Could not load contracts")

    def list_contracts(
        self,
        archived: Optional[bool] = False,
        search: Optional[str] = None,
        display_status: Optional[DisplayStatus] = None,
        today: Optional[date] = None,
    ) -> List[ServiceContract]:
        today = today or date.today()
        contracts = [row_to_document(row) for row in self.list_rows(archived=archived, search=search)]
        if display_status is not None:
            contracts = [
                c for c in contracts
                if derive_display_status(c.contract_end_date, c.maintenance_periods, today) == display_status
            ]
        return contracts

    def known_engineer_ids(self) -> List[str]:
        try:
            return [row[0] for row in self.db.query(ServiceEngineerModel.id).all()]
        except SQLAlchemyError as e:
            logger.error(f"Error loading engineers: {e}")
            raise PersistenceError("Could not load engineers")

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _commit(self, action: str):
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            logger.info(f"Integrity error while trying to {action}: {e}")
            raise ValidationError("Contract number already exists")
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error while trying to {action}: {e}")
            raise PersistenceError(f"Could not {action}")

    def _check_unique_number(self, contract_number: str, exclude_id: Optional[str] = None):
        query = self.db.query(ServiceContractModel).filter(
            ServiceContractModel.contract_number == contract_number
        )
        if exclude_id:
            query = query.filter(ServiceContractModel.id != exclude_id)
        if query.first():
            raise ValidationError(f"Contract number {contract_number} already exists")

    def create_contract(self, data: ServiceContractCreate, today: Optional[date] = None) -> ServiceContractModel:
        today = today or date.today()
        values = data.model_dump()
        for field in CAPITALIZED_FIELDS:
            if values.get(field):
                values[field] = capitalize_words(values[field])

        contract = ServiceContract(id=new_id(), **values)
        for index, period in enumerate(contract.maintenance_periods, start=1):
            if not period.name:
                period.name = DEFAULT_PERIOD_NAME.format(index=index)

        check_document(contract)
        self._check_unique_number(contract.contract_number)
        contract = recompute_status(contract, today)

        row = ServiceContractModel(id=contract.id, version=1, **document_values(contract))
        self.db.add(row)
        self._commit("create contract")
        self.db.refresh(row)

        logger.info(f"Contract created: {row.id} - {row.contract_number}")
        return row

    def update_contract(
        self,
        contract_id: str,
        data: ServiceContractUpdate,
        expected_version: Optional[int] = None,
        today: Optional[date] = None,
    ) -> ServiceContractModel:
        today = today or date.today()
        changes = data.model_dump(exclude_unset=True)
        for field in CAPITALIZED_FIELDS:
            if changes.get(field):
                changes[field] = capitalize_words(changes[field])

        if changes.get("contract_number"):
            self._check_unique_number(changes["contract_number"], exclude_id=contract_id)

        def apply_changes(contract: ServiceContract) -> ServiceContract:
            merged = contract.model_dump()
            merged.update(changes)
            try:
                updated = ServiceContract.model_validate(merged)
            except PydanticValidationError as e:
                raise ValidationError(f"Invalid contract data: {e.errors()[0].get('msg')}")
            return recompute_status(updated, today)

        return self.apply(contract_id, apply_changes, expected_version=expected_version)

    def apply(
        self,
        contract_id: str,
        operation: ContractOperation,
        expected_version: Optional[int] = None,
    ) -> ServiceContractModel:
        """Load, transform and store one contract document"""
        row = self.get_row(contract_id)
        if expected_version is not None and row.version != expected_version:
            raise ConflictError(
                f"Contract {row.contract_number} was changed by someone else "
                f"(version {row.version}, expected {expected_version}). Reload and try again."
            )

        self._write(row, operation)
        self._commit("update contract")
        self.db.refresh(row)

        logger.info(f"Contract updated: {row.id} - {row.contract_number} (v{row.version}, {row.status})")
        return row

    def _write(self, row: ServiceContractModel, operation: ContractOperation):
        """Transform a loaded row in the session; the caller commits"""
        updated = operation(row_to_document(row))
        check_document(updated)

        for key, value in document_values(updated).items():
            setattr(row, key, value)
        row.version = (row.version or 0) + 1

    def delete_engineer(self, engineer: ServiceEngineerModel, today: Optional[date] = None) -> int:
        """
        Delete an engineer and take them off every scheduled period roster.

        All affected contracts and the engineer row are written in one
        commit. An engineer on the roster of a completed period cannot be
        deleted; nothing is written in that case.
        """
        today = today or date.today()
        engineer_id = engineer.id
        affected = [
            row for row in self.list_rows(archived=None)
            if any(engineer_id in p.assigned_engineer_ids for p in row_to_document(row).maintenance_periods)
        ]

        try:
            for row in affected:
                self._write(row, lambda c: unassign_engineer(c, engineer_id, today))
        except ValidationError:
            self.db.rollback()
            raise

        self.db.delete(engineer)
        self._commit("delete engineer")

        logger.info(f"Engineer deleted: {engineer_id} (removed from {len(affected)} contracts)")
        return len(affected)
