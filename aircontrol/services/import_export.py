"""
Backup export/import and the Excel schedule.

Export produces the same camelCase JSON the mobile client keeps in its
backups. Import is additive only: records that already exist (same
contract number, same engineer email, same model name ignoring case)
are left alone and counted as skipped.
"""
from datetime import date
from typing import Dict, List, Optional, Set
import io
import logging

from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill, Alignment, Border, Side
from openpyxl.utils import get_column_letter
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from aircontrol.models import (
    EquipmentModel as EquipmentModelRow, ServiceContract as ServiceContractModel,
    ServiceEngineer as ServiceEngineerModel,
)
from aircontrol.schemas import (
    EquipmentModelCreate, EquipmentModelSchema, ImportResult, ServiceContract,
    ServiceEngineer, ServiceEngineerCreate, new_id,
)
from aircontrol.services.contracts import check_document, document_values, row_to_document
from aircontrol.services.errors import PersistenceError, ValidationError
from aircontrol.services.status_engine import derive_display_status, recompute_status

logger = logging.getLogger(__name__)

EXPORT_KINDS = ("contracts", "engineers", "equipment-models", "all")

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

SCHEDULE_COLUMNS = [
    ("Номер договору", 18),
    ("Об'єкт", 32),
    ("Адреса", 40),
    ("Період", 14),
    ("Підрозділ", 12),
    ("Початок", 12),
    ("Кінець", 12),
    ("Статус періоду", 16),
    ("Інженери", 32),
    ("Статус договору", 18),
]


# =============================================================================
# Export
# =============================================================================

def export_filename(kind: str, today: date, extension: str = "json") -> str:
    label = "equipmentModels" if kind == "equipment-models" else kind
    if kind == "all":
        label = "export"
    return f"aircontrol_{label}_{today.isoformat()}.{extension}"


class ImportExportService:
    def __init__(self, db: Session):
        self.db = db

    def _contracts(self) -> List[ServiceContract]:
        rows = self.db.query(ServiceContractModel).order_by(ServiceContractModel.object_name).all()
        return [row_to_document(row) for row in rows]

    def _engineers(self) -> List[ServiceEngineerModel]:
        return self.db.query(ServiceEngineerModel).order_by(ServiceEngineerModel.name).all()

    def _models(self) -> List[EquipmentModelRow]:
        return self.db.query(EquipmentModelRow).order_by(EquipmentModelRow.category, EquipmentModelRow.name).all()

    def export_payload(self, kind: str):
        """JSON-ready payload for one export kind"""
        if kind not in EXPORT_KINDS:
            raise ValidationError(f"Unknown export type: {kind}. Supported types: {', '.join(EXPORT_KINDS)}")

        try:
            contracts = [c.model_dump(mode="json", by_alias=True) for c in self._contracts()] \
                if kind in ("contracts", "all") else None
            engineers = [
                ServiceEngineer.model_validate(e).model_dump(mode="json", by_alias=True)
                for e in self._engineers()
            ] if kind in ("engineers", "all") else None
            models = [
                EquipmentModelSchema.model_validate(m).model_dump(mode="json", by_alias=True)
                for m in self._models()
            ] if kind in ("equipment-models", "all") else None
        except SQLAlchemyError as e:
            logger.error(f"Error exporting {kind}: {e}")
            raise PersistenceError("Could not export data")

        if kind == "contracts":
            return contracts
        if kind == "engineers":
            return engineers
        if kind == "equipment-models":
            return models
        return {"contracts": contracts, "engineers": engineers, "equipmentModels": models}

    # =========================================================================
    # Import
    # =========================================================================

    def import_data(self, payload, today: Optional[date] = None) -> ImportResult:
        today = today or date.today()
        sections = parse_import_payload(payload)
        result = ImportResult(skipped={})

        try:
            # Engineers first so imported contracts can reference them
            id_map = self._import_engineers(sections.get("engineers") or [], result)
            result.models_added = self._import_models(sections.get("equipmentModels") or [], result)
            result.contracts_added = self._import_contracts(sections.get("contracts") or [], result, today, id_map)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error importing data: {e}")
            raise PersistenceError("Could not import data")

        logger.info(
            f"Import finished: {result.contracts_added} contracts, {result.engineers_added} engineers, "
            f"{result.models_added} models added; skipped {result.skipped}"
        )
        return result

    @staticmethod
    def _skip(result: ImportResult, reason: str):
        result.skipped[reason] = result.skipped.get(reason, 0) + 1

    def _import_engineers(self, items: list, result: ImportResult) -> Dict[str, str]:
        """Add new engineers; returns file engineer id -> stored engineer id"""
        stored = self._engineers()
        ids_by_email = {e.email.lower(): e.id for e in stored}
        existing_ids = {e.id for e in stored}
        id_map = {}
        for item in items:
            try:
                data = ServiceEngineerCreate.model_validate(item)
            except ValueError as e:
                logger.info(f"Skipping invalid engineer in import: {e}")
                self._skip(result, "invalid_engineers")
                continue

            file_id = item.get("id") if isinstance(item.get("id"), str) else None
            email = data.email.lower()
            if email in ids_by_email:
                if file_id:
                    id_map[file_id] = ids_by_email[email]
                self._skip(result, "engineers")
                continue

            # Keep the original id when it is free
            engineer_id = file_id
            if not engineer_id or engineer_id in existing_ids:
                engineer_id = new_id()
            if file_id:
                id_map[file_id] = engineer_id

            self.db.add(ServiceEngineerModel(id=engineer_id, **data.model_dump()))
            ids_by_email[email] = engineer_id
            existing_ids.add(engineer_id)
            result.engineers_added += 1
        self.db.flush()
        return id_map

    def _import_models(self, items: list, result: ImportResult) -> int:
        existing_names = {m.name.lower() for m in self._models()}
        added = 0
        for item in items:
            try:
                data = EquipmentModelCreate.model_validate(item)
            except ValueError as e:
                logger.info(f"Skipping invalid equipment model in import: {e}")
                self._skip(result, "invalid_equipment_models")
                continue

            if data.name.lower() in existing_names:
                self._skip(result, "equipment_models")
                continue

            self.db.add(EquipmentModelRow(id=new_id(), **data.model_dump()))
            existing_names.add(data.name.lower())
            added += 1
        self.db.flush()
        return added

    def _import_contracts(self, items: list, result: ImportResult, today: date, id_map: Dict[str, str]) -> int:
        existing_numbers = {row[0] for row in self.db.query(ServiceContractModel.contract_number).all()}
        known_engineers = {row[0] for row in self.db.query(ServiceEngineerModel.id).all()}
        added = 0
        for item in items:
            try:
                values = {k: v for k, v in item.items() if k not in ("id", "version", "status")}
                contract = link_engineers(ServiceContract.model_validate(values), id_map, known_engineers)
                check_document(contract)
            except ValueError as e:
                logger.info(f"Skipping invalid contract in import: {e}")
                self._skip(result, "invalid_contracts")
                continue

            if contract.contract_number in existing_numbers:
                self._skip(result, "contracts")
                continue

            contract = recompute_status(contract.model_copy(update={"id": new_id()}), today)
            self.db.add(ServiceContractModel(id=contract.id, version=1, **document_values(contract)))
            existing_numbers.add(contract.contract_number)
            added += 1
        return added

    # =========================================================================
    # Excel schedule
    # =========================================================================

    def schedule_workbook(self, today: Optional[date] = None, include_archived: bool = False) -> io.BytesIO:
        """One row per maintenance period"""
        today = today or date.today()
        try:
            contracts = [c for c in self._contracts() if include_archived or not c.archived]
            engineers = {e.id: e.name for e in self._engineers()}
        except SQLAlchemyError as e:
            logger.error(f"Error building schedule workbook: {e}")
            raise PersistenceError("Could not export schedule")

        wb = create_schedule_workbook("Графік ТО")
        ws = wb.active

        row_idx = 2
        for contract in contracts:
            display_status = derive_display_status(contract.contract_end_date, contract.maintenance_periods, today)
            periods = sorted(contract.maintenance_periods, key=lambda p: (p.start_date is None, p.start_date or date.max))
            for period in periods:
                ws.cell(row=row_idx, column=1, value=contract.contract_number)
                ws.cell(row=row_idx, column=2, value=contract.object_name)
                ws.cell(row=row_idx, column=3, value=contract.address)
                ws.cell(row=row_idx, column=4, value=period.name)
                ws.cell(row=row_idx, column=5, value=period.subdivision.value)
                for col, value in ((6, period.start_date), (7, period.end_date)):
                    cell = ws.cell(row=row_idx, column=col, value=value)
                    cell.number_format = "DD.MM.YYYY"
                ws.cell(row=row_idx, column=8, value=period.status.value)
                ws.cell(
                    row=row_idx, column=9,
                    value=", ".join(engineers[e] for e in period.assigned_engineer_ids if e in engineers),
                )
                ws.cell(row=row_idx, column=10, value=display_status.value)
                row_idx += 1

        ws.auto_filter.ref = f"A1:{get_column_letter(len(SCHEDULE_COLUMNS))}{max(row_idx - 1, 1)}"

        output = io.BytesIO()
        wb.save(output)
        output.seek(0)
        return output


def link_engineers(contract: ServiceContract, id_map: Dict[str, str], known_ids: Set[str]) -> ServiceContract:
    """
    Point an imported contract at the stored engineers.

    Roster ids from the file are translated through id_map (engineers that
    were re-id'd or matched by email); roster ids that still name no stored
    engineer are dropped. Report authors are translated but kept as history.
    """
    for period in contract.maintenance_periods:
        linked = [id_map.get(e, e) for e in period.assigned_engineer_ids]
        dropped = [e for e in linked if e not in known_ids]
        if dropped:
            logger.info(f"Dropping unknown engineers {dropped} from '{period.name}' of {contract.contract_number}")
        period.assigned_engineer_ids = list(dict.fromkeys(e for e in linked if e in known_ids))
    for equipment in contract.equipment:
        for report in equipment.reports:
            report.engineer_id = id_map.get(report.engineer_id, report.engineer_id)
    return contract


def parse_import_payload(payload) -> Dict[str, list]:
    """
    Accept either a bare array of one kind of record (recognised by the
    keys of its first element) or an object with any of contracts,
    engineers and equipmentModels.
    """
    sections: Dict[str, list] = {}
    if isinstance(payload, list):
        if payload and isinstance(payload[0], dict):
            first = payload[0]
            if "contractNumber" in first:
                sections["contracts"] = payload
            elif "email" in first and "name" in first:
                sections["engineers"] = payload
            elif "category" in first and "name" in first:
                sections["equipmentModels"] = payload
    elif isinstance(payload, dict):
        for key in ("contracts", "engineers", "equipmentModels"):
            if isinstance(payload.get(key), list):
                sections[key] = payload[key]

    if not sections:
        raise ValidationError("The file has an invalid format or is empty")

    for key, items in sections.items():
        if not all(isinstance(item, dict) for item in items):
            raise ValidationError(f"Every entry in '{key}' must be an object")
    return sections


def create_schedule_workbook(sheet_name: str) -> Workbook:
    """Workbook with the schedule header row, frozen below the header"""
    wb = Workbook()
    ws = wb.active
    ws.title = sheet_name

    edge = Side(style="thin")
    for col_idx, (header, width) in enumerate(SCHEDULE_COLUMNS, 1):
        cell = ws.cell(row=1, column=col_idx, value=header)
        cell.font = Font(bold=True, color="FFFFFF")
        cell.fill = PatternFill(start_color="4472C4", end_color="4472C4", fill_type="solid")
        cell.alignment = Alignment(horizontal="center", vertical="center", wrap_text=True)
        cell.border = Border(left=edge, right=edge, top=edge, bottom=edge)
        ws.column_dimensions[get_column_letter(col_idx)].width = width

    ws.freeze_panes = "A2"
    return wb
