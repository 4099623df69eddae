from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel
from datetime import date, datetime
from enum import Enum
from typing import Optional, List, Literal, Union, Any, Dict
import re
import uuid

from aircontrol.utils.dates import to_date


def new_id() -> str:
    return uuid.uuid4().hex


PHONE_RE = re.compile(r"^\+380\d{9}$")


def normalize_phone(v):
    """Strip separators and require +380XXXXXXXXX; empty means no phone"""
    if v is None or v == '':
        return None
    v = re.sub(r"[\s\-()]", "", str(v))
    if not PHONE_RE.match(v):
        raise ValueError("Phone must be in +380XXXXXXXXX format")
    return v


class CamelModel(BaseModel):
    """Documents travel as camelCase JSON (mobile client, backups, AI prompts)"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# ============================================================================
# Enumerations (labels are the values stored in documents)
# ============================================================================

class ContractStatus(str, Enum):
    SCHEDULED = "Заплановано"
    DONE = "Виконано"
    PROLONGATION = "Пролонгація"


class DisplayStatus(str, Enum):
    SCHEDULED = "Заплановано"
    FINAL_WORKS = "Крайні роботи"
    PROLONGATION = "Пролонгація"


class PeriodStatus(str, Enum):
    SCHEDULED = "Заплановано"
    DONE = "Виконано"


class Subdivision(str, Enum):
    CLIMATE = "КОНД"
    UPS = "ДБЖ"
    GENERATOR = "ДГУ"


class ServiceType(str, Enum):
    QUARTERLY = "Щоквартальне"
    SEMIANNUAL = "Піврічне"
    ANNUAL = "Щорічне"


# ============================================================================
# Embedded documents
# ============================================================================

class PartUsed(CamelModel):
    name: str = Field(..., min_length=1)
    quantity: float = Field(..., gt=0)


class ServiceReport(CamelModel):
    id: str = Field(default_factory=new_id)
    report_date: date
    engineer_id: str
    work_description: str = ""
    parts_used: List[PartUsed] = []

    @field_validator('report_date', mode='before')
    @classmethod
    def parse_report_date(cls, v):
        parsed = to_date(v, "report date")
        if parsed is None:
            raise ValueError("Report date is required")
        return parsed


class Equipment(CamelModel):
    id: str = Field(default_factory=new_id)
    name: str
    model: str = ""
    serial_number: Optional[str] = None
    group_number: Optional[str] = None
    reports: List[ServiceReport] = []


class MaintenancePeriod(CamelModel):
    id: str = Field(default_factory=new_id)
    name: str = ""
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    subdivision: Subdivision = Subdivision.CLIMATE
    assigned_engineer_ids: List[str] = []
    equipment_ids: List[str] = []
    status: PeriodStatus = PeriodStatus.SCHEDULED

    @field_validator('start_date', 'end_date', mode='before')
    @classmethod
    def parse_dates(cls, v):
        return to_date(v, "period date")

    @field_validator('assigned_engineer_ids', 'equipment_ids', mode='before')
    @classmethod
    def unique_ids(cls, v):
        if v is None:
            return []
        return list(dict.fromkeys(v))

    @model_validator(mode='after')
    def check_date_order(self):
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValueError(f"Start date is after end date for '{self.name}'")
        return self


# ============================================================================
# Service Contract Schemas
# ============================================================================

class ServiceContractBase(CamelModel):
    contract_number: str = Field(..., min_length=1)
    object_name: str = Field(..., min_length=1)
    counterparty: str = ""
    address: str = ""
    coordinates: Optional[str] = None
    contact_person: Optional[str] = None
    contact_phone: Optional[str] = None
    contract_start_date: Optional[date] = None
    contract_end_date: Optional[date] = None
    service_type: Optional[ServiceType] = None
    work_description: Optional[str] = None

    @field_validator('contract_start_date', 'contract_end_date', mode='before')
    @classmethod
    def parse_contract_dates(cls, v):
        return to_date(v, "contract date")


class ServiceContractCreate(ServiceContractBase):
    maintenance_periods: List[MaintenancePeriod] = []
    equipment: List[Equipment] = []


class ServiceContractUpdate(CamelModel):
    contract_number: Optional[str] = None
    object_name: Optional[str] = None
    counterparty: Optional[str] = None
    address: Optional[str] = None
    coordinates: Optional[str] = None
    contact_person: Optional[str] = None
    contact_phone: Optional[str] = None
    contract_start_date: Optional[date] = None
    contract_end_date: Optional[date] = None
    service_type: Optional[ServiceType] = None
    work_description: Optional[str] = None
    maintenance_periods: Optional[List[MaintenancePeriod]] = None
    equipment: Optional[List[Equipment]] = None

    @field_validator('contract_start_date', 'contract_end_date', mode='before')
    @classmethod
    def parse_contract_dates(cls, v):
        return to_date(v, "contract date")


class ServiceContract(ServiceContractBase):
    """A contract document as stored"""
    id: str = Field(default_factory=new_id)
    status: ContractStatus = ContractStatus.SCHEDULED
    maintenance_periods: List[MaintenancePeriod] = []
    equipment: List[Equipment] = []
    archived: bool = False
    version: int = 1

    def find_period(self, period_id: str) -> Optional[MaintenancePeriod]:
        return next((p for p in self.maintenance_periods if p.id == period_id), None)

    def find_equipment(self, equipment_id: str) -> Optional[Equipment]:
        return next((e for e in self.equipment if e.id == equipment_id), None)


class ServiceContractResponse(ServiceContract):
    display_status: DisplayStatus
    completed_periods: int = 0
    total_periods: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# ============================================================================
# Period / equipment operation payloads
# ============================================================================

class PeriodDatesUpdate(CamelModel):
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    @field_validator('start_date', 'end_date', mode='before')
    @classmethod
    def parse_dates(cls, v):
        return to_date(v, "period date")


class PeriodFinalize(CamelModel):
    actual_start_date: Optional[date] = None
    actual_end_date: Optional[date] = None
    engineer_ids: List[str] = []

    @field_validator('actual_start_date', 'actual_end_date', mode='before')
    @classmethod
    def parse_dates(cls, v):
        return to_date(v, "actual date")


class EquipmentCreate(CamelModel):
    name: str = Field(..., min_length=1)
    model: str = ""
    serial_number: Optional[str] = None
    group_number: Optional[str] = None


class ServiceReportCreate(CamelModel):
    report_date: date
    engineer_id: str
    work_description: str = ""
    parts_used: List[PartUsed] = []

    @field_validator('report_date', mode='before')
    @classmethod
    def parse_report_date(cls, v):
        parsed = to_date(v, "report date")
        if parsed is None:
            raise ValueError("Report date is required")
        return parsed


# ============================================================================
# Engineer Schemas
# ============================================================================

class ServiceEngineerBase(CamelModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    phone: Optional[str] = None

    @field_validator('phone', mode='before')
    @classmethod
    def validate_phone(cls, v):
        return normalize_phone(v)


class ServiceEngineerCreate(ServiceEngineerBase):
    pass


class ServiceEngineerUpdate(CamelModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None

    @field_validator('phone', mode='before')
    @classmethod
    def validate_phone(cls, v):
        return normalize_phone(v)


class ServiceEngineer(ServiceEngineerBase):
    id: str


# ============================================================================
# Equipment Model (directory) Schemas
# ============================================================================

class EquipmentModelCreate(CamelModel):
    category: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)


class EquipmentModelUpdate(CamelModel):
    category: Optional[str] = None
    name: Optional[str] = None


class EquipmentModelSchema(EquipmentModelCreate):
    id: str


# ============================================================================
# Rescheduling assistant
# ============================================================================

class PeriodProjection(CamelModel):
    """What the suggestion oracle sees of a maintenance period"""
    id: str
    name: str
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    subdivision: str
    assigned_engineer_ids: List[str] = []
    equipment_details: Optional[str] = None
    status: str
    contract_id: Optional[str] = None
    contract_name: Optional[str] = None
    address: Optional[str] = None


class RescheduleRequest(CamelModel):
    contract_id: str
    period_id: str


class MonthPlanRequest(CamelModel):
    month_ref: Optional[str] = None  # YYYY-MM
    contract_ids: Optional[List[str]] = None


class SuggestionConflicts(CamelModel):
    shared_engineer_period_ids: List[str] = []
    periods_on_day: int = 0
    overloaded_day: bool = False


class RescheduleSuggestion(CamelModel):
    new_date: date
    reason: str = ""
    original_period_id: str
    conflicts: SuggestionConflicts = SuggestionConflicts()


class RejectedSuggestion(CamelModel):
    original_period_id: Optional[str] = None
    value: Any = None
    reason: str


class RescheduleResponse(CamelModel):
    suggestions: List[RescheduleSuggestion] = []
    rejected: List[RejectedSuggestion] = []


class PlannedPeriod(CamelModel):
    id: str
    name: str = ""
    suggested_dates: List[str] = []  # DD.MM.YYYY
    reason: str = ""
    conflicts: SuggestionConflicts = SuggestionConflicts()


class MonthPlanResponse(CamelModel):
    ok: bool
    month_ref: str
    data: List[PlannedPeriod] = []
    rejected: List[RejectedSuggestion] = []
    raw: str = ""


# ============================================================================
# Import / Export
# ============================================================================

class ImportResult(CamelModel):
    contracts_added: int = 0
    engineers_added: int = 0
    models_added: int = 0
    skipped: Dict[str, int] = {}


# ============================================================================
# Display settings
# ============================================================================

MaintenanceViewMode = Literal['list', 'kanban-engineer', 'kanban-subdivision']


class DisplaySettings(CamelModel):
    auto_hide_panels: bool = True
    is_wide_mode: bool = False
    show_overdue: bool = True
    show_upcoming: bool = True
    upcoming_days: Union[int, Literal['endOfMonth']] = 30
    maintenance_view_mode: MaintenanceViewMode = 'list'
    base_font_size: int = Field(16, ge=10, le=32)
    show_completed_tasks: bool = False

    @field_validator('upcoming_days')
    @classmethod
    def check_upcoming_days(cls, v):
        if isinstance(v, int) and v < 0:
            raise ValueError("upcomingDays must be non-negative")
        return v


class DisplaySettingsUpdate(CamelModel):
    auto_hide_panels: Optional[bool] = None
    is_wide_mode: Optional[bool] = None
    show_overdue: Optional[bool] = None
    show_upcoming: Optional[bool] = None
    upcoming_days: Optional[Union[int, Literal['endOfMonth']]] = None
    maintenance_view_mode: Optional[MaintenanceViewMode] = None
    base_font_size: Optional[int] = Field(None, ge=10, le=32)
    show_completed_tasks: Optional[bool] = None


# ============================================================================
# Schedule views
# ============================================================================

class EngineerRef(CamelModel):
    id: str
    name: str


class ScheduledPeriodItem(CamelModel):
    contract_id: str
    contract_number: str
    object_name: str
    address: str = ""
    period_id: str
    period_name: str
    subdivision: str
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    status: PeriodStatus
    days_diff: Optional[int] = None
    is_overdue: bool = False
    assigned_engineers: List[EngineerRef] = []
    navigation: Dict[str, str] = {}


class NotificationsResponse(CamelModel):
    overdue: List[ScheduledPeriodItem] = []
    upcoming: List[ScheduledPeriodItem] = []


class KanbanColumn(CamelModel):
    key: str
    title: str
    items: List[ScheduledPeriodItem] = []
