from sqlalchemy import Column, Integer, String, DateTime, Text, Boolean, Date, JSON
from sqlalchemy.sql import func
from aircontrol.database import Base


class ServiceContract(Base):
    """
    Service agreement for one object/site.

    Maintenance periods and equipment (with their service reports) are
    embedded as JSON documents; the whole row is read and written as one
    document by ContractService.
    """
    __tablename__ = "service_contracts"

    id = Column(String, primary_key=True, index=True)
    contract_number = Column(String, unique=True, nullable=False, index=True)
    object_name = Column(String, nullable=False)
    counterparty = Column(String, nullable=False, default="")
    address = Column(Text, nullable=False, default="")
    coordinates = Column(String, nullable=True)  # "50.45, 30.52"
    contact_person = Column(String, nullable=True)
    contact_phone = Column(String, nullable=True)

    contract_start_date = Column(Date, nullable=True)
    contract_end_date = Column(Date, nullable=True)
    service_type = Column(String, nullable=True)  # Щоквартальне, Піврічне, Щорічне

    # Persisted aggregate status: Заплановано, Виконано, Пролонгація
    status = Column(String, nullable=False, default="Заплановано")
    work_description = Column(Text, nullable=True)

    maintenance_periods = Column(JSON, nullable=False, default=list)
    equipment = Column(JSON, nullable=False, default=list)

    archived = Column(Boolean, default=False, nullable=False)

    # Incremented on every write; checked when the caller sends expected_version
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())


class ServiceEngineer(Base):
    """Engineer that can be assigned to maintenance periods and author reports"""
    __tablename__ = "service_engineers"

    id = Column(String, primary_key=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, nullable=False, index=True)
    phone = Column(String, nullable=True)
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())


class EquipmentModel(Base):
    """Catalog entry used to populate equipment pickers"""
    __tablename__ = "equipment_models"

    id = Column(String, primary_key=True, index=True)
    category = Column(String, nullable=False)  # e.g. "Кондиціонер", "ДБЖ"
    name = Column(String, nullable=False, index=True)
    created_at = Column(DateTime, default=func.now())


class SettingsEntry(Base):
    """Key-value storage for per-owner display settings"""
    __tablename__ = "settings_entries"

    key = Column(String, primary_key=True)
    value = Column(JSON, nullable=False, default=dict)
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())
