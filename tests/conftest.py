import os

# Point the app at a throwaway database before anything imports the config
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["GOOGLE_API_KEY"] = ""

from datetime import date

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import aircontrol.models  # noqa: F401
from aircontrol.database import Base, get_db
from aircontrol.schemas import Equipment, MaintenancePeriod, PeriodStatus, ServiceContract, Subdivision
from aircontrol.services.suggestion_oracle import SuggestionOracle, get_oracle
from main import app

TODAY = date(2025, 3, 1)


class FakeOracle(SuggestionOracle):
    """Returns canned text and remembers the prompts it was given"""

    def __init__(self, response: str = "[]"):
        self.response = response
        self.prompts = []

    async def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        return self.response


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db(engine):
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def oracle():
    return FakeOracle()


@pytest.fixture
def client(db, oracle):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_oracle] = lambda: oracle
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def make_period(
    name="ТО 1",
    start=None,
    end=None,
    status=PeriodStatus.SCHEDULED,
    engineers=None,
    subdivision=Subdivision.CLIMATE,
    equipment=None,
    period_id=None,
) -> MaintenancePeriod:
    values = dict(
        name=name,
        start_date=start,
        end_date=end,
        status=status,
        assigned_engineer_ids=engineers or [],
        subdivision=subdivision,
        equipment_ids=equipment or [],
    )
    if period_id:
        values["id"] = period_id
    return MaintenancePeriod(**values)


def make_contract(periods=None, end=date(2025, 12, 31), equipment=None, **extra) -> ServiceContract:
    values = dict(
        contract_number=extra.pop("contract_number", "AC-001"),
        object_name=extra.pop("object_name", "Офіс Поділ"),
        address=extra.pop("address", "вул. Межигірська, 1"),
        contract_end_date=end,
        maintenance_periods=periods if periods is not None else [make_period()],
        equipment=equipment or [],
    )
    values.update(extra)
    return ServiceContract(**values)


def make_equipment(name="Кондиціонер", model="Daikin FTXM25", equipment_id=None) -> Equipment:
    values = dict(name=name, model=model)
    if equipment_id:
        values["id"] = equipment_id
    return Equipment(**values)
