import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from core.config import CLOCK_FACILITY_TYPE
from core.deps import get_current_user
from db.session import get_session
from main import app
from models.facility import Facility

# Two Meraki branches ~1.1 km apart plus a partner venue that never counts
THAO_DIEN = (10.8031, 106.7335)
PHU_MY_HUNG = (10.7293, 106.7187)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def facilities(session):
    rows = [
        Facility(
            id="thao-dien",
            name="Meraki Thao Dien",
            latitude=THAO_DIEN[0],
            longitude=THAO_DIEN[1],
            radius_meters=50.0,
            data={"type": CLOCK_FACILITY_TYPE},
        ),
        Facility(
            id="phu-my-hung",
            name="Meraki Phu My Hung",
            latitude=PHU_MY_HUNG[0],
            longitude=PHU_MY_HUNG[1],
            radius_meters=None,
            data={"type": CLOCK_FACILITY_TYPE},
        ),
        Facility(
            id="partner",
            name="Partner School",
            latitude=THAO_DIEN[0],
            longitude=THAO_DIEN[1] + 0.0001,
            radius_meters=500.0,
            data={"type": "Partner"},
        ),
        Facility(
            id="closed",
            name="Meraki Closed Branch",
            status="inactive",
            latitude=THAO_DIEN[0],
            longitude=THAO_DIEN[1],
            radius_meters=500.0,
            data={"type": CLOCK_FACILITY_TYPE},
        ),
    ]
    for row in rows:
        session.add(row)
    session.commit()
    return rows


@pytest.fixture
def login():
    """Call with a role and employee id to act as that user."""

    def _login(role: str = "admin", employee_id: str = "EMP-ADMIN"):
        user = {
            "uid": f"uid-{employee_id}",
            "email": f"{employee_id.lower()}@meraki.test",
            "employee_id": employee_id,
            "role": role,
        }
        app.dependency_overrides[get_current_user] = lambda: user
        return user

    return _login


@pytest.fixture
def client(engine, login):
    def override_session():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = override_session
    login()
    yield TestClient(app)
    app.dependency_overrides.clear()
