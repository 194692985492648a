import os

# Must be set before the package reads its configuration
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret"
os.environ["OTP_EXPOSE_CODE"] = "true"
os.environ["SMS_PROVIDER"] = "mock"

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, Session, create_engine, select

from wardrobe_api.auth import create_token
from wardrobe_api.database import get_session
from wardrobe_api.main import app
from wardrobe_api.models.otp import OtpRecord
from wardrobe_api.services.otp import OtpService, get_otp_service
from wardrobe_api.services.sms import DeliveryStatus, get_sms_sender


class FakeClock:
    def __init__(self, now: datetime = datetime(2026, 10, 17, 12, 0, 0, tzinfo=timezone.utc)):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class RecordingSender:
    def __init__(self, status: DeliveryStatus = DeliveryStatus.ok()):
        self.status = status
        self.sent = []

    def send_otp(self, phone_number, code):
        self.sent.append((phone_number, code))
        return self.status


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
def clock():
    return FakeClock()


@pytest.fixture
def sender():
    return RecordingSender()


@pytest.fixture
def service(clock):
    return OtpService(code_length=4, expiry_minutes=5, max_attempts=3, clock=clock)


@pytest.fixture
def rows(engine):
    """Fresh read of every row for a correlation key, oldest first."""
    def _rows(key):
        with Session(engine) as s:
            return s.exec(
                select(OtpRecord)
                .where(OtpRecord.phone_number == key)
                .order_by(OtpRecord.id)
            ).all()
    return _rows


@pytest.fixture
def client(engine, service, sender):
    def _get_session():
        with Session(engine) as s:
            yield s

    app.dependency_overrides[get_session] = _get_session
    app.dependency_overrides[get_otp_service] = lambda: service
    app.dependency_overrides[get_sms_sender] = lambda: sender
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {create_token({'role': 'anon'})}"}
