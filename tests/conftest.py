import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["TZ"] = "UTC"
os.environ["BCRYPT_ROUNDS"] = "4"

from datetime import date, datetime, time

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from clinicdesk import models as db_models
from clinicdesk.accounts import hash_password
from clinicdesk.auth import Principal, issue_token
from clinicdesk.clock import local_now
from clinicdesk.database import Base, get_async_session
from clinicdesk.main import app as clinic_app
from clinicdesk.models import Role
from clinicdesk.notifications import get_notifier

PASSWORD = "correct-horse"
PASSWORD_HASH = hash_password(PASSWORD)


class RecordingNotifier:
    def __init__(self):
        self.events = []

    async def publish(self, event, payload):
        self.events.append((event, payload))

    def names(self):
        return [event for event, _ in self.events]


class Factory:
    """Creates committed rows with sensible defaults."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.counter = 0

    def _next(self) -> int:
        self.counter += 1
        return self.counter

    async def _save(self, obj):
        self.session.add(obj)
        await self.session.commit()
        await self.session.refresh(obj)
        return obj

    async def doctor(self, **overrides):
        n = self._next()
        fields = dict(
            doctor_id=f"DR{n:05d}",
            name=f"Doctor {n}",
            clinic_name=f"Clinic {n}",
            mobile_number="9876543210",
            address="1 Main Street",
            email=f"doctor{n}@example.com",
            password_hash=PASSWORD_HASH,
            accepted_terms=True,
            date_of_birth=date(1980, 1, 1),
            gender="female",
            medical_licence_number="LIC",
            registration_authority="Council",
            date_of_registration="2010-01-01",
            medical_degree="MBBS",
            government_id="GOV",
            fees=100,
            check_in_time=time(9, 0),
            check_out_time=time(17, 0),
        )
        fields.update(overrides)
        return await self._save(db_models.Doctor(**fields))

    async def receptionist(self, doctor, **overrides):
        n = self._next()
        fields = dict(
            receptionist_id=f"RC{n:05d}",
            doctor_id=doctor.id,
            name=f"Receptionist {n}",
            mobile_number="9123456780",
            address="2 Side Street",
            email=f"receptionist{n}@example.com",
            password_hash=PASSWORD_HASH,
            age=30,
            date_of_joining=date(2023, 1, 1),
            gender="male",
            qualification="B.Com",
        )
        fields.update(overrides)
        return await self._save(db_models.Receptionist(**fields))

    async def patient(self, doctor, **overrides):
        n = self._next()
        fields = dict(
            patient_id=f"PT{n:05d}",
            doctor_id=doctor.id,
            name=f"Patient {n}",
            mobile_number=f"90000{n:05d}",
            address="3 Lane",
            date_of_birth=date(1990, 6, 15),
            blood_group="O+",
            gender="male",
        )
        fields.update(overrides)
        return await self._save(db_models.Patient(**fields))

    async def appointment(self, patient, **overrides):
        fields = dict(
            patient_id=patient.id,
            reason="Checkup",
            process="Consultation",
            date=datetime.combine(local_now().date(), time.min),
            fees=0,
        )
        fields.update(overrides)
        return await self._save(db_models.Appointment(**fields))

    async def attendance(self, receptionist, check_in_time, check_out_time=None):
        return await self._save(db_models.Attendance(
            receptionist_id=receptionist.id,
            date=check_in_time.date(),
            check_in_time=check_in_time,
            check_out_time=check_out_time,
        ))


def doctor_principal(doctor) -> Principal:
    return Principal(id=doctor.id, role=Role.DOCTOR, tenant_id=doctor.id)


def receptionist_principal(receptionist) -> Principal:
    return Principal(id=receptionist.id, role=Role.RECEPTIONIST, tenant_id=receptionist.doctor_id)


def auth_headers(principal: Principal) -> dict:
    return {"Authorization": f"Bearer {issue_token(principal)}"}


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'clinic.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def factory(session):
    return Factory(session)


@pytest_asyncio.fixture
async def client(session_factory, notifier):
    async def override_session():
        async with session_factory() as session:
            yield session

    clinic_app.dependency_overrides[get_async_session] = override_session
    clinic_app.dependency_overrides[get_notifier] = lambda: notifier
    transport = httpx.ASGITransport(app=clinic_app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    clinic_app.dependency_overrides.clear()
