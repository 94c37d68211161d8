import asyncio
import os
from datetime import datetime

os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("ENV", "test")

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from jose import jwt  # noqa: E402
from sqlalchemy.exc import OperationalError  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import SQLModel  # noqa: E402

from carebook.core.config import settings  # noqa: E402
from carebook.models import Appointment, Provider, ProviderUnavailableDate  # noqa: E402

# Monday 2 March 2026, 11:15
NOW = datetime(2026, 3, 2, 11, 15)
TOMORROW = "2026-03-03"


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_maker(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def session(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
def add_appointment(session):
    async def _add(
        provider_id: str = "prov-1",
        date: str = TOMORROW,
        time: str = "14:00",
        patient_id: str = "patient-1",
        status: str = "pending",
        created_at: int = 1_700_000_000,
    ) -> Appointment:
        appointment = Appointment(
            provider_id=provider_id,
            patient_id=patient_id,
            date=date,
            time=time,
            status=status,
            created_at=created_at,
            last_updated=created_at,
        )
        session.add(appointment)
        await session.commit()
        return appointment

    return _add


@pytest.fixture
def add_unavailability(session):
    async def _add(
        provider_id: str = "prov-1",
        date: str = TOMORROW,
        full_day: bool = False,
        times: list[str] | None = None,
    ) -> ProviderUnavailableDate:
        row = ProviderUnavailableDate(
            provider_id=provider_id, date=date, full_day=full_day, times=times or []
        )
        session.add(row)
        await session.commit()
        return row

    return _add


@pytest.fixture
def add_provider(session):
    async def _add(provider_id: str = "prov-1", **fields) -> Provider:
        provider = Provider(id=provider_id, **fields)
        session.add(provider)
        await session.commit()
        return provider

    return _add


class BrokenSession:
    """Stands in for an AsyncSession whose store is unreachable."""

    def __init__(self) -> None:
        self.rollbacks = 0

    async def execute(self, *args, **kwargs):
        raise OperationalError("SELECT 1", {}, Exception("store unreachable"))

    def add(self, instance) -> None:
        pass

    async def commit(self) -> None:
        raise OperationalError("COMMIT", {}, Exception("store unreachable"))

    async def rollback(self) -> None:
        self.rollbacks += 1


class HangingSession(BrokenSession):
    """Stands in for an AsyncSession whose store never answers."""

    async def execute(self, *args, **kwargs):
        await asyncio.sleep(5)


@pytest.fixture
def short_store_timeout(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "store_timeout_seconds", 0.05)


def make_access_token(patient_id: str, token_type: str = "access") -> str:
    return jwt.encode(
        {"sub": patient_id, "type": token_type},
        settings.secret_key,
        algorithm=settings.algorithm,
    )
