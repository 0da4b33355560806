"""Service test fixtures — async DB, seeded rows, FastAPI test client, fake backend.

Invariants:
    - Every test gets a fresh in-memory SQLite database
    - get_db dependency overridden to use a test DB session
    - Seed helpers return plain ids so assertions never touch expired ORM rows

Design Decisions:
    - SQLite in-memory: fast, no external dependency; the CHECK constraints and
      conditional UPDATEs behave the same as on PostgreSQL
    - FakeBackend for orchestration paths the SQL store cannot produce
      (200-level error envelopes, half-applied writes)
"""

from datetime import date

import pytest
from sqlalchemy.pool import StaticPool
from sqlalchemy.ext.asyncio import (
    AsyncSession, create_async_engine, async_sessionmaker,
)
from httpx import ASGITransport, AsyncClient

from assignflow.db.base import Base
from assignflow.infrastructure.database import get_db
from assignflow.infrastructure.sql_backend import SqlAssignmentBackend
from assignflow.main import app
from assignflow.models import Instructor, KnowledgeArea, RequestAsignation, RequestMessage
from tests.services.fake_backend import FakeBackend

COORDINATOR_HEADERS = {"X-Actor-Role": "COORDINADOR", "X-Actor-Id": "1"}
INSTRUCTOR_HEADERS = {"X-Actor-Role": "INSTRUCTOR", "X-Actor-Id": "7"}


@pytest.fixture
async def test_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:", echo=False, poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def test_session_factory(test_engine):
    return async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False,
    )


@pytest.fixture
async def test_db(test_session_factory):
    async with test_session_factory() as session:
        yield session


@pytest.fixture
async def backend(test_db):
    return SqlAssignmentBackend(test_db)


@pytest.fixture
async def client(test_session_factory):
    """FastAPI test client with DB dependency overridden."""
    async def override_get_db():
        async with test_session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test",
    ) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def fake_backend():
    return FakeBackend()


# ─── Seed helpers ───────────────────────────────────────────────

async def make_area(db, name: str = "Sistemas") -> int:
    area = KnowledgeArea(name=name)
    db.add(area)
    await db.commit()
    return area.id


async def make_instructor(
    db,
    first_name: str = "Carlos",
    first_last_name: str = "Gómez",
    number_identification: str = "1020304050",
    knowledge_area_id: int | None = None,
    assigned_learners: int = 0,
    max_assigned_learners: int = 80,
) -> int:
    instructor = Instructor(
        first_name=first_name,
        first_last_name=first_last_name,
        number_identification=number_identification,
        email=f"{first_name.lower()}@example.edu.co",
        knowledge_area_id=knowledge_area_id,
        assigned_learners=assigned_learners,
        max_assigned_learners=max_assigned_learners,
    )
    db.add(instructor)
    await db.commit()
    return instructor.id


async def make_request(
    db,
    modality: str = "Pasantía",
    request_state: str = "SIN_ASIGNAR",
    instructor_id: int | None = None,
    version: int = 1,
) -> int:
    request = RequestAsignation(
        apprentice_id=501,
        enterprise_id=12,
        modality=modality,
        request_state=request_state,
        instructor_id=instructor_id,
        version=version,
        request_date=date(2026, 3, 1),
        name_apprentice="Laura Pérez",
        number_identification="1098765432",
        numero_ficha="2671234",
        program="Análisis y Desarrollo de Software",
    )
    db.add(request)
    await db.commit()
    return request.id


async def make_message(
    db, request_id: int, content: str, type_message: str, whose_message: str,
) -> None:
    db.add(RequestMessage(
        request_id=request_id, content=content,
        type_message=type_message, whose_message=whose_message,
    ))
    await db.commit()
