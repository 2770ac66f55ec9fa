"""
PetMatch Backend - Test Configuration (conftest.py)
===================================================

What:  Shared pytest fixtures for the entire test suite.
How:   Each test gets a fresh in-memory SQLite database (aiosqlite) with the
       full schema created from Base.metadata, so services run against real
       SQL including the optimistic-lock version checks.

Fixture Hierarchy:
    Function-scoped (created fresh for each test):
    ├── db_engine:   in-memory engine, schema created
    ├── db_session:  AsyncSession bound to db_engine
    ├── shelter / pet / activity: committed rows to act on
    ├── applicant / other_user / shelter_staff / admin: Actors
    ├── auth_headers: bearer header factory for route tests
    ├── application_payload: valid personal/housing/reference documents
    └── test_client: HTTPX AsyncClient with get_db_session overridden

Setup rows are committed, so a service-side rollback (error paths) only
discards the operation under test.
"""

import os

# Override settings for testing BEFORE any app imports
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["JWT_SECRET_KEY"] = "test-secret-not-real"
os.environ["PET_PENDING_ON_SUBMIT"] = "true"
os.environ["LOG_LEVEL"] = "WARNING"

from datetime import datetime, timedelta, timezone  # noqa: E402
from typing import Any, Dict  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.database import Base, get_db_session  # noqa: E402
from app.models.activity import Activity  # noqa: E402
from app.models.adoption import Adoption  # noqa: E402, F401
from app.models.pet import Pet  # noqa: E402
from app.models.shelter import Shelter  # noqa: E402
from app.security import create_access_token  # noqa: E402
from app.services.permissions import ROLE_ADMIN, ROLE_SHELTER, ROLE_USER, Actor  # noqa: E402


# ══════════════════════════════════════════════════════════════════════════
# Database
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def db_engine():
    # StaticPool: every session shares the single in-memory connection
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine):
    factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session


# ══════════════════════════════════════════════════════════════════════════
# Rows
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def shelter(db_session):
    shelter = Shelter(name="Happy Tails Rescue")
    db_session.add(shelter)
    await db_session.commit()
    return shelter


@pytest_asyncio.fixture
async def pet(db_session, shelter):
    pet = Pet(name="Biscuit", species="dog", shelter_id=shelter.id, adoption_fee=200.0)
    db_session.add(pet)
    await db_session.commit()
    return pet


@pytest_asyncio.fixture
async def activity(db_session, shelter):
    now = datetime.now(timezone.utc)
    activity = Activity(
        title="Saturday Adoption Fair",
        shelter_id=shelter.id,
        start_at=now + timedelta(days=2),
        end_at=now + timedelta(days=2, hours=3),
        capacity_max=2,
    )
    db_session.add(activity)
    await db_session.commit()
    return activity


# ══════════════════════════════════════════════════════════════════════════
# Actors
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def applicant():
    return Actor(id="user-1", role=ROLE_USER)


@pytest.fixture
def other_user():
    return Actor(id="user-2", role=ROLE_USER)


@pytest.fixture
def shelter_staff():
    return Actor(id="staff-1", role=ROLE_SHELTER)


@pytest.fixture
def admin():
    return Actor(id="admin-1", role=ROLE_ADMIN)


@pytest.fixture
def auth_headers():
    """
    Builds an Authorization header carrying a freshly signed token.

    Usage:
        response = await test_client.get(url, headers=auth_headers(applicant))
    """
    def _headers(actor: Actor) -> Dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(actor.id, actor.role)}"}
    return _headers


# ══════════════════════════════════════════════════════════════════════════
# Payloads
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def application_payload() -> Dict[str, Any]:
    """Applicant documents that pass schema validation."""
    return {
        "personal_info": {
            "motivation": "We have a big garden and lots of time for walks.",
            "experience_level": "experienced",
            "work_schedule": "remote",
            "activity_level": "high",
            "hours_away_daily": 2,
            "previous_pets": [{"species": "dog", "breed": "Collie", "years_owned": 12}],
        },
        "housing_info": {
            "type": "house",
            "ownership": "own",
            "has_yard": True,
            "yard_fenced": True,
            "household_size": 3,
        },
        "references": [
            {"type": "veterinary", "name": "Dr. Lane", "phone": "555-0100", "email": "lane@vetclinic.com"},
        ],
    }


# ══════════════════════════════════════════════════════════════════════════
# HTTP Client
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def test_client(db_session):
    """
    HTTPX AsyncClient talking to the FastAPI app through ASGITransport.

    Every request shares the test's db_session, so rows created by fixtures
    are visible to the routes and route writes are visible to assertions.
    """
    from app.main import app

    async def override_db_session():
        yield db_session

    app.dependency_overrides[get_db_session] = override_db_session
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()
