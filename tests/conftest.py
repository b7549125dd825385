import os
from collections.abc import AsyncGenerator
from datetime import datetime, timedelta
from pathlib import Path

# Settings are read at import time
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("CHANGEFEED_BACKEND", "local")

import pytest
import pytest_asyncio
from dotenv import load_dotenv
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool

# Load environment variables from .env file
load_dotenv()

from app.core.changefeed import LocalChangeFeed
from app.core.gateway import DataGateway
from app.core.security import create_access_token
from app.database import create_engine_for
from app.dependencies import get_changefeed, get_gateway
from app.main import app
from app.models import metadata
from app.schemas.auth import AuthContext


def sqlite_url(path: Path) -> str:
    """Async SQLite URL for a database file."""
    return f"sqlite+aiosqlite:///{path}"


@pytest_asyncio.fixture
async def test_engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine, None]:
    """Create a throwaway SQLite database with the record tables."""
    # NullPool keeps connections from outliving the test's event loop
    engine = create_engine_for(sqlite_url(tmp_path / "test.db"), poolclass=NullPool)

    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test database."""
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def changefeed() -> AsyncGenerator[LocalChangeFeed, None]:
    """In-process change feed, closed after the test."""
    feed = LocalChangeFeed()
    yield feed
    await feed.close()


@pytest.fixture
def gateway(
    session_factory: async_sessionmaker[AsyncSession],
    changefeed: LocalChangeFeed,
) -> DataGateway:
    """Data gateway over the test database."""
    return DataGateway(session_factory, changefeed)


@pytest_asyncio.fixture
async def client(gateway: DataGateway) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client."""
    app.dependency_overrides[get_gateway] = lambda: gateway
    app.dependency_overrides[get_changefeed] = lambda: gateway.changefeed

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def admin() -> AuthContext:
    """Session of a signed-in administrator."""
    return AuthContext(
        user_id="admin-1",
        email="jane.admin@clinic.org",
        full_name="Jane Admin",
        phone="+1 555 0100",
    )


@pytest.fixture
def access_token(admin: AuthContext) -> str:
    """Access token for the test administrator."""
    token_data = {
        "sub": admin.user_id,
        "email": admin.email,
        "name": admin.full_name,
        "phone": admin.phone,
    }
    return create_access_token(data=token_data, expires_delta=timedelta(minutes=30))


@pytest.fixture
def auth_headers(access_token: str) -> dict:
    """Create authentication headers for testing protected endpoints."""
    return {"Authorization": f"Bearer {access_token}"}


@pytest.fixture
def sample_patient_data() -> dict:
    """Sample patient data for testing."""
    return {
        "first_name": "Ada",
        "last_name": "Lovelace",
        "email_address": "ada@clinic.org",
        "phone_number": "+44 20 7946 0000",
        "date_of_birth": "1985-12-10",
        "medical_record_number": "MRN-001",
        "home_address": "12 St James's Square, London",
    }


@pytest.fixture
def sample_appointment_data() -> dict:
    """Sample appointment data without a patient."""
    return {
        "appointment_date": (datetime.now() + timedelta(days=1)).replace(microsecond=0).isoformat(),
        "appointment_type": "Checkup",
        "notes": "First visit",
    }


@pytest_asyncio.fixture
async def test_patient(gateway: DataGateway) -> dict:
    """Create a test patient in the database."""
    return await gateway.insert(
        "patients_records",
        {
            "first_name": "Grace",
            "last_name": "Hopper",
            "email_address": "grace@clinic.org",
            "medical_record_number": "MRN-100",
            "status": "Pending",
        },
    )
