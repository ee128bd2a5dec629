"""
Shared fixtures for Campaign Hub tests

The application reads its settings at import time, so the test database and
tracing switch are set in the environment before anything from
``campaign_hub`` is imported.
"""
import os
import sys
import tempfile
from pathlib import Path
# Add parent folder (project root) to sys.path so local modules can be imported
PROJECT_ROOT = Path(__file__).resolve().parents[1]
proj_root_str = str(PROJECT_ROOT)
if proj_root_str not in sys.path:
    sys.path.insert(0, proj_root_str)

TEST_DB_DIR = tempfile.mkdtemp(prefix="campaign-hub-tests-")
os.environ.setdefault("DATABASE_URL", f"sqlite:///{os.path.join(TEST_DB_DIR, 'test.db')}")
os.environ["TRACING_ENABLED"] = "false"
os.environ.setdefault("FRONTEND_URL", "https://campaigns.example.com")

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.orm import sessionmaker

from campaign_hub.core.auth import CallerIdentity, create_access_token
from campaign_hub.core.circuit_breaker import db_circuit_breaker
from campaign_hub.core.config import get_settings
from campaign_hub.database.database import build_engine, get_db
from campaign_hub.models.campaign import Base

TEST_DATABASE_URL = get_settings().database_url

test_engine = build_engine(TEST_DATABASE_URL)

TestSessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    expire_on_commit=False,
    bind=test_engine,
)


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture(autouse=True)
def reset_circuit_breaker():
    """Every test starts with a closed breaker"""
    db_circuit_breaker.reset()
    yield
    db_circuit_breaker.reset()


@pytest.fixture(scope="function")
def test_db():
    """Create tables for one test and drop them afterwards"""
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    Base.metadata.drop_all(bind=test_engine)


@pytest.fixture(scope="function")
def session_factory(test_db):
    return TestSessionLocal


@pytest.fixture(scope="function")
def db_session(test_db):
    """Database session for service-level tests"""
    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest_asyncio.fixture(scope="function")
async def client(test_db):
    """Test client with a fresh session per request, as in production"""
    from campaign_hub.main import app

    def override_get_db():
        session = TestSessionLocal()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def owner():
    return CallerIdentity(id="user-owner", email="owner@example.com", name="Olivia Owner")


@pytest.fixture
def stranger():
    return CallerIdentity(id="user-stranger", email="stranger@example.com", name="Sam Stranger")


def auth_headers(identity: CallerIdentity) -> dict:
    token = create_access_token({"sub": identity.id, "email": identity.email, "name": identity.name})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def owner_headers(owner):
    return auth_headers(owner)


@pytest.fixture
def stranger_headers(stranger):
    return auth_headers(stranger)


@pytest.fixture
def fundraising_payload():
    return {
        "type": "fundraising",
        "title": "Save the Park",
        "description": "Help us restore the neighbourhood park",
        "target_amount": 1000,
        "main_image": "https://images.example.com/park.jpg",
        "additional_images": ["https://images.example.com/park-2.jpg"],
        "payment_details": {
            "mobile_banking": "01700000000",
            "bank_account": {
                "account_number": "123456789",
                "bank_name": "City Bank",
                "account_holder": "Park Friends",
            },
        },
    }


@pytest.fixture
def blood_donation_payload():
    return {
        "type": "blood-donation",
        "title": "O+ donors needed",
        "description": "Urgent surgery scheduled for Friday",
        "hospital_info": {"name": "General Hospital", "address": "12 Main St"},
        "blood_type": "O+",
        "target_blood_units": 4,
    }


@pytest.fixture
def make_headers():
    """Build bearer headers for an arbitrary identity"""
    return auth_headers
