"""
Test fixtures for the storefront HTTP API
"""
import pytest
from fastapi.testclient import TestClient

from storefront.api.main import app
from storefront.api.session import hash_password
from storefront.core.config import get_settings
from storefront.core.database import get_db
from storefront.core.database.models import User

PASSWORD = "correct horse battery staple"


@pytest.fixture(scope="function")
def client(test_db):
    """Create test client with database override."""
    def override_get_db():
        try:
            yield test_db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    test_client = TestClient(app)
    yield test_client
    app.dependency_overrides.clear()


def _make_user(test_db, email, username, role):
    user = User(
        email=email,
        username=username,
        role=role,
        password_hash=hash_password(PASSWORD),
        is_active=True,
    )
    test_db.add(user)
    test_db.commit()
    test_db.refresh(user)
    return user


@pytest.fixture
def buyer(test_db):
    """Create buyer user for testing."""
    return _make_user(test_db, "buyer@test.com", "buyer", "buyer")


@pytest.fixture
def seller(test_db):
    """Create seller user for testing."""
    return _make_user(test_db, "seller@test.com", "seller1", "seller")


@pytest.fixture
def admin(test_db):
    """Create admin user for testing."""
    return _make_user(test_db, "admin@test.com", "admin", "admin")


@pytest.fixture
def login_as(client):
    """Log a user in through the API; returns (token, signing_key)."""
    def _login(user):
        response = client.post("/api/login", json={"email": user.email, "password": PASSWORD})
        assert response.status_code == 200, response.text
        data = response.json()
        return data["token"], data["signingKey"]
    return _login


@pytest.fixture
def sign_responses():
    """Enable X-Response-Signature for one test."""
    settings = get_settings()
    previous = settings.sign_responses
    settings.sign_responses = True
    yield settings
    settings.sign_responses = previous


@pytest.fixture
def password():
    return PASSWORD
