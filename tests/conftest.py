"""Pytest configuration and fixtures."""

import json
import os

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from recipebox.api.dependencies import get_html_fetcher, get_image_storage, get_provider
from recipebox.config import Settings, get_settings
from recipebox.database import Base, get_db
from recipebox.errors import ProviderError
from recipebox.main import app
from recipebox.models.user import User
from recipebox.services.html_fetcher import SecureHtmlFetcher
from recipebox.services.image_storage import LocalImageStorage


class AuthHeaders(dict):
    """Dict subclass that also stores user_id."""

    def __init__(self, *args, user_id: int | None = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.user_id = user_id


class FakeProvider:
    """Generation provider that replays scripted responses in order.

    A scripted response may be a string, an exception to raise, or a
    callable receiving the prompt.
    """

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls: list[dict] = []

    def queue(self, *responses) -> None:
        self.responses.extend(responses)

    async def generate(
        self, prompt, images=None, json_schema=None, temperature=0.3, max_tokens=4096
    ) -> str:
        self.calls.append(
            {"prompt": prompt, "images": images, "json_schema": json_schema, "temperature": temperature}
        )
        if not self.responses:
            raise ProviderError("No scripted response left")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response(prompt)
        return response


def recipe_json(**overrides) -> str:
    """A complete, valid model response."""
    data = {
        "title": "Pannenkoeken",
        "description": "Dunne pannenkoeken",
        "language_detected": "nl",
        "servings": 4,
        "times": {"prep_minutes": 10, "cook_minutes": 20, "total_minutes": 30},
        "ingredients": [
            {"original_line": "250 g bloem", "name": "bloem", "quantity": 250, "unit": "g", "note": None},
            {"original_line": "2 eieren", "name": "eieren", "quantity": 2, "unit": None, "note": None},
            {"original_line": "500 ml melk", "name": "melk", "quantity": 500, "unit": "ml", "note": None},
        ],
        "instructions": [
            {"step": 1, "text": "Meng de bloem met de eieren."},
            {"step": 2, "text": "Voeg de melk toe en bak de pannenkoeken."},
        ],
        "confidence": {"overall": 90, "fields": {"title": 95}},
        "warnings": [],
    }
    data.update(overrides)
    return json.dumps(data)


# Use test database - PostgreSQL in Docker, SQLite locally
if os.getenv("DATABASE_URL"):
    SQLALCHEMY_DATABASE_URL = os.getenv("DATABASE_URL").replace("/recipebox", "/recipebox_test")
else:
    SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"

connect_args = {"check_same_thread": False} if "sqlite" in SQLALCHEMY_DATABASE_URL else {}
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args=connect_args)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="session", autouse=True)
def setup_test_database():
    """Create test database schema once at the start of the test session."""
    if "postgresql" in SQLALCHEMY_DATABASE_URL:
        from sqlalchemy_utils import create_database, database_exists

        if not database_exists(SQLALCHEMY_DATABASE_URL):
            create_database(SQLALCHEMY_DATABASE_URL)

    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture(scope="function", autouse=True)
def db():
    """Create a fresh database session for each test with cleanup."""
    session = TestingSessionLocal()

    yield session

    session.rollback()
    for table in reversed(Base.metadata.sorted_tables):
        session.execute(table.delete())
    session.commit()
    session.close()


@pytest.fixture
def settings(tmp_path):
    """Settings with local image storage under a temporary directory."""
    return Settings(image_storage_dir=str(tmp_path / "images"))


@pytest.fixture
def fake_provider():
    return FakeProvider()


@pytest.fixture
def page_routes():
    """URL -> httpx.Response map served by the mock transport."""
    return {}


@pytest.fixture
def fetcher(settings, page_routes):
    """Fetcher wired to a mock transport and a resolver returning a public address."""

    def handler(request: httpx.Request) -> httpx.Response:
        response = page_routes.get(str(request.url))
        if response is None:
            return httpx.Response(404)
        return response

    async def resolver(hostname: str) -> list[str]:
        return ["93.184.216.34"]

    return SecureHtmlFetcher(settings, transport=httpx.MockTransport(handler), resolver=resolver)


@pytest.fixture
def user(db):
    """A user created directly in the database."""
    owner = User(email="owner@example.com", name="Owner", password_hash="fake")
    db.add(owner)
    db.commit()
    db.refresh(owner)
    return owner


@pytest.fixture
def other_user(db):
    intruder = User(email="other@example.com", name="Other", password_hash="fake")
    db.add(intruder)
    db.commit()
    db.refresh(intruder)
    return intruder


@pytest.fixture(scope="function")
def client(db, fake_provider, fetcher, settings):
    """Create a test client with database, provider and fetcher overrides."""

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_provider] = lambda: fake_provider
    app.dependency_overrides[get_html_fetcher] = lambda: fetcher
    app.dependency_overrides[get_image_storage] = lambda: LocalImageStorage(settings)
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(client):
    """Create a user and return auth headers with user info."""
    response = client.post(
        "/api/v1/auth/register",
        json={"email": "test@example.com", "password": "testpass123", "name": "Test User"},
    )
    assert response.status_code == 201
    data = response.json()
    token = data["access_token"]
    user_id = data["user"]["id"]

    return AuthHeaders({"Authorization": f"Bearer {token}"}, user_id=user_id)


@pytest.fixture
def make_recipe_json():
    """Factory for complete model responses."""
    return recipe_json
