import itertools

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session

import storage
from config import Settings
from identity import IdentityError
from main import create_app

ADMIN_EMAIL = "admin@libraryflow.com"


class FakeIdentity:
    """Accepts any non-empty id token and treats it as the user's id."""

    mode = "oidc"

    def resolve(self, id_token=None):
        if not id_token:
            raise IdentityError("Missing idToken")
        return {
            "sub": id_token,
            "email": f"{id_token}@libraryflow.com",
            "first_name": id_token.title(),
            "last_name": "Reader",
            "profile_image_url": None,
        }


class FakeGateway:
    def __init__(self):
        self.calls = []
        self._ids = itertools.count(1)

    def create_intent(self, amount, user_id):
        intent_id = f"pi_test_{next(self._ids)}"
        self.calls.append((amount, user_id))
        return {"id": intent_id, "client_secret": f"{intent_id}_secret"}


@pytest.fixture
def settings():
    return Settings(
        database_url="sqlite://",
        mock_data=False,
        session_secret="test-session-secret",
        admin_emails=[ADMIN_EMAIL],
    )


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def db(client, app):
    with Session(app.state.engine) as session:
        yield session


@pytest.fixture
def login(client, app):
    """Log a user in through the API and return their auth headers."""
    app.state.identity = FakeIdentity()

    def _login(name="reader"):
        response = client.post("/api/login", json={"idToken": name})
        assert response.status_code == 200, response.text
        return {"Authorization": f"Bearer {response.json()['token']}"}

    return _login


@pytest.fixture
def user_headers(login):
    return login("reader")


@pytest.fixture
def admin_headers(login):
    return login("admin")


@pytest.fixture
def gateway(app):
    fake = FakeGateway()
    app.state.gateway = fake
    return fake


@pytest.fixture
def make_book(db):
    isbns = itertools.count(9780000000001)

    def _make_book(**overrides):
        data = dict(
            title="Dune",
            author="Frank Herbert",
            isbn=str(next(isbns)),
            genre="Science Fiction",
            publication_year=1965,
            total_copies=2,
            available_copies=2,
        )
        data.update(overrides)
        return storage.create_book(db, data)

    return _make_book
