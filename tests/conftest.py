import os

os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ.setdefault("SESSION_SECRET", "test-secret")

import pytest
from fastapi.testclient import TestClient

import database
import models  # noqa: F401
from schemas.ledger import Actor
from services.ledger_service import LedgerService
from utils.security import create_access_token


@pytest.fixture(autouse=True)
def tables():
    database.Base.metadata.create_all(bind=database.engine)
    yield
    database.Base.metadata.drop_all(bind=database.engine)


@pytest.fixture
def db():
    session = database.SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def actor():
    return Actor(team_id="team-1", user_id="user-1", display_name="Alice")


@pytest.fixture
def service(db, actor):
    return LedgerService(db, actor)


@pytest.fixture
def customer(service):
    return service.add_customer("Acme Traders", "03001234567")


@pytest.fixture
def client():
    from main import app
    with TestClient(app) as test_client:
        yield test_client


def make_headers(user_id="user-1", team_id="team-1", name="Alice"):
    token = create_access_token({"sub": user_id, "team_id": team_id, "name": name})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers():
    return make_headers()
