import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("SECRET_KEY", "pocketpro-test-secret")

import pytest
from fastapi.testclient import TestClient

from database import Base, SessionLocal, engine
from main import app
from models import Category, User
from seed import seed_categories


@pytest.fixture(autouse=True)
def fresh_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        seed_categories(db)
    finally:
        db.close()
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture
def categories(db):
    return {c.name: c for c in db.query(Category).all()}


@pytest.fixture
def user(db):
    u = User(name="Alice", email="alice@pocketpro.io", hashed_password="x")
    db.add(u)
    db.commit()
    db.refresh(u)
    return u


def _register(client, name, email, password="Secret123"):
    resp = client.post(
        "/api/auth/register",
        json={
            "name": name,
            "email": email,
            "password": password,
            "confirmPassword": password,
        },
    )
    assert resp.status_code == 201, resp.text
    resp = client.post("/api/auth/login", json={"email": email, "password": password})
    assert resp.status_code == 200, resp.text
    return {"Authorization": f"Bearer {resp.json()['access_token']}"}


@pytest.fixture
def auth_headers(client):
    return _register(client, "Alice", "alice@pocketpro.io")


@pytest.fixture
def other_headers(client):
    return _register(client, "Bob", "bob@pocketpro.io")
