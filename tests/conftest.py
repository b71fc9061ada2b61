import os

# point the app at an in-memory database before it is imported
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("APP_ENV", "test")

from typing import Generator
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from marketplace import crud
from marketplace.auth import Identity, create_id_token
from marketplace.db import Base
from marketplace.main import app, get_db
from marketplace.models import Role

@pytest.fixture(scope="function")
def db_session() -> Generator:
    # Use in-memory SQLite with a single connection
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)
    Base.metadata.create_all(bind=engine)

    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()

@pytest.fixture(scope="function")
def client(db_session):
    # Override dependency to use the same session
    def override_get_db():
        try:
            yield db_session
        finally:
            pass
    app.dependency_overrides[get_db] = override_get_db
    from fastapi.testclient import TestClient
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def auth_headers(subject: str, name: str = "Test User", email: str | None = None) -> dict:
    token = create_id_token(subject, email=email or f"{subject}@example.com", name=name)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def headers():
    return auth_headers


@pytest.fixture
def make_admin(db_session):
    def _make(subject: str = "admin-1") -> dict:
        crud.ensure_profile(db_session, Identity(subject, f"{subject}@example.com", "Ada Admin", None))
        crud.update_user_role(db_session, subject, Role.ADMIN)
        return auth_headers(subject, name="Ada Admin")
    return _make


SHOP = {
    "name": "Gogo's Sewing",
    "description": "Alterations and traditional designs",
    "category": "tailor",
    "imageUrl": "https://example.com/shop.jpg",
    "location": "Soweto Market",
}

PRODUCT = {
    "name": "Dress alteration",
    "description": "Fitting for wedding dresses",
    "price": "450.00",
    "imageUrl": "https://example.com/dress.jpg",
    "inStock": True,
}

TASK = {
    "title": "Deliver parcel",
    "description": "Pick up from X, drop at Y",
    "budget": 150,
    "location": "Soweto",
}


@pytest.fixture
def shop(client):
    """A shop owned by ``owner`` with one product."""
    owner = auth_headers("owner", name="Olive Owner")
    r = client.post("/api/shops", json=SHOP, headers=owner)
    assert r.status_code == 201
    created = r.json()
    r = client.post(f"/api/shops/{created['id']}/products", json=PRODUCT, headers=owner)
    assert r.status_code == 201
    created["product"] = r.json()
    return created
