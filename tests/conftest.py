from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from storefront import models
from storefront.config import Settings
from storefront.main import create_app


@pytest.fixture
def settings():
    return Settings(
        database_url="sqlite+pysqlite:///:memory:",
        jwt_secret="test-secret",
        jwt_expiration=3600,
    )


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app):
    # entering the client runs startup, which creates the tables
    with TestClient(app) as c:
        yield c


@pytest.fixture
def db(app, client):
    """Session factory bound to the same in-memory database as the app."""
    return app.state.sessionmaker


@pytest.fixture
def add_product(db):
    def _add(name="Widget", price="10.00", quantity=5):
        with db() as s:
            p = models.Product(
                name=name,
                description=f"{name} description",
                image=f"{name.lower()}.png",
                price=Decimal(price),
                quantity=quantity,
            )
            s.add(p)
            s.commit()
            return p.id
    return _add


def register_and_login(client, email="jane@example.com", password="secret123"):
    r = client.post(
        "/register",
        json={"firstName": "Jane", "lastName": "Doe", "email": email, "password": password},
    )
    assert r.status_code == 201, r.text
    r = client.post("/login", json={"email": email, "password": password})
    assert r.status_code == 200, r.text
    return r.json()["data"]["token"]


@pytest.fixture
def auth_headers(client):
    return {"Authorization": f"Bearer {register_and_login(client)}"}
