# conftest.py
import os

os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("APP_SECRET", "cuehall-test-secret-0123456789abcdef")
os.environ.setdefault("DB_URL", "sqlite+pysqlite:///:memory:")

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from cuehall.db import Base, get_db
from cuehall.main import app
from cuehall.models.core import PoolTable, Product, ProductCategory, TABLE_TIME_SKU

T0 = datetime(2026, 3, 14, 19, 0, tzinfo=timezone.utc)


def at(minutes: int = 0, seconds: int = 0) -> datetime:
    return T0 + timedelta(minutes=minutes, seconds=seconds)


@pytest.fixture()
def engine():
    """
    Isolated in-memory SQLite engine, one per test.
    StaticPool keeps the single connection alive across TestClient threads.
    """
    eng = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture()
def db(session_factory):
    s = session_factory()
    try:
        yield s
    finally:
        s.close()


@pytest.fixture()
def seeded(db):
    """TABLE_TIME product, one 100/h table and a drink with 12% tax."""
    tt = Product(sku=TABLE_TIME_SKU, name="Table time", category=ProductCategory.TABLE_TIME,
                 price=Decimal("0"), tax_rate=Decimal("0"))
    table = PoolTable(name="Table 1", hourly_rate=Decimal("100.00"))
    beer = Product(sku="BEER", name="Beer", category=ProductCategory.DRINK,
                   price=Decimal("50.00"), tax_rate=Decimal("0.12"))
    db.add_all([tt, table, beer])
    db.commit()
    return {"table": table, "beer": beer, "table_time": tt}


@pytest.fixture()
def client(session_factory):
    def _get_db():
        s = session_factory()
        try:
            yield s
        finally:
            s.close()

    app.dependency_overrides[get_db] = _get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture()
def boot(client):
    r = client.post("/admin/dev-bootstrap")
    assert r.status_code == 200, f"/admin/dev-bootstrap failed: {r.text}"
    return r.json()


def _login(client, mobile, password):
    r = client.post("/auth/login", params={"mobile": mobile, "password": password})
    assert r.status_code == 200, f"/auth/login failed: {r.text}"
    return {"Authorization": f"Bearer {r.json()['access_token']}"}


@pytest.fixture()
def admin_headers(client, boot):
    return _login(client, boot["admin_mobile"], boot["admin_password"])


@pytest.fixture()
def cashier_headers(client, boot):
    return _login(client, boot["cashier_mobile"], boot["cashier_password"])
