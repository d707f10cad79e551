from __future__ import annotations

import pytest
import sqlalchemy as sa
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

import app.models  # noqa: F401
from app.api.deps import get_paypal_transport
from app.core.config import settings
from app.db.base import Base
from app.db.session import get_db
from app.main import app
from tests.testkit import LedgerFactory


@pytest.fixture(autouse=True)
def payment_settings(monkeypatch):
    monkeypatch.setattr(settings, "PAYMENTS_REQUIRE_WEBHOOK_SIGNATURE", False)
    monkeypatch.setattr(settings, "PAYPAL_WEBHOOK_ID", None)
    monkeypatch.setattr(settings, "PAYPAL_CLIENT_ID", "client-id")
    monkeypatch.setattr(settings, "PAYPAL_CLIENT_SECRET", "client-secret")
    monkeypatch.setattr(settings, "PAYPAL_API_BASE_URL", "https://api.paypal.test")
    monkeypatch.setattr(settings, "STRIPE_WEBHOOK_SECRET", None)
    monkeypatch.setattr(settings, "JWT_SECRET", "test-secret")
    return settings


@pytest.fixture()
def session_factory(tmp_path):
    engine = sa.create_engine(
        f"sqlite:///{tmp_path / 'payments.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    try:
        yield sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    finally:
        engine.dispose()


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def factory(db) -> LedgerFactory:
    return LedgerFactory(db)


@pytest.fixture()
def paypal_transport():
    """Swap in a MockTransport by assigning ``paypal_transport.transport``."""

    class _Holder:
        transport = None

    return _Holder()


@pytest.fixture()
def api(session_factory, paypal_transport):
    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_paypal_transport] = lambda: paypal_transport.transport
    try:
        with TestClient(app, base_url="http://localhost") as client:
            yield client
    finally:
        app.dependency_overrides.clear()
