from __future__ import annotations

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("EMAIL_PROVIDER", "disabled")

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from assembler import InvoiceAssembler
from config import settings
from database import Account, Client, Contact, Product, init_db
from errors import NotificationError


class RecordingNotifier:
    def __init__(self):
        self.sent = []
        self.fail = False

    def send_invoice(self, invoice):
        if self.fail:
            raise NotificationError("relay down")
        self.sent.append(("invoice", invoice.public_id))
        return 1

    def send_payment_confirmation(self, payment):
        if self.fail:
            raise NotificationError("relay down")
        self.sent.append(("payment", payment.public_id))
        return 1


@pytest.fixture()
def db():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture()
def account(db):
    account = Account(
        account_key=settings.DEFAULT_ACCOUNT_KEY,
        name="Test account",
        invoice_design_id=3,
        timezone="UTC",
        currency_code="USD",
    )
    db.add(account)
    db.flush()
    db.add(Product(account_id=account.id, product_key="WIDGET", cost=Decimal("9.99"), notes="Blue widget"))
    db.commit()
    return account


@pytest.fixture()
def existing_client(db, account):
    client = Client(account_id=account.id, public_id=1, name="Globex", currency_code="EUR")
    client.contacts.append(Contact(account_id=account.id, email="ap@globex.io", first_name="Hank", is_primary=True))
    db.add(client)
    db.commit()
    return client


@pytest.fixture()
def notifier():
    return RecordingNotifier()


@pytest.fixture()
def assembler(db, account, notifier):
    return InvoiceAssembler.for_session(db, account, notifier)


@pytest.fixture()
def api(db, account, notifier):
    from database import get_db
    from main import app, get_notifier

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notifier] = lambda: notifier

    client_instance = TestClient(app)
    try:
        yield client_instance
    finally:
        client_instance.close()
        app.dependency_overrides.clear()
