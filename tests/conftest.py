import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ["EMAIL_DELIVERY"] = "console"

import threading
from datetime import timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from storepos.core.deps import get_db
from storepos.core.security import utcnow
from storepos.main import app
from storepos.models.auth_models import Base, User
from storepos.models.shop_models import PromoCode, Product
from storepos.services import email_service


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def SessionTesting(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


@pytest.fixture
def db(SessionTesting):
    session = SessionTesting()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def outbox(monkeypatch):
    """Latest OTP mailed to each address."""
    sent = {}

    def fake_send(to_email, otp):
        sent[to_email] = otp

    monkeypatch.setattr(email_service, "send_email_otp", fake_send)
    return sent


@pytest.fixture
def client(SessionTesting, outbox):
    def override_get_db():
        session = SessionTesting()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def login(client, outbox, email):
    r = client.post("/auth/generate-otp", json={"email": email})
    assert r.status_code in (200, 409), r.text
    if r.status_code == 409:
        client.post("/auth/resend-otp", json={"email": email})
    r = client.post("/auth/verify-otp", json={"email": email, "otp": outbox[email]})
    assert r.status_code == 200, r.text
    return r.json()


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def user_auth(client, outbox):
    data = login(client, outbox, "cashier@example.com")
    return bearer(data["accessToken"])


@pytest.fixture
def admin_auth(client, outbox, db):
    data = login(client, outbox, "admin@example.com")
    user = db.query(User).filter(User.email == "admin@example.com").one()
    user.role = "admin"
    db.commit()
    return bearer(data["accessToken"])


@pytest.fixture
def make_promo(db):
    def make(code="SAVE20", **kw):
        now = utcnow()
        fields = dict(
            code=code,
            discount_type="percentage",
            discount_value=20,
            start_date=now - timedelta(days=1),
            end_date=now + timedelta(days=30),
            is_active=True,
            usage_limit=None,
            used_count=0,
        )
        fields.update(kw)
        promo = PromoCode(**fields)
        db.add(promo)
        db.commit()
        db.refresh(promo)
        return promo
    return make


@pytest.fixture
def make_product(db):
    def make(name="Oak Plank", price=100.0, stock=10, **kw):
        p = Product(name=name, price=price, stock=stock, **kw)
        db.add(p)
        db.commit()
        db.refresh(p)
        return p
    return make


@pytest.fixture
def file_sessions(tmp_path):
    """Session factory on a database file, so threads get separate connections."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'store.db'}",
        connect_args={"check_same_thread": False, "timeout": 10},
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(bind=engine, autoflush=False, autocommit=False)
    engine.dispose()


def run_together(*targets):
    """Run each target on its own thread and wait for all of them."""
    threads = [threading.Thread(target=t) for t in targets]
    for t in threads:
        t.start()
    for t in threads:
        t.join(10)
