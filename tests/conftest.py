"""
Shared fixtures: in-memory SQLite per test, a fake processor client and a
TestClient with the DB / processor dependencies overridden.
"""
import os

# Settings are read at import time
os.environ.setdefault("SESSION_SECRET", "test-session-secret-0123456789")
os.environ.setdefault("ADMIN_PASSWORD", "test-admin-password")
os.environ.setdefault("ATLANTIC_API_KEY", "test-atlantic-key")
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["REDIS_URL"] = ""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from rpay.api.deps import get_atlantic_client
from rpay.db.init_db import create_schema
from rpay.db.session import build_engine, get_db
from rpay.models.api_key import ApiKey
from rpay.models.transaction import Transaction
from rpay.models.user import User
from rpay.services.atlantic.client import UpstreamCharge, UpstreamError
from rpay.services.auth.passwords import hash_password


DEFAULT_PASSWORD = "merchant-password"


class FakeAtlantic:
    """Stand-in for AtlanticClient. Statuses are set per reff_id by the test."""

    def __init__(self):
        self.statuses: dict[str, str] = {}
        self.create_error: UpstreamError | None = None
        self.status_error: UpstreamError | None = None
        self.created: list[tuple[str, int]] = []
        self.status_calls: list[str] = []

    def create_charge(self, reff_id: str, nominal: int) -> UpstreamCharge:
        if self.create_error:
            raise self.create_error
        self.created.append((reff_id, nominal))
        return UpstreamCharge(
            status="pending",
            qr_string=f"00020101021226QR{reff_id}",
            qr_image=f"https://qr.example/{reff_id}.png",
        )

    def get_status(self, reff_id: str) -> UpstreamCharge:
        self.status_calls.append(reff_id)
        if self.status_error:
            raise self.status_error
        return UpstreamCharge(status=self.statuses.get(reff_id, "pending"))

    def close(self) -> None:
        pass


@pytest.fixture
def engine():
    eng = build_engine("sqlite://", poolclass=StaticPool)
    create_schema(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def db(engine):
    session = Session(bind=engine, autoflush=False)
    yield session
    session.close()


@pytest.fixture
def upstream():
    return FakeAtlantic()


@pytest.fixture
def client(db, upstream):
    from rpay.main import app

    def _get_db():
        yield db

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_atlantic_client] = lambda: upstream
    # No context manager: lifespan (logging setup, real DB init) is not run
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make(saldo: int = 0, is_admin: bool = False, password: str = DEFAULT_PASSWORD, **kwargs) -> User:
        counter["n"] += 1
        n = counter["n"]
        user = User(
            username=kwargs.get("username", f"merchant{n}"),
            email=kwargs.get("email", f"merchant{n}@example.com"),
            password=hash_password(password),
            saldo=saldo,
            is_admin=is_admin,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def make_api_key(db):
    counter = {"n": 0}

    def _make(user: User, verified: bool = True, key: str | None = None) -> ApiKey:
        counter["n"] += 1
        api_key = ApiKey(user_id=user.id, api_key=key or f"key-{user.id}-{counter['n']}", verified=verified)
        db.add(api_key)
        db.commit()
        db.refresh(api_key)
        return api_key

    return _make


@pytest.fixture
def make_transaction(db):
    def _make(user: User, reff_id: str = "INV-1", nominal: int = 10000, status: str = "pending") -> Transaction:
        txn = Transaction(
            user_id=user.id,
            reff_id=reff_id,
            nominal=nominal,
            qr_string="00020101",
            status=status,
        )
        db.add(txn)
        db.commit()
        db.refresh(txn)
        return txn

    return _make


def login(client: TestClient, user: User, password: str = DEFAULT_PASSWORD, admin: bool = False):
    url = "/admin/login" if admin else "/auth/login"
    return client.post(url, data={"email": user.email, "password": password}, follow_redirects=False)


@pytest.fixture
def login_as(client):
    def _login(user: User, password: str = DEFAULT_PASSWORD, admin: bool = False):
        resp = login(client, user, password, admin)
        assert resp.status_code == 303
        return resp

    return _login
