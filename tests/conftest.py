"""Fixtures: in-memory SQLite database, marketplace users, a live listing, API client."""
import os

# Must be set before lendit is imported (settings are cached on first use)
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET_KEY"] = "test-jwt-secret-key-that-is-long-enough-for-hs256"
os.environ["SEED_POLICIES_ON_STARTUP"] = "false"

from datetime import date, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from lendit.database import Base, get_db
from lendit.main import app
from lendit.models.audit_log import AuditLog
from lendit.models.listing import Listing, ListingStatus
from lendit.models.user import User, UserRole
from lendit.services.auth import create_access_token
from lendit.services.policy import INSURANCE_POLICY_SLUG, publish_policy


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=eng)
    yield eng
    Base.metadata.drop_all(bind=eng)
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(session_factory):
    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make(role: UserRole = UserRole.RENTER, **kwargs) -> User:
        counter["n"] += 1
        user = User(
            email=kwargs.pop("email", f"{role.value.lower()}{counter['n']}@example.com"),
            hashed_password="not-a-real-hash",
            role=role,
            **kwargs,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def renter(make_user):
    return make_user(UserRole.RENTER, first_name="Rita")


@pytest.fixture
def owner(make_user):
    return make_user(UserRole.OWNER, first_name="Owen")


@pytest.fixture
def admin(make_user):
    return make_user(UserRole.ADMIN, first_name="Ada")


@pytest.fixture
def live_listing(db, owner):
    listing = Listing(
        owner_id=owner.id,
        title="John Deere 6120M Tractor",
        daily_rate_cents=35_000,
        estimated_value=120_000,
        is_high_value=True,
        status=ListingStatus.LIVE,
    )
    db.add(listing)
    db.commit()
    db.refresh(listing)
    return listing


@pytest.fixture
def publish(db):
    """Publish the insurance policy n more times; returns the last document."""

    def _publish(times: int = 1, slug: str = INSURANCE_POLICY_SLUG):
        doc = None
        for _ in range(times):
            doc = publish_policy(db, slug, f"{slug} content #{_next_content_id()}", title="Insurance & Damage Policy")
        return doc

    return _publish


_content_ids = iter(range(1, 1_000_000))


def _next_content_id() -> int:
    return next(_content_ids)


@pytest.fixture
def future_dates():
    start = date.today() + timedelta(days=7)
    return start, start + timedelta(days=2)


def auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id, user.email, user.role)}"}


def audit_count(db, **filters) -> int:
    db.expire_all()
    return db.query(AuditLog).filter_by(**filters).count()


class StoreOutage:
    """Makes every statement on the engine fail from the moment a chosen audit
    helper is entered, like a database that drops right after the business commit."""

    def __init__(self, engine, monkeypatch):
        self.engine = engine
        self.monkeypatch = monkeypatch
        self.down = False
        event.listen(engine, "before_cursor_execute", self._fail)

    def _fail(self, conn, cursor, statement, parameters, context, executemany):
        if self.down:
            raise OperationalError(statement, parameters, Exception("database unreachable"))

    def start(self) -> None:
        self.down = True

    def after(self, module, helper_name: str) -> None:
        helper = getattr(module, helper_name)

        def _entered(*args, **kwargs):
            self.start()
            return helper(*args, **kwargs)

        self.monkeypatch.setattr(module, helper_name, _entered)

    def end(self) -> None:
        self.down = False
        if event.contains(self.engine, "before_cursor_execute", self._fail):
            event.remove(self.engine, "before_cursor_execute", self._fail)


@pytest.fixture
def store_outage(engine, monkeypatch):
    outage = StoreOutage(engine, monkeypatch)
    yield outage
    outage.end()
