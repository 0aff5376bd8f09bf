# tests/conftest.py
from __future__ import annotations

import os
from collections.abc import Callable, Generator, Iterator

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("SECRET_KEY", "test-secret-key-for-trustlens")

from tests.helpers import FakeClock, FakeProvider  # noqa: E402
from trustlens.api.v1.dependencies import (  # noqa: E402
    get_notifier_dep,
    get_profile_provider_dep,
    get_quota_ledger_dep,
)
from trustlens.core.security import create_access_token  # noqa: E402
from trustlens.db.session import Base  # noqa: E402
from trustlens.db.session import get_db as app_get_session  # noqa: E402
from trustlens.main import app as fastapi_app  # noqa: E402
from trustlens.models import Profile  # noqa: E402
from trustlens.services.notifier import VerificationNotifier  # noqa: E402
from trustlens.services.quota import InMemoryQuotaStore, QuotaLedger  # noqa: E402

TEST_DB_URL = "sqlite://"


@pytest.fixture(scope="session")
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def db_session(engine: Engine) -> Iterator[Session]:
    SessionLocal = sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()

        # Ensure each test sees a clean database even if commits occurred.
        with engine.begin() as cleanup_conn:
            for table in reversed(Base.metadata.sorted_tables):
                cleanup_conn.execute(table.delete())


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def ledger(clock: FakeClock) -> QuotaLedger:
    return QuotaLedger(InMemoryQuotaStore(), max_events=3, reset_window=3600, clock=clock)


@pytest.fixture()
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture()
def notifier() -> VerificationNotifier:
    return VerificationNotifier()


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture(autouse=True)
def override_dependencies(
    app: FastAPI,
    db_session: Session,
    ledger: QuotaLedger,
    provider: FakeProvider,
    notifier: VerificationNotifier,
) -> Iterator[None]:
    def _get_session_override() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[app_get_session] = _get_session_override
    app.dependency_overrides[get_quota_ledger_dep] = lambda: ledger
    app.dependency_overrides[get_profile_provider_dep] = lambda: provider
    app.dependency_overrides[get_notifier_dep] = lambda: notifier
    try:
        yield
    finally:
        app.dependency_overrides.clear()


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture()
def auth_headers() -> Callable[[str], dict[str, str]]:
    def _headers(account_id: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(account_id)}"}

    return _headers


@pytest.fixture()
def create_profile(db_session: Session) -> Callable[..., Profile]:
    def _create(account_id: str = "acct-1", credits: int = 0) -> Profile:
        profile = Profile(id=account_id, credits=credits)
        db_session.add(profile)
        db_session.commit()
        return profile

    return _create
