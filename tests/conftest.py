"""Pytest fixtures for testing"""

import os

# Settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")
os.environ.setdefault("ADMIN_PHONES", '["0240000001"]')
os.environ.setdefault("SYNC_BACKOFF_BASE", "0")
os.environ.setdefault("GEMINI_API_KEY", "")

import asyncio
from datetime import date
from typing import Callable, Generator, List, Optional, Tuple

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session

from digishe_ledger.api.main import create_app
from digishe_ledger.api.dependencies import get_ledger_store, get_sms_client
from digishe_ledger.domain.exceptions import BusinessInactive, StorageError
from digishe_ledger.domain.ledger import LedgerSession
from digishe_ledger.domain.models import (
    Business,
    BusinessCategory,
    Identity,
    LedgerEntry,
    SavingEntry,
)
from digishe_ledger.infrastructure.clients.sms import SmsGatewayClient
from digishe_ledger.infrastructure.database.models import Base
from digishe_ledger.infrastructure.database.session import get_db
from digishe_ledger.infrastructure.database.store import LedgerStore
from mock_services.sms_gateway.main import CODES, app as sms_app


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

ADMIN_PHONE = "233240000001"


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db: Session) -> Generator[TestClient, None, None]:
    """FastAPI test client wired to the test database and the mock SMS gateway"""
    app = create_app()
    CODES.clear()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_ledger_store] = lambda: LedgerStore(TestingSessionLocal)
    app.dependency_overrides[get_sms_client] = lambda: SmsGatewayClient(
        base_url="http://mock-sms",
        api_key="test-key",
        transport=httpx.ASGITransport(app=sms_app),
    )

    # Context manager keeps one event loop alive across requests so
    # background storage writes can finish
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def sign_in(client: TestClient) -> Callable[..., str]:
    """Run request-code + verify against the mock gateway and return the bearer token"""

    def _sign_in(phone: str, intent: str = "register", name: Optional[str] = None) -> str:
        response = client.post("/v1/auth/request-code", json={"phone": phone, "intent": intent})
        assert response.status_code == 200, response.text
        canonical = response.json()["phone"]

        code = CODES[canonical][0]
        response = client.post("/v1/auth/verify", json={"phone": phone, "code": code, "name": name})
        assert response.status_code == 200, response.text
        return response.json()["session_token"]

    return _sign_in


def auth_header(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


class FakeLedgerStore:
    """
    In-memory LedgerStorePort.

    `gate` holds writes until set; `fail_writes` makes the next N writes
    raise StorageError; `reject_inactive` makes writes fail as storage does
    for a deactivated business.
    """

    def __init__(self, identity: Identity, business: Optional[Business] = None):
        self.identity = identity
        self.business = business
        self.entries: List[LedgerEntry] = []
        self.savings: List[SavingEntry] = []
        self.gate: Optional[asyncio.Event] = None
        self.fail_writes = 0
        self.reject_inactive = False
        self.write_attempts = 0
        self.fail_mark_onboarded = False
        self.fail_fetch_entries = False
        self.create_business_calls = 0
        self._next_id = 0

    def _storage_id(self) -> str:
        self._next_id += 1
        return f"db-{self._next_id}"

    async def _write(self) -> str:
        self.write_attempts += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.reject_inactive:
            raise BusinessInactive("business is not active")
        if self.fail_writes > 0:
            self.fail_writes -= 1
            raise StorageError("write failed")
        return self._storage_id()

    async def fetch_identity(self, phone: str) -> Optional[Identity]:
        return self.identity if self.identity.phone_number == phone else None

    async def fetch_business(self, owner_phone: str) -> Optional[Business]:
        return self.business

    async def fetch_entries(self, business_id: str) -> Tuple[List[LedgerEntry], List[SavingEntry]]:
        if self.fail_fetch_entries:
            raise StorageError("read failed")
        return list(self.entries), list(self.savings)

    async def create_business(self, business: Business) -> Business:
        self.create_business_calls += 1
        if self.business is None:
            business.id = self._storage_id()
            self.business = business
        return self.business

    async def mark_onboarded(self, phone: str) -> Optional[Identity]:
        if self.fail_mark_onboarded:
            raise StorageError("update failed")
        self.identity = Identity(
            phone_number=self.identity.phone_number,
            display_name=self.identity.display_name,
            is_admin=self.identity.is_admin,
            has_completed_onboarding=True,
        )
        return self.identity

    async def insert_entry(self, entry: LedgerEntry) -> str:
        storage_id = await self._write()
        self.entries.append(entry)
        return storage_id

    async def insert_saving(self, saving: SavingEntry) -> str:
        storage_id = await self._write()
        self.savings.append(saving)
        return storage_id


@pytest.fixture
def identity() -> Identity:
    return Identity(phone_number="233503088600", display_name="Ama", has_completed_onboarding=True)


@pytest.fixture
def active_business() -> Business:
    return Business(
        id="biz-1",
        owner_phone="233503088600",
        name="Ama's Kitchen",
        category=BusinessCategory.FOOD,
        start_date=date(2024, 1, 15),
        is_active=True,
    )


@pytest.fixture
def store(identity: Identity, active_business: Business) -> FakeLedgerStore:
    return FakeLedgerStore(identity, active_business)


@pytest.fixture
def ledger_session(identity: Identity, active_business: Business, store: FakeLedgerStore) -> LedgerSession:
    """Session with an active business, as after load()"""
    session = LedgerSession(identity, store, sync_max_retries=3, sync_backoff_base=0)
    session.business = active_business
    return session
