"""Pytest fixtures for testing"""

import pytest
from datetime import datetime, timedelta, timezone
from typing import Callable, Generator, Optional
from unittest.mock import AsyncMock
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool
from village_bank.api.dependencies import get_rpc_client
from village_bank.api.main import create_app
from village_bank.domain.lifecycle import LoanController
from village_bank.infrastructure.database.models import Base, GroupSettingsRow, ProfileRow
from village_bank.infrastructure.database.repositories import LoanRepository, ProfileRoleLookup
from village_bank.infrastructure.database.session import get_db


# Test database: one shared in-memory connection
engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

GROUP_ID = "group-001"
CIRCLE_ID = "circle-2026"
DAY_ZERO = datetime(2026, 1, 1, 9, 0, tzinfo=timezone.utc)

USERS = {
    "MEMBER": "user-member",
    "TREASURER": "user-treasurer",
    "CHAIRPERSON": "user-chair",
    "ADMIN": "user-admin",
    "AUDITOR": "user-auditor",
}


class FrozenClock:
    """Injectable clock that only moves when told to"""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database with profiles and group settings"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    for role, user_id in USERS.items():
        db.add(ProfileRow(id=user_id, full_name=role.title(), role=role, group_id=GROUP_ID))
    db.add(GroupSettingsRow(group_id=GROUP_ID, loan_interest_percent=20.0, loan_period_days=30, grace_period_days=5))
    db.commit()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def repository(db: Session) -> LoanRepository:
    return LoanRepository(db)


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(DAY_ZERO)


@pytest.fixture
def rpc() -> AsyncMock:
    """Remote procedure client that always succeeds"""
    client = AsyncMock()
    client.call.return_value = None
    return client


@pytest.fixture
def controller_as(
    db: Session, repository: LoanRepository, clock: FrozenClock, rpc: AsyncMock
) -> Callable[[Optional[str]], LoanController]:
    """Build a controller acting as the given role (None = unauthenticated)"""

    def build(role: Optional[str]) -> LoanController:
        user_id = USERS[role] if role else None
        return LoanController(repository, ProfileRoleLookup(db, user_id), rpc=rpc, clock=clock)

    return build


@pytest.fixture
def client(db: Session, rpc: AsyncMock) -> TestClient:
    """Create FastAPI test client with test database and stubbed remote procedures"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_rpc_client] = lambda: rpc
    return TestClient(app)


def headers_for(role: str) -> dict:
    return {"X-User-Id": USERS[role]}
