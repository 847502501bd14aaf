"""
Pytest Configuration and Fixtures

Provides fixtures for:
- Database sessions (async, in-memory SQLite)
- A file-backed engine for tests that need independent concurrent sessions
- Test data factories (accounts, notes)
- Bearer tokens for API tests
"""
# JWT_SECRET_KEY has to be set before the app is imported - the settings
# validator refuses an empty key when DEBUG=False
import os
os.environ.setdefault("JWT_SECRET_KEY", "test-jwt-secret-key-for-testing-only-do-not-use-in-production")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import time
from typing import AsyncGenerator

import jwt as pyjwt
import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from notemarket.core.config import settings
from notemarket.db.database import Base, get_db
from notemarket.db.models.account import Account, AccountRole
from notemarket.db.models.note import Note, NoteStatus
from notemarket.db.models.wallet_transaction import (
    TransactionCategory,
    TransactionType,
    WalletTransaction,
)
from notemarket.domain.services.account_service import AccountService
from notemarket.main import app


# Test database URL (SQLite in memory for fast tests)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# no custom event_loop fixture: pytest-asyncio handles it with asyncio_mode=auto
# and asyncio_default_fixture_loop_scope=function


@pytest.fixture(scope="function")
async def async_engine():
    """Create async test database engine"""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture(scope="function")
async def db_session(async_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create async database session for tests"""
    async_session_maker = async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False
    )

    async with async_session_maker() as session:
        yield session
        await session.rollback()


@pytest.fixture(scope="function")
async def file_session_maker(tmp_path):
    """
    Session factory over a SQLite file.

    Every session gets its own connection, so concurrent settlements really
    run in separate transactions (unlike the shared StaticPool connection).
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'concurrency.db'}",
        connect_args={"timeout": 30},
        echo=False,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture(scope="function")
async def test_client(db_session: AsyncSession):
    """Create test client with database override"""
    from httpx import AsyncClient, ASGITransport

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


# ============================================================================
# Test Data Factories
# ============================================================================

_email_counter = 0


def _next_email(prefix: str) -> str:
    global _email_counter
    _email_counter += 1
    return f"{prefix}{_email_counter}@example.com"


async def create_account(
    session: AsyncSession,
    name: str = "Test User",
    email: str | None = None,
    role: AccountRole = AccountRole.USER,
    balance: int = 0,
) -> Account:
    """
    Insert an account. A non-zero starting balance is booked as a TOP_UP
    entry so the ledger reconciles from the start.
    """
    account = Account(
        email=email or _next_email("user"),
        name=name,
        role=role,
        wallet_balance=balance,
        total_earnings=0,
        total_spent=0,
    )
    session.add(account)
    await session.flush()
    if balance:
        session.add(WalletTransaction(
            account_id=account.id,
            type=TransactionType.CREDIT,
            amount=balance,
            category=TransactionCategory.TOP_UP,
            description="Opening balance",
            balance_after=balance,
        ))
    await session.commit()
    await session.refresh(account)
    return account


async def create_note(
    session: AsyncSession,
    creator_id: int,
    price: int = 100,
    title: str = "Linear Algebra - Eigenvalues",
    subject: str = "Mathematics",
    status: NoteStatus = NoteStatus.ACTIVE,
    is_deleted: bool = False,
) -> Note:
    note = Note(
        title=title,
        subject=subject,
        creator_id=creator_id,
        price=price,
        status=status,
        is_deleted=is_deleted,
        purchases=0,
    )
    session.add(note)
    await session.commit()
    await session.refresh(note)
    return note


async def reload(session: AsyncSession, model, obj_id: int):
    """Read a row bypassing the identity map's cached state"""
    result = await session.execute(
        select(model)
        .where(model.id == obj_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one()


@pytest.fixture
def account_factory(db_session: AsyncSession):
    """Factory for creating test accounts"""
    async def _create_account(**kwargs) -> Account:
        return await create_account(db_session, **kwargs)

    return _create_account


@pytest.fixture
def note_factory(db_session: AsyncSession):
    """Factory for creating test notes"""
    async def _create_note(creator_id: int, **kwargs) -> Note:
        return await create_note(db_session, creator_id, **kwargs)

    return _create_note


@pytest.fixture
def reload_row(db_session: AsyncSession):
    async def _reload(model, obj_id: int):
        return await reload(db_session, model, obj_id)

    return _reload


# ============================================================================
# Sample Test Data
# ============================================================================

@pytest.fixture
async def platform_account(db_session: AsyncSession) -> Account:
    return await AccountService(db_session).ensure_platform_account()


@pytest.fixture
async def creator(account_factory) -> Account:
    """A note maker with an empty wallet"""
    return await account_factory(name="Noa Maker", role=AccountRole.NOTEMAKER)


@pytest.fixture
async def buyer(account_factory) -> Account:
    """A buyer holding exactly 100"""
    return await account_factory(name="Ben Buyer", balance=100)


@pytest.fixture
async def paid_note(note_factory, creator) -> Note:
    return await note_factory(creator.id, price=100)


@pytest.fixture
async def free_note(note_factory, creator) -> Note:
    return await note_factory(creator.id, price=0, title="Intro to Sets")


# ============================================================================
# Auth
# ============================================================================

def make_token(account_id: int, role: str = "USER", expires_in: int = 3600) -> str:
    payload = {"account_id": account_id, "role": role, "exp": int(time.time()) + expires_in}
    return pyjwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


@pytest.fixture
def auth_headers():
    """Bearer header for an account id"""
    def _headers(account_id: int, role: str = "USER", expires_in: int = 3600) -> dict[str, str]:
        return {"Authorization": f"Bearer {make_token(account_id, role, expires_in)}"}

    return _headers
