"""Shared test fixtures."""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

from datetime import date, datetime, timezone  # noqa: E402
from decimal import Decimal  # noqa: E402

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy import event  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from autocat.core.database import get_db  # noqa: E402
from autocat.main import app  # noqa: E402
from autocat.models import (  # noqa: E402
    AutoCategoryRule,
    Base,
    Category,
    LearnedCategoryPattern,
    Transaction,
    User,
)


@pytest.fixture
async def db_engine():
    """A fresh in-memory SQLite database per test, with working SAVEPOINTs."""
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(session_factory):
    """Async test client for the FastAPI app, bound to the test database."""

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
    app.dependency_overrides.clear()


# ── Factories ──────────────────────────────────────


@pytest.fixture
def make_user(session):
    async def _make(email: str = "alice@example.com", full_name: str = "Alice") -> User:
        user = User(email=email, full_name=full_name, is_active=True)
        session.add(user)
        await session.flush()
        return user

    return _make


@pytest.fixture
async def user(make_user):
    return await make_user()


@pytest.fixture
async def other_user(make_user):
    return await make_user("bob@example.com", "Bob")


@pytest.fixture
def make_category(session):
    async def _make(name: str, user_id: int | None = None, is_system: bool = False) -> Category:
        category = Category(name=name, user_id=user_id, is_system=is_system)
        session.add(category)
        await session.flush()
        return category

    return _make


@pytest.fixture
def make_transaction(session):
    async def _make(
        user_id: int,
        description: str | None,
        txn_date: date = date(2026, 1, 15),
        category_id: int | None = None,
        deleted: bool = False,
    ) -> Transaction:
        transaction = Transaction(
            user_id=user_id,
            date=txn_date,
            description=description,
            amount=Decimal("-12.50"),
            category_id=category_id,
            deleted_at=datetime.now(timezone.utc) if deleted else None,
        )
        session.add(transaction)
        await session.flush()
        return transaction

    return _make


@pytest.fixture
def make_rule(session):
    async def _make(
        user_id: int,
        pattern: str,
        category_id: int,
        priority: int,
        is_active: bool = True,
        archived: bool = False,
    ) -> AutoCategoryRule:
        rule = AutoCategoryRule(
            user_id=user_id,
            pattern=pattern,
            category_id=category_id,
            priority=priority,
            is_active=is_active,
            archived_at=datetime.now(timezone.utc) if archived else None,
        )
        session.add(rule)
        await session.flush()
        return rule

    return _make


@pytest.fixture
def make_pattern(session):
    async def _make(
        user_id: int,
        keyword: str,
        category_id: int,
        confidence_score: int = 80,
        occurrence_count: int = 6,
        is_active: bool = True,
        first_learned_at: datetime | None = None,
    ) -> LearnedCategoryPattern:
        now = datetime.now(timezone.utc)
        pattern = LearnedCategoryPattern(
            user_id=user_id,
            keyword=keyword,
            category_id=category_id,
            confidence_score=confidence_score,
            occurrence_count=occurrence_count,
            first_learned_at=first_learned_at or now,
            last_matched_at=now,
            is_active=is_active,
        )
        session.add(pattern)
        await session.flush()
        return pattern

    return _make
