import uuid
from collections.abc import AsyncGenerator
from unittest.mock import patch

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event, insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from tradesfinder.common.enums import UserRole
from tradesfinder.common.security import create_access_token, get_password_hash
from tradesfinder.db.base import Base
from tradesfinder.db.models import *  # noqa: F401,F403 - ensure all models loaded

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
async def test_engine():
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # pysqlite's own transaction handling breaks SAVEPOINT; take it over
    @event.listens_for(engine.sync_engine, "connect")
    def _no_autobegin(dbapi_conn, connection_record):
        dbapi_conn.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    session_factory = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
async def client(db_session):
    from tradesfinder.api.deps import get_db
    from tradesfinder.main import app

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


async def _make_user(db_session, role: UserRole, name: str, password: str = "testpass123"):
    from tradesfinder.db.models.user import User

    user = User(
        id=uuid.uuid4(),
        email=f"{role.value.lower()}_{uuid.uuid4().hex[:8]}@test.com",
        hashed_password=get_password_hash(password),
        name=name,
        role=role.value,
    )
    db_session.add(user)
    await db_session.flush()
    await db_session.refresh(user)
    return user


def _headers(user) -> dict[str, str]:
    token = create_access_token({"sub": str(user.id)})
    return {"Authorization": f"Bearer {token}"}


# ---------- Catalogue ----------


@pytest.fixture
async def trade(db_session):
    from tradesfinder.db.models.profile import Trade

    trade = Trade(name="Plumbing", slug=f"plumbing-{uuid.uuid4().hex[:6]}")
    db_session.add(trade)
    await db_session.flush()
    await db_session.refresh(trade)
    return trade


# ---------- Users ----------


@pytest.fixture
async def customer_user(db_session):
    return await _make_user(db_session, UserRole.CUSTOMER, "Test Customer")


@pytest.fixture
async def other_customer(db_session):
    return await _make_user(db_session, UserRole.CUSTOMER, "Other Customer")


@pytest.fixture
async def admin_user(db_session):
    return await _make_user(db_session, UserRole.ADMIN, "Test Admin", password="adminpass123")


@pytest.fixture
async def tradesperson_user(db_session):
    return await _make_user(db_session, UserRole.TRADESPERSON, "Test Tradesperson")


async def _make_profile(db_session, user, trade, business_name: str):
    from tradesfinder.db.models.profile import TradesProfile, profile_trades

    profile = TradesProfile(
        user_id=user.id,
        business_name=business_name,
        slug=f"{business_name.lower().replace(' ', '-')}-{uuid.uuid4().hex[:6]}",
        email=user.email,
        city="London",
        postcode="SW1A 1AA",
    )
    db_session.add(profile)
    await db_session.flush()
    await db_session.execute(insert(profile_trades).values(profile_id=profile.id, trade_id=trade.id))
    await db_session.refresh(profile)
    return profile


@pytest.fixture
async def trades_profile(db_session, tradesperson_user, trade):
    return await _make_profile(db_session, tradesperson_user, trade, "Test Plumbing Ltd")


@pytest.fixture
async def other_trades_profile(db_session, trade):
    user = await _make_user(db_session, UserRole.TRADESPERSON, "Other Tradesperson")
    return await _make_profile(db_session, user, trade, "Other Plumbing Co")


# ---------- Headers ----------


@pytest.fixture
def auth_headers(customer_user):
    return _headers(customer_user)


@pytest.fixture
def other_headers(other_customer):
    return _headers(other_customer)


@pytest.fixture
def admin_headers(admin_user):
    return _headers(admin_user)


@pytest.fixture
def trades_headers(tradesperson_user, trades_profile):
    return _headers(tradesperson_user)


@pytest.fixture
async def other_trades_headers(db_session, other_trades_profile):
    from tradesfinder.core.lookups import get_user

    return _headers(await get_user(db_session, other_trades_profile.user_id))


# ---------- Builders ----------


@pytest.fixture
def post_job(client, auth_headers, trade):
    async def _post(headers=None, **overrides):
        body = {
            "trade_id": str(trade.id),
            "title": "Fix leaking kitchen tap",
            "description": "The kitchen mixer tap drips constantly and needs replacing.",
            "postcode": "SW1A 2AA",
            "budget_min": 100,
            "budget_max": 300,
            "timeframe": "1_WEEK",
        }
        body.update(overrides)
        resp = await client.post("/api/v1/jobs", headers=headers or auth_headers, json=body)
        assert resp.status_code == 201, resp.text
        return resp.json()

    return _post


@pytest.fixture(autouse=True)
def mock_integrations():
    """Mock external integration clients used in endpoint handlers."""
    with patch(
        "tradesfinder.integrations.sendgrid.EmailClient.send_email",
        return_value={"message_id": "mock-123", "status": "sent"},
    ) as send_email:
        yield send_email
