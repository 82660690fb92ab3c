import os
from typing import AsyncGenerator

# Settings are read at import time by libs.db.config; point them at SQLite first.
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./.pytest-ledger.db"

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser
from libs.common.config import get_settings
from libs.db.base import Base
from services.volunteer_service import models as _ledger_models  # noqa: F401
from services.volunteer_service.models import Event, UserRole

get_settings.cache_clear()


@pytest_asyncio.fixture
async def test_engine(tmp_path):
    """
    A fresh SQLite database per test.

    Every transaction starts with BEGIN IMMEDIATE, so concurrent writers queue
    up behind each other the way row locks make them on PostgreSQL.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}",
        connect_args={"timeout": 30},
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # Let SQLAlchemy emit BEGIN itself
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


class RecordingDispatcher:
    """Collects notification intents instead of storing them."""

    def __init__(self):
        self.intents = []

    async def dispatch(self, intent) -> None:
        self.intents.append(intent)


class FailingDispatcher:
    async def dispatch(self, intent) -> None:
        raise RuntimeError("notification backend down")


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture
def failing_dispatcher() -> FailingDispatcher:
    return FailingDispatcher()


@pytest.fixture
def read_counter(session_factory):
    """Read an event's capacity counter through a separate, short-lived session."""

    async def _read(event_id) -> int:
        async with session_factory() as session:
            return (
                await session.execute(
                    select(Event.current_volunteers).where(Event.id == event_id)
                )
            ).scalar_one()

    return _read


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------


class _Caller:
    user = None


@pytest.fixture
def caller() -> _Caller:
    return _Caller()


@pytest.fixture
def login(caller):
    """Authenticate subsequent requests as the given ledger user."""

    def _login(user):
        role = "admin" if user.role == UserRole.ADMIN else "volunteer"
        caller.user = AuthUser(user_id=str(user.id), email=user.email, role=role)

    return _login


@pytest_asyncio.fixture
async def volunteer_client(session_factory, caller) -> AsyncGenerator[AsyncClient, None]:
    """
    Yield an AsyncClient for the volunteer app with DB and auth overridden.
    """
    from libs.db.session import get_async_db
    from services.volunteer_service.app.main import app

    async def _db():
        async with session_factory() as session:
            yield session

    async def _current_user():
        return caller.user

    app.dependency_overrides[get_async_db] = _db
    app.dependency_overrides[get_current_user] = _current_user

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()
