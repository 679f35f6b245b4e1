import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from ticketwatch.config import Settings
from ticketwatch.db.session import init_db
from ticketwatch.engines.watch.store import TicketStore


@pytest.fixture
async def db_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
def store(session_factory):
    return TicketStore(session_factory)


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        start_ticket_id="cab001",
        portal_timezone="America/New_York",
        backoff_seconds=[0.0, 0.0],
        advance_delay_seconds=0,
        error_cooldown_seconds=0,
        challenge_max_attempts=3,
        notify_freshness_minutes=10,
    )
