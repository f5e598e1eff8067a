import os

# must be set before db.database builds its engine
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

from datetime import date, datetime, time
from zoneinfo import ZoneInfo

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from core.config import settings
from core.item_classifier import ItemClassifier
from db.database import Base
from services import ledger
from services.queue import create_ticket


@pytest.fixture
def classifier():
    return ItemClassifier({
        "chai": ["chai", "masala chai"],
        "bun": ["bun", "bun maska"],
        "tiramisu": ["tiramisu"],
    })


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_maker, classifier):
    async with session_maker() as session:
        await ledger.ensure_categories(session, classifier.categories)
        await session.commit()
        yield session


@pytest.fixture
def stock(db):
    """Set absolute ledger counts, e.g. ``await stock(chai=5)``."""
    async def _stock(**levels):
        await ledger.restock(db, levels)
        await db.commit()
    return _stock


def local_noon(day=date(2026, 10, 19)):
    """Midday in the queue's timezone, inside the default service hours."""
    return datetime.combine(day, time(12, 0), tzinfo=ZoneInfo(settings.queue_timezone))


@pytest.fixture
def new_ticket(db, classifier):
    """Create a waiting ticket (reserving its items) while the queue is open."""
    async def _new_ticket(items, date_key="2026-10-19"):
        return await create_ticket(db, classifier, items=items, date_key=date_key, now=local_noon())
    return _new_ticket


@pytest_asyncio.fixture
async def file_engine(tmp_path):
    """File-backed database so separate sessions get separate connections."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'queue.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def file_session_maker(file_engine):
    return async_sessionmaker(file_engine, expire_on_commit=False)


@pytest.fixture
def open_at():
    return local_noon()
