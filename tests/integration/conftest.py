"""
Integration fixtures: a real SQL store on a temporary SQLite file.
"""

import pytest_asyncio

from src.db.database import create_engine_for, init_db
from src.rewards.engagement import EngagementService
from src.rewards.ledger import LevelCurve
from src.rewards.questions import QuestionAwardService
from src.store.base import ProfileRecord
from src.store.sql_store import SqlEngagementStore


@pytest_asyncio.fixture
async def store(settings):
    """Fresh database per test."""
    engine = create_engine_for(settings.database_url)
    await init_db(engine)
    store = SqlEngagementStore(
        engine,
        curve=LevelCurve(settings.xp_per_level),
        level_up_bonus=settings.level_up_currency_bonus,
        default_xp_per_minute=settings.default_xp_per_minute,
        max_xp_per_minute=settings.max_xp_per_minute,
        recent_message_limit=settings.recent_message_limit,
    )
    yield store
    await store.close()


@pytest_asyncio.fixture
async def student(store):
    """A whitelisted student enrolled in AP Physics."""
    record = ProfileRecord(
        id="stu-1",
        email="ada@school.test",
        name="Ada",
        class_type="AP Physics",
        enrolled_classes=["AP Physics"],
        is_whitelisted=True,
    )
    await store.create_profile(record)
    return record


@pytest_asyncio.fixture
async def engagement(store, settings, clock):
    service = EngagementService(store, settings=settings, clock=clock)
    yield service
    await service.drain()


@pytest_asyncio.fixture
async def awards(store, settings, clock):
    return QuestionAwardService(store, settings=settings, clock=clock)
