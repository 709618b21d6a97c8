"""
Pytest configuration and fixtures
测试配置和固件
"""

import random
import pytest
from typing import List, Optional
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from chameleon.core.database import Base, DatabaseManager
from chameleon.schemas.game import GamePhase, PlayerState, RoomSettings, RoomSnapshot
from chameleon.services.notifier import RoomNotifier
from chameleon.services.orchestrator import RoundOrchestrator
from chameleon.services.storage import InMemoryRoomStore, SqlAlchemyRoomStore
from chameleon.services.transitions import PhaseTransitioner
import chameleon.models  # noqa: F401  注册表结构

# Test database URL (in-memory SQLite for fast testing)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


def make_players(count: int, ready: bool = True) -> List[PlayerState]:
    """p1 为房主，其余玩家按序编号"""
    return [
        PlayerState(id=f"p{i}", name=f"Player {i}", is_host=(i == 1), is_ready=ready or i == 1)
        for i in range(1, count + 1)
    ]


def make_room(count: int = 5, room_id: str = "room1", ready: bool = True,
              room_settings: Optional[RoomSettings] = None, **fields) -> RoomSnapshot:
    return RoomSnapshot(
        id=room_id,
        players=make_players(count, ready=ready),
        settings=room_settings or RoomSettings(),
        **fields
    )


class RecordingNotifier(RoomNotifier):
    """记录所有通知，可设置为失败"""

    def __init__(self):
        self.calls = []
        self.fail = False

    async def notify_room_changed(self, room_id: str, phase: Optional[GamePhase] = None) -> None:
        if self.fail:
            raise ConnectionError("notification channel down")
        self.calls.append((room_id, phase))


@pytest.fixture
def rng():
    return random.Random(20240601)


@pytest.fixture
def transitioner(rng):
    return PhaseTransitioner(rng=rng)


@pytest.fixture
def store():
    return InMemoryRoomStore()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def orchestrator(store, notifier, transitioner):
    return RoundOrchestrator(store, notifier, transitioner)


@pytest.fixture
async def test_database():
    """In-memory SQLite database shared through a static pool"""
    database = DatabaseManager(TEST_DATABASE_URL)
    database.engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
        echo=False
    )
    database.session_factory = async_sessionmaker(
        database.engine, class_=AsyncSession, expire_on_commit=False
    )

    async with database.engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield database

    await database.close()


@pytest.fixture
def sql_store(test_database):
    return SqlAlchemyRoomStore(test_database)
