import asyncio
import os
import random
from collections.abc import AsyncGenerator, Callable, Sequence
from pathlib import Path
from typing import Any

# Settings are read at import time, point them at a throwaway database first
os.environ.setdefault("DB_URL", "sqlite+aiosqlite://")

import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlmodel.ext.asyncio.session import AsyncSession

from app.core.db import init_db
from app.core.enums import AssetSource, RarityTier
from app.core.exceptions import ProviderError
from app.core.notifications import NotificationHub
from app.models.gacha_pool import GachaPool
from app.models.player import Player
from app.providers.base import AssetProvider, CacheableProvider, ProviderConfig
from app.providers.registry import AssetProviderRegistry
from app.schemas.asset import AssetItem, ImageTransformOptions, ProviderHealthStatus
from app.services.collection import CollectionService
from app.services.currency import CurrencyService
from app.services.gacha import GachaService
from app.services.gacha_engine import GachaEngine
from app.services.pull_history import PullHistoryService
from app.services.rarity_config import RarityConfigService
from app.utils.misc import get_utc_now


def make_items(rarity: RarityTier, count: int, prefix: str = "item") -> list[AssetItem]:
    return [
        AssetItem(
            id=f"{prefix}-{rarity.lower()}-{i}",
            name=f"{rarity.title()} #{i}",
            image_url=f"https://example.com/{prefix}/{rarity.lower()}/{i}.png",
            rarity=rarity,
        )
        for i in range(count)
    ]


class FixedRandom(random.Random):
    """Random source replaying a fixed sequence of ``random()`` values."""

    def __init__(self, values: Sequence[float]) -> None:
        super().__init__(0)
        self._values = list(values)

    def random(self) -> float:
        return self._values.pop(0)


class StaticProvider(AssetProvider):
    def __init__(
        self, items: list[AssetItem], *, priority: int = 1, name: str = "StaticProvider"
    ) -> None:
        self.name = name
        self.config = ProviderConfig(priority=priority)
        self.items = items
        self.calls = 0

    async def get_items(self, pool: GachaPool, limit: int = 24) -> list[AssetItem]:
        self.calls += 1
        return self.items[:limit]

    def get_item_url(self, item: AssetItem, options: ImageTransformOptions | None = None) -> str:
        return f"static://{item.id}"

    async def validate_item(self, item: AssetItem) -> bool:
        return True

    async def health_check(self) -> ProviderHealthStatus:
        return ProviderHealthStatus(healthy=True, latency_ms=0, last_checked=get_utc_now())


class FailingProvider(StaticProvider):
    def __init__(self, *, priority: int = 1, name: str = "FailingProvider") -> None:
        super().__init__([], priority=priority, name=name)

    async def get_items(self, pool: GachaPool, limit: int = 24) -> list[AssetItem]:
        self.calls += 1
        msg = "connection refused"
        raise ProviderError(msg)

    async def health_check(self) -> ProviderHealthStatus:
        return ProviderHealthStatus(
            healthy=False, latency_ms=0, last_checked=get_utc_now(), error="down"
        )


class SlowProvider(StaticProvider):
    def __init__(self, items: list[AssetItem], *, delay: float, timeout: float) -> None:
        super().__init__(items, name="SlowProvider")
        self.config.timeout = timeout
        self.delay = delay

    async def get_items(self, pool: GachaPool, limit: int = 24) -> list[AssetItem]:
        await asyncio.sleep(self.delay)
        return await super().get_items(pool, limit)


class CachingProvider(StaticProvider, CacheableProvider):
    def __init__(self, items: list[AssetItem], *, priority: int = 1) -> None:
        super().__init__(items, priority=priority, name="CachingProvider")
        self.cleared: list[int | None] = []

    def clear_cache(self, pool_id: int | None = None) -> None:
        self.cleared.append(pool_id)


class FakeWebSocket:
    def __init__(self, *, fail: bool = False) -> None:
        self.accepted = False
        self.fail = fail
        self.messages: list[dict[str, Any]] = []

    async def accept(self) -> None:
        self.accepted = True

    async def send_json(self, data: dict[str, Any]) -> None:
        if self.fail:
            msg = "socket closed"
            raise RuntimeError(msg)
        self.messages.append(data)


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "gacha.db"


@pytest_asyncio.fixture
async def db_engine(db_path: Path) -> AsyncGenerator[AsyncEngine]:
    engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}")

    # SQLite has no row locks, take the write lock when the transaction begins instead
    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection: Any, _connection_record: Any) -> None:
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn: Any) -> None:
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine: AsyncEngine) -> Callable[[], AsyncSession]:
    def factory() -> AsyncSession:
        return AsyncSession(db_engine, autoflush=False, expire_on_commit=False)

    return factory


@pytest_asyncio.fixture
async def session(
    session_factory: Callable[[], AsyncSession],
) -> AsyncGenerator[AsyncSession]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def player(session: AsyncSession) -> Player:
    player = Player(name="Alice", currency=1000, level=0)
    session.add(player)
    await session.commit()
    return player


@pytest_asyncio.fixture
async def admin(session: AsyncSession) -> Player:
    admin = Player(name="Admin", currency=5000, level=0, is_admin=True)
    session.add(admin)
    await session.commit()
    return admin


@pytest_asyncio.fixture
async def pool(session: AsyncSession) -> GachaPool:
    pool = GachaPool(name="Standard Banner", cost=100)
    session.add(pool)
    await session.flush()
    RarityConfigService(session).seed_rarity_config(pool.id)
    await session.commit()
    return pool


@pytest.fixture
def catalog() -> list[AssetItem]:
    return [
        *make_items(RarityTier.COMMON, 6),
        *make_items(RarityTier.UNCOMMON, 4),
        *make_items(RarityTier.RARE, 3),
        *make_items(RarityTier.EPIC, 2),
        *make_items(RarityTier.LEGENDARY, 1),
    ]


@pytest.fixture
def registry(catalog: list[AssetItem]) -> AssetProviderRegistry:
    return AssetProviderRegistry(
        {AssetSource.LOCAL: StaticProvider(catalog)}, rng=random.Random(7)
    )


@pytest.fixture
def hub() -> NotificationHub:
    return NotificationHub()


def build_gacha_service(
    session: AsyncSession,
    registry: AssetProviderRegistry,
    hub: NotificationHub | None = None,
    rng: random.Random | None = None,
) -> GachaService:
    """Wire a GachaService the way FastAPI would, every collaborator on one session."""
    engine = GachaEngine(registry, RarityConfigService(session), rng or random.Random(42))
    return GachaService(
        session,
        engine,
        CurrencyService(session),
        CollectionService(session),
        PullHistoryService(session),
        hub or NotificationHub(),
    )
