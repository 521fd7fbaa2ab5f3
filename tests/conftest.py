"""Pytest fixtures for database and API testing."""

from collections.abc import AsyncGenerator, Callable

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from crawler_api.api.app import app
from crawler_api.db.base import build_engine, create_tables, get_db
from crawler_api.identity.snowflake import SnowflakeGenerator
from crawler_api.services.category_scraper import ScrapedElement


# Each test gets its own in-memory database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


class FakeClock:
    """Millisecond clock that replays queued ticks, then repeats the last one."""

    def __init__(self, *ticks: int):
        self.ticks = list(ticks)
        self.current = self.ticks[0]
        self.calls = 0

    def __call__(self) -> int:
        self.calls += 1
        if self.ticks:
            self.current = self.ticks.pop(0)
        return self.current


@pytest_asyncio.fixture
async def test_db() -> AsyncGenerator[AsyncSession, None]:
    """Session on a fresh in-memory database, shared with the app.

    Writes are flushed but never committed, so requests made through
    ``client`` see them and everything is discarded at teardown.
    """
    engine = build_engine(TEST_DATABASE_URL)
    await create_tables(engine)

    session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with session_maker() as session:

        async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
            yield session

        app.dependency_overrides[get_db] = override_get_db
        try:
            yield session
        finally:
            app.dependency_overrides.clear()
            await session.rollback()

    await engine.dispose()


@pytest_asyncio.fixture
async def client(test_db) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client bound to the app with the test database."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as http_client:
        yield http_client


@pytest.fixture
def make_clock() -> Callable[..., FakeClock]:
    """Factory for fake millisecond clocks.

    The first tick is served twice: once to the generator constructor, which
    checks the epoch against it, and once to the first id.
    """

    def make(*ticks: int) -> FakeClock:
        return FakeClock(ticks[0], *ticks)

    return make


@pytest.fixture
def generator() -> SnowflakeGenerator:
    """Generator with a non-default node identity."""
    return SnowflakeGenerator(datacenter_id=2, worker_id=3)


@pytest.fixture
def category_elements() -> list[ScrapedElement]:
    """Elements a navigation menu typically yields."""
    return [
        ScrapedElement(text="Home", href="/"),
        ScrapedElement(text="Books", href="/books"),
        ScrapedElement(text="", href="/empty"),
        ScrapedElement(text="Music & Audio", href="/music"),
        ScrapedElement(text="Trang chủ", href="/vi"),
        ScrapedElement(text="Back to top", href="#"),
    ]


@pytest.fixture
def fake_fetch(category_elements):
    """Element fetcher returning ``category_elements`` without a browser."""
    calls: list[tuple[str, str]] = []

    async def fetch(url: str, selector: str) -> list[ScrapedElement]:
        calls.append((url, selector))
        return list(category_elements)

    fetch.calls = calls
    return fetch
