"""Shared fixtures: temporary databases and a fake extraction service."""

import json
import os
import tempfile
from collections.abc import Callable
from datetime import UTC, datetime
from decimal import Decimal
from pathlib import Path
from typing import Any

import httpx
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

# The web module builds its app on import; keep it away from the user's database.
os.environ["DATABASE_URL"] = str(Path(tempfile.mkdtemp()) / "gpu_catalog_test.db")

from gpu_catalog.core.schema import ProductCreate  # noqa: E402
from gpu_catalog.db.models import Base  # noqa: E402
from gpu_catalog.ingestion.extraction import ExtractionClient  # noqa: E402

TEST_API_URL = "https://firecrawl.test/v2"


@pytest.fixture
def temp_db_path():
    """Create a temporary database file."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir) / "test.db"


@pytest.fixture
def test_engine(temp_db_path):
    """Create a test database engine."""
    url = f"sqlite:///{temp_db_path}"
    engine = create_engine(url, echo=False, connect_args={"check_same_thread": False})
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    """Session factory bound to the test engine."""
    return sessionmaker(bind=test_engine)


@pytest.fixture
def test_session(session_factory):
    """Create a database session for testing."""
    session = session_factory()
    yield session
    session.close()


def make_product(url: str, **overrides: Any) -> ProductCreate:
    """Build a valid product, overriding selected fields."""
    values: dict[str, Any] = {
        "url": url,
        "brand": "ASUS",
        "product_title": "ASUS Dual GeForce RTX 4070 OC 12GB",
        "family": "Dual",
        "memory_size_gb": 12,
        "cooler_type": "Dual",
        "price": Decimal("549.99"),
        "in_stock": True,
        "is_oc": True,
        "retailer": "newegg.com",
        "fetched_at": datetime(2025, 1, 1, tzinfo=UTC),
    }
    values.update(overrides)
    return ProductCreate(**values)


def record(url: str | None = None, **overrides: Any) -> dict[str, Any]:
    """Build one extracted record as returned by the extraction service."""
    data: dict[str, Any] = {
        "brand": "MSI",
        "product_title": "MSI Ventus 3X GeForce RTX 4080 16GB",
        "family": "Ventus",
        "memory_size_gb": 16,
        "cooler_type": "Triple",
        "special_features": "Torx Fan 4.0",
        "price": 999.99,
        "in_stock": True,
        "is_oc": False,
    }
    if url is not None:
        data["url"] = url
    data.update(overrides)
    return data


class FakeFirecrawl:
    """
    In-memory stand-in for the extraction service, served through
    httpx.MockTransport.

    Responses are stored as (status, json) so a fresh httpx.Response is
    built for every request.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.submit_reply: tuple[int, Any] = (200, {"success": True, "id": "job-123"})
        self.status_replies: list[tuple[int, Any]] = []
        self.scrape_replies: dict[str, tuple[int, Any]] = {}

    # Reply builders

    def job_completes(self, data: Any, polls_before: int = 0) -> None:
        self.status_replies = [(200, {"success": True, "status": "processing"})] * polls_before
        self.status_replies.append((200, {"success": True, "status": "completed", "data": data}))

    def job_status(self, status: str, **extra: Any) -> None:
        self.status_replies = [(200, {"success": True, "status": status, **extra})]

    def page_has(self, url: str, price: Any, in_stock: Any = True) -> None:
        self.scrape_replies[url] = (
            200,
            {"success": True, "data": {"json": {"price": price, "in_stock": in_stock}}},
        )

    # Request log

    def calls(self, method: str, path_part: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and path_part in r.url.path]

    @property
    def submits(self) -> list[httpx.Request]:
        return [r for r in self.calls("POST", "/extract") if r.url.path.endswith("/extract")]

    @property
    def polls(self) -> list[httpx.Request]:
        return self.calls("GET", "/extract/")

    @property
    def scrapes(self) -> list[httpx.Request]:
        return self.calls("POST", "/scrape")

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if request.method == "POST" and path.endswith("/extract"):
            status, body = self.submit_reply
        elif request.method == "GET" and "/extract/" in path:
            if len(self.status_replies) > 1:
                status, body = self.status_replies.pop(0)
            else:
                status, body = self.status_replies[0]
        elif request.method == "POST" and path.endswith("/scrape"):
            url = json.loads(request.content)["url"]
            status, body = self.scrape_replies.get(url, (500, {"success": False}))
        else:
            status, body = 404, {"success": False}

        return httpx.Response(status, json=body)


class FakeClock:
    """Monotonic clock advanced only by the fake sleep."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def firecrawl() -> FakeFirecrawl:
    """A fake extraction service."""
    return FakeFirecrawl()


@pytest.fixture
def clock() -> FakeClock:
    """A fake clock whose sleeps return immediately."""
    return FakeClock()


@pytest.fixture
def make_client(firecrawl: FakeFirecrawl, clock: FakeClock) -> Callable[..., ExtractionClient]:
    """Factory for extraction clients talking to the fake service."""

    def factory(**kwargs: Any) -> ExtractionClient:
        kwargs.setdefault("sleep", clock.sleep)
        kwargs.setdefault("clock", clock)
        return ExtractionClient(
            api_key="test-key",
            base_url=TEST_API_URL,
            client=httpx.AsyncClient(transport=httpx.MockTransport(firecrawl.handler)),
            **kwargs,
        )

    return factory
