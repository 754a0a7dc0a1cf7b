"""Pytest configuration and shared fixtures."""
from __future__ import annotations

import asyncio
import os
from collections import defaultdict
from decimal import Decimal
from typing import Any, Generator, Sequence

# Settings require DATABASE_URL at import time; tests never touch this engine.
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from catalog.core.exceptions import InferenceError, InferenceNotConfiguredError
from catalog.models.base import Base
from catalog.models.product import Product
from catalog.services.inference import TranslatedContent

# In-memory SQLite by default; point TEST_DATABASE_URL at PostgreSQL to match production
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite://")


@pytest.fixture
def db_engine():
    """Create a fresh database for each test."""
    if TEST_DATABASE_URL.startswith("sqlite"):
        engine = create_engine(
            TEST_DATABASE_URL,
            future=True,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        engine = create_engine(TEST_DATABASE_URL, future=True, pool_pre_ping=True)

    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db_session(db_engine) -> Generator[Session, None, None]:
    """Provide a database session configured like the application's."""
    SessionLocal = sessionmaker(bind=db_engine, autoflush=False, autocommit=False, expire_on_commit=False)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def make_product(db_session: Session):
    """Factory inserting a product with sensible defaults."""
    counter = {"ext_id": 1000}

    def _make(**overrides: Any) -> Product:
        counter["ext_id"] += 1
        fields: dict[str, Any] = {
            "ext_id": counter["ext_id"],
            "title": "Sample product",
            "description": "A product used in tests",
            "price": Decimal("10.00"),
            "category": "General",
            "image": "https://example.com/img.png",
            "ai_summary": None,
        }
        fields.update(overrides)
        product = Product(**fields)
        db_session.add(product)
        db_session.commit()
        db_session.refresh(product)
        return product

    return _make


class FakeInference:
    """Scripted stand-in for ``InferenceService``.

    Responses are looked up by input text; anything listed in ``fail_on``
    raises ``InferenceError``. Every call is recorded in ``calls``.
    """

    def __init__(
        self,
        *,
        configured: bool = True,
        summaries: dict[str, str] | None = None,
        category: str | None = None,
        translations: dict[str, TranslatedContent] | None = None,
        fail_on: Sequence[str] = (),
    ) -> None:
        self.configured = configured
        self.summaries = summaries or {}
        self.category = category
        self.translations = translations or {}
        self.fail_on = set(fail_on)
        self.calls: list[tuple[str, Any]] = []

    def is_configured(self) -> bool:
        return self.configured

    def _check(self, key: str) -> None:
        if not self.configured:
            raise InferenceNotConfiguredError()
        if key in self.fail_on:
            raise InferenceError(f"provider rejected {key}")

    async def summarize(self, text: str) -> str:
        self.calls.append(("summarize", text))
        self._check(text)
        return self.summaries.get(text, f"Summary of {text}")

    async def infer_category(self, title: str, description: str, categories: Sequence[str]) -> str:
        self.calls.append(("infer_category", (title, list(categories))))
        self._check(title)
        return self.category if self.category is not None else categories[0]

    async def translate(self, title: str, description: str, target_language: str) -> TranslatedContent:
        self.calls.append(("translate", (title, target_language)))
        self._check(title)
        if title in self.translations:
            return self.translations[title]
        return TranslatedContent(title=f"[{target_language}] {title}", description=f"[{target_language}] {description}")


@pytest.fixture
def fake_inference() -> FakeInference:
    return FakeInference()


@pytest.fixture
def unconfigured_inference() -> FakeInference:
    return FakeInference(configured=False)


class FakeRedis:
    """Minimal async-friendly Redis stub for unit tests."""

    def __init__(self) -> None:
        self._hashes: dict[str, dict[str, str]] = {}
        self._channels: defaultdict[str, list[asyncio.Queue[str]]] = defaultdict(list)

    async def hset(self, key: str, mapping: dict[str, str]) -> int:
        bucket = self._hashes.setdefault(key, {})
        bucket.update(mapping)
        return len(mapping)

    async def expire(self, key: str, ttl: int) -> bool:
        # TTL not simulated for tests, just return truthy success.
        return key in self._hashes

    async def hgetall(self, key: str) -> dict[str, str]:
        return dict(self._hashes.get(key, {}))

    async def publish(self, channel: str, message: str) -> int:
        queues = self._channels.get(channel, [])
        for queue in queues:
            await queue.put(message)
        return len(queues)

    def pubsub(self) -> "FakePubSub":
        return FakePubSub(self)

    async def aclose(self) -> None:
        return None


class FakePubSub:
    def __init__(self, redis: FakeRedis) -> None:
        self._redis = redis
        self._queue: asyncio.Queue[str] | None = None

    async def subscribe(self, channel: str) -> None:
        queue: asyncio.Queue[str] = asyncio.Queue()
        self._redis._channels[channel].append(queue)
        self._queue = queue

    async def unsubscribe(self, channel: str) -> None:
        if self._queue in self._redis._channels.get(channel, []):
            self._redis._channels[channel].remove(self._queue)

    async def aclose(self) -> None:
        self._queue = None

    async def get_message(self, ignore_subscribe_messages: bool, timeout: float | None = None):
        if not self._queue:
            return None
        try:
            data = await asyncio.wait_for(self._queue.get(), timeout)
        except asyncio.TimeoutError:
            return None
        return {"type": "message", "data": data}


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()
