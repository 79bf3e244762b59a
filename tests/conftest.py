from __future__ import annotations

import os
from collections.abc import Generator
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

import fakeredis
import pytest
from fastapi.testclient import TestClient

from dicebot.service import FixedRollSource
from dicebot.session_store import MemorySessionStore, RedisSessionStore, SessionStore

# Keep tests hermetic: never pick up a developer's .env store settings.
os.environ.setdefault("DICEBOT_STORE", "memory")
os.environ.setdefault("DICEBOT_SWEEP_INTERVAL_SECONDS", "0")


class FakeClock:
    """Manually advanced UTC clock for staleness tests."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2025, 1, 1, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def memory_store(clock: FakeClock) -> MemorySessionStore:
    return MemorySessionStore(ttl=timedelta(minutes=10), clock=clock)


@pytest.fixture()
def fake_redis() -> fakeredis.FakeRedis:
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture()
def redis_store(fake_redis: fakeredis.FakeRedis, clock: FakeClock) -> RedisSessionStore:
    return RedisSessionStore(r=fake_redis, ttl=timedelta(minutes=10), clock=clock)


@pytest.fixture(params=["memory", "redis"])
def store(request: pytest.FixtureRequest) -> SessionStore:
    """Runs a test once per backend."""

    return request.getfixturevalue(f"{request.param}_store")


@dataclass(slots=True)
class ApiHarness:
    client: TestClient
    store: MemorySessionStore
    # Rolls the server will "throw"; queue them with `rolls.push(...)`.
    rolls: FixedRollSource = field(default_factory=FixedRollSource)


@pytest.fixture()
def api() -> Generator[ApiHarness, None, None]:
    """FastAPI TestClient wired to a private memory store and scripted rolls."""

    from dicebot.api.deps import get_service
    from dicebot.main import app
    from dicebot.service import DiceGameService

    s = MemorySessionStore()
    rolls = FixedRollSource()

    def _override() -> DiceGameService:
        return DiceGameService(store=s, rolls=rolls)

    app.dependency_overrides[get_service] = _override
    with TestClient(app) as c:
        yield ApiHarness(client=c, store=s, rolls=rolls)
    app.dependency_overrides.clear()
