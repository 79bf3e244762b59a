from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest

from dicebot.api.deps import build_store
from dicebot.api.models import GameMode
from dicebot.config import Settings, load_settings
from dicebot.session_store import MemorySessionStore, RedisSessionStore
from dicebot.sweeper import StaleSessionSweeper


def test_settings_defaults() -> None:
    s = load_settings({})
    assert s == Settings()
    assert s.session_ttl == timedelta(minutes=10)


def test_settings_from_env() -> None:
    s = load_settings(
        {
            "DICEBOT_STORE": "Redis",
            "REDIS_URL": "redis://cache:6379/3",
            "DICEBOT_SESSION_TTL_SECONDS": "120",
            "DICEBOT_SWEEP_INTERVAL_SECONDS": "0",
            "DICEBOT_LOG_LEVEL": "debug",
        }
    )
    assert s.store_backend == "redis"
    assert s.redis_url == "redis://cache:6379/3"
    assert s.session_ttl_seconds == 120
    assert s.sweep_interval_seconds == 0
    assert s.log_level == "DEBUG"


@pytest.mark.parametrize(
    "env",
    [
        {"DICEBOT_STORE": "postgres"},
        {"DICEBOT_SESSION_TTL_SECONDS": "ten"},
        {"DICEBOT_SESSION_TTL_SECONDS": "0"},
        {"DICEBOT_SWEEP_INTERVAL_SECONDS": "-5"},
        {"DICEBOT_LOG_LEVEL": "VERBOSE"},
    ],
)
def test_settings_reject_bad_values(env: dict[str, str]) -> None:
    with pytest.raises(ValueError):
        load_settings(env)


def test_build_store_picks_backend() -> None:
    mem = build_store(Settings(session_ttl_seconds=30))
    assert isinstance(mem, MemorySessionStore)
    assert mem.ttl == timedelta(seconds=30)

    # redis-py connects lazily, so no server is needed to construct it.
    red = build_store(Settings(store_backend="redis"))
    assert isinstance(red, RedisSessionStore)


def test_sweep_once_evicts(memory_store: MemorySessionStore, clock) -> None:  # type: ignore[no-untyped-def]
    memory_store.create("idle", GameMode.even_odd)
    clock.advance(hours=1)

    sweeper = StaleSessionSweeper(memory_store, interval_seconds=60)
    assert sweeper.sweep_once() == ["idle"]


def test_sweeper_rejects_bad_interval(memory_store: MemorySessionStore) -> None:
    with pytest.raises(ValueError):
        StaleSessionSweeper(memory_store, interval_seconds=0)


@pytest.mark.asyncio
async def test_sweeper_runs_in_background(memory_store: MemorySessionStore, clock) -> None:  # type: ignore[no-untyped-def]
    memory_store.create("idle", GameMode.dice_battle)
    clock.advance(hours=1)

    sweeper = StaleSessionSweeper(memory_store, interval_seconds=0.01)
    sweeper.start()
    assert sweeper.running
    try:
        for _ in range(100):
            if len(memory_store) == 0:
                break
            await asyncio.sleep(0.01)
    finally:
        await sweeper.stop()

    assert len(memory_store) == 0
    assert not sweeper.running


def test_settings_accept_standard_log_levels() -> None:
    for name in ("debug", "INFO", "Warning", "ERROR", "critical"):
        assert load_settings({"DICEBOT_LOG_LEVEL": name}).log_level == name.upper()
