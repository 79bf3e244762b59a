from __future__ import annotations

from functools import lru_cache

from dicebot.config import Settings, load_settings
from dicebot.infra.redis_client import create_redis
from dicebot.service import DiceGameService
from dicebot.session_store import MemorySessionStore, RedisSessionStore, SessionStore


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()


def build_store(settings: Settings) -> SessionStore:
    if settings.store_backend == "redis":
        return RedisSessionStore(r=create_redis(settings.redis_url), ttl=settings.session_ttl)
    return MemorySessionStore(ttl=settings.session_ttl)


@lru_cache(maxsize=1)
def get_store() -> SessionStore:
    # One store per process: the memory backend *is* the session state.
    return build_store(get_settings())


def get_service() -> DiceGameService:
    return DiceGameService(store=get_store())
