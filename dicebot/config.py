from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import timedelta
from typing import Literal, cast

from dotenv import load_dotenv

from dicebot.infra.redis_client import DEFAULT_REDIS_URL

StoreBackend = Literal["memory", "redis"]


@dataclass(frozen=True, slots=True)
class Settings:
    store_backend: StoreBackend = "memory"
    redis_url: str = DEFAULT_REDIS_URL
    # Idle sessions older than this are treated as abandoned.
    session_ttl_seconds: int = 600
    # 0 disables the background sweeper.
    sweep_interval_seconds: int = 60
    log_level: str = "INFO"

    @property
    def session_ttl(self) -> timedelta:
        return timedelta(seconds=self.session_ttl_seconds)


def _int_env(env: Mapping[str, str], name: str, default: int, *, minimum: int) -> int:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from e
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}, got {value}")
    return value


def _log_level_env(env: Mapping[str, str]) -> str:
    level = env.get("DICEBOT_LOG_LEVEL", "INFO").strip().upper() or "INFO"
    if level not in logging.getLevelNamesMapping():
        raise ValueError(f"DICEBOT_LOG_LEVEL must be a logging level name, got {level!r}")
    return level


def load_settings(env: Mapping[str, str] | None = None, *, dotenv: bool = True) -> Settings:
    """Build Settings from environment variables.

    When reading the real process environment, a `.env` file in the working
    directory is loaded first (without overriding variables already set).
    """

    if env is None:
        if dotenv:
            load_dotenv(override=False)
        env = os.environ

    backend = env.get("DICEBOT_STORE", "memory").strip().lower()
    if backend not in {"memory", "redis"}:
        raise ValueError(f"DICEBOT_STORE must be 'memory' or 'redis', got {backend!r}")

    return Settings(
        store_backend=cast(StoreBackend, backend),
        redis_url=env.get("REDIS_URL") or DEFAULT_REDIS_URL,
        session_ttl_seconds=_int_env(env, "DICEBOT_SESSION_TTL_SECONDS", 600, minimum=1),
        sweep_interval_seconds=_int_env(env, "DICEBOT_SWEEP_INTERVAL_SECONDS", 60, minimum=0),
        log_level=_log_level_env(env),
    )
