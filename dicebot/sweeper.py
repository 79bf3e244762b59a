from __future__ import annotations

import asyncio
import logging

from dicebot.session_store import SessionStore

logger = logging.getLogger(__name__)


class StaleSessionSweeper:
    """Periodically evicts idle sessions from a store.

    Best effort: a failed sweep is logged and the loop keeps going. Eviction
    itself goes through the store, which takes the chat's lock, so a sweep
    never races a new game for the same chat.
    """

    def __init__(self, store: SessionStore, *, interval_seconds: float) -> None:
        if interval_seconds <= 0:
            raise ValueError("Sweep interval must be positive")
        self._store = store
        self._interval = interval_seconds
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def sweep_once(self) -> list[str]:
        return self._store.evict_stale()

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                self.sweep_once()
            except Exception:
                logger.exception("Stale session sweep failed")

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run(), name="dicebot-sweeper")

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
