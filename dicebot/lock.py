from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass


@dataclass(slots=True)
class _LockEntry:
    lock: threading.Lock
    holders: int = 0


class ChatLocks:
    """In-process lock table keyed by chat id.

    Contract:
      - `with locks.hold(chat_id):` serializes all work for that chat id.
      - different chat ids never wait on each other; `_guard` is only held
        while an entry is looked up or dropped, never while a chat lock is held.

    Entries are reference counted so a lock is dropped only when nobody holds
    or waits on it; dropping it earlier would let two threads hold two
    different locks for the same chat.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._entries: dict[str, _LockEntry] = {}

    @contextmanager
    def hold(self, chat_id: str) -> Iterator[None]:
        with self._guard:
            entry = self._entries.get(chat_id)
            if entry is None:
                entry = _LockEntry(lock=threading.Lock())
                self._entries[chat_id] = entry
            entry.holders += 1

        entry.lock.acquire()
        try:
            yield
        finally:
            entry.lock.release()
            with self._guard:
                entry.holders -= 1
                if entry.holders == 0:
                    self._entries.pop(chat_id, None)

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)
