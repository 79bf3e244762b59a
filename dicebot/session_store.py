from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from datetime import UTC, datetime, timedelta

import redis

from dicebot.api.models import Choice, GameMode, NumberGuessPick, Session, SessionStep
from dicebot.errors import (
    AlreadyActive,
    DiceGameError,
    InvalidInput,
    InvalidRoll,
    ModeMismatch,
    NoActiveSession,
    WrongStep,
)
from dicebot.fsm import advance
from dicebot.lock import ChatLocks
from dicebot.modes import choice_mode, is_die_face, rules_for

logger = logging.getLogger(__name__)

DEFAULT_SESSION_TTL = timedelta(minutes=10)

SESSION_KEY_PREFIX = "dicebot:session:"  # + {chat_id}

Clock = Callable[[], datetime]
Mutation = Callable[[Session | None], Session | None]


def _now() -> datetime:
    return datetime.now(tz=UTC)


def _session_key(chat_id: str) -> str:
    return f"{SESSION_KEY_PREFIX}{chat_id}"


class SessionStore(ABC):
    """Single source of truth for which step each chat is on.

    Holds at most one session per chat id. Subclasses provide an atomic
    per-chat read-modify-write (`_update`); every public mutation is built on
    it, so operations on one chat are linearizable and operations on
    different chats never share a lock.

    Returned sessions are snapshots: mutating them does not touch the store.
    """

    def __init__(self, *, ttl: timedelta = DEFAULT_SESSION_TTL, clock: Clock = _now) -> None:
        if ttl <= timedelta(0):
            raise ValueError("Session TTL must be positive")
        self.ttl = ttl
        self._clock = clock

    # -- backend primitives -------------------------------------------------

    @abstractmethod
    def _load(self, chat_id: str) -> Session | None:
        raise NotImplementedError

    @abstractmethod
    def _update(self, chat_id: str, mutate: Mutation) -> Session | None:
        """Atomically apply `mutate` to the stored session for `chat_id`.

        `mutate` receives a private copy (or None) and returns the session to
        store, or None to delete it. Exceptions leave the stored value as is.
        """

        raise NotImplementedError

    @abstractmethod
    def clear(self, chat_id: str | int) -> None:
        """Remove the chat's session. No error when there is none."""

        raise NotImplementedError

    @abstractmethod
    def evict_stale(self, *, now: datetime | None = None) -> list[str]:
        raise NotImplementedError

    # -- helpers ------------------------------------------------------------

    def is_stale(self, session: Session, *, now: datetime | None = None) -> bool:
        now = now or self._clock()
        return now - session.last_updated_at > self.ttl

    def _live(self, session: Session | None, now: datetime) -> Session | None:
        if session is None or self.is_stale(session, now=now):
            return None
        return session

    def _require_live(self, chat_id: str, session: Session | None, now: datetime) -> Session:
        live = self._live(session, now)
        if live is None:
            raise NoActiveSession(chat_id=chat_id)
        return live

    def _apply(self, action: str, chat_id: str, mutate: Mutation) -> Session:
        try:
            session = self._update(chat_id, mutate)
        except DiceGameError as e:
            logger.debug("Rejected %s for chat %s: %s", action, chat_id, e)
            raise
        assert session is not None
        return session

    # -- public operations --------------------------------------------------

    def get(self, chat_id: str | int) -> Session | None:
        cid = str(chat_id)
        session = self._live(self._load(cid), self._clock())
        return session.model_copy(deep=True) if session is not None else None

    def create(self, chat_id: str | int, mode: GameMode) -> Session:
        cid = str(chat_id)
        mode = GameMode(mode)

        def _mutate(current: Session | None) -> Session:
            now = self._clock()
            live = self._live(current, now)
            if live is not None and live.step != SessionStep.resolved:
                raise AlreadyActive(chat_id=cid, mode=live.mode, step=live.step)
            if current is not None and live is None:
                logger.info("Replacing stale %s session for chat %s", current.mode.value, cid)
            return Session(
                chat_id=cid,
                mode=mode,
                step=rules_for(mode).initial_step,
                created_at=now,
                last_updated_at=now,
            )

        session = self._apply("create", cid, _mutate)
        logger.debug("Created %s session for chat %s", mode.value, cid)
        return session

    def record_choice(self, chat_id: str | int, choice: Choice) -> Session:
        cid = str(chat_id)

        def _mutate(current: Session | None) -> Session:
            now = self._clock()
            session = self._require_live(cid, current, now)
            advance(session, "choice_recorded")
            if choice_mode(choice) != session.mode:
                raise ModeMismatch(chat_id=cid, mode=session.mode, choice_mode=choice_mode(choice).value)
            if isinstance(choice, NumberGuessPick) and not is_die_face(choice.value):
                raise InvalidInput(
                    f"Guess must be an integer in 1..6, got {choice.value!r}",
                    value=choice.value,
                    chat_id=cid,
                )
            session.choice = choice.model_copy()
            session.last_updated_at = now
            return session

        session = self._apply("record_choice", cid, _mutate)
        logger.debug("Chat %s chose %s", cid, choice.value)
        return session

    def record_rolls(
        self,
        chat_id: str | int,
        rolls: Sequence[int],
        *,
        expected_count: int | None = None,
    ) -> Session:
        """Append one or more rolls in a single atomic step.

        With `expected_count`, the session must hold exactly that many rolls
        beforehand, otherwise WrongStep. DiceBattle uses this to record the
        user's and the bot's roll together so no other press can slip between.
        """

        cid = str(chat_id)
        # Range is checked before anything else: a bad roll is rejected in every step.
        for roll in rolls:
            if not is_die_face(roll):
                logger.debug("Rejected record_roll for chat %s: roll %r", cid, roll)
                raise InvalidRoll(value=roll, chat_id=cid)
        if not rolls:
            raise InvalidInput("At least one roll is required", value=list(rolls), chat_id=cid)

        def _mutate(current: Session | None) -> Session:
            now = self._clock()
            session = self._require_live(cid, current, now)
            if expected_count is not None and len(session.rolls) != expected_count:
                raise WrongStep(chat_id=cid, step=session.step, action="roll_recorded")
            for roll in rolls:
                session.rolls.append(roll)
                advance(session, "roll_recorded", roll_count=len(session.rolls))
            session.last_updated_at = now
            return session

        session = self._apply("record_roll", cid, _mutate)
        logger.debug("Chat %s rolled %s (step: %s)", cid, ",".join(map(str, rolls)), session.step.value)
        return session

    def record_roll(self, chat_id: str | int, roll: int, *, expected_count: int | None = None) -> Session:
        return self.record_rolls(chat_id, [roll], expected_count=expected_count)

    def mark_resolved(self, chat_id: str | int) -> Session:
        cid = str(chat_id)

        def _mutate(current: Session | None) -> Session:
            now = self._clock()
            session = self._require_live(cid, current, now)
            advance(session, "resolve")
            session.last_updated_at = now
            return session

        session = self._apply("mark_resolved", cid, _mutate)
        logger.debug("Resolved %s session for chat %s", session.mode.value, cid)
        return session


class MemorySessionStore(SessionStore):
    """Process-local store with one lock per chat id."""

    def __init__(self, *, ttl: timedelta = DEFAULT_SESSION_TTL, clock: Clock = _now) -> None:
        super().__init__(ttl=ttl, clock=clock)
        self._sessions: dict[str, Session] = {}
        self._locks = ChatLocks()

    def __len__(self) -> int:
        return len(self._sessions)

    def _load(self, chat_id: str) -> Session | None:
        return self._sessions.get(chat_id)

    def _update(self, chat_id: str, mutate: Mutation) -> Session | None:
        with self._locks.hold(chat_id):
            current = self._sessions.get(chat_id)
            updated = mutate(current.model_copy(deep=True) if current is not None else None)
            if updated is None:
                self._sessions.pop(chat_id, None)
                return None
            self._sessions[chat_id] = updated
            return updated.model_copy(deep=True)

    def clear(self, chat_id: str | int) -> None:
        cid = str(chat_id)
        with self._locks.hold(cid):
            removed = self._sessions.pop(cid, None)
        if removed is not None:
            logger.debug("Cleared %s session for chat %s", removed.mode.value, cid)

    def evict_stale(self, *, now: datetime | None = None) -> list[str]:
        evicted: list[str] = []
        for cid in list(self._sessions):
            # Same per-chat lock as create(), so an eviction never races a new game.
            with self._locks.hold(cid):
                session = self._sessions.get(cid)
                if session is not None and self.is_stale(session, now=now):
                    del self._sessions[cid]
                    evicted.append(cid)

        if evicted:
            logger.info("Evicted %d stale session(s): %s", len(evicted), ",".join(evicted))
        return evicted


class RedisSessionStore(SessionStore):
    """Redis-backed store: one JSON key per chat, expiring after the TTL.

    Read-modify-write runs in a WATCH/MULTI transaction on the chat's key, so
    concurrent writers to one chat are serialized by Redis (losers retry and
    then observe the winner's state) and different chats never contend.
    Redis expires idle keys itself, which makes eviction atomic with creation.
    """

    def __init__(self, *, r: redis.Redis, ttl: timedelta = DEFAULT_SESSION_TTL, clock: Clock = _now) -> None:
        super().__init__(ttl=ttl, clock=clock)
        self._r = r

    @property
    def _ttl_ms(self) -> int:
        return max(1, int(self.ttl.total_seconds() * 1000))

    def _load(self, chat_id: str) -> Session | None:
        raw = self._r.get(_session_key(chat_id))
        if not raw:
            return None
        return Session.model_validate_json(raw)

    def _update(self, chat_id: str, mutate: Mutation) -> Session | None:
        key = _session_key(chat_id)
        result: list[Session | None] = [None]

        def _txn(pipe: redis.client.Pipeline) -> None:
            raw = pipe.get(key)
            current = Session.model_validate_json(raw) if raw else None
            updated = mutate(current)
            pipe.multi()
            if updated is None:
                pipe.delete(key)
            else:
                pipe.set(key, updated.model_dump_json(), px=self._ttl_ms)
            result[0] = updated

        self._r.transaction(_txn, key)
        return result[0]

    def clear(self, chat_id: str | int) -> None:
        cid = str(chat_id)
        if self._r.delete(_session_key(cid)):
            logger.debug("Cleared session for chat %s", cid)

    def evict_stale(self, *, now: datetime | None = None) -> list[str]:
        # Keys carry a TTL; Redis evicts them without our help.
        return []
