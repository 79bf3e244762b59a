from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from typing import Protocol

from dicebot.api.models import (
    Choice,
    GameMode,
    Outcome,
    OutcomeCategory,
    PlayResult,
    Session,
    SessionStep,
)
from dicebot.errors import ModeMismatch, NoActiveSession
from dicebot.resolution import resolve_session
from dicebot.session_store import SessionStore

logger = logging.getLogger(__name__)


WIN_MESSAGES = (
    "🎉 Congratulations! You guessed it!",
    "🎊 Great! That's the right answer!",
    "✨ Brilliant! You win!",
    "🏆 Bravo! Spot on!",
    "🎯 Excellent! You called it!",
)

LOSE_MESSAGES = (
    "😔 Not this time, but don't be upset!",
    "🎲 No luck this round, try again!",
    "💪 No big deal, luck will smile on you next time!",
    "🌟 Don't worry, you'll get it!",
    "🎮 Nothing ventured, nothing gained. Play again!",
)

BATTLE_MESSAGES = {
    OutcomeCategory.win: "🎉 You win!",
    OutcomeCategory.lose: "🤖 The bot wins!",
    OutcomeCategory.tie: "🤝 It's a tie!",
}


class RollSource(Protocol):
    def roll(self) -> int: ...


@dataclass(slots=True)
class RandomRollSource:
    """Die rolls from a `random.Random` (system-seeded unless one is given)."""

    rng: random.Random = field(default_factory=lambda: random.Random(random.SystemRandom().randint(1, 2**31 - 1)))

    def roll(self) -> int:
        return self.rng.randint(1, 6)


@dataclass(slots=True)
class FixedRollSource:
    """Replays scripted rolls front to back; more can be queued with `push`."""

    rolls: list[int] = field(default_factory=list)

    def push(self, *values: int) -> None:
        self.rolls.extend(values)

    def roll(self) -> int:
        if not self.rolls:
            raise RuntimeError("FixedRollSource is exhausted")
        return self.rolls.pop(0)


def _describe_choice(outcome: Outcome) -> str:
    choice = outcome.choice
    if choice is None:
        return ""
    return str(choice.value)


def render_outcome(outcome: Outcome, *, rng: random.Random | None = None) -> str:
    """Human-readable result line for a chat message."""

    if outcome.mode == GameMode.dice_battle:
        user_roll, opponent_roll = outcome.rolls
        return f"Your roll: {user_roll}. Bot roll: {opponent_roll}. {BATTLE_MESSAGES[outcome.category]}"

    pick = rng or random
    headline = pick.choice(WIN_MESSAGES if outcome.category == OutcomeCategory.win else LOSE_MESSAGES)
    return f"🎲 Rolled {outcome.rolls[0]}, you picked {_describe_choice(outcome)}. {headline}"


class DiceGameService:
    """Drives a chat's game through the store and the resolution engine.

    The store only tracks steps; resolution only computes outcomes. This
    class glues them together the way a chat transport does: commit the
    user's input, roll, resolve once ready, then free the chat.
    """

    def __init__(
        self,
        *,
        store: SessionStore,
        rolls: RollSource | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.store = store
        self.rolls = rolls or RandomRollSource()
        self._rng = rng or random.Random()

    def start(self, chat_id: str | int, mode: GameMode) -> Session:
        return self.store.create(chat_id, mode)

    def session(self, chat_id: str | int) -> Session | None:
        return self.store.get(chat_id)

    def cancel(self, chat_id: str | int) -> None:
        self.store.clear(chat_id)

    def resolve(self, chat_id: str | int) -> Outcome:
        """Resolve a ready session, mark it resolved and free the chat."""

        session = self.store.mark_resolved(chat_id)
        try:
            outcome = resolve_session(session)
        finally:
            self.store.clear(chat_id)
        logger.info("Chat %s finished %s: %s", session.chat_id, session.mode.value, outcome.category.value)
        return outcome

    def _finish(self, chat_id: str | int) -> PlayResult:
        outcome = self.resolve(chat_id)
        return PlayResult(outcome=outcome, message=render_outcome(outcome, rng=self._rng))

    def choose(self, chat_id: str | int, choice: Choice) -> PlayResult:
        """Commit a choice, roll the die for the user and resolve."""

        self.store.record_choice(chat_id, choice)
        self.store.record_roll(chat_id, self.rolls.roll())
        return self._finish(chat_id)

    def battle(self, chat_id: str | int, user_roll: int | None = None) -> PlayResult:
        """Record the user's roll (or roll for them), then the bot's, and resolve."""

        current = self.store.get(chat_id)
        if current is None:
            raise NoActiveSession(chat_id=str(chat_id))
        if current.mode != GameMode.dice_battle:
            raise ModeMismatch(chat_id=current.chat_id, mode=current.mode, choice_mode=GameMode.dice_battle.value)

        user = self.rolls.roll() if user_roll is None else user_roll
        opponent = self.rolls.roll()
        # Both rolls in one store update, and only while the session has none.
        self.store.record_rolls(chat_id, [user, opponent], expected_count=0)
        return self._finish(chat_id)

    def roll(self, chat_id: str | int, roll: int) -> Session | PlayResult:
        """Record one externally produced roll; resolve once the session is ready."""

        session = self.store.record_roll(chat_id, roll)
        if session.step == SessionStep.ready_to_resolve:
            return self._finish(chat_id)
        return session
