"""Error taxonomy for session and resolution failures.

Every error is recoverable: the caller reports it to the user and re-offers
the current valid action. They subclass ValueError so API routes can keep
mapping "bad request for the current game state" failures uniformly.
"""

from __future__ import annotations

from typing import Any

from dicebot.api.models import GameMode, SessionStep


class DiceGameError(ValueError):
    """Base class for all session/resolution errors."""

    def __init__(self, message: str, *, chat_id: str | None = None):
        self.chat_id = chat_id
        super().__init__(message)


class AlreadyActive(DiceGameError):
    def __init__(self, *, chat_id: str, mode: GameMode, step: SessionStep):
        self.mode = mode
        self.step = step
        super().__init__(
            f"Chat {chat_id} already has an active {mode.value} game (step: {step.value})",
            chat_id=chat_id,
        )


class NoActiveSession(DiceGameError):
    def __init__(self, *, chat_id: str):
        super().__init__(f"Chat {chat_id} has no active game", chat_id=chat_id)


class WrongStep(DiceGameError):
    def __init__(self, *, chat_id: str | None, step: SessionStep, action: str):
        self.step = step
        self.action = action
        super().__init__(f"Action '{action}' not allowed in step '{step.value}'", chat_id=chat_id)


class ModeMismatch(DiceGameError):
    def __init__(self, *, chat_id: str, mode: GameMode, choice_mode: str):
        self.mode = mode
        self.choice_mode = choice_mode
        super().__init__(
            f"A {choice_mode} choice does not fit a {mode.value} game",
            chat_id=chat_id,
        )


class InvalidInput(DiceGameError):
    """A roll or choice outside its domain."""

    def __init__(self, message: str, *, value: Any = None, chat_id: str | None = None):
        self.value = value
        super().__init__(message, chat_id=chat_id)


class InvalidRoll(InvalidInput):
    def __init__(self, *, value: Any, chat_id: str | None = None):
        super().__init__(f"Roll must be an integer in 1..6, got {value!r}", value=value, chat_id=chat_id)
