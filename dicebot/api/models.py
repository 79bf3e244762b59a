from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Annotated, Literal

from pydantic import BaseModel, Field


class GameMode(StrEnum):
    even_odd = "even_odd"
    high_low = "high_low"
    dice_battle = "dice_battle"
    number_guess = "number_guess"


class SessionStep(StrEnum):
    awaiting_choice = "awaiting_choice"
    awaiting_roll = "awaiting_roll"
    ready_to_resolve = "ready_to_resolve"
    resolved = "resolved"


class OutcomeCategory(StrEnum):
    win = "win"
    lose = "lose"
    tie = "tie"


class EvenOddChoice(StrEnum):
    even = "even"
    odd = "odd"


class HighLowChoice(StrEnum):
    # high = 4..6, low = 1..3
    high = "high"
    low = "low"


class EvenOddPick(BaseModel):
    mode: Literal["even_odd"] = "even_odd"
    value: EvenOddChoice


class HighLowPick(BaseModel):
    mode: Literal["high_low"] = "high_low"
    value: HighLowChoice


class NumberGuessPick(BaseModel):
    mode: Literal["number_guess"] = "number_guess"

    # Range is enforced by the store / resolution engine so out-of-range
    # guesses surface as InvalidInput instead of a schema error.
    value: int


Choice = Annotated[EvenOddPick | HighLowPick | NumberGuessPick, Field(discriminator="mode")]


class Session(BaseModel):
    chat_id: str
    mode: GameMode
    step: SessionStep
    created_at: datetime
    last_updated_at: datetime

    # Set once by record_choice; never overwritten afterwards.
    choice: Choice | None = None

    # User roll first; DiceBattle appends the opponent roll second.
    rolls: list[int] = Field(default_factory=list)


class Outcome(BaseModel):
    mode: GameMode
    category: OutcomeCategory
    rolls: list[int]
    choice: Choice | None = None


class SessionCreateRequest(BaseModel):
    mode: GameMode


class ChoiceRequest(BaseModel):
    choice: Choice


class RollRequest(BaseModel):
    roll: int


class BattleRequest(BaseModel):
    # None => the server rolls for the user too.
    roll: int | None = None


class PlayResult(BaseModel):
    outcome: Outcome
    message: str
