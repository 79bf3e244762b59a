"""Outcome resolution.

Pure functions: no session mutation, no I/O, no randomness. Rolls come in
already generated; every resolver re-checks its inputs and raises
InvalidInput rather than returning an outcome computed from bad data.
"""

from __future__ import annotations

from typing import assert_never

from dicebot.api.models import (
    EvenOddChoice,
    EvenOddPick,
    GameMode,
    HighLowChoice,
    HighLowPick,
    NumberGuessPick,
    Outcome,
    OutcomeCategory,
    Session,
    SessionStep,
)
from dicebot.errors import InvalidInput, InvalidRoll, WrongStep
from dicebot.modes import is_die_face, rules_for

HIGH_FACES = frozenset({4, 5, 6})
LOW_FACES = frozenset({1, 2, 3})


def _check_roll(roll: object) -> int:
    if not is_die_face(roll):
        raise InvalidRoll(value=roll)
    return roll  # type: ignore[return-value]


def _win_or_lose(won: bool) -> OutcomeCategory:
    return OutcomeCategory.win if won else OutcomeCategory.lose


def resolve_even_odd(roll: int, choice: EvenOddChoice) -> Outcome:
    roll = _check_roll(roll)
    if not isinstance(choice, EvenOddChoice):
        raise InvalidInput(f"Expected an even/odd choice, got {choice!r}", value=choice)

    is_even = roll % 2 == 0
    won = is_even if choice == EvenOddChoice.even else not is_even
    return Outcome(
        mode=GameMode.even_odd,
        category=_win_or_lose(won),
        rolls=[roll],
        choice=EvenOddPick(value=choice),
    )


def resolve_high_low(roll: int, choice: HighLowChoice) -> Outcome:
    roll = _check_roll(roll)
    if not isinstance(choice, HighLowChoice):
        raise InvalidInput(f"Expected a high/low choice, got {choice!r}", value=choice)

    faces = HIGH_FACES if choice == HighLowChoice.high else LOW_FACES
    return Outcome(
        mode=GameMode.high_low,
        category=_win_or_lose(roll in faces),
        rolls=[roll],
        choice=HighLowPick(value=choice),
    )


def resolve_number_guess(roll: int, guess: int) -> Outcome:
    roll = _check_roll(roll)
    if not is_die_face(guess):
        raise InvalidInput(f"Guess must be an integer in 1..6, got {guess!r}", value=guess)

    return Outcome(
        mode=GameMode.number_guess,
        category=_win_or_lose(roll == guess),
        rolls=[roll],
        choice=NumberGuessPick(value=guess),
    )


def resolve_dice_battle(user_roll: int, opponent_roll: int) -> Outcome:
    user_roll = _check_roll(user_roll)
    opponent_roll = _check_roll(opponent_roll)

    if user_roll > opponent_roll:
        category = OutcomeCategory.win
    elif user_roll < opponent_roll:
        category = OutcomeCategory.lose
    elif user_roll == opponent_roll:
        category = OutcomeCategory.tie

    return Outcome(mode=GameMode.dice_battle, category=category, rolls=[user_roll, opponent_roll])


def resolve_session(session: Session) -> Outcome:
    """Resolve a session whose inputs are complete.

    Accepts ReadyToResolve and Resolved sessions so an outcome can be
    re-rendered before the caller clears the chat.
    """

    if session.step not in {SessionStep.ready_to_resolve, SessionStep.resolved}:
        raise WrongStep(chat_id=session.chat_id, step=session.step, action="resolve")

    required = rules_for(session.mode).required_rolls
    if len(session.rolls) != required:
        raise InvalidInput(
            f"{session.mode.value} needs {required} roll(s), session has {len(session.rolls)}",
            value=list(session.rolls),
            chat_id=session.chat_id,
        )

    mode = session.mode
    choice = session.choice
    match mode:
        case GameMode.even_odd:
            if not isinstance(choice, EvenOddPick):
                raise InvalidInput("even_odd session has no even/odd choice", value=choice, chat_id=session.chat_id)
            return resolve_even_odd(session.rolls[0], choice.value)
        case GameMode.high_low:
            if not isinstance(choice, HighLowPick):
                raise InvalidInput("high_low session has no high/low choice", value=choice, chat_id=session.chat_id)
            return resolve_high_low(session.rolls[0], choice.value)
        case GameMode.number_guess:
            if not isinstance(choice, NumberGuessPick):
                raise InvalidInput("number_guess session has no guess", value=choice, chat_id=session.chat_id)
            return resolve_number_guess(session.rolls[0], choice.value)
        case GameMode.dice_battle:
            return resolve_dice_battle(session.rolls[0], session.rolls[1])
        case _:
            assert_never(mode)
