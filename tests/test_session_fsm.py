from __future__ import annotations

from datetime import UTC, datetime

import pytest

from dicebot.api.models import GameMode, Session, SessionStep
from dicebot.errors import WrongStep
from dicebot.fsm import SessionFSM, advance
from dicebot.modes import MODE_RULES, rules_for


def _session(mode: GameMode, step: SessionStep | None = None) -> Session:
    ts = datetime(2025, 1, 1, tzinfo=UTC)
    return Session(
        chat_id="c1",
        mode=mode,
        step=step or rules_for(mode).initial_step,
        created_at=ts,
        last_updated_at=ts,
    )


def test_every_mode_has_rules() -> None:
    assert set(MODE_RULES) == set(GameMode)
    assert rules_for(GameMode.dice_battle).initial_step == SessionStep.awaiting_roll
    assert rules_for(GameMode.dice_battle).required_rolls == 2
    for mode in (GameMode.even_odd, GameMode.high_low, GameMode.number_guess):
        assert rules_for(mode).initial_step == SessionStep.awaiting_choice
        assert rules_for(mode).required_rolls == 1


def test_fsm_starts_from_session_step() -> None:
    fsm = SessionFSM(_session(GameMode.dice_battle))
    assert fsm.current_state.value == SessionStep.awaiting_roll.value


def test_choice_mode_walks_to_resolved() -> None:
    s = _session(GameMode.even_odd)

    advance(s, "choice_recorded")
    assert s.step == SessionStep.awaiting_roll

    advance(s, "roll_recorded", roll_count=1)
    assert s.step == SessionStep.ready_to_resolve

    advance(s, "resolve")
    assert s.step == SessionStep.resolved


def test_dice_battle_needs_two_rolls() -> None:
    s = _session(GameMode.dice_battle)

    advance(s, "roll_recorded", roll_count=1)
    assert s.step == SessionStep.awaiting_roll

    advance(s, "roll_recorded", roll_count=2)
    assert s.step == SessionStep.ready_to_resolve


def test_out_of_order_events_raise_wrong_step() -> None:
    with pytest.raises(WrongStep) as e:
        advance(_session(GameMode.even_odd), "roll_recorded", roll_count=1)
    assert e.value.step == SessionStep.awaiting_choice
    assert "roll_recorded" in str(e.value)

    with pytest.raises(WrongStep):
        advance(_session(GameMode.dice_battle), "choice_recorded")

    with pytest.raises(WrongStep):
        advance(_session(GameMode.high_low), "resolve")


def test_resolved_is_terminal() -> None:
    s = _session(GameMode.number_guess, SessionStep.resolved)
    for event, kwargs in (("choice_recorded", {}), ("roll_recorded", {"roll_count": 1}), ("resolve", {})):
        with pytest.raises(WrongStep):
            advance(s, event, **kwargs)
    assert s.step == SessionStep.resolved


def test_choice_mode_reads_the_tag() -> None:
    from dicebot.api.models import EvenOddChoice, EvenOddPick, HighLowChoice, HighLowPick, NumberGuessPick
    from dicebot.modes import choice_mode

    assert choice_mode(EvenOddPick(value=EvenOddChoice.odd)) == GameMode.even_odd
    assert choice_mode(HighLowPick(value=HighLowChoice.high)) == GameMode.high_low
    assert choice_mode(NumberGuessPick(value=4)) == GameMode.number_guess
