from __future__ import annotations

from dataclasses import dataclass

from dicebot.api.models import Choice, GameMode, SessionStep

DIE_FACES = range(1, 7)


@dataclass(frozen=True, slots=True)
class ModeRules:
    takes_choice: bool
    required_rolls: int

    @property
    def initial_step(self) -> SessionStep:
        return SessionStep.awaiting_choice if self.takes_choice else SessionStep.awaiting_roll


MODE_RULES: dict[GameMode, ModeRules] = {
    GameMode.even_odd: ModeRules(takes_choice=True, required_rolls=1),
    GameMode.high_low: ModeRules(takes_choice=True, required_rolls=1),
    GameMode.number_guess: ModeRules(takes_choice=True, required_rolls=1),
    # User roll + opponent roll; no choice step.
    GameMode.dice_battle: ModeRules(takes_choice=False, required_rolls=2),
}


def rules_for(mode: GameMode) -> ModeRules:
    return MODE_RULES[mode]


def is_die_face(value: object) -> bool:
    # bool is an int subclass; True must not pass as a roll of 1.
    return isinstance(value, int) and not isinstance(value, bool) and value in DIE_FACES


def choice_mode(choice: Choice) -> GameMode:
    """The game mode a choice belongs to, read from its tag."""

    return GameMode(choice.mode)
