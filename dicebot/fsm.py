from __future__ import annotations

from typing import Any

from statemachine import State, StateMachine
from statemachine.exceptions import TransitionNotAllowed

from dicebot.api.models import Session, SessionStep
from dicebot.errors import WrongStep
from dicebot.modes import rules_for


class SessionFSM(StateMachine):
    """FSM wrapper around a Session.

    - steps: awaiting choice -> awaiting roll(s) -> ready to resolve -> resolved
    - DiceBattle sessions start directly in awaiting roll(s).
    - the store mutates the Session fields; the FSM only guards step changes.
    """

    awaiting_choice = State(
        SessionStep.awaiting_choice.value,
        value=SessionStep.awaiting_choice.value,
        initial=True,
    )
    awaiting_roll = State(SessionStep.awaiting_roll.value, value=SessionStep.awaiting_roll.value)
    ready_to_resolve = State(SessionStep.ready_to_resolve.value, value=SessionStep.ready_to_resolve.value)
    resolved = State(SessionStep.resolved.value, value=SessionStep.resolved.value, final=True)

    choice_recorded = awaiting_choice.to(awaiting_roll)
    roll_recorded = awaiting_roll.to(ready_to_resolve, cond="rolls_complete") | awaiting_roll.to.itself(
        unless="rolls_complete"
    )
    resolve = ready_to_resolve.to(resolved)

    def __init__(self, session: Session):
        self.session = session
        super().__init__(start_value=session.step.value)

    def rolls_complete(self, roll_count: int) -> bool:
        return roll_count >= rules_for(self.session.mode).required_rolls

    def sync_step_to_model(self) -> None:
        self.session.step = SessionStep(str(self.current_state.value))


def advance(session: Session, event: str, **kwargs: Any) -> Session:
    """Fire `event` on the session's FSM and write the resulting step back.

    Raises WrongStep when the event is not valid from the current step.
    """

    fsm = SessionFSM(session)
    try:
        fsm.send(event, **kwargs)
    except TransitionNotAllowed as e:
        raise WrongStep(chat_id=session.chat_id, step=session.step, action=event) from e
    fsm.sync_step_to_model()
    return session

