from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Response, status

from dicebot.api.deps import get_service
from dicebot.api.models import (
    BattleRequest,
    ChoiceRequest,
    Outcome,
    PlayResult,
    RollRequest,
    Session,
    SessionCreateRequest,
)
from dicebot.errors import AlreadyActive, DiceGameError, NoActiveSession, WrongStep
from dicebot.service import DiceGameService

router = APIRouter()


def _http_error(e: DiceGameError) -> HTTPException:
    if isinstance(e, NoActiveSession):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(e, (AlreadyActive, WrongStep)):
        code = status.HTTP_409_CONFLICT
    else:
        code = status.HTTP_422_UNPROCESSABLE_ENTITY
    return HTTPException(status_code=code, detail=str(e))


@router.get("/healthcheck")
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.post("/sessions/{chat_id}", response_model=Session, status_code=status.HTTP_201_CREATED)
def create_session_route(
    chat_id: str,
    payload: SessionCreateRequest,
    svc: DiceGameService = Depends(get_service),
) -> Session:
    try:
        return svc.start(chat_id, payload.mode)
    except DiceGameError as e:
        raise _http_error(e) from e


@router.get("/sessions/{chat_id}", response_model=Session)
def get_session_route(chat_id: str, svc: DiceGameService = Depends(get_service)) -> Session:
    session = svc.session(chat_id)
    if session is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No active game")
    return session


@router.delete("/sessions/{chat_id}", status_code=status.HTTP_204_NO_CONTENT)
def clear_session_route(chat_id: str, svc: DiceGameService = Depends(get_service)) -> Response:
    svc.cancel(chat_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/sessions/{chat_id}/choice", response_model=Session)
def record_choice_route(
    chat_id: str,
    payload: ChoiceRequest,
    svc: DiceGameService = Depends(get_service),
) -> Session:
    try:
        return svc.store.record_choice(chat_id, payload.choice)
    except DiceGameError as e:
        raise _http_error(e) from e


@router.post("/sessions/{chat_id}/roll", response_model=Session)
def record_roll_route(
    chat_id: str,
    payload: RollRequest,
    svc: DiceGameService = Depends(get_service),
) -> Session:
    try:
        return svc.store.record_roll(chat_id, payload.roll)
    except DiceGameError as e:
        raise _http_error(e) from e


@router.post("/sessions/{chat_id}/resolve", response_model=Outcome)
def resolve_route(chat_id: str, svc: DiceGameService = Depends(get_service)) -> Outcome:
    try:
        return svc.resolve(chat_id)
    except DiceGameError as e:
        raise _http_error(e) from e


@router.post("/sessions/{chat_id}/play", response_model=PlayResult)
def play_route(
    chat_id: str,
    payload: ChoiceRequest,
    svc: DiceGameService = Depends(get_service),
) -> PlayResult:
    """Commit a choice and let the server roll the die."""

    try:
        return svc.choose(chat_id, payload.choice)
    except DiceGameError as e:
        raise _http_error(e) from e


@router.post("/sessions/{chat_id}/battle", response_model=PlayResult)
def battle_route(
    chat_id: str,
    payload: BattleRequest,
    svc: DiceGameService = Depends(get_service),
) -> PlayResult:
    try:
        return svc.battle(chat_id, payload.roll)
    except DiceGameError as e:
        raise _http_error(e) from e
