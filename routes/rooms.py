from fastapi import APIRouter, Depends, HTTPException, status

from config import load_config
from db.rooms import SqliteRoomStore
from models.room import AnswerSubmit, PlayerAction, Room, RoomCreate, RoomJoin
from utils import match
from utils.errors import (
    AuthRequired,
    MatchError,
    MatchNotActive,
    NotHost,
    PlayerNotInRoom,
    RoomAlreadyStarted,
    RoomFull,
    RoomNotFound,
    StorageError,
    TransactionConflict,
)

router = APIRouter()

ERROR_STATUS = {
    AuthRequired: status.HTTP_401_UNAUTHORIZED,
    NotHost: status.HTTP_403_FORBIDDEN,
    RoomNotFound: status.HTTP_404_NOT_FOUND,
    PlayerNotInRoom: status.HTTP_404_NOT_FOUND,
    RoomFull: status.HTTP_409_CONFLICT,
    RoomAlreadyStarted: status.HTTP_409_CONFLICT,
    MatchNotActive: status.HTTP_409_CONFLICT,
}

def get_room_store():
    return SqliteRoomStore()

def _run(operation):
    """Run a room operation, retrying conflicts and mapping failures to HTTP errors."""
    retries = load_config()["match"]["transaction_retries"]
    try:
        return match.with_conflict_retries(operation, retries)
    except MatchError as exc:
        code = ERROR_STATUS.get(type(exc), status.HTTP_400_BAD_REQUEST)
        raise HTTPException(status_code=code, detail={"code": exc.code, "message": str(exc)})
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    except (TransactionConflict, StorageError) as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc))

@router.post("", response_model=Room, status_code=status.HTTP_201_CREATED)
async def create_room(payload: RoomCreate, store = Depends(get_room_store)):
    match_cfg = load_config()["match"]
    return _run(lambda: match.create_room(
        store,
        payload.uid,
        payload.display_name,
        round_count=match_cfg["round_count"],
        turn_time_ms=match_cfg["turn_time_ms"],
    ))

@router.post("/join", response_model=Room)
async def join_room(payload: RoomJoin, store = Depends(get_room_store)):
    max_players = load_config()["match"]["max_players"]
    return _run(lambda: match.join_room(store, payload.code, payload.uid, payload.display_name, max_players))

@router.get("/{room_id}", response_model=Room)
async def get_room(room_id: str, store = Depends(get_room_store)):
    room = _run(lambda: store.get(room_id))
    if room is None:
        raise HTTPException(status_code=404, detail="Room not found")
    return room

@router.post("/{room_id}/ready", response_model=Room)
async def set_ready(room_id: str, payload: PlayerAction, store = Depends(get_room_store)):
    return _run(lambda: match.set_ready(store, room_id, payload.uid))

@router.post("/{room_id}/start", response_model=Room)
async def start_match(room_id: str, payload: PlayerAction, store = Depends(get_room_store)):
    return _run(lambda: match.start_match(store, room_id, payload.uid))

@router.post("/{room_id}/answers", response_model=Room)
async def submit_answer(room_id: str, payload: AnswerSubmit, store = Depends(get_room_store)):
    return _run(lambda: match.submit_answer(store, room_id, payload.uid, payload.round, payload.spelling))
