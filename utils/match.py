"""Room state transitions for 1v1 spelling matches.

The functions at the top are pure: they take a ``Room`` and return a new one
without touching storage. The store-backed operations below wrap them in
``store.run_transaction`` so the read-check-write of a submission and the
round-advance check commit together.
"""
from __future__ import annotations

import logging
import random
import uuid
from typing import Callable, Optional, TypeVar

from models.room import PlayerData, Room, RoomStatus
from utils.clock import Clock, now_ms
from utils.errors import (
    AuthRequired,
    MatchNotActive,
    NotHost,
    PlayerNotInRoom,
    RoomAlreadyStarted,
    RoomFull,
    RoomNotFound,
    TransactionConflict,
)
from utils.grading import is_correct_spelling
from utils.logs import log_structured
from utils.match_words import generate_match_words, generate_room_code, normalize_room_code

logger = logging.getLogger(__name__)

ROUND_COUNT = 10
TURN_TIME_MS = 15000
MAX_PLAYERS = 2

T = TypeVar("T")


def new_player(display_name: str, round_count: int) -> PlayerData:
    return PlayerData(
        display_name=display_name,
        ready=False,
        score=0,
        answers=[None] * round_count,
        results=[None] * round_count,
    )


def has_answered(player: PlayerData, round_index: int) -> bool:
    return player.answers[round_index] is not None


def build_room(
    room_id: str,
    host_uid: str,
    display_name: str,
    code: str,
    words,
    turn_time_ms: int = TURN_TIME_MS,
    created_at: int = 0,
) -> Room:
    round_count = len(words)
    return Room(
        id=room_id,
        room_code=code,
        host_uid=host_uid,
        status=RoomStatus.WAITING,
        current_round=0,
        round_count=round_count,
        turn_time_ms=turn_time_ms,
        words=list(words),
        players={host_uid: new_player(display_name, round_count)},
        created_at=created_at,
    )


def add_player(room: Room, uid: str, display_name: str, max_players: int = MAX_PLAYERS) -> Room:
    if uid in room.players:
        return room
    if room.status != RoomStatus.WAITING:
        raise RoomAlreadyStarted()
    if len(room.players) >= max_players:
        raise RoomFull()
    updated = room.model_copy(deep=True)
    updated.players[uid] = new_player(display_name, room.round_count)
    return updated


def start_room(room: Room, uid: str) -> Room:
    if uid != room.host_uid:
        raise NotHost()
    if room.status != RoomStatus.WAITING:
        raise RoomAlreadyStarted()
    return room.model_copy(update={"status": RoomStatus.PLAYING, "current_round": 0}, deep=True)


def mark_ready(room: Room, uid: str) -> Room:
    if uid not in room.players:
        raise PlayerNotInRoom()
    updated = room.model_copy(deep=True)
    updated.players[uid].ready = True
    return updated


def advance_round(room: Room, uid: str, round_index: int, answer: str) -> Room:
    """Record `uid`'s answer for `round_index` and advance the round once everyone has answered."""
    if room.status != RoomStatus.PLAYING:
        raise MatchNotActive()
    if not 0 <= round_index < room.round_count:
        raise ValueError(f"Round {round_index} is out of range (0-{room.round_count - 1})")
    if round_index > room.current_round:
        raise ValueError(f"Round {round_index} is not open yet")
    if uid not in room.players:
        raise PlayerNotInRoom()

    correct = is_correct_spelling(answer, room.words[round_index].word)
    updated = room.model_copy(deep=True)
    player = updated.players[uid]
    player.answers[round_index] = answer
    player.results[round_index] = correct
    # Recounted from results so a resubmitted round is never counted twice
    player.score = sum(1 for result in player.results if result)

    others = [p for pid, p in updated.players.items() if pid != uid]
    if all(has_answered(p, round_index) for p in others):
        next_round = round_index + 1
        if next_round >= updated.round_count:
            updated.status = RoomStatus.FINISHED
            updated.current_round = updated.round_count
        elif next_round > updated.current_round:
            updated.current_round = next_round
    return updated


def with_conflict_retries(operation: Callable[[], T], retries: int) -> T:
    """Re-run `operation` when the store reports a transaction conflict."""
    attempt = 0
    while True:
        try:
            return operation()
        except TransactionConflict as exc:
            attempt += 1
            if attempt > retries:
                raise
            logger.info("Retrying after transaction conflict (%s/%s): %s", attempt, retries, exc)


def _require_room(current: Optional[Room]) -> Room:
    if current is None:
        raise RoomNotFound("Room no longer exists")
    return current


def create_room(
    store,
    uid: Optional[str],
    display_name: str,
    round_count: int = ROUND_COUNT,
    turn_time_ms: int = TURN_TIME_MS,
    rng: Optional[random.Random] = None,
    clock: Clock = now_ms,
) -> Room:
    if not uid:
        raise AuthRequired()
    rng = rng or random.Random()
    room = build_room(
        uuid.uuid4().hex,
        uid,
        display_name,
        generate_room_code(rng),
        generate_match_words(round_count, rng),
        turn_time_ms=turn_time_ms,
        created_at=clock(),
    )
    store.create(room)
    log_structured("room_created", room_id=room.id, room_code=room.room_code, host=uid)
    return room


def join_room(store, code: str, uid: Optional[str], display_name: str, max_players: int = MAX_PLAYERS) -> Room:
    if not uid:
        raise AuthRequired()
    found = store.find_waiting(normalize_room_code(code))
    if found is None:
        raise RoomNotFound()

    def mutate(current: Optional[Room]) -> Optional[Room]:
        room = _require_room(current)
        if uid in room.players:
            return None
        return add_player(room, uid, display_name, max_players)

    room = store.run_transaction(found.id, mutate)
    log_structured("room_joined", room_id=found.id, uid=uid, players=len(room.players))
    return room


def start_match(store, room_id: str, uid: Optional[str]) -> Room:
    if not uid:
        raise AuthRequired()
    room = store.run_transaction(room_id, lambda current: start_room(_require_room(current), uid))
    log_structured("match_started", room_id=room_id, players=len(room.players))
    return room


def set_ready(store, room_id: str, uid: Optional[str]) -> Room:
    if not uid:
        raise AuthRequired()
    return store.run_transaction(room_id, lambda current: mark_ready(_require_room(current), uid))


def submit_answer(store, room_id: str, uid: Optional[str], round_index: int, spelling: str) -> Room:
    if not uid:
        raise AuthRequired()
    room = store.run_transaction(
        room_id,
        lambda current: advance_round(_require_room(current), uid, round_index, spelling),
    )
    log_structured(
        "answer_submitted",
        room_id=room_id,
        uid=uid,
        round=round_index,
        correct=room.players[uid].results[round_index],
        current_round=room.current_round,
        status=room.status.value,
    )
    return room
