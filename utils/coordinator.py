"""Client-side driver for one player's view of a multiplayer room.

Phases: idle -> creating -> lobby -> playing -> finished, falling back to idle
when the room disappears. All room writes go through ``utils.match`` so the
store's transaction is the only synchronisation between the two players; the
coordinator itself only owns local state (phase, latest snapshot, the round
timer and the change subscription).
"""
from __future__ import annotations

import logging
import random
import threading
from enum import Enum
from typing import Callable, Optional

from models.room import Room, RoomStatus
from utils import match
from utils.clock import Clock, now_ms
from utils.errors import AuthRequired, MatchError, RoomNotFound, StorageError, TransactionConflict
from utils.logs import log_structured

logger = logging.getLogger(__name__)

TimerFactory = Callable[[float, Callable[[], None]], "threading.Timer"]


class RoomPhase(str, Enum):
    IDLE = "idle"
    CREATING = "creating"
    LOBBY = "lobby"
    PLAYING = "playing"
    FINISHED = "finished"


def thread_timer(seconds: float, callback: Callable[[], None]) -> threading.Timer:
    timer = threading.Timer(seconds, callback)
    timer.daemon = True
    return timer


class MatchCoordinator:
    def __init__(
        self,
        store,
        uid: Optional[str],
        display_name: str,
        clock: Clock = now_ms,
        timer_factory: TimerFactory = thread_timer,
        rng: Optional[random.Random] = None,
        round_count: int = match.ROUND_COUNT,
        turn_time_ms: int = match.TURN_TIME_MS,
        transaction_retries: int = 3,
    ):
        self.store = store
        self.uid = uid
        self.display_name = display_name
        self.clock = clock
        self.timer_factory = timer_factory
        self.rng = rng
        self.round_count = round_count
        self.turn_time_ms = turn_time_ms
        self.transaction_retries = transaction_retries

        self.phase = RoomPhase.IDLE
        self.room_id: Optional[str] = None
        self.room_code = ""
        self.room: Optional[Room] = None
        self.error: Optional[str] = None
        self.current_round = 0

        self._lock = threading.RLock()
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._timer = None
        self._timer_round: Optional[int] = None
        self._round_started_at = 0

    @property
    def is_host(self) -> bool:
        return self.room is not None and self.room.host_uid == self.uid

    def _fail(self, exc: MatchError) -> MatchError:
        with self._lock:
            self.error = str(exc)
        return exc

    # -- room lifecycle ---------------------------------------------------

    def create_room(self) -> Room:
        if not self.uid:
            raise self._fail(AuthRequired())
        with self._lock:
            self.phase = RoomPhase.CREATING
            self.error = None
        try:
            room = match.create_room(
                self.store,
                self.uid,
                self.display_name,
                round_count=self.round_count,
                turn_time_ms=self.turn_time_ms,
                rng=self.rng,
                clock=self.clock,
            )
        except MatchError as exc:
            with self._lock:
                self.phase = RoomPhase.IDLE
            raise self._fail(exc)
        self._enter_room(room)
        return room

    def join_room(self, code: str) -> Room:
        if not self.uid:
            raise self._fail(AuthRequired())
        with self._lock:
            self.error = None
        try:
            room = match.with_conflict_retries(
                lambda: match.join_room(self.store, code, self.uid, self.display_name),
                self.transaction_retries,
            )
        except MatchError as exc:
            raise self._fail(exc)
        self._enter_room(room)
        return room

    def _enter_room(self, room: Room) -> None:
        with self._lock:
            self.room_id = room.id
            self.room_code = room.room_code
            self.room = room
            self.current_round = room.current_round
            self.phase = RoomPhase.LOBBY
        self._subscribe(room.id)

    def _subscribe(self, room_id: str) -> None:
        with self._lock:
            if self._unsubscribe is not None:
                self._unsubscribe()
                self._unsubscribe = None
        unsubscribe = self.store.subscribe(room_id, self._on_room_change)
        with self._lock:
            if self.room_id == room_id:
                self._unsubscribe = unsubscribe
                return
        # left the room while the subscription was being set up
        unsubscribe()

    def _write(self, operation: Callable[[], Room]) -> Room:
        """Run a room write with conflict retries; a vanished room drops us back to idle."""
        try:
            return match.with_conflict_retries(operation, self.transaction_retries)
        except RoomNotFound as exc:
            with self._lock:
                self._drop_room()
            raise self._fail(exc)
        except MatchError as exc:
            raise self._fail(exc)

    def set_ready(self) -> Optional[Room]:
        if not self.room_id or not self.uid:
            return None
        room_id = self.room_id
        return self._write(lambda: match.set_ready(self.store, room_id, self.uid))

    def start_match(self) -> Optional[Room]:
        if not self.room_id or not self.uid:
            return None
        room_id = self.room_id
        return self._write(lambda: match.start_match(self.store, room_id, self.uid))

    def submit_answer(self, round_index: int, spelling: str) -> Optional[Room]:
        if not self.room_id or not self.uid or self.room is None:
            return None
        room_id = self.room_id
        return self._write(lambda: match.submit_answer(self.store, room_id, self.uid, round_index, spelling))

    def leave_room(self) -> None:
        with self._lock:
            unsubscribe = self._unsubscribe
            self._unsubscribe = None
            self._cancel_timer()
            self.phase = RoomPhase.IDLE
            self.room_id = None
            self.room_code = ""
            self.room = None
            self.error = None
            self.current_round = 0
        if unsubscribe is not None:
            unsubscribe()

    close = leave_room

    # -- change feed -------------------------------------------------------

    def _on_room_change(self, room: Optional[Room]) -> None:
        with self._lock:
            if self.room_id is None:
                return
            if room is None:
                self._drop_room()
                return
            if room.id != self.room_id:
                return
            if self.room is not None and room.version < self.room.version:
                return
            self.room = room
            self.current_round = room.current_round
            if room.status == RoomStatus.PLAYING and self.phase != RoomPhase.FINISHED:
                self.phase = RoomPhase.PLAYING
            elif room.status == RoomStatus.FINISHED:
                self.phase = RoomPhase.FINISHED
            self._sync_timer()

    def _drop_room(self) -> None:
        # caller holds self._lock
        if self.room is None and self.phase == RoomPhase.IDLE:
            return
        log_structured("room_lost", level=logging.WARNING, room_id=self.room_id, uid=self.uid)
        self._cancel_timer()
        self.phase = RoomPhase.IDLE
        self.error = "Room no longer exists"
        self.room = None

    # -- round timer -------------------------------------------------------

    def _sync_timer(self) -> None:
        if self.phase != RoomPhase.PLAYING or self.room is None:
            self._cancel_timer()
            return
        if self._timer is not None and self._timer_round == self.current_round:
            return
        self._cancel_timer()
        round_index = self.current_round
        self._timer_round = round_index
        self._round_started_at = self.clock()
        self._timer = self.timer_factory(self.room.turn_time_ms / 1000.0, lambda: self._on_timeout(round_index))
        self._timer.start()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
        self._timer = None
        self._timer_round = None

    def round_time_left(self) -> int:
        with self._lock:
            if self._timer is None or self.room is None:
                return 0
            elapsed = self.clock() - self._round_started_at
            return max(0, self.room.turn_time_ms - elapsed)

    def _on_timeout(self, round_index: int) -> None:
        with self._lock:
            if self._timer_round != round_index or self.phase != RoomPhase.PLAYING or self.room is None:
                return
            player = self.room.players.get(self.uid or "")
            if player is None or match.has_answered(player, round_index):
                return
        log_structured("round_timeout", room_id=self.room_id, uid=self.uid, round=round_index)
        try:
            self.submit_answer(round_index, "")
        except (MatchError, TransactionConflict, StorageError) as exc:
            logger.warning("Auto-submit for round %s failed: %s", round_index, exc)
            with self._lock:
                self.error = str(exc)
