from __future__ import annotations

import logging
import sqlite3
import threading
from typing import Callable, Dict, List, Optional, Protocol

from models.room import Room, RoomStatus
from utils.errors import StorageError, TransactionConflict
from .database import get_conn

logger = logging.getLogger(__name__)

RoomListener = Callable[[Optional[Room]], None]
RoomMutation = Callable[[Optional[Room]], Optional[Room]]


class RoomStore(Protocol):
    def create(self, room: Room) -> Room: ...

    def get(self, room_id: str) -> Optional[Room]: ...

    def find_waiting(self, code: str) -> Optional[Room]: ...

    def delete(self, room_id: str) -> None: ...

    def run_transaction(self, room_id: str, fn: RoomMutation) -> Optional[Room]: ...

    def subscribe(self, room_id: str, on_change: RoomListener) -> Callable[[], None]: ...


class RoomListeners:
    """In-process change feed; listeners run after the write has committed."""

    def __init__(self):
        self._lock = threading.Lock()
        self._listeners: Dict[str, List[RoomListener]] = {}

    def add(self, room_id: str, listener: RoomListener) -> Callable[[], None]:
        with self._lock:
            self._listeners.setdefault(room_id, []).append(listener)

        def unsubscribe() -> None:
            with self._lock:
                listeners = self._listeners.get(room_id, [])
                if listener in listeners:
                    listeners.remove(listener)
                if not listeners:
                    self._listeners.pop(room_id, None)

        return unsubscribe

    def notify(self, room_id: str, room: Optional[Room]) -> None:
        with self._lock:
            listeners = list(self._listeners.get(room_id, []))
        for listener in listeners:
            snapshot = room.model_copy(deep=True) if room is not None else None
            listener(snapshot)

    def count(self, room_id: str) -> int:
        with self._lock:
            return len(self._listeners.get(room_id, []))


class MemoryRoomStore:
    def __init__(self):
        self._rooms: Dict[str, Room] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()
        self.listeners = RoomListeners()

    def _lock_for(self, room_id: str) -> threading.Lock:
        with self._registry_lock:
            return self._locks.setdefault(room_id, threading.Lock())

    def create(self, room: Room) -> Room:
        with self._lock_for(room.id):
            self._rooms[room.id] = room.model_copy(deep=True)
        self.listeners.notify(room.id, room)
        return room.model_copy(deep=True)

    def get(self, room_id: str) -> Optional[Room]:
        with self._lock_for(room_id):
            room = self._rooms.get(room_id)
            return room.model_copy(deep=True) if room is not None else None

    def find_waiting(self, code: str) -> Optional[Room]:
        with self._registry_lock:
            candidates = list(self._rooms.values())
        matches = [r for r in candidates if r.room_code == code and r.status == RoomStatus.WAITING]
        if not matches:
            return None
        return max(matches, key=lambda r: r.created_at).model_copy(deep=True)

    def delete(self, room_id: str) -> None:
        with self._lock_for(room_id):
            self._rooms.pop(room_id, None)
        self.listeners.notify(room_id, None)

    def run_transaction(self, room_id: str, fn: RoomMutation) -> Optional[Room]:
        with self._lock_for(room_id):
            current = self._rooms.get(room_id)
            updated = fn(current.model_copy(deep=True) if current is not None else None)
            if updated is None or current is None:
                return current.model_copy(deep=True) if current is not None else None
            committed = updated.model_copy(update={"version": current.version + 1}, deep=True)
            self._rooms[room_id] = committed
        self.listeners.notify(room_id, committed)
        return committed.model_copy(deep=True)

    def subscribe(self, room_id: str, on_change: RoomListener) -> Callable[[], None]:
        unsubscribe = self.listeners.add(room_id, on_change)
        on_change(self.get(room_id))
        return unsubscribe


# Shared by every SqliteRoomStore in the process so writes made through one
# instance (e.g. a request handler) reach subscribers of another.
sqlite_listeners = RoomListeners()


class SqliteRoomStore:
    """Rooms table store; BEGIN IMMEDIATE gives each transaction the write lock up front."""

    def __init__(self, listeners: Optional[RoomListeners] = None):
        self.listeners = listeners if listeners is not None else sqlite_listeners

    @staticmethod
    def _decode(row) -> Optional[Room]:
        if not row:
            return None
        return Room.model_validate_json(row["data"])

    def create(self, room: Room) -> Room:
        try:
            with get_conn() as conn:
                conn.execute(
                    """
                    INSERT INTO rooms (id, room_code, status, data, version)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (room.id, room.room_code, room.status.value, room.model_dump_json(), room.version),
                )
                conn.commit()
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to create room {room.id}: {exc}") from exc
        self.listeners.notify(room.id, room)
        return room

    def get(self, room_id: str) -> Optional[Room]:
        try:
            with get_conn() as conn:
                row = conn.execute("SELECT data FROM rooms WHERE id = ?", (room_id,)).fetchone()
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to read room {room_id}: {exc}") from exc
        return self._decode(row)

    def find_waiting(self, code: str) -> Optional[Room]:
        try:
            with get_conn() as conn:
                row = conn.execute(
                    """
                    SELECT data FROM rooms
                    WHERE room_code = ? AND status = 'waiting'
                    ORDER BY created_at DESC, rowid DESC
                    LIMIT 1
                    """,
                    (code,),
                ).fetchone()
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to look up room code {code}: {exc}") from exc
        return self._decode(row)

    def delete(self, room_id: str) -> None:
        try:
            with get_conn() as conn:
                conn.execute("DELETE FROM rooms WHERE id = ?", (room_id,))
                conn.commit()
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to delete room {room_id}: {exc}") from exc
        self.listeners.notify(room_id, None)

    def run_transaction(self, room_id: str, fn: RoomMutation) -> Optional[Room]:
        committed = None
        with get_conn() as conn:
            try:
                conn.execute("BEGIN IMMEDIATE")
            except sqlite3.OperationalError as exc:
                raise TransactionConflict(f"Room {room_id} is busy: {exc}") from exc
            try:
                row = conn.execute("SELECT data FROM rooms WHERE id = ?", (room_id,)).fetchone()
                current = self._decode(row)
                updated = fn(current)
                if updated is not None and current is not None:
                    committed = updated.model_copy(update={"version": current.version + 1})
                    cursor = conn.execute(
                        """
                        UPDATE rooms
                        SET data = ?, status = ?, room_code = ?, version = ?, updated_at = datetime('now')
                        WHERE id = ? AND version = ?
                        """,
                        (
                            committed.model_dump_json(),
                            committed.status.value,
                            committed.room_code,
                            committed.version,
                            room_id,
                            current.version,
                        ),
                    )
                    if cursor.rowcount != 1:
                        raise TransactionConflict(
                            f"Room {room_id} changed underneath version {current.version}"
                        )
                conn.commit()
            except sqlite3.OperationalError as exc:
                conn.rollback()
                raise TransactionConflict(f"Room {room_id} transaction aborted: {exc}") from exc
            except Exception:
                conn.rollback()
                raise
        if committed is None:
            return current
        logger.debug("room %s committed version %s", room_id, committed.version)
        self.listeners.notify(room_id, committed)
        return committed

    def subscribe(self, room_id: str, on_change: RoomListener) -> Callable[[], None]:
        unsubscribe = self.listeners.add(room_id, on_change)
        on_change(self.get(room_id))
        return unsubscribe
