import random
import threading

import pytest

from db.rooms import MemoryRoomStore
from models.room import RoomStatus
from utils.coordinator import MatchCoordinator, RoomPhase
from utils.errors import AuthRequired, RoomFull, RoomNotFound, TransactionConflict


class FakeTimer:
    def __init__(self, seconds, callback):
        self.seconds = seconds
        self.callback = callback
        self.started = False
        self.cancelled = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        self.callback()


class FakeTimers:
    def __init__(self):
        self.created = []
        self._lock = threading.Lock()

    def __call__(self, seconds, callback):
        timer = FakeTimer(seconds, callback)
        with self._lock:
            self.created.append(timer)
        return timer

    @property
    def active(self):
        return [t for t in self.created if t.started and not t.cancelled]


class ConflictOnceStore(MemoryRoomStore):
    def __init__(self):
        super().__init__()
        self.conflicts_left = 0

    def run_transaction(self, room_id, fn):
        if self.conflicts_left:
            self.conflicts_left -= 1
            raise TransactionConflict("busy")
        return super().run_transaction(room_id, fn)


def _coordinator(store, uid, name, timers, clock, round_count=3):
    return MatchCoordinator(
        store,
        uid,
        name,
        clock=clock,
        timer_factory=timers,
        rng=random.Random(uid),
        round_count=round_count,
    )


@pytest.fixture
def timers():
    return FakeTimers()


def _lobby(store, clock, round_count=3):
    host_timers, guest_timers = FakeTimers(), FakeTimers()
    host = _coordinator(store, "host", "Host", host_timers, clock, round_count)
    guest = _coordinator(store, "guest", "Guest", guest_timers, clock, round_count)
    host.create_room()
    guest.join_room(host.room_code)
    return host, guest, host_timers, guest_timers


def test_create_requires_identity(timers, clock):
    coordinator = _coordinator(MemoryRoomStore(), None, "Anon", timers, clock)

    with pytest.raises(AuthRequired):
        coordinator.create_room()
    assert coordinator.phase == RoomPhase.IDLE
    assert coordinator.error == "Must be signed in"


def test_create_enters_lobby_and_subscribes(timers, clock):
    store = MemoryRoomStore()
    host = _coordinator(store, "host", "Host", timers, clock)

    room = host.create_room()

    assert host.phase == RoomPhase.LOBBY
    assert host.is_host
    assert len(host.room_code) == 6
    assert room.round_count == 3
    assert store.listeners.count(room.id) == 1
    assert timers.active == []


def test_join_unknown_and_full_rooms(clock):
    store = MemoryRoomStore()
    host, guest, _, _ = _lobby(store, clock)
    assert set(host.room.players) == {"host", "guest"}
    assert guest.phase == RoomPhase.LOBBY
    assert not guest.is_host

    third = _coordinator(store, "third", "Third", FakeTimers(), clock)
    with pytest.raises(RoomFull):
        third.join_room(host.room_code)
    assert third.error == "Room is full"
    with pytest.raises(RoomNotFound):
        third.join_room("ZZZZZZ")
    assert third.phase == RoomPhase.IDLE


def test_ready_flag_is_shared(clock):
    host, guest, _, _ = _lobby(MemoryRoomStore(), clock)
    guest.set_ready()
    assert host.room.players["guest"].ready is True


def test_start_moves_both_players_to_playing_with_a_timer(clock):
    host, guest, host_timers, guest_timers = _lobby(MemoryRoomStore(), clock)

    host.start_match()

    assert host.phase == RoomPhase.PLAYING
    assert guest.phase == RoomPhase.PLAYING
    assert [t.seconds for t in host_timers.active] == [15.0]
    assert [t.seconds for t in guest_timers.active] == [15.0]
    assert guest.round_time_left() == 15000
    clock.advance(4000)
    assert guest.round_time_left() == 11000


def test_timeout_auto_submits_empty_answer(clock):
    host, guest, _, guest_timers = _lobby(MemoryRoomStore(), clock)
    host.start_match()

    guest_timers.active[0].fire()

    guest_state = guest.room.players["guest"]
    assert guest_state.answers[0] == ""
    assert guest_state.results[0] is False
    assert guest.current_round == 0


def test_timeout_after_answering_does_nothing(clock):
    host, guest, _, guest_timers = _lobby(MemoryRoomStore(), clock)
    host.start_match()
    word = guest.room.words[0].word
    guest.submit_answer(0, word)
    version = guest.room.version

    guest_timers.active[0].fire()

    assert guest.room.version == version
    assert guest.room.players["guest"].answers[0] == word


def test_round_change_replaces_timers(clock):
    host, guest, host_timers, guest_timers = _lobby(MemoryRoomStore(), clock)
    host.start_match()
    first_host_timer = host_timers.active[0]
    word = host.room.words[0].word

    host.submit_answer(0, word)
    guest.submit_answer(0, word.upper())

    assert host.current_round == 1
    assert guest.current_round == 1
    assert first_host_timer.cancelled
    assert len(host_timers.active) == 1
    assert len(guest_timers.active) == 1
    # a stale timer for round 0 must not submit into round 1
    first_host_timer.fire()
    assert host.room.players["host"].answers[1] is None


def test_match_finishes_and_timers_stop(clock):
    host, guest, host_timers, guest_timers = _lobby(MemoryRoomStore(), clock, round_count=2)
    host.start_match()
    for round_index in range(2):
        word = host.room.words[round_index].word
        host.submit_answer(round_index, word)
        guest.submit_answer(round_index, "nope")

    assert host.phase == RoomPhase.FINISHED
    assert guest.phase == RoomPhase.FINISHED
    assert host.room.status == RoomStatus.FINISHED
    assert host.room.players["host"].score == 2
    assert host.room.players["guest"].score == 0
    assert host_timers.active == []
    assert guest_timers.active == []


def test_concurrent_submissions_through_coordinators(clock):
    for _ in range(10):
        host, guest, _, _ = _lobby(MemoryRoomStore(), clock, round_count=2)
        host.start_match()
        word = host.room.words[0].word
        barrier = threading.Barrier(2)

        def play(coordinator):
            barrier.wait()
            coordinator.submit_answer(0, word)

        threads = [threading.Thread(target=play, args=(c,)) for c in (host, guest)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        final = host.store.get(host.room_id)
        assert final.current_round == 1
        assert final.players["host"].score == 1
        assert final.players["guest"].score == 1
        assert host.current_round == 1
        assert guest.current_round == 1


def test_conflicts_are_retried(clock):
    store = ConflictOnceStore()
    host, guest, _, _ = _lobby(store, clock)
    host.start_match()
    store.conflicts_left = 2

    room = guest.submit_answer(0, guest.room.words[0].word)

    assert room.players["guest"].score == 1
    assert guest.error is None


def test_room_disappearing_downgrades_to_idle(clock):
    store = MemoryRoomStore()
    host, guest, _, guest_timers = _lobby(store, clock)
    host.start_match()

    store.delete(host.room_id)

    assert guest.phase == RoomPhase.IDLE
    assert guest.error == "Room no longer exists"
    assert guest_timers.active == []


def test_leave_room_tears_down_subscription_and_timer(clock):
    store = MemoryRoomStore()
    host, guest, _, guest_timers = _lobby(store, clock)
    host.start_match()
    room_id = host.room_id

    guest.leave_room()

    assert guest.phase == RoomPhase.IDLE
    assert guest.room is None
    assert guest_timers.active == []
    assert store.listeners.count(room_id) == 1
    host.submit_answer(0, "cat")
    assert guest.room is None


class AlwaysConflictStore(MemoryRoomStore):
    def __init__(self):
        super().__init__()
        self.busy = False

    def run_transaction(self, room_id, fn):
        if self.busy:
            raise TransactionConflict("busy")
        return super().run_transaction(room_id, fn)


def test_timeout_conflict_is_logged_not_raised(clock):
    store = AlwaysConflictStore()
    host, guest, _, guest_timers = _lobby(store, clock)
    host.start_match()
    store.busy = True

    guest_timers.active[0].fire()

    assert guest.error == "busy"
    assert guest.phase == RoomPhase.PLAYING
    assert guest.room.players["guest"].answers[0] is None


def test_room_vanishing_without_notification_downgrades_to_idle(clock):
    store = MemoryRoomStore()
    host, guest, _, guest_timers = _lobby(store, clock)
    host.start_match()
    # dropped behind the change feed's back, as another process would
    store._rooms.pop(host.room_id)

    with pytest.raises(RoomNotFound):
        guest.submit_answer(0, "x")

    assert guest.phase == RoomPhase.IDLE
    assert guest.room is None
    assert guest.error == "Room no longer exists"
    assert guest_timers.active == []
    assert guest.submit_answer(0, "x") is None
