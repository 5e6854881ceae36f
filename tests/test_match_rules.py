import pytest

from models.room import RoomStatus, RoundWord
from utils.errors import MatchNotActive, NotHost, PlayerNotInRoom, RoomAlreadyStarted, RoomFull
from utils.match import add_player, advance_round, build_room, mark_ready, start_room


def _words(*words):
    return [RoundWord(word=w, prompt="Which spelling is correct?", options=[w, w + "e", "x" + w], correct_index=0) for w in words]


def _playing_room(*words):
    room = build_room("room-1", "host", "Host", "ABCDEF", _words(*(words or ("cat", "ship"))))
    room = add_player(room, "guest", "Guest")
    return start_room(room, "host")


def test_build_room_initializes_host_with_sentinels():
    room = build_room("room-1", "host", "Host", "ABCDEF", _words("cat", "ship", "rain"))

    assert room.status == RoomStatus.WAITING
    assert room.round_count == 3
    assert list(room.players) == ["host"]
    host = room.players["host"]
    assert host.score == 0
    assert host.answers == [None, None, None]
    assert host.results == [None, None, None]


def test_join_rejoin_and_full_room():
    room = build_room("room-1", "host", "Host", "ABCDEF", _words("cat"))
    room = add_player(room, "guest", "Guest")

    assert set(room.players) == {"host", "guest"}
    assert add_player(room, "guest", "Guest again") is room
    with pytest.raises(RoomFull):
        add_player(room, "third", "Third")


def test_join_after_start_is_rejected():
    room = _playing_room()
    with pytest.raises(RoomAlreadyStarted):
        add_player(room, "late", "Late")


def test_start_is_host_only_and_one_way():
    room = build_room("room-1", "host", "Host", "ABCDEF", _words("cat"))
    room = add_player(room, "guest", "Guest")
    with pytest.raises(NotHost):
        start_room(room, "guest")

    started = start_room(room, "host")
    assert started.status == RoomStatus.PLAYING
    assert started.current_round == 0
    assert room.status == RoomStatus.WAITING
    with pytest.raises(RoomAlreadyStarted):
        start_room(started, "host")


def test_mark_ready():
    room = build_room("room-1", "host", "Host", "ABCDEF", _words("cat"))
    assert mark_ready(room, "host").players["host"].ready is True
    with pytest.raises(PlayerNotInRoom):
        mark_ready(room, "stranger")


def test_first_answer_does_not_advance_round():
    room = advance_round(_playing_room(), "host", 0, "CAT")

    assert room.current_round == 0
    assert room.players["host"].answers[0] == "CAT"
    assert room.players["host"].results[0] is True
    assert room.players["host"].score == 1
    assert room.players["guest"].answers[0] is None


def test_both_correct_in_two_round_room_advances_exactly_once():
    room = _playing_room("cat", "ship")
    room = advance_round(room, "host", 0, "cat")
    room = advance_round(room, "guest", 0, "cat")

    assert room.current_round == 1
    assert room.status == RoomStatus.PLAYING
    assert room.players["host"].score == 1
    assert room.players["guest"].score == 1


def test_empty_answer_counts_as_answered_and_incorrect():
    room = advance_round(_playing_room(), "guest", 0, "")
    assert room.players["guest"].answers[0] == ""
    assert room.players["guest"].results[0] is False

    room = advance_round(room, "host", 0, "kat")
    assert room.current_round == 1


def test_last_round_finishes_match():
    room = _playing_room("cat", "ship")
    for round_index, answer in enumerate(["cat", "ship"]):
        room = advance_round(room, "host", round_index, answer)
        room = advance_round(room, "guest", round_index, answer + "x")

    assert room.status == RoomStatus.FINISHED
    assert room.current_round == 2
    assert room.players["host"].score == 2
    assert room.players["guest"].score == 0
    with pytest.raises(MatchNotActive):
        advance_round(room, "host", 1, "ship")


def test_resubmission_does_not_double_count_or_rewind():
    room = _playing_room("cat", "ship", "rain")
    room = advance_round(room, "host", 0, "cat")
    room = advance_round(room, "host", 0, "cat")
    assert room.players["host"].score == 1

    room = advance_round(room, "guest", 0, "cat")
    room = advance_round(room, "host", 1, "ship")
    room = advance_round(room, "guest", 1, "ship")
    assert room.current_round == 2

    room = advance_round(room, "guest", 0, "kat")
    assert room.current_round == 2
    assert room.players["guest"].score == 1


def test_round_validation():
    room = _playing_room("cat", "ship")
    with pytest.raises(ValueError):
        advance_round(room, "host", 5, "cat")
    with pytest.raises(ValueError):
        advance_round(room, "host", 1, "ship")
    with pytest.raises(PlayerNotInRoom):
        advance_round(room, "stranger", 0, "cat")
    waiting = build_room("room-2", "host", "Host", "ABCDEF", _words("cat"))
    with pytest.raises(MatchNotActive):
        advance_round(waiting, "host", 0, "cat")


def test_single_player_match_advances_on_own_answer():
    room = start_room(build_room("solo", "host", "Host", "ABCDEF", _words("cat", "ship")), "host")
    room = advance_round(room, "host", 0, "cat")
    assert room.current_round == 1
