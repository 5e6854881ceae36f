from .word import WordAttempt, WordRecord, WordHistory, AttemptCreate, AttemptResult, WeakCategory, HistorySummary
from .room import RoomStatus, RoundWord, PlayerData, Room, RoomCreate, RoomJoin, PlayerAction, AnswerSubmit

__all__ = [
    'WordAttempt', 'WordRecord', 'WordHistory', 'AttemptCreate', 'AttemptResult', 'WeakCategory', 'HistorySummary',
    'RoomStatus', 'RoundWord', 'PlayerData', 'Room', 'RoomCreate', 'RoomJoin', 'PlayerAction', 'AnswerSubmit',
]
