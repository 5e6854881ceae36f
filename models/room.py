from pydantic import BaseModel, Field
from typing import Dict, List, Optional
from enum import Enum

class RoomStatus(str, Enum):
    WAITING = "waiting"
    PLAYING = "playing"
    FINISHED = "finished"

class RoundWord(BaseModel):
    word: str
    prompt: str
    options: List[str]
    correct_index: int

class PlayerData(BaseModel):
    display_name: str
    ready: bool = False
    score: int = 0
    # None marks a round the player has not answered yet
    answers: List[Optional[str]]
    results: List[Optional[bool]]

class Room(BaseModel):
    id: str
    room_code: str
    host_uid: str
    status: RoomStatus = RoomStatus.WAITING
    current_round: int = 0
    round_count: int = 10
    turn_time_ms: int = 15000
    words: List[RoundWord]
    players: Dict[str, PlayerData] = Field(default_factory=dict)
    created_at: int = 0
    version: int = 0

class RoomCreate(BaseModel):
    uid: Optional[str] = None
    display_name: str = "Player"

class RoomJoin(BaseModel):
    code: str
    uid: Optional[str] = None
    display_name: str = "Player"

class PlayerAction(BaseModel):
    uid: Optional[str] = None

class AnswerSubmit(BaseModel):
    uid: Optional[str] = None
    round: int = Field(..., ge=0)
    spelling: str = ""
