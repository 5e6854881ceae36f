from pydantic import BaseModel, Field, field_validator
from typing import Dict, List, Optional

from utils.leitner import MASTERED_BOX, MIN_BOX, accuracy

class WordAttempt(BaseModel):
    word: str
    category: str
    correct: bool
    timestamp: int
    response_time_ms: int = 0

class WordRecord(BaseModel):
    word: str
    category: str
    attempts: int = Field(0, ge=0)
    correct: int = Field(0, ge=0)
    last_seen: int = 0
    last_correct: int = 0
    box: int = Field(MIN_BOX, ge=MIN_BOX, le=MASTERED_BOX)
    next_review: int = 0
    misspellings: List[str] = Field(default_factory=list)

    @property
    def accuracy(self) -> float:
        return accuracy(self.attempts, self.correct)

class WordHistory(BaseModel):
    """Persisted aggregate; the review index is rebuilt from `records` on load."""
    records: Dict[str, WordRecord] = Field(default_factory=dict)
    recent_attempts: List[WordAttempt] = Field(default_factory=list)

class AttemptCreate(BaseModel):
    word: str
    category: str
    correct: Optional[bool] = None
    response_time_ms: int = Field(0, ge=0)
    typed: Optional[str] = None

    @field_validator("word")
    @classmethod
    def validate_word(cls, v):
        if not v.strip():
            raise ValueError("word cannot be empty")
        return v

class SpellingFeedback(BaseModel):
    grade: str
    closeness: float
    diff: Dict[str, List[Dict[str, str]]]

class AttemptResult(BaseModel):
    record: WordRecord
    feedback: Optional[SpellingFeedback] = None

class WeakCategory(BaseModel):
    category: str
    accuracy: float
    attempts: int

class WordDrillDown(BaseModel):
    word: str
    category: str
    attempts: int
    accuracy: float
    box: int

class HistorySummary(BaseModel):
    total_words: int
    mastered_count: int
    mastery_percent: float
    due_count: int
    categories: List[WeakCategory]
    hardest_words: List[WordDrillDown]
