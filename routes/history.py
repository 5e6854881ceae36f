from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException

from config import load_config
from db.kv import SqliteKeyValueStore
from models.word import AttemptCreate, AttemptResult, HistorySummary, SpellingFeedback, WeakCategory, WordHistory, WordRecord
from utils.grading import grade_spelling, is_correct_spelling, letter_diff, spelling_closeness
from utils.leitner import mastery_percent
from utils.word_history import WordHistoryTracker, get_category_accuracy, get_hardest_words, storage_key

router = APIRouter()

def get_kv_store():
    return SqliteKeyValueStore()

def load_tracker(user_id: str, store, config: dict) -> WordHistoryTracker:
    history_cfg = config["history"]
    return WordHistoryTracker(
        store,
        storage_key(history_cfg["storage_prefix"], user_id),
        max_recent=history_cfg["max_recent"],
        max_misspellings=history_cfg["max_misspellings"],
    )

@router.post("/{user_id}/attempts", response_model=AttemptResult)
async def record_attempt(user_id: str, payload: AttemptCreate, store = Depends(get_kv_store)):
    """Record one spelling attempt and return the updated word record."""
    config = load_config()
    correct = payload.correct
    if correct is None:
        if payload.typed is None:
            raise HTTPException(status_code=400, detail="Either 'correct' or 'typed' is required")
        correct = is_correct_spelling(payload.typed, payload.word)
    tracker = load_tracker(user_id, store, config)
    record = tracker.record_attempt(
        payload.word,
        payload.category,
        correct,
        response_time_ms=payload.response_time_ms,
        typed=payload.typed,
    )
    feedback = None
    if not correct and payload.typed:
        feedback = SpellingFeedback(
            grade=grade_spelling(payload.typed, record.word, config),
            closeness=spelling_closeness(payload.typed, record.word),
            diff=letter_diff(payload.typed, record.word),
        )
    return AttemptResult(record=record, feedback=feedback)

@router.get("/{user_id}/review-queue", response_model=List[WordRecord])
async def review_queue(user_id: str, as_of: Optional[int] = None, store = Depends(get_kv_store)):
    """Words due for review; defaults to the time of the latest recorded attempt."""
    tracker = load_tracker(user_id, store, load_config())
    return tracker.review_queue(as_of)

@router.get("/{user_id}/weak-categories", response_model=List[WeakCategory])
async def weak_categories(user_id: str, store = Depends(get_kv_store)):
    tracker = load_tracker(user_id, store, load_config())
    return tracker.weak_categories()

@router.get("/{user_id}/summary", response_model=HistorySummary)
async def summary(user_id: str, limit: int = 10, store = Depends(get_kv_store)):
    tracker = load_tracker(user_id, store, load_config())
    mastered = tracker.mastered_count()
    total = len(tracker.records)
    return HistorySummary(
        total_words=total,
        mastered_count=mastered,
        mastery_percent=mastery_percent(mastered, total),
        due_count=len(tracker.review_queue()),
        categories=get_category_accuracy(tracker.records),
        hardest_words=get_hardest_words(tracker.records, limit),
    )

@router.get("/{user_id}/records", response_model=List[WordRecord])
async def records(user_id: str, category: Optional[str] = None, store = Depends(get_kv_store)):
    tracker = load_tracker(user_id, store, load_config())
    rows = sorted(tracker.records.values(), key=lambda r: r.word)
    if category:
        rows = [r for r in rows if r.category == category]
    return rows

@router.post("/{user_id}/sync", response_model=WordHistory)
async def sync_history(user_id: str, remote: WordHistory, store = Depends(get_kv_store)):
    """Merge a history replicated from another device into the stored one."""
    tracker = load_tracker(user_id, store, load_config())
    return tracker.merge_remote(remote)
