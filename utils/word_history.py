"""Per-word spelling history with Leitner-box spaced repetition.

One ``WordRecord`` is kept per lowercase word. Every attempt moves the word's
box (see ``utils.leitner``), reschedules it, and rewrites the whole aggregate
to the key-value store. The review queue is answered from a sorted index so
only the due prefix is scanned.
"""
from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional

from pydantic import ValidationError

from models.word import WordAttempt, WordDrillDown, WordHistory, WordRecord, WeakCategory
from utils.clock import Clock, now_ms
from utils.errors import StorageError
from utils.history_sync import merge_histories
from utils.leitner import MASTERED_BOX, accuracy, next_box, next_review_at
from utils.logs import log_structured
from utils.review_index import ReviewIndex

logger = logging.getLogger(__name__)

MAX_RECENT = 200
MAX_MISSPELLINGS = 5
WEAK_MIN_ATTEMPTS = 5
WEAK_ACCURACY_THRESHOLD = 0.8


def storage_key(prefix: str, user_id: str) -> str:
    return f"{prefix}:{user_id}"


def apply_attempt(
    existing: Optional[WordRecord],
    word: str,
    category: str,
    correct: bool,
    now: int,
    typed: Optional[str] = None,
    max_misspellings: int = MAX_MISSPELLINGS,
) -> WordRecord:
    """Return the record that results from one attempt; `existing` is not modified."""
    key = word.lower()
    box = next_box(existing.box if existing else None, correct)
    misspellings = list(existing.misspellings) if existing else []
    if not correct and typed is not None:
        cleaned = typed.strip().lower()
        if cleaned:
            misspellings = [cleaned, *misspellings][:max_misspellings]
    return WordRecord(
        word=key,
        category=category,
        attempts=(existing.attempts if existing else 0) + 1,
        correct=(existing.correct if existing else 0) + (1 if correct else 0),
        last_seen=now,
        last_correct=now if correct else (existing.last_correct if existing else 0),
        box=box,
        next_review=next_review_at(now, box),
        misspellings=misspellings,
    )


def _queue_sort_key(record: WordRecord):
    return (record.box, record.accuracy)


def get_review_queue(records: Dict[str, WordRecord], index: ReviewIndex, as_of: int) -> List[WordRecord]:
    """Words with box < 4 and next_review <= as_of, weakest first."""
    due = [records[entry.word] for entry in index.due_prefix(as_of) if entry.box < MASTERED_BOX and entry.word in records]
    return sorted(due, key=_queue_sort_key)


def _category_totals(records: Iterable[WordRecord]) -> Dict[str, Dict[str, int]]:
    totals: Dict[str, Dict[str, int]] = {}
    for record in records:
        stats = totals.setdefault(record.category, {"attempts": 0, "correct": 0})
        stats["attempts"] += record.attempts
        stats["correct"] += record.correct
    return totals


def get_category_accuracy(records: Dict[str, WordRecord]) -> List[WeakCategory]:
    totals = _category_totals(records.values())
    result = [
        WeakCategory(category=cat, accuracy=accuracy(s["attempts"], s["correct"]), attempts=s["attempts"])
        for cat, s in totals.items()
        if s["attempts"] > 0
    ]
    return sorted(result, key=lambda c: (c.accuracy, c.category))


def get_weak_categories(
    records: Dict[str, WordRecord],
    min_attempts: int = WEAK_MIN_ATTEMPTS,
    threshold: float = WEAK_ACCURACY_THRESHOLD,
) -> List[WeakCategory]:
    """Categories with at least `min_attempts` attempts and accuracy below `threshold`, worst first."""
    return [
        c for c in get_category_accuracy(records)
        if c.attempts >= min_attempts and c.accuracy < threshold
    ]


def get_mastered_count(records: Dict[str, WordRecord]) -> int:
    return sum(1 for r in records.values() if r.box >= MASTERED_BOX)


def get_hardest_words(records: Dict[str, WordRecord], limit: int = 10) -> List[WordDrillDown]:
    attempted = [r for r in records.values() if r.attempts > 0]
    attempted.sort(key=lambda r: (r.accuracy, -r.attempts, r.word))
    return [
        WordDrillDown(word=r.word, category=r.category, attempts=r.attempts, accuracy=r.accuracy, box=r.box)
        for r in attempted[:limit]
    ]


class WordHistoryTracker:
    """Owns one user's WordHistory and keeps it, its index and the store in step."""

    def __init__(
        self,
        store,
        key: str,
        clock: Clock = now_ms,
        max_recent: int = MAX_RECENT,
        max_misspellings: int = MAX_MISSPELLINGS,
    ):
        self.store = store
        self.key = key
        self.clock = clock
        self.max_recent = max_recent
        self.max_misspellings = max_misspellings
        self._history = self._load()
        self._index = ReviewIndex.from_records(self._history.records)

    def _load(self) -> WordHistory:
        try:
            raw = self.store.get(self.key)
        except StorageError as exc:
            logger.warning("Could not read word history %s: %s", self.key, exc)
            return WordHistory()
        if not raw:
            return WordHistory()
        try:
            return WordHistory.model_validate_json(raw)
        except (ValidationError, ValueError) as exc:
            logger.warning("Discarding corrupt word history %s: %s", self.key, exc)
            return WordHistory()

    def _persist(self) -> bool:
        try:
            self.store.set(self.key, self._history.model_dump_json().encode("utf-8"))
        except StorageError as exc:
            log_structured("word_history_persist_failed", level=logging.WARNING, key=self.key, error=str(exc))
            return False
        return True

    @property
    def records(self) -> Dict[str, WordRecord]:
        return self._history.records

    @property
    def recent_attempts(self) -> List[WordAttempt]:
        return self._history.recent_attempts

    @property
    def index(self) -> ReviewIndex:
        return self._index

    @property
    def latest_attempt_ts(self) -> int:
        if not self._history.recent_attempts:
            return 0
        return self._history.recent_attempts[0].timestamp

    def snapshot(self) -> WordHistory:
        return self._history.model_copy(deep=True)

    def get(self, word: str) -> Optional[WordRecord]:
        return self._history.records.get(word.lower())

    def record_attempt(
        self,
        word: str,
        category: str,
        correct: bool,
        response_time_ms: int = 0,
        typed: Optional[str] = None,
    ) -> WordRecord:
        now = self.clock()
        key = word.lower()
        record = apply_attempt(
            self._history.records.get(key),
            key,
            category,
            correct,
            now,
            typed=typed,
            max_misspellings=self.max_misspellings,
        )
        attempt = WordAttempt(
            word=key,
            category=category,
            correct=correct,
            timestamp=now,
            response_time_ms=response_time_ms,
        )
        self._history.records[key] = record
        self._history.recent_attempts = [attempt, *self._history.recent_attempts][: self.max_recent]
        self._index.upsert(key, record.next_review, record.box)
        self._persist()
        return record

    def review_queue(self, as_of: Optional[int] = None) -> List[WordRecord]:
        if as_of is None:
            as_of = self.latest_attempt_ts
        return get_review_queue(self._history.records, self._index, as_of)

    def weak_categories(self) -> List[WeakCategory]:
        return get_weak_categories(self._history.records)

    def mastered_count(self) -> int:
        return get_mastered_count(self._history.records)

    def merge_remote(self, remote: WordHistory) -> WordHistory:
        self._history = merge_histories(
            self._history,
            remote,
            max_recent=self.max_recent,
            max_misspellings=self.max_misspellings,
        )
        self._index = ReviewIndex.from_records(self._history.records)
        self._persist()
        return self.snapshot()
