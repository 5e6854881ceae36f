from __future__ import annotations

from typing import Dict, List, Tuple

from models.word import WordAttempt, WordHistory, WordRecord


def merge_misspellings(local: List[str], remote: List[str], limit: int) -> List[str]:
    merged: List[str] = []
    for entry in [*local, *remote]:
        if entry not in merged:
            merged.append(entry)
    return merged[:limit]


def merge_records(local: WordRecord, remote: WordRecord, max_misspellings: int) -> WordRecord:
    """Counters take the max; the schedule follows whichever side saw the word last."""
    latest = remote if remote.last_seen > local.last_seen else local
    return WordRecord(
        word=local.word,
        category=latest.category,
        attempts=max(local.attempts, remote.attempts),
        correct=max(local.correct, remote.correct),
        last_seen=latest.last_seen,
        last_correct=max(local.last_correct, remote.last_correct),
        box=latest.box,
        next_review=latest.next_review,
        misspellings=merge_misspellings(local.misspellings, remote.misspellings, max_misspellings),
    )


def _attempt_key(attempt: WordAttempt) -> Tuple[str, int, bool]:
    return (attempt.word, attempt.timestamp, attempt.correct)


def merge_attempts(local: List[WordAttempt], remote: List[WordAttempt], limit: int) -> List[WordAttempt]:
    seen: Dict[Tuple[str, int, bool], WordAttempt] = {}
    for attempt in [*local, *remote]:
        seen.setdefault(_attempt_key(attempt), attempt)
    ordered = sorted(seen.values(), key=lambda a: (-a.timestamp, a.word))
    return ordered[:limit]


def merge_histories(
    local: WordHistory,
    remote: WordHistory,
    max_recent: int = 200,
    max_misspellings: int = 5,
) -> WordHistory:
    records: Dict[str, WordRecord] = {}
    for key in sorted(set(local.records) | set(remote.records)):
        mine = local.records.get(key)
        theirs = remote.records.get(key)
        if mine is None:
            records[key] = theirs.model_copy(deep=True)
        elif theirs is None:
            records[key] = mine.model_copy(deep=True)
        else:
            records[key] = merge_records(mine, theirs, max_misspellings)
    return WordHistory(
        records=records,
        recent_attempts=merge_attempts(local.recent_attempts, remote.recent_attempts, max_recent),
    )
