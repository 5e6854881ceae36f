from typing import Optional

DAY_MS = 24 * 60 * 60 * 1000

MIN_BOX = 0
MASTERED_BOX = 4

# Leitner box -> review delay in milliseconds
BOX_DELAY_MS = {
    0: 0,
    1: 1 * DAY_MS,
    2: 3 * DAY_MS,
    3: 7 * DAY_MS,
    4: 14 * DAY_MS,
}

def next_box(existing_box: Optional[int], correct: bool) -> int:
    """Box after an attempt; a brand-new word starts at 1 when correct, 0 otherwise."""
    if existing_box is None:
        return 1 if correct else MIN_BOX
    if not correct:
        return MIN_BOX
    return min(existing_box + 1, MASTERED_BOX)

def review_delay_ms(box: int) -> int:
    return BOX_DELAY_MS.get(box, 0)

def next_review_at(now: int, box: int) -> int:
    return now + review_delay_ms(box)

def accuracy(attempts: int, correct: int) -> float:
    if attempts <= 0:
        return 0.0
    return correct / attempts

def mastery_status(box: int) -> str:
    return "mastered" if box >= MASTERED_BOX else "learning"

def mastery_percent(mastered: int, total: int) -> float:
    if total <= 0:
        return 0.0
    return round((mastered / total) * 100, 1)
