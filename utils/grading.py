from Levenshtein import ratio as lev_ratio
from difflib import SequenceMatcher
from typing import Dict, Any, List, Optional

DEFAULT_CLOSE_THRESHOLD = 0.75

def normalize_spelling(text: Optional[str]) -> str:
    return (text or "").strip().lower()

def is_correct_spelling(typed: str, word: str) -> bool:
    """Case-insensitive exact comparison; whitespace is significant."""
    return typed.lower() == word.lower()

def spelling_closeness(typed: str, word: str) -> float:
    """Levenshtein ratio between the normalized spellings (1.0 = identical)."""
    typed_clean = normalize_spelling(typed)
    word_clean = normalize_spelling(word)
    if not typed_clean and not word_clean:
        return 1.0
    return round(lev_ratio(typed_clean, word_clean), 3)

def grade_spelling(typed: str, word: str, config: Optional[Dict[str, Any]] = None) -> str:
    """Grade a typed spelling as 'correct', 'close' or 'wrong'."""
    grading_config = (config or {}).get('grading', {})
    close_th = grading_config.get('close_threshold', DEFAULT_CLOSE_THRESHOLD)
    if not typed or not typed.strip():
        return 'wrong'
    if normalize_spelling(typed) == normalize_spelling(word):
        return 'correct'
    if spelling_closeness(typed, word) >= close_th:
        return 'close'
    return 'wrong'

def letter_diff(typed: str, correct: str) -> Dict[str, List[Dict[str, str]]]:
    """Character-level alignment of a typed spelling against the correct word."""
    typed_chars = list(typed or "")
    correct_chars = list(correct or "")
    matcher = SequenceMatcher(
        None,
        [c.lower() for c in correct_chars],
        [c.lower() for c in typed_chars],
        autojunk=False,
    )
    expected: List[Dict[str, str]] = []
    actual: List[Dict[str, str]] = []
    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if tag == "equal":
            for char in correct_chars[i1:i2]:
                expected.append({"char": char, "kind": "correct"})
            for char in typed_chars[j1:j2]:
                actual.append({"char": char, "kind": "correct"})
        elif tag == "delete":
            for char in correct_chars[i1:i2]:
                expected.append({"char": char, "kind": "missing"})
        elif tag == "insert":
            for char in typed_chars[j1:j2]:
                actual.append({"char": char, "kind": "extra"})
        elif tag == "replace":
            for char in correct_chars[i1:i2]:
                expected.append({"char": char, "kind": "wrong"})
            for char in typed_chars[j1:j2]:
                actual.append({"char": char, "kind": "wrong"})
    return {"correct": expected, "typed": actual}
