from __future__ import annotations

import bisect
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List


@dataclass(frozen=True, order=True)
class IndexEntry:
    next_review: int
    word: str
    box: int = field(compare=False)


class ReviewIndex:
    """Entries kept sorted by (next_review, word) so due lookups are a binary search."""

    def __init__(self, entries: Iterable[IndexEntry] = ()):
        self._entries: List[IndexEntry] = sorted(entries)
        self._by_word: Dict[str, IndexEntry] = {entry.word: entry for entry in self._entries}

    @classmethod
    def from_records(cls, records) -> "ReviewIndex":
        return cls(IndexEntry(r.next_review, r.word, r.box) for r in records.values())

    def upsert(self, word: str, next_review: int, box: int) -> IndexEntry:
        previous = self._by_word.get(word)
        if previous is not None:
            pos = bisect.bisect_left(self._entries, previous)
            if pos < len(self._entries) and self._entries[pos] == previous:
                del self._entries[pos]
        entry = IndexEntry(next_review, word, box)
        bisect.insort(self._entries, entry)
        self._by_word[word] = entry
        return entry

    def due_prefix(self, as_of: int) -> List[IndexEntry]:
        split = bisect.bisect_right(self._entries, as_of, key=lambda e: e.next_review)
        return self._entries[:split]

    def get(self, word: str):
        return self._by_word.get(word)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[IndexEntry]:
        return iter(list(self._entries))
