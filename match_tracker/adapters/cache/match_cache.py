"""Bounded in-memory cache of match details."""

from collections import OrderedDict
from typing import Optional

from ...core.entities import MatchSummary


class MatchDetailCache:
    """Least-recently-used cache keyed by match id.

    Match details are immutable once a match has completed, so entries never
    expire; they are only evicted when the cache is full.
    """

    def __init__(self, capacity: int = 512):
        if capacity < 0:
            raise ValueError("Cache capacity must not be negative")
        self.capacity = capacity
        self._entries: "OrderedDict[str, MatchSummary]" = OrderedDict()
        self.hits = 0
        self.misses = 0

    def get(self, match_id: str) -> Optional[MatchSummary]:
        summary = self._entries.get(match_id)
        if summary is None:
            self.misses += 1
            return None
        self._entries.move_to_end(match_id)
        self.hits += 1
        return summary

    def put(self, match_id: str, summary: MatchSummary) -> None:
        if self.capacity == 0:
            return
        self._entries[match_id] = summary
        self._entries.move_to_end(match_id)
        while len(self._entries) > self.capacity:
            self._entries.popitem(last=False)

    def __contains__(self, match_id: str) -> bool:
        return match_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def clear(self) -> None:
        self._entries.clear()
