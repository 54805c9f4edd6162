"""In-memory caches."""

from .match_cache import MatchDetailCache

__all__ = ["MatchDetailCache"]
