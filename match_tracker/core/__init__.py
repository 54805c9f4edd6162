"""Core layer for the match-tracker service.

This module provides the domain entities, enums, events and the match
history diff used by the polling engine.
"""

from .entities import TrackedAccount, LastSeenState, LeagueEntry, MatchSummary, PlayerResult
from .enums import GameType, QueueType, Region
from .events import MatchCompletedEvent
from .services import HistoryDiff, MatchHistoryDiffService

__all__ = [
    "TrackedAccount",
    "LastSeenState",
    "LeagueEntry",
    "MatchSummary",
    "PlayerResult",
    "GameType",
    "QueueType",
    "Region",
    "MatchCompletedEvent",
    "HistoryDiff",
    "MatchHistoryDiffService",
]
