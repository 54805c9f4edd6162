"""Test utility functions and in-memory collaborators."""

import asyncio
from typing import Dict, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from match_tracker.adapters.database.models import LastSeenState as LastSeenStateModel
from match_tracker.adapters.database.models import TrackedAccount as TrackedAccountModel
from match_tracker.adapters.riot_api.errors import NotFoundError
from match_tracker.core.entities import LastSeenState, LeagueEntry, MatchSummary, TrackedAccount
from match_tracker.core.enums import GameType, QueueType, Region


async def count_tracked_accounts(session: AsyncSession) -> int:
    """Count the number of tracked accounts in the database."""
    result = await session.execute(select(TrackedAccountModel))
    return len(result.scalars().all())


async def count_last_seen_states(session: AsyncSession) -> int:
    """Count the number of last seen states in the database."""
    result = await session.execute(select(LastSeenStateModel))
    return len(result.scalars().all())


async def wait_for_condition(condition, timeout: float = 5.0, interval: float = 0.05) -> bool:
    """Poll a synchronous condition until it holds or the timeout expires."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while loop.time() < deadline:
        if condition():
            return True
        await asyncio.sleep(interval)
    return condition()


class FakeClock:
    """Manually driven clock whose sleep advances time instantly."""

    def __init__(self, start: float = 0.0):
        self.current = start
        self.sleeps: List[float] = []

    def time(self) -> float:
        return self.current

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.current += seconds
        await asyncio.sleep(0)

    def advance(self, seconds: float) -> None:
        self.current += seconds


class InMemoryLastSeenRepository:
    """Last-seen repository backed by a dict, with the database's semantics."""

    def __init__(self):
        self.states: Dict[Tuple[str, Region], LastSeenState] = {}
        self.writes: List[Tuple[str, Optional[str]]] = []

    async def get_last_seen_state(self, provider_id: str, region: Region) -> Optional[LastSeenState]:
        return self.states.get((provider_id, region))

    async def set_last_seen(self, provider_id: str, region: Region, match_id: Optional[str]) -> bool:
        self.writes.append((provider_id, match_id))
        existing = self.states.get((provider_id, region))
        if match_id is None and existing is not None:
            match_id = existing.last_match_id
        self.states[(provider_id, region)] = LastSeenState(provider_id, region, match_id)
        return True

    def last_seen(self, account: TrackedAccount) -> Optional[str]:
        state = self.states.get((account.provider_id, account.region))
        return state.last_match_id if state else None


class InMemoryAccountSource:
    """Account source serving a fixed list of accounts."""

    def __init__(self, accounts: Optional[List[TrackedAccount]] = None):
        self.accounts = list(accounts or [])

    async def list_tracked_accounts(self, game_type: Optional[GameType] = None) -> List[TrackedAccount]:
        return [a for a in self.accounts if game_type is None or a.game_type == game_type]


class FakeRiotAPI:
    """Riot API stand-in with scripted match histories and failures.

    Histories are newest first. ``list_errors``, ``detail_errors`` and
    ``league_errors`` hold exceptions raised on every call for the given key.
    Accounts without an entry in ``leagues`` are unranked. Setting ``gate``
    blocks history calls until the event is set.
    """

    def __init__(self):
        self.histories: Dict[str, List[str]] = {}
        self.details: Dict[str, MatchSummary] = {}
        self.list_errors: Dict[str, Exception] = {}
        self.detail_errors: Dict[str, Exception] = {}
        self.list_calls: List[str] = []
        self.detail_calls: List[str] = []
        self.leagues: Dict[Tuple[str, QueueType], LeagueEntry] = {}
        self.league_errors: Dict[str, Exception] = {}
        self.league_calls: List[Tuple[str, QueueType]] = []
        self.gate: Optional[asyncio.Event] = None
        self.entered = asyncio.Event()

    def add_match(self, provider_id: str, summary: MatchSummary) -> None:
        self.histories.setdefault(provider_id, []).insert(0, summary.match_id)
        self.details[summary.match_id] = summary

    async def list_recent_match_ids(self, provider_id: str, region: Region) -> List[str]:
        self.list_calls.append(provider_id)
        self.entered.set()
        if self.gate is not None:
            await self.gate.wait()
        if provider_id in self.list_errors:
            raise self.list_errors[provider_id]
        return list(self.histories.get(provider_id, []))

    async def fetch_match_detail(self, match_id: str, region: Region) -> MatchSummary:
        self.detail_calls.append(match_id)
        if match_id in self.detail_errors:
            raise self.detail_errors[match_id]
        if match_id not in self.details:
            raise NotFoundError(f"match {match_id}: Resource not found", status_code=404)
        return self.details[match_id]

    async def fetch_league_entry(
        self, provider_id: str, region: Region, queue_type: QueueType
    ) -> Optional[LeagueEntry]:
        self.league_calls.append((provider_id, queue_type))
        if provider_id in self.league_errors:
            raise self.league_errors[provider_id]
        return self.leagues.get((provider_id, queue_type))
