"""Match store: durable last-seen state plus in-memory detail and league caches."""

import logging
from typing import Dict, Optional, Protocol, Tuple

from ..adapters.cache.match_cache import MatchDetailCache
from ..core.entities import LastSeenState, LeagueEntry, MatchSummary
from ..core.enums import QueueType, Region

logger = logging.getLogger(__name__)


class LastSeenRepository(Protocol):
    """Durable storage of last-seen state, implemented by DatabaseManager."""

    async def get_last_seen_state(self, provider_id: str, region: Region) -> Optional[LastSeenState]:
        ...

    async def set_last_seen(self, provider_id: str, region: Region, match_id: Optional[str]) -> bool:
        ...


class MatchStore:
    """Single writer of LastSeenState for the polling engines.

    Last-seen state lives in the database. Match details are kept in a
    bounded LRU cache and the last reported league standings in a plain
    dict, both in process memory only.
    """

    def __init__(self, repository: LastSeenRepository, cache_capacity: int = 512):
        self.repository = repository
        self.cache = MatchDetailCache(cache_capacity)
        self._leagues: Dict[Tuple[str, QueueType], LeagueEntry] = {}

    async def get_last_seen(self, provider_id: str, region: Region) -> Optional[str]:
        """Get the newest match id already reported for an account."""
        state = await self.repository.get_last_seen_state(provider_id, region)
        return state.last_match_id if state else None

    async def get_last_seen_state(self, provider_id: str, region: Region) -> Optional[LastSeenState]:
        """Get the full state, None when the account was never polled."""
        return await self.repository.get_last_seen_state(provider_id, region)

    async def set_last_seen(self, provider_id: str, region: Region, match_id: Optional[str]) -> bool:
        """Durably record the newest reported match of an account."""
        saved = await self.repository.set_last_seen(provider_id, region, match_id)
        if saved:
            logger.debug(f"Last seen match for {provider_id} ({region.value}) is now {match_id}")
        return saved

    def get_cached_detail(self, match_id: str) -> Optional[MatchSummary]:
        return self.cache.get(match_id)

    def put_cached_detail(self, match_id: str, summary: MatchSummary) -> None:
        self.cache.put(match_id, summary)

    def get_cached_league(self, provider_id: str, queue_type: QueueType) -> Optional[LeagueEntry]:
        """Last league standing reported for an account in a ranked queue."""
        return self._leagues.get((provider_id, queue_type))

    def put_cached_league(self, provider_id: str, league: LeagueEntry) -> None:
        self._leagues[(provider_id, league.queue_type)] = league
