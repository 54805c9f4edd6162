"""Core entities for the match-tracker service."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Tuple

from .enums import GameType, QueueType, Region


def utc_now_naive() -> datetime:
    """Current UTC time without tzinfo, as stored in the database columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


@dataclass(frozen=True)
class TrackedAccount:
    """A Riot account registered for match completion monitoring.

    ``provider_id`` is the PUUID issued for the API key of ``game_type``;
    PUUIDs are key specific, so a player tracked for both LoL and TFT has
    two records.
    """

    provider_id: str
    region: Region
    display_name: str
    game_type: GameType = GameType.LOL

    @property
    def game_name(self) -> str:
        return self.display_name.partition("#")[0]

    @property
    def tag_line(self) -> str:
        return self.display_name.partition("#")[2]

    def __str__(self) -> str:
        return f"{self.display_name} ({self.region.value}, {self.game_type.value})"


@dataclass
class LastSeenState:
    """Last match observed for an account.

    ``last_match_id`` is None when the account had no match history at the
    time it was first polled.
    """

    provider_id: str
    region: Region
    last_match_id: Optional[str] = None
    last_polled_at: datetime = field(default_factory=utc_now_naive)


@dataclass(frozen=True)
class PlayerResult:
    """One participant's outcome in a completed match."""

    puuid: str
    game_name: str
    tag_line: str
    won: bool
    champion_name: Optional[str] = None
    kills: Optional[int] = None
    deaths: Optional[int] = None
    assists: Optional[int] = None
    placement: Optional[int] = None  # TFT only, 1-8

    @property
    def riot_id(self) -> str:
        return f"{self.game_name}#{self.tag_line}"


@dataclass(frozen=True)
class MatchSummary:
    """Immutable summary of a completed match as returned by the provider."""

    match_id: str
    game_type: GameType
    completed_at: datetime
    queue_id: int
    duration_seconds: int
    participants: Tuple[PlayerResult, ...] = ()

    @property
    def queue_type(self) -> Optional[QueueType]:
        return QueueType.from_queue_id(self.queue_id)

    @property
    def queue_name(self) -> str:
        """Readable queue name, falling back to the raw id for unknown queues."""
        queue_type = self.queue_type
        return queue_type.value if queue_type else f"QUEUE_{self.queue_id}"

    def participant(self, puuid: str) -> Optional[PlayerResult]:
        """Get the result of the participant with the given PUUID."""
        for participant in self.participants:
            if participant.puuid == puuid:
                return participant
        return None

    @property
    def is_ranked(self) -> bool:
        """True for the League of Legends queues that have a league standing."""
        return self.queue_type in RANKED_QUEUES


# Queues whose matches change a league-v4 standing
RANKED_QUEUES = (QueueType.RANKED_SOLO_5X5, QueueType.RANKED_FLEX_SR)


@dataclass(frozen=True)
class LeagueEntry:
    """An account's standing in one ranked queue, as reported by league-v4."""

    queue_type: QueueType
    tier: str
    rank: str
    league_points: int
    wins: int = 0
    losses: int = 0

    def to_dict(self) -> dict:
        return {
            "queue_type": self.queue_type.value,
            "tier": self.tier,
            "rank": self.rank,
            "league_points": self.league_points,
            "wins": self.wins,
            "losses": self.losses,
        }
