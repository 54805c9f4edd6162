"""Domain events emitted by the match-tracker service."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .entities import LeagueEntry, MatchSummary, TrackedAccount


@dataclass(frozen=True)
class MatchCompletedEvent:
    """A tracked account finished a match that was not seen before.

    This is the only externally visible output of the polling engine and
    carries everything the downstream alert formatter needs. For ranked
    League of Legends matches ``league`` holds the account's standing after
    the match and ``previous_league`` the standing last reported for that
    queue, when this process knows it.
    """

    account: TrackedAccount
    match: MatchSummary
    league: Optional[LeagueEntry] = None
    previous_league: Optional[LeagueEntry] = None
    detected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def get_event_type(self) -> str:
        """Get the event type identifier for routing."""
        return f"{self.account.game_type.subject_token}.match_completed"

    @property
    def dedup_key(self) -> str:
        """Identity of the event: one per (provider id, match id)."""
        return f"{self.account.provider_id}:{self.match.match_id}"

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the event for the message bus."""
        player = self.match.participant(self.account.provider_id)
        return {
            "event_type": self.get_event_type(),
            "dedup_key": self.dedup_key,
            "detected_at": self.detected_at.isoformat(),
            "account": {
                "provider_id": self.account.provider_id,
                "region": self.account.region.value,
                "display_name": self.account.display_name,
                "game_type": self.account.game_type.value,
            },
            "match": {
                "match_id": self.match.match_id,
                "completed_at": self.match.completed_at.isoformat(),
                "queue_id": self.match.queue_id,
                "queue_type": self.match.queue_name,
                "duration_seconds": self.match.duration_seconds,
                "participants": [
                    {
                        "puuid": p.puuid,
                        "riot_id": p.riot_id,
                        "won": p.won,
                        "champion_name": p.champion_name,
                        "kills": p.kills,
                        "deaths": p.deaths,
                        "assists": p.assists,
                        "placement": p.placement,
                    }
                    for p in self.match.participants
                ],
            },
            "player_won": player.won if player else None,
            "league": self.league.to_dict() if self.league else None,
            "previous_league": self.previous_league.to_dict() if self.previous_league else None,
        }
