"""Core services for the match-tracker service."""

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

from .entities import LastSeenState


def parse_match_id(match_id: str) -> Optional[Tuple[str, int]]:
    """Split a Riot match id such as ``EUW1_7012345678`` into (platform, game id).

    Returns None when the id does not follow that format, in which case only
    positional ordering within a history response is available.
    """
    platform, sep, game_id = match_id.rpartition("_")
    if not sep or not platform or not game_id.isdigit():
        return None
    return platform, int(game_id)


def is_newer_match(match_id: str, reference_id: str) -> Optional[bool]:
    """Compare two match ids under Riot's ordering.

    Returns None when the ids are not comparable (foreign format or
    different platforms).
    """
    candidate = parse_match_id(match_id)
    reference = parse_match_id(reference_id)
    if candidate is None or reference is None or candidate[0] != reference[0]:
        return None
    return candidate[1] > reference[1]


@dataclass(frozen=True)
class HistoryDiff:
    """Result of comparing a match history against the last-seen state.

    Attributes:
        candidates: New match ids, oldest first
        seed_match_id: Id to store without alerting (first poll only)
        is_seed: True when the account had no state and is being seeded
        truncated: True when the last-seen id was missing from the history,
            meaning matches older than the history depth may have been skipped
    """

    candidates: Tuple[str, ...] = ()
    seed_match_id: Optional[str] = None
    is_seed: bool = False
    truncated: bool = False

    @property
    def newest_candidate(self) -> Optional[str]:
        return self.candidates[-1] if self.candidates else None


class MatchHistoryDiffService:
    """Decides which matches in a history response are new for an account."""

    def diff(
        self,
        match_ids: Sequence[str],
        state: Optional[LastSeenState],
    ) -> HistoryDiff:
        """Diff a newest-first list of match ids against the last-seen state.

        Args:
            match_ids: Match ids as returned by the provider, newest first
            state: Stored state for the account, None if never polled

        Returns:
            HistoryDiff describing candidates (oldest first) or the seed value
        """
        # Drop duplicates while keeping the provider order
        ordered = tuple(dict.fromkeys(match_ids))

        if state is None:
            # Only matches completed after tracking began generate alerts
            return HistoryDiff(
                seed_match_id=ordered[0] if ordered else None,
                is_seed=True,
            )

        if not ordered:
            return HistoryDiff()

        last_seen = state.last_match_id
        if last_seen is None:
            # Seeded while the history was empty: everything is new
            return HistoryDiff(candidates=tuple(reversed(ordered)))

        if last_seen in ordered:
            newer = ordered[: ordered.index(last_seen)]
            return HistoryDiff(candidates=tuple(reversed(newer)))

        # Last-seen id fell outside the history depth. Everything visible is a
        # candidate, except ids the provider ordering says are not newer.
        newer = tuple(
            match_id
            for match_id in ordered
            if is_newer_match(match_id, last_seen) is not False
        )
        return HistoryDiff(candidates=tuple(reversed(newer)), truncated=bool(newer))
