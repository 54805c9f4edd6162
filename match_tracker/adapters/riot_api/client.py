"""Riot API client with rate limiting and error classification."""

import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx
import structlog

from ...core.entities import LeagueEntry, MatchSummary, PlayerResult
from ...core.enums import GameType, QueueType, Region
from ..observability import MetricsProvider
from .errors import FatalAPIError, TransientAPIError
from .rate_limiter import RateLimiter
from .retry import Fail, FailureKind, Ok, Outcome, RetryAfter, RetryDriver, RetryPolicy

logger = structlog.get_logger()


MATCH_ENDPOINTS = {
    GameType.LOL: "/lol/match/v5/matches",
    GameType.TFT: "/tft/match/v1/matches",
}

LEAGUE_ENDPOINT = "/lol/league/v4/entries/by-puuid"


class RiotAPIClient:
    """Riot API client for one game type and one API key.

    Every request goes through a RetryDriver, which acquires the shared
    RateLimiter before each attempt.
    """

    def __init__(
        self,
        api_key: str,
        limiter: RateLimiter,
        game_type: GameType = GameType.LOL,
        base_url: Optional[str] = None,
        request_timeout: float = 10.0,
        match_history_count: int = 20,
        retry_policy: Optional[RetryPolicy] = None,
        default_retry_after: float = 10.0,
        metrics: Optional[MetricsProvider] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        driver: Optional[RetryDriver] = None,
    ):
        """Initialize the Riot API client.

        Args:
            api_key: Riot API key attached to every request
            limiter: Rate limiter shared by every caller of this key
            game_type: Which match endpoints to use
            base_url: Host override (mock server); regional routing when None
            request_timeout: Request timeout in seconds
            match_history_count: How many recent match ids to request
            retry_policy: Retry limits and backoff curve
            default_retry_after: Floor used when a 429 has no Retry-After header
            metrics: Optional metrics provider
            http_client: Preconfigured httpx client, mainly for tests
            driver: Preconfigured retry driver, mainly for tests
        """
        self.api_key = api_key
        self.limiter = limiter
        self.game_type = game_type
        self.base_url = base_url.rstrip("/") if base_url else None
        self.request_timeout = request_timeout
        self.match_history_count = match_history_count
        self.default_retry_after = default_retry_after
        self.metrics = metrics
        self.client = http_client or httpx.AsyncClient(timeout=request_timeout)
        self.driver = driver or RetryDriver(limiter, retry_policy)

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()

    def _get_regional_url(self, region: Region) -> str:
        """Get the base URL for account and match calls of a region."""
        # Always use the provided base URL if available
        return self.base_url if self.base_url else f"https://{region.regional_host}"

    def _get_platform_url(self, region: Region) -> str:
        """Get the base URL for platform calls (league-v4) of a region."""
        return self.base_url if self.base_url else f"https://{region.platform_host}"

    def _classify(self, response: httpx.Response) -> Outcome:
        """Map an HTTP response to a retry outcome."""
        status = response.status_code

        if status == 200:
            try:
                return Ok(response.json())
            except ValueError:
                return Fail(FailureKind.TRANSIENT, "Undecodable response body", status)

        if status == 429:
            header = response.headers.get("Retry-After")
            try:
                retry_after = float(header) if header is not None else self.default_retry_after
            except ValueError:
                retry_after = self.default_retry_after
            logger.warning(
                "Rate limited by Riot API",
                retry_after=retry_after,
                limit_type=response.headers.get("X-Rate-Limit-Type"),
            )
            return RetryAfter(retry_after)

        if status == 404:
            return Fail(FailureKind.NOT_FOUND, "Resource not found", status)

        if status in (401, 403):
            return Fail(FailureKind.FATAL, "API key rejected", status)

        if status >= 500:
            return Fail(FailureKind.TRANSIENT, f"Server error: {status}", status)

        logger.error(
            "Riot API error",
            url=str(response.request.url) if response.request else None,
            status_code=status,
            response=response.text,
        )
        return Fail(FailureKind.FATAL, f"API error: {status}", status)

    async def _attempt(self, url: str, endpoint_type: str, params: Optional[Dict[str, Any]] = None) -> Outcome:
        """Perform a single HTTP attempt and classify it."""
        headers = {"X-Riot-Token": self.api_key, "Accept": "application/json"}
        started = time.monotonic()

        try:
            response = await self.client.get(url, headers=headers, params=params)
        except httpx.TimeoutException as e:
            self._record_call(endpoint_type, 0, started, "timeout")
            logger.warning("HTTP request timed out", url=url, error=str(e))
            return Fail(FailureKind.TRANSIENT, f"Request timed out: {e}")
        except httpx.RequestError as e:
            self._record_call(endpoint_type, 0, started, "request_error")
            logger.warning("HTTP request failed", url=url, error=str(e))
            return Fail(FailureKind.TRANSIENT, f"Request failed: {e}")

        self._record_call(endpoint_type, response.status_code, started)
        return self._classify(response)

    def _record_call(self, endpoint_type: str, status_code: int, started: float, error_type: Optional[str] = None):
        if self.metrics:
            self.metrics.record_riot_api_call(
                endpoint_type=endpoint_type,
                game_type=self.game_type.subject_token,
                status_code=status_code,
                duration=time.monotonic() - started,
                error_type=error_type,
            )

    async def _request(
        self, url: str, endpoint_type: str, operation: str, params: Optional[Dict[str, Any]] = None
    ) -> Any:
        return await self.driver.run(lambda: self._attempt(url, endpoint_type, params), operation)

    async def resolve_account(self, display_name: str, region: Region) -> str:
        """Resolve a Riot ID to the PUUID issued for this client's API key.

        Args:
            display_name: Riot ID in ``GameName#TAG`` form
            region: Region whose cluster serves the lookup

        Returns:
            The account's PUUID

        Raises:
            NotFoundError: If the account does not exist
            FatalAPIError: If the Riot ID is malformed or the key is rejected
            TransientAPIError: If the provider stayed unreachable
        """
        game_name, sep, tag_line = display_name.partition("#")
        game_name, tag_line = game_name.strip(), tag_line.strip()
        if not sep or not game_name or not tag_line:
            raise FatalAPIError(f"Invalid Riot ID {display_name!r}, expected GameName#TAG")

        url = (
            f"{self._get_regional_url(region)}/riot/account/v1/accounts/by-riot-id/"
            f"{quote(game_name, safe='')}/{quote(tag_line, safe='')}"
        )

        logger.info("Resolving account", game_name=game_name, tag_line=tag_line, region=region.value)
        data = await self._request(url, "account", f"resolve {game_name}#{tag_line}")

        try:
            puuid = data["puuid"]
        except (KeyError, TypeError):
            raise TransientAPIError("Account response is missing the puuid", 200)

        logger.info("Successfully resolved account", game_name=game_name, tag_line=tag_line, puuid=puuid)
        return puuid

    async def list_recent_match_ids(self, provider_id: str, region: Region) -> List[str]:
        """Get the most recent match ids of an account, newest first.

        Raises:
            NotFoundError: If the PUUID is unknown to the provider
            FatalAPIError: If the key is rejected
            TransientAPIError: If the provider stayed unreachable
        """
        url = f"{self._get_regional_url(region)}{MATCH_ENDPOINTS[self.game_type]}/by-puuid/{provider_id}/ids"
        params = {"start": 0, "count": self.match_history_count}

        data = await self._request(url, "match_ids", f"match ids of {provider_id}", params)
        if not isinstance(data, list):
            raise TransientAPIError("Match history response is not a list", 200)

        match_ids = [str(match_id) for match_id in data][: self.match_history_count]
        logger.debug("Fetched match ids", puuid=provider_id, count=len(match_ids))
        return match_ids

    async def fetch_match_detail(self, match_id: str, region: Region) -> MatchSummary:
        """Get the summary of a completed match.

        Raises:
            NotFoundError: If the match does not exist (yet)
            FatalAPIError: If the key is rejected
            TransientAPIError: If the provider stayed unreachable
        """
        url = f"{self._get_regional_url(region)}{MATCH_ENDPOINTS[self.game_type]}/{match_id}"

        logger.info("Fetching match info", match_id=match_id, region=region.value)
        data = await self._request(url, "match", f"match {match_id}")

        try:
            if self.game_type == GameType.TFT:
                summary = parse_tft_match(match_id, data)
            else:
                summary = parse_lol_match(match_id, data)
        except (KeyError, TypeError, ValueError) as e:
            raise TransientAPIError(f"Malformed match payload for {match_id}: {e}", 200)

        logger.info(
            "Successfully fetched match info",
            match_id=match_id,
            queue_type=summary.queue_name,
            duration=summary.duration_seconds,
        )
        return summary

    async def fetch_league_entry(
        self, provider_id: str, region: Region, queue_type: QueueType
    ) -> Optional[LeagueEntry]:
        """Get an account's current standing in a ranked queue.

        Only League of Legends accounts have league-v4 entries.

        Returns:
            The entry for ``queue_type``, or None when the account is unranked there

        Raises:
            NotFoundError: If the PUUID is unknown to the provider
            FatalAPIError: If the key is rejected
            TransientAPIError: If the provider stayed unreachable
        """
        if self.game_type != GameType.LOL:
            raise ValueError(f"League lookups are not available for {self.game_type.value}")

        url = f"{self._get_platform_url(region)}{LEAGUE_ENDPOINT}/{provider_id}"
        data = await self._request(url, "league", f"league entries of {provider_id}")
        if not isinstance(data, list):
            raise TransientAPIError("League response is not a list", 200)

        for entry in data:
            if isinstance(entry, dict) and entry.get("queueType") == queue_type.value:
                try:
                    league = parse_league_entry(queue_type, entry)
                except (KeyError, TypeError, ValueError) as e:
                    raise TransientAPIError(f"Malformed league entry for {provider_id}: {e}", 200)
                logger.debug(
                    "Fetched league entry",
                    puuid=provider_id,
                    queue_type=queue_type.value,
                    tier=league.tier,
                    rank=league.rank,
                    league_points=league.league_points,
                )
                return league

        logger.debug("Account is unranked in queue", puuid=provider_id, queue_type=queue_type.value)
        return None


def _from_millis(value: int) -> datetime:
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc)


def parse_lol_match(match_id: str, data: Dict[str, Any]) -> MatchSummary:
    """Build a MatchSummary from a match-v5 payload."""
    info = data["info"]
    duration = int(info["gameDuration"])
    # Older payloads report gameDuration in milliseconds and lack gameEndTimestamp
    if "gameEndTimestamp" in info:
        completed_at = _from_millis(info["gameEndTimestamp"])
    else:
        duration = duration // 1000
        completed_at = _from_millis(info["gameCreation"] + duration * 1000)

    participants = tuple(
        PlayerResult(
            puuid=p["puuid"],
            game_name=p.get("riotIdGameName", ""),
            tag_line=p.get("riotIdTagline", ""),
            won=bool(p.get("win", False)),
            champion_name=p.get("championName"),
            kills=p.get("kills"),
            deaths=p.get("deaths"),
            assists=p.get("assists"),
        )
        for p in info["participants"]
    )

    return MatchSummary(
        match_id=data.get("metadata", {}).get("matchId", match_id),
        game_type=GameType.LOL,
        completed_at=completed_at,
        queue_id=int(info["queueId"]),
        duration_seconds=duration,
        participants=participants,
    )


def parse_tft_match(match_id: str, data: Dict[str, Any]) -> MatchSummary:
    """Build a MatchSummary from a tft match-v1 payload."""
    info = data["info"]
    duration = int(float(info["game_length"]))

    participants = tuple(
        PlayerResult(
            puuid=p["puuid"],
            game_name=p.get("riotIdGameName", ""),
            tag_line=p.get("riotIdTagline", ""),
            # In TFT, a top 4 placement is considered a win
            won=int(p["placement"]) <= 4,
            placement=int(p["placement"]),
        )
        for p in info["participants"]
    )

    return MatchSummary(
        match_id=data.get("metadata", {}).get("match_id", match_id),
        game_type=GameType.TFT,
        completed_at=_from_millis(info["game_datetime"] + duration * 1000),
        queue_id=int(info["queue_id"]),
        duration_seconds=duration,
        participants=participants,
    )


def parse_league_entry(queue_type: QueueType, data: Dict[str, Any]) -> LeagueEntry:
    """Build a LeagueEntry from a league-v4 entry payload."""
    return LeagueEntry(
        queue_type=queue_type,
        tier=str(data["tier"]),
        rank=str(data["rank"]),
        league_points=int(data["leaguePoints"]),
        wins=int(data.get("wins", 0)),
        losses=int(data.get("losses", 0)),
    )
