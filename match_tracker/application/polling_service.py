"""Match polling engine for the match-tracker application.

One PollingService runs per game type. Every cycle it:
- enumerates the tracked accounts of its game type
- fetches each account's recent match ids concurrently
- diffs them against the stored last-seen match
- emits one MatchCompletedEvent per new match, oldest first
- records the newest emitted match as last seen
"""

import logging
import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Optional, Protocol

from ..core.entities import LeagueEntry, MatchSummary, TrackedAccount
from ..core.enums import GameType, QueueType
from ..core.events import MatchCompletedEvent
from ..core.services import MatchHistoryDiffService
from ..adapters.observability import MetricsProvider
from ..adapters.riot_api.client import RiotAPIClient
from ..adapters.riot_api.errors import FatalAPIError, NotFoundError, TransientAPIError
from ..config import Config
from .store import MatchStore


logger = logging.getLogger(__name__)


class AccountSource(Protocol):
    """Supplies the accounts to poll, implemented by DatabaseManager."""

    async def list_tracked_accounts(self, game_type: Optional[GameType] = None) -> List[TrackedAccount]:
        ...


class MatchEventSink(Protocol):
    """Receives match completed events, implemented by EventPublisher."""

    async def emit(self, event: MatchCompletedEvent) -> None:
        ...


UnresolvableCallback = Callable[[TrackedAccount], Awaitable[None]]


class PollerState(Enum):
    """Phase of the polling engine."""

    IDLE = "idle"
    SCHEDULING = "scheduling"
    PER_ACCOUNT_FETCH = "per_account_fetch"
    DIFFING = "diffing"
    DISPATCHING = "dispatching"
    STOPPED = "stopped"


# Reported engine phase while account tasks are in different phases
_PHASE_PRIORITY = {
    PollerState.PER_ACCOUNT_FETCH: 0,
    PollerState.DIFFING: 1,
    PollerState.DISPATCHING: 2,
}


class PollingInterrupted(Exception):
    """Shutdown was requested before an account's next provider call."""

    pass


@dataclass
class CycleReport:
    """Summary of a single polling cycle."""

    game_type: GameType
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    accounts_polled: int = 0
    accounts_seeded: int = 0
    accounts_failed: int = 0
    accounts_interrupted: int = 0
    events_emitted: int = 0
    truncated: List[str] = field(default_factory=list)
    unresolvable: List[TrackedAccount] = field(default_factory=list)
    fatal_error: Optional[FatalAPIError] = None

    def __str__(self) -> str:
        return (
            f"{self.accounts_polled} accounts polled, {self.accounts_seeded} seeded, "
            f"{self.accounts_failed} failed, {self.events_emitted} events emitted"
        )


class PollingService:
    """Polls match histories for one game type and emits completed matches.

    Delivery is at-least-once: an account's last-seen id only advances after
    every event for it was emitted, so a failure in between re-emits the same
    matches on the next cycle rather than losing them.
    """

    def __init__(
        self,
        accounts: AccountSource,
        store: MatchStore,
        riot_api: RiotAPIClient,
        event_sink: MatchEventSink,
        config: Config,
        game_type: GameType = GameType.LOL,
        metrics: Optional[MetricsProvider] = None,
        on_unresolvable: Optional[UnresolvableCallback] = None,
        diff_service: Optional[MatchHistoryDiffService] = None,
    ):
        """Initialize the polling service.

        Args:
            accounts: Source of tracked accounts
            store: Last-seen state and match detail cache
            riot_api: Riot API client for this game type
            event_sink: Destination of match completed events
            config: Application configuration
            game_type: Game type polled by this engine
            metrics: Optional metrics provider
            on_unresolvable: Called for accounts the provider no longer knows
            diff_service: Match history diff implementation
        """
        self.accounts = accounts
        self.store = store
        self.riot_api = riot_api
        self.event_sink = event_sink
        self.config = config
        self.game_type = game_type
        self.metrics = metrics
        self.on_unresolvable = on_unresolvable
        self.diff_service = diff_service or MatchHistoryDiffService()

        # Extract frequently used values
        self.poll_interval_seconds = config.poll_interval_seconds
        self.shutdown_grace_seconds = config.shutdown_grace_seconds

        # Polling state
        self._shutdown = asyncio.Event()
        self._polling_task: Optional[asyncio.Task] = None
        self._phase = PollerState.IDLE
        self._account_phases: Dict[str, PollerState] = {}
        self.last_report: Optional[CycleReport] = None
        self.fatal_error: Optional[FatalAPIError] = None

    @property
    def name(self) -> str:
        return f"{self.game_type.subject_token}-poller"

    @property
    def state(self) -> PollerState:
        """Current engine phase.

        While account tasks run, this is the most advanced phase any of them
        is in.
        """
        if self._phase is PollerState.PER_ACCOUNT_FETCH and self._account_phases:
            return max(self._account_phases.values(), key=_PHASE_PRIORITY.__getitem__)
        return self._phase

    @property
    def is_running(self) -> bool:
        return self._polling_task is not None and not self._polling_task.done()

    @property
    def halted(self) -> bool:
        """True when the engine stopped because of a fatal provider error."""
        return self.fatal_error is not None

    @property
    def shutdown_requested(self) -> bool:
        return self._shutdown.is_set()

    # Core polling operations

    async def start_polling(self) -> None:
        """Start the polling loop."""
        if self.is_running:
            logger.warning(f"{self.name}: polling is already running")
            return

        self._shutdown.clear()
        self._phase = PollerState.IDLE
        self._polling_task = asyncio.create_task(self._polling_loop(), name=self.name)

        logger.info(f"{self.name}: started polling with {self.poll_interval_seconds}s intervals")

    async def stop_polling(self) -> None:
        """Request shutdown and wait for the current cycle to wind down.

        Account tasks finish their in-flight provider call and stop before
        the next one. The loop is cancelled only if it outlives the grace
        period.
        """
        self._shutdown.set()

        if self._polling_task is None:
            self._phase = PollerState.STOPPED
            return

        if not self._polling_task.done():
            try:
                await asyncio.wait_for(asyncio.shield(self._polling_task), self.shutdown_grace_seconds)
            except asyncio.TimeoutError:
                logger.warning(
                    f"{self.name}: polling loop still running after {self.shutdown_grace_seconds}s, cancelling"
                )
                self._polling_task.cancel()
                try:
                    await self._polling_task
                except asyncio.CancelledError:
                    pass

        self._phase = PollerState.STOPPED
        logger.info(f"{self.name}: stopped polling")

    async def poll_once(self) -> CycleReport:
        """Execute a single polling cycle.

        Per-account failures are logged and counted; they never abort the
        cycle for other accounts.

        Returns:
            Report of the cycle

        Raises:
            FatalAPIError: If any account hit a fatal provider error; raised
                after all account tasks of the cycle have settled
        """
        report = CycleReport(game_type=self.game_type)
        self._phase = PollerState.SCHEDULING

        try:
            accounts = await self.accounts.list_tracked_accounts(self.game_type)
            if not accounts:
                logger.debug(f"{self.name}: no tracked accounts to poll")
            else:
                logger.debug(f"{self.name}: polling {len(accounts)} accounts")
                self._phase = PollerState.PER_ACCOUNT_FETCH
                results = await asyncio.gather(
                    *(self._poll_account(account, report) for account in accounts),
                    return_exceptions=True,
                )
                for account, result in zip(accounts, results):
                    await self._handle_account_result(account, result, report)
        finally:
            self._account_phases.clear()
            self._phase = PollerState.STOPPED if self._shutdown.is_set() else PollerState.IDLE

        self.last_report = report
        if self.metrics:
            self.metrics.record_polling_iteration(self.game_type.subject_token)

        logger.info(f"{self.name}: polling cycle complete: {report}")
        if report.accounts_failed > 0:
            logger.warning(f"{self.name}: {report.accounts_failed} accounts failed to poll in this cycle")

        if report.fatal_error is not None:
            raise report.fatal_error
        return report

    # Private implementation methods

    async def _polling_loop(self) -> None:
        """Main polling loop: one cycle per interval until shutdown."""
        logger.info(f"{self.name}: polling loop started")

        while not self._shutdown.is_set():
            try:
                await self.poll_once()
            except FatalAPIError as e:
                self.fatal_error = e
                logger.critical(f"{self.name}: fatal provider error, halting engine: {e}")
                break
            except Exception as e:
                logger.error(f"{self.name}: error in polling cycle: {e}", exc_info=True)
                if self.metrics:
                    self.metrics.record_polling_error(self.game_type.subject_token, type(e).__name__)

            # Wait for the next cycle, waking immediately on shutdown
            try:
                await asyncio.wait_for(self._shutdown.wait(), timeout=self.poll_interval_seconds)
            except asyncio.TimeoutError:
                pass

        self._phase = PollerState.STOPPED
        logger.info(f"{self.name}: polling loop stopped")

    def _check_shutdown(self, account: TrackedAccount) -> None:
        if self._shutdown.is_set():
            raise PollingInterrupted(f"Shutdown requested while polling {account}")

    def _enter_phase(self, account: TrackedAccount, phase: PollerState) -> None:
        self._account_phases[account.provider_id] = phase

    async def _poll_account(self, account: TrackedAccount, report: CycleReport) -> None:
        """Run fetch, diff and dispatch for one account."""
        try:
            self._check_shutdown(account)
            self._enter_phase(account, PollerState.PER_ACCOUNT_FETCH)
            match_ids = await self.riot_api.list_recent_match_ids(account.provider_id, account.region)

            self._enter_phase(account, PollerState.DIFFING)
            state = await self.store.get_last_seen_state(account.provider_id, account.region)
            diff = self.diff_service.diff(match_ids, state)

            if diff.is_seed:
                await self.store.set_last_seen(account.provider_id, account.region, diff.seed_match_id)
                report.accounts_seeded += 1
                if self.metrics:
                    self.metrics.record_account_seeded(self.game_type.subject_token)
                logger.info(f"Seeded {account} with last seen match {diff.seed_match_id}")
                return

            if not diff.candidates:
                return

            if diff.truncated:
                report.truncated.append(account.provider_id)
                logger.warning(
                    f"Last seen match {state.last_match_id} of {account} is outside the "
                    f"{len(match_ids)} most recent matches; older matches may have been skipped"
                )

            self._enter_phase(account, PollerState.DISPATCHING)
            # Nothing is emitted until every event of the account could be built
            events = await self._build_events(account, diff.candidates)

            for event in events:
                await self.event_sink.emit(event)
                report.events_emitted += 1
                if self.metrics:
                    self.metrics.record_match_event(self.game_type.subject_token, event.match.queue_name)
                logger.info(f"Match {event.match.match_id} completed for {account}")

            for event in events:
                if event.league is not None:
                    self.store.put_cached_league(account.provider_id, event.league)
            await self.store.set_last_seen(account.provider_id, account.region, diff.newest_candidate)
        finally:
            self._account_phases.pop(account.provider_id, None)

    async def _build_events(self, account: TrackedAccount, candidates: List[str]) -> List[MatchCompletedEvent]:
        """Resolve match details and league standings for new matches, oldest first."""
        summaries = [await self._resolve_detail(account, match_id) for match_id in candidates]

        leagues: Dict[QueueType, Optional[LeagueEntry]] = {}
        events = []
        for summary in summaries:
            league = previous_league = None
            if self.game_type == GameType.LOL and summary.is_ranked:
                queue_type = summary.queue_type
                if queue_type not in leagues:
                    # league-v4 only reports the standing after the newest match
                    leagues[queue_type] = await self._resolve_league(account, queue_type)
                    previous_league = self.store.get_cached_league(account.provider_id, queue_type)
                league = leagues[queue_type]
            events.append(
                MatchCompletedEvent(account=account, match=summary, league=league, previous_league=previous_league)
            )
        return events

    async def _resolve_detail(self, account: TrackedAccount, match_id: str) -> MatchSummary:
        summary = self.store.get_cached_detail(match_id)
        if summary is not None:
            return summary

        self._check_shutdown(account)
        try:
            summary = await self.riot_api.fetch_match_detail(match_id, account.region)
        except NotFoundError as e:
            # Listed but not published yet; the account itself is fine
            raise TransientAPIError(f"Match {match_id} is not available yet: {e}", 404)
        self.store.put_cached_detail(match_id, summary)
        return summary

    async def _resolve_league(self, account: TrackedAccount, queue_type: QueueType) -> Optional[LeagueEntry]:
        self._check_shutdown(account)
        try:
            return await self.riot_api.fetch_league_entry(account.provider_id, account.region, queue_type)
        except NotFoundError:
            logger.warning(f"No league entries for {account}, sending {queue_type.value} match without standing")
            return None

    async def _handle_account_result(
        self, account: TrackedAccount, result: Optional[BaseException], report: CycleReport
    ) -> None:
        """Fold one account task's outcome into the cycle report."""
        if result is None:
            report.accounts_polled += 1
            return

        if isinstance(result, PollingInterrupted):
            report.accounts_interrupted += 1
            logger.info(f"Polling of {account} interrupted by shutdown")
            return

        if isinstance(result, asyncio.CancelledError):
            raise result

        report.accounts_failed += 1
        if self.metrics:
            self.metrics.record_polling_error(self.game_type.subject_token, type(result).__name__)

        if isinstance(result, NotFoundError):
            report.unresolvable.append(account)
            logger.warning(f"Provider no longer knows {account}: {result}")
            if self.on_unresolvable is not None:
                try:
                    await self.on_unresolvable(account)
                except Exception as e:
                    logger.error(f"Unresolvable account callback failed for {account}: {e}")
        elif isinstance(result, FatalAPIError):
            logger.error(f"Fatal provider error while polling {account}: {result}")
            if report.fatal_error is None:
                report.fatal_error = result
        else:
            logger.error(f"Error polling {account}: {result}", exc_info=result)
