"""Main service class for match-tracker."""

import asyncio
import logging
from typing import Dict, List, Optional

from match_tracker.config import Config
from match_tracker.core.entities import TrackedAccount
from match_tracker.core.enums import GameType
from match_tracker.adapters.messaging import NATSMessageBusClient, MessageBusClient
from match_tracker.adapters.database.manager import DatabaseManager
from match_tracker.adapters.riot_api import RateLimiter, RetryDriver, RetryPolicy, RiotAPIClient, FatalAPIError
from match_tracker.application.polling_service import CycleReport, PollingService
from match_tracker.application.store import MatchStore
from match_tracker.adapters.messaging.events import EventPublisher
from match_tracker.adapters.observability import MetricsProvider


logger = logging.getLogger(__name__)


class MatchTrackerService:
    """Main service class that orchestrates match tracking.

    This service directly manages infrastructure components without
    complex dependency injection frameworks. One rate limiter, API client
    and polling engine is built per game type, since LoL and TFT use
    separate API keys with separate quotas.
    """

    def __init__(
        self, config: Config, message_bus_client: Optional[MessageBusClient] = None
    ):
        """Initialize the match-tracker service.

        Args:
            config: Service configuration
            message_bus_client: Optional message bus client for dependency injection.
                               If not provided, will create NATSMessageBusClient from config.
        """
        self.config = config
        self._running = False
        self._stop_requested = asyncio.Event()

        # Infrastructure components
        self._database_manager: Optional[DatabaseManager] = None
        self._message_bus_client: Optional[MessageBusClient] = None
        self._event_publisher: Optional[EventPublisher] = None
        self._metrics_provider: Optional[MetricsProvider] = None
        self._store: Optional[MatchStore] = None
        self._riot_api_clients: Dict[GameType, RiotAPIClient] = {}
        self._polling_services: Dict[GameType, PollingService] = {}

        # Provided dependencies
        self._provided_message_bus_client = message_bus_client

    @property
    def polling_services(self) -> Dict[GameType, PollingService]:
        return self._polling_services

    async def start(self):
        """Start the match-tracker service and run until stopped.

        Raises:
            FatalAPIError: If a polling engine halted on a fatal provider error
        """
        logger.info("Starting match-tracker service")
        self._running = True

        try:
            await self._initialize_infrastructure()

            for polling_service in self._polling_services.values():
                await polling_service.start_polling()

            # Main service loop - handles health checks and coordination
            while self._running:
                self._check_engines()
                await self._check_message_bus()

                # Health check interval, cut short by request_stop()
                try:
                    await asyncio.wait_for(
                        self._stop_requested.wait(), timeout=min(self.config.poll_interval_seconds, 5)
                    )
                except asyncio.TimeoutError:
                    pass

        except Exception:
            self._running = False
            raise

    def request_stop(self) -> None:
        """Make start() return so the caller can run stop()."""
        logger.info("Stop requested")
        self._running = False
        self._stop_requested.set()

    async def run_once(self) -> List[CycleReport]:
        """Run a single polling cycle per engine and return the reports."""
        logger.info("Running a single polling cycle")
        await self._initialize_infrastructure()
        reports = []
        for polling_service in self._polling_services.values():
            reports.append(await polling_service.poll_once())
        return reports

    async def stop(self):
        """Stop the match-tracker service."""
        logger.info("Stopping match-tracker service")
        self._running = False

        for polling_service in self._polling_services.values():
            try:
                await polling_service.stop_polling()
            except Exception as e:
                logger.error(f"Error stopping {polling_service.name}: {e}")

        await self._cleanup_infrastructure()

        logger.info("match-tracker service stopped")

    def _check_engines(self) -> None:
        """Surface a polling engine that halted on a fatal error."""
        for polling_service in self._polling_services.values():
            if polling_service.halted:
                raise FatalAPIError(
                    f"{polling_service.name} halted: {polling_service.fatal_error}",
                    status_code=polling_service.fatal_error.status_code,
                )

    async def _check_message_bus(self) -> None:
        if await self._message_bus_client.is_connected():
            return
        logger.warning("Message bus connection lost, attempting to reconnect...")
        try:
            await self._message_bus_client.connect()
            await self._message_bus_client.create_streams()
            logger.info("Message bus reconnection successful")
        except Exception as e:
            logger.error(f"Failed to reconnect to message bus: {e}")

    async def _handle_unresolvable(self, account: TrackedAccount) -> None:
        """Report an account the provider no longer recognizes.

        Removing the account is up to the registration layer.
        """
        logger.warning(
            f"Tracked account {account} cannot be resolved by the Riot API; "
            f"it should be re-registered or untracked"
        )

    def _build_polling_service(self, game_type: GameType, api_key: str) -> PollingService:
        """Build the limiter, client and engine for one game type."""
        limiter = RateLimiter(
            self.config.get_rate_limit_tiers(),
            name=f"riot-{game_type.subject_token}",
            metrics=self._metrics_provider,
        )
        policy = RetryPolicy(
            max_rate_limit_retries=self.config.riot_api_max_rate_limit_retries,
            max_transient_attempts=self.config.riot_api_max_transient_attempts,
            backoff_base_seconds=self.config.riot_api_backoff_base_seconds,
            backoff_max_seconds=self.config.riot_api_backoff_max_seconds,
        )
        riot_api_client = RiotAPIClient(
            api_key,
            limiter,
            game_type=game_type,
            base_url=self.config.riot_api_url or None,
            request_timeout=self.config.riot_api_timeout_seconds,
            match_history_count=self.config.match_history_count,
            default_retry_after=self.config.riot_api_default_retry_after_seconds,
            metrics=self._metrics_provider,
            driver=RetryDriver(limiter, policy),
        )
        self._riot_api_clients[game_type] = riot_api_client

        return PollingService(
            accounts=self._database_manager,
            store=self._store,
            riot_api=riot_api_client,
            event_sink=self._event_publisher,
            config=self.config,
            game_type=game_type,
            metrics=self._metrics_provider,
            on_unresolvable=self._handle_unresolvable,
        )

    async def _initialize_infrastructure(self) -> None:
        """Initialize all infrastructure components."""
        logger.info("Initializing infrastructure components")

        # Initialize metrics provider first
        self._metrics_provider = MetricsProvider(self.config)
        self._metrics_provider.initialize()

        # Initialize database
        self._database_manager = DatabaseManager(self.config)
        await self._database_manager.initialize()
        self._store = MatchStore(self._database_manager, self.config.match_cache_capacity)

        # Initialize message bus
        if self._provided_message_bus_client is not None:
            self._message_bus_client = self._provided_message_bus_client
        else:
            self._message_bus_client = NATSMessageBusClient(
                servers=self.config.message_bus_url,
                timeout=self.config.message_bus_timeout_seconds,
                max_reconnect_attempts=self.config.message_bus_max_reconnect_attempts,
                reconnect_delay=self.config.message_bus_reconnect_delay_seconds,
                match_events_stream=self.config.match_events_stream,
                match_events_subject=self.config.match_events_subject,
                max_age_hours=self.config.jetstream_max_age_hours,
                max_msgs=self.config.jetstream_max_msgs,
                storage=self.config.jetstream_storage,
            )

        self._event_publisher = EventPublisher(
            self.config, self._message_bus_client, self._metrics_provider
        )
        await self._event_publisher.initialize()

        # Verify message bus connection
        if not await self._event_publisher.is_healthy():
            raise RuntimeError("Failed to connect to message bus")

        logger.info(f"Using Riot API at: {self.config.riot_api_url or 'regional routing'}")

        self._polling_services[GameType.LOL] = self._build_polling_service(
            GameType.LOL, self.config.riot_api_key
        )
        if self.config.is_tft_enabled():
            self._polling_services[GameType.TFT] = self._build_polling_service(
                GameType.TFT, self.config.tft_riot_api_key
            )
        else:
            logger.info("TFT_RIOT_API_KEY not set, TFT polling disabled")

        logger.info("Infrastructure initialization completed")

    async def _cleanup_infrastructure(self) -> None:
        """Clean up all infrastructure components."""
        logger.info("Cleaning up infrastructure components")

        # Close Riot API clients
        for riot_api_client in self._riot_api_clients.values():
            try:
                await riot_api_client.close()
            except Exception as e:
                logger.error(f"Error closing Riot API client: {e}")
        self._riot_api_clients.clear()
        self._polling_services.clear()

        # Close event publisher and its message bus connection
        if self._event_publisher:
            try:
                await self._event_publisher.close()
            except Exception as e:
                logger.error(f"Error closing event publisher: {e}")
            self._event_publisher = None

        # Close database connection
        if self._database_manager:
            try:
                await self._database_manager.close()
            except Exception as e:
                logger.error(f"Error during database disconnect: {e}")
            self._database_manager = None

        if self._metrics_provider:
            self._metrics_provider.shutdown()
            self._metrics_provider = None

        logger.info("Infrastructure cleanup completed")
