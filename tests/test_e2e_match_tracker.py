"""End-to-end tests: mock Riot API server, PostgreSQL and captured events."""

import pytest
import pytest_asyncio

from match_tracker.adapters.observability import MetricsProvider
from match_tracker.adapters.riot_api import FatalAPIError
from match_tracker.application.store import MatchStore
from match_tracker.core.enums import GameType, Region
from match_tracker.service import MatchTrackerService

from tests.conftest import BaseE2ETest

pytestmark = pytest.mark.integration


@pytest_asyncio.fixture
async def tracker_service(
    test_config, database_manager, mock_event_publisher, mock_message_bus, mock_riot_control
):
    """Match tracker with both engines wired to the test infrastructure."""
    service = MatchTrackerService(test_config, message_bus_client=mock_message_bus)

    # Manually wire dependencies
    service._metrics_provider = MetricsProvider(test_config)
    service._database_manager = database_manager
    service._store = MatchStore(database_manager, test_config.match_cache_capacity)
    service._message_bus_client = mock_message_bus
    service._event_publisher = mock_event_publisher
    service._polling_services[GameType.LOL] = service._build_polling_service(
        GameType.LOL, test_config.riot_api_key
    )
    service._polling_services[GameType.TFT] = service._build_polling_service(
        GameType.TFT, test_config.tft_riot_api_key
    )

    yield service

    for polling_service in service.polling_services.values():
        await polling_service.stop_polling()
    for riot_api_client in service._riot_api_clients.values():
        await riot_api_client.close()


class TestMatchTrackerE2E(BaseE2ETest):
    """Match completion detection through the whole stack."""

    async def track(self, service, database_manager, mock_riot_control, game_name, game_type=GameType.LOL):
        """Create a mock player and register it the way the registration layer would."""
        await mock_riot_control.create_player(game_name, "NA1", puuid=f"puuid-{game_name.lower()}")
        client = service._riot_api_clients[game_type]
        puuid = await client.resolve_account(f"{game_name}#NA1", Region.NA)
        return await database_manager.create_tracked_account(puuid, Region.NA, game_name, "NA1", game_type)

    @pytest.mark.asyncio
    async def test_lol_match_completion(
        self, tracker_service, database_manager, mock_riot_control, mock_event_publisher
    ):
        account = await self.track(tracker_service, database_manager, mock_riot_control, "Alice")
        await mock_riot_control.complete_match(account.provider_id, match_id="NA1_100")
        engine = tracker_service.polling_services[GameType.LOL]

        # Matches played before tracking began never alert
        report = await engine.poll_once()
        assert report.accounts_seeded == 1
        assert mock_event_publisher.published_messages == []
        state = await database_manager.get_last_seen_state(account.provider_id, Region.NA)
        assert state.last_match_id == "NA1_100"

        await mock_riot_control.complete_match(account.provider_id, match_id="NA1_101", won=False)
        report = await engine.poll_once()

        assert report.events_emitted == 1
        message = mock_event_publisher.published_messages[0]
        assert message["subject"] == "riot.match.lol.completed"
        assert message["payload"]["match"]["match_id"] == "NA1_101"
        assert message["payload"]["account"]["display_name"] == "Alice#NA1"
        assert message["payload"]["player_won"] is False
        state = await database_manager.get_last_seen_state(account.provider_id, Region.NA)
        assert state.last_match_id == "NA1_101"

        # Nothing new, nothing emitted
        await engine.poll_once()
        assert len(mock_event_publisher.published_messages) == 1

    @pytest.mark.asyncio
    async def test_ranked_match_carries_league_standing(
        self, tracker_service, database_manager, mock_riot_control, mock_event_publisher
    ):
        account = await self.track(tracker_service, database_manager, mock_riot_control, "Alice")
        engine = tracker_service.polling_services[GameType.LOL]
        await engine.poll_once()

        await mock_riot_control.set_league(account.provider_id, "GOLD", "II", league_points=40)
        await mock_riot_control.complete_match(account.provider_id, match_id="NA1_150")
        await engine.poll_once()

        await mock_riot_control.set_league(account.provider_id, "GOLD", "II", league_points=61)
        await mock_riot_control.complete_match(account.provider_id, match_id="NA1_151")
        # ARAM has no standing
        await mock_riot_control.complete_match(account.provider_id, match_id="NA1_152", queue_id=450)
        await engine.poll_once()

        first, second, aram = [m["payload"] for m in mock_event_publisher.published_messages]
        assert first["league"]["league_points"] == 40
        assert first["previous_league"] is None
        assert second["league"]["league_points"] == 61
        assert second["previous_league"]["league_points"] == 40
        assert aram["league"] is None
        headers = mock_event_publisher.published_messages[1]["headers"]
        assert headers == {"Nats-Msg-Id": f"{account.provider_id}:NA1_151"}

    @pytest.mark.asyncio
    async def test_tft_match_completion(
        self, tracker_service, database_manager, mock_riot_control, mock_event_publisher
    ):
        account = await self.track(tracker_service, database_manager, mock_riot_control, "Carol", GameType.TFT)
        engine = tracker_service.polling_services[GameType.TFT]
        await engine.poll_once()

        await mock_riot_control.complete_match(account.provider_id, game_type="tft", placement=2)
        await engine.poll_once()

        message = mock_event_publisher.published_messages[0]
        assert message["subject"] == "riot.match.tft.completed"
        assert message["payload"]["account"]["game_type"] == "TFT"
        assert message["payload"]["match"]["queue_type"] == "TFT_RANKED"
        assert message["payload"]["player_won"] is True

    @pytest.mark.asyncio
    async def test_multiple_matches_emitted_oldest_first(
        self, tracker_service, database_manager, mock_riot_control, mock_event_publisher
    ):
        account = await self.track(tracker_service, database_manager, mock_riot_control, "Alice")
        engine = tracker_service.polling_services[GameType.LOL]
        await engine.poll_once()

        for match_id in ("NA1_201", "NA1_202", "NA1_203"):
            await mock_riot_control.complete_match(account.provider_id, match_id=match_id)
        await engine.poll_once()

        assert mock_event_publisher.match_ids() == ["NA1_201", "NA1_202", "NA1_203"]

    @pytest.mark.asyncio
    async def test_rate_limited_poll_still_delivers(
        self, tracker_service, database_manager, mock_riot_control, mock_event_publisher
    ):
        account = await self.track(tracker_service, database_manager, mock_riot_control, "Alice")
        engine = tracker_service.polling_services[GameType.LOL]
        await engine.poll_once()
        await mock_riot_control.complete_match(account.provider_id, match_id="NA1_300")

        await mock_riot_control.update_settings(fail_next_429=1, retry_after=1)
        await engine.poll_once()

        assert mock_event_publisher.match_ids() == ["NA1_300"]
        requests = await mock_riot_control.list_requests()
        history_calls = [r for r in requests if r["path"].endswith(f"{account.provider_id}/ids")]
        # Seed, rejected attempt and its retry
        assert len(history_calls) == 3
        # The retry waited for the Retry-After floor
        assert history_calls[2]["time"] - history_calls[1]["time"] >= 0.9

    @pytest.mark.asyncio
    async def test_server_errors_are_retried(
        self, tracker_service, database_manager, mock_riot_control, mock_event_publisher
    ):
        account = await self.track(tracker_service, database_manager, mock_riot_control, "Alice")
        engine = tracker_service.polling_services[GameType.LOL]
        await engine.poll_once()
        await mock_riot_control.complete_match(account.provider_id, match_id="NA1_400")

        await mock_riot_control.update_settings(fail_next_500=2)
        report = await engine.poll_once()

        assert report.accounts_failed == 0
        assert mock_event_publisher.match_ids() == ["NA1_400"]

    @pytest.mark.asyncio
    async def test_unknown_account_is_unresolvable(
        self, tracker_service, database_manager, mock_riot_control, mock_event_publisher
    ):
        account = await self.track(tracker_service, database_manager, mock_riot_control, "Alice")
        await mock_riot_control.delete_player(account.provider_id)

        report = await tracker_service.polling_services[GameType.LOL].poll_once()

        assert report.unresolvable == [account]
        assert await database_manager.get_last_seen_state(account.provider_id, Region.NA) is None

    @pytest.mark.asyncio
    async def test_rejected_api_key_is_fatal(
        self, tracker_service, database_manager, mock_riot_control, mock_event_publisher
    ):
        await self.track(tracker_service, database_manager, mock_riot_control, "Alice")
        await mock_riot_control.update_settings(required_api_key="another-key")

        with pytest.raises(FatalAPIError):
            await tracker_service.polling_services[GameType.LOL].poll_once()

    @pytest.mark.asyncio
    async def test_polling_loop_detects_matches(
        self, tracker_service, database_manager, mock_riot_control, mock_event_publisher
    ):
        account = await self.track(tracker_service, database_manager, mock_riot_control, "Alice")
        engine = tracker_service.polling_services[GameType.LOL]
        await engine.poll_once()

        await engine.start_polling()
        await mock_riot_control.complete_match(account.provider_id, match_id="NA1_500")

        messages = await self.wait_for_events(mock_event_publisher, 1)
        await engine.stop_polling()

        assert [m["payload"]["match"]["match_id"] for m in messages] == ["NA1_500"]
