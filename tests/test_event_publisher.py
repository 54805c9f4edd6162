"""Tests for match event publishing over NATS JetStream."""

import json
from dataclasses import replace
from unittest.mock import AsyncMock, MagicMock

import nats.js.errors
import pytest

from match_tracker.adapters.messaging import EventPublisher, NATSMessageBusClient
from match_tracker.core.entities import LeagueEntry
from match_tracker.core.enums import GameType, QueueType
from match_tracker.core.events import MatchCompletedEvent

from tests.conftest import make_config
from tests.factories import MatchSummaryFactory, TrackedAccountFactory


def make_event(game_type: GameType = GameType.LOL, won: bool = True, placement=None) -> MatchCompletedEvent:
    account = TrackedAccountFactory.create("Alice", provider_id="puuid_alice", game_type=game_type)
    match = MatchSummaryFactory.create(
        "NA1_5000000001", puuid="puuid_alice", game_type=game_type, won=won, placement=placement
    )
    return MatchCompletedEvent(account=account, match=match)


class TestMatchCompletedEvent:
    """Test the event's identity and wire form."""

    def test_event_type_and_dedup_key(self):
        event = make_event()

        assert event.get_event_type() == "lol.match_completed"
        assert event.dedup_key == "puuid_alice:NA1_5000000001"

    def test_to_dict_for_tft(self):
        event = make_event(GameType.TFT, placement=6)

        data = event.to_dict()

        assert data["event_type"] == "tft.match_completed"
        assert data["account"]["game_type"] == "TFT"
        assert data["account"]["region"] == "NA"
        assert data["match"]["queue_type"] == "TFT_RANKED"
        assert data["match"]["participants"][0]["placement"] == 6
        assert data["player_won"] is False

    def test_to_dict_carries_league_standings(self):
        event = replace(
            make_event(),
            league=LeagueEntry(QueueType.RANKED_SOLO_5X5, "GOLD", "I", 12, wins=10, losses=8),
            previous_league=LeagueEntry(QueueType.RANKED_SOLO_5X5, "GOLD", "II", 88, wins=9, losses=8),
        )

        data = event.to_dict()

        assert data["league"] == {
            "queue_type": "RANKED_SOLO_5x5",
            "tier": "GOLD",
            "rank": "I",
            "league_points": 12,
            "wins": 10,
            "losses": 8,
        }
        assert data["previous_league"]["rank"] == "II"

    def test_unranked_event_has_no_standings(self):
        data = make_event(GameType.TFT, placement=2).to_dict()

        assert data["league"] is None
        assert data["previous_league"] is None


class TestEventPublisher:
    """Test EventPublisher against a mocked message bus."""

    @pytest.fixture
    def bus(self):
        bus = AsyncMock()
        bus.is_connected.return_value = True
        return bus

    @pytest.mark.asyncio
    async def test_initialize_connects_and_creates_streams(self, bus):
        publisher = EventPublisher(make_config(), bus=bus)

        await publisher.initialize()

        bus.connect.assert_awaited_once()
        bus.create_streams.assert_awaited_once()
        assert await publisher.is_healthy()

    @pytest.mark.asyncio
    async def test_initialize_failure_propagates(self, bus):
        bus.connect.side_effect = ConnectionError("nats unreachable")
        publisher = EventPublisher(make_config(), bus=bus)

        with pytest.raises(ConnectionError):
            await publisher.initialize()

    @pytest.mark.asyncio
    async def test_emit_publishes_json_on_game_subject(self, bus):
        metrics = MagicMock()
        publisher = EventPublisher(make_config(), bus=bus, metrics=metrics)

        await publisher.emit(make_event())

        subject, data = bus.publish.await_args.args
        assert subject == "riot.match.lol.completed"
        # The dedup key doubles as the JetStream message id
        assert bus.publish.await_args.kwargs["headers"] == {"Nats-Msg-Id": "puuid_alice:NA1_5000000001"}
        payload = json.loads(data)
        assert payload["match"]["match_id"] == "NA1_5000000001"
        assert payload["player_won"] is True
        assert payload["dedup_key"] == "puuid_alice:NA1_5000000001"
        metrics.record_message_published.assert_called_once_with(
            "lol.match_completed", "riot.match.lol.completed", "match_events"
        )

    @pytest.mark.asyncio
    async def test_subject_uses_configured_prefix(self, bus):
        publisher = EventPublisher(make_config(match_events_subject="alerts.match"), bus=bus)

        assert publisher.subject_for(make_event(GameType.TFT)) == "alerts.match.tft.completed"

    @pytest.mark.asyncio
    async def test_emit_failure_is_raised(self, bus):
        metrics = MagicMock()
        bus.publish.side_effect = ConnectionError("nats down")
        publisher = EventPublisher(make_config(), bus=bus, metrics=metrics)

        with pytest.raises(ConnectionError):
            await publisher.emit(make_event())

        metrics.record_message_published.assert_called_once_with(
            "lol.match_completed", "riot.match.lol.completed", "match_events", success=False
        )

    @pytest.mark.asyncio
    async def test_close_disconnects(self, bus):
        publisher = EventPublisher(make_config(), bus=bus)

        await publisher.close()

        bus.disconnect.assert_awaited_once()


class TestNATSMessageBusClient:
    """Test JetStream stream management without a NATS server."""

    def make_client(self) -> NATSMessageBusClient:
        client = NATSMessageBusClient(
            servers="nats://localhost:4222",
            match_events_stream="match_events",
            match_events_subject="riot.match",
            max_age_hours=2,
            storage="memory",
        )
        client._js = AsyncMock()
        return client

    @pytest.mark.asyncio
    async def test_create_streams_adds_missing_stream(self):
        client = self.make_client()
        client._js.stream_info.side_effect = nats.js.errors.NotFoundError()

        await client.create_streams()

        kwargs = client._js.add_stream.await_args.kwargs
        assert kwargs["name"] == "match_events"
        assert kwargs["subjects"] == ["riot.match.*.completed"]
        assert kwargs["max_age"] == 2 * 60 * 60
        assert kwargs["storage"] == "memory"

    @pytest.mark.asyncio
    async def test_create_streams_keeps_existing_stream(self):
        client = self.make_client()

        await client.create_streams()

        client._js.add_stream.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_publish_requires_connection(self):
        client = NATSMessageBusClient(servers="nats://localhost:4222")

        with pytest.raises(RuntimeError):
            await client.publish("riot.match.lol.completed", b"{}")
        assert not await client.is_connected()

    @pytest.mark.asyncio
    async def test_publish_forwards_message_id_header(self):
        client = self.make_client()
        client._js.publish.return_value = MagicMock(stream="match_events", seq=7)
        headers = {"Nats-Msg-Id": "puuid_alice:NA1_5000000001"}

        await client.publish("riot.match.lol.completed", b"{}", headers=headers)

        client._js.publish.assert_awaited_once_with("riot.match.lol.completed", b"{}", headers=headers)
