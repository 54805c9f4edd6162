"""Tests for core enums and entities."""

from datetime import datetime, timezone

import pytest

from match_tracker.adapters.observability import MetricsProvider
from match_tracker.core.entities import utc_now_naive
from match_tracker.core.enums import GameType, QueueType, Region

from tests.conftest import make_config
from tests.factories import MatchSummaryFactory, TrackedAccountFactory


class TestRegion:
    """Test region routing metadata."""

    def test_regional_host(self):
        assert Region.NA.regional_host == "americas.api.riotgames.com"
        assert Region.EUNE.regional_host == "europe.api.riotgames.com"
        assert Region.OCE.regional_host == "sea.api.riotgames.com"

    def test_platform_host(self):
        assert Region.NA.platform_host == "na1.api.riotgames.com"
        assert Region.EUNE.platform_host == "eun1.api.riotgames.com"

    @pytest.mark.parametrize("value,expected", [
        ("NA", Region.NA),
        ("euw", Region.EUW),
        ("euw1", Region.EUW),
        (" kr ", Region.KR),
    ])
    def test_from_string(self, value, expected):
        assert Region.from_string(value) is expected

    def test_from_string_unknown(self):
        with pytest.raises(ValueError):
            Region.from_string("MOON")


class TestGameType:
    def test_subject_token(self):
        assert GameType.LOL.subject_token == "lol"
        assert GameType.TFT.subject_token == "tft"


class TestQueueType:
    def test_from_queue_id(self):
        assert QueueType.from_queue_id(450) is QueueType.ARAM
        assert QueueType.from_queue_id(1160) is QueueType.TFT_RANKED_DOUBLE_UP
        assert QueueType.from_queue_id(-1) is None


class TestTrackedAccount:
    def test_riot_id_parts(self):
        account = TrackedAccountFactory.create("Faker", "KR1", region=Region.KR)

        assert account.game_name == "Faker"
        assert account.tag_line == "KR1"
        assert str(account) == "Faker#KR1 (KR, LOL)"


class TestMatchSummary:
    def test_participant_lookup(self):
        summary = MatchSummaryFactory.create(puuid="puuid_1")

        assert summary.participant("puuid_1").won is True
        assert summary.participant("someone_else") is None

    @pytest.mark.parametrize("queue_id,ranked", [(420, True), (440, True), (450, False), (9999, False)])
    def test_is_ranked(self, queue_id, ranked):
        assert MatchSummaryFactory.create(queue_id=queue_id).is_ranked is ranked

    def test_tft_ranked_queue_has_no_league(self):
        assert not MatchSummaryFactory.create(game_type=GameType.TFT, queue_id=1100).is_ranked


class TestUtcNowNaive:
    def test_naive_utc(self):
        before = datetime.now(timezone.utc).replace(tzinfo=None)
        now = utc_now_naive()

        assert now.tzinfo is None
        assert before <= now <= datetime.now(timezone.utc).replace(tzinfo=None)


class TestMetricsProvider:
    """Test that metrics recording follows the provider's enabled state."""

    def test_disabled_provider_ignores_records(self):
        provider = MetricsProvider(make_config(otel_enabled=False))
        provider.initialize()

        assert not provider.enabled
        provider.record_riot_api_call("match", "lol", 200, 0.1)
        provider.record_match_event("lol", "ARAM")
        provider.shutdown()

    def test_enabled_provider_records(self):
        provider = MetricsProvider(make_config(otel_enabled=True, otel_exporter_type="console"))
        provider.initialize()

        assert provider.enabled
        provider.record_riot_api_call("match_ids", "lol", 429, 0.2)
        provider.record_riot_api_call("match", "tft", 0, 10.0, error_type="timeout")
        provider.record_limiter_wait("riot-lol", 0.5)
        provider.record_match_event("lol", None)
        provider.record_account_seeded("tft")
        provider.record_message_published("lol.match_completed", "riot.match.lol.completed", "match_events")
        provider.record_polling_iteration("lol")
        provider.record_polling_error("lol", "TransientAPIError")
        provider.shutdown()
