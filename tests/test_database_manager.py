"""Integration tests for the database manager."""

from datetime import timedelta

import pytest
from sqlalchemy.exc import IntegrityError

from match_tracker.core.entities import utc_now_naive
from match_tracker.core.enums import GameType, Region

from tests.utils import count_last_seen_states, count_tracked_accounts

pytestmark = pytest.mark.integration


class TestTrackedAccounts:
    """Test tracked account persistence."""

    @pytest.mark.asyncio
    async def test_create_and_get_tracked_account(self, database_manager):
        created = await database_manager.create_tracked_account("puuid_1", Region.EUW, "Alice", "EUW")

        assert created.display_name == "Alice#EUW"
        assert created.region == Region.EUW
        assert created.game_type == GameType.LOL

        fetched = await database_manager.get_tracked_account("puuid_1", Region.EUW)
        assert fetched == created
        assert await database_manager.get_tracked_account("puuid_1", Region.NA) is None

    @pytest.mark.asyncio
    async def test_duplicate_account_rejected(self, database_manager):
        await database_manager.create_tracked_account("puuid_1", Region.NA, "Alice", "NA1")

        with pytest.raises(IntegrityError):
            await database_manager.create_tracked_account("puuid_1", Region.NA, "Alice", "NA1")

    @pytest.mark.asyncio
    async def test_list_tracked_accounts_by_game_type(self, database_manager):
        await database_manager.create_tracked_account("puuid_1", Region.NA, "Alice", "NA1")
        await database_manager.create_tracked_account("tft_puuid_1", Region.NA, "Alice", "NA1", GameType.TFT)
        await database_manager.create_tracked_account("puuid_2", Region.KR, "Bob", "KR1")

        lol = await database_manager.list_tracked_accounts(GameType.LOL)
        tft = await database_manager.list_tracked_accounts(GameType.TFT)
        everything = await database_manager.list_tracked_accounts()

        assert [a.provider_id for a in lol] == ["puuid_1", "puuid_2"]
        assert [a.provider_id for a in tft] == ["tft_puuid_1"]
        assert len(everything) == 3


class TestLastSeenState:
    """Test last-seen upserts."""

    @pytest.mark.asyncio
    async def test_never_polled_account_has_no_state(self, database_manager):
        await database_manager.create_tracked_account("puuid_1", Region.NA, "Alice", "NA1")

        assert await database_manager.get_last_seen_state("puuid_1", Region.NA) is None

    @pytest.mark.asyncio
    async def test_set_last_seen_inserts_then_updates(self, database_manager):
        await database_manager.create_tracked_account("puuid_1", Region.NA, "Alice", "NA1")

        assert await database_manager.set_last_seen("puuid_1", Region.NA, "NA1_1")
        assert await database_manager.set_last_seen("puuid_1", Region.NA, "NA1_2")

        state = await database_manager.get_last_seen_state("puuid_1", Region.NA)
        assert state.last_match_id == "NA1_2"
        async with database_manager.get_session() as session:
            assert await count_last_seen_states(session) == 1

    @pytest.mark.asyncio
    async def test_seed_without_matches_is_stored(self, database_manager):
        await database_manager.create_tracked_account("puuid_1", Region.NA, "Alice", "NA1")

        await database_manager.set_last_seen("puuid_1", Region.NA, None)

        state = await database_manager.get_last_seen_state("puuid_1", Region.NA)
        assert state is not None
        assert state.last_match_id is None

    @pytest.mark.asyncio
    async def test_none_never_overwrites_a_match_id(self, database_manager):
        await database_manager.create_tracked_account("puuid_1", Region.NA, "Alice", "NA1")
        first_poll = utc_now_naive() - timedelta(minutes=5)
        await database_manager.set_last_seen("puuid_1", Region.NA, "NA1_1", polled_at=first_poll)

        await database_manager.set_last_seen("puuid_1", Region.NA, None)

        state = await database_manager.get_last_seen_state("puuid_1", Region.NA)
        assert state.last_match_id == "NA1_1"
        assert state.last_polled_at > first_poll

    @pytest.mark.asyncio
    async def test_untracked_account_is_not_saved(self, database_manager):
        assert not await database_manager.set_last_seen("ghost", Region.NA, "NA1_1")
        assert await database_manager.get_last_seen_state("ghost", Region.NA) is None

    @pytest.mark.asyncio
    async def test_delete_account_cascades_to_state(self, database_manager):
        await database_manager.create_tracked_account("puuid_1", Region.NA, "Alice", "NA1")
        await database_manager.set_last_seen("puuid_1", Region.NA, "NA1_1")

        assert await database_manager.delete_tracked_account("puuid_1", Region.NA)
        assert not await database_manager.delete_tracked_account("puuid_1", Region.NA)

        async with database_manager.get_session() as session:
            assert await count_tracked_accounts(session) == 0
            assert await count_last_seen_states(session) == 0
