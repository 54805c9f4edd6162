"""Database infrastructure layer."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional, List
from datetime import datetime

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    AsyncEngine,
    create_async_engine,
    async_sessionmaker,
)
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.pool import NullPool
from sqlalchemy import select, delete, func

from ...config import Config
from .models import TrackedAccount as TrackedAccountModel, LastSeenState as LastSeenStateModel
from ...core.entities import TrackedAccount, LastSeenState, utc_now_naive
from ...core.enums import GameType, Region

logger = logging.getLogger(__name__)


class DatabaseManager:
    """Manages database connection and provides direct repository methods.

    Implements the account source consumed by the polling engines and the
    durable half of the match store.
    """

    def __init__(self, config: Config):
        self.config = config
        self._engine: Optional[AsyncEngine] = None
        self._session_factory: Optional[async_sessionmaker[AsyncSession]] = None

    async def initialize(self) -> None:
        """Initialize database engine and session factory."""
        if self._engine is not None:
            logger.warning("Database manager already initialized")
            return

        self._engine = create_async_engine(
            self.config.get_database_url(),
            echo=self.config.log_level == "DEBUG",
            poolclass=NullPool,
            pool_pre_ping=True,
        )

        self._session_factory = async_sessionmaker(
            bind=self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

        logger.info("Database manager initialized successfully")

    async def close(self) -> None:
        """Close database engine and clean up resources."""
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None
            logger.info("Database manager closed")

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """Get a database session with automatic cleanup."""
        if self._session_factory is None:
            raise RuntimeError(
                "Database manager not initialized. Call initialize() first."
            )

        async with self._session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise
            finally:
                await session.close()

    # Conversion methods
    def _convert_db_account_to_core_entity(self, account_record: TrackedAccountModel) -> TrackedAccount:
        """Convert database TrackedAccount model to core TrackedAccount entity."""
        return TrackedAccount(
            provider_id=account_record.provider_id,
            region=Region(account_record.region),
            display_name=f"{account_record.game_name}#{account_record.tag_line}",
            game_type=GameType(account_record.game_type),
        )

    def _convert_db_last_seen_to_core_entity(self, state_record: LastSeenStateModel) -> LastSeenState:
        """Convert database LastSeenState model to core LastSeenState entity."""
        return LastSeenState(
            provider_id=state_record.provider_id,
            region=Region(state_record.region),
            last_match_id=state_record.last_match_id,
            last_polled_at=state_record.last_polled_at,
        )

    # TrackedAccount repository methods
    async def create_tracked_account(
        self,
        provider_id: str,
        region: Region,
        game_name: str,
        tag_line: str,
        game_type: GameType = GameType.LOL,
    ) -> TrackedAccount:
        """Create a new tracked account.

        Args:
            provider_id: PUUID resolved with the API key of ``game_type``
            region: Account region
            game_name: Riot ID game name
            tag_line: Riot ID tag line without '#'
            game_type: Which game the account is tracked for
        """
        async with self.get_session() as session:
            account = TrackedAccountModel(
                provider_id=provider_id,
                region=region.value,
                game_type=game_type.value,
                game_name=game_name,
                tag_line=tag_line,
            )
            session.add(account)
            await session.commit()
            await session.refresh(account)
            return self._convert_db_account_to_core_entity(account)

    async def get_tracked_account(self, provider_id: str, region: Region) -> Optional[TrackedAccount]:
        """Get a tracked account by provider id and region."""
        async with self.get_session() as session:
            result = await session.execute(
                select(TrackedAccountModel).where(
                    TrackedAccountModel.provider_id == provider_id,
                    TrackedAccountModel.region == region.value,
                )
            )
            account_record = result.scalar_one_or_none()
            return self._convert_db_account_to_core_entity(account_record) if account_record else None

    async def list_tracked_accounts(self, game_type: Optional[GameType] = None) -> List[TrackedAccount]:
        """Get all tracked accounts, optionally restricted to one game type."""
        async with self.get_session() as session:
            query = select(TrackedAccountModel).order_by(TrackedAccountModel.id)
            if game_type is not None:
                query = query.where(TrackedAccountModel.game_type == game_type.value)
            result = await session.execute(query)
            return [self._convert_db_account_to_core_entity(a) for a in result.scalars().all()]

    async def delete_tracked_account(self, provider_id: str, region: Region) -> bool:
        """Delete a tracked account; its last-seen state goes with it."""
        async with self.get_session() as session:
            result = await session.execute(
                delete(TrackedAccountModel).where(
                    TrackedAccountModel.provider_id == provider_id,
                    TrackedAccountModel.region == region.value,
                )
            )
            await session.commit()
            return result.rowcount > 0

    # LastSeenState repository methods
    async def get_last_seen_state(self, provider_id: str, region: Region) -> Optional[LastSeenState]:
        """Get the last-seen state of an account, None if it was never polled."""
        async with self.get_session() as session:
            result = await session.execute(
                select(LastSeenStateModel).where(
                    LastSeenStateModel.provider_id == provider_id,
                    LastSeenStateModel.region == region.value,
                )
            )
            state_record = result.scalar_one_or_none()
            return self._convert_db_last_seen_to_core_entity(state_record) if state_record else None

    async def set_last_seen(
        self,
        provider_id: str,
        region: Region,
        match_id: Optional[str],
        polled_at: Optional[datetime] = None,
    ) -> bool:
        """Upsert the last-seen match of an account in a single statement.

        A stored match id is never replaced with None; ``last_polled_at`` is
        refreshed either way.

        Returns:
            False if the account is no longer tracked, True otherwise
        """
        stmt = insert(LastSeenStateModel).values(
            provider_id=provider_id,
            region=region.value,
            last_match_id=match_id,
            last_polled_at=polled_at or utc_now_naive(),
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[LastSeenStateModel.provider_id, LastSeenStateModel.region],
            set_={
                "last_match_id": func.coalesce(stmt.excluded.last_match_id, LastSeenStateModel.last_match_id),
                "last_polled_at": stmt.excluded.last_polled_at,
            },
        )

        async with self.get_session() as session:
            try:
                await session.execute(stmt)
                await session.commit()
            except IntegrityError:
                await session.rollback()
                logger.warning(
                    f"Account {provider_id} ({region.value}) was untracked before its state could be saved"
                )
                return False
            return True
