"""SQLAlchemy models for the match-tracker service."""

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    String,
    DateTime,
    Integer,
    ForeignKeyConstraint,
    Index,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, Mapped, mapped_column, relationship
from sqlalchemy.sql import func

Base = declarative_base()


class TrackedAccount(Base):
    """Model for tracked Riot accounts."""

    __tablename__ = "tracked_accounts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    # PUUIDs are API-key specific, so a LoL and a TFT record never share one
    provider_id: Mapped[str] = mapped_column(String(78), nullable=False)
    region: Mapped[str] = mapped_column(String(8), nullable=False)
    game_type: Mapped[str] = mapped_column(String(10), nullable=False, default="LOL")
    game_name: Mapped[str] = mapped_column(String(16), nullable=False)
    tag_line: Mapped[str] = mapped_column(String(5), nullable=False)  # Tag line without #

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=func.now())

    # Relationships
    last_seen: Mapped[Optional["LastSeenState"]] = relationship(
        "LastSeenState",
        back_populates="account",
        cascade="all, delete-orphan",
        passive_deletes=True,
        uselist=False,
    )

    __table_args__ = (
        UniqueConstraint("provider_id", "region", name="uq_tracked_accounts_provider_region"),
        Index("idx_tracked_accounts_game_type", "game_type"),
    )

    def __repr__(self) -> str:
        return (
            f"<TrackedAccount(game_name='{self.game_name}', tag_line='{self.tag_line}', "
            f"region='{self.region}', game_type='{self.game_type}')>"
        )


class LastSeenState(Base):
    """Newest match already reported for a tracked account.

    Rows are only written by the polling engine and are removed together with
    the owning account.
    """

    __tablename__ = "last_seen_states"

    provider_id: Mapped[str] = mapped_column(String(78), primary_key=True)
    region: Mapped[str] = mapped_column(String(8), primary_key=True)
    last_match_id: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    last_polled_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=func.now())

    account: Mapped["TrackedAccount"] = relationship("TrackedAccount", back_populates="last_seen")

    __table_args__ = (
        ForeignKeyConstraint(
            ["provider_id", "region"],
            ["tracked_accounts.provider_id", "tracked_accounts.region"],
            ondelete="CASCADE",
            name="fk_last_seen_states_account",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<LastSeenState(provider_id='{self.provider_id}', region='{self.region}', "
            f"last_match_id='{self.last_match_id}')>"
        )
