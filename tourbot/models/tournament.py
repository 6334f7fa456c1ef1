"""Tournament model."""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import BigInteger, Boolean, DateTime, Index, Integer, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tourbot.models.base import Base, utc_now

# Declared bracket sizes offered by /tour create
ALLOWED_SIZES = (8, 16, 32, 64)


class TournamentStatus(str, Enum):
    """Tournament lifecycle states."""

    REGISTRATION = "registration"  # Accepting players via the Register button
    IN_PROGRESS = "in_progress"  # Round 1 generated, matches being played
    COMPLETED = "completed"  # Final decided or ended early with a reason


class Tournament(Base):
    """Single-elimination tournament hosted in a guild."""

    __tablename__ = "tournaments"
    __table_args__ = (
        # One active (non-completed) tournament per guild
        Index(
            "uq_tournaments_active_guild",
            "guild_id",
            unique=True,
            sqlite_where=text("status != 'completed'"),
            postgresql_where=text("status != 'completed'"),
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    guild_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    size: Mapped[int] = mapped_column(Integer, nullable=False)  # 8, 16, 32, 64
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    map: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    abilities: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    prize: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(32), default=TournamentStatus.REGISTRATION.value)
    end_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)  # Set by /tour end
    show_third_place: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)  # Guild flag at completion
    channel_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)  # Registration post
    message_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    player_list_message_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)

    players = relationship(
        "TournamentPlayer", back_populates="tournament", cascade="all, delete-orphan"
    )
    matches = relationship(
        "Match", back_populates="tournament", cascade="all, delete-orphan"
    )
