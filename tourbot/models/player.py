"""Registration model - player registered for a tournament."""
from __future__ import annotations

from datetime import datetime
from enum import Enum

from sqlalchemy import BigInteger, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tourbot.models.base import Base, utc_now


class PlayerStatus(str, Enum):
    ACTIVE = "active"
    REMOVED = "removed"  # Kicked by an admin; kept for match history


class TournamentPlayer(Base):
    """Player registration for a tournament. One row per (tournament, user), removed rows included."""

    __tablename__ = "tournament_players"
    __table_args__ = (UniqueConstraint("tournament_id", "user_id", name="uq_tournament_players_user"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tournament_id: Mapped[int] = mapped_column(ForeignKey("tournaments.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[int] = mapped_column(BigInteger, nullable=False)  # Discord user ID
    username: Mapped[str] = mapped_column(String(255), nullable=False)
    registered_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    status: Mapped[str] = mapped_column(String(32), default=PlayerStatus.ACTIVE.value)

    tournament = relationship("Tournament", back_populates="players")
