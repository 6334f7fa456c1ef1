"""Match and bracket generation models."""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import BigInteger, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tourbot.models.base import Base, utc_now


class MatchStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"


class Match(Base):
    """Single match in one elimination round."""

    __tablename__ = "matches"
    __table_args__ = (
        UniqueConstraint("tournament_id", "round", "match_number", name="uq_matches_round_number"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tournament_id: Mapped[int] = mapped_column(ForeignKey("tournaments.id", ondelete="CASCADE"), nullable=False)
    round: Mapped[int] = mapped_column(Integer, nullable=False)
    match_number: Mapped[int] = mapped_column(Integer, nullable=False)
    player1_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    player2_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)  # None = bye
    winner_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    code: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)  # In-game lobby code
    status: Mapped[str] = mapped_column(String(32), default=MatchStatus.PENDING.value)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)

    tournament = relationship("Tournament", back_populates="matches")

    @property
    def is_bye(self) -> bool:
        return self.player2_id is None

    def competitors(self) -> list[int]:
        return [p for p in (self.player1_id, self.player2_id) if p is not None]


class BracketGeneration(Base):
    """How many times a round's matches have been generated."""

    __tablename__ = "bracket_generations"
    __table_args__ = (
        UniqueConstraint("tournament_id", "round", name="uq_bracket_generations_round"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tournament_id: Mapped[int] = mapped_column(ForeignKey("tournaments.id", ondelete="CASCADE"), nullable=False)
    round: Mapped[int] = mapped_column(Integer, nullable=False)
    generation_count: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
