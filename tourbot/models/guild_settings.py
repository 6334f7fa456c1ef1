"""Per-guild settings: admin role, tournament channels, placement options."""
from __future__ import annotations

from typing import Optional

from sqlalchemy import BigInteger, Boolean
from sqlalchemy.orm import Mapped, mapped_column

from tourbot.models.base import Base


class GuildSettings(Base):
    """One row per guild, created on first write."""

    __tablename__ = "guild_settings"

    guild_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    admin_role_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    admin_channel_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)  # "Tournament is full" pings
    tournament_category_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    tour_info_channel_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    registered_players_channel_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    show_third_place: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    first_place_role_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    second_place_role_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    third_place_role_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)

    def winner_role_ids(self) -> tuple[Optional[int], Optional[int], Optional[int]]:
        return (self.first_place_role_id, self.second_place_role_id, self.third_place_role_id)
