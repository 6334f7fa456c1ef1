"""Tournament store - async SQLAlchemy access to tournaments, players, matches and settings.

Invariants that must hold across concurrent handlers and processes are
enforced here with constraints and single-statement conditional writes,
not with in-process locks.
"""
from __future__ import annotations

import logging
from enum import Enum
from typing import Any, List, Optional, Sequence

from sqlalchemy import BigInteger, DateTime, Integer, String, delete, func, insert, literal, or_, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tourbot.errors import ConflictError
from tourbot.models import (
    BracketGeneration,
    GuildSettings,
    Match,
    MatchStatus,
    PlayerStatus,
    Tournament,
    TournamentPlayer,
    TournamentStatus,
    utc_now,
)
from tourbot.services.bracket_engine import MatchPlan

logger = logging.getLogger("tourbot.store")


class RegistrationOutcome(str, Enum):
    REGISTERED = "registered"
    DUPLICATE = "duplicate"
    FULL = "full"


def _dialect_insert(session: AsyncSession, model: Any):
    """INSERT construct that supports ON CONFLICT for the bound database."""
    name = session.bind.dialect.name
    if name == "postgresql":
        return postgresql.insert(model)
    if name == "sqlite":
        return sqlite.insert(model)
    raise RuntimeError(f"Unsupported database dialect: {name}")


class TournamentStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    # ----- Tournaments -----
    async def create_tournament(
        self,
        guild_id: int,
        size: int,
        name: str,
        map: Optional[str] = None,
        abilities: Optional[str] = None,
        prize: Optional[str] = None,
    ) -> Tournament:
        """Insert a tournament in registration. Raises ConflictError if the guild already has an active one."""
        async with self._session_factory() as session:
            t = Tournament(
                guild_id=guild_id,
                size=size,
                name=name,
                map=map,
                abilities=abilities,
                prize=prize,
                status=TournamentStatus.REGISTRATION.value,
            )
            session.add(t)
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                raise ConflictError(
                    "There is already an active tournament. End it first with `/tour end`."
                ) from exc
            return t

    async def get_active_tournament(self, guild_id: int) -> Optional[Tournament]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(Tournament)
                .where(
                    Tournament.guild_id == guild_id,
                    Tournament.status != TournamentStatus.COMPLETED.value,
                )
                .order_by(Tournament.created_at.desc(), Tournament.id.desc())
                .limit(1)
            )
            return result.scalars().first()

    async def get_tournament_by_id(self, tournament_id: int) -> Optional[Tournament]:
        async with self._session_factory() as session:
            return await session.get(Tournament, tournament_id)

    async def update_tournament_status(self, tournament_id: int, status: TournamentStatus) -> None:
        async with self._session_factory() as session:
            await session.execute(
                update(Tournament).where(Tournament.id == tournament_id).values(status=status.value)
            )
            await session.commit()

    async def complete_tournament(
        self,
        tournament_id: int,
        end_reason: Optional[str] = None,
        show_third_place: Optional[bool] = None,
    ) -> bool:
        """Mark completed. False if it was already completed (someone else finished it first)."""
        values: dict[str, Any] = {"status": TournamentStatus.COMPLETED.value}
        if end_reason is not None:
            values["end_reason"] = end_reason
        if show_third_place is not None:
            values["show_third_place"] = show_third_place
        async with self._session_factory() as session:
            result = await session.execute(
                update(Tournament)
                .where(
                    Tournament.id == tournament_id,
                    Tournament.status != TournamentStatus.COMPLETED.value,
                )
                .values(**values)
            )
            await session.commit()
            return result.rowcount > 0

    async def set_tournament_message(self, tournament_id: int, channel_id: int, message_id: int) -> None:
        async with self._session_factory() as session:
            await session.execute(
                update(Tournament)
                .where(Tournament.id == tournament_id)
                .values(channel_id=channel_id, message_id=message_id)
            )
            await session.commit()

    async def set_player_list_message(self, tournament_id: int, message_id: int) -> None:
        async with self._session_factory() as session:
            await session.execute(
                update(Tournament)
                .where(Tournament.id == tournament_id)
                .values(player_list_message_id=message_id)
            )
            await session.commit()

    # ----- Registrations -----
    async def register_player(
        self, tournament_id: int, user_id: int, username: str, capacity: int
    ) -> RegistrationOutcome:
        """Insert an active registration if fewer than ``capacity`` players are active.

        The capacity check and the insert are one INSERT ... SELECT ... WHERE
        statement, run while holding the tournament row lock so concurrent
        registrations are serialized (SELECT ... FOR UPDATE on PostgreSQL;
        SQLite already allows a single writer). Duplicates hit the
        (tournament_id, user_id) unique constraint.
        """
        async with self._session_factory() as session:
            active_count = (
                select(func.count(TournamentPlayer.id))
                .where(
                    TournamentPlayer.tournament_id == tournament_id,
                    TournamentPlayer.status == PlayerStatus.ACTIVE.value,
                )
                .correlate(None)
                .scalar_subquery()
            )
            source = select(
                literal(tournament_id, Integer),
                literal(user_id, BigInteger),
                literal(username, String),
                literal(PlayerStatus.ACTIVE.value, String),
                literal(utc_now(), DateTime(timezone=True)),
            ).where(active_count < capacity)
            stmt = insert(TournamentPlayer).from_select(
                ["tournament_id", "user_id", "username", "status", "registered_at"],
                source,
            )
            try:
                async with session.begin():
                    await session.execute(
                        select(Tournament.id).where(Tournament.id == tournament_id).with_for_update()
                    )
                    result = await session.execute(stmt)
            except IntegrityError:
                return RegistrationOutcome.DUPLICATE
            if result.rowcount == 0:
                return RegistrationOutcome.FULL
            return RegistrationOutcome.REGISTERED

    async def unregister_player(self, tournament_id: int, user_id: int) -> bool:
        """Delete the user's active registration. Removed (kicked) rows are left alone."""
        async with self._session_factory() as session:
            result = await session.execute(
                delete(TournamentPlayer).where(
                    TournamentPlayer.tournament_id == tournament_id,
                    TournamentPlayer.user_id == user_id,
                    TournamentPlayer.status == PlayerStatus.ACTIVE.value,
                )
            )
            await session.commit()
            return result.rowcount > 0

    async def remove_player(self, tournament_id: int, user_id: int) -> bool:
        """Mark an active registration removed. Match rows referencing the user are untouched."""
        async with self._session_factory() as session:
            result = await session.execute(
                update(TournamentPlayer)
                .where(
                    TournamentPlayer.tournament_id == tournament_id,
                    TournamentPlayer.user_id == user_id,
                    TournamentPlayer.status == PlayerStatus.ACTIVE.value,
                )
                .values(status=PlayerStatus.REMOVED.value)
            )
            await session.commit()
            return result.rowcount > 0

    async def get_player(self, tournament_id: int, user_id: int) -> Optional[TournamentPlayer]:
        """Registration row in any status."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(TournamentPlayer).where(
                    TournamentPlayer.tournament_id == tournament_id,
                    TournamentPlayer.user_id == user_id,
                )
            )
            return result.scalar_one_or_none()

    async def get_players(self, tournament_id: int) -> List[TournamentPlayer]:
        """Active players ordered by registration time."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(TournamentPlayer)
                .where(
                    TournamentPlayer.tournament_id == tournament_id,
                    TournamentPlayer.status == PlayerStatus.ACTIVE.value,
                )
                .order_by(TournamentPlayer.registered_at, TournamentPlayer.id)
            )
            return list(result.scalars().all())

    async def get_player_count(self, tournament_id: int) -> int:
        async with self._session_factory() as session:
            result = await session.execute(
                select(func.count(TournamentPlayer.id)).where(
                    TournamentPlayer.tournament_id == tournament_id,
                    TournamentPlayer.status == PlayerStatus.ACTIVE.value,
                )
            )
            return int(result.scalar_one())

    # ----- Matches -----
    async def create_match(
        self,
        tournament_id: int,
        round_num: int,
        match_number: int,
        player1_id: Optional[int],
        player2_id: Optional[int],
        winner_id: Optional[int] = None,
    ) -> Match:
        async with self._session_factory() as session:
            m = _build_match(tournament_id, round_num, match_number, player1_id, player2_id, winner_id)
            session.add(m)
            await session.commit()
            return m

    async def get_matches(self, tournament_id: int, round_num: int) -> List[Match]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(Match)
                .where(Match.tournament_id == tournament_id, Match.round == round_num)
                .order_by(Match.match_number)
            )
            return list(result.scalars().all())

    async def get_all_matches(self, tournament_id: int) -> List[Match]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(Match)
                .where(Match.tournament_id == tournament_id)
                .order_by(Match.round, Match.match_number)
            )
            return list(result.scalars().all())

    async def get_match_by_number(
        self, tournament_id: int, round_num: int, match_number: int
    ) -> Optional[Match]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(Match).where(
                    Match.tournament_id == tournament_id,
                    Match.round == round_num,
                    Match.match_number == match_number,
                )
            )
            return result.scalar_one_or_none()

    async def get_latest_round(self, tournament_id: int) -> int:
        """Highest round with matches, 0 before round 1 is generated."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(func.max(Match.round)).where(Match.tournament_id == tournament_id)
            )
            return result.scalar_one() or 0

    async def update_match_code(self, match_id: int, code: str) -> None:
        async with self._session_factory() as session:
            await session.execute(update(Match).where(Match.id == match_id).values(code=code))
            await session.commit()

    async def set_match_winner(self, match_id: int, winner_id: int) -> bool:
        """Record the winner only if the match is still undecided and ``winner_id`` plays in it."""
        async with self._session_factory() as session:
            result = await session.execute(
                update(Match)
                .where(
                    Match.id == match_id,
                    Match.winner_id.is_(None),
                    or_(Match.player1_id == winner_id, Match.player2_id == winner_id),
                )
                .values(winner_id=winner_id, status=MatchStatus.COMPLETED.value)
            )
            await session.commit()
            return result.rowcount > 0

    async def delete_matches_by_round(self, tournament_id: int, round_num: int) -> int:
        async with self._session_factory() as session:
            result = await session.execute(
                delete(Match).where(Match.tournament_id == tournament_id, Match.round == round_num)
            )
            await session.commit()
            return result.rowcount

    # ----- Bracket generations -----
    async def get_bracket_generation_count(self, tournament_id: int, round_num: int) -> int:
        async with self._session_factory() as session:
            result = await session.execute(
                select(BracketGeneration.generation_count).where(
                    BracketGeneration.tournament_id == tournament_id,
                    BracketGeneration.round == round_num,
                )
            )
            return result.scalar_one_or_none() or 0

    async def increment_bracket_generation(
        self, tournament_id: int, round_num: int, limit: Optional[int] = None
    ) -> Optional[int]:
        """Upsert-increment the counter and return the new count (None if ``limit`` was already reached)."""
        async with self._session_factory() as session:
            count = await self._increment_generation(session, tournament_id, round_num, limit)
            await session.commit()
            return count

    async def _increment_generation(
        self, session: AsyncSession, tournament_id: int, round_num: int, limit: Optional[int]
    ) -> Optional[int]:
        stmt = _dialect_insert(session, BracketGeneration).values(
            tournament_id=tournament_id, round=round_num, generation_count=1, created_at=utc_now()
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["tournament_id", "round"],
            set_={"generation_count": BracketGeneration.generation_count + 1},
            where=(BracketGeneration.generation_count < limit) if limit is not None else None,
        ).returning(BracketGeneration.generation_count)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def replace_round(
        self, tournament_id: int, round_num: int, plans: Sequence[MatchPlan], limit: int
    ) -> Optional[int]:
        """Generate (or regenerate) a round in one transaction.

        Increments the round's generation counter, replaces its matches with
        ``plans`` and, for round 1, moves the tournament to in_progress.
        Returns the new generation count, or None without writing anything
        when the round already reached ``limit`` generations.
        """
        async with self._session_factory() as session:
            async with session.begin():
                count = await self._increment_generation(session, tournament_id, round_num, limit)
                if count is None:
                    return None
                await session.execute(
                    delete(Match).where(Match.tournament_id == tournament_id, Match.round == round_num)
                )
                for plan in plans:
                    session.add(
                        _build_match(
                            tournament_id,
                            round_num,
                            plan.match_number,
                            plan.player1_id,
                            plan.player2_id,
                            plan.winner_id,
                        )
                    )
                if round_num == 1:
                    await session.execute(
                        update(Tournament)
                        .where(
                            Tournament.id == tournament_id,
                            Tournament.status == TournamentStatus.REGISTRATION.value,
                        )
                        .values(status=TournamentStatus.IN_PROGRESS.value)
                    )
            logger.debug("Round %d of tournament %s stored (generation %d)", round_num, tournament_id, count)
            return count

    # ----- Guild settings -----
    async def get_guild_settings(self, guild_id: int) -> Optional[GuildSettings]:
        async with self._session_factory() as session:
            return await session.get(GuildSettings, guild_id)

    async def update_guild_settings(self, guild_id: int, **values: Any) -> GuildSettings:
        """Upsert the given columns for a guild and return the stored row."""
        if not values:
            raise ValueError("No settings to update")
        async with self._session_factory() as session:
            stmt = _dialect_insert(session, GuildSettings).values(guild_id=guild_id, **values)
            stmt = stmt.on_conflict_do_update(index_elements=["guild_id"], set_=values)
            await session.execute(stmt)
            await session.commit()
            settings = await session.get(GuildSettings, guild_id, populate_existing=True)
            return settings


def _build_match(
    tournament_id: int,
    round_num: int,
    match_number: int,
    player1_id: Optional[int],
    player2_id: Optional[int],
    winner_id: Optional[int],
) -> Match:
    """Byes are stored already won by their sole player."""
    if player2_id is None and player1_id is not None:
        winner_id = player1_id
    return Match(
        tournament_id=tournament_id,
        round=round_num,
        match_number=match_number,
        player1_id=player1_id,
        player2_id=player2_id,
        winner_id=winner_id,
        status=(MatchStatus.COMPLETED if winner_id is not None else MatchStatus.PENDING).value,
    )


__all__ = ["RegistrationOutcome", "TournamentStore"]
